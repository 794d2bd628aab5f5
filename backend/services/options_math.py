"""
Options Math Service.

Closed-form option analytics used by the options tools:
- Expected move from implied volatility
- Probability of profit / ITM with theta impact
- Black-Scholes price and Greeks
- ITM option vs. stock comparison with a recommendation
- Poor Man's Covered Call (PMCC) and covered call metrics
"""

import math
import re
from typing import Dict, Any, List, Optional

# Abramowitz-Stegun 7.1.26 coefficients
_A1 = 0.254829592
_A2 = -0.284496736
_A3 = 1.421413741
_A4 = -1.453152027
_A5 = 1.061405429
_P = 0.3275911

DEFAULT_RISK_FREE_RATE = 0.05
DEFAULT_VOLATILITY = 0.25
MAX_PRICE = 1_000_000
MAX_DAYS_TO_EXPIRY = 1825
MAX_VOLATILITY = 5.0
CONTRACT_MULTIPLIER = 100

_SYMBOL_PATTERN = re.compile(r"^[A-Z0-9]{1,10}$", re.IGNORECASE)


def round_half_up(value: float, digits: int = 0) -> float:
    """Round half away from zero, matching how prices are quoted."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def round_to_increment(value: float, increment: float) -> float:
    """Round a price to the nearest strike increment."""
    return math.floor(value / increment + 0.5) * increment


def erf(x: float) -> float:
    """Error function approximation (max error ~1.5e-7)."""
    sign = -1.0 if x < 0 else 1.0
    x = abs(x)
    t = 1.0 / (1.0 + _P * x)
    y = 1.0 - (((((_A5 * t + _A4) * t) + _A3) * t + _A2) * t + _A1) * t * math.exp(-x * x)
    return sign * y


def norm_cdf(x: float) -> float:
    """Standard normal cumulative distribution."""
    return 0.5 * (1.0 + erf(x / math.sqrt(2.0)))


def norm_pdf(x: float) -> float:
    """Standard normal density."""
    return math.exp(-0.5 * x * x) / math.sqrt(2.0 * math.pi)


def _validate_option_type(option_type: str) -> str:
    normalized = str(option_type or "").strip().lower()
    if normalized not in {"call", "put"}:
        raise ValueError('Option type must be "call" or "put"')
    return normalized


def expected_move(price: float, iv_percent: float, days: float) -> Dict[str, float]:
    """
    Calculate the one-standard-deviation expected move.

    Args:
        price: Current underlying price
        iv_percent: Implied volatility in percent (e.g. 30 for 30%)
        days: Calendar days to expiration

    Returns:
        Dict with expected_move, expected_move_percent, lower_bound, upper_bound
    """
    if price <= 0:
        raise ValueError("price must be positive")
    if iv_percent < 0:
        raise ValueError("implied volatility cannot be negative")
    if days < 0:
        raise ValueError("days cannot be negative")

    move = price * (iv_percent / 100.0) * math.sqrt(days / 365.0)
    return {
        "expected_move": round(move, 2),
        "expected_move_percent": round(move / price * 100.0, 2),
        "lower_bound": round(price - move, 2),
        "upper_bound": round(price + move, 2),
    }


def probability_of_profit(
    price: float,
    strike: float,
    iv_percent: float,
    days: float,
    option_type: str = "call",
    theta_per_day: float = 0.0,
) -> Dict[str, float]:
    """
    Estimate probability of finishing ITM and probability of profit for a short option.

    Args:
        price: Underlying price
        strike: Option strike
        iv_percent: Implied volatility in percent
        days: Days to expiration
        option_type: "call" or "put"
        theta_per_day: Option theta per day (dollars per share)

    Returns:
        Dict with probability_itm, probability_of_profit (percent) and theta_impact
    """
    option_type = _validate_option_type(option_type)
    if price <= 0 or strike <= 0:
        raise ValueError("price and strike must be positive")
    if iv_percent <= 0 or days <= 0:
        raise ValueError("implied volatility and days must be positive")

    iv = iv_percent / 100.0
    t = days / 365.0
    sqrt_t = math.sqrt(t)
    d1 = (math.log(price / strike) + 0.5 * iv * iv * t) / (iv * sqrt_t)
    n_d1 = norm_cdf(d1)
    prob_itm = 1.0 - n_d1 if option_type == "call" else n_d1
    pop = (1.0 - prob_itm) * 100.0
    return {
        "probability_itm": round(prob_itm * 100.0, 1),
        "probability_of_profit": round(pop, 1),
        "theta_impact": round(theta_per_day * days, 2),
        "d1": round(d1, 4),
    }


def black_scholes(
    price: float,
    strike: float,
    days: float,
    volatility: float,
    rate: float = DEFAULT_RISK_FREE_RATE,
    option_type: str = "call",
) -> Dict[str, float]:
    """
    Black-Scholes price and Greeks.

    Volatility and rate are decimals. Theta is per calendar day, vega and rho are
    per one percentage point. Degenerate inputs collapse to intrinsic value.
    """
    option_type = _validate_option_type(option_type)
    is_call = option_type == "call"
    t = days / 365.0

    values = (price, strike, t, volatility, rate)
    if t <= 0 or price <= 0 or strike <= 0 or volatility <= 0 or not all(math.isfinite(v) for v in values):
        return _degenerate_greeks(price, strike, is_call)

    sqrt_t = math.sqrt(t)
    d1 = (math.log(price / strike) + (rate + volatility * volatility / 2.0) * t) / (volatility * sqrt_t)
    d2 = d1 - volatility * sqrt_t
    if not (math.isfinite(d1) and math.isfinite(d2)):
        return _degenerate_greeks(price, strike, is_call)

    nprime = norm_pdf(d1)
    discount = math.exp(-rate * t)

    if is_call:
        value = price * norm_cdf(d1) - strike * discount * norm_cdf(d2)
        delta = norm_cdf(d1)
        theta = (-(price * nprime * volatility) / (2 * sqrt_t) - rate * strike * discount * norm_cdf(d2)) / 365.0
        rho = strike * t * discount * norm_cdf(d2) / 100.0
    else:
        value = strike * discount * norm_cdf(-d2) - price * norm_cdf(-d1)
        delta = norm_cdf(d1) - 1.0
        theta = (-(price * nprime * volatility) / (2 * sqrt_t) + rate * strike * discount * norm_cdf(-d2)) / 365.0
        rho = -strike * t * discount * norm_cdf(-d2) / 100.0

    gamma = nprime / (price * volatility * sqrt_t)
    vega = price * nprime * sqrt_t / 100.0

    result = {
        "price": value,
        "delta": delta,
        "gamma": gamma,
        "theta": theta,
        "vega": vega,
        "rho": rho,
    }
    if not all(math.isfinite(v) for v in result.values()):
        return _degenerate_greeks(price, strike, is_call)
    return result


def _degenerate_greeks(price: float, strike: float, is_call: bool) -> Dict[str, float]:
    intrinsic = 0.0
    if math.isfinite(price) and math.isfinite(strike):
        intrinsic = max(0.0, price - strike) if is_call else max(0.0, strike - price)
    if intrinsic > 0:
        delta = 1.0 if is_call else -1.0
    else:
        delta = 0.0
    return {"price": intrinsic, "delta": delta, "gamma": 0.0, "theta": 0.0, "vega": 0.0, "rho": 0.0}


def suggested_strikes(price: float) -> List[float]:
    """Eleven strikes around the spot at ~2.5% spacing, snapped to $5."""
    interval = max(1, int(round_half_up(price * 0.025)))
    strikes = {
        round_to_increment(price + i * interval, 5)
        for i in range(-5, 6)
    }
    return sorted(s for s in strikes if s > 0)


def option_quote(
    symbol: str,
    price: float,
    strike: float,
    days: float,
    volatility: Optional[float] = None,
    option_type: str = "call",
) -> Dict[str, Any]:
    """
    Build a theoretical option quote with expected move and suggested strikes.

    Raises:
        ValueError: On invalid symbol, price, strike, days or volatility
    """
    if not symbol or not _SYMBOL_PATTERN.match(symbol):
        raise ValueError("Invalid symbol format")
    if not (0 < price <= MAX_PRICE):
        raise ValueError("Invalid stock price")
    if not (0 < strike <= MAX_PRICE):
        raise ValueError("Invalid strike price")
    if not (0 <= days <= MAX_DAYS_TO_EXPIRY):
        raise ValueError(f"Invalid days to expiry (must be 0-{MAX_DAYS_TO_EXPIRY})")
    if volatility is not None and not (0 <= volatility <= MAX_VOLATILITY):
        raise ValueError(f"Invalid volatility (must be 0-{MAX_VOLATILITY:g})")
    option_type = _validate_option_type(option_type)

    vol = volatility or DEFAULT_VOLATILITY
    greeks = black_scholes(price, strike, days, vol, DEFAULT_RISK_FREE_RATE, option_type)
    move = price * vol * math.sqrt(days / 365.0)

    return {
        "symbol": symbol.upper(),
        "stock_price": price,
        "strike_price": strike,
        "days_to_expiry": days,
        "volatility": vol,
        "option_type": option_type,
        "greeks": {
            "price": round(greeks["price"], 2),
            "delta": round(greeks["delta"], 3),
            "gamma": round(greeks["gamma"], 4),
            "theta": round(greeks["theta"], 2),
            "vega": round(greeks["vega"], 2),
            "rho": round(greeks["rho"], 2),
        },
        "expected_move": {
            "amount": round(move, 2),
            "percent": round(move / price * 100.0, 2),
            "upper_bound": round(price + move, 2),
            "lower_bound": round(price - move, 2),
        },
        "suggested_strikes": suggested_strikes(price),
    }


def compare_itm_option_vs_stock(
    stock_price: float,
    strike: float,
    premium: float,
    days: int,
    volatility_percent: float,
    target_price: float,
    contracts: int = 1,
    option_type: str = "call",
    risk_free_rate_percent: float = 5.0,
) -> Dict[str, Any]:
    """
    Compare buying an in-the-money option against buying the equivalent shares.

    Args:
        stock_price: Current share price
        strike: Option strike
        premium: Option premium per share
        days: Days to expiration
        volatility_percent: Implied volatility in percent
        target_price: Price the trader expects at expiration
        contracts: Number of option contracts (100 shares each)
        option_type: "call" or "put"
        risk_free_rate_percent: Risk-free rate in percent

    Returns:
        Dict with costs, intrinsic/time value, breakeven, leverage, profit and ROI
        for both legs, Greeks and a recommendation with reasons.
    """
    option_type = _validate_option_type(option_type)
    if stock_price <= 0 or strike <= 0 or premium <= 0:
        raise ValueError("stock_price, strike and premium must be positive")
    if contracts < 1:
        raise ValueError("contracts must be at least 1")

    is_call = option_type == "call"
    shares = contracts * CONTRACT_MULTIPLIER
    stock_cost = stock_price * shares
    option_cost = premium * shares
    is_itm = stock_price > strike if is_call else stock_price < strike

    intrinsic = max(0.0, stock_price - strike) if is_call else max(0.0, strike - stock_price)
    time_value = premium - intrinsic
    breakeven = strike + premium if is_call else strike - premium
    leverage = stock_cost / option_cost

    if is_call:
        stock_profit = (target_price - stock_price) * shares
        option_profit = max(0.0, target_price - strike) * shares - option_cost
    else:
        stock_profit = (stock_price - target_price) * shares
        option_profit = max(0.0, strike - target_price) * shares - option_cost
    stock_roi = stock_profit / stock_cost * 100.0
    option_roi = option_profit / option_cost * 100.0

    greeks = black_scholes(
        stock_price, strike, days, volatility_percent / 100.0, risk_free_rate_percent / 100.0, option_type
    )
    abs_delta = abs(greeks["delta"])

    reasons: List[str] = []
    warnings: List[str] = []
    recommendation = "neutral"

    if days < 21:
        warnings.append("Short time to expiry - theta decay accelerates")
        recommendation = "stock"
    if is_itm and intrinsic / premium > 0.8:
        reasons.append("Deep ITM - option behaves like leveraged stock")
        recommendation = "option"
    if time_value / premium > 0.3:
        warnings.append("High time value - paying significant premium for time")
    if leverage > 5:
        reasons.append(f"High leverage ({leverage:.1f}x) - efficient capital use")
        if recommendation != "stock":
            recommendation = "option"
    if abs_delta > 0.7:
        reasons.append(f"High delta ({abs_delta * 100:.0f}%) - moves closely with stock")
    elif abs_delta < 0.4:
        warnings.append(f"Low delta ({abs_delta * 100:.0f}%) - less responsive to stock movement")
    if option_roi > stock_roi * 2:
        reasons.append("Option ROI significantly higher at target price")
        if recommendation == "neutral":
            recommendation = "option"
    elif stock_roi > option_roi:
        warnings.append("Stock ROI higher - consider stock purchase")
        recommendation = "stock"
    if volatility_percent > 40:
        warnings.append("High volatility - options more expensive")

    return {
        "is_itm": is_itm,
        "stock_cost": round(stock_cost, 2),
        "option_cost": round(option_cost, 2),
        "intrinsic_value": round(intrinsic, 2),
        "time_value": round(time_value, 2),
        "breakeven": round(breakeven, 2),
        "leverage": round(leverage, 2),
        "max_loss": {"stock": round(stock_cost, 2), "option": round(option_cost, 2)},
        "profit_at_target": {"stock": round(stock_profit, 2), "option": round(option_profit, 2)},
        "roi": {"stock": round(stock_roi, 2), "option": round(option_roi, 2)},
        "greeks": {key: round(value, 4) for key, value in greeks.items() if key != "price"},
        "recommendation": recommendation,
        "reasons": reasons,
        "warnings": warnings,
    }


def leaps_strike_for_delta(price: float, delta: float) -> float:
    """Approximate LEAPS strike for a target delta, snapped to $5."""
    return round_to_increment(price * (1 - (delta - 0.5) * 0.4), 5)


def short_strike_for_delta(price: float, delta: float) -> float:
    """Approximate short-call strike for a target delta, snapped to $5."""
    return round_to_increment(price * (1 + (0.5 - delta) * 0.3), 5)


def covered_call_strike_for_delta(price: float, delta: float) -> float:
    """Approximate covered-call strike for a target delta, snapped to $2.50."""
    return round_to_increment(price * (1 + (0.30 - delta) * 0.5), 2.5)


def pmcc_analysis(
    stock_price: float,
    leaps_strike: float,
    leaps_premium: float,
    leaps_dte: int,
    short_strike: float,
    short_premium: float,
    short_dte: int,
) -> Dict[str, Any]:
    """
    Analyze a Poor Man's Covered Call (long LEAPS call + short near-term call).

    Returns:
        Dict with cost structure, income projection, risk metrics and a P/L
        curve at short-call expiration.
    """
    if stock_price <= 0 or leaps_strike <= 0 or short_strike <= 0:
        raise ValueError("prices and strikes must be positive")
    if leaps_premium <= 0:
        raise ValueError("leaps_premium must be positive")
    if short_premium < 0:
        raise ValueError("short_premium cannot be negative")
    if short_dte <= 0 or leaps_dte <= 0:
        raise ValueError("days to expiration must be positive")
    if short_dte >= leaps_dte:
        raise ValueError("short call must expire before the LEAPS")

    leaps_cost = leaps_premium * CONTRACT_MULTIPLIER
    short_credit = short_premium * CONTRACT_MULTIPLIER
    net_debit = leaps_cost - short_credit
    leaps_intrinsic = max(0.0, stock_price - leaps_strike)
    leaps_extrinsic = leaps_premium - leaps_intrinsic

    cycles_per_year = 365.0 / short_dte
    annual_income = short_credit * cycles_per_year
    annualized_roi = annual_income / leaps_cost * 100.0

    stock_cost = stock_price * CONTRACT_MULTIPLIER
    capital_savings = stock_cost - leaps_cost
    spread_width = short_strike - leaps_strike

    curve = []
    price_range = stock_price * 0.30
    step = price_range / 50.0
    extrinsic_ratio = math.sqrt((leaps_dte - short_dte) / leaps_dte)
    for i in range(101):
        price = stock_price - price_range + i * step
        leaps_value = max(0.0, price - leaps_strike) + leaps_extrinsic * extrinsic_ratio
        short_value = max(0.0, price - short_strike)
        pl = ((leaps_value - leaps_premium) - (short_value - short_premium)) * CONTRACT_MULTIPLIER
        curve.append({"price": round(price, 2), "profit_loss": round(pl)})

    return {
        "leaps_strike": leaps_strike,
        "short_strike": short_strike,
        "leaps_cost": round(leaps_cost, 2),
        "short_credit": round(short_credit, 2),
        "net_debit": round(net_debit, 2),
        "leaps_intrinsic": round(leaps_intrinsic, 2),
        "leaps_extrinsic": round(leaps_extrinsic, 2),
        "max_profit_per_cycle": round(short_credit, 2),
        "cycles_per_year": math.floor(cycles_per_year),
        "annual_income_estimate": round(annual_income, 2),
        "annualized_roi": round(annualized_roi, 2),
        "breakeven": round(leaps_strike + leaps_premium - short_premium, 2),
        "max_loss": round(net_debit, 2),
        "stock_cost": round(stock_cost, 2),
        "capital_savings": round(capital_savings, 2),
        "capital_savings_percent": round(capital_savings / stock_cost * 100.0, 2),
        "assignment_risk": short_strike > leaps_strike,
        "spread_width": round(spread_width, 2),
        "max_profit_if_assigned": round(spread_width * CONTRACT_MULTIPLIER - net_debit + short_credit, 2),
        "profit_loss_curve": curve,
    }


def covered_call_analysis(
    stock_price: float,
    strike: float,
    premium: float,
    days: int,
    shares: int = 100,
) -> Dict[str, Any]:
    """Return, protection and breakeven for selling a call against owned shares."""
    if stock_price <= 0 or strike <= 0:
        raise ValueError("stock_price and strike must be positive")
    if premium < 0:
        raise ValueError("premium cannot be negative")
    if days <= 0:
        raise ValueError("days must be positive")
    if shares < CONTRACT_MULTIPLIER:
        raise ValueError("at least 100 shares are required to cover one call")

    contracts = shares // CONTRACT_MULTIPLIER
    covered = contracts * CONTRACT_MULTIPLIER
    static_return = premium / stock_price * 100.0
    if_called_return = (strike - stock_price + premium) / stock_price * 100.0

    return {
        "strike": strike,
        "contracts": contracts,
        "premium_income": round(premium * covered, 2),
        "static_return": round(static_return, 2),
        "annualized_return": round(static_return * (365.0 / days), 2),
        "if_called_return": round(if_called_return, 2),
        "downside_protection": round(static_return, 2),
        "max_profit": round((strike - stock_price + premium) * covered, 2),
        "breakeven": round(stock_price - premium, 2),
        "is_otm": strike > stock_price,
    }
