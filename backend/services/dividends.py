"""
Dividend income calculators: yield-on-cost tracker and reverse dividend calculator.
"""

import logging
import math
from typing import Dict, Any, List, Optional

from config.finance_tables import DIVIDEND_PORTFOLIOS
from services.options_math import round_half_up

logger = logging.getLogger(__name__)

MAX_PROJECTION_YEARS = 50


def _holding_value(holding: Dict[str, Any], key: str, default: float = 0.0) -> float:
    value = holding.get(key)
    return default if value is None else float(value)


def yield_on_cost(holdings: List[Dict[str, Any]], growth_rate: float = 5.0, years: int = 10) -> Dict[str, Any]:
    """
    Project yield on cost for a dividend portfolio.

    Args:
        holdings: Dicts with symbol, cost_basis (total dollars), shares,
            annual_dividend (per share) and optional dividend_growth_rate
        growth_rate: Default annual dividend growth in percent
        years: Projection horizon

    Returns:
        Dict with totals, a yearly projection and per-holding analysis sorted
        by 10-year yield on cost (highest first)
    """
    if not holdings:
        raise ValueError("At least one holding is required")
    if years < 0 or years > MAX_PROJECTION_YEARS:
        raise ValueError(f"Projection years must be between 0 and {MAX_PROJECTION_YEARS}")

    total_cost = sum(_holding_value(h, "cost_basis") for h in holdings)
    if total_cost <= 0:
        raise ValueError("Total cost basis must be positive")
    annual_income = sum(_holding_value(h, "annual_dividend") * _holding_value(h, "shares") for h in holdings)
    current_yoc = annual_income / total_cost * 100

    projection = []
    income = annual_income
    cumulative = 0.0
    for year in range(years + 1):
        cumulative += income
        projection.append({
            "year": year,
            "yield_on_cost": round(income / total_cost * 100, 2),
            "annual_income": round_half_up(income),
            "cumulative_income": round_half_up(cumulative),
        })
        income *= 1 + growth_rate / 100.0

    analysis = []
    for holding in holdings:
        cost = _holding_value(holding, "cost_basis")
        yoc = (
            _holding_value(holding, "annual_dividend") * _holding_value(holding, "shares") / cost * 100
            if cost > 0 else 0.0
        )
        rate = holding.get("dividend_growth_rate") or growth_rate
        factor = 1 + rate / 100.0
        if 0 < yoc < 10 and rate > 0:
            years_to_10 = round(math.log(10 / yoc) / math.log(factor), 1)
        elif yoc >= 10:
            years_to_10 = 0.0
        else:
            years_to_10 = None
        analysis.append({
            "symbol": str(holding.get("symbol", "")).upper(),
            "cost_basis": cost,
            "current_yoc": round(yoc, 2),
            "growth_rate": rate,
            "yoc_5y": round(yoc * factor ** 5, 2),
            "yoc_10y": round(yoc * factor ** 10, 2),
            "yoc_20y": round(yoc * factor ** 20, 2),
            "years_to_double": round(72 / rate, 1) if rate > 0 else 0.0,
            "years_to_10_percent": years_to_10,
        })
    analysis.sort(key=lambda row: row["yoc_10y"], reverse=True)

    final = projection[-1]
    return {
        "total_cost": round(total_cost, 2),
        "annual_income": round(annual_income, 2),
        "current_yoc": round(current_yoc, 2),
        "final_yoc": final["yield_on_cost"],
        "income_multiple": round(final["annual_income"] / annual_income, 1) if annual_income > 0 else 0.0,
        "cost_basis_recovered": round(final["cumulative_income"] / total_cost * 100, 1),
        "projection": projection,
        "holdings": analysis,
    }


def reverse_dividend(target_income: float, frequency: str = "monthly",
                     custom_yield: Optional[float] = 5.0) -> Dict[str, Any]:
    """
    Work back from a desired dividend income to the capital needed.

    Args:
        target_income: Desired income per period
        frequency: ``monthly`` or ``annual``
        custom_yield: Yield percent for the custom calculation (1-15)

    Returns:
        Dict with the annual target, per-portfolio requirements, the custom
        requirement and the yield-vs-investment curve
    """
    if target_income <= 0:
        raise ValueError("Target income must be positive")
    if frequency not in ("monthly", "annual"):
        raise ValueError("Frequency must be 'monthly' or 'annual'")
    annual_target = target_income * 12 if frequency == "monthly" else target_income

    portfolios = []
    for portfolio in DIVIDEND_PORTFOLIOS:
        required = round_half_up(annual_target / (portfolio["yield"] / 100.0))
        growth = 1 + portfolio["growth_rate"] / 100.0
        portfolios.append({
            "name": portfolio["name"],
            "yield": portfolio["yield"],
            "growth_rate": portfolio["growth_rate"],
            "risk": portfolio["risk"],
            "description": portfolio["description"],
            "required_investment": required,
            "future_income_5y": round_half_up(annual_target * growth ** 5),
            "future_income_10y": round_half_up(annual_target * growth ** 10),
            "holdings": [
                {**holding, "amount": round_half_up(required * holding["allocation"] / 100.0)}
                for holding in portfolio["holdings"]
            ],
        })

    custom = None
    if custom_yield is not None:
        if custom_yield <= 0 or custom_yield > 15:
            raise ValueError("Custom yield must be between 0 and 15 percent")
        custom = {
            "yield": custom_yield,
            "required_investment": round_half_up(annual_target / (custom_yield / 100.0)),
            "monthly_income": round_half_up(annual_target / 12),
        }

    curve = []
    step = 2.0
    while step <= 12.0:
        curve.append({"yield": step, "investment": round_half_up(annual_target / (step / 100.0))})
        step += 0.5

    return {
        "annual_target_income": round(annual_target, 2),
        "portfolios": portfolios,
        "custom": custom,
        "yield_curve": curve,
        "quick_reference": [
            {"yield": rate, "required_investment": round_half_up(annual_target / (rate / 100.0))}
            for rate in (4, 6, 10)
        ],
    }
