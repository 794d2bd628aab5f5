"""
Institutional ratio ratings.

Rates fundamental ratios as good, warning, danger or neutral using
sector-aware thresholds. Ratios are decimals (0.12 means 12%) except multiples
and the cash runway, which is in months.
"""

import logging
import math
from typing import Callable, Dict, Any, List, Optional

logger = logging.getLogger(__name__)

GOOD = "good"
WARNING = "warning"
DANGER = "danger"
NEUTRAL = "neutral"
RATINGS = (GOOD, WARNING, DANGER, NEUTRAL)

SECTORS = ("utility", "infrastructure", "growth", "general")


def cagr(start: float, end: float, years: float) -> float:
    """
    Compound annual growth rate as a decimal.

    Raises:
        ValueError: If start or end is not positive, or years is not positive
    """
    if years <= 0:
        raise ValueError("Years must be positive")
    if start <= 0 or end <= 0:
        raise ValueError("CAGR requires positive start and end values")
    return (end / start) ** (1.0 / years) - 1.0


def _at_most(good: float, warning: float, otherwise: str = DANGER) -> Callable[[float], str]:
    return lambda v: GOOD if v <= good else WARNING if v <= warning else otherwise


def _at_least(good: float, warning: float, otherwise: str = DANGER) -> Callable[[float], str]:
    return lambda v: GOOD if v >= good else WARNING if v >= warning else otherwise


def _current_ratio_general(v: float) -> str:
    if 0.8 <= v <= 1.3:
        return GOOD
    return WARNING if v >= 0.6 else DANGER


def _fcf_yield(v: float) -> str:
    if v >= 0.06:
        return GOOD
    if v >= 0.04:
        return WARNING
    return NEUTRAL if v >= 0 else DANGER


# key -> (category, label, {sector: rule}); "general" is the fallback rule.
RATIO_RULES: Dict[str, Any] = {
    "debt_to_equity": ("capital_structure", "Debt / Equity", {
        "utility": _at_most(1.5, 2.5),
        "growth": _at_most(0.3, 0.8),
        "general": _at_most(1.0, 2.0),
    }),
    "net_debt_to_ebitda": ("capital_structure", "Net Debt / EBITDA", {"general": _at_most(3, 4)}),
    "debt_to_capital": ("capital_structure", "Debt / Capital", {"general": _at_most(0.5, 0.6)}),
    "current_ratio": ("liquidity", "Current Ratio", {
        "growth": _at_least(2, 1.5),
        "general": _current_ratio_general,
    }),
    "quick_ratio": ("liquidity", "Quick Ratio", {"general": _at_least(1, 0.7)}),
    "cash_runway_months": ("liquidity", "Cash Runway", {"general": _at_least(24, 12)}),
    "roic": ("profitability", "ROIC", {
        "utility": _at_least(0.06, 0.04),
        "general": _at_least(0.10, 0.06),
    }),
    "roe": ("profitability", "ROE", {"general": _at_least(0.15, 0.10)}),
    "roa": ("profitability", "ROA", {
        "utility": _at_least(0.02, 0.01),
        "general": _at_least(0.05, 0.02),
    }),
    "incremental_roic": ("profitability", "Incremental ROIC", {"general": _at_least(0.12, 0.08)}),
    "revenue_cagr": ("growth", "Revenue CAGR", {
        "utility": _at_least(0.02, 0.0),
        "general": _at_least(0.10, 0.05),
    }),
    "fcf_cagr": ("growth", "FCF CAGR", {"general": _at_least(0.08, 0.03)}),
    "eps_cagr": ("growth", "EPS CAGR", {"general": _at_least(0.08, 0.03)}),
    "share_count_cagr": ("growth", "Share Count CAGR", {"general": _at_most(0.02, 0.05)}),
    "ocf_to_net_income": ("cash_flow", "OCF / Net Income", {"general": _at_least(1, 0.8)}),
    "fcf_yield": ("cash_flow", "FCF Yield", {"general": _fcf_yield}),
    "capex_to_revenue": ("cash_flow", "CapEx / Revenue", {
        "utility": _at_most(0.25, 0.40, NEUTRAL),
        "general": _at_most(0.15, 0.25, NEUTRAL),
    }),
    "ev_to_ebitda": ("valuation", "EV / EBITDA", {
        "utility": _at_most(12, 18),
        "general": _at_most(15, 25),
    }),
    "price_to_book": ("valuation", "Price / Book", {"general": _at_most(2.5, 4)}),
    "price_to_sales": ("valuation", "Price / Sales", {"general": _at_most(3, 6)}),
    "interest_coverage": ("coverage", "Interest Coverage", {"general": _at_least(3, 2)}),
    "fixed_charge_coverage": ("coverage", "Fixed-Charge Coverage", {"general": _at_least(2.5, 1.5)}),
    "asset_turnover": ("coverage", "Asset Turnover", {
        "utility": _at_least(0.2, 0.1, NEUTRAL),
        "general": _at_least(0.5, 0.3, NEUTRAL),
    }),
}


def rate_ratio(key: str, value: Optional[float], sector: str = "general") -> str:
    """Rate one ratio; missing or non-finite values are neutral."""
    if key not in RATIO_RULES:
        raise ValueError(f"Unknown ratio: {key}")
    if value is None or not math.isfinite(value):
        return NEUTRAL
    rules = RATIO_RULES[key][2]
    rule = rules.get(sector, rules["general"])
    return rule(value)


def rate_ratios(ratios: Dict[str, Optional[float]], sector: str = "general") -> Dict[str, Any]:
    """
    Rate every known ratio for a company.

    Args:
        ratios: Mapping of ratio key to value; unknown keys are ignored
        sector: utility, infrastructure, growth or general

    Returns:
        Dict with per-ratio rows, rows grouped by category and a count per rating
    """
    if sector not in SECTORS:
        raise ValueError(f"Unknown sector: {sector}")
    ignored = sorted(set(ratios) - set(RATIO_RULES))
    if ignored:
        logger.debug("Ignoring unknown ratio keys: %s", ignored)

    rows: List[Dict[str, Any]] = []
    by_category: Dict[str, List[Dict[str, Any]]] = {}
    summary = {rating: 0 for rating in RATINGS}
    for key, (category, label, _rules) in RATIO_RULES.items():
        value = ratios.get(key)
        rating = rate_ratio(key, value, sector)
        row = {"key": key, "label": label, "category": category, "value": value, "rating": rating}
        rows.append(row)
        by_category.setdefault(category, []).append(row)
        summary[rating] += 1

    return {"sector": sector, "ratios": rows, "categories": by_category, "summary": summary}
