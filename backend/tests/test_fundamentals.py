"""
Tests for sector-aware ratio ratings.
"""
import math

import pytest

from services.fundamentals import RATIO_RULES, cagr, rate_ratio, rate_ratios


def test_cagr():
    assert cagr(100, 200, 1) == pytest.approx(1.0)
    assert cagr(100, 121, 2) == pytest.approx(0.10)


@pytest.mark.parametrize("start,end,years", [(0, 100, 5), (100, -1, 5), (100, 200, 0)])
def test_cagr_rejects_invalid_inputs(start, end, years):
    with pytest.raises(ValueError):
        cagr(start, end, years)


@pytest.mark.parametrize("sector,value,expected", [
    ("general", 0.8, "good"),
    ("general", 1.5, "warning"),
    ("general", 2.5, "danger"),
    ("utility", 1.5, "good"),
    ("growth", 0.5, "warning"),
    ("infrastructure", 1.0, "good"),
])
def test_debt_to_equity_thresholds_by_sector(sector, value, expected):
    assert rate_ratio("debt_to_equity", value, sector) == expected


def test_current_ratio_band():
    assert rate_ratio("current_ratio", 1.0) == "good"
    assert rate_ratio("current_ratio", 2.0) == "warning"
    assert rate_ratio("current_ratio", 0.5) == "danger"
    assert rate_ratio("current_ratio", 2.0, "growth") == "good"


def test_fcf_yield_and_capex_can_be_neutral():
    assert rate_ratio("fcf_yield", 0.07) == "good"
    assert rate_ratio("fcf_yield", 0.01) == "neutral"
    assert rate_ratio("fcf_yield", -0.02) == "danger"
    assert rate_ratio("capex_to_revenue", 0.5) == "neutral"


def test_missing_and_non_finite_values_are_neutral():
    assert rate_ratio("roe", None) == "neutral"
    assert rate_ratio("roe", math.nan) == "neutral"
    assert rate_ratio("roe", math.inf) == "neutral"


def test_unknown_ratio_raises():
    with pytest.raises(ValueError):
        rate_ratio("magic_number", 1.0)


def test_rate_ratios_groups_and_counts():
    result = rate_ratios({"roe": 0.2, "roa": 0.01, "price_to_book": 3, "bogus": 5}, sector="general")
    assert result["sector"] == "general"
    assert len(result["ratios"]) == len(RATIO_RULES)
    assert result["summary"]["good"] == 1
    assert result["summary"]["warning"] == 1
    assert result["summary"]["danger"] == 1
    assert result["summary"]["neutral"] == len(RATIO_RULES) - 3
    profitability = {row["key"]: row["rating"] for row in result["categories"]["profitability"]}
    assert profitability["roe"] == "good"
    assert profitability["roa"] == "danger"


def test_rate_ratios_rejects_unknown_sector():
    with pytest.raises(ValueError):
        rate_ratios({}, sector="crypto")
