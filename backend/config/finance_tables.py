"""
Financial Reference Tables.

Static reference data used by the calculators:
- 2024 federal income tax brackets (single, married filing jointly)
- IRS Uniform Lifetime Table for required minimum distributions
- Social Security wage base and payroll tax rates
- Monte Carlo risk profiles
- Suggested dividend income portfolios
"""

import math
from typing import Dict, Any, List
from enum import Enum


class FilingStatus(str, Enum):
    """Tax filing status."""
    SINGLE = "single"
    MARRIED = "married"
    MARRIED_SEPARATELY = "married_separately"
    HEAD_OF_HOUSEHOLD = "head_of_household"


# (lower bound, upper bound, rate percent); upper bound of the top bracket is open.
TAX_BRACKETS_2024: Dict[str, List[Dict[str, float]]] = {
    "single": [
        {"min": 0, "max": 11600, "rate": 10},
        {"min": 11600, "max": 47150, "rate": 12},
        {"min": 47150, "max": 100525, "rate": 22},
        {"min": 100525, "max": 191950, "rate": 24},
        {"min": 191950, "max": 243725, "rate": 32},
        {"min": 243725, "max": 609350, "rate": 35},
        {"min": 609350, "max": math.inf, "rate": 37},
    ],
    "married": [
        {"min": 0, "max": 23200, "rate": 10},
        {"min": 23200, "max": 94300, "rate": 12},
        {"min": 94300, "max": 201050, "rate": 22},
        {"min": 201050, "max": 383900, "rate": 24},
        {"min": 383900, "max": 487450, "rate": 32},
        {"min": 487450, "max": 731200, "rate": 35},
        {"min": 731200, "max": math.inf, "rate": 37},
    ],
}

# Statuses without their own table fall back to the closest published one.
FILING_STATUS_TABLE = {
    FilingStatus.SINGLE.value: "single",
    FilingStatus.MARRIED.value: "married",
    FilingStatus.MARRIED_SEPARATELY.value: "single",
    FilingStatus.HEAD_OF_HOUSEHOLD.value: "single",
}

TOP_MARGINAL_RATE = 37

STANDARD_DEDUCTION_2024: Dict[str, float] = {
    FilingStatus.SINGLE.value: 14600,
    FilingStatus.MARRIED.value: 29200,
    FilingStatus.MARRIED_SEPARATELY.value: 14600,
    FilingStatus.HEAD_OF_HOUSEHOLD.value: 21900,
}

# Annual wage exclusion per legacy W-4 withholding allowance.
WITHHOLDING_ALLOWANCE_VALUE = 4300

# Bracket width reported for the open-ended top bracket in headroom tables.
OPEN_BRACKET_DISPLAY_WIDTH = 200000


# IRS Uniform Lifetime Table (distribution period by age).
UNIFORM_LIFETIME_TABLE: Dict[int, float] = {
    72: 27.4, 73: 26.5, 74: 25.5, 75: 24.6, 76: 23.7, 77: 22.9, 78: 22.0, 79: 21.1,
    80: 20.2, 81: 19.4, 82: 18.5, 83: 17.7, 84: 16.8, 85: 16.0, 86: 15.2, 87: 14.4,
    88: 13.7, 89: 12.9, 90: 12.2, 91: 11.5, 92: 10.8, 93: 10.1, 94: 9.5, 95: 8.9,
    96: 8.4, 97: 7.8, 98: 7.3, 99: 6.8, 100: 6.4, 101: 6.0, 102: 5.6, 103: 5.2,
    104: 4.9, 105: 4.6, 106: 4.3, 107: 4.1, 108: 3.9, 109: 3.7, 110: 3.5, 111: 3.4,
    112: 3.3, 113: 3.1, 114: 3.0, 115: 2.9, 116: 2.8, 117: 2.7, 118: 2.5, 119: 2.3, 120: 2.0,
}

RMD_START_AGE = 73


# Payroll taxes
SOCIAL_SECURITY_WAGE_BASE = 168600
SOCIAL_SECURITY_RATE = 0.062
MEDICARE_RATE = 0.0145
DEFAULT_STATE_TAX_RATE = 0.05
DEFAULT_LOCAL_TAX_RATE = 0.0

PAY_PERIODS_PER_YEAR: Dict[str, int] = {
    "weekly": 52,
    "biweekly": 26,
    "semimonthly": 24,
    "monthly": 12,
}


# Monthly drift and volatility for the portfolio simulator.
MONTE_CARLO_PROFILES: Dict[str, Dict[str, Any]] = {
    "conservative": {"label": "Conservative", "monthly_return": 0.005, "monthly_volatility": 0.02},
    "moderate": {"label": "Moderate", "monthly_return": 0.008, "monthly_volatility": 0.04},
    "aggressive": {"label": "Aggressive", "monthly_return": 0.015, "monthly_volatility": 0.08},
}


DIVIDEND_PORTFOLIOS: List[Dict[str, Any]] = [
    {
        "name": "Ultra High Yield",
        "yield": 11.0,
        "growth_rate": -2.0,
        "risk": "High",
        "description": "Maximum current income with covered call ETFs, BDCs, and mREITs. Higher risk of capital erosion.",
        "holdings": [
            {"symbol": "QYLD", "allocation": 20, "yield": 12.0, "type": "Covered Call ETF"},
            {"symbol": "XYLD", "allocation": 15, "yield": 11.5, "type": "Covered Call ETF"},
            {"symbol": "AGNC", "allocation": 15, "yield": 14.5, "type": "mREIT"},
            {"symbol": "ARCC", "allocation": 15, "yield": 9.5, "type": "BDC"},
            {"symbol": "MAIN", "allocation": 10, "yield": 6.5, "type": "BDC"},
            {"symbol": "HTGC", "allocation": 10, "yield": 9.0, "type": "BDC"},
            {"symbol": "OXLC", "allocation": 10, "yield": 18.0, "type": "CLO Fund"},
            {"symbol": "PDI", "allocation": 5, "yield": 13.0, "type": "Bond CEF"},
        ],
    },
    {
        "name": "High Yield Income",
        "yield": 8.0,
        "growth_rate": 1.0,
        "risk": "Medium",
        "description": "Premium income ETFs blended with monthly payers, REITs and MLPs.",
        "holdings": [
            {"symbol": "JEPI", "allocation": 25, "yield": 8.0, "type": "Premium Income ETF"},
            {"symbol": "JEPQ", "allocation": 20, "yield": 9.0, "type": "Premium Income ETF"},
            {"symbol": "O", "allocation": 15, "yield": 5.6, "type": "REIT - Monthly"},
            {"symbol": "MAIN", "allocation": 10, "yield": 6.5, "type": "BDC - Monthly"},
            {"symbol": "STAG", "allocation": 10, "yield": 4.2, "type": "Industrial REIT"},
            {"symbol": "EPD", "allocation": 10, "yield": 7.5, "type": "MLP - Energy"},
            {"symbol": "SCHD", "allocation": 10, "yield": 3.5, "type": "Dividend ETF"},
        ],
    },
    {
        "name": "Dividend Aristocrats",
        "yield": 3.2,
        "growth_rate": 8.0,
        "risk": "Low",
        "description": "Companies with 25+ years of consecutive dividend increases.",
        "holdings": [
            {"symbol": "NOBL", "allocation": 25, "yield": 2.1, "type": "Aristocrats ETF"},
            {"symbol": "JNJ", "allocation": 15, "yield": 3.0, "type": "Healthcare - 62yr"},
            {"symbol": "PG", "allocation": 12, "yield": 2.4, "type": "Consumer - 68yr"},
            {"symbol": "KO", "allocation": 12, "yield": 3.0, "type": "Consumer - 62yr"},
            {"symbol": "MMM", "allocation": 10, "yield": 5.5, "type": "Industrial - 66yr"},
            {"symbol": "CL", "allocation": 8, "yield": 2.3, "type": "Consumer - 61yr"},
            {"symbol": "ED", "allocation": 8, "yield": 3.5, "type": "Utility - 50yr"},
            {"symbol": "PEP", "allocation": 10, "yield": 2.7, "type": "Consumer - 52yr"},
        ],
    },
    {
        "name": "Balanced Income",
        "yield": 5.0,
        "growth_rate": 5.0,
        "risk": "Medium",
        "description": "Mix of yield and growth with diversified ETFs and quality dividend stocks.",
        "holdings": [
            {"symbol": "SCHD", "allocation": 25, "yield": 3.5, "type": "Dividend ETF"},
            {"symbol": "JEPI", "allocation": 20, "yield": 8.0, "type": "Premium Income"},
            {"symbol": "VYM", "allocation": 15, "yield": 3.0, "type": "Value ETF"},
            {"symbol": "O", "allocation": 10, "yield": 5.6, "type": "REIT - Monthly"},
            {"symbol": "ABBV", "allocation": 10, "yield": 3.8, "type": "Healthcare"},
            {"symbol": "JPM", "allocation": 10, "yield": 2.5, "type": "Financials"},
            {"symbol": "VZ", "allocation": 10, "yield": 6.5, "type": "Telecom"},
        ],
    },
    {
        "name": "Dividend Growth",
        "yield": 2.8,
        "growth_rate": 10.0,
        "risk": "Low",
        "description": "Focus on companies with strong dividend growth rates. Lower yield today, higher yield on cost later.",
        "holdings": [
            {"symbol": "VIG", "allocation": 25, "yield": 1.8, "type": "Dividend Growth ETF"},
            {"symbol": "DGRO", "allocation": 20, "yield": 2.3, "type": "Dividend Growth ETF"},
            {"symbol": "MSFT", "allocation": 12, "yield": 0.8, "type": "Tech - 20% growth"},
            {"symbol": "AVGO", "allocation": 10, "yield": 2.0, "type": "Tech - 14% growth"},
            {"symbol": "HD", "allocation": 10, "yield": 2.5, "type": "Retail - 15% growth"},
            {"symbol": "V", "allocation": 8, "yield": 0.8, "type": "Fintech - 17% growth"},
            {"symbol": "UNH", "allocation": 8, "yield": 1.4, "type": "Healthcare - 15% growth"},
            {"symbol": "LMT", "allocation": 7, "yield": 2.7, "type": "Defense - 10% growth"},
        ],
    },
]


def get_tax_brackets(filing_status: str) -> List[Dict[str, float]]:
    """
    Get the 2024 bracket table for a filing status.

    Args:
        filing_status: One of the FilingStatus values

    Returns:
        List of bracket dicts ordered from lowest to highest rate

    Raises:
        ValueError: If filing status is unknown
    """
    key = FILING_STATUS_TABLE.get(str(filing_status).strip().lower())
    if key is None:
        raise ValueError(f"Unknown filing status: {filing_status}")
    return TAX_BRACKETS_2024[key]


def get_distribution_period(age: int) -> float:
    """Uniform Lifetime Table divisor, clamped to the table's age range."""
    if age < 72:
        return UNIFORM_LIFETIME_TABLE[72]
    if age > 120:
        return UNIFORM_LIFETIME_TABLE[120]
    return UNIFORM_LIFETIME_TABLE.get(int(age), 2.0)


def get_monte_carlo_profile(name: str) -> Dict[str, Any]:
    """Look up a simulator risk profile by name."""
    profile = MONTE_CARLO_PROFILES.get(str(name).strip().lower())
    if profile is None:
        raise ValueError(f"Unknown risk profile: {name}")
    return profile
