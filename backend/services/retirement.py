"""
Retirement Planning Service.

Tax and retirement calculators:
- Federal income tax and marginal rate from 2024 brackets
- Roth conversion cost, bracket headroom and conversion ladder
- Required minimum distribution schedule
- Safe withdrawal rate plan with longevity curve
- FIRE targets (lean, regular, fat, barista, coast)
"""

import math
from typing import Dict, Any, List, Optional

from config.finance_tables import (
    get_tax_brackets,
    get_distribution_period,
    TOP_MARGINAL_RATE,
    OPEN_BRACKET_DISPLAY_WIDTH,
    RMD_START_AGE,
)

MAX_PROJECTION_MONTHS = 600
LEAN_FIRE_EXPENSES = 30000
FAT_FIRE_EXPENSES = 150000
TRADITIONAL_RETIREMENT_AGE = 65


def calculate_federal_tax(income: float, filing_status: str = "single") -> float:
    """
    Calculate federal income tax on taxable income.

    Args:
        income: Taxable income in dollars
        filing_status: Filing status key

    Returns:
        Total tax owed
    """
    brackets = get_tax_brackets(filing_status)
    remaining = max(0.0, float(income))
    tax = 0.0
    for bracket in brackets:
        if remaining <= 0:
            break
        taxable = min(remaining, bracket["max"] - bracket["min"])
        tax += taxable * bracket["rate"] / 100.0
        remaining -= taxable
    return tax


def marginal_rate(income: float, filing_status: str = "single") -> float:
    """Marginal bracket rate (percent) for a taxable income."""
    for bracket in get_tax_brackets(filing_status):
        if income <= bracket["max"]:
            return bracket["rate"]
    return TOP_MARGINAL_RATE


def tax_summary(income: float, filing_status: str = "single") -> Dict[str, Any]:
    """Tax, marginal and effective rate with per-bracket breakdown."""
    if income < 0:
        raise ValueError("income cannot be negative")
    tax = calculate_federal_tax(income, filing_status)
    breakdown = []
    for bracket in get_tax_brackets(filing_status):
        taxed = max(0.0, min(income, bracket["max"]) - bracket["min"])
        if taxed <= 0:
            continue
        breakdown.append({
            "rate": bracket["rate"],
            "taxable_amount": round(taxed, 2),
            "tax": round(taxed * bracket["rate"] / 100.0, 2),
        })
    return {
        "income": income,
        "filing_status": filing_status,
        "tax": round(tax, 2),
        "marginal_rate": marginal_rate(income, filing_status),
        "effective_rate": round(tax / income * 100.0, 2) if income > 0 else 0.0,
        "brackets": breakdown,
    }


def roth_conversion_plan(
    current_income: float,
    conversion_amount: float,
    traditional_balance: float,
    current_age: int,
    retirement_age: int,
    expected_return: float,
    future_tax_rate: float,
    filing_status: str = "single",
) -> Dict[str, Any]:
    """
    Evaluate an annual Roth conversion strategy.

    Args:
        current_income: Taxable income before conversion
        conversion_amount: Amount converted each year until retirement
        traditional_balance: Current traditional IRA/401k balance
        current_age: Current age
        retirement_age: Age conversions stop
        expected_return: Annual return in percent
        future_tax_rate: Expected tax rate in retirement, percent
        filing_status: Filing status key

    Returns:
        Dict with conversion tax, rates, bracket headroom, ladder rows and totals
    """
    if conversion_amount <= 0:
        raise ValueError("conversion_amount must be positive")
    if current_income < 0 or traditional_balance < 0:
        raise ValueError("income and balance cannot be negative")
    if retirement_age < current_age:
        raise ValueError("retirement_age must not be before current_age")

    brackets = get_tax_brackets(filing_status)
    years_to_retirement = retirement_age - current_age
    growth = 1 + expected_return / 100.0

    income_with_conversion = current_income + conversion_amount
    tax_with = calculate_federal_tax(income_with_conversion, filing_status)
    tax_without = calculate_federal_tax(current_income, filing_status)
    conversion_tax = tax_with - tax_without

    ladder: List[Dict[str, Any]] = []
    remaining = traditional_balance
    cumulative_converted = 0.0
    cumulative_tax = 0
    for year in range(years_to_retirement + 11):
        converting = year < years_to_retirement
        year_conversion = conversion_amount if converting else 0.0
        tax_paid = conversion_tax if converting else 0.0
        cumulative_converted += year_conversion
        cumulative_tax += round(tax_paid)
        ladder.append({
            "year": year,
            "age": current_age + year,
            "traditional_balance": round(remaining),
            "conversion": year_conversion,
            "tax_paid": round(tax_paid),
            "cumulative_converted": cumulative_converted,
            "cumulative_tax": cumulative_tax,
            # Converted dollars season for five years before penalty-free withdrawal.
            "available": conversion_amount if year >= 5 else 0.0,
            "phase": "conversion" if converting else "withdrawal",
        })
        remaining = (remaining - year_conversion) * growth

    total_conversions = years_to_retirement * conversion_amount
    total_taxes_paid = sum(row["tax_paid"] for row in ladder)
    traditional_growth = total_conversions * growth ** years_to_retirement
    future_tax = traditional_growth * future_tax_rate / 100.0

    headroom = []
    for bracket in brackets:
        if bracket["rate"] > 32:
            continue
        width = bracket["max"] - bracket["min"]
        used = min(max(0.0, income_with_conversion - bracket["min"]), width)
        available = width - max(0.0, current_income - bracket["min"])
        headroom.append({
            "rate": bracket["rate"],
            "used": round(max(0.0, used), 2),
            "available": round(max(0.0, available), 2),
            "total": OPEN_BRACKET_DISPLAY_WIDTH if math.isinf(bracket["max"]) else width,
        })

    return {
        "tax_with_conversion": round(tax_with, 2),
        "tax_without_conversion": round(tax_without, 2),
        "conversion_tax": round(conversion_tax, 2),
        "effective_conversion_rate": round(conversion_tax / conversion_amount * 100.0, 2),
        "marginal_rate": marginal_rate(income_with_conversion, filing_status),
        "years_to_retirement": years_to_retirement,
        "total_conversions": round(total_conversions, 2),
        "total_taxes_paid": round(total_taxes_paid, 2),
        "traditional_growth": round(traditional_growth, 2),
        "future_tax_on_traditional": round(future_tax, 2),
        "tax_savings": round(future_tax - total_taxes_paid, 2),
        "bracket_headroom": headroom,
        "ladder": ladder,
    }


def rmd_schedule(
    balance: float,
    current_age: int,
    expected_return: float,
    tax_rate: float,
    years: int = 20,
) -> Dict[str, Any]:
    """
    Project required minimum distributions from a tax-deferred account.

    Ages before the RMD start age take no distribution; the balance then evolves
    as (balance - rmd) * (1 + r).
    """
    if balance < 0:
        raise ValueError("balance cannot be negative")
    if years < 1:
        raise ValueError("years must be at least 1")

    rows = []
    remaining = float(balance)
    cumulative_rmd = 0.0
    cumulative_tax = 0.0
    for year in range(years):
        age = current_age + year
        period = get_distribution_period(age)
        rmd = remaining / period if age >= RMD_START_AGE else 0.0
        tax = rmd * tax_rate / 100.0
        cumulative_rmd += rmd
        cumulative_tax += tax
        rows.append({
            "year": year,
            "age": age,
            "starting_balance": round(remaining, 2),
            "distribution_period": period,
            "rmd": round(rmd, 2),
            "tax": round(tax, 2),
            "after_tax": round(rmd - tax, 2),
            "cumulative_rmd": round(cumulative_rmd, 2),
            "cumulative_tax": round(cumulative_tax, 2),
        })
        remaining = (remaining - rmd) * (1 + expected_return / 100.0)

    first = rows[0]
    return {
        "current_rmd": first["rmd"],
        "current_distribution_period": first["distribution_period"],
        "rmd_percent_of_balance": round(first["rmd"] / balance * 100.0, 2) if balance > 0 else 0.0,
        "total_rmd": round(cumulative_rmd, 2),
        "total_tax": round(cumulative_tax, 2),
        "ending_balance": round(remaining, 2),
        "schedule": rows,
    }


def safe_withdrawal_rate(retirement_age: int) -> float:
    """Conservative SWR: longer retirements get lower rates."""
    if retirement_age > 55:
        return 4.0
    if retirement_age >= 45:
        return 3.5
    return 3.0


def safe_withdrawal_plan(
    current_age: int,
    retirement_age: int,
    current_savings: float,
    annual_spending: float,
    monthly_saving: float = 0.0,
    growth_rate: float = 7.0,
    inflation_rate: float = 3.0,
) -> Dict[str, Any]:
    """
    Required nest egg, projected savings and withdrawal longevity.

    Returns:
        Dict with swr, required nest egg, savings gap, monthly savings needed,
        accumulation projection and longevity rows.
    """
    if current_savings < 0 or annual_spending < 0:
        raise ValueError("savings and spending cannot be negative")

    years = max(retirement_age - current_age, 0)
    swr = safe_withdrawal_rate(retirement_age)
    inflation_multiplier = (1 + inflation_rate / 100.0) ** years
    inflated_spending = annual_spending * inflation_multiplier
    required = inflated_spending / (swr / 100.0)

    future_value = current_savings * (1 + growth_rate / 100.0) ** years
    annual_withdrawal = future_value * swr / 100.0

    monthly_rate = growth_rate / 100.0 / 12.0
    months = years * 12
    future_existing = current_savings * (1 + monthly_rate) ** months
    gap = required - future_existing
    if gap > 0 and months > 0:
        if monthly_rate > 0:
            monthly_needed = gap * monthly_rate / ((1 + monthly_rate) ** months - 1)
        else:
            monthly_needed = gap / months
    else:
        monthly_needed = 0.0

    projection = []
    balance = current_savings
    for year in range(years + 1):
        projection.append({
            "age": current_age + year,
            "year": year,
            "balance": round(balance),
            "target": round(required),
        })
        balance = balance * (1 + growth_rate / 100.0) + monthly_saving * 12

    longevity = []
    balance = future_value
    for year in range(41):
        age = retirement_age + year
        if age > 100:
            break
        withdrawal = annual_withdrawal * (1 + inflation_rate / 100.0) ** year
        longevity.append({
            "age": age,
            "balance": max(0, round(balance)),
            "withdrawal": round(withdrawal),
        })
        balance = (balance - withdrawal) * (1 + growth_rate / 100.0)

    depleted_at = next((row["age"] for row in longevity if row["balance"] <= 0), None)
    on_track = bool(projection) and projection[-1]["balance"] >= projection[-1]["target"]

    return {
        "years_to_retirement": years,
        "safe_withdrawal_rate": swr,
        "inflated_annual_spending": round(inflated_spending, 2),
        "required_nest_egg": round(required, 2),
        "future_value_of_savings": round(future_value, 2),
        "annual_withdrawal": round(annual_withdrawal, 2),
        "monthly_withdrawal": round(annual_withdrawal / 12.0, 2),
        "inflation_adjusted_withdrawal": round(annual_withdrawal / inflation_multiplier, 2),
        "savings_gap": round(max(0.0, gap), 2),
        "monthly_savings_needed": round(monthly_needed, 2),
        "on_track": on_track,
        "depleted_at_age": depleted_at,
        "projection": projection,
        "longevity": longevity,
    }


def _months_to_target(savings: float, target: float, monthly_return: float,
                      monthly_contribution: float) -> Optional[int]:
    months = 0
    while savings < target and months < MAX_PROJECTION_MONTHS:
        savings = savings * (1 + monthly_return) + monthly_contribution
        months += 1
    return months if months < MAX_PROJECTION_MONTHS else None


def fire_targets(
    current_age: int,
    current_savings: float,
    annual_expenses: float,
    monthly_contribution: float,
    expected_return: float = 7.0,
) -> Dict[str, Any]:
    """
    Compute FIRE variants and the time to reach each.

    Args:
        current_age: Current age
        current_savings: Invested savings today
        annual_expenses: Current annual spending
        monthly_contribution: Monthly amount invested
        expected_return: Annual return in percent

    Returns:
        Dict with targets, years to each target, achieved levels and a
        coast-FIRE-by-age table
    """
    if current_savings < 0 or annual_expenses <= 0:
        raise ValueError("savings cannot be negative and expenses must be positive")

    r = expected_return / 100.0
    regular = annual_expenses * 25
    years_to_65 = TRADITIONAL_RETIREMENT_AGE - current_age
    targets = [
        {"type": "lean", "label": "Lean FIRE", "target": LEAN_FIRE_EXPENSES * 25},
        {"type": "regular", "label": "Regular FIRE", "target": regular},
        {"type": "fat", "label": "Fat FIRE", "target": FAT_FIRE_EXPENSES * 25},
        {"type": "barista", "label": "Barista FIRE", "target": annual_expenses * 0.6 * 20},
        {"type": "coast", "label": "Coast FIRE", "target": regular / (1 + r) ** years_to_65},
    ]

    monthly_return = r / 12.0
    results = []
    for item in targets:
        target = item["target"]
        if current_savings >= target:
            years: Optional[float] = 0.0
            progress = 100.0
        else:
            months = _months_to_target(current_savings, target, monthly_return, monthly_contribution)
            years = round(months / 12.0, 1) if months is not None else None
            progress = min(100.0, current_savings / target * 100.0)
        results.append({
            **item,
            "target": round(item["target"], 2),
            "years": years,
            "age": round(current_age + years, 1) if years is not None else None,
            "progress": round(progress, 1),
        })

    closest = max(
        (row for row in results if row["progress"] < 100.0),
        key=lambda row: row["progress"],
        default=None,
    )
    coast_by_age = [
        {
            "age": age,
            "years_to_grow": TRADITIONAL_RETIREMENT_AGE - age,
            "coast_amount": round(regular / (1 + r) ** (TRADITIONAL_RETIREMENT_AGE - age)),
        }
        for age in range(20, 56)
    ]
    return {
        "targets": results,
        "achieved": [row["type"] for row in results if row["progress"] >= 100.0],
        "next_milestone": closest["type"] if closest else None,
        "coast_fire_by_age": coast_by_age,
    }
