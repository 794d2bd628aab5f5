"""
Paycheck Calculator Service.

Computes take-home pay for a single paycheck and the annual projection.
Federal withholding uses the annualized 2024 bracket method; state and local
withholding use flat estimates since the ZIP code is only validated, not
geocoded.
"""

import logging
import re
from typing import Dict, Any, List, Optional

from config.finance_tables import (
    FilingStatus,
    PAY_PERIODS_PER_YEAR,
    SOCIAL_SECURITY_WAGE_BASE,
    SOCIAL_SECURITY_RATE,
    MEDICARE_RATE,
    DEFAULT_STATE_TAX_RATE,
    DEFAULT_LOCAL_TAX_RATE,
    STANDARD_DEDUCTION_2024,
    WITHHOLDING_ALLOWANCE_VALUE,
)
from services.retirement import calculate_federal_tax, marginal_rate

logger = logging.getLogger(__name__)

ZIP_PATTERN = re.compile(r"^\d{5}$")
MAX_GROSS_PAY = 10_000_000
MAX_DEDUCTIONS = 20
MAX_DEDUCTION_VALUE = 1_000_000
MAX_ALLOWANCES = 20
DEDUCTION_TYPES = {"percentage", "fixed"}


def normalize_deductions(deductions: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    """
    Keep at most 20 well-formed deductions.

    Entries with an unknown type or a value outside [0, 1e6] are dropped; names
    are truncated to 100 characters.
    """
    if not deductions:
        return []
    cleaned = []
    for item in list(deductions)[:MAX_DEDUCTIONS]:
        if not isinstance(item, dict):
            continue
        value = item.get("value")
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        if value < 0 or value > MAX_DEDUCTION_VALUE:
            continue
        if item.get("type") not in DEDUCTION_TYPES:
            continue
        cleaned.append({
            "name": str(item.get("name") or "Deduction")[:100],
            "type": item["type"],
            "value": float(value),
        })
    return cleaned


def _deduction_amount(gross_pay: float, deduction: Dict[str, Any]) -> float:
    if deduction["type"] == "percentage":
        return gross_pay * deduction["value"] / 100.0
    return deduction["value"]


def calculate_paycheck(
    gross_pay: float,
    zip_code: str,
    pay_frequency: str = "biweekly",
    filing_status: str = "single",
    allowances: int = 0,
    pre_tax_deductions: Optional[List[Dict[str, Any]]] = None,
    post_tax_deductions: Optional[List[Dict[str, Any]]] = None,
    state_tax_rate: float = DEFAULT_STATE_TAX_RATE,
    local_tax_rate: float = DEFAULT_LOCAL_TAX_RATE,
) -> Dict[str, Any]:
    """
    Calculate net pay for one pay period.

    Args:
        gross_pay: Gross pay for the period
        zip_code: Five-digit ZIP code
        pay_frequency: weekly, biweekly, semimonthly or monthly
        filing_status: Filing status key
        allowances: Legacy W-4 allowances (0-20)
        pre_tax_deductions: Deductions taken before tax
        post_tax_deductions: Deductions taken after tax
        state_tax_rate: Flat state withholding rate (decimal)
        local_tax_rate: Flat local withholding rate (decimal)

    Returns:
        Dict with per-period amounts, tax detail, breakdown rows and an annual projection

    Raises:
        ValueError: If gross pay or ZIP code is invalid
    """
    if not isinstance(gross_pay, (int, float)) or gross_pay <= 0 or gross_pay > MAX_GROSS_PAY:
        raise ValueError("Invalid gross pay amount")
    clean_zip = str(zip_code or "").strip()
    if not ZIP_PATTERN.match(clean_zip):
        raise ValueError("Invalid ZIP code format")

    frequency = pay_frequency if pay_frequency in PAY_PERIODS_PER_YEAR else "biweekly"
    statuses = {status.value for status in FilingStatus}
    status = filing_status if filing_status in statuses else FilingStatus.SINGLE.value
    if isinstance(allowances, bool) or not isinstance(allowances, int) or not (0 <= allowances <= MAX_ALLOWANCES):
        allowances = 0
    periods = PAY_PERIODS_PER_YEAR[frequency]

    pre_tax = normalize_deductions(pre_tax_deductions)
    post_tax = normalize_deductions(post_tax_deductions)
    pre_tax_total = sum(_deduction_amount(gross_pay, d) for d in pre_tax)
    post_tax_total = sum(_deduction_amount(gross_pay, d) for d in post_tax)
    taxable = max(0.0, gross_pay - pre_tax_total)

    annual_taxable = max(
        0.0,
        taxable * periods - STANDARD_DEDUCTION_2024[status] - allowances * WITHHOLDING_ALLOWANCE_VALUE,
    )
    federal = calculate_federal_tax(annual_taxable, status) / periods
    state = taxable * state_tax_rate
    local = taxable * local_tax_rate
    social_security = min(gross_pay * SOCIAL_SECURITY_RATE, SOCIAL_SECURITY_WAGE_BASE * SOCIAL_SECURITY_RATE / periods)
    medicare = gross_pay * MEDICARE_RATE
    total_taxes = federal + state + local + social_security + medicare
    net_pay = gross_pay - pre_tax_total - total_taxes - post_tax_total

    logger.debug(
        "Paycheck computed frequency=%s status=%s gross=%.2f net=%.2f",
        frequency, status, gross_pay, net_pay,
    )

    annual_gross = gross_pay * periods
    annual_ss = min(annual_gross * SOCIAL_SECURITY_RATE, SOCIAL_SECURITY_WAGE_BASE * SOCIAL_SECURITY_RATE)
    annual_taxes = (federal + state + local + medicare) * periods + annual_ss
    annual_net = annual_gross - (pre_tax_total + post_tax_total) * periods - annual_taxes

    return {
        "gross_pay": round(gross_pay, 2),
        "pay_frequency": frequency,
        "filing_status": status,
        "zip_code": clean_zip,
        "allowances": allowances,
        "pre_tax_deductions": round(pre_tax_total, 2),
        "taxable_income": round(taxable, 2),
        "taxes": {
            "federal": round(federal, 2),
            "state": round(state, 2),
            "local": round(local, 2),
            "social_security": round(social_security, 2),
            "medicare": round(medicare, 2),
            "federal_marginal_rate": marginal_rate(annual_taxable, status),
            "state_rate": round(state_tax_rate * 100.0, 2),
            "local_rate": round(local_tax_rate * 100.0, 2),
        },
        "total_taxes": round(total_taxes, 2),
        "post_tax_deductions": round(post_tax_total, 2),
        "net_pay": round(net_pay, 2),
        "effective_tax_rate": round(total_taxes / gross_pay * 100.0, 2),
        "breakdown": [
            {"label": "Gross", "amount": round(gross_pay, 2)},
            {"label": "Pre-tax deductions", "amount": round(-pre_tax_total, 2)},
            {"label": "Federal", "amount": round(-federal, 2)},
            {"label": "State", "amount": round(-state, 2)},
            {"label": "Local", "amount": round(-local, 2)},
            {"label": "Social Security", "amount": round(-social_security, 2)},
            {"label": "Medicare", "amount": round(-medicare, 2)},
            {"label": "Post-tax deductions", "amount": round(-post_tax_total, 2)},
            {"label": "Net", "amount": round(net_pay, 2)},
        ],
        "annual": {
            "pay_periods": periods,
            "gross": round(annual_gross, 2),
            "social_security": round(annual_ss, 2),
            "total_taxes": round(annual_taxes, 2),
            "net": round(annual_net, 2),
        },
    }
