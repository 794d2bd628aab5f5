"""
Debt Payoff and Loan Service.

Simulates avalanche and snowball payoff orders, builds loan amortization
schedules, and runs the car financing helpers (financed payment, depreciation
projection and lease vs buy comparison).
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional

from services.options_math import round_half_up

logger = logging.getLogger(__name__)

MAX_PAYOFF_MONTHS = 600


class DebtType(str, Enum):
    CREDIT_CARD = "credit_card"
    STUDENT_LOAN = "student_loan"
    CAR_LOAN = "car_loan"
    MORTGAGE = "mortgage"
    PERSONAL_LOAN = "personal_loan"


class PayoffStrategy(str, Enum):
    AVALANCHE = "avalanche"
    SNOWBALL = "snowball"


@dataclass
class Debt:
    """A single debt in the payoff simulation. Interest rate is APR in percent."""
    name: str
    balance: float
    interest_rate: float = 0.0
    min_payment: float = 0.0
    type: DebtType = DebtType.CREDIT_CARD

    def __post_init__(self):
        if not self.name or not str(self.name).strip():
            raise ValueError("Debt name is required")
        if self.balance <= 0:
            raise ValueError(f"Debt '{self.name}' must have a positive balance")
        if self.interest_rate < 0 or self.min_payment < 0:
            raise ValueError(f"Debt '{self.name}' has a negative rate or payment")
        self.type = DebtType(self.type)


@dataclass
class PayoffResult:
    strategy: PayoffStrategy
    months: int
    total_interest: float
    total_paid: float
    order: List[str] = field(default_factory=list)
    payoff_months: Dict[str, Optional[int]] = field(default_factory=dict)
    completed: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy.value,
            "months": self.months,
            "years": self.months // 12,
            "remaining_months": self.months % 12,
            "total_interest": round(self.total_interest, 2),
            "total_paid": round(self.total_paid, 2),
            "order": list(self.order),
            "payoff_months": dict(self.payoff_months),
            "completed": self.completed,
        }


def sort_debts(debts: List[Debt], strategy: PayoffStrategy) -> List[Debt]:
    """Order debts for a payoff strategy (stable for ties)."""
    if PayoffStrategy(strategy) == PayoffStrategy.AVALANCHE:
        return sorted(debts, key=lambda d: -d.interest_rate)
    return sorted(debts, key=lambda d: d.balance)


def simulate_payoff(debts: List[Debt], extra_payment: float = 0.0,
                    strategy: PayoffStrategy = PayoffStrategy.AVALANCHE) -> PayoffResult:
    """
    Month-by-month payoff simulation.

    Each month every open debt accrues interest and receives its minimum
    payment (capped at balance plus interest). Whatever is left of the monthly
    budget (minimums plus extra) goes to the first open debt in strategy order.

    Args:
        debts: Debts to pay off
        extra_payment: Monthly amount above the total of minimum payments
        strategy: avalanche or snowball

    Returns:
        PayoffResult; ``completed`` is False when the 600 month cap was hit
    """
    strategy = PayoffStrategy(strategy)
    if extra_payment < 0:
        raise ValueError("Extra payment cannot be negative")
    names = [d.name for d in debts]
    if len(set(names)) != len(names):
        raise ValueError("Debt names must be unique")
    ordered = sort_debts(debts, strategy)
    balances = [d.balance for d in ordered]
    payoff_months: Dict[str, Optional[int]] = {d.name: None for d in ordered}
    monthly_budget = sum(d.min_payment for d in ordered) + extra_payment
    total_interest = 0.0
    total_paid = 0.0
    months = 0

    while any(b > 0 for b in balances) and months < MAX_PAYOFF_MONTHS:
        months += 1
        available = monthly_budget
        for i, debt in enumerate(ordered):
            if balances[i] <= 0:
                continue
            interest = balances[i] * debt.interest_rate / 100.0 / 12.0
            payment = min(debt.min_payment, balances[i] + interest)
            balances[i] = balances[i] + interest - payment
            total_interest += interest
            total_paid += payment
            available -= payment

        for i in range(len(ordered)):
            if balances[i] > 0 and available > 0:
                payment = min(available, balances[i])
                balances[i] -= payment
                total_paid += payment
                available -= payment
                break

        for i, debt in enumerate(ordered):
            if balances[i] <= 1e-9 and payoff_months[debt.name] is None:
                balances[i] = 0.0
                payoff_months[debt.name] = months

    completed = all(b <= 0 for b in balances)
    if not completed:
        logger.info("Debt payoff did not complete within %d months (%s)", MAX_PAYOFF_MONTHS, strategy.value)

    return PayoffResult(
        strategy=strategy,
        months=months,
        total_interest=total_interest,
        total_paid=total_paid,
        order=[d.name for d in ordered],
        payoff_months=payoff_months,
        completed=completed,
    )


def debt_summary(debts: List[Debt]) -> Dict[str, float]:
    total_debt = sum(d.balance for d in debts)
    total_minimum = sum(d.min_payment for d in debts)
    weighted_rate = (
        sum(d.interest_rate * d.balance for d in debts) / total_debt if total_debt > 0 else 0.0
    )
    return {
        "total_debt": round(total_debt, 2),
        "total_minimum_payment": round(total_minimum, 2),
        "weighted_average_rate": round(weighted_rate, 2),
        "count": len(debts),
    }


def compare_strategies(debts: List[Debt], extra_payment: float = 0.0) -> Dict[str, Any]:
    """Run both payoff orders and report the interest difference."""
    if not debts:
        raise ValueError("At least one debt is required")
    avalanche = simulate_payoff(debts, extra_payment, PayoffStrategy.AVALANCHE)
    snowball = simulate_payoff(debts, extra_payment, PayoffStrategy.SNOWBALL)
    interest_saved = snowball.total_interest - avalanche.total_interest
    return {
        "summary": debt_summary(debts),
        "extra_payment": extra_payment,
        "avalanche": avalanche.to_dict(),
        "snowball": snowball.to_dict(),
        "interest_saved_with_avalanche": round(interest_saved, 2),
        "months_difference": snowball.months - avalanche.months,
        "recommended": (
            PayoffStrategy.AVALANCHE.value if interest_saved > 0 else PayoffStrategy.SNOWBALL.value
        ),
    }


def monthly_payment(principal: float, annual_rate: float, months: int) -> float:
    """Standard amortizing payment; zero rate divides principal evenly."""
    if months <= 0:
        raise ValueError("Loan term must be at least one month")
    if principal <= 0:
        return 0.0
    rate = annual_rate / 100.0 / 12.0
    if rate == 0:
        return principal / months
    growth = (1 + rate) ** months
    return principal * (rate * growth) / (growth - 1)


def amortization_schedule(principal: float, annual_rate: float, months: int) -> Dict[str, Any]:
    """
    Amortize a loan and report year-end rows.

    Rows are emitted every 12th month and on the final month with the balance
    and cumulative amount paid rounded to whole dollars.
    """
    if annual_rate < 0:
        raise ValueError("Interest rate cannot be negative")
    payment = monthly_payment(principal, annual_rate, months)
    rate = annual_rate / 100.0 / 12.0
    balance = principal
    schedule = []
    for month in range(1, months + 1):
        interest = balance * rate
        balance -= payment - interest
        if month % 12 == 0 or month == months:
            schedule.append({
                "month": month,
                "year": (month + 11) // 12,
                "balance": max(0, round_half_up(balance)),
                "total_paid": round_half_up(payment * month),
            })
    total_payment = payment * months
    return {
        "monthly_payment": round(payment, 2),
        "total_payment": round(total_payment, 2),
        "total_interest": round(total_payment - max(principal, 0.0), 2),
        "schedule": schedule,
    }


def car_financing(price: float, down_payment: float = 0.0, trade_in: float = 0.0,
                  annual_rate: float = 6.5, term_months: int = 60,
                  sales_tax_percent: float = 0.0) -> Dict[str, Any]:
    """
    Car loan payment with sales tax applied after the trade-in credit.

    amount financed = price + tax * (price - trade_in) - down - trade_in
    """
    if price <= 0:
        raise ValueError("Car price must be positive")
    if down_payment < 0 or trade_in < 0 or sales_tax_percent < 0:
        raise ValueError("Down payment, trade-in and sales tax cannot be negative")
    total_tax = (price - trade_in) * sales_tax_percent / 100.0
    financed = price + total_tax - down_payment - trade_in
    if financed <= 0:
        raise ValueError("Down payment and trade-in cover the full price")
    loan = amortization_schedule(financed, annual_rate, term_months)
    return {
        "amount_financed": round(financed, 2),
        "total_tax": round(total_tax, 2),
        **loan,
    }


DEPRECIATION_RATES: Dict[str, List[float]] = {
    "sedan": [0.20, 0.15, 0.13, 0.12, 0.10, 0.08, 0.07, 0.06, 0.05, 0.05],
    "suv": [0.18, 0.14, 0.12, 0.11, 0.10, 0.08, 0.07, 0.06, 0.05, 0.05],
    "truck": [0.15, 0.12, 0.10, 0.09, 0.08, 0.07, 0.06, 0.05, 0.04, 0.04],
    "luxury": [0.25, 0.18, 0.15, 0.13, 0.11, 0.09, 0.08, 0.07, 0.06, 0.05],
    "electric": [0.22, 0.16, 0.14, 0.12, 0.10, 0.08, 0.07, 0.06, 0.05, 0.05],
}


def depreciation_projection(value: float, car_type: str = "sedan", age: int = 0) -> List[Dict[str, Any]]:
    """Ten-year value projection starting at the car's current age."""
    if value <= 0:
        raise ValueError("Purchase value must be positive")
    rates = DEPRECIATION_RATES.get(car_type, DEPRECIATION_RATES["sedan"])
    rows = []
    current = value
    for year in range(0, 11):
        if year >= age:
            rows.append({
                "year": year,
                "value": round_half_up(current),
                "depreciation": round_half_up(value - current) if year > 0 else 0,
                "percent_remaining": round_half_up(current / value * 100),
            })
        if year < 10:
            current *= 1 - rates[year]
    return rows


def lease_vs_buy(lease_monthly: float, lease_term: int, lease_down: float,
                 buy_price: float, buy_down: float, buy_rate: float, buy_term: int,
                 residual_value: float) -> Dict[str, Any]:
    """Cumulative lease and purchase cost per year, net of the car's residual value."""
    lease_total = lease_monthly * lease_term + lease_down
    payment = monthly_payment(buy_price - buy_down, buy_rate, buy_term)
    net_buy_cost = payment * buy_term + buy_down - residual_value

    comparison = []
    lease_accumulated = lease_down
    buy_accumulated = buy_down
    for month in range(1, max(lease_term, buy_term) + 1):
        if month <= lease_term:
            lease_accumulated += lease_monthly
        if month <= buy_term:
            buy_accumulated += payment
        if month % 12 == 0:
            comparison.append({
                "year": month // 12,
                "lease_cost": round_half_up(lease_accumulated),
                "buy_cost": round_half_up(buy_accumulated),
                "buy_equity": residual_value if month >= buy_term else 0,
            })

    return {
        "lease_total": round(lease_total, 2),
        "net_buy_cost": round(net_buy_cost, 2),
        "monthly_buy_payment": round(payment, 2),
        "comparison": comparison,
        "recommendation": "lease" if lease_total < net_buy_cost else "buy",
    }
