"""
API Data Models and Contracts.
Defines Pydantic models for request/response validation.
"""
from typing import Optional, List, Dict, Any
from datetime import datetime, date
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from services import options_math
from services.validation import normalize_symbol, ensure_safe_text


# ============================================================================
# Enums
# ============================================================================

class OptionType(str, Enum):
    """Option type enumeration."""
    CALL = "call"
    PUT = "put"


class TradeAction(str, Enum):
    """Trade/signal side enumeration."""
    BUY = "buy"
    SELL = "sell"


class AlertType(str, Enum):
    PRICE = "price"
    PERCENT_CHANGE = "percent_change"


class AlertCondition(str, Enum):
    ABOVE = "above"
    BELOW = "below"
    UP = "up"
    DOWN = "down"


class DebtKind(str, Enum):
    CREDIT_CARD = "credit_card"
    STUDENT_LOAN = "student_loan"
    CAR_LOAN = "car_loan"
    MORTGAGE = "mortgage"
    PERSONAL_LOAN = "personal_loan"


class DeductionKind(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class RiskProfile(str, Enum):
    CONSERVATIVE = "conservative"
    MODERATE = "moderate"
    AGGRESSIVE = "aggressive"


class Sector(str, Enum):
    UTILITY = "utility"
    INFRASTRUCTURE = "infrastructure"
    GROWTH = "growth"
    GENERAL = "general"


class _SymbolModel(BaseModel):
    @field_validator("symbol", check_fields=False)
    @classmethod
    def validate_symbol(cls, value: str) -> str:
        return normalize_symbol(value)


# ============================================================================
# Options Calculators
# ============================================================================

class ExpectedMoveRequest(BaseModel):
    """Expected move request."""
    price: float = Field(..., description="Underlying price", gt=0)
    iv_percent: float = Field(..., description="Implied volatility in percent", gt=0, le=500)
    days: float = Field(..., description="Days to expiration", gt=0, le=1825)


class ProbabilityRequest(BaseModel):
    """Probability of profit request."""
    price: float = Field(..., gt=0)
    strike: float = Field(..., gt=0)
    iv_percent: float = Field(..., gt=0, le=500)
    days: float = Field(..., gt=0, le=1825)
    option_type: OptionType = Field(default=OptionType.CALL)
    theta_per_day: float = Field(default=0.0, description="Theta per day in dollars")


class OptionQuoteRequest(BaseModel):
    """Black-Scholes quote request; validated by the pricing service."""
    symbol: str = Field(..., description="Underlying symbol")
    price: float = Field(..., description="Underlying price")
    strike: float = Field(..., description="Strike price")
    days: float = Field(..., description="Days to expiration")
    volatility: Optional[float] = Field(None, description="Annualized volatility as a decimal (0.25 = 25%)")
    option_type: OptionType = Field(default=OptionType.CALL)


class ItmComparisonRequest(BaseModel):
    """ITM option vs stock comparison request."""
    stock_price: float = Field(..., gt=0)
    strike: float = Field(..., gt=0)
    premium: float = Field(..., gt=0)
    days: int = Field(..., gt=0, le=1825)
    volatility_percent: float = Field(..., gt=0, le=500)
    target_price: float = Field(..., gt=0)
    contracts: int = Field(default=1, ge=1, le=1000)
    option_type: OptionType = Field(default=OptionType.CALL)
    risk_free_rate_percent: float = Field(default=5.0, ge=0, le=20)


class PmccRequest(BaseModel):
    """
    Poor Man's Covered Call request.

    Either strike may be omitted in favor of a target delta; the strike is then
    approximated from the stock price and snapped to $5.
    """
    stock_price: float = Field(..., gt=0)
    leaps_strike: Optional[float] = Field(None, gt=0)
    leaps_delta: Optional[float] = Field(None, ge=0.5, le=0.95)
    leaps_premium: float = Field(..., gt=0)
    leaps_dte: int = Field(..., gt=0, le=1825)
    short_strike: Optional[float] = Field(None, gt=0)
    short_delta: Optional[float] = Field(None, ge=0.05, le=0.5)
    short_premium: float = Field(..., ge=0)
    short_dte: int = Field(..., gt=0, le=365)

    @model_validator(mode="after")
    def strikes_from_delta(self):
        if self.leaps_strike is None:
            if self.leaps_delta is None:
                raise ValueError("leaps_strike or leaps_delta is required")
            self.leaps_strike = options_math.leaps_strike_for_delta(self.stock_price, self.leaps_delta)
        if self.short_strike is None:
            if self.short_delta is None:
                raise ValueError("short_strike or short_delta is required")
            self.short_strike = options_math.short_strike_for_delta(self.stock_price, self.short_delta)
        return self


class CoveredCallRequest(BaseModel):
    """Covered call request. `target_delta` stands in for a missing strike."""
    stock_price: float = Field(..., gt=0)
    strike: Optional[float] = Field(None, gt=0)
    target_delta: Optional[float] = Field(None, ge=0.05, le=0.5)
    premium: float = Field(..., ge=0)
    days: int = Field(..., gt=0, le=1825)
    shares: int = Field(default=100, ge=100)

    @model_validator(mode="after")
    def strike_from_delta(self):
        if self.strike is None:
            if self.target_delta is None:
                raise ValueError("strike or target_delta is required")
            self.strike = options_math.covered_call_strike_for_delta(self.stock_price, self.target_delta)
        return self


# ============================================================================
# Retirement Calculators
# ============================================================================

class TaxRequest(BaseModel):
    income: float = Field(..., ge=0)
    filing_status: str = Field(default="single")


class RothConversionRequest(BaseModel):
    """Roth conversion plan request. Rates are percents."""
    current_income: float = Field(..., ge=0)
    conversion_amount: float = Field(..., gt=0)
    traditional_balance: float = Field(..., ge=0)
    current_age: int = Field(..., ge=18, le=100)
    retirement_age: int = Field(..., ge=18, le=100)
    expected_return: float = Field(default=7.0, ge=-50, le=50)
    future_tax_rate: float = Field(default=22.0, ge=0, le=60)
    filing_status: str = Field(default="single")


class RmdRequest(BaseModel):
    balance: float = Field(..., ge=0)
    current_age: int = Field(..., ge=18, le=120)
    expected_return: float = Field(default=5.0, ge=-50, le=50)
    tax_rate: float = Field(default=22.0, ge=0, le=60)
    years: int = Field(default=20, ge=1, le=50)


class SafeWithdrawalRequest(BaseModel):
    current_age: int = Field(..., ge=18, le=100)
    retirement_age: int = Field(..., ge=18, le=100)
    current_savings: float = Field(..., ge=0)
    annual_spending: float = Field(..., gt=0)
    monthly_saving: float = Field(default=0.0, ge=0)
    growth_rate: float = Field(default=7.0, ge=-50, le=50)
    inflation_rate: float = Field(default=3.0, ge=0, le=20)


class FireRequest(BaseModel):
    current_age: int = Field(..., ge=18, le=100)
    current_savings: float = Field(..., ge=0)
    annual_expenses: float = Field(..., gt=0)
    monthly_contribution: float = Field(default=0.0, ge=0)
    expected_return: float = Field(default=7.0, ge=-50, le=50)


# ============================================================================
# Paycheck, Debt, Loans
# ============================================================================

class PaycheckDeduction(BaseModel):
    """A payroll deduction: a percentage of gross pay or a fixed amount per period."""
    name: str = Field(default="Deduction", max_length=100)
    type: DeductionKind
    value: float = Field(..., ge=0, le=1_000_000)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return ensure_safe_text(value, "name", 100) or "Deduction"


class PaycheckRequest(BaseModel):
    """
    Paycheck request.

    Unknown pay frequencies and filing statuses fall back to biweekly/single in
    the calculator, so those two stay free-form strings.
    """
    gross_pay: float = Field(..., description="Gross pay per period")
    zip_code: str = Field(..., description="Five-digit ZIP code")
    pay_frequency: str = Field(default="biweekly")
    filing_status: str = Field(default="single")
    allowances: int = Field(default=0, ge=0, le=20, description="Legacy W-4 allowances")
    pre_tax_deductions: List[PaycheckDeduction] = Field(default_factory=list, max_length=20)
    post_tax_deductions: List[PaycheckDeduction] = Field(default_factory=list, max_length=20)


class DebtInput(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    balance: float = Field(..., gt=0)
    interest_rate: float = Field(default=0.0, ge=0, le=100)
    min_payment: float = Field(default=0.0, ge=0)
    type: DebtKind = Field(default=DebtKind.CREDIT_CARD)


class DebtPayoffRequest(BaseModel):
    debts: List[DebtInput] = Field(..., min_length=1, max_length=50)
    extra_payment: float = Field(default=0.0, ge=0)

    @field_validator("debts")
    @classmethod
    def validate_unique_names(cls, value: List[DebtInput]) -> List[DebtInput]:
        seen = set()
        for debt in value:
            if debt.name in seen:
                raise ValueError(f"Duplicate debt name: {debt.name}")
            seen.add(debt.name)
        return value


class CarLoanRequest(BaseModel):
    """Car financing request with optional depreciation and lease comparison inputs."""
    price: float = Field(..., gt=0)
    down_payment: float = Field(default=0.0, ge=0)
    trade_in: float = Field(default=0.0, ge=0)
    annual_rate: float = Field(default=6.5, ge=0, le=40)
    term_months: int = Field(default=60, ge=1, le=120)
    sales_tax_percent: float = Field(default=0.0, ge=0, le=20)
    car_type: str = Field(default="sedan")
    car_age: int = Field(default=0, ge=0, le=10)
    lease_monthly: Optional[float] = Field(None, gt=0)
    lease_term: Optional[int] = Field(None, ge=1, le=120)
    lease_down: float = Field(default=0.0, ge=0)
    residual_value: Optional[float] = Field(None, ge=0)


# ============================================================================
# Simulations, Dividends, Fundamentals
# ============================================================================

class PortfolioSimulationInput(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    initial: float = Field(..., gt=0, le=1e9)
    months: int = Field(..., ge=1, le=600)
    profile: RiskProfile = Field(default=RiskProfile.MODERATE)


class MonteCarloRequest(BaseModel):
    """
    Monte Carlo request. Either list portfolios explicitly or give initial and
    months to run every risk profile side by side.
    """
    portfolios: List[PortfolioSimulationInput] = Field(default_factory=list, max_length=6)
    initial: Optional[float] = Field(None, gt=0, le=1e9)
    months: Optional[int] = Field(None, ge=1, le=600)
    simulations: int = Field(default=1000, ge=1, le=10000)
    seed: Optional[int] = Field(None)


class DividendHoldingInput(BaseModel):
    symbol: str = Field(..., min_length=1, max_length=10)
    cost_basis: float = Field(..., ge=0, description="Total dollars invested")
    shares: float = Field(..., ge=0)
    annual_dividend: float = Field(..., ge=0, description="Annual dividend per share")
    dividend_growth_rate: Optional[float] = Field(None, ge=-50, le=100)


class YieldOnCostRequest(BaseModel):
    holdings: List[DividendHoldingInput] = Field(..., min_length=1, max_length=100)
    growth_rate: float = Field(default=5.0, ge=-50, le=100)
    years: int = Field(default=10, ge=0, le=50)


class ReverseDividendRequest(BaseModel):
    target_income: float = Field(..., gt=0)
    frequency: str = Field(default="monthly")
    custom_yield: Optional[float] = Field(default=5.0)


class RatioRatingRequest(BaseModel):
    ratios: Dict[str, Optional[float]] = Field(default_factory=dict)
    sector: Sector = Field(default=Sector.GENERAL)


# ============================================================================
# Alerts
# ============================================================================

class AlertCreateRequest(_SymbolModel):
    """Alert creation request."""
    symbol: str = Field(..., description="Stock symbol")
    alert_type: AlertType = Field(..., description="price or percent_change")
    condition: AlertCondition = Field(..., description="above/below for price, up/down for percent_change")
    target_value: float = Field(..., gt=0, le=1_000_000)
    note: Optional[str] = Field(None, max_length=500)

    @field_validator("note")
    @classmethod
    def validate_note(cls, value: Optional[str]) -> Optional[str]:
        return ensure_safe_text(value, "note", 500)


class AlertUpdateRequest(BaseModel):
    alert_type: Optional[AlertType] = None
    condition: Optional[AlertCondition] = None
    target_value: Optional[float] = Field(None, gt=0, le=1_000_000)
    note: Optional[str] = Field(None, max_length=500)
    is_active: Optional[bool] = None

    @field_validator("note")
    @classmethod
    def validate_note(cls, value: Optional[str]) -> Optional[str]:
        return ensure_safe_text(value, "note", 500)


class AlertResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    symbol: str
    alert_type: AlertType
    condition: AlertCondition
    target_value: float
    note: Optional[str] = None
    is_active: bool
    triggered_at: Optional[datetime] = None
    triggered_price: Optional[float] = None
    created_at: datetime
    updated_at: datetime


class AlertsResponse(BaseModel):
    alerts: List[AlertResponse] = Field(default_factory=list)
    total_count: int = 0


# ============================================================================
# Journal and Trades
# ============================================================================

class _JournalFields(BaseModel):
    @field_validator("strategy", check_fields=False)
    @classmethod
    def validate_strategy(cls, value: Optional[str]) -> Optional[str]:
        return ensure_safe_text(value, "strategy", 100)

    @field_validator("notes", "lessons_learned", check_fields=False)
    @classmethod
    def validate_long_text(cls, value: Optional[str], info) -> Optional[str]:
        return ensure_safe_text(value, info.field_name, 1000)

    @field_validator("emotions", check_fields=False)
    @classmethod
    def validate_emotions(cls, value: Optional[str]) -> Optional[str]:
        return ensure_safe_text(value, "emotions", 500)

    @field_validator("tags", check_fields=False)
    @classmethod
    def validate_tags(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None:
            return None
        tags = [ensure_safe_text(tag, "tags", 200) for tag in value]
        tags = [tag for tag in tags if tag]
        if len(",".join(tags)) > 200:
            raise ValueError("tags must be at most 200 characters in total")
        return tags


class JournalEntryCreateRequest(_JournalFields, _SymbolModel):
    """Journal entry creation request."""
    symbol: str
    entry_date: datetime
    exit_date: Optional[datetime] = None
    strategy: Optional[str] = None
    notes: Optional[str] = None
    emotions: Optional[str] = None
    lessons_learned: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    profit_loss: Optional[float] = Field(None, ge=-1_000_000, le=1_000_000)


class JournalEntryUpdateRequest(_JournalFields):
    exit_date: Optional[datetime] = None
    strategy: Optional[str] = None
    notes: Optional[str] = None
    emotions: Optional[str] = None
    lessons_learned: Optional[str] = None
    tags: Optional[List[str]] = None
    profit_loss: Optional[float] = Field(None, ge=-1_000_000, le=1_000_000)


class JournalEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    symbol: str
    entry_date: datetime
    exit_date: Optional[datetime] = None
    strategy: Optional[str] = None
    notes: Optional[str] = None
    emotions: Optional[str] = None
    lessons_learned: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    profit_loss: Optional[float] = None
    created_at: datetime
    updated_at: datetime


class StockTradeCreateRequest(_SymbolModel):
    symbol: str
    entry_price: float = Field(..., gt=0, le=1_000_000)
    quantity: float = Field(..., gt=0)
    entry_date: datetime
    exit_price: Optional[float] = Field(None, gt=0, le=1_000_000)
    exit_date: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, value: Optional[str]) -> Optional[str]:
        return ensure_safe_text(value, "notes", 1000)


class StockTradeUpdateRequest(BaseModel):
    entry_price: Optional[float] = Field(None, gt=0, le=1_000_000)
    quantity: Optional[float] = Field(None, gt=0)
    exit_price: Optional[float] = Field(None, gt=0, le=1_000_000)
    exit_date: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, value: Optional[str]) -> Optional[str]:
        return ensure_safe_text(value, "notes", 1000)


class StockTradeResponse(BaseModel):
    id: int
    symbol: str
    entry_price: float
    exit_price: Optional[float] = None
    quantity: float
    entry_date: datetime
    exit_date: Optional[datetime] = None
    notes: Optional[str] = None
    is_open: bool
    pnl: Optional[float] = None
    return_percent: Optional[float] = None


class OptionTradeCreateRequest(_SymbolModel):
    symbol: str
    option_type: OptionType
    action: TradeAction
    strike: float = Field(..., gt=0, le=1_000_000)
    expiration: date
    premium: float = Field(..., ge=0, le=1_000_000)
    contracts: int = Field(default=1, ge=1, le=10000)
    trade_date: datetime
    strategy: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("strategy")
    @classmethod
    def validate_strategy(cls, value: Optional[str]) -> Optional[str]:
        return ensure_safe_text(value, "strategy", 100)

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, value: Optional[str]) -> Optional[str]:
        return ensure_safe_text(value, "notes", 1000)


class OptionTradeUpdateRequest(BaseModel):
    option_type: Optional[OptionType] = None
    action: Optional[TradeAction] = None
    strike: Optional[float] = Field(None, gt=0, le=1_000_000)
    expiration: Optional[date] = None
    premium: Optional[float] = Field(None, ge=0, le=1_000_000)
    contracts: Optional[int] = Field(None, ge=1, le=10000)
    strategy: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("strategy")
    @classmethod
    def validate_strategy(cls, value: Optional[str]) -> Optional[str]:
        return ensure_safe_text(value, "strategy", 100)

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, value: Optional[str]) -> Optional[str]:
        return ensure_safe_text(value, "notes", 1000)


class OptionTradeResponse(BaseModel):
    id: int
    symbol: str
    option_type: OptionType
    action: TradeAction
    strike: float
    expiration: date
    premium: float
    contracts: int
    trade_date: datetime
    strategy: Optional[str] = None
    notes: Optional[str] = None
    total_value: float


# ============================================================================
# Watchlist
# ============================================================================

class WatchlistAddRequest(_SymbolModel):
    symbol: str
    note: Optional[str] = Field(None, max_length=500)

    @field_validator("note")
    @classmethod
    def validate_note(cls, value: Optional[str]) -> Optional[str]:
        return ensure_safe_text(value, "note", 500)


class WatchlistItemResponse(BaseModel):
    symbol: str
    note: Optional[str] = None
    added_at: datetime
    quote: Optional[Dict[str, Any]] = None


class WatchlistResponse(BaseModel):
    items: List[WatchlistItemResponse] = Field(default_factory=list)
    quotes_available: bool = False


# ============================================================================
# Settings
# ============================================================================

class RiskSettingsUpdateRequest(BaseModel):
    max_position_size: Optional[float] = Field(None, gt=0)
    max_position_percent: Optional[float] = Field(None, gt=0, le=100)
    max_daily_loss: Optional[float] = Field(None, gt=0)
    max_weekly_loss: Optional[float] = Field(None, gt=0)
    max_open_positions: Optional[int] = Field(None, ge=1, le=1000)
    stop_loss_percent: Optional[float] = Field(None, gt=0, le=100)
    take_profit_percent: Optional[float] = Field(None, gt=0, le=1000)
    trailing_stop_enabled: Optional[bool] = None
    trailing_stop_percent: Optional[float] = Field(None, gt=0, le=100)


class RiskSettingsResponse(BaseModel):
    max_position_size: float
    max_position_percent: float
    max_daily_loss: float
    max_weekly_loss: float
    max_open_positions: int
    stop_loss_percent: float
    take_profit_percent: float
    trailing_stop_enabled: bool
    trailing_stop_percent: float
    current_daily_pnl: float
    current_weekly_pnl: float
    is_trading_halted: bool
    halt_reason: Optional[str] = None
    daily_loss_usage_percent: float
    weekly_loss_usage_percent: float


class PnlRecordRequest(BaseModel):
    amount: float = Field(..., description="Realized P&L to add (negative for a loss)", ge=-1e7, le=1e7)


class TradingHaltRequest(BaseModel):
    halted: bool
    reason: Optional[str] = Field(None, max_length=200)


class ReportSettingsUpdateRequest(BaseModel):
    daily_report: Optional[bool] = None
    weekly_report: Optional[bool] = None
    monthly_report: Optional[bool] = None
    email_address: Optional[str] = Field(None, max_length=254)
    webhook_url: Optional[str] = Field(None, max_length=2000)

    @field_validator("email_address")
    @classmethod
    def validate_email(cls, value: Optional[str]) -> Optional[str]:
        if value is None or value.strip() == "":
            return None
        email = value.strip()
        local, _, domain = email.partition("@")
        if not local or "." not in domain:
            raise ValueError("Invalid email address")
        return email

    @field_validator("webhook_url")
    @classmethod
    def validate_webhook(cls, value: Optional[str]) -> Optional[str]:
        if value is None or value.strip() == "":
            return None
        url = value.strip()
        if not url.startswith(("http://", "https://")):
            raise ValueError("webhook_url must be an http(s) URL")
        return url


class ReportSettingsResponse(BaseModel):
    daily_report: bool
    weekly_report: bool
    monthly_report: bool
    email_address: Optional[str] = None
    webhook_url: Optional[str] = None


# ============================================================================
# Signals and Audit
# ============================================================================

class TradingViewSignalRequest(BaseModel):
    """TradingView alert webhook payload."""
    symbol: str
    action: str
    price: Optional[float] = Field(None, gt=0)
    strategy: Optional[str] = Field(None, max_length=100)
    quantity: Optional[float] = Field(None, gt=0)
    timeframe: Optional[str] = Field(None, max_length=20)
    entry_condition: Optional[str] = Field(None, max_length=500)
    exit_condition: Optional[str] = Field(None, max_length=500)
    webhook_secret: Optional[str] = Field(None, max_length=200)

    @field_validator("symbol")
    @classmethod
    def validate_symbol(cls, value: str) -> str:
        return normalize_symbol(value)

    @field_validator("action")
    @classmethod
    def validate_action(cls, value: str) -> str:
        action = value.strip().lower()
        if action not in {a.value for a in TradeAction}:
            raise ValueError("action must be 'buy' or 'sell'")
        return action

    @field_validator("strategy")
    @classmethod
    def validate_strategy(cls, value: Optional[str]) -> Optional[str]:
        return ensure_safe_text(value, "strategy", 100)

    @field_validator("timeframe")
    @classmethod
    def validate_timeframe(cls, value: Optional[str]) -> Optional[str]:
        return ensure_safe_text(value, "timeframe", 20)

    @field_validator("entry_condition", "exit_condition")
    @classmethod
    def validate_conditions(cls, value: Optional[str], info) -> Optional[str]:
        return ensure_safe_text(value, info.field_name, 500)


class TradeSignalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    symbol: str
    action: TradeAction
    price: Optional[float] = None
    strategy: str
    quantity: float
    timeframe: str
    entry_condition: Optional[str] = None
    exit_condition: Optional[str] = None
    source: str
    received_at: datetime


class AuditLogResponse(BaseModel):
    id: int
    event_type: str
    description: str
    details: Optional[Dict[str, Any]] = None
    entity_type: Optional[str] = None
    entity_id: Optional[int] = None
    timestamp: datetime


class AuditLogsResponse(BaseModel):
    logs: List[AuditLogResponse] = Field(default_factory=list)
    total_count: int = 0
