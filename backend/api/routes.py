"""
API Routes.
Defines all REST API endpoints for StockManager.
"""
from datetime import datetime
import logging
import secrets
from fastapi import APIRouter, HTTPException, Depends, Query, Header, Request
from typing import List, Optional, Dict, Any
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from storage.database import get_db
from storage.service import StorageService
from config.settings import get_settings, has_market_data_credentials
from services import options_math, retirement, dividends, fundamentals, monte_carlo
from services.account_settings import (
    get_risk_settings,
    update_risk_settings,
    record_pnl,
    set_trading_halt,
    get_report_settings,
    update_report_settings,
)
from services.alert_monitor import AlertMonitor
from services.debt_payoff import (
    Debt,
    compare_strategies,
    car_financing,
    depreciation_projection,
    lease_vs_buy,
)
from services.market_data import (
    MarketDataError,
    MarketDataNotConfiguredError,
    SymbolNotFoundError,
    get_market_data_client,
)
from services.paycheck import calculate_paycheck
from services.trade_analytics import (
    journal_summary,
    stock_trade_pnl,
    stock_trade_return_percent,
    stock_trade_summary,
    option_trade_total_value,
)
from services.validation import normalize_symbol
from api.middleware import limiter

from .models import (
    ExpectedMoveRequest,
    ProbabilityRequest,
    OptionQuoteRequest,
    ItmComparisonRequest,
    PmccRequest,
    CoveredCallRequest,
    TaxRequest,
    RothConversionRequest,
    RmdRequest,
    SafeWithdrawalRequest,
    FireRequest,
    PaycheckRequest,
    DebtPayoffRequest,
    CarLoanRequest,
    MonteCarloRequest,
    YieldOnCostRequest,
    ReverseDividendRequest,
    RatioRatingRequest,
    # Alert models
    AlertCreateRequest,
    AlertUpdateRequest,
    AlertResponse,
    AlertsResponse,
    # Journal and trade models
    JournalEntryCreateRequest,
    JournalEntryUpdateRequest,
    JournalEntryResponse,
    StockTradeCreateRequest,
    StockTradeUpdateRequest,
    StockTradeResponse,
    OptionTradeCreateRequest,
    OptionTradeUpdateRequest,
    OptionTradeResponse,
    # Watchlist models
    WatchlistAddRequest,
    WatchlistItemResponse,
    WatchlistResponse,
    # Settings models
    RiskSettingsUpdateRequest,
    RiskSettingsResponse,
    PnlRecordRequest,
    TradingHaltRequest,
    ReportSettingsUpdateRequest,
    ReportSettingsResponse,
    # Signal and audit models
    TradingViewSignalRequest,
    TradeSignalResponse,
    AuditLogResponse,
    AuditLogsResponse,
)

router = APIRouter()
logger = logging.getLogger(__name__)

MAX_QUOTE_SYMBOLS = 50


# ============================================================================
# Helpers
# ============================================================================

def _bad_request(exc: Exception) -> HTTPException:
    return HTTPException(status_code=400, detail=str(exc))


def _market_http_error(exc: MarketDataError) -> HTTPException:
    """Map market data failures onto HTTP status codes."""
    if isinstance(exc, MarketDataNotConfiguredError):
        return HTTPException(status_code=503, detail=str(exc))
    if isinstance(exc, SymbolNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    return HTTPException(status_code=502, detail=f"Market data provider error: {exc}")


def _parse_symbols(raw: str, max_symbols: int = MAX_QUOTE_SYMBOLS) -> List[str]:
    symbols: List[str] = []
    for part in raw.split(","):
        if not part.strip():
            continue
        try:
            symbol = normalize_symbol(part)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid symbol format: {part.strip()}")
        if symbol not in symbols:
            symbols.append(symbol)
    if not symbols:
        raise HTTPException(status_code=400, detail="At least one symbol is required")
    if len(symbols) > max_symbols:
        raise HTTPException(status_code=400, detail=f"Symbol list cannot exceed {max_symbols} symbols")
    return symbols


def _stock_trade_response(trade) -> StockTradeResponse:
    pnl = stock_trade_pnl(trade)
    return_percent = stock_trade_return_percent(trade)
    return StockTradeResponse(
        id=trade.id,
        symbol=trade.symbol,
        entry_price=trade.entry_price,
        exit_price=trade.exit_price,
        quantity=trade.quantity,
        entry_date=trade.entry_date,
        exit_date=trade.exit_date,
        notes=trade.notes,
        is_open=trade.exit_price is None,
        pnl=round(pnl, 2) if pnl is not None else None,
        return_percent=round(return_percent, 2) if return_percent is not None else None,
    )


def _option_trade_response(trade) -> OptionTradeResponse:
    return OptionTradeResponse(
        id=trade.id,
        symbol=trade.symbol,
        option_type=trade.option_type.value,
        action=trade.action.value,
        strike=trade.strike,
        expiration=trade.expiration,
        premium=trade.premium,
        contracts=trade.contracts,
        trade_date=trade.trade_date,
        strategy=trade.strategy,
        notes=trade.notes,
        total_value=round(option_trade_total_value(trade), 2),
    )


def _audit_log_response(row) -> AuditLogResponse:
    return AuditLogResponse(
        id=row.id,
        event_type=row.event_type.value,
        description=row.description,
        details=row.details,
        entity_type=row.entity_type,
        entity_id=row.entity_id,
        timestamp=row.timestamp,
    )


# ============================================================================
# Options Endpoints
# ============================================================================

@router.post("/options/expected-move")
async def options_expected_move(request: ExpectedMoveRequest):
    """One standard deviation expected move over the given number of days."""
    try:
        return options_math.expected_move(request.price, request.iv_percent, request.days)
    except ValueError as e:
        raise _bad_request(e)


@router.post("/options/probability")
async def options_probability(request: ProbabilityRequest):
    try:
        return options_math.probability_of_profit(
            price=request.price,
            strike=request.strike,
            iv_percent=request.iv_percent,
            days=request.days,
            option_type=request.option_type.value,
            theta_per_day=request.theta_per_day,
        )
    except ValueError as e:
        raise _bad_request(e)


@router.post("/options/quote")
async def options_quote(request: OptionQuoteRequest):
    """
    Theoretical Black-Scholes quote with Greeks, expected move and suggested strikes.
    """
    try:
        return options_math.option_quote(
            symbol=request.symbol,
            price=request.price,
            strike=request.strike,
            days=request.days,
            volatility=request.volatility,
            option_type=request.option_type.value,
        )
    except ValueError as e:
        raise _bad_request(e)


@router.post("/options/itm-comparison")
async def options_itm_comparison(request: ItmComparisonRequest):
    try:
        return options_math.compare_itm_option_vs_stock(
            stock_price=request.stock_price,
            strike=request.strike,
            premium=request.premium,
            days=request.days,
            volatility_percent=request.volatility_percent,
            target_price=request.target_price,
            contracts=request.contracts,
            option_type=request.option_type.value,
            risk_free_rate_percent=request.risk_free_rate_percent,
        )
    except ValueError as e:
        raise _bad_request(e)


@router.post("/options/pmcc")
async def options_pmcc(request: PmccRequest):
    try:
        return options_math.pmcc_analysis(**request.model_dump(exclude={"leaps_delta", "short_delta"}))
    except ValueError as e:
        raise _bad_request(e)


@router.post("/options/covered-call")
async def options_covered_call(request: CoveredCallRequest):
    try:
        return options_math.covered_call_analysis(**request.model_dump(exclude={"target_delta"}))
    except ValueError as e:
        raise _bad_request(e)


# ============================================================================
# Retirement Endpoints
# ============================================================================

@router.post("/retirement/tax")
async def retirement_tax(request: TaxRequest):
    try:
        return retirement.tax_summary(request.income, request.filing_status)
    except ValueError as e:
        raise _bad_request(e)


@router.post("/retirement/roth-conversion")
async def retirement_roth_conversion(request: RothConversionRequest):
    """Year-by-year Roth conversion plan with tax cost and breakeven."""
    try:
        return retirement.roth_conversion_plan(**request.model_dump())
    except ValueError as e:
        raise _bad_request(e)


@router.post("/retirement/rmd")
async def retirement_rmd(request: RmdRequest):
    try:
        return retirement.rmd_schedule(**request.model_dump())
    except ValueError as e:
        raise _bad_request(e)


@router.post("/retirement/swr")
async def retirement_safe_withdrawal(request: SafeWithdrawalRequest):
    try:
        return retirement.safe_withdrawal_plan(**request.model_dump())
    except ValueError as e:
        raise _bad_request(e)


@router.post("/retirement/fire")
async def retirement_fire(request: FireRequest):
    try:
        return retirement.fire_targets(**request.model_dump())
    except ValueError as e:
        raise _bad_request(e)


# ============================================================================
# Paycheck, Debt and Loan Endpoints
# ============================================================================

@router.post("/paycheck/calculate")
async def paycheck_calculate(request: PaycheckRequest):
    """
    Net pay for one period.

    Unknown pay frequencies and filing statuses fall back to biweekly/single.
    """
    try:
        return calculate_paycheck(
            gross_pay=request.gross_pay,
            zip_code=request.zip_code,
            pay_frequency=request.pay_frequency,
            filing_status=request.filing_status,
            allowances=request.allowances,
            pre_tax_deductions=[d.model_dump(mode="json") for d in request.pre_tax_deductions],
            post_tax_deductions=[d.model_dump(mode="json") for d in request.post_tax_deductions],
        )
    except ValueError as e:
        raise _bad_request(e)


@router.post("/debt/payoff")
async def debt_payoff(request: DebtPayoffRequest):
    """Compare avalanche and snowball payoff plans."""
    try:
        debts = [Debt(**debt.model_dump(mode="json")) for debt in request.debts]
        return compare_strategies(debts, extra_payment=request.extra_payment)
    except ValueError as e:
        raise _bad_request(e)


@router.post("/loans/car")
async def loans_car(request: CarLoanRequest):
    """
    Car financing with amortization, a depreciation projection and,
    when lease terms are supplied, a lease vs buy comparison.
    """
    try:
        result = car_financing(
            price=request.price,
            down_payment=request.down_payment,
            trade_in=request.trade_in,
            annual_rate=request.annual_rate,
            term_months=request.term_months,
            sales_tax_percent=request.sales_tax_percent,
        )
        depreciation = depreciation_projection(request.price, request.car_type, request.car_age)
        result["depreciation"] = depreciation

        if request.lease_monthly is not None and request.lease_term is not None:
            residual = request.residual_value
            if residual is None:
                end_year = min(10, request.car_age + -(-request.term_months // 12))
                residual = next(
                    (row["value"] for row in depreciation if row["year"] == end_year),
                    depreciation[-1]["value"],
                )
            result["lease_vs_buy"] = lease_vs_buy(
                lease_monthly=request.lease_monthly,
                lease_term=request.lease_term,
                lease_down=request.lease_down,
                buy_price=result["amount_financed"] + request.down_payment,
                buy_down=request.down_payment,
                buy_rate=request.annual_rate,
                buy_term=request.term_months,
                residual_value=residual,
            )
        return result
    except ValueError as e:
        raise _bad_request(e)


# ============================================================================
# Simulation, Dividend and Fundamentals Endpoints
# ============================================================================

@router.post("/simulations/monte-carlo")
async def simulations_monte_carlo(request: MonteCarloRequest):
    """
    Run Monte Carlo projections.

    Explicit portfolios are simulated as given; otherwise every risk profile
    is run with the same initial capital and horizon.
    """
    try:
        if request.portfolios:
            results = monte_carlo.compare_portfolios(
                [p.model_dump(mode="json") for p in request.portfolios],
                simulations=request.simulations,
                seed=request.seed,
            )
        elif request.initial is not None and request.months is not None:
            results = monte_carlo.compare_profiles(
                request.initial, request.months,
                simulations=request.simulations,
                seed=request.seed,
            )
        else:
            raise ValueError("Provide portfolios or both initial and months")
    except ValueError as e:
        raise _bad_request(e)
    return {"simulations": request.simulations, "results": results}


@router.post("/dividends/yield-on-cost")
async def dividends_yield_on_cost(request: YieldOnCostRequest):
    try:
        return dividends.yield_on_cost(
            [h.model_dump() for h in request.holdings],
            growth_rate=request.growth_rate,
            years=request.years,
        )
    except ValueError as e:
        raise _bad_request(e)


@router.post("/dividends/reverse")
async def dividends_reverse(request: ReverseDividendRequest):
    try:
        return dividends.reverse_dividend(
            request.target_income,
            frequency=request.frequency,
            custom_yield=request.custom_yield,
        )
    except ValueError as e:
        raise _bad_request(e)


@router.post("/fundamentals/ratios")
async def fundamentals_ratios(request: RatioRatingRequest):
    """Rate financial ratios as good/warning/danger for the chosen sector."""
    try:
        return fundamentals.rate_ratios(request.ratios, request.sector.value)
    except ValueError as e:
        raise _bad_request(e)


# ============================================================================
# Market Data Endpoints
# ============================================================================

@router.get("/market/quotes")
@limiter.limit("60/minute")
def market_quotes(request: Request, symbols: str = Query(..., description="Comma-separated symbols")):
    """Quote and profile snapshots for up to 50 symbols."""
    symbol_list = _parse_symbols(symbols)
    try:
        snapshots = get_market_data_client().get_stock_snapshots(symbol_list)
    except MarketDataError as e:
        raise _market_http_error(e)
    except ValueError as e:
        raise _bad_request(e)
    return {"quotes": snapshots, "requested": len(symbol_list), "returned": len(snapshots)}


@router.get("/market/candles/{symbol}")
def market_candles(
    symbol: str,
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    resolution: str = Query("D"),
):
    try:
        symbol = normalize_symbol(symbol)
        candles = get_market_data_client().get_candles(symbol, start=start, end=end, resolution=resolution)
    except MarketDataError as e:
        raise _market_http_error(e)
    except ValueError as e:
        raise _bad_request(e)
    return {"symbol": symbol, "resolution": resolution, "candles": candles}


@router.get("/market/fundamentals/{symbol}")
def market_fundamentals(symbol: str):
    """Company profile, key metrics and peer symbols."""
    try:
        return get_market_data_client().get_fundamentals(normalize_symbol(symbol))
    except MarketDataError as e:
        raise _market_http_error(e)
    except ValueError as e:
        raise _bad_request(e)


# ============================================================================
# Alert Endpoints
# ============================================================================

@router.get("/alerts", response_model=AlertsResponse)
async def list_alerts(
    active_only: bool = Query(False),
    symbol: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    storage = StorageService(db)
    try:
        symbol = normalize_symbol(symbol) if symbol else None
    except ValueError as e:
        raise _bad_request(e)
    alerts = storage.list_alerts(active_only=active_only, symbol=symbol)
    return AlertsResponse(
        alerts=[AlertResponse.model_validate(a) for a in alerts],
        total_count=len(alerts),
    )


@router.get("/alerts/history", response_model=AlertsResponse)
async def get_alert_history(
    alert_type: Optional[str] = Query(None),
    symbol: Optional[str] = Query(None),
    sort: str = Query("newest", pattern="^(newest|oldest)$"),
    limit: int = Query(500, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    """Triggered alerts, newest first unless sort=oldest."""
    storage = StorageService(db)
    try:
        symbol = normalize_symbol(symbol) if symbol else None
        alerts = storage.get_alert_history(
            alert_type=alert_type,
            symbol=symbol,
            newest_first=sort == "newest",
            limit=limit,
        )
    except ValueError as e:
        raise _bad_request(e)
    return AlertsResponse(
        alerts=[AlertResponse.model_validate(a) for a in alerts],
        total_count=len(alerts),
    )


@router.post("/alerts/check")
@limiter.limit("10/minute")
def check_alerts(request: Request, db: Session = Depends(get_db)):
    """Run one alert monitor cycle immediately."""
    storage = StorageService(db)
    try:
        return AlertMonitor(storage).run_cycle()
    except MarketDataNotConfiguredError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except SQLAlchemyError as e:
        logger.exception("Alert check failed")
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")


@router.post("/alerts", response_model=AlertResponse)
async def create_alert(request: AlertCreateRequest, db: Session = Depends(get_db)):
    storage = StorageService(db)
    try:
        alert = storage.create_alert(
            symbol=request.symbol,
            alert_type=request.alert_type.value,
            condition=request.condition.value,
            target_value=request.target_value,
            note=request.note,
        )
    except ValueError as e:
        raise _bad_request(e)
    storage.create_audit_log(
        event_type="alert_created",
        description=f"Alert created for {alert.symbol}",
        details={
            "alert_type": request.alert_type.value,
            "condition": request.condition.value,
            "target_value": request.target_value,
        },
        entity_type="alert",
        entity_id=alert.id,
    )
    return AlertResponse.model_validate(alert)


@router.get("/alerts/{alert_id}", response_model=AlertResponse)
async def get_alert(alert_id: int, db: Session = Depends(get_db)):
    alert = StorageService(db).get_alert(alert_id)
    if not alert:
        raise HTTPException(status_code=404, detail=f"Alert {alert_id} not found")
    return AlertResponse.model_validate(alert)


@router.put("/alerts/{alert_id}", response_model=AlertResponse)
async def update_alert(alert_id: int, request: AlertUpdateRequest, db: Session = Depends(get_db)):
    storage = StorageService(db)
    alert = storage.get_alert(alert_id)
    if not alert:
        raise HTTPException(status_code=404, detail=f"Alert {alert_id} not found")
    updates = request.model_dump(exclude_unset=True, mode="json")
    try:
        alert = storage.update_alert(alert, **updates)
    except ValueError as e:
        raise _bad_request(e)
    storage.create_audit_log(
        event_type="alert_updated",
        description=f"Alert updated for {alert.symbol}",
        details={"fields": sorted(updates)},
        entity_type="alert",
        entity_id=alert.id,
    )
    return AlertResponse.model_validate(alert)


@router.post("/alerts/{alert_id}/rearm", response_model=AlertResponse)
async def rearm_alert(alert_id: int, db: Session = Depends(get_db)):
    """Reactivate a triggered alert and clear its trigger state."""
    storage = StorageService(db)
    alert = storage.get_alert(alert_id)
    if not alert:
        raise HTTPException(status_code=404, detail=f"Alert {alert_id} not found")
    alert = storage.rearm_alert(alert)
    storage.create_audit_log(
        event_type="alert_updated",
        description=f"Alert re-armed for {alert.symbol}",
        entity_type="alert",
        entity_id=alert.id,
    )
    return AlertResponse.model_validate(alert)


@router.delete("/alerts/{alert_id}")
async def delete_alert(alert_id: int, db: Session = Depends(get_db)):
    storage = StorageService(db)
    if not storage.delete_alert(alert_id):
        raise HTTPException(status_code=404, detail=f"Alert {alert_id} not found")
    storage.create_audit_log(
        event_type="alert_deleted",
        description=f"Alert {alert_id} deleted",
        entity_type="alert",
        entity_id=alert_id,
    )
    return {"success": True, "message": f"Alert {alert_id} deleted"}


# ============================================================================
# Journal Endpoints
# ============================================================================

@router.get("/journal", response_model=List[JournalEntryResponse])
async def list_journal_entries(
    symbol: Optional[str] = Query(None),
    limit: int = Query(500, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    try:
        symbol = normalize_symbol(symbol) if symbol else None
    except ValueError as e:
        raise _bad_request(e)
    entries = StorageService(db).list_journal_entries(symbol=symbol, limit=limit, offset=offset)
    return [JournalEntryResponse.model_validate(e) for e in entries]


@router.get("/journal/summary")
async def get_journal_summary(db: Session = Depends(get_db)):
    """Win rate, P&L and per-strategy breakdown over the whole journal."""
    entries = StorageService(db).list_journal_entries(limit=100000)
    return journal_summary(entries)


@router.post("/journal", response_model=JournalEntryResponse)
async def create_journal_entry(request: JournalEntryCreateRequest, db: Session = Depends(get_db)):
    storage = StorageService(db)
    entry = storage.create_journal_entry(**request.model_dump())
    storage.create_audit_log(
        event_type="journal_entry_created",
        description=f"Journal entry created for {entry.symbol}",
        entity_type="journal_entry",
        entity_id=entry.id,
    )
    return JournalEntryResponse.model_validate(entry)


@router.get("/journal/{entry_id}", response_model=JournalEntryResponse)
async def get_journal_entry(entry_id: int, db: Session = Depends(get_db)):
    entry = StorageService(db).get_journal_entry(entry_id)
    if not entry:
        raise HTTPException(status_code=404, detail=f"Journal entry {entry_id} not found")
    return JournalEntryResponse.model_validate(entry)


@router.put("/journal/{entry_id}", response_model=JournalEntryResponse)
async def update_journal_entry(entry_id: int, request: JournalEntryUpdateRequest,
                               db: Session = Depends(get_db)):
    storage = StorageService(db)
    entry = storage.get_journal_entry(entry_id)
    if not entry:
        raise HTTPException(status_code=404, detail=f"Journal entry {entry_id} not found")
    updates = request.model_dump(exclude_unset=True)
    if "tags" in updates and updates["tags"] is None:
        updates["tags"] = []
    entry = storage.update_journal_entry(entry, **updates)
    storage.create_audit_log(
        event_type="journal_entry_updated",
        description=f"Journal entry updated for {entry.symbol}",
        details={"fields": sorted(updates)},
        entity_type="journal_entry",
        entity_id=entry.id,
    )
    return JournalEntryResponse.model_validate(entry)


@router.delete("/journal/{entry_id}")
async def delete_journal_entry(entry_id: int, db: Session = Depends(get_db)):
    storage = StorageService(db)
    if not storage.delete_journal_entry(entry_id):
        raise HTTPException(status_code=404, detail=f"Journal entry {entry_id} not found")
    storage.create_audit_log(
        event_type="journal_entry_deleted",
        description=f"Journal entry {entry_id} deleted",
        entity_type="journal_entry",
        entity_id=entry_id,
    )
    return {"success": True, "message": f"Journal entry {entry_id} deleted"}


# ============================================================================
# Trade Log Endpoints
# ============================================================================

@router.get("/trades/stocks", response_model=List[StockTradeResponse])
async def list_stock_trades(
    symbol: Optional[str] = Query(None),
    open_only: bool = Query(False),
    db: Session = Depends(get_db),
):
    try:
        symbol = normalize_symbol(symbol) if symbol else None
    except ValueError as e:
        raise _bad_request(e)
    trades = StorageService(db).list_stock_trades(symbol=symbol, open_only=open_only)
    return [_stock_trade_response(t) for t in trades]


@router.get("/trades/stocks/summary")
async def get_stock_trade_summary(db: Session = Depends(get_db)):
    return stock_trade_summary(StorageService(db).list_stock_trades())


@router.post("/trades/stocks", response_model=StockTradeResponse)
async def create_stock_trade(request: StockTradeCreateRequest, db: Session = Depends(get_db)):
    storage = StorageService(db)
    try:
        trade = storage.create_stock_trade(**request.model_dump())
    except ValueError as e:
        raise _bad_request(e)
    storage.create_audit_log(
        event_type="trade_created",
        description=f"Stock trade recorded for {trade.symbol}",
        details={"entry_price": trade.entry_price, "quantity": trade.quantity},
        entity_type="stock_trade",
        entity_id=trade.id,
    )
    return _stock_trade_response(trade)


@router.get("/trades/stocks/{trade_id}", response_model=StockTradeResponse)
async def get_stock_trade(trade_id: int, db: Session = Depends(get_db)):
    trade = StorageService(db).get_stock_trade(trade_id)
    if not trade:
        raise HTTPException(status_code=404, detail=f"Stock trade {trade_id} not found")
    return _stock_trade_response(trade)


@router.put("/trades/stocks/{trade_id}", response_model=StockTradeResponse)
async def update_stock_trade(trade_id: int, request: StockTradeUpdateRequest,
                             db: Session = Depends(get_db)):
    """Edit a stock trade; closing it requires both exit price and exit date."""
    storage = StorageService(db)
    trade = storage.get_stock_trade(trade_id)
    if not trade:
        raise HTTPException(status_code=404, detail=f"Stock trade {trade_id} not found")
    updates = request.model_dump(exclude_unset=True)
    try:
        trade = storage.update_stock_trade(trade, **updates)
    except ValueError as e:
        raise _bad_request(e)
    storage.create_audit_log(
        event_type="trade_updated",
        description=f"Stock trade updated for {trade.symbol}",
        details={"fields": sorted(updates)},
        entity_type="stock_trade",
        entity_id=trade.id,
    )
    return _stock_trade_response(trade)


@router.delete("/trades/stocks/{trade_id}")
async def delete_stock_trade(trade_id: int, db: Session = Depends(get_db)):
    storage = StorageService(db)
    if not storage.delete_stock_trade(trade_id):
        raise HTTPException(status_code=404, detail=f"Stock trade {trade_id} not found")
    storage.create_audit_log(
        event_type="trade_deleted",
        description=f"Stock trade {trade_id} deleted",
        entity_type="stock_trade",
        entity_id=trade_id,
    )
    return {"success": True, "message": f"Stock trade {trade_id} deleted"}


@router.get("/trades/options", response_model=List[OptionTradeResponse])
async def list_option_trades(symbol: Optional[str] = Query(None), db: Session = Depends(get_db)):
    try:
        symbol = normalize_symbol(symbol) if symbol else None
    except ValueError as e:
        raise _bad_request(e)
    return [_option_trade_response(t) for t in StorageService(db).list_option_trades(symbol=symbol)]


@router.post("/trades/options", response_model=OptionTradeResponse)
async def create_option_trade(request: OptionTradeCreateRequest, db: Session = Depends(get_db)):
    storage = StorageService(db)
    trade = storage.create_option_trade(**request.model_dump(mode="json", exclude={"expiration", "trade_date"}),
                                        expiration=request.expiration, trade_date=request.trade_date)
    storage.create_audit_log(
        event_type="trade_created",
        description=f"Option trade recorded for {trade.symbol}",
        details={
            "option_type": request.option_type.value,
            "action": request.action.value,
            "strike": request.strike,
            "contracts": request.contracts,
        },
        entity_type="option_trade",
        entity_id=trade.id,
    )
    return _option_trade_response(trade)


@router.get("/trades/options/{trade_id}", response_model=OptionTradeResponse)
async def get_option_trade(trade_id: int, db: Session = Depends(get_db)):
    trade = StorageService(db).get_option_trade(trade_id)
    if not trade:
        raise HTTPException(status_code=404, detail=f"Option trade {trade_id} not found")
    return _option_trade_response(trade)


@router.put("/trades/options/{trade_id}", response_model=OptionTradeResponse)
async def update_option_trade(trade_id: int, request: OptionTradeUpdateRequest,
                              db: Session = Depends(get_db)):
    storage = StorageService(db)
    trade = storage.get_option_trade(trade_id)
    if not trade:
        raise HTTPException(status_code=404, detail=f"Option trade {trade_id} not found")
    updates = request.model_dump(exclude_unset=True)
    for key in ("option_type", "action"):
        if updates.get(key) is not None:
            updates[key] = updates[key].value
    trade = storage.update_option_trade(trade, **updates)
    storage.create_audit_log(
        event_type="trade_updated",
        description=f"Option trade updated for {trade.symbol}",
        details={"fields": sorted(updates)},
        entity_type="option_trade",
        entity_id=trade.id,
    )
    return _option_trade_response(trade)


@router.delete("/trades/options/{trade_id}")
async def delete_option_trade(trade_id: int, db: Session = Depends(get_db)):
    storage = StorageService(db)
    if not storage.delete_option_trade(trade_id):
        raise HTTPException(status_code=404, detail=f"Option trade {trade_id} not found")
    storage.create_audit_log(
        event_type="trade_deleted",
        description=f"Option trade {trade_id} deleted",
        entity_type="option_trade",
        entity_id=trade_id,
    )
    return {"success": True, "message": f"Option trade {trade_id} deleted"}


# ============================================================================
# Watchlist Endpoints
# ============================================================================

@router.get("/watchlist", response_model=WatchlistResponse)
def get_watchlist(include_quotes: bool = Query(True), db: Session = Depends(get_db)):
    """
    Watched symbols, with live quotes attached when market data is configured.
    Quote failures never hide the watchlist itself.
    """
    items = StorageService(db).get_watchlist()
    quotes: Dict[str, Dict[str, Any]] = {}
    quotes_available = False
    if include_quotes and items and has_market_data_credentials():
        try:
            snapshots = get_market_data_client().get_stock_snapshots(
                [item.symbol for item in items][:MAX_QUOTE_SYMBOLS]
            )
            quotes = {row["symbol"]: row for row in snapshots}
            quotes_available = True
        except MarketDataError as exc:
            logger.warning("Watchlist quotes unavailable: %s", exc)

    return WatchlistResponse(
        items=[
            WatchlistItemResponse(
                symbol=item.symbol,
                note=item.note,
                added_at=item.created_at,
                quote=quotes.get(item.symbol),
            )
            for item in items
        ],
        quotes_available=quotes_available,
    )


@router.post("/watchlist", response_model=WatchlistItemResponse)
async def add_to_watchlist(request: WatchlistAddRequest, db: Session = Depends(get_db)):
    storage = StorageService(db)
    try:
        item = storage.add_to_watchlist(request.symbol, request.note)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    storage.create_audit_log(
        event_type="watchlist_added",
        description=f"{item.symbol} added to watchlist",
        entity_type="watchlist",
        entity_id=item.id,
    )
    return WatchlistItemResponse(symbol=item.symbol, note=item.note, added_at=item.created_at)


@router.delete("/watchlist/{symbol}")
async def remove_from_watchlist(symbol: str, db: Session = Depends(get_db)):
    storage = StorageService(db)
    try:
        symbol = normalize_symbol(symbol)
    except ValueError as e:
        raise _bad_request(e)
    if not storage.remove_from_watchlist(symbol):
        raise HTTPException(status_code=404, detail=f"{symbol} is not on the watchlist")
    storage.create_audit_log(
        event_type="watchlist_removed",
        description=f"{symbol} removed from watchlist",
        entity_type="watchlist",
    )
    return {"success": True, "message": f"{symbol} removed from watchlist"}


# ============================================================================
# Settings Endpoints
# ============================================================================

@router.get("/settings/risk", response_model=RiskSettingsResponse)
async def get_risk_settings_endpoint(db: Session = Depends(get_db)):
    return RiskSettingsResponse(**get_risk_settings(StorageService(db)))


@router.put("/settings/risk", response_model=RiskSettingsResponse)
async def update_risk_settings_endpoint(request: RiskSettingsUpdateRequest, db: Session = Depends(get_db)):
    try:
        settings = update_risk_settings(StorageService(db), request.model_dump(exclude_none=True))
    except ValueError as e:
        raise _bad_request(e)
    return RiskSettingsResponse(**settings)


@router.post("/settings/risk/pnl", response_model=RiskSettingsResponse)
async def record_pnl_endpoint(request: PnlRecordRequest, db: Session = Depends(get_db)):
    """Add realized P&L; trading halts when a loss limit is reached."""
    return RiskSettingsResponse(**record_pnl(StorageService(db), request.amount))


@router.post("/settings/risk/halt", response_model=RiskSettingsResponse)
async def trading_halt_endpoint(request: TradingHaltRequest, db: Session = Depends(get_db)):
    return RiskSettingsResponse(**set_trading_halt(StorageService(db), request.halted, request.reason))


@router.get("/settings/report", response_model=ReportSettingsResponse)
async def get_report_settings_endpoint(db: Session = Depends(get_db)):
    return ReportSettingsResponse(**get_report_settings(StorageService(db)))


@router.put("/settings/report", response_model=ReportSettingsResponse)
async def update_report_settings_endpoint(request: ReportSettingsUpdateRequest,
                                          db: Session = Depends(get_db)):
    try:
        settings = update_report_settings(StorageService(db), request.model_dump(exclude_unset=True))
    except ValueError as e:
        raise _bad_request(e)
    return ReportSettingsResponse(**settings)


# ============================================================================
# Signal Endpoints
# ============================================================================

@router.post("/signals/tradingview", response_model=TradeSignalResponse)
@limiter.limit("30/minute")
async def receive_tradingview_signal(
    request: Request,
    payload: TradingViewSignalRequest,
    x_webhook_secret: Optional[str] = Header(None),
    db: Session = Depends(get_db),
):
    """
    Receive a TradingView alert webhook.

    When a webhook secret is configured, the payload's ``webhook_secret`` or
    the ``X-Webhook-Secret`` header must match it.
    """
    expected = (get_settings().signal_webhook_secret or "").strip()
    if expected:
        provided = (payload.webhook_secret or x_webhook_secret or "").strip()
        if not provided or not secrets.compare_digest(provided, expected):
            logger.warning("Rejected TradingView signal for %s: bad webhook secret", payload.symbol)
            raise HTTPException(status_code=401, detail="Invalid webhook secret")

    storage = StorageService(db)
    signal = storage.record_signal(
        symbol=payload.symbol,
        action=payload.action,
        strategy=payload.strategy or "TradingView Alert",
        quantity=payload.quantity or 1,
        timeframe=payload.timeframe or "1D",
        source="tradingview_webhook",
        price=payload.price,
        entry_condition=payload.entry_condition,
        exit_condition=payload.exit_condition,
    )
    storage.create_audit_log(
        event_type="signal_received",
        description=f"TradingView {payload.action} signal for {payload.symbol}",
        details={"price": payload.price, "strategy": signal.strategy, "timeframe": signal.timeframe},
        entity_type="trade_signal",
        entity_id=signal.id,
    )
    logger.info("Stored TradingView %s signal for %s", payload.action, payload.symbol)
    return TradeSignalResponse.model_validate(signal)


@router.get("/signals", response_model=List[TradeSignalResponse])
async def list_signals(
    symbol: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    try:
        symbol = normalize_symbol(symbol) if symbol else None
    except ValueError as e:
        raise _bad_request(e)
    signals = StorageService(db).get_recent_signals(symbol=symbol, limit=limit)
    return [TradeSignalResponse.model_validate(s) for s in signals]


# ============================================================================
# Audit Endpoints
# ============================================================================

@router.get("/audit/logs", response_model=AuditLogsResponse)
async def get_audit_logs(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    event_type: Optional[str] = Query(None),
    entity_type: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    """Audit trail, newest first."""
    storage = StorageService(db)
    try:
        rows = storage.get_audit_logs(limit=limit, offset=offset, event_type=event_type, entity_type=entity_type)
        total = storage.count_audit_logs(event_type=event_type, entity_type=entity_type)
    except ValueError as e:
        raise _bad_request(e)
    return AuditLogsResponse(logs=[_audit_log_response(r) for r in rows], total_count=total)
