"""
Tests for yield-on-cost and reverse dividend calculators.
"""
import pytest

from services.dividends import reverse_dividend, yield_on_cost


class TestYieldOnCost:
    def test_flat_dividends_without_growth(self):
        result = yield_on_cost(
            [{"symbol": "ko", "cost_basis": 10000, "shares": 100, "annual_dividend": 4}],
            growth_rate=0,
            years=10,
        )
        assert result["total_cost"] == 10000
        assert result["annual_income"] == 400
        assert result["current_yoc"] == 4.0
        assert result["final_yoc"] == 4.0
        assert len(result["projection"]) == 11
        assert result["projection"][-1]["cumulative_income"] == 4400
        assert result["cost_basis_recovered"] == 44.0
        assert result["income_multiple"] == 1.0

        holding = result["holdings"][0]
        assert holding["symbol"] == "KO"
        assert holding["years_to_double"] == 0.0
        assert holding["years_to_10_percent"] is None

    def test_holdings_sorted_by_ten_year_yield(self):
        result = yield_on_cost(
            [
                {"symbol": "T", "cost_basis": 1000, "shares": 10, "annual_dividend": 5, "dividend_growth_rate": 0.5},
                {"symbol": "MSFT", "cost_basis": 1000, "shares": 10, "annual_dividend": 3, "dividend_growth_rate": 10},
                {"symbol": "HIGH", "cost_basis": 1000, "shares": 10, "annual_dividend": 12},
            ],
            growth_rate=7.2,
        )
        symbols = [h["symbol"] for h in result["holdings"]]
        assert symbols == ["HIGH", "MSFT", "T"]
        high = result["holdings"][0]
        assert high["years_to_10_percent"] == 0.0
        assert high["years_to_double"] == 10.0
        assert result["holdings"][1]["years_to_10_percent"] > 0

    @pytest.mark.parametrize("holdings,years", [
        ([], 10),
        ([{"symbol": "X", "cost_basis": 0, "shares": 1, "annual_dividend": 1}], 10),
        ([{"symbol": "X", "cost_basis": 100, "shares": 1, "annual_dividend": 1}], 51),
    ])
    def test_invalid_inputs(self, holdings, years):
        with pytest.raises(ValueError):
            yield_on_cost(holdings, years=years)


class TestReverseDividend:
    def test_monthly_target(self):
        result = reverse_dividend(1000, "monthly", custom_yield=6)
        assert result["annual_target_income"] == 12000
        assert result["custom"] == {"yield": 6, "required_investment": 200000, "monthly_income": 1000}
        assert result["portfolios"][0]["name"] == "Ultra High Yield"
        assert result["portfolios"][0]["required_investment"] == 109091
        assert result["quick_reference"][0] == {"yield": 4, "required_investment": 300000}

    def test_yield_curve_spans_two_to_twelve_percent(self):
        curve = reverse_dividend(12000, "annual", custom_yield=None)["yield_curve"]
        assert len(curve) == 21
        assert curve[0] == {"yield": 2.0, "investment": 600000}
        assert curve[-1]["yield"] == 12.0

    def test_holding_amounts_follow_allocation(self):
        portfolio = reverse_dividend(500, "monthly")["portfolios"][0]
        total = sum(h["amount"] for h in portfolio["holdings"])
        assert total == pytest.approx(portfolio["required_investment"], abs=len(portfolio["holdings"]))

    @pytest.mark.parametrize("kwargs", [
        {"target_income": 0},
        {"target_income": 100, "frequency": "weekly"},
        {"target_income": 100, "custom_yield": 20},
    ])
    def test_invalid_inputs(self, kwargs):
        with pytest.raises(ValueError):
            reverse_dividend(**kwargs)
