"""Tests for valuation_engine.metrics.quality and profitability."""

from __future__ import annotations

from typing import Any

import pytest

from valuation_engine.data.models import CanonicalFundamentals
from valuation_engine.metrics.profitability import compute_dupont
from valuation_engine.metrics.quality import (
    INSUFFICIENT_DATA,
    PiotroskiPriorPeriod,
    compute_cash_flow_quality,
    compute_earnings_quality,
    compute_piotroski,
)


def _make_fundamentals(**overrides: Any) -> CanonicalFundamentals:
    defaults: dict[str, Any] = {
        "symbol": "TEST",
        "eps": 1.0,
        "pe_ratio": 15.0,
        "shares_outstanding": 100.0,
        "current_price": 15.0,
        "net_income": 100.0,
        "operating_cash_flow": 150.0,
        "total_assets": 1_000.0,
        "retained_earnings": 150.0,
        "long_term_debt": 200.0,
        "current_ratio": 2.0,
        "gross_margin": 40.0,
        "sales": 1_200.0,
        "shareholders_equity": 500.0,
    }
    defaults.update(overrides)
    return CanonicalFundamentals(**defaults)


_PRIOR = PiotroskiPriorPeriod(
    long_term_debt=250.0,
    shares_outstanding=100.0,
    gross_margin=35.0,
    asset_turnover=1.0,
)


# ---------------------------------------------------------------------------
# Piotroski F-Score
# ---------------------------------------------------------------------------


class TestPiotroski:

    def test_all_signals_pass(self) -> None:
        """A healthy, improving company scores 9."""
        result = compute_piotroski(_make_fundamentals(), _PRIOR)
        assert result.raw_score == 9.0
        assert result.tier == "Excellent"
        assert result.missing_inputs == ()
        assert result.details["signals_assessed"] == 9

    def test_without_prior_period(self) -> None:
        """Comparison signals are missing, not failed."""
        result = compute_piotroski(_make_fundamentals())
        assert result.raw_score == 6.0
        assert result.tier == "Good"
        assert set(result.missing_inputs) == {
            "prior_long_term_debt",
            "prior_gross_margin",
            "prior_asset_turnover",
        }
        assert result.details["signals"]["gross_margin_improving"] is None

    def test_dilution_from_share_change(self) -> None:
        """Without prior shares, a positive YoY change is dilution."""
        result = compute_piotroski(_make_fundamentals(shares_change_yoy=3.0))
        assert result.details["signals"]["no_dilution"] is False

    def test_dilution_missing_when_unreported(self) -> None:
        """Neither prior shares nor YoY change lists the prior as missing."""
        f = _make_fundamentals(defaulted_fields=frozenset({"shares_change_yoy"}))
        result = compute_piotroski(f)
        assert result.details["signals"]["no_dilution"] is None
        assert "prior_shares_outstanding" in result.missing_inputs

    def test_missing_fields_score_zero_but_are_reported(self) -> None:
        """Cash-flow signals drop out when their inputs are absent."""
        f = _make_fundamentals(
            net_income=0.0,
            operating_cash_flow=0.0,
            defaulted_fields=frozenset({"net_income", "operating_cash_flow"}),
        )
        result = compute_piotroski(f)
        assert result.raw_score == 2.0
        assert result.details["signals_assessed"] == 2
        assert "net_income" in result.missing_inputs
        assert "operating_cash_flow" in result.missing_inputs

    def test_failing_signals(self) -> None:
        """A loss with weak liquidity fails the affected signals."""
        f = _make_fundamentals(net_income=-50.0, current_ratio=1.0)
        signals = compute_piotroski(f, _PRIOR).details["signals"]
        assert signals["net_income_positive"] is False
        assert signals["current_ratio_healthy"] is False
        assert signals["cash_flow_exceeds_net_income"] is True


# ---------------------------------------------------------------------------
# Cash flow quality
# ---------------------------------------------------------------------------


class TestCashFlowQuality:

    def test_strong_conversion(self) -> None:
        """OCF above NI with low capex keeps the full 100."""
        f = _make_fundamentals(operating_cash_flow=120.0, capital_expenditures=20.0)
        result = compute_cash_flow_quality(f)
        assert result.raw_score == 100.0
        assert result.tier == "Excellent"
        assert result.details["free_cash_flow"] == pytest.approx(100.0)

    def test_moderate_conversion(self) -> None:
        """OCF/NI 0.9 costs 30."""
        f = _make_fundamentals(operating_cash_flow=90.0, capital_expenditures=10.0)
        result = compute_cash_flow_quality(f)
        assert result.raw_score == pytest.approx(70.0)
        assert result.tier == "Good"

    def test_penalties_accumulate(self) -> None:
        """OCF/NI 0.7 and FCF/OCF 0.29 trigger all four penalties."""
        f = _make_fundamentals(operating_cash_flow=70.0, capital_expenditures=50.0)
        result = compute_cash_flow_quality(f)
        assert result.raw_score == pytest.approx(10.0)
        assert result.tier == "Very Poor"

    def test_growth_bonus_is_clamped(self) -> None:
        """OCF growth above 10% cannot push past 100."""
        f = _make_fundamentals(operating_cash_flow=120.0, capital_expenditures=20.0)
        result = compute_cash_flow_quality(f, prior_operating_cash_flow=100.0)
        assert result.raw_score == 100.0
        assert result.details["ocf_growth"] == pytest.approx(0.2)

    def test_decline_is_clamped_at_zero(self) -> None:
        """Shrinking OCF on an already poor score floors at 0."""
        f = _make_fundamentals(operating_cash_flow=70.0, capital_expenditures=50.0)
        result = compute_cash_flow_quality(f, prior_operating_cash_flow=100.0)
        assert result.raw_score == 0.0

    def test_zero_ocf_insufficient(self) -> None:
        """Ratios need a nonzero OCF."""
        result = compute_cash_flow_quality(_make_fundamentals(operating_cash_flow=0.0))
        assert result.tier == INSUFFICIENT_DATA


# ---------------------------------------------------------------------------
# Earnings quality
# ---------------------------------------------------------------------------


class TestEarningsQuality:

    def test_high_accruals_penalised(self) -> None:
        """Accruals 0.25 cost 60 on the accrual half: (40 + 100) / 2."""
        f = _make_fundamentals(net_income=100.0, operating_cash_flow=80.0)
        result = compute_earnings_quality(f)
        assert result.raw_score == pytest.approx(70.0)
        assert result.tier == "Good"
        assert result.details["revenue_quality_assessed"] is False

    def test_negative_accruals_clamped(self) -> None:
        """Cash-rich earnings score the maximum."""
        f = _make_fundamentals(net_income=80.0, operating_cash_flow=100.0)
        result = compute_earnings_quality(f)
        assert result.raw_score == 100.0
        assert result.tier == "Excellent"

    def test_receivables_outpacing_revenue(self) -> None:
        """50% receivable growth vs 10% revenue growth costs 30."""
        f = _make_fundamentals(
            net_income=100.0, operating_cash_flow=100.0, sales=1_100.0
        )
        result = compute_earnings_quality(
            f,
            accounts_receivable=150.0,
            prior_accounts_receivable=100.0,
            prior_revenue=1_000.0,
        )
        assert result.details["revenue_quality"] == pytest.approx(70.0)
        assert result.raw_score == pytest.approx(85.0)
        assert result.details["revenue_quality_assessed"] is True

    def test_zero_ocf_insufficient(self) -> None:
        """Accruals need a nonzero OCF."""
        result = compute_earnings_quality(_make_fundamentals(operating_cash_flow=0.0))
        assert result.tier == INSUFFICIENT_DATA


# ---------------------------------------------------------------------------
# DuPont
# ---------------------------------------------------------------------------


def _dupont_fundamentals(**overrides: Any) -> CanonicalFundamentals:
    values: dict[str, Any] = {
        "net_income": 100.0,
        "sales": 1_000.0,
        "total_assets": 2_000.0,
        "shareholders_equity": 500.0,
    }
    values.update(overrides)
    return _make_fundamentals(**values)


class TestDuPont:

    def test_decomposition(self) -> None:
        """10% margin x 0.5 turnover x 4 leverage = 20% ROE."""
        result = compute_dupont(_dupont_fundamentals(), prior_roe=0.20)
        assert result.raw_score == pytest.approx(20.0)
        assert result.details["net_profit_margin"] == pytest.approx(10.0)
        assert result.details["asset_turnover"] == pytest.approx(0.5)
        assert result.details["financial_leverage"] == pytest.approx(4.0)

    @pytest.mark.parametrize(
        "prior, tier",
        [(0.15, "Improving"), (0.25, "Declining"), (0.195, "Stable")],
    )
    def test_trend(self, prior: float, tier: str) -> None:
        """A relative change beyond 5% sets the direction."""
        assert compute_dupont(_dupont_fundamentals(), prior_roe=prior).tier == tier

    def test_no_prior_is_stable_and_missing(self) -> None:
        """Without a prior ROE the trend cannot be assessed."""
        result = compute_dupont(_dupont_fundamentals())
        assert result.tier == "Stable"
        assert "prior_roe" in result.missing_inputs
        assert result.details["roe_change"] is None

    def test_zero_equity_insufficient(self) -> None:
        """Leverage needs equity."""
        result = compute_dupont(_dupont_fundamentals(shareholders_equity=0.0))
        assert result.tier == "Insufficient Data"
        assert "shareholders_equity" in result.missing_inputs
