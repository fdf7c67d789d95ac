"""Tests for valuation_engine.metrics.safety."""

from __future__ import annotations

from typing import Any

import pytest

from valuation_engine.data.contracts import CompositeScore
from valuation_engine.data.models import CanonicalFundamentals
from valuation_engine.metrics.safety import (
    INSUFFICIENT_DATA,
    compute_altman_z,
    compute_dividend_safety,
    compute_financial_health,
    tier_for,
)


def _make_fundamentals(**overrides: Any) -> CanonicalFundamentals:
    defaults: dict[str, Any] = {
        "symbol": "TEST",
        "eps": 1.0,
        "pe_ratio": 20.0,
        "shares_outstanding": 100.0,
        "current_price": 20.0,
        "working_capital": 100.0,
        "total_assets": 1_000.0,
        "retained_earnings": 200.0,
        "ebit": 150.0,
        "market_value_equity": 900.0,
        "total_liabilities": 600.0,
        "sales": 1_200.0,
    }
    defaults.update(overrides)
    return CanonicalFundamentals(**defaults)


# ---------------------------------------------------------------------------
# Tier lookup
# ---------------------------------------------------------------------------


class TestTierFor:

    @pytest.mark.parametrize(
        "score, expected",
        [(3.0, "Very Low"), (2.99, "Low"), (1.8, "Medium"), (1.0, "High"), (0.5, "Very High")],
    )
    def test_thresholds_inclusive(self, score: float, expected: str) -> None:
        """Reaching a threshold earns its label; below all gives the floor."""
        tiers = ((3.0, "Very Low"), (2.5, "Low"), (1.8, "Medium"), (1.0, "High"))
        assert tier_for(score, tiers, "Very High") == expected


# ---------------------------------------------------------------------------
# Altman Z-Score
# ---------------------------------------------------------------------------


class TestAltmanZ:

    def test_score(self) -> None:
        """0.12 + 0.28 + 0.495 + 0.9 + 1.2 = 2.995."""
        result = compute_altman_z(_make_fundamentals())
        assert result.score_name == "Altman Z-Score"
        assert result.raw_score == pytest.approx(2.995)
        assert result.tier == "Low"
        assert result.missing_inputs == ()

    def test_components(self) -> None:
        """Each weighted ratio is reported."""
        components = compute_altman_z(_make_fundamentals()).details["components"]
        assert components["equity_to_liabilities"] == pytest.approx(0.9)
        assert components["sales_to_assets"] == pytest.approx(1.2)

    @pytest.mark.parametrize(
        "sales, tier",
        [
            (300.0, "Very Low"),
            (250.0, "Low"),
            (180.0, "Medium"),
            (100.0, "High"),
            (50.0, "Very High"),
        ],
    )
    def test_tiers(self, sales: float, tier: str) -> None:
        """Z = sales / TA when every other term is zero."""
        f = _make_fundamentals(
            working_capital=0.0,
            retained_earnings=0.0,
            ebit=0.0,
            market_value_equity=0.0,
            total_liabilities=100.0,
            total_assets=100.0,
            sales=sales,
        )
        assert compute_altman_z(f).tier == tier

    def test_zero_total_assets_insufficient(self) -> None:
        """Without total assets the score cannot be tiered."""
        result = compute_altman_z(_make_fundamentals(total_assets=0.0))
        assert result.tier == INSUFFICIENT_DATA
        assert "total_assets" in result.missing_inputs

    def test_defaulted_inputs_reported(self) -> None:
        """Inputs absent from the raw record are listed missing."""
        f = _make_fundamentals(
            retained_earnings=0.0,
            defaulted_fields=frozenset({"retained_earnings"}),
        )
        result = compute_altman_z(f)
        assert result.missing_inputs == ("retained_earnings",)
        assert result.tier != INSUFFICIENT_DATA


# ---------------------------------------------------------------------------
# Dividend safety
# ---------------------------------------------------------------------------


class TestDividendSafety:

    def test_no_dividend(self) -> None:
        """Non-payers get their own tier and a zero score."""
        result = compute_dividend_safety(_make_fundamentals())
        assert result.tier == "No Dividend"
        assert result.raw_score == 0.0

    def test_high_payout_penalties_accumulate(self) -> None:
        """An 85% payout triggers all three penalties: 100 - 70."""
        f = _make_fundamentals(
            dividend_per_share=0.85,
            defaulted_fields=frozenset({"free_cash_flow", "dividend_growth"}),
        )
        result = compute_dividend_safety(f)
        assert result.raw_score == pytest.approx(30.0)
        assert result.tier == "Risky"
        assert "free_cash_flow" in result.missing_inputs
        assert "dividend_history" in result.missing_inputs

    def test_mid_payout_penalties_accumulate(self) -> None:
        """A 65% payout triggers the 60% and 50% penalties."""
        f = _make_fundamentals(
            dividend_per_share=13.0,
            eps=20.0,
            defaulted_fields=frozenset({"free_cash_flow"}),
        )
        result = compute_dividend_safety(f)
        assert result.raw_score == pytest.approx(70.0)
        assert result.tier == "Safe"

    def test_fcf_payout_penalties(self) -> None:
        """75% payout (-30) and 60% FCF payout (-20) give 50."""
        f = _make_fundamentals(
            dividend_per_share=1.2,
            eps=1.6,
            free_cash_flow=200.0,
            shares_outstanding=100.0,
            dividend_growth=0.0,
        )
        result = compute_dividend_safety(f)
        assert result.raw_score == pytest.approx(50.0)
        assert result.tier == "Moderate"
        assert result.missing_inputs == ()

    def test_growth_bonuses_clamped_to_100(self) -> None:
        """Low payouts plus growth and streak bonuses cap at 100."""
        f = _make_fundamentals(
            dividend_per_share=0.3,
            free_cash_flow=1_000.0,
        )
        history = [1.6, 1.4, 1.2, 1.1, 1.0, 0.9]
        result = compute_dividend_safety(f, history)
        assert result.raw_score == 100.0
        assert result.tier == "Very Safe"
        assert result.details["years_of_growth"] == 5
        assert result.details["dividend_growth_rate"] == pytest.approx(
            (1.6 / 0.9) ** (1 / 5) - 1
        )

    def test_streak_counts_back_from_latest(self) -> None:
        """The streak stops at the first year without growth."""
        f = _make_fundamentals(dividend_per_share=0.3, free_cash_flow=1_000.0)
        result = compute_dividend_safety(f, [1.3, 1.2, 1.25, 1.0])
        assert result.details["years_of_growth"] == 1

    def test_negative_earnings_apply_every_penalty(self) -> None:
        """A loss-making payer has unbounded payout."""
        f = _make_fundamentals(
            dividend_per_share=1.0,
            eps=-1.0,
            defaulted_fields=frozenset({"free_cash_flow"}),
        )
        result = compute_dividend_safety(f)
        assert result.raw_score == pytest.approx(30.0)
        assert result.details["payout_ratio"] is None

    def test_yield_reported(self) -> None:
        """Yield is dividend over price in percent."""
        f = _make_fundamentals(dividend_per_share=1.0, free_cash_flow=1_000.0)
        result = compute_dividend_safety(f)
        assert result.details["current_yield"] == pytest.approx(5.0)


# ---------------------------------------------------------------------------
# Financial health
# ---------------------------------------------------------------------------


class TestFinancialHealth:

    def test_blend(self) -> None:
        """round(2.995 / 5 * 50 + 6 / 9 * 50) = 63."""
        altman = CompositeScore("Altman Z-Score", 2.995, "Low", ("sales",))
        piotroski = CompositeScore(
            "Piotroski F-Score", 6.0, "Good", ("sales", "prior_gross_margin")
        )
        result = compute_financial_health(altman, piotroski)
        assert result.raw_score == 63.0
        assert result.tier == "Good"
        assert result.missing_inputs == ("sales", "prior_gross_margin")

    def test_poor_floor(self) -> None:
        """Very low inputs land in the floor tier."""
        altman = CompositeScore("Altman Z-Score", 0.5, "Very High")
        piotroski = CompositeScore("Piotroski F-Score", 1.0, "Poor")
        assert compute_financial_health(altman, piotroski).tier == "Poor"
