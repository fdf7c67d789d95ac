"""Tests for valuation_engine.metrics.growth (CANSLIM)."""

from __future__ import annotations

from typing import Any

import pytest

from valuation_engine.data.contracts import Rating
from valuation_engine.data.models import (
    AnnualEarningsDelta,
    CanonicalFundamentals,
    QuarterlyEpsDelta,
)
from valuation_engine.metrics.growth import (
    DATA_NOT_AVAILABLE,
    GRADE_RATINGS,
    MAX_SCORE,
    NOT_ASSESSED,
    NOT_PROVIDED,
    CanslimInputs,
    compute_canslim,
    grade_for,
    score_current_earnings,
    score_external_conditions,
    score_market_direction,
    score_supply_demand,
)


def _make_fundamentals(**overrides: Any) -> CanonicalFundamentals:
    defaults: dict[str, Any] = {
        "symbol": "TEST",
        "eps": 2.0,
        "pe_ratio": 20.0,
        "shares_outstanding": 1_000.0,
        "current_price": 40.0,
        "price_change_52w": 10.0,
        "shares_change_yoy": -1.0,
        "shares_change_qoq": 0.5,
        "return_on_equity": 20.0,
        "institutional_ownership": 50.0,
        "dividend_growth": 5.0,
        "profit_margin": 10.0,
    }
    defaults.update(overrides)
    return CanonicalFundamentals(**defaults)


_FULL_INPUTS = CanslimInputs(
    current_quarterly_eps=1.3,
    prior_year_quarter_eps=1.0,
    annual_earnings_current=200.0,
    annual_earnings_3y_ago=100.0,
)


class TestComputeCanslim:

    def test_all_letters_pass(self) -> None:
        """Seven passes is A+ / Strong Buy."""
        result = compute_canslim(_make_fundamentals(), _FULL_INPUTS)
        assert result.raw_score == float(MAX_SCORE)
        assert result.tier == "A+"
        assert result.rating is Rating.STRONG_BUY
        assert result.details["failed"] == []
        assert result.details["passed"] == ["C", "A", "N", "S", "L", "I", "E"]

    def test_missing_quarterly_eps_is_not_a_failure(self) -> None:
        """C without inputs is MISSING DATA rather than FAIL."""
        result = compute_canslim(_make_fundamentals())
        criterion = result.details["criteria"]["C"]
        assert criterion.value == DATA_NOT_AVAILABLE
        assert criterion.status == "MISSING DATA"
        assert "C" not in result.details["failed"]
        assert "C" in result.missing_inputs
        assert any(m.startswith("C:") for m in result.details["missing_data"])

    def test_missing_letters_score_zero(self) -> None:
        """Five available passes without C and A grade B."""
        result = compute_canslim(_make_fundamentals())
        assert result.raw_score == 5.0
        assert result.tier == "B"
        assert result.rating is Rating.HOLD
        assert result.details["failed"] == []

    def test_defaulted_field_is_missing(self) -> None:
        """An absent 52-week change marks N missing."""
        f = _make_fundamentals(
            price_change_52w=0.0,
            defaulted_fields=frozenset({"price_change_52w"}),
        )
        result = compute_canslim(f, _FULL_INPUTS)
        assert "N" in result.missing_inputs
        assert "N" not in result.details["failed"]
        assert result.raw_score == 6.0

    def test_failures_listed(self) -> None:
        """Low ROE and heavy dilution fail L and S."""
        f = _make_fundamentals(
            return_on_equity=8.0,
            shares_change_yoy=7.0,
            shares_change_qoq=6.0,
        )
        result = compute_canslim(f, _FULL_INPUTS)
        assert result.details["failed"] == ["S", "L"]
        assert result.raw_score == 5.0

    def test_informational_letters_not_scored(self) -> None:
        """M and E2 never change the score."""
        inputs = CanslimInputs(
            current_quarterly_eps=1.3,
            prior_year_quarter_eps=1.0,
            annual_earnings_current=200.0,
            annual_earnings_3y_ago=100.0,
            market_direction="bear",
            external_conditions="unfavorable",
        )
        result = compute_canslim(_make_fundamentals(), inputs)
        assert result.raw_score == float(MAX_SCORE)
        assert "M" not in result.details["failed"]
        assert "E2" not in result.details["failed"]

    def test_informational_missing_listed(self) -> None:
        """Absent M and E2 inputs are reported with suggestions."""
        result = compute_canslim(_make_fundamentals(), _FULL_INPUTS)
        assert "M" in result.missing_inputs
        assert "E2" in result.missing_inputs
        assert "external_conditions" in result.details["suggested_inputs"]

    def test_fetched_deltas_used_as_fallback(self) -> None:
        """Fetched quarterly and annual deltas feed C and A."""
        result = compute_canslim(
            _make_fundamentals(),
            quarterly_eps=QuarterlyEpsDelta(current=1.5, prior_year=1.0),
            annual_earnings=AnnualEarningsDelta(current=300.0, three_years_ago=100.0),
        )
        assert result.details["criteria"]["C"].passed is True
        assert result.details["criteria"]["A"].passed is True

    def test_manual_inputs_override_fetched(self) -> None:
        """Manual quarterly EPS wins over the fetched delta."""
        inputs = CanslimInputs(current_quarterly_eps=1.1, prior_year_quarter_eps=1.0)
        result = compute_canslim(
            _make_fundamentals(),
            inputs,
            quarterly_eps=QuarterlyEpsDelta(current=2.0, prior_year=1.0),
        )
        assert result.details["criteria"]["C"].passed is False
        assert "C" in result.details["failed"]


class TestLetters:

    def test_current_earnings_threshold(self) -> None:
        """18% growth passes exactly at the threshold."""
        inputs = CanslimInputs(current_quarterly_eps=1.18, prior_year_quarter_eps=1.0)
        result = score_current_earnings(inputs, None)
        assert result.value == "18.0%"

    def test_supply_demand_missing_only_when_both_absent(self) -> None:
        """One reported share change is enough to assess S."""
        f = _make_fundamentals(defaulted_fields=frozenset({"shares_change_qoq"}))
        assert score_supply_demand(f).passed is True
        f = _make_fundamentals(
            defaulted_fields=frozenset({"shares_change_qoq", "shares_change_yoy"})
        )
        assert score_supply_demand(f).passed is None

    def test_market_direction_not_provided(self) -> None:
        """Absent M uses its own placeholder value."""
        result = score_market_direction(CanslimInputs())
        assert result.value == NOT_PROVIDED
        assert result.status == "MISSING DATA"
        assert result.scored is False

    def test_market_direction_bull(self) -> None:
        """A bull market passes M."""
        assert score_market_direction(CanslimInputs(market_direction="Bull")).passed is True

    def test_external_conditions(self) -> None:
        """Favourable conditions pass E2; absent ones are not assessed."""
        assert score_external_conditions(
            CanslimInputs(external_conditions="favorable")
        ).passed is True
        assert score_external_conditions(CanslimInputs()).value == NOT_ASSESSED

    def test_record_shape(self) -> None:
        """Criterion records carry status and max score."""
        record = score_market_direction(CanslimInputs()).to_record()
        assert record["status"] == "MISSING DATA"
        assert record["maxScore"] == 0
        assert record["pass"] is False


class TestGrades:

    @pytest.mark.parametrize(
        "total, grade",
        [(7, "A+"), (6, "A"), (5, "B"), (4, "C"), (3, "D"), (2, "F"), (0, "F")],
    )
    def test_grade_for(self, total: int, grade: str) -> None:
        """Totals map onto the letter grades."""
        assert grade_for(total) == grade

    def test_grade_ratings(self) -> None:
        """F is Avoid, D is Sell."""
        assert GRADE_RATINGS["F"] is Rating.AVOID
        assert GRADE_RATINGS["D"] is Rating.SELL
        assert GRADE_RATINGS["A"] is Rating.BUY
