"""Tests for valuation_engine.analysis.ddm."""

from __future__ import annotations

from typing import Any

import pytest

from valuation_engine.analysis.ddm import calculate_ddm
from valuation_engine.config import DDMConfig
from valuation_engine.data.contracts import Signal
from valuation_engine.data.models import CanonicalFundamentals
from valuation_engine.errors import InvalidParameterInvariant


def _make_fundamentals(**overrides: Any) -> CanonicalFundamentals:
    defaults: dict[str, Any] = {
        "symbol": "TEST",
        "eps": 6.0,
        "pe_ratio": 16.67,
        "shares_outstanding": 1_000_000.0,
        "current_price": 100.0,
        "dividend_per_share": 4.0,
    }
    defaults.update(overrides)
    return CanonicalFundamentals(**defaults)


class TestCalculateDDM:

    def test_gordon_growth_value(self) -> None:
        """D0 4 at r 10%, g 5%: D1 4.2, IV 84."""
        result = calculate_ddm(_make_fundamentals())
        assert result.intrinsic_value == pytest.approx(84.0)
        assert result.details["next_dividend"] == pytest.approx(4.2)

    def test_margin_is_price_premium(self) -> None:
        """Price 100 vs IV 84 is a 19.05% premium, inside the Hold band."""
        result = calculate_ddm(_make_fundamentals())
        assert result.margin_of_safety_pct == pytest.approx(19.0476, abs=1e-3)
        assert result.recommendation is Signal.HOLD

    def test_buy_when_well_below_value(self) -> None:
        """A premium below -20% is a Buy."""
        result = calculate_ddm(_make_fundamentals(current_price=60.0))
        assert result.recommendation is Signal.BUY

    def test_sell_when_well_above_value(self) -> None:
        """A premium above +20% is a Sell."""
        result = calculate_ddm(_make_fundamentals(current_price=110.0))
        assert result.recommendation is Signal.SELL

    def test_required_return_below_growth_raises(self) -> None:
        """r 5% with g 10% has no finite value."""
        config = DDMConfig(required_return=0.05, growth_rate=0.10)
        with pytest.raises(
            InvalidParameterInvariant,
            match="required return .* must be greater than growth rate",
        ) as exc_info:
            calculate_ddm(_make_fundamentals(), config)
        assert exc_info.value.invariant == "required_return > growth_rate"

    def test_required_return_equal_growth_raises(self) -> None:
        """r == g divides by zero."""
        config = DDMConfig(required_return=0.08, growth_rate=0.08)
        with pytest.raises(InvalidParameterInvariant):
            calculate_ddm(_make_fundamentals(), config)

    def test_invalid_rates_raise_before_dividend_check(self) -> None:
        """The rate invariant applies even to non-payers."""
        config = DDMConfig(required_return=0.05, growth_rate=0.10)
        with pytest.raises(InvalidParameterInvariant):
            calculate_ddm(_make_fundamentals(dividend_per_share=0.0), config)

    @pytest.mark.parametrize("growth", [-1.0, -1.5])
    def test_growth_at_or_below_minus_one_raises(self, growth: float) -> None:
        """A shrinking-to-nothing dividend has no positive value."""
        config = DDMConfig(required_return=0.10, growth_rate=growth)
        with pytest.raises(InvalidParameterInvariant, match="growth rate must be greater") as exc_info:
            calculate_ddm(_make_fundamentals(), config)
        assert exc_info.value.invariant == "growth_rate > -1"

    def test_zero_dividend_not_applicable(self) -> None:
        """Non-payers are excluded rather than valued at zero."""
        result = calculate_ddm(_make_fundamentals(dividend_per_share=0.0))
        assert result.recommendation is Signal.NOT_APPLICABLE
        assert result.intrinsic_value is None
        assert not result.applicable

    def test_negative_dividend_raises(self) -> None:
        """A negative dividend is invalid input."""
        with pytest.raises(InvalidParameterInvariant, match="dividend cannot be negative"):
            calculate_ddm(_make_fundamentals(dividend_per_share=-1.0))

    def test_deterministic(self) -> None:
        """Identical inputs give identical results."""
        f = _make_fundamentals()
        assert calculate_ddm(f) == calculate_ddm(f)
