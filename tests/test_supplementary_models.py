"""Tests for the discounted earnings and EV/EBITDA models."""

from __future__ import annotations

from typing import Any

import pytest

from valuation_engine.analysis.discounted_earnings import calculate_discounted_earnings
from valuation_engine.analysis.ev_ebitda import calculate_ev_ebitda, enterprise_value
from valuation_engine.config import DiscountedEarningsConfig, EVEBITDAConfig
from valuation_engine.data.contracts import Signal
from valuation_engine.data.models import CanonicalFundamentals
from valuation_engine.errors import InvalidParameterInvariant


def _make_fundamentals(**overrides: Any) -> CanonicalFundamentals:
    defaults: dict[str, Any] = {
        "symbol": "TEST",
        "eps": 1.0,
        "pe_ratio": 10.0,
        "shares_outstanding": 10.0,
        "current_price": 10.0,
        "ebitda": 100.0,
        "enterprise_value": 800.0,
    }
    defaults.update(overrides)
    return CanonicalFundamentals(**defaults)


_ONE_YEAR = DiscountedEarningsConfig(
    growth_rate=0.0, discount_rate=0.10, projection_years=1, terminal_pe=10.0
)


# ---------------------------------------------------------------------------
# Discounted earnings
# ---------------------------------------------------------------------------


class TestDiscountedEarnings:

    def test_value(self) -> None:
        """1/1.1 + 10/1.1 = 10."""
        result = calculate_discounted_earnings(_make_fundamentals(), _ONE_YEAR)
        assert result.intrinsic_value == pytest.approx(10.0)
        assert result.details["terminal_value"] == pytest.approx(10.0)

    @pytest.mark.parametrize(
        "price, expected",
        [(7.0, Signal.BUY), (11.0, Signal.HOLD), (13.0, Signal.SELL)],
    )
    def test_signal_bands(self, price: float, expected: Signal) -> None:
        """>= 20% Buy, >= -20% Hold, else Sell."""
        f = _make_fundamentals(current_price=price)
        assert calculate_discounted_earnings(f, _ONE_YEAR).recommendation is expected

    def test_negative_eps_not_applicable(self) -> None:
        """Losses cannot be discounted."""
        result = calculate_discounted_earnings(_make_fundamentals(eps=-1.0))
        assert result.recommendation is Signal.NOT_APPLICABLE

    def test_zero_years_raises(self) -> None:
        """At least one projection year is required."""
        config = DiscountedEarningsConfig(projection_years=0)
        with pytest.raises(InvalidParameterInvariant, match="projection years"):
            calculate_discounted_earnings(_make_fundamentals(), config)

    def test_non_positive_discount_raises(self) -> None:
        """The discount rate must be positive."""
        config = DiscountedEarningsConfig(discount_rate=0.0)
        with pytest.raises(InvalidParameterInvariant, match="discount rate"):
            calculate_discounted_earnings(_make_fundamentals(), config)


# ---------------------------------------------------------------------------
# EV/EBITDA
# ---------------------------------------------------------------------------


class TestEVEBITDA:

    @pytest.mark.parametrize(
        "ev, expected",
        [(500.0, Signal.BUY), (800.0, Signal.HOLD), (1_300.0, Signal.SELL)],
    )
    def test_absolute_thresholds(self, ev: float, expected: Signal) -> None:
        """Below 6x Buy, above 12x Sell without an industry average."""
        result = calculate_ev_ebitda(_make_fundamentals(enterprise_value=ev))
        assert result.recommendation is expected
        assert result.intrinsic_value is None

    def test_industry_average_band_and_implied_value(self) -> None:
        """7x vs a 10x average is undervalued; implied value (1000-200+50)/10."""
        f = _make_fundamentals(
            enterprise_value=700.0,
            total_debt=200.0,
            cash=50.0,
            current_price=50.0,
        )
        result = calculate_ev_ebitda(f, EVEBITDAConfig(industry_average=10.0))
        assert result.recommendation is Signal.BUY
        assert result.intrinsic_value == pytest.approx(85.0)
        assert result.margin_of_safety_pct == pytest.approx((85.0 - 50.0) / 85.0 * 100)

    def test_enterprise_value_fallback(self) -> None:
        """EV = market value of equity + debt - cash when not reported."""
        f = _make_fundamentals(
            enterprise_value=0.0,
            market_value_equity=600.0,
            total_debt=200.0,
            cash=50.0,
        )
        assert enterprise_value(f) == pytest.approx(750.0)

    def test_non_positive_ebitda_not_applicable(self) -> None:
        """Negative EBITDA has no meaningful multiple."""
        result = calculate_ev_ebitda(_make_fundamentals(ebitda=0.0))
        assert result.recommendation is Signal.NOT_APPLICABLE
