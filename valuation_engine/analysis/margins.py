"""Shared helpers for the valuation models."""

from __future__ import annotations

from typing import Any

from valuation_engine.data.contracts import ModelResult, Signal
from valuation_engine.data.models import CanonicalFundamentals
from valuation_engine.errors import InvalidParameterInvariant


def compute_mos_pct(iv: float, price: float) -> float | None:
    """Compute margin of safety in percent.

    MoS = (IV - price) / IV * 100. Positive when price is below IV.

    Args:
        iv: Intrinsic value per share.
        price: Current stock price.

    Returns:
        Margin of safety (%), or None if IV <= 0.
    """
    if iv <= 0:
        return None
    return (iv - price) / iv * 100


def compute_premium_pct(price: float, iv: float) -> float | None:
    """Compute the premium of price over intrinsic value in percent.

    Premium = (price - IV) / IV * 100. Negative when price is below IV.
    Used by the discounting models (DDM, DCF).

    Returns:
        Premium (%), or None if IV <= 0.
    """
    if iv <= 0:
        return None
    return (price - iv) / iv * 100


def require_positive_price(model: str, fundamentals: CanonicalFundamentals) -> float:
    """Return the current price, raising if it is not positive."""
    price = fundamentals.current_price
    if price <= 0:
        raise InvalidParameterInvariant(
            model,
            "current_price > 0",
            f"current price must be positive, got {price}",
        )
    return price


def book_value_per_share(fundamentals: CanonicalFundamentals) -> float:
    """Book value per share, derived from price / PB when not reported.

    Returns:
        Book value per share, or 0.0 when neither source is available.
    """
    if fundamentals.book_value_per_share != 0:
        return fundamentals.book_value_per_share
    if fundamentals.pb_ratio > 0 and fundamentals.current_price > 0:
        return fundamentals.current_price / fundamentals.pb_ratio
    return 0.0


def not_applicable(
    model_name: str,
    rationale: str,
    details: dict[str, Any] | None = None,
    error: str | None = None,
) -> ModelResult:
    """Build a ModelResult excluded from aggregation."""
    return ModelResult(
        model_name=model_name,
        intrinsic_value=None,
        margin_of_safety_pct=None,
        recommendation=Signal.NOT_APPLICABLE,
        rationale=rationale,
        details=details or {},
        error=error,
    )
