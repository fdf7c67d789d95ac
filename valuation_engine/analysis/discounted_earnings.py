"""Discounted earnings valuation with a terminal PE exit."""

from __future__ import annotations

import logging

from valuation_engine.analysis.margins import (
    compute_mos_pct,
    not_applicable,
    require_positive_price,
)
from valuation_engine.config import DiscountedEarningsConfig
from valuation_engine.data.contracts import ModelResult, Signal
from valuation_engine.data.models import CanonicalFundamentals
from valuation_engine.errors import InvalidParameterInvariant

logger = logging.getLogger(__name__)

MODEL_NAME = "Discounted Earnings"


def calculate_discounted_earnings(
    fundamentals: CanonicalFundamentals,
    config: DiscountedEarningsConfig | None = None,
) -> ModelResult:
    """Discount projected EPS plus a terminal EPS * PE exit value.

    Margin of safety >= 20% is Buy, >= -20% Hold, otherwise Sell.
    Not applicable for non-positive EPS.

    Raises:
        InvalidParameterInvariant: If projection years < 1, the
            discount rate is not positive, or the price is not positive.
    """
    if config is None:
        config = DiscountedEarningsConfig()

    years = config.projection_years
    if years < 1:
        raise InvalidParameterInvariant(
            MODEL_NAME,
            "projection_years >= 1",
            f"projection years must be at least 1, got {years}",
        )
    r = config.discount_rate
    if r <= 0:
        raise InvalidParameterInvariant(
            MODEL_NAME,
            "discount_rate > 0",
            f"discount rate must be positive, got {r}",
        )

    eps = fundamentals.eps
    if eps <= 0:
        return not_applicable(
            MODEL_NAME, f"EPS {eps:.2f} is not positive; earnings cannot be discounted"
        )

    price = require_positive_price(MODEL_NAME, fundamentals)

    pv_earnings = 0.0
    projected_eps = eps
    for year in range(1, years + 1):
        projected_eps = projected_eps * (1 + config.growth_rate)
        pv_earnings += projected_eps / (1 + r) ** year

    terminal_value = projected_eps * config.terminal_pe
    terminal_pv = terminal_value / (1 + r) ** years
    intrinsic_value = pv_earnings + terminal_pv
    margin = compute_mos_pct(intrinsic_value, price)

    if margin is not None and margin >= config.buy_min_pct:
        signal = Signal.BUY
    elif margin is not None and margin >= config.hold_min_pct:
        signal = Signal.HOLD
    else:
        signal = Signal.SELL

    return ModelResult(
        model_name=MODEL_NAME,
        intrinsic_value=intrinsic_value,
        margin_of_safety_pct=margin,
        recommendation=signal,
        rationale=(
            f"{years}-year EPS projection at {config.growth_rate:.2%} with "
            f"terminal PE {config.terminal_pe:g} = {intrinsic_value:.2f}; "
            f"margin of safety {margin:.2f}%"
        ),
        details={
            "present_value_earnings": pv_earnings,
            "terminal_value": terminal_value,
            "terminal_present_value": terminal_pv,
            "final_eps": projected_eps,
        },
    )
