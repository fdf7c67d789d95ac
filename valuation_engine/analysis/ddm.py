"""Dividend discount model (Gordon growth)."""

from __future__ import annotations

import logging

from valuation_engine.analysis.margins import (
    compute_premium_pct,
    not_applicable,
    require_positive_price,
)
from valuation_engine.config import DDMConfig
from valuation_engine.data.contracts import ModelResult, Signal
from valuation_engine.data.models import CanonicalFundamentals
from valuation_engine.errors import InvalidParameterInvariant

logger = logging.getLogger(__name__)

MODEL_NAME = "Dividend Discount Model"


def calculate_ddm(
    fundamentals: CanonicalFundamentals,
    config: DDMConfig | None = None,
) -> ModelResult:
    """Value a company from its next dividend with constant growth.

    D1 = D0 * (1 + g); IV = D1 / (r - g). The margin reported is the
    premium of price over IV: below -20% is Buy, above +20% is Sell.

    Args:
        fundamentals: Normalized fundamentals (price, dividend).
        config: Required return, growth rate and signal bands.

    Returns:
        ModelResult. Not applicable when the dividend is zero.

    Raises:
        InvalidParameterInvariant: If required return <= growth rate,
            growth rate <= -100%, the dividend is negative, or the price
            is not positive.
    """
    if config is None:
        config = DDMConfig()

    r = config.required_return
    g = config.growth_rate
    if r <= g:
        raise InvalidParameterInvariant(
            MODEL_NAME,
            "required_return > growth_rate",
            f"required return ({r}) must be greater than growth rate ({g})",
        )
    if g <= -1:
        raise InvalidParameterInvariant(
            MODEL_NAME,
            "growth_rate > -1",
            f"growth rate must be greater than -100%, got {g}",
        )

    dividend = fundamentals.dividend_per_share
    if dividend < 0:
        raise InvalidParameterInvariant(
            MODEL_NAME,
            "dividend >= 0",
            f"dividend cannot be negative, got {dividend}",
        )
    if dividend == 0:
        logger.debug("%s: no dividend, DDM not applicable", fundamentals.symbol)
        return not_applicable(
            MODEL_NAME, "Company pays no dividend; DDM does not apply"
        )

    price = require_positive_price(MODEL_NAME, fundamentals)

    next_dividend = dividend * (1 + g)
    intrinsic_value = next_dividend / (r - g)
    premium = compute_premium_pct(price, intrinsic_value)

    if premium is not None and premium < config.buy_below_pct:
        signal = Signal.BUY
    elif premium is not None and premium > config.sell_above_pct:
        signal = Signal.SELL
    else:
        signal = Signal.HOLD

    return ModelResult(
        model_name=MODEL_NAME,
        intrinsic_value=intrinsic_value,
        margin_of_safety_pct=premium,
        recommendation=signal,
        rationale=(
            f"D1 {next_dividend:.4f} / (r {r:.2%} - g {g:.2%}) = "
            f"{intrinsic_value:.2f}; price {price:.2f} is "
            f"{premium:+.2f}% vs intrinsic value"
        ),
        details={
            "next_dividend": next_dividend,
            "required_return": r,
            "growth_rate": g,
        },
    )
