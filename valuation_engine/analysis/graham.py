"""Graham Number valuation."""

from __future__ import annotations

import logging
import math

from valuation_engine.analysis.margins import (
    book_value_per_share,
    compute_mos_pct,
    not_applicable,
    require_positive_price,
)
from valuation_engine.config import GrahamConfig
from valuation_engine.data.contracts import ModelResult, Signal
from valuation_engine.data.models import CanonicalFundamentals

logger = logging.getLogger(__name__)

MODEL_NAME = "Graham Number"


def calculate_graham_number(
    fundamentals: CanonicalFundamentals,
    config: GrahamConfig | None = None,
) -> ModelResult:
    """Value = sqrt(22.5 * EPS * book value per share).

    Margin of safety >= 30% is Buy, >= 0% Hold, otherwise Sell.
    Not applicable when book value is unavailable or either EPS or
    BVPS is not positive.
    """
    if config is None:
        config = GrahamConfig()

    eps = fundamentals.eps
    bvps = book_value_per_share(fundamentals)
    if bvps == 0:
        return not_applicable(MODEL_NAME, "Book value per share unavailable")

    if eps <= 0 or bvps <= 0:
        logger.debug(
            "%s: EPS %.2f or BVPS %.2f not positive, Graham not applicable",
            fundamentals.symbol, eps, bvps,
        )
        return not_applicable(
            MODEL_NAME,
            "Graham Number requires positive EPS and book value",
            details={"eps": eps, "book_value_per_share": bvps},
        )

    price = require_positive_price(MODEL_NAME, fundamentals)
    value = math.sqrt(config.multiplier * eps * bvps)
    margin = compute_mos_pct(value, price)

    if margin is not None and margin >= config.buy_min_pct:
        signal = Signal.BUY
    elif margin is not None and margin >= config.hold_min_pct:
        signal = Signal.HOLD
    else:
        signal = Signal.SELL

    return ModelResult(
        model_name=MODEL_NAME,
        intrinsic_value=value,
        margin_of_safety_pct=margin,
        recommendation=signal,
        rationale=(
            f"sqrt({config.multiplier:g} x EPS {eps:.2f} x BVPS {bvps:.2f}) = "
            f"{value:.2f}; margin of safety {margin:.2f}%"
        ),
        details={"eps": eps, "book_value_per_share": bvps},
    )
