"""Asset-based valuation: book, liquidation and net-net working capital."""

from __future__ import annotations

import logging

from valuation_engine.analysis.margins import (
    book_value_per_share,
    compute_mos_pct,
    not_applicable,
    require_positive_price,
)
from valuation_engine.config import AssetBasedConfig
from valuation_engine.data.contracts import ModelResult, Signal
from valuation_engine.data.models import CanonicalFundamentals
from valuation_engine.errors import InvalidParameterInvariant

logger = logging.getLogger(__name__)

MODEL_NAME = "Asset-Based"


def net_net_working_capital(fundamentals: CanonicalFundamentals) -> float | None:
    """(0.5 * total assets - total liabilities) / shares.

    Returns:
        NNWC per share, or None when any balance-sheet input is absent.
    """
    ta = fundamentals.total_assets
    tl = fundamentals.total_liabilities
    shares = fundamentals.shares_outstanding
    if not ta or not tl or not shares:
        return None
    return (0.5 * ta - tl) / shares


def calculate_asset_based(
    fundamentals: CanonicalFundamentals,
    config: AssetBasedConfig | None = None,
) -> ModelResult:
    """Most conservative of book value, liquidation value and NNWC.

    IV = min(BVPS, BVPS * (1 - discount), NNWC if positive else BVPS).
    Margin of safety >= 50% is Buy, >= 0% Hold, otherwise Sell.

    Raises:
        InvalidParameterInvariant: If the liquidation discount is not
            in [0, 1) or the price is not positive.
    """
    if config is None:
        config = AssetBasedConfig()

    discount = config.liquidation_discount
    if not 0 <= discount < 1:
        raise InvalidParameterInvariant(
            MODEL_NAME,
            "0 <= liquidation_discount < 1",
            f"liquidation discount must be in [0, 1), got {discount}",
        )

    bvps = book_value_per_share(fundamentals)
    if bvps <= 0:
        return not_applicable(
            MODEL_NAME,
            "Book value per share is unavailable or negative",
            details={"book_value_per_share": bvps},
        )

    price = require_positive_price(MODEL_NAME, fundamentals)

    liquidation = bvps * (1 - discount)
    nnwc = net_net_working_capital(fundamentals)
    nnwc_candidate = nnwc if nnwc is not None and nnwc > 0 else bvps
    intrinsic_value = min(bvps, liquidation, nnwc_candidate)
    margin = compute_mos_pct(intrinsic_value, price)

    if margin is not None and margin >= config.buy_min_pct:
        signal = Signal.BUY
    elif margin is not None and margin >= config.hold_min_pct:
        signal = Signal.HOLD
    else:
        signal = Signal.SELL

    if nnwc is None:
        logger.debug("%s: balance sheet incomplete, NNWC skipped",
                     fundamentals.symbol)

    return ModelResult(
        model_name=MODEL_NAME,
        intrinsic_value=intrinsic_value,
        margin_of_safety_pct=margin,
        recommendation=signal,
        rationale=(
            f"Book {bvps:.2f}, liquidation {liquidation:.2f}"
            + (f", NNWC {nnwc:.2f}" if nnwc is not None else "")
            + f" -> {intrinsic_value:.2f}; margin of safety {margin:.2f}%"
        ),
        details={
            "book_value_per_share": bvps,
            "liquidation_value": liquidation,
            "net_net_working_capital": nnwc,
            "liquidation_discount": discount,
        },
    )
