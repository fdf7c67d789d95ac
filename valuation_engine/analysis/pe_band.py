"""PE-band valuation.

Places the current price inside the fair-value band implied by the
historical PE range: ``[min PE * EPS, max PE * EPS]``.
"""

from __future__ import annotations

import logging

import numpy as np

from valuation_engine.analysis.margins import compute_mos_pct, require_positive_price
from valuation_engine.config import PEBandConfig
from valuation_engine.data.contracts import BandPosition, ModelResult
from valuation_engine.data.models import CanonicalFundamentals
from valuation_engine.errors import InvalidParameterInvariant
from valuation_engine.metrics.trends import percentile_rank

logger = logging.getLogger(__name__)

MODEL_NAME = "PE Band"


def calculate_pe_band(
    fundamentals: CanonicalFundamentals,
    config: PEBandConfig | None = None,
) -> ModelResult:
    """Value a company against its historical PE band.

    A price exactly on a band bound is Fairly Valued.

    Args:
        fundamentals: Normalized fundamentals (price, EPS).
        config: Historical PE series or market. Defaults to the
            12-period default series.

    Returns:
        ModelResult with intrinsic value = average PE * EPS.

    Raises:
        InvalidParameterInvariant: If EPS or price is not positive, or
            the historical PE series is empty.
    """
    if config is None:
        config = PEBandConfig()

    eps = fundamentals.eps
    if eps <= 0:
        raise InvalidParameterInvariant(
            MODEL_NAME, "eps > 0", f"EPS must be positive, got {eps}"
        )
    price = require_positive_price(MODEL_NAME, fundamentals)

    pes = np.asarray(config.resolve_pes(), dtype=float)
    if pes.size == 0:
        raise InvalidParameterInvariant(
            MODEL_NAME,
            "len(historical_pes) >= 1",
            "at least one historical PE value is required",
        )

    current_pe = price / eps
    average_pe = float(np.mean(pes))
    min_pe = float(np.min(pes))
    max_pe = float(np.max(pes))
    lower = min_pe * eps
    upper = max_pe * eps

    if price < lower:
        position = BandPosition.UNDERVALUED
    elif price > upper:
        position = BandPosition.OVERVALUED
    else:
        position = BandPosition.FAIRLY_VALUED

    intrinsic_value = average_pe * eps
    margin = compute_mos_pct(intrinsic_value, price)

    logger.debug(
        "%s: PE %.2f vs band [%.2f, %.2f] -> %s",
        fundamentals.symbol, current_pe, min_pe, max_pe, position.value,
    )

    return ModelResult(
        model_name=MODEL_NAME,
        intrinsic_value=intrinsic_value,
        margin_of_safety_pct=margin,
        recommendation=position.to_signal(),
        rationale=(
            f"Price {price:.2f} vs fair-value band {lower:.2f}-{upper:.2f} "
            f"(PE {current_pe:.2f}, historical {min_pe:g}-{max_pe:g}): "
            f"{position.value}"
        ),
        details={
            "current_pe": current_pe,
            "average_pe": average_pe,
            "min_pe": min_pe,
            "max_pe": max_pe,
            "pe_percentile": percentile_rank(current_pe, pes.tolist()),
            "fair_value_low": lower,
            "fair_value_high": upper,
            "band_position": position.value,
            "historical_pe_count": int(pes.size),
        },
    )
