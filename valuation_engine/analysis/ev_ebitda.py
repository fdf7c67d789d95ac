"""EV/EBITDA relative valuation."""

from __future__ import annotations

import logging

from valuation_engine.analysis.margins import compute_mos_pct, not_applicable
from valuation_engine.config import EVEBITDAConfig
from valuation_engine.data.contracts import BandPosition, ModelResult
from valuation_engine.data.models import CanonicalFundamentals

logger = logging.getLogger(__name__)

MODEL_NAME = "EV/EBITDA"


def enterprise_value(fundamentals: CanonicalFundamentals) -> float:
    """Reported EV, else market value of equity + total debt - cash."""
    if fundamentals.enterprise_value != 0:
        return fundamentals.enterprise_value
    if fundamentals.market_value_equity > 0:
        return (
            fundamentals.market_value_equity
            + fundamentals.total_debt
            - fundamentals.cash
        )
    return 0.0


def calculate_ev_ebitda(
    fundamentals: CanonicalFundamentals,
    config: EVEBITDAConfig | None = None,
) -> ModelResult:
    """Compare EV/EBITDA to an industry average or absolute multiples.

    With an industry average, below 0.8x is Undervalued and above 1.2x
    Overvalued, and an implied per-share value is reported. Without one,
    below 6x is Undervalued and above 12x Overvalued, with no intrinsic
    value.
    """
    if config is None:
        config = EVEBITDAConfig()

    ebitda = fundamentals.ebitda
    ev = enterprise_value(fundamentals)
    if ebitda <= 0 or ev <= 0:
        return not_applicable(
            MODEL_NAME,
            "EV/EBITDA requires positive EBITDA and enterprise value",
            details={"ebitda": ebitda, "enterprise_value": ev},
        )

    ratio = ev / ebitda
    average = config.industry_average
    intrinsic_value: float | None = None
    margin: float | None = None

    if average is not None and average > 0:
        if ratio < average * config.undervalued_ratio:
            position = BandPosition.UNDERVALUED
        elif ratio > average * config.overvalued_ratio:
            position = BandPosition.OVERVALUED
        else:
            position = BandPosition.FAIRLY_VALUED
        shares = fundamentals.shares_outstanding
        implied_equity = average * ebitda - fundamentals.total_debt + fundamentals.cash
        intrinsic_value = implied_equity / shares
        if intrinsic_value > 0 and fundamentals.current_price > 0:
            margin = compute_mos_pct(intrinsic_value, fundamentals.current_price)
        else:
            intrinsic_value = None
        basis = f"industry average {average:.2f}x"
    else:
        if ratio < config.absolute_buy_below:
            position = BandPosition.UNDERVALUED
        elif ratio > config.absolute_sell_above:
            position = BandPosition.OVERVALUED
        else:
            position = BandPosition.FAIRLY_VALUED
        basis = (
            f"absolute range {config.absolute_buy_below:g}-"
            f"{config.absolute_sell_above:g}x"
        )

    logger.debug("%s: EV/EBITDA %.2f -> %s",
                 fundamentals.symbol, ratio, position.value)

    return ModelResult(
        model_name=MODEL_NAME,
        intrinsic_value=intrinsic_value,
        margin_of_safety_pct=margin,
        recommendation=position.to_signal(),
        rationale=f"EV/EBITDA {ratio:.2f}x vs {basis}: {position.value}",
        details={
            "ev_ebitda": ratio,
            "enterprise_value": ev,
            "ebitda": ebitda,
            "industry_average": average,
            "band_position": position.value,
        },
    )
