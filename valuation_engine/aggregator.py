"""Valuation aggregation: isolated model runs, majority vote, and risk tier."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

import numpy as np

from valuation_engine.analysis.asset_based import calculate_asset_based
from valuation_engine.analysis.dcf import calculate_dcf
from valuation_engine.analysis.ddm import calculate_ddm
from valuation_engine.analysis.discounted_earnings import calculate_discounted_earnings
from valuation_engine.analysis.ev_ebitda import calculate_ev_ebitda
from valuation_engine.analysis.graham import calculate_graham_number
from valuation_engine.analysis.margins import compute_mos_pct, not_applicable
from valuation_engine.analysis.pe_band import calculate_pe_band
from valuation_engine.config import AggregatorConfig, EngineConfig
from valuation_engine.data.contracts import AggregateVerdict, ModelResult, Rating, Signal
from valuation_engine.data.models import CanonicalFundamentals

logger = logging.getLogger(__name__)

UNDETERMINED = "Undetermined"


def _model_registry(
    config: EngineConfig,
) -> list[tuple[str, Callable[[CanonicalFundamentals], ModelResult]]]:
    """Ordered (model name, callable) pairs for the configured model set."""
    models: list[tuple[str, Callable[[CanonicalFundamentals], ModelResult]]] = [
        ("PE Band", lambda f: calculate_pe_band(f, config.pe_band)),
        ("Dividend Discount Model", lambda f: calculate_ddm(f, config.ddm)),
        ("Discounted Cash Flow", lambda f: calculate_dcf(f, config.dcf)),
        ("Graham Number", lambda f: calculate_graham_number(f, config.graham)),
        ("Asset-Based", lambda f: calculate_asset_based(f, config.asset_based)),
    ]
    if config.include_supplementary_models:
        models.extend([
            (
                "Discounted Earnings",
                lambda f: calculate_discounted_earnings(f, config.discounted_earnings),
            ),
            ("EV/EBITDA", lambda f: calculate_ev_ebitda(f, config.ev_ebitda)),
        ])
    return models


def run_valuation_models(
    fundamentals: CanonicalFundamentals,
    config: EngineConfig | None = None,
) -> list[ModelResult]:
    """Run every configured valuation model independently.

    A model that raises is logged and converted into a not-applicable
    result carrying the error, so one failure never stops the others.

    Args:
        fundamentals: Normalized fundamentals.
        config: Engine configuration. Defaults to EngineConfig().

    Returns:
        One ModelResult per configured model, in registry order.
    """
    if config is None:
        config = EngineConfig()

    results: list[ModelResult] = []
    for name, model in _model_registry(config):
        try:
            result = model(fundamentals)
        except Exception as exc:
            logger.warning("%s: %s failed: %s", fundamentals.symbol, name, exc)
            result = not_applicable(
                name,
                f"Model could not be evaluated: {exc}",
                details={"invariant": getattr(exc, "invariant", None)},
                error=str(exc),
            )
        results.append(result)
    return results


def majority_vote(signals: Sequence[Signal]) -> Signal:
    """Strict majority of Buy vs Sell; ties and all-Hold are Hold."""
    buys = sum(1 for s in signals if s is Signal.BUY)
    sells = sum(1 for s in signals if s is Signal.SELL)
    if buys > sells:
        return Signal.BUY
    if sells > buys:
        return Signal.SELL
    return Signal.HOLD


def risk_tier(
    margin_of_safety_pct: float | None,
    config: AggregatorConfig | None = None,
) -> tuple[str, Rating]:
    """Map an overall margin of safety onto a risk tier and rating.

    Args:
        margin_of_safety_pct: (average IV - price) / average IV * 100.
        config: Band boundaries.

    Returns:
        (tier label, rating). ("Undetermined", HOLD) when the margin is
        None.
    """
    if config is None:
        config = AggregatorConfig()
    if margin_of_safety_pct is None:
        return UNDETERMINED, Rating.HOLD
    if margin_of_safety_pct >= config.very_low_min:
        return "Very Low", Rating.STRONG_BUY
    if margin_of_safety_pct >= config.low_min:
        return "Low", Rating.BUY
    if margin_of_safety_pct >= config.medium_min:
        return "Medium", Rating.HOLD
    if margin_of_safety_pct >= config.high_min:
        return "High", Rating.SELL
    return "Very High", Rating.STRONG_SELL


def aggregate(
    results: Sequence[ModelResult],
    current_price: float,
    config: AggregatorConfig | None = None,
) -> AggregateVerdict:
    """Combine one symbol's model results into a single verdict.

    Not-applicable models are excluded from both the vote and the
    average. The risk tier comes from the overall margin of safety and
    is reported alongside the vote, never merged into it.

    Args:
        results: ModelResults for one symbol.
        current_price: Current share price.
        config: Risk band boundaries.

    Returns:
        AggregateVerdict.
    """
    applicable = [r for r in results if r.applicable]
    excluded = [r for r in results if not r.applicable]

    values = [r.intrinsic_value for r in applicable if r.intrinsic_value is not None]
    average: float | None = float(np.mean(values)) if values else None

    margin: float | None = None
    if average is not None:
        margin = compute_mos_pct(average, current_price)

    signals = [r.recommendation for r in applicable]
    vote = majority_vote(signals)
    tier, rating = risk_tier(margin, config)

    counts: dict[str, int] = {
        s.value: sum(1 for v in signals if v is s)
        for s in (Signal.BUY, Signal.HOLD, Signal.SELL)
    }

    if not applicable:
        logger.warning("No applicable valuation models; verdict defaults to Hold")

    return AggregateVerdict(
        average_intrinsic_value=average,
        margin_of_safety_pct=margin,
        overall_recommendation=vote,
        risk_tier=tier,
        risk_rating=rating,
        contributing_models=tuple(r.model_name for r in applicable),
        excluded_models=tuple(r.model_name for r in excluded),
        vote_counts=counts,
    )
