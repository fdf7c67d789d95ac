"""Response synthesis: confidence, data quality, and machine-readable warnings.

This is the boundary handed to the presentation layer.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from valuation_engine.config import SynthesisConfig
from valuation_engine.data.contracts import (
    AggregateVerdict,
    CompositeScore,
    ModelResult,
    Signal,
    to_record,
)
from valuation_engine.data.models import CanonicalFundamentals

logger = logging.getLogger(__name__)

# Warning codes
MODEL_NOT_APPLICABLE = "model_not_applicable"
MODEL_ERROR = "model_error"
MISSING_COMPOSITE_INPUT = "missing_composite_input"

# Fundamentals read only by the supplementary models
SUPPLEMENTARY_MODEL_FIELDS = frozenset({"enterprise_value", "ebitda", "total_debt", "cash"})

# Composite tiers that corroborate a bullish or bearish verdict
BULLISH_TIERS: dict[str, frozenset[str]] = {
    "Altman Z-Score": frozenset({"Very Low", "Low"}),
    "Piotroski F-Score": frozenset({"Excellent", "Good"}),
    "Dividend Safety": frozenset({"Very Safe", "Safe"}),
    "Financial Health": frozenset({"Excellent", "Good"}),
}
BEARISH_TIERS: dict[str, frozenset[str]] = {
    "Altman Z-Score": frozenset({"High", "Very High"}),
    "Piotroski F-Score": frozenset({"Weak", "Poor"}),
    "Dividend Safety": frozenset({"Risky", "Very Risky"}),
    "Financial Health": frozenset({"Weak", "Poor"}),
}

# Minimum assessed signals before a partially-scored composite may vote
MIN_PIOTROSKI_SIGNALS = 5
MIN_CANSLIM_LETTERS = 4


@dataclass(frozen=True)
class ResponseWarning:
    """One machine-readable warning.

    Attributes:
        code: Reason code (model_not_applicable, model_error,
            missing_composite_input).
        subject: Model or score the warning concerns.
        message: Human-readable detail.
    """

    code: str
    subject: str
    message: str

    def to_record(self) -> dict[str, str]:
        return {"code": self.code, "subject": self.subject, "message": self.message}


@dataclass(frozen=True)
class SynthesizedResponse:
    """Presentation-ready summary of one symbol's evaluation.

    Attributes:
        confidence: High, Medium or Low.
        data_quality: High, Medium or Low.
        composite_direction: bullish, bearish or neutral.
        missing_count: Distinct missing or defaulted inputs.
        warnings: One entry per excluded model or missing composite input.
    """

    confidence: str
    data_quality: str
    composite_direction: str
    missing_count: int
    warnings: tuple[ResponseWarning, ...] = field(default_factory=tuple)

    def to_record(self) -> dict[str, Any]:
        return {
            "confidence": self.confidence,
            "dataQuality": self.data_quality,
            "compositeDirection": self.composite_direction,
            "missingCount": self.missing_count,
            "warnings": to_record(self.warnings),
        }


def _score_vote(score: CompositeScore) -> int:
    """+1 bullish, -1 bearish, 0 neutral or not enough data to vote."""
    if score.score_name == "CANSLIM":
        assessed = len(score.details.get("passed", ())) + len(
            score.details.get("failed", ())
        )
        if score.rating is None or assessed < MIN_CANSLIM_LETTERS:
            return 0
        signal = score.rating.to_signal()
        return {Signal.BUY: 1, Signal.SELL: -1}.get(signal, 0)

    if score.score_name == "Piotroski F-Score":
        if score.details.get("signals_assessed", 0) < MIN_PIOTROSKI_SIGNALS:
            return 0

    if score.tier in BULLISH_TIERS.get(score.score_name, frozenset()):
        return 1
    if score.tier in BEARISH_TIERS.get(score.score_name, frozenset()):
        return -1
    return 0


def composite_direction(scores: Sequence[CompositeScore]) -> str:
    """Net direction of the composite scores: bullish, bearish or neutral."""
    net = sum(_score_vote(s) for s in scores)
    if net > 0:
        return "bullish"
    if net < 0:
        return "bearish"
    return "neutral"


def _confidence(verdict: AggregateVerdict, direction: str) -> str:
    contributing = len(verdict.contributing_models)
    excluded = len(verdict.excluded_models)
    vote = verdict.overall_recommendation

    contradicts = (
        (vote is Signal.BUY and direction == "bearish")
        or (vote is Signal.SELL and direction == "bullish")
    )
    corroborates = (
        (vote is Signal.BUY and direction == "bullish")
        or (vote is Signal.SELL and direction == "bearish")
        or (vote is Signal.HOLD and direction == "neutral")
    )

    if contributing == 0 or excluded > contributing or contradicts:
        return "Low"
    if excluded == 0 and corroborates:
        return "High"
    return "Medium"


def _data_quality(missing_count: int, config: SynthesisConfig) -> str:
    if missing_count <= config.high_quality_max_missing:
        return "High"
    if missing_count <= config.medium_quality_max_missing:
        return "Medium"
    return "Low"


def build_warnings(
    results: Sequence[ModelResult],
    scores: Sequence[CompositeScore],
) -> list[ResponseWarning]:
    """One warning per excluded model and per missing composite input."""
    warnings: list[ResponseWarning] = []
    for result in results:
        if result.applicable:
            continue
        code = MODEL_ERROR if result.error else MODEL_NOT_APPLICABLE
        warnings.append(ResponseWarning(code, result.model_name, result.rationale))
    for score in scores:
        for name in score.missing_inputs:
            warnings.append(
                ResponseWarning(
                    MISSING_COMPOSITE_INPUT,
                    score.score_name,
                    f"{score.score_name}: {name} not available; "
                    "score computed without it",
                )
            )
    return warnings


def synthesize(
    verdict: AggregateVerdict,
    results: Sequence[ModelResult],
    scores: Sequence[CompositeScore],
    fundamentals: CanonicalFundamentals | None = None,
    config: SynthesisConfig | None = None,
    supplementary_models: bool = False,
) -> SynthesizedResponse:
    """Derive confidence, data quality and warnings for one evaluation.

    Confidence is Low when no model contributed, more models were
    excluded than contributed, or the composites point against the
    verdict; High when nothing was excluded and the composites agree;
    Medium otherwise. Data quality counts distinct missing composite
    inputs and defaulted fundamentals fields. Fields only the
    supplementary models read are not counted unless those models ran.

    Args:
        verdict: Aggregated verdict.
        results: The model results the verdict was built from.
        scores: Composite scores.
        fundamentals: Normalized fundamentals (for defaulted fields).
        config: Data-quality thresholds.
        supplementary_models: Whether the supplementary models ran.

    Returns:
        SynthesizedResponse.
    """
    if config is None:
        config = SynthesisConfig()

    direction = composite_direction(scores)

    missing: set[str] = set()
    for score in scores:
        missing.update(score.missing_inputs)
    if fundamentals is not None:
        defaulted = fundamentals.defaulted_fields
        if not supplementary_models:
            defaulted = defaulted - SUPPLEMENTARY_MODEL_FIELDS
        missing.update(defaulted)

    confidence = _confidence(verdict, direction)
    quality = _data_quality(len(missing), config)
    warnings = build_warnings(results, scores)

    logger.debug(
        "confidence %s, data quality %s (%d missing), %d warnings",
        confidence, quality, len(missing), len(warnings),
    )

    return SynthesizedResponse(
        confidence=confidence,
        data_quality=quality,
        composite_direction=direction,
        missing_count=len(missing),
        warnings=tuple(warnings),
    )
