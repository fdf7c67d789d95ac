"""Engine result contracts.

Frozen dataclasses passed from the models and scorers to the aggregator
and synthesizer, plus the recommendation vocabularies. Every result
exposes ``to_record()`` returning a JSON-serializable dict with
camelCase keys.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Signal(Enum):
    """Per-model recommendation."""

    BUY = "Buy"
    HOLD = "Hold"
    SELL = "Sell"
    NOT_APPLICABLE = "Not Applicable"


class Rating(Enum):
    """Five-band rating used by risk tiers and CANSLIM grades."""

    STRONG_BUY = "Strong Buy"
    BUY = "Buy"
    HOLD = "Hold"
    SELL = "Sell"
    STRONG_SELL = "Strong Sell"
    AVOID = "Avoid"

    def to_signal(self) -> Signal:
        """Collapse onto Buy/Hold/Sell."""
        return RATING_TO_SIGNAL[self]


class BandPosition(Enum):
    """Where a price sits relative to a fair-value band."""

    UNDERVALUED = "Undervalued"
    FAIRLY_VALUED = "Fairly Valued"
    OVERVALUED = "Overvalued"

    def to_signal(self) -> Signal:
        """Collapse onto Buy/Hold/Sell."""
        return BAND_TO_SIGNAL[self]


# Collapse mappings. These are the only places vocabularies are converted.
RATING_TO_SIGNAL: dict[Rating, Signal] = {
    Rating.STRONG_BUY: Signal.BUY,
    Rating.BUY: Signal.BUY,
    Rating.HOLD: Signal.HOLD,
    Rating.SELL: Signal.SELL,
    Rating.STRONG_SELL: Signal.SELL,
    Rating.AVOID: Signal.SELL,
}

BAND_TO_SIGNAL: dict[BandPosition, Signal] = {
    BandPosition.UNDERVALUED: Signal.BUY,
    BandPosition.FAIRLY_VALUED: Signal.HOLD,
    BandPosition.OVERVALUED: Signal.SELL,
}


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def to_record(value: Any) -> Any:
    """Convert a result value into JSON-ready primitives.

    Dict keys are camelCased, enums become their values, tuples and
    frozensets become lists, nested contracts use their own
    ``to_record``.
    """
    if isinstance(value, Enum):
        return value.value
    if hasattr(value, "to_record"):
        return value.to_record()
    if isinstance(value, dict):
        return {_camel(str(k)): to_record(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_record(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return sorted(to_record(v) for v in value)
    return value


@dataclass(frozen=True)
class ModelResult:
    """Outcome of one valuation model for one symbol.

    Attributes:
        model_name: Display name of the model.
        intrinsic_value: Estimated value per share. None when the model
            is not applicable.
        margin_of_safety_pct: Model-specific margin of safety (%). None
            when not applicable.
        recommendation: Buy/Hold/Sell, or NOT_APPLICABLE to exclude the
            model from aggregation.
        rationale: Human-readable explanation.
        details: Model-specific figures (band bounds, projections, ...).
        error: Set when the model raised and was isolated by the runner.
    """

    model_name: str
    intrinsic_value: float | None
    margin_of_safety_pct: float | None
    recommendation: Signal
    rationale: str
    details: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    @property
    def applicable(self) -> bool:
        return self.recommendation is not Signal.NOT_APPLICABLE

    def to_record(self) -> dict[str, Any]:
        return {
            "modelName": self.model_name,
            "intrinsicValue": self.intrinsic_value,
            "marginOfSafetyPct": self.margin_of_safety_pct,
            "recommendation": self.recommendation.value,
            "rationale": self.rationale,
            "details": to_record(self.details),
            "error": self.error,
        }


@dataclass(frozen=True)
class CompositeScore:
    """Outcome of one composite financial-health or growth scorer.

    Attributes:
        score_name: Display name of the scorer.
        raw_score: Numeric score on the scorer's own scale.
        tier: Scorer-specific tier label (e.g. "Low", "A+").
        missing_inputs: Inputs that were absent; the score was computed
            without them.
        rationale: Human-readable explanation.
        rating: Native five-band rating, where the scorer has one.
        details: Scorer-specific breakdown.
    """

    score_name: str
    raw_score: float
    tier: str
    missing_inputs: tuple[str, ...] = ()
    rationale: str = ""
    rating: Rating | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_record(self) -> dict[str, Any]:
        return {
            "scoreName": self.score_name,
            "rawScore": self.raw_score,
            "tier": self.tier,
            "missingInputs": list(self.missing_inputs),
            "rationale": self.rationale,
            "rating": self.rating.value if self.rating is not None else None,
            "details": to_record(self.details),
        }


@dataclass(frozen=True)
class AggregateVerdict:
    """Combined verdict over one symbol's model results.

    Attributes:
        average_intrinsic_value: Mean intrinsic value of the applicable
            models. None when no model applies.
        margin_of_safety_pct: (average - price) / average * 100.
        overall_recommendation: Strict-majority vote of the applicable
            models; ties are Hold.
        risk_tier: Risk band derived from the margin of safety.
        risk_rating: Five-band rating paired with the risk tier.
        contributing_models: Models included in the vote and average.
        excluded_models: Models marked not applicable.
        vote_counts: Buy/Hold/Sell tallies.
    """

    average_intrinsic_value: float | None
    margin_of_safety_pct: float | None
    overall_recommendation: Signal
    risk_tier: str
    risk_rating: Rating
    contributing_models: tuple[str, ...] = ()
    excluded_models: tuple[str, ...] = ()
    vote_counts: dict[str, int] = field(default_factory=dict)

    def to_record(self) -> dict[str, Any]:
        return {
            "averageIntrinsicValue": self.average_intrinsic_value,
            "marginOfSafetyPct": self.margin_of_safety_pct,
            "overallRecommendation": self.overall_recommendation.value,
            "riskTier": self.risk_tier,
            "riskRating": self.risk_rating.value,
            "contributingModels": list(self.contributing_models),
            "excludedModels": list(self.excluded_models),
            "voteCounts": dict(self.vote_counts),
        }
