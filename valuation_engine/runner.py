"""Evaluation orchestrator.

Runs the full evaluation for one symbol: normalize, value, score,
aggregate, synthesize.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Any

from valuation_engine.aggregator import aggregate, run_valuation_models
from valuation_engine.config import EngineConfig
from valuation_engine.data.contracts import (
    AggregateVerdict,
    CompositeScore,
    ModelResult,
    to_record,
)
from valuation_engine.data.models import (
    AnnualEarningsDelta,
    CanonicalFundamentals,
    HistoricalRatioRecord,
    QuarterlyEpsDelta,
)
from valuation_engine.data.normalizer import normalize
from valuation_engine.metrics.growth import CanslimInputs, compute_canslim
from valuation_engine.metrics.profitability import compute_dupont
from valuation_engine.metrics.quality import (
    PiotroskiPriorPeriod,
    compute_cash_flow_quality,
    compute_earnings_quality,
    compute_piotroski,
)
from valuation_engine.metrics.safety import (
    compute_altman_z,
    compute_dividend_safety,
    compute_financial_health,
)
from valuation_engine.metrics.trends import (
    HistoricalRatioAnalysis,
    analyze_historical_ratios,
)
from valuation_engine.synthesis import SynthesizedResponse, synthesize

logger = logging.getLogger(__name__)

UNAVAILABLE = "Unavailable"


@dataclass(frozen=True)
class SupplementaryInputs:
    """Optional caller inputs beyond the fundamentals record.

    Attributes:
        history: Historical ratio records, most recent first. Positive
            PEs feed the PE band when no series is configured.
        canslim: Manual CANSLIM inputs.
        quarterly_eps: Fetched quarterly EPS delta.
        annual_earnings: Fetched annual earnings delta.
        piotroski_prior: Prior-period values for the F-Score.
        dividend_history: Annual dividends per share, most recent first.
        prior_roe: Prior-period ROE as a fraction.
        prior_operating_cash_flow: Prior-year operating cash flow.
        accounts_receivable: Current accounts receivable.
        prior_accounts_receivable: Prior-year accounts receivable.
        prior_revenue: Prior-year revenue.
    """

    history: Sequence[HistoricalRatioRecord] = ()
    canslim: CanslimInputs | None = None
    quarterly_eps: QuarterlyEpsDelta | None = None
    annual_earnings: AnnualEarningsDelta | None = None
    piotroski_prior: PiotroskiPriorPeriod | None = None
    dividend_history: Sequence[float] = ()
    prior_roe: float | None = None
    prior_operating_cash_flow: float | None = None
    accounts_receivable: float | None = None
    prior_accounts_receivable: float | None = None
    prior_revenue: float | None = None


@dataclass(frozen=True)
class EvaluationReport:
    """Complete evaluation output for one symbol."""

    symbol: str
    current_price: float
    models: tuple[ModelResult, ...]
    verdict: AggregateVerdict
    scores: tuple[CompositeScore, ...]
    synthesis: SynthesizedResponse
    history: HistoricalRatioAnalysis | None = None
    defaulted_fields: frozenset[str] = field(default_factory=frozenset)

    def score(self, name: str) -> CompositeScore | None:
        """Look up a composite score by name."""
        for s in self.scores:
            if s.score_name == name:
                return s
        return None

    def to_record(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "currentPrice": self.current_price,
            "models": to_record(self.models),
            "verdict": self.verdict.to_record(),
            "scores": to_record(self.scores),
            "synthesis": self.synthesis.to_record(),
            "history": self.history.to_record() if self.history else None,
            "defaultedFields": sorted(self.defaulted_fields),
        }


def _run_composite(
    name: str,
    scorer: Callable[[], CompositeScore],
    symbol: str,
) -> CompositeScore:
    """Run one composite scorer, converting any failure into an Unavailable score."""
    try:
        return scorer()
    except Exception as exc:
        logger.warning("%s: %s failed: %s", symbol, name, exc)
        return CompositeScore(
            score_name=name,
            raw_score=0.0,
            tier=UNAVAILABLE,
            rationale=f"Score could not be computed: {exc}",
            details={"error": str(exc)},
        )


def _with_history_pes(
    config: EngineConfig, history: Sequence[HistoricalRatioRecord]
) -> EngineConfig:
    """Feed positive historical PEs into the PE band unless already configured."""
    if config.pe_band.historical_pes is not None:
        return config
    pes = tuple(r.pe for r in history if r.pe is not None and r.pe > 0)
    if not pes:
        return config
    return replace(config, pe_band=replace(config.pe_band, historical_pes=pes))


def compute_composite_scores(
    fundamentals: CanonicalFundamentals,
    extras: SupplementaryInputs,
) -> list[CompositeScore]:
    """Run every composite scorer independently."""
    sym = fundamentals.symbol

    altman = _run_composite(
        "Altman Z-Score", lambda: compute_altman_z(fundamentals), sym
    )
    piotroski = _run_composite(
        "Piotroski F-Score",
        lambda: compute_piotroski(fundamentals, extras.piotroski_prior),
        sym,
    )
    scores = [altman, piotroski]
    if altman.tier != UNAVAILABLE and piotroski.tier != UNAVAILABLE:
        scores.append(
            _run_composite(
                "Financial Health",
                lambda: compute_financial_health(altman, piotroski),
                sym,
            )
        )

    scores.extend([
        _run_composite(
            "DuPont Analysis",
            lambda: compute_dupont(fundamentals, extras.prior_roe),
            sym,
        ),
        _run_composite(
            "Dividend Safety",
            lambda: compute_dividend_safety(fundamentals, extras.dividend_history),
            sym,
        ),
        _run_composite(
            "CANSLIM",
            lambda: compute_canslim(
                fundamentals,
                extras.canslim,
                extras.quarterly_eps,
                extras.annual_earnings,
            ),
            sym,
        ),
        _run_composite(
            "Cash Flow Quality",
            lambda: compute_cash_flow_quality(
                fundamentals, extras.prior_operating_cash_flow
            ),
            sym,
        ),
        _run_composite(
            "Earnings Quality",
            lambda: compute_earnings_quality(
                fundamentals,
                extras.accounts_receivable,
                extras.prior_accounts_receivable,
                extras.prior_revenue,
            ),
            sym,
        ),
    ])
    return scores


def evaluate(
    fundamentals: CanonicalFundamentals,
    config: EngineConfig | None = None,
    extras: SupplementaryInputs | None = None,
) -> EvaluationReport:
    """Evaluate already-normalized fundamentals.

    Args:
        fundamentals: Normalized fundamentals.
        config: Engine configuration. Defaults to EngineConfig().
        extras: Optional caller inputs.

    Returns:
        EvaluationReport.
    """
    if config is None:
        config = EngineConfig()
    if extras is None:
        extras = SupplementaryInputs()
    sym = fundamentals.symbol

    # Step 1: Historical ratio analysis
    history: HistoricalRatioAnalysis | None = None
    if extras.history:
        try:
            history = analyze_historical_ratios(sym, extras.history, config.trends)
        except ValueError as exc:
            logger.warning("%s: historical analysis skipped: %s", sym, exc)
        config = _with_history_pes(config, extras.history)

    # Step 2: Valuation models
    logger.info("%s: running valuation models", sym)
    models = run_valuation_models(fundamentals, config)

    # Step 3: Composite scores
    logger.info("%s: computing composite scores", sym)
    scores = compute_composite_scores(fundamentals, extras)

    # Step 4: Aggregate
    verdict = aggregate(models, fundamentals.current_price, config.aggregator)
    logger.info(
        "%s: %s (%d contributing, %d excluded), risk %s",
        sym,
        verdict.overall_recommendation.value,
        len(verdict.contributing_models),
        len(verdict.excluded_models),
        verdict.risk_tier,
    )

    # Step 5: Synthesize
    synthesis = synthesize(
        verdict,
        models,
        scores,
        fundamentals,
        config.synthesis,
        supplementary_models=config.include_supplementary_models,
    )

    return EvaluationReport(
        symbol=sym,
        current_price=fundamentals.current_price,
        models=tuple(models),
        verdict=verdict,
        scores=tuple(scores),
        synthesis=synthesis,
        history=history,
        defaulted_fields=fundamentals.defaulted_fields,
    )


def evaluate_symbol(
    raw: Mapping[str, Any],
    config: EngineConfig | None = None,
    extras: SupplementaryInputs | None = None,
    symbol: str | None = None,
) -> EvaluationReport:
    """Normalize a raw fundamentals record and evaluate it.

    Raises:
        InvalidSymbolError: If the symbol is malformed.
        MissingRequiredInputError: If a required field is absent.
    """
    fundamentals = normalize(raw, symbol=symbol)
    return evaluate(fundamentals, config, extras)
