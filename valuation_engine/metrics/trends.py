"""Historical ratio analysis: percentile rank, trend classification, statistics.

Every series is ordered most recent first (index 0 = latest period).
Functions here never re-sort by date; only ``percentile_rank`` sorts,
and only by value.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

import numpy as np
from scipy.stats import linregress  # type: ignore[import-untyped]

from valuation_engine.config import TrendsConfig
from valuation_engine.data.contracts import Signal
from valuation_engine.data.models import HistoricalRatioRecord

logger = logging.getLogger(__name__)


class Trend(Enum):
    """Direction of a valuation ratio."""

    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class ProfitabilityTrend(Enum):
    """Direction of a profitability ratio (higher is better)."""

    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


def _clean(series: Sequence[float | None]) -> list[float]:
    """Drop None and non-finite entries, preserving order."""
    return [
        float(v) for v in series
        if v is not None and math.isfinite(float(v))
    ]


def percentile_rank(value: float, series: Sequence[float | None]) -> float:
    """Rank ``value`` within ``series`` as a percentage (0 lowest, 100 highest).

    The rank is the number of entries strictly below ``value`` divided
    by ``n - 1``, clamped to [0, 100]. Values outside the series range
    therefore map to 0 or 100.

    Args:
        value: Value to rank.
        series: Reference values (order irrelevant).

    Returns:
        Percentile rank, or 50.0 when the series has fewer than 2
        distinct entries.
    """
    values = np.sort(np.asarray(_clean(series), dtype=float))
    if len(np.unique(values)) < 2:
        return 50.0
    below = int(np.searchsorted(values, value, side="left"))
    rank = below / (len(values) - 1) * 100
    return float(min(max(rank, 0.0), 100.0))


def _percent_change(
    series: Sequence[float | None], window: int
) -> float | None:
    """Relative change from the window baseline to the latest value.

    Args:
        series: Values, most recent first.
        window: Number of recent periods spanned. The baseline is the
            ``window``-th most recent value, or the oldest available.

    Returns:
        Relative change (0.05 = 5%), or None with fewer than 2 points.
        A zero baseline returns +/-inf by sign of the latest value.
    """
    if window < 1:
        raise ValueError(f"window must be >= 1, got {window}")

    values = _clean(series)
    if len(values) < 2:
        return None

    latest = values[0]
    baseline = values[min(window, len(values)) - 1]
    if baseline == 0:
        if latest == 0:
            return 0.0
        return math.copysign(math.inf, latest)
    return (latest - baseline) / abs(baseline)


def trend(
    series: Sequence[float | None],
    window: int = 3,
    stable_threshold: float = 0.05,
) -> Trend:
    """Classify a valuation ratio series as increasing, decreasing or stable.

    Args:
        series: Values, most recent first.
        window: Recent periods to span (baseline = window-th most recent).
        stable_threshold: Absolute relative change below which the
            series is stable.

    Returns:
        Trend classification. Fewer than 2 points is STABLE.
    """
    change = _percent_change(series, window)
    if change is None or abs(change) < stable_threshold:
        return Trend.STABLE
    return Trend.INCREASING if change > 0 else Trend.DECREASING


def profitability_trend(
    series: Sequence[float | None],
    window: int = 3,
    stable_threshold: float = 0.05,
) -> ProfitabilityTrend:
    """Same math as ``trend`` with improving/declining labels."""
    change = _percent_change(series, window)
    if change is None or abs(change) < stable_threshold:
        return ProfitabilityTrend.STABLE
    if change > 0:
        return ProfitabilityTrend.IMPROVING
    return ProfitabilityTrend.DECLINING


@dataclass(frozen=True)
class SeriesStatistics:
    """Summary statistics of one ratio series.

    Attributes:
        count: Number of valid observations.
        latest: Most recent value. None if empty.
        mean: Arithmetic mean. 0.0 if empty.
        minimum: Minimum. 0.0 if empty.
        maximum: Maximum. 0.0 if empty.
        slope: Least-squares slope per period in chronological order.
            None with fewer than 3 points.
    """

    count: int
    latest: float | None
    mean: float
    minimum: float
    maximum: float
    slope: float | None


def regression_slope(series: Sequence[float | None]) -> float | None:
    """Least-squares slope of a most-recent-first series over time.

    Args:
        series: Values, most recent first.

    Returns:
        Slope per period (positive = rising over time), or None with
        fewer than 3 points or a constant series.
    """
    values = _clean(series)
    if len(values) < 3:
        return None
    y = np.asarray(values[::-1], dtype=float)
    if np.all(y == y[0]):
        return 0.0
    x = np.arange(len(y), dtype=float)
    result = linregress(x, y)
    return float(result.slope)


def series_statistics(series: Sequence[float | None]) -> SeriesStatistics:
    """Compute count, latest, mean, min, max and slope of a series."""
    values = _clean(series)
    if not values:
        return SeriesStatistics(
            count=0, latest=None, mean=0.0, minimum=0.0, maximum=0.0, slope=None
        )
    arr = np.asarray(values, dtype=float)
    return SeriesStatistics(
        count=len(values),
        latest=values[0],
        mean=float(np.mean(arr)),
        minimum=float(np.min(arr)),
        maximum=float(np.max(arr)),
        slope=regression_slope(values),
    )


@dataclass(frozen=True)
class HistoricalRatioAnalysis:
    """Historical valuation and profitability analysis for one symbol.

    Attributes:
        symbol: Ticker symbol.
        periods: Number of records analysed.
        current_pe: Latest PE (or caller override).
        current_pbv: Latest P/B (or caller override).
        current_roe: Latest ROE (%).
        pe: PE statistics over positive values.
        pbv: P/B statistics over positive values.
        roe: ROE statistics.
        pe_percentile: Percentile rank of the current PE.
        pbv_percentile: Percentile rank of the current P/B.
        trends: Trend per ratio ("pe", "pbv", "roe", "roa", "roic").
        pe_status: PE vs historical average.
        pbv_status: P/B vs historical average.
        profitability_status: ROE tier description.
        overall_trend: Positive, Negative or Mixed trend summary.
        recommendation: Buy/Hold/Sell from the buy vs sell signal count.
        reasons: Signals behind the recommendation.
    """

    symbol: str
    periods: int
    current_pe: float
    current_pbv: float
    current_roe: float
    pe: SeriesStatistics
    pbv: SeriesStatistics
    roe: SeriesStatistics
    pe_percentile: float
    pbv_percentile: float
    trends: dict[str, str]
    pe_status: str
    pbv_status: str
    profitability_status: str
    overall_trend: str
    recommendation: Signal
    reasons: tuple[str, ...] = field(default_factory=tuple)

    def to_record(self) -> dict[str, object]:
        def _stats(s: SeriesStatistics) -> dict[str, object]:
            return {
                "count": s.count,
                "latest": s.latest,
                "average": s.mean,
                "min": s.minimum,
                "max": s.maximum,
                "slope": s.slope,
            }

        return {
            "symbol": self.symbol,
            "periods": self.periods,
            "currentPE": self.current_pe,
            "currentPBV": self.current_pbv,
            "currentROE": self.current_roe,
            "pe": _stats(self.pe),
            "pbv": _stats(self.pbv),
            "roe": _stats(self.roe),
            "pePercentile": self.pe_percentile,
            "pbvPercentile": self.pbv_percentile,
            "trend": dict(self.trends),
            "summary": {
                "peStatus": self.pe_status,
                "pbvStatus": self.pbv_status,
                "profitabilityStatus": self.profitability_status,
                "overallTrend": self.overall_trend,
            },
            "recommendation": self.recommendation.value,
            "reasons": list(self.reasons),
        }


def _relative_status(
    label: str, current: float, average: float, config: TrendsConfig
) -> tuple[str, int]:
    """Status text and direction (+1 cheap, -1 expensive, 0 normal)."""
    if average > 0 and current < average * config.low_ratio:
        return (
            f"{label} is low compared to historical average "
            "(potentially undervalued)",
            1,
        )
    if average > 0 and current > average * config.high_ratio:
        return (
            f"{label} is high compared to historical average "
            "(potentially overvalued)",
            -1,
        )
    return f"{label} is within normal historical range", 0


def _profitability_status(roe: float, config: TrendsConfig) -> str:
    if roe > config.roe_excellent:
        return f"Excellent profitability (ROE > {config.roe_excellent:g}%)"
    if roe > config.roe_good:
        return f"Good profitability (ROE > {config.roe_good:g}%)"
    if roe > config.roe_fair:
        return f"Moderate profitability (ROE > {config.roe_fair:g}%)"
    return f"Low profitability (ROE <= {config.roe_fair:g}%)"


def analyze_historical_ratios(
    symbol: str,
    records: Sequence[HistoricalRatioRecord],
    config: TrendsConfig | None = None,
    current_pe: float | None = None,
    current_pbv: float | None = None,
) -> HistoricalRatioAnalysis:
    """Analyse a historical ratio series for one symbol.

    PE and P/B statistics use positive values only. Current values
    default to the most recent record.

    Args:
        symbol: Ticker symbol (for logging and output).
        records: Historical records, most recent first.
        config: Trend thresholds. Defaults to TrendsConfig().
        current_pe: Override for the current PE.
        current_pbv: Override for the current P/B.

    Returns:
        HistoricalRatioAnalysis.

    Raises:
        ValueError: If ``records`` is empty.
    """
    if config is None:
        config = TrendsConfig()
    if not records:
        raise ValueError(f"{symbol}: no historical ratio records to analyse")

    pes = [r.pe for r in records if r.pe is not None and r.pe > 0]
    pbvs = [r.pbv for r in records if r.pbv is not None and r.pbv > 0]
    roes = [r.roe for r in records if r.roe is not None]
    roas = [r.roa for r in records if r.roa is not None]
    roics = [r.roic for r in records if r.roic is not None]

    latest = records[0]
    if current_pe is None:
        current_pe = latest.pe or 0.0
    if current_pbv is None:
        current_pbv = latest.pbv or 0.0
    current_roe = latest.roe or 0.0

    pe_stats = series_statistics(pes)
    pbv_stats = series_statistics(pbvs)
    roe_stats = series_statistics(roes)

    window = config.window
    threshold = config.stable_threshold
    pe_trend = trend(pes, window, threshold)
    pbv_trend = trend(pbvs, window, threshold)
    roe_trend = profitability_trend(roes, window, threshold)
    trends = {
        "pe": pe_trend.value,
        "pbv": pbv_trend.value,
        "roe": roe_trend.value,
        "roa": profitability_trend(roas, window, threshold).value,
        "roic": profitability_trend(roics, window, threshold).value,
    }

    pe_status, pe_dir = _relative_status("PE", current_pe, pe_stats.mean, config)
    pbv_status, pbv_dir = _relative_status(
        "P/B", current_pbv, pbv_stats.mean, config
    )

    # Falling multiples and rising ROE are favourable
    positive = sum([
        pe_trend is Trend.DECREASING,
        pbv_trend is Trend.DECREASING,
        roe_trend is ProfitabilityTrend.IMPROVING,
    ])
    negative = sum([
        pe_trend is Trend.INCREASING,
        pbv_trend is Trend.INCREASING,
        roe_trend is ProfitabilityTrend.DECLINING,
    ])
    if positive > negative:
        overall = (
            "Positive trend: valuation becoming more attractive "
            "while profitability improving"
        )
    elif negative > positive:
        overall = (
            "Negative trend: valuation becoming less attractive "
            "or profitability declining"
        )
    else:
        overall = "Mixed trend: no clear direction in valuation and profitability"

    buy_reasons: list[str] = []
    sell_reasons: list[str] = []
    if pe_dir > 0 and pbv_dir > 0:
        buy_reasons.append("Both PE and P/B are below historical averages")
    elif pe_dir < 0 or pbv_dir < 0:
        sell_reasons.append("PE or P/B is above historical averages")

    if roe_trend is ProfitabilityTrend.IMPROVING and current_roe > config.roe_good:
        buy_reasons.append(
            f"ROE is improving and above {config.roe_good:g}%"
        )
    elif roe_trend is ProfitabilityTrend.DECLINING:
        sell_reasons.append("ROE is declining")

    if positive > negative:
        buy_reasons.append("Overall positive trend")
    elif negative > positive:
        sell_reasons.append("Overall negative trend")

    if len(buy_reasons) > len(sell_reasons):
        recommendation = Signal.BUY
    elif len(sell_reasons) > len(buy_reasons):
        recommendation = Signal.SELL
    else:
        recommendation = Signal.HOLD

    logger.debug(
        "%s: %d periods, PE %.2f vs avg %.2f, %s",
        symbol, len(records), current_pe, pe_stats.mean, recommendation.value,
    )

    return HistoricalRatioAnalysis(
        symbol=symbol,
        periods=len(records),
        current_pe=current_pe,
        current_pbv=current_pbv,
        current_roe=current_roe,
        pe=pe_stats,
        pbv=pbv_stats,
        roe=roe_stats,
        pe_percentile=percentile_rank(current_pe, pes),
        pbv_percentile=percentile_rank(current_pbv, pbvs),
        trends=trends,
        pe_status=pe_status,
        pbv_status=pbv_status,
        profitability_status=_profitability_status(current_roe, config),
        overall_trend=overall,
        recommendation=recommendation,
        reasons=tuple(buy_reasons + sell_reasons),
    )
