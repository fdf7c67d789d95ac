"""Input models, result contracts and normalization."""

from __future__ import annotations

from valuation_engine.data.models import (
    AnnualEarningsDelta,
    CanonicalFundamentals,
    HistoricalRatioRecord,
    QuarterlyEpsDelta,
)
from valuation_engine.data.normalizer import (
    normalize,
    normalize_symbol,
    parse_historical_series,
)

__all__ = [
    "AnnualEarningsDelta",
    "CanonicalFundamentals",
    "HistoricalRatioRecord",
    "QuarterlyEpsDelta",
    "normalize",
    "normalize_symbol",
    "parse_historical_series",
]
