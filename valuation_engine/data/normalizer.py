"""Raw fundamentals record -> CanonicalFundamentals.

The Required/Optional policy for every field lives in ``FIELD_POLICY``.
Required fields must be present, numeric, finite and nonzero; Optional
fields default to 0 and are recorded in ``defaulted_fields``.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

import pandas as pd

from valuation_engine.config import MARKET_SUFFIXES
from valuation_engine.data.models import CanonicalFundamentals, HistoricalRatioRecord
from valuation_engine.errors import InvalidSymbolError, MissingRequiredInputError

logger = logging.getLogger(__name__)

_SYMBOL_RE = re.compile(r"^[A-Z]{2,6}$")
_SUFFIX_RE = re.compile(r"\.[A-Z]{1,3}$")


@dataclass(frozen=True)
class FieldSpec:
    """Mapping from a raw record key to a CanonicalFundamentals attribute.

    Attributes:
        source_key: Primary key in the raw (camelCase) record.
        attribute: Attribute name on CanonicalFundamentals.
        required: If True, a missing, zero, or NaN value raises
            MissingRequiredInputError. If False, it defaults to 0.
        aliases: Alternative raw keys checked in order after source_key.
    """

    source_key: str
    attribute: str
    required: bool = False
    aliases: tuple[str, ...] = ()

    def keys(self) -> tuple[str, ...]:
        return (self.source_key, *self.aliases, self.attribute)


FIELD_POLICY: tuple[FieldSpec, ...] = (
    FieldSpec("eps", "eps", required=True),
    FieldSpec("peRatio", "pe_ratio", required=True, aliases=("pe",)),
    FieldSpec("sharesOutstanding", "shares_outstanding", required=True),
    FieldSpec("currentPrice", "current_price", aliases=("price",)),
    FieldSpec("dividendPerShare", "dividend_per_share", aliases=("dividend",)),
    FieldSpec("freeCashFlow", "free_cash_flow", aliases=("fcf",)),
    FieldSpec("pbRatio", "pb_ratio", aliases=("pbv",)),
    FieldSpec("bookValuePerShare", "book_value_per_share", aliases=("bookValue",)),
    FieldSpec("returnOnEquity", "return_on_equity", aliases=("roe",)),
    FieldSpec("debtToEquity", "debt_to_equity"),
    FieldSpec("grossMargin", "gross_margin"),
    FieldSpec("operatingMargin", "operating_margin"),
    FieldSpec("profitMargin", "profit_margin", aliases=("netProfitMargin",)),
    FieldSpec("workingCapital", "working_capital"),
    FieldSpec("totalAssets", "total_assets"),
    FieldSpec("retainedEarnings", "retained_earnings"),
    FieldSpec("ebit", "ebit"),
    FieldSpec("marketValueEquity", "market_value_equity", aliases=("marketCap",)),
    FieldSpec("totalLiabilities", "total_liabilities"),
    FieldSpec("sales", "sales", aliases=("revenue",)),
    FieldSpec("shareholdersEquity", "shareholders_equity", aliases=("totalEquity",)),
    FieldSpec("operatingCashFlow", "operating_cash_flow"),
    FieldSpec("capitalExpenditures", "capital_expenditures", aliases=("capex",)),
    FieldSpec("netIncome", "net_income"),
    FieldSpec("longTermDebt", "long_term_debt"),
    FieldSpec("currentRatio", "current_ratio"),
    FieldSpec("totalDebt", "total_debt"),
    FieldSpec("cash", "cash", aliases=("cashAndEquivalents",)),
    FieldSpec("enterpriseValue", "enterprise_value"),
    FieldSpec("ebitda", "ebitda"),
    FieldSpec("institutionalOwnership", "institutional_ownership"),
    FieldSpec("priceChange52w", "price_change_52w", aliases=("priceChange52Week",)),
    FieldSpec("sharesChangeYoY", "shares_change_yoy"),
    FieldSpec("sharesChangeQoQ", "shares_change_qoq"),
    FieldSpec("dividendGrowth", "dividend_growth"),
)


def _to_float(value: object) -> float | None:
    """Convert a raw value to a finite float.

    Args:
        value: Raw scalar (number, numeric string, None, NaN).

    Returns:
        Finite float, or None when the value is absent or not numeric.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        f = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if not math.isfinite(f):
        return None
    return f


def _lookup(raw: Mapping[str, Any], spec: FieldSpec) -> float | None:
    for key in spec.keys():
        if key in raw:
            value = _to_float(raw[key])
            if value is not None:
                return value
    return None


def normalize_symbol(symbol: object) -> str:
    """Normalize a ticker symbol.

    Trims whitespace, uppercases, and strips a trailing market suffix
    such as ``.BK``.

    Args:
        symbol: Raw symbol.

    Returns:
        Normalized symbol of 2-6 letters.

    Raises:
        InvalidSymbolError: If the result is not 2-6 alphabetic characters.
    """
    if not isinstance(symbol, str):
        raise InvalidSymbolError(symbol)

    cleaned = symbol.strip().upper()
    for suffix in MARKET_SUFFIXES:
        if cleaned.endswith(suffix):
            cleaned = cleaned[: -len(suffix)]
            break
    else:
        cleaned = _SUFFIX_RE.sub("", cleaned)

    if not _SYMBOL_RE.match(cleaned):
        raise InvalidSymbolError(symbol)
    return cleaned


def normalize(
    raw: Mapping[str, Any],
    symbol: str | None = None,
) -> CanonicalFundamentals:
    """Map a raw fundamentals record onto CanonicalFundamentals.

    When ``currentPrice`` is absent it is derived as ``peRatio * eps``.

    Args:
        raw: Raw record with camelCase keys (snake_case also accepted).
        symbol: Symbol override. Defaults to ``raw["symbol"]``.

    Returns:
        CanonicalFundamentals with defaulted optional fields recorded.

    Raises:
        InvalidSymbolError: If the symbol is missing or malformed.
        MissingRequiredInputError: If eps, peRatio or sharesOutstanding
            is missing, zero, or not a number.
    """
    sym = normalize_symbol(symbol if symbol is not None else raw.get("symbol"))

    values: dict[str, float] = {}
    defaulted: set[str] = set()

    for spec in FIELD_POLICY:
        value = _lookup(raw, spec)
        if spec.required:
            if value is None or value == 0:
                raise MissingRequiredInputError(spec.source_key, sym)
            values[spec.attribute] = value
        elif value is None:
            values[spec.attribute] = 0.0
            defaulted.add(spec.attribute)
        else:
            values[spec.attribute] = value

    if "current_price" in defaulted:
        values["current_price"] = values["pe_ratio"] * values["eps"]
        defaulted.discard("current_price")
        logger.debug(
            "%s: price derived from PE x EPS = %.2f", sym, values["current_price"]
        )

    if defaulted:
        logger.debug("%s: defaulted to 0: %s", sym, ", ".join(sorted(defaulted)))

    return CanonicalFundamentals(
        symbol=sym,
        defaulted_fields=frozenset(defaulted),
        **values,
    )


_HISTORY_COLUMNS: dict[str, str] = {
    "fiscalYear": "fiscal_year",
    "PE": "pe",
    "PBV": "pbv",
    "ROE": "roe",
    "ROA": "roa",
    "ROIC": "roic",
}


def parse_historical_series(
    raw_records: Iterable[Mapping[str, Any]],
) -> list[HistoricalRatioRecord]:
    """Convert raw historical ratio records into HistoricalRatioRecords.

    Order is preserved (index 0 = most recent). Missing or non-numeric
    values become None.

    Args:
        raw_records: Records shaped ``{PE, PBV, ROE, ROA, ROIC, fiscalYear}``.

    Returns:
        List of HistoricalRatioRecord in input order.
    """
    df = pd.DataFrame.from_records(list(raw_records))
    if df.empty:
        return []

    df = df.rename(columns=_HISTORY_COLUMNS)
    for column in _HISTORY_COLUMNS.values():
        if column not in df.columns:
            df[column] = None
        df[column] = pd.to_numeric(df[column], errors="coerce")

    records: list[HistoricalRatioRecord] = []
    for row in df.itertuples(index=False):
        year = _to_float(row.fiscal_year)
        records.append(
            HistoricalRatioRecord(
                fiscal_year=int(year) if year is not None else None,
                pe=_to_float(row.pe),
                pbv=_to_float(row.pbv),
                roe=_to_float(row.roe),
                roa=_to_float(row.roa),
                roic=_to_float(row.roic),
            )
        )
    return records
