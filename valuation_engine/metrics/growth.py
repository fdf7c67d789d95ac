"""CANSLIM growth screen.

Seven scored letters (C, A, N, S, L, I, E) each contribute 0 or 1.
M (market direction) and E2 (external conditions) are informational
and excluded from the 7-point maximum. A letter whose input is absent
is reported as MISSING DATA: it scores 0 but is never counted as a
failure.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from valuation_engine.data.contracts import CompositeScore, Rating
from valuation_engine.data.models import (
    AnnualEarningsDelta,
    CanonicalFundamentals,
    QuarterlyEpsDelta,
)

logger = logging.getLogger(__name__)

MAX_SCORE = 7
SCORED_LETTERS: tuple[str, ...] = ("C", "A", "N", "S", "L", "I", "E")

DATA_NOT_AVAILABLE = "Data not available"
NOT_PROVIDED = "Not provided"
NOT_ASSESSED = "Not assessed"

GRADES: tuple[tuple[int, str], ...] = (
    (7, "A+"),
    (6, "A"),
    (5, "B"),
    (4, "C"),
    (3, "D"),
)

GRADE_RATINGS: dict[str, Rating] = {
    "A+": Rating.STRONG_BUY,
    "A": Rating.BUY,
    "B": Rating.HOLD,
    "C": Rating.HOLD,
    "D": Rating.SELL,
    "F": Rating.AVOID,
}


@dataclass(frozen=True)
class CanslimInputs:
    """Caller-supplied CANSLIM inputs. Manual values override fetched deltas.

    Attributes:
        current_quarterly_eps: Latest quarterly EPS.
        prior_year_quarter_eps: Same quarter one year earlier.
        annual_earnings_current: Latest annual net income.
        annual_earnings_3y_ago: Annual net income three years earlier.
        market_direction: "bull", "bear" or "neutral".
        market_trend: Free-text market trend description.
        external_conditions: "favorable", "neutral" or "unfavorable".
    """

    current_quarterly_eps: float | None = None
    prior_year_quarter_eps: float | None = None
    annual_earnings_current: float | None = None
    annual_earnings_3y_ago: float | None = None
    market_direction: str | None = None
    market_trend: str | None = None
    external_conditions: str | None = None


@dataclass(frozen=True)
class CriterionResult:
    """Outcome of one CANSLIM letter.

    ``passed`` is None when the letter's input was absent.
    """

    letter: str
    criteria: str
    score: int
    passed: bool | None
    value: str
    threshold: str
    note: str
    scored: bool = True

    @property
    def status(self) -> str:
        if self.passed is None:
            return "MISSING DATA"
        return "PASS" if self.passed else "FAIL"

    def to_record(self) -> dict[str, Any]:
        return {
            "letter": self.letter,
            "criteria": self.criteria,
            "score": self.score,
            "maxScore": 1 if self.scored else 0,
            "pass": bool(self.passed),
            "status": self.status,
            "value": self.value,
            "threshold": self.threshold,
            "note": self.note,
        }


def _first(*values: float | None) -> float:
    for value in values:
        if value is not None:
            return value
    return 0.0


def _result(
    letter: str,
    criteria: str,
    threshold: str,
    passed: bool,
    value: str,
    note: str,
) -> CriterionResult:
    return CriterionResult(
        letter=letter,
        criteria=criteria,
        score=1 if passed else 0,
        passed=passed,
        value=value,
        threshold=threshold,
        note=note,
    )


def _missing(
    letter: str, criteria: str, threshold: str, note: str,
    value: str = DATA_NOT_AVAILABLE, scored: bool = True,
) -> CriterionResult:
    return CriterionResult(
        letter=letter,
        criteria=criteria,
        score=0,
        passed=None,
        value=value,
        threshold=threshold,
        note=f"MISSING DATA: {note}",
        scored=scored,
    )


def score_current_earnings(
    inputs: CanslimInputs, fetched: QuarterlyEpsDelta | None
) -> CriterionResult:
    """C: quarterly EPS growth year on year of at least 18%."""
    criteria = "Current quarterly earnings growth (minimum 18% YoY)"
    threshold = ">= 18%"
    current = _first(inputs.current_quarterly_eps, fetched and fetched.current)
    prior = _first(inputs.prior_year_quarter_eps, fetched and fetched.prior_year)
    if current <= 0 or prior <= 0:
        return _missing(
            "C", criteria, threshold,
            "provide current_quarterly_eps and prior_year_quarter_eps",
        )
    growth = (current - prior) / prior * 100
    passed = growth >= 18
    return _result(
        "C", criteria, threshold, passed, f"{growth:.1f}%",
        f"Quarterly earnings growth of {growth:.1f}%"
        + ("" if passed else " is below the 18% threshold"),
    )


def score_annual_earnings(
    inputs: CanslimInputs, fetched: AnnualEarningsDelta | None
) -> CriterionResult:
    """A: three-year annual earnings CAGR of at least 25%."""
    criteria = "Annual earnings growth (25%+ over 3 years)"
    threshold = ">= 25% CAGR"
    current = _first(inputs.annual_earnings_current, fetched and fetched.current)
    base = _first(inputs.annual_earnings_3y_ago, fetched and fetched.three_years_ago)
    if current <= 0 or base <= 0:
        return _missing(
            "A", criteria, threshold,
            "provide annual_earnings_current and annual_earnings_3y_ago",
        )
    cagr = ((current / base) ** (1 / 3) - 1) * 100
    passed = cagr >= 25
    return _result(
        "A", criteria, threshold, passed, f"{cagr:.1f}% CAGR",
        f"Annual earnings growth of {cagr:.1f}% CAGR"
        + ("" if passed else " is below the 25% threshold"),
    )


def score_new_highs(f: CanonicalFundamentals) -> CriterionResult:
    """N: positive 52-week price momentum."""
    criteria = "New highs - positive 52-week momentum"
    threshold = "> 0%"
    if f.is_defaulted("price_change_52w"):
        return _missing("N", criteria, threshold, "52-week price change unavailable")
    change = f.price_change_52w
    passed = change > 0
    return _result(
        "N", criteria, threshold, passed, f"{change:.1f}%",
        f"{'Positive' if passed else 'Negative'} 52-week momentum of {change:.1f}%",
    )


def score_supply_demand(f: CanonicalFundamentals) -> CriterionResult:
    """S: shares decreasing, or growing less than 5% YoY and QoQ."""
    criteria = "Supply and demand - buybacks or manageable share issuance"
    threshold = "Negative (buyback) or < 5% increase"
    if f.is_defaulted("shares_change_yoy") and f.is_defaulted("shares_change_qoq"):
        return _missing("S", criteria, threshold, "share count changes unavailable")
    yoy = f.shares_change_yoy
    qoq = f.shares_change_qoq
    passed = yoy < 0 or (yoy < 5 and qoq < 5)
    if passed:
        note = f"Shares {'decreasing' if yoy < 0 else 'stable'}"
    else:
        note = f"Shares increasing significantly ({yoy:.1f}% YoY)"
    return _result(
        "S", criteria, threshold, passed,
        f"YoY: {yoy:.1f}%, QoQ: {qoq:.1f}%", note,
    )


def score_leader(f: CanonicalFundamentals) -> CriterionResult:
    """L: ROE of at least 15%."""
    criteria = "Leader - high ROE"
    threshold = ">= 15%"
    if f.is_defaulted("return_on_equity"):
        return _missing("L", criteria, threshold, "return on equity unavailable")
    roe = f.return_on_equity
    passed = roe >= 15
    return _result(
        "L", criteria, threshold, passed, f"{roe:.1f}%",
        f"ROE of {roe:.1f}%" + ("" if passed else " is below 15%"),
    )


def score_institutional(f: CanonicalFundamentals) -> CriterionResult:
    """I: institutional ownership between 5% and 80%."""
    criteria = "Institutional sponsorship (5-80% ownership)"
    threshold = "5% - 80%"
    if f.is_defaulted("institutional_ownership"):
        return _missing("I", criteria, threshold, "institutional ownership unavailable")
    ownership = f.institutional_ownership
    passed = 5 <= ownership <= 80
    if passed:
        note = f"Healthy institutional ownership of {ownership:.1f}%"
    elif ownership < 5:
        note = f"Low institutional ownership ({ownership:.1f}%)"
    else:
        note = f"Very high institutional ownership ({ownership:.1f}%)"
    return _result("I", criteria, threshold, passed, f"{ownership:.1f}%", note)


def score_earnings_consistency(f: CanonicalFundamentals) -> CriterionResult:
    """E: non-negative dividend growth and profit margin above 5%."""
    criteria = "Earnings consistency - dividend growth and healthy margin"
    threshold = "Dividend growth >= 0% and margin > 5%"
    absent = [
        name for name in ("dividend_growth", "profit_margin") if f.is_defaulted(name)
    ]
    if absent:
        return _missing(
            "E", criteria, threshold, f"{', '.join(absent)} unavailable"
        )
    growth = f.dividend_growth
    margin = f.profit_margin
    passed = growth >= 0 and margin > 5
    if passed:
        note = "Consistent earnings with non-negative dividend growth"
    elif growth < 0:
        note = f"Declining dividend growth ({growth:.1f}%)"
    else:
        note = f"Low profit margin ({margin:.1f}%)"
    return _result(
        "E", criteria, threshold, passed,
        f"Dividend growth: {growth:.1f}%, Margin: {margin:.1f}%", note,
    )


def score_market_direction(inputs: CanslimInputs) -> CriterionResult:
    """M: market in a confirmed uptrend. Informational."""
    criteria = "Market direction - overall market trend"
    threshold = "Bull market"
    direction = inputs.market_direction.lower() if inputs.market_direction else None
    if not direction and not inputs.market_trend:
        return _missing(
            "M", criteria, threshold,
            'provide market_direction ("bull", "bear" or "neutral")',
            value=NOT_PROVIDED, scored=False,
        )
    passed = direction == "bull"
    return CriterionResult(
        letter="M",
        criteria=criteria,
        score=1 if passed else 0,
        passed=passed,
        value=direction or inputs.market_trend or "Unknown",
        threshold=threshold,
        note=inputs.market_trend or f"Market direction: {direction}",
        scored=False,
    )


def score_external_conditions(inputs: CanslimInputs) -> CriterionResult:
    """E2: favourable macro conditions. Informational."""
    criteria = "External factors - macro conditions"
    threshold = "Favorable macro conditions"
    if not inputs.external_conditions:
        return _missing(
            "E2", criteria, threshold,
            "assess interest rates, inflation and GDP growth separately",
            value=NOT_ASSESSED, scored=False,
        )
    condition = inputs.external_conditions.lower()
    passed = condition.startswith("favo")
    return CriterionResult(
        letter="E2",
        criteria=criteria,
        score=1 if passed else 0,
        passed=passed,
        value=condition,
        threshold=threshold,
        note=f"External conditions: {condition}",
        scored=False,
    )


def grade_for(total: int) -> str:
    for minimum, grade in GRADES:
        if total >= minimum:
            return grade
    return "F"


SUGGESTED_INPUTS: dict[str, str] = {
    "C": "current_quarterly_eps, prior_year_quarter_eps",
    "A": "annual_earnings_current, annual_earnings_3y_ago",
    "M": 'market_direction ("bull", "bear", "neutral")',
    "E2": "external_conditions",
}


def compute_canslim(
    fundamentals: CanonicalFundamentals,
    inputs: CanslimInputs | None = None,
    quarterly_eps: QuarterlyEpsDelta | None = None,
    annual_earnings: AnnualEarningsDelta | None = None,
) -> CompositeScore:
    """Score a company on the CANSLIM growth criteria.

    Args:
        fundamentals: Normalized fundamentals.
        inputs: Manual overrides and informational M/E2 inputs.
        quarterly_eps: Fetched quarterly EPS delta (fallback for C).
        annual_earnings: Fetched annual earnings delta (fallback for A).

    Returns:
        CompositeScore with grade A+..F as tier and a native rating.
        ``details`` holds per-letter results and the passed, failed,
        missing_data and suggested_inputs summaries.
    """
    f = fundamentals
    if inputs is None:
        inputs = CanslimInputs()

    scored = [
        score_current_earnings(inputs, quarterly_eps),
        score_annual_earnings(inputs, annual_earnings),
        score_new_highs(f),
        score_supply_demand(f),
        score_leader(f),
        score_institutional(f),
        score_earnings_consistency(f),
    ]
    informational = [
        score_market_direction(inputs),
        score_external_conditions(inputs),
    ]

    total = sum(c.score for c in scored)
    grade = grade_for(total)
    rating = GRADE_RATINGS[grade]

    passed: list[str] = []
    failed: list[str] = []
    missing_data: list[str] = []
    missing_letters: list[str] = []
    suggested: list[str] = []
    for criterion in scored + informational:
        if criterion.passed is None:
            missing_letters.append(criterion.letter)
            missing_data.append(f"{criterion.letter}: {criterion.note}")
            if criterion.letter in SUGGESTED_INPUTS:
                suggested.append(SUGGESTED_INPUTS[criterion.letter])
        elif not criterion.scored:
            continue
        elif criterion.passed:
            passed.append(criterion.letter)
        else:
            failed.append(criterion.letter)

    logger.debug(
        "%s: CANSLIM %d/%d (%s), missing %s",
        f.symbol, total, MAX_SCORE, grade, ", ".join(missing_letters) or "none",
    )

    return CompositeScore(
        score_name="CANSLIM",
        raw_score=float(total),
        tier=grade,
        missing_inputs=tuple(missing_letters),
        rationale=(
            f"Score {total}/{MAX_SCORE} ({total / MAX_SCORE:.0%}) - "
            f"grade {grade}, {rating.value}"
        ),
        rating=rating,
        details={
            "criteria": {c.letter: c for c in scored + informational},
            "max_score": MAX_SCORE,
            "passed": passed,
            "failed": failed,
            "missing_data": missing_data,
            "suggested_inputs": list(dict.fromkeys(suggested)),
        },
    )
