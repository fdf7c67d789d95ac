"""Safety scores: Altman Z-Score, dividend safety, and combined financial health."""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence

from valuation_engine.data.contracts import CompositeScore
from valuation_engine.data.models import CanonicalFundamentals

logger = logging.getLogger(__name__)

INSUFFICIENT_DATA = "Insufficient Data"

# (threshold, label) pairs, highest first
ALTMAN_TIERS: tuple[tuple[float, str], ...] = (
    (3.0, "Very Low"),
    (2.5, "Low"),
    (1.8, "Medium"),
    (1.0, "High"),
)

DIVIDEND_TIERS: tuple[tuple[float, str], ...] = (
    (80, "Very Safe"),
    (60, "Safe"),
    (40, "Moderate"),
    (20, "Risky"),
)

HEALTH_TIERS: tuple[tuple[float, str], ...] = (
    (80, "Excellent"),
    (60, "Good"),
    (40, "Average"),
    (20, "Weak"),
)

# Each threshold is checked independently; all that apply are subtracted.
PAYOUT_PENALTIES: tuple[tuple[float, float], ...] = ((80, 40), (60, 20), (50, 10))
FCF_PAYOUT_PENALTIES: tuple[tuple[float, float], ...] = ((70, 30), (50, 15), (40, 5))


def tier_for(score: float, tiers: Sequence[tuple[float, str]], floor: str) -> str:
    """Return the label of the first threshold the score reaches, else floor."""
    for threshold, label in tiers:
        if score >= threshold:
            return label
    return floor


def compute_altman_z(fundamentals: CanonicalFundamentals) -> CompositeScore:
    """Compute the Altman Z-Score and bankruptcy-risk tier.

    Z = 1.2 WC/TA + 1.4 RE/TA + 3.3 EBIT/TA + 0.6 MVE/TL + 1.0 Sales/TA.

    Inputs absent from the raw record are reported missing and
    contribute 0. A term whose denominator is zero contributes 0.

    Args:
        fundamentals: Normalized fundamentals.

    Returns:
        CompositeScore with tier Very Low..Very High (bankruptcy risk),
        or "Insufficient Data" when total assets are unavailable.
    """
    f = fundamentals
    inputs = (
        "working_capital", "total_assets", "retained_earnings", "ebit",
        "market_value_equity", "total_liabilities", "sales",
    )
    missing = [name for name in inputs if f.is_defaulted(name)]

    ta = f.total_assets
    tl = f.total_liabilities
    components: dict[str, float] = {}
    if ta != 0:
        components["working_capital_to_assets"] = 1.2 * f.working_capital / ta
        components["retained_earnings_to_assets"] = 1.4 * f.retained_earnings / ta
        components["ebit_to_assets"] = 3.3 * f.ebit / ta
        components["sales_to_assets"] = 1.0 * f.sales / ta
    elif "total_assets" not in missing:
        missing.append("total_assets")
    if tl != 0:
        components["equity_to_liabilities"] = 0.6 * f.market_value_equity / tl
    elif "total_liabilities" not in missing:
        missing.append("total_liabilities")

    z = sum(components.values())
    if ta == 0:
        tier = INSUFFICIENT_DATA
    else:
        tier = tier_for(z, ALTMAN_TIERS, "Very High")

    if missing:
        logger.debug("%s: Altman Z missing %s", f.symbol, ", ".join(missing))

    return CompositeScore(
        score_name="Altman Z-Score",
        raw_score=z,
        tier=tier,
        missing_inputs=tuple(missing),
        rationale=f"Z-Score {z:.2f}: {tier.lower()} bankruptcy risk",
        details={"components": components},
    )


def _dividend_growth(
    history: Sequence[float],
) -> tuple[float | None, int]:
    """Dividend CAGR and consecutive years of growth.

    Args:
        history: Annual dividends, most recent first.

    Returns:
        (CAGR as a fraction or None, consecutive growth years counted
        back from the most recent year).
    """
    if len(history) < 2:
        return None, 0

    years = len(history) - 1
    latest, oldest = history[0], history[-1]
    cagr: float | None = None
    if latest > 0 and oldest > 0:
        cagr = (latest / oldest) ** (1 / years) - 1

    streak = 0
    for newer, older in zip(history, history[1:]):
        if newer > older:
            streak += 1
        else:
            break
    return cagr, streak


def compute_dividend_safety(
    fundamentals: CanonicalFundamentals,
    dividend_history: Sequence[float] | None = None,
) -> CompositeScore:
    """Score dividend sustainability from 0 to 100.

    Starts at 100. Payout-ratio and FCF-payout penalties are checked
    threshold by threshold and every one that applies is subtracted.
    Growth (CAGR > 10% +10, else > 5% +5) and consistency (>= 5
    consecutive growth years +10, else >= 3 +5) bonuses are added.
    The result is clamped to [0, 100].

    Args:
        fundamentals: Normalized fundamentals (dividend, EPS, FCF,
            shares, price).
        dividend_history: Annual dividends per share, most recent first.
            Falls back to ``fundamentals.dividend_growth`` for the CAGR.

    Returns:
        CompositeScore with tier Very Safe..Very Risky, or "No Dividend".
    """
    f = fundamentals
    missing: list[str] = []
    dividend = f.dividend_per_share

    if dividend <= 0:
        if f.is_defaulted("dividend_per_share"):
            missing.append("dividend_per_share")
        return CompositeScore(
            score_name="Dividend Safety",
            raw_score=0.0,
            tier="No Dividend",
            missing_inputs=tuple(missing),
            rationale="Company pays no dividend",
        )

    # Payout ratios (%). Non-positive coverage means every penalty applies.
    payout = dividend / f.eps * 100 if f.eps > 0 else math.inf

    fcf_payout: float | None = None
    if f.is_defaulted("free_cash_flow"):
        missing.append("free_cash_flow")
    else:
        fcf_per_share = f.free_cash_flow / f.shares_outstanding
        fcf_payout = dividend / fcf_per_share * 100 if fcf_per_share > 0 else math.inf

    history = list(dividend_history or [])
    cagr, streak = _dividend_growth(history)
    if cagr is None and not history:
        if f.is_defaulted("dividend_growth"):
            missing.append("dividend_history")
        else:
            cagr = f.dividend_growth / 100

    score = 100.0
    penalties: list[str] = []
    for threshold, penalty in PAYOUT_PENALTIES:
        if payout > threshold:
            score -= penalty
            penalties.append(f"payout > {threshold:g}% (-{penalty:g})")
    if fcf_payout is not None:
        for threshold, penalty in FCF_PAYOUT_PENALTIES:
            if fcf_payout > threshold:
                score -= penalty
                penalties.append(f"FCF payout > {threshold:g}% (-{penalty:g})")

    if cagr is not None and cagr > 0.10:
        score += 10
    elif cagr is not None and cagr > 0.05:
        score += 5

    if streak >= 5:
        score += 10
    elif streak >= 3:
        score += 5

    score = max(0.0, min(100.0, score))
    tier = tier_for(score, DIVIDEND_TIERS, "Very Risky")
    current_yield = dividend / f.current_price * 100 if f.current_price > 0 else None

    return CompositeScore(
        score_name="Dividend Safety",
        raw_score=score,
        tier=tier,
        missing_inputs=tuple(missing),
        rationale=(
            f"Dividend appears {tier.lower()} with {score:.0f}/100 safety score"
            + (f"; {', '.join(penalties)}" if penalties else "")
        ),
        details={
            "current_yield": current_yield,
            "payout_ratio": payout if math.isfinite(payout) else None,
            "fcf_payout_ratio": (
                fcf_payout
                if fcf_payout is not None and math.isfinite(fcf_payout)
                else None
            ),
            "dividend_growth_rate": cagr,
            "years_of_growth": streak,
        },
    )


def compute_financial_health(
    altman: CompositeScore,
    piotroski: CompositeScore,
) -> CompositeScore:
    """Blend Altman Z and Piotroski F into one 0-100 health score.

    Score = round(Z / 5 * 50 + F / 9 * 50).

    Args:
        altman: Result of ``compute_altman_z``.
        piotroski: Result of ``compute_piotroski``.

    Returns:
        CompositeScore with tier Excellent..Poor.
    """
    overall = round(altman.raw_score / 5 * 50 + piotroski.raw_score / 9 * 50)
    tier = tier_for(overall, HEALTH_TIERS, "Poor")
    missing = tuple(dict.fromkeys(altman.missing_inputs + piotroski.missing_inputs))
    return CompositeScore(
        score_name="Financial Health",
        raw_score=float(overall),
        tier=tier,
        missing_inputs=missing,
        rationale=(
            f"{piotroski.tier} financial strength with "
            f"{altman.tier.lower()} bankruptcy risk; overall {overall}/100"
        ),
        details={
            "altman_z_score": altman.raw_score,
            "piotroski_f_score": piotroski.raw_score,
        },
    )
