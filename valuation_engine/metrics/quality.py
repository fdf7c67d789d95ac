"""Quality scores: Piotroski F-Score, cash-flow quality, and earnings quality."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from valuation_engine.data.contracts import CompositeScore
from valuation_engine.data.models import CanonicalFundamentals
from valuation_engine.metrics.safety import INSUFFICIENT_DATA, tier_for

logger = logging.getLogger(__name__)

PIOTROSKI_TIERS: tuple[tuple[float, str], ...] = (
    (8, "Excellent"),
    (6, "Good"),
    (4, "Average"),
    (2, "Weak"),
)

QUALITY_TIERS: tuple[tuple[float, str], ...] = (
    (80, "Excellent"),
    (60, "Good"),
    (40, "Average"),
    (20, "Poor"),
)


@dataclass(frozen=True)
class PiotroskiPriorPeriod:
    """Prior-period values for the year-on-year F-Score signals.

    Attributes:
        long_term_debt: Prior long-term debt.
        shares_outstanding: Prior shares outstanding.
        gross_margin: Prior gross margin (%).
        asset_turnover: Prior sales / total assets.
    """

    long_term_debt: float | None = None
    shares_outstanding: float | None = None
    gross_margin: float | None = None
    asset_turnover: float | None = None


def compute_piotroski(
    fundamentals: CanonicalFundamentals,
    prior: PiotroskiPriorPeriod | None = None,
) -> CompositeScore:
    """Compute the Piotroski F-Score (0-9).

    Signals whose inputs are unavailable score 0 and their inputs are
    listed in ``missing_inputs``; the remaining signals still count.

    Args:
        fundamentals: Normalized fundamentals for the current period.
        prior: Prior-period values for the comparison signals.

    Returns:
        CompositeScore with tier Excellent..Poor. ``details["signals"]``
        maps each signal to True/False, or None when not assessed.
    """
    f = fundamentals
    if prior is None:
        prior = PiotroskiPriorPeriod()

    signals: dict[str, bool | None] = {}
    missing: list[str] = []

    def _need(*names: str) -> bool:
        absent = [n for n in names if f.is_defaulted(n)]
        missing.extend(absent)
        return not absent

    # 1. Net income positive
    signals["net_income_positive"] = (
        f.net_income > 0 if _need("net_income") else None
    )

    # 2. Operating cash flow positive
    signals["operating_cash_flow_positive"] = (
        f.operating_cash_flow > 0 if _need("operating_cash_flow") else None
    )

    # 3. Cash earnings exceed accounting earnings
    if not f.is_defaulted("net_income") and not f.is_defaulted("operating_cash_flow"):
        signals["cash_flow_exceeds_net_income"] = f.operating_cash_flow > f.net_income
    else:
        signals["cash_flow_exceeds_net_income"] = None

    # 4. Accrual quality: NI/TA > RE/TA - NI/TA
    if (
        _need("total_assets", "retained_earnings")
        and f.total_assets != 0
        and not f.is_defaulted("net_income")
    ):
        roa = f.net_income / f.total_assets
        signals["accrual_quality"] = roa > f.retained_earnings / f.total_assets - roa
    else:
        signals["accrual_quality"] = None

    # 5. Lower long-term debt than prior period
    if prior.long_term_debt is None:
        missing.append("prior_long_term_debt")
        signals["lower_long_term_debt"] = None
    elif _need("long_term_debt"):
        signals["lower_long_term_debt"] = f.long_term_debt < prior.long_term_debt
    else:
        signals["lower_long_term_debt"] = None

    # 6. Current ratio above 1.5
    signals["current_ratio_healthy"] = (
        f.current_ratio > 1.5 if _need("current_ratio") else None
    )

    # 7. No share dilution
    if prior.shares_outstanding is not None:
        signals["no_dilution"] = f.shares_outstanding <= prior.shares_outstanding
    elif not f.is_defaulted("shares_change_yoy"):
        signals["no_dilution"] = f.shares_change_yoy <= 0
    else:
        missing.append("prior_shares_outstanding")
        signals["no_dilution"] = None

    # 8. Gross margin improving
    if prior.gross_margin is None:
        missing.append("prior_gross_margin")
        signals["gross_margin_improving"] = None
    elif _need("gross_margin"):
        signals["gross_margin_improving"] = f.gross_margin > prior.gross_margin
    else:
        signals["gross_margin_improving"] = None

    # 9. Asset turnover improving
    if prior.asset_turnover is None:
        missing.append("prior_asset_turnover")
        signals["asset_turnover_improving"] = None
    elif _need("sales", "total_assets") and f.total_assets != 0:
        turnover = f.sales / f.total_assets
        signals["asset_turnover_improving"] = turnover > prior.asset_turnover
    else:
        signals["asset_turnover_improving"] = None

    score = sum(1 for passed in signals.values() if passed)
    assessed = sum(1 for passed in signals.values() if passed is not None)
    tier = tier_for(score, PIOTROSKI_TIERS, "Poor")
    missing_inputs = tuple(dict.fromkeys(missing))

    if missing_inputs:
        logger.debug(
            "%s: F-Score assessed %d/9 signals, missing %s",
            f.symbol, assessed, ", ".join(missing_inputs),
        )

    return CompositeScore(
        score_name="Piotroski F-Score",
        raw_score=float(score),
        tier=tier,
        missing_inputs=missing_inputs,
        rationale=f"F-Score {score}/9 ({assessed} signals assessed): {tier}",
        details={"signals": signals, "signals_assessed": assessed},
    )


def compute_cash_flow_quality(
    fundamentals: CanonicalFundamentals,
    prior_operating_cash_flow: float | None = None,
) -> CompositeScore:
    """Score how well earnings convert into cash (0-100).

    Starts at 100. OCF / |NI| below 1 (-30) and below 0.8 (a further
    -20); FCF / OCF below 0.7 (-25) and below 0.5 (a further -15).
    With a prior-year OCF, shrinking OCF costs 20 and growth above 10%
    adds 10.

    Args:
        fundamentals: Normalized fundamentals (OCF, capex, net income).
        prior_operating_cash_flow: Prior-year operating cash flow.

    Returns:
        CompositeScore with tier Excellent..Very Poor.
    """
    f = fundamentals
    missing = [
        n for n in ("operating_cash_flow", "net_income", "capital_expenditures")
        if f.is_defaulted(n)
    ]
    if f.operating_cash_flow == 0 or f.net_income == 0:
        return CompositeScore(
            score_name="Cash Flow Quality",
            raw_score=0.0,
            tier=INSUFFICIENT_DATA,
            missing_inputs=tuple(missing or ["operating_cash_flow"]),
            rationale="Operating cash flow and net income are both required",
        )

    free_cash_flow = f.operating_cash_flow - abs(f.capital_expenditures)
    ocf_to_net_income = f.operating_cash_flow / abs(f.net_income)
    fcf_to_ocf = free_cash_flow / f.operating_cash_flow

    score = 100.0
    if ocf_to_net_income < 1:
        score -= 30
    if ocf_to_net_income < 0.8:
        score -= 20
    if fcf_to_ocf < 0.7:
        score -= 25
    if fcf_to_ocf < 0.5:
        score -= 15

    ocf_growth: float | None = None
    if prior_operating_cash_flow:
        ocf_growth = (
            (f.operating_cash_flow - prior_operating_cash_flow)
            / abs(prior_operating_cash_flow)
        )
        if ocf_growth < 0:
            score -= 20
        elif ocf_growth > 0.1:
            score += 10

    score = max(0.0, min(100.0, score))
    tier = tier_for(score, QUALITY_TIERS, "Very Poor")

    return CompositeScore(
        score_name="Cash Flow Quality",
        raw_score=score,
        tier=tier,
        missing_inputs=tuple(missing),
        rationale=(
            f"Cash flow quality is {tier.lower()} ({score:.0f}/100): "
            f"OCF/NI {ocf_to_net_income:.2f}, FCF/OCF {fcf_to_ocf:.2f}"
        ),
        details={
            "free_cash_flow": free_cash_flow,
            "ocf_to_net_income": ocf_to_net_income,
            "fcf_to_ocf": fcf_to_ocf,
            "ocf_growth": ocf_growth,
        },
    )


def compute_earnings_quality(
    fundamentals: CanonicalFundamentals,
    accounts_receivable: float | None = None,
    prior_accounts_receivable: float | None = None,
    prior_revenue: float | None = None,
) -> CompositeScore:
    """Score accrual-driven earnings quality (0-100).

    Accruals = (NI - OCF) / |OCF|. Accruals above 0.1 (-40) and above
    0.05 (a further -20) are penalised; below -0.05 adds 20. When
    receivables are supplied, receivable growth above 1.5x revenue
    growth costs 30 on the revenue-quality half. The final score is the
    average of the two halves.

    Args:
        fundamentals: Normalized fundamentals (NI, OCF, sales).
        accounts_receivable: Current accounts receivable.
        prior_accounts_receivable: Prior-year accounts receivable.
        prior_revenue: Prior-year revenue.

    Returns:
        CompositeScore with tier Excellent..Very Poor.
    """
    f = fundamentals
    missing = [
        n for n in ("net_income", "operating_cash_flow") if f.is_defaulted(n)
    ]
    if f.operating_cash_flow == 0:
        return CompositeScore(
            score_name="Earnings Quality",
            raw_score=0.0,
            tier=INSUFFICIENT_DATA,
            missing_inputs=tuple(missing or ["operating_cash_flow"]),
            rationale="Operating cash flow is required to measure accruals",
        )

    accruals = (f.net_income - f.operating_cash_flow) / abs(f.operating_cash_flow)

    revenue_quality = 100.0
    revenue_assessed = False
    if (
        accounts_receivable is not None
        and prior_accounts_receivable
        and prior_revenue
        and not f.is_defaulted("sales")
    ):
        ar_growth = (accounts_receivable - prior_accounts_receivable) / prior_accounts_receivable
        revenue_growth = (f.sales - prior_revenue) / prior_revenue
        if ar_growth > revenue_growth * 1.5:
            revenue_quality -= 30
        revenue_assessed = True

    accrual_quality = 100.0
    if accruals > 0.1:
        accrual_quality -= 40
    if accruals > 0.05:
        accrual_quality -= 20
    if accruals < -0.05:
        accrual_quality += 20

    score = max(0.0, min(100.0, (accrual_quality + revenue_quality) / 2))
    tier = tier_for(score, QUALITY_TIERS, "Very Poor")

    return CompositeScore(
        score_name="Earnings Quality",
        raw_score=score,
        tier=tier,
        missing_inputs=tuple(missing),
        rationale=(
            f"Earnings quality is {tier.lower()} ({score:.0f}/100), "
            f"accruals ratio {accruals:.3f}"
        ),
        details={
            "accruals": accruals,
            "accrual_quality": accrual_quality,
            "revenue_quality": revenue_quality,
            "revenue_quality_assessed": revenue_assessed,
        },
    )
