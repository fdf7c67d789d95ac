"""DCF intrinsic value calculation.

Annual free cash flow is compounded forward for ``projection_years``
and discounted at the discount rate. Terminal value uses the Gordon
Growth Model on the final projected cash flow and is discounted back
by ``(1 + r) ** years``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from valuation_engine.analysis.margins import (
    compute_premium_pct,
    not_applicable,
    require_positive_price,
)
from valuation_engine.config import DCFConfig
from valuation_engine.data.contracts import ModelResult, Signal
from valuation_engine.data.models import CanonicalFundamentals
from valuation_engine.errors import InvalidParameterInvariant

logger = logging.getLogger(__name__)

MODEL_NAME = "Discounted Cash Flow"


@dataclass(frozen=True)
class ProjectedYear:
    """One projected year of free cash flow."""

    year: int
    fcf: float
    present_value: float


def project_cash_flows(
    base_fcf: float,
    growth_rate: float,
    discount_rate: float,
    years: int,
) -> list[ProjectedYear]:
    """Compound and discount free cash flow year by year.

    Args:
        base_fcf: Current annual free cash flow.
        growth_rate: Annual growth during the projection.
        discount_rate: Annual discount rate.
        years: Number of projected years (0 returns an empty list).

    Returns:
        ProjectedYear per year, year 1 first.
    """
    projections: list[ProjectedYear] = []
    fcf = base_fcf
    for year in range(1, years + 1):
        fcf = fcf * (1 + growth_rate)
        pv = fcf / (1 + discount_rate) ** year
        projections.append(ProjectedYear(year=year, fcf=fcf, present_value=pv))
    return projections


def calculate_dcf(
    fundamentals: CanonicalFundamentals,
    config: DCFConfig | None = None,
) -> ModelResult:
    """Calculate DCF intrinsic value per share.

    IV = (sum of discounted projected FCF + discounted terminal value)
    / shares outstanding. With ``projection_years=0`` and growth equal
    to terminal growth this reduces to single-stage Gordon growth on
    current FCF.

    Args:
        fundamentals: Normalized fundamentals (FCF, shares, price).
        config: Growth, discount, terminal growth and projection years.

    Returns:
        ModelResult with projections in ``details``. Not applicable when
        free cash flow is exactly zero.

    Raises:
        InvalidParameterInvariant: If FCF is negative, shares are not
            positive, discount rate <= terminal growth rate, projection
            years is negative, or the price is not positive.
    """
    if config is None:
        config = DCFConfig()

    fcf = fundamentals.free_cash_flow
    if fcf < 0:
        raise InvalidParameterInvariant(
            MODEL_NAME,
            "free_cash_flow > 0",
            f"free cash flow must be positive, got {fcf}",
        )

    shares = fundamentals.shares_outstanding
    if shares <= 0:
        raise InvalidParameterInvariant(
            MODEL_NAME,
            "shares_outstanding > 0",
            f"shares outstanding must be positive, got {shares}",
        )

    r = config.discount_rate
    tg = config.terminal_growth_rate
    if r <= tg:
        raise InvalidParameterInvariant(
            MODEL_NAME,
            "discount_rate > terminal_growth_rate",
            f"discount rate ({r}) must be greater than "
            f"terminal growth rate ({tg})",
        )

    years = config.projection_years
    if years < 0:
        raise InvalidParameterInvariant(
            MODEL_NAME,
            "projection_years >= 0",
            f"projection years cannot be negative, got {years}",
        )

    if fcf == 0:
        logger.debug("%s: zero free cash flow, DCF not applicable",
                     fundamentals.symbol)
        return not_applicable(
            MODEL_NAME, "Free cash flow is zero; DCF does not apply"
        )

    price = require_positive_price(MODEL_NAME, fundamentals)

    projections = project_cash_flows(fcf, config.growth_rate, r, years)
    npv = sum(p.present_value for p in projections)

    # Terminal value: Gordon Growth Model on final projected cash flow
    final_fcf = projections[-1].fcf if projections else fcf
    terminal_value = final_fcf * (1 + tg) / (r - tg)
    terminal_pv = terminal_value / (1 + r) ** years

    enterprise_pv = npv + terminal_pv
    intrinsic_value = enterprise_pv / shares
    premium = compute_premium_pct(price, intrinsic_value)

    if premium is not None and premium < config.buy_below_pct:
        signal = Signal.BUY
    elif premium is not None and premium > config.sell_above_pct:
        signal = Signal.SELL
    else:
        signal = Signal.HOLD

    logger.debug(
        "%s: DCF NPV %.0f + TV PV %.0f over %.0f shares -> %.2f",
        fundamentals.symbol, npv, terminal_pv, shares, intrinsic_value,
    )

    return ModelResult(
        model_name=MODEL_NAME,
        intrinsic_value=intrinsic_value,
        margin_of_safety_pct=premium,
        recommendation=signal,
        rationale=(
            f"{years}-year FCF projection at {config.growth_rate:.2%} growth, "
            f"{r:.2%} discount, {tg:.2%} terminal growth = "
            f"{intrinsic_value:.2f}/share vs price {price:.2f}"
        ),
        details={
            "projections": [
                {"year": p.year, "fcf": p.fcf, "present_value": p.present_value}
                for p in projections
            ],
            "npv": npv,
            "terminal_value": terminal_value,
            "terminal_present_value": terminal_pv,
            "enterprise_present_value": enterprise_pv,
            "growth_rate": config.growth_rate,
            "discount_rate": r,
            "terminal_growth_rate": tg,
        },
    )
