"""DuPont decomposition of return on equity."""

from __future__ import annotations

import logging

from valuation_engine.data.contracts import CompositeScore
from valuation_engine.data.models import CanonicalFundamentals

logger = logging.getLogger(__name__)

INSUFFICIENT_DATA = "Insufficient Data"

# Relative ROE change beyond which the trend is not stable
ROE_TREND_THRESHOLD: float = 0.05


def compute_dupont(
    fundamentals: CanonicalFundamentals,
    prior_roe: float | None = None,
) -> CompositeScore:
    """Decompose ROE into margin, turnover and leverage.

    ROE = (NI / revenue) x (revenue / TA) x (TA / equity). The tier is
    the trend against ``prior_roe``: a relative change above +5% is
    Improving, below -5% Declining, otherwise Stable.

    Args:
        fundamentals: Normalized fundamentals (net income, sales, total
            assets, shareholders' equity).
        prior_roe: Prior-period ROE as a fraction (0.15 = 15%).

    Returns:
        CompositeScore whose raw score is ROE in percent.
    """
    f = fundamentals
    denominators = ("sales", "total_assets", "shareholders_equity")
    missing = [
        name for name in ("net_income", *denominators) if f.is_defaulted(name)
    ]
    zero = [name for name in denominators if getattr(f, name) == 0]
    if zero:
        missing.extend(name for name in zero if name not in missing)
        logger.debug("%s: DuPont missing %s", f.symbol, ", ".join(zero))
        return CompositeScore(
            score_name="DuPont Analysis",
            raw_score=0.0,
            tier=INSUFFICIENT_DATA,
            missing_inputs=tuple(missing),
            rationale="Revenue, total assets and equity are all required",
        )

    net_profit_margin = f.net_income / f.sales
    asset_turnover = f.sales / f.total_assets
    financial_leverage = f.total_assets / f.shareholders_equity
    roe = net_profit_margin * asset_turnover * financial_leverage

    change: float | None = None
    if prior_roe:
        change = (roe - prior_roe) / abs(prior_roe)
        if change > ROE_TREND_THRESHOLD:
            trend = "Improving"
        elif change < -ROE_TREND_THRESHOLD:
            trend = "Declining"
        else:
            trend = "Stable"
    else:
        trend = "Stable"
        missing.append("prior_roe")

    if net_profit_margin > 0.1:
        margin_label = "Strong"
    elif net_profit_margin > 0.05:
        margin_label = "Good"
    else:
        margin_label = "Weak"
    turnover_label = "Efficient" if asset_turnover > 1 else "Needs improvement"
    leverage_label = "Conservative" if financial_leverage < 2 else "Aggressive"

    return CompositeScore(
        score_name="DuPont Analysis",
        raw_score=roe * 100,
        tier=trend,
        missing_inputs=tuple(missing),
        rationale=(
            f"ROE {roe:.2%} = margin {net_profit_margin:.2%} ({margin_label}) x "
            f"turnover {asset_turnover:.2f}x ({turnover_label}) x "
            f"leverage {financial_leverage:.2f}x ({leverage_label}); {trend}"
        ),
        details={
            "net_profit_margin": net_profit_margin * 100,
            "asset_turnover": asset_turnover,
            "financial_leverage": financial_leverage,
            "roe_change": change,
        },
    )
