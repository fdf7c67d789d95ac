"""Engine configuration dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field

# Fallback historical PE series when the caller supplies none.
DEFAULT_HISTORICAL_PES: tuple[float, ...] = (
    15, 18, 20, 22, 25, 23, 21, 19, 17, 16, 18, 20,
)

# Per-market historical PE series. Keys are upper-case market codes.
MARKET_HISTORICAL_PES: dict[str, tuple[float, ...]] = {
    "DEFAULT": DEFAULT_HISTORICAL_PES,
    "SET": (8, 10, 12, 15, 18, 20, 22, 25, 15, 13, 11, 9),
}

# Trailing market suffixes stripped during symbol normalization.
MARKET_SUFFIXES: tuple[str, ...] = (".BK",)


@dataclass
class PEBandConfig:
    """PE-band valuation parameters."""

    market: str = "DEFAULT"
    historical_pes: tuple[float, ...] | None = None

    def resolve_pes(self) -> tuple[float, ...]:
        """Return the caller-supplied PE series, else the market default."""
        if self.historical_pes is not None:
            return tuple(self.historical_pes)
        return MARKET_HISTORICAL_PES.get(
            self.market.upper(), DEFAULT_HISTORICAL_PES
        )


@dataclass
class DDMConfig:
    """Gordon growth dividend discount parameters."""

    required_return: float = 0.10
    growth_rate: float = 0.05

    # Margin of safety bands (premium of price over intrinsic value, %)
    buy_below_pct: float = -20.0
    sell_above_pct: float = 20.0


@dataclass
class DCFConfig:
    """DCF valuation parameters."""

    growth_rate: float = 0.05
    discount_rate: float = 0.10
    terminal_growth_rate: float = 0.025
    projection_years: int = 5

    buy_below_pct: float = -20.0
    sell_above_pct: float = 20.0


@dataclass
class GrahamConfig:
    """Graham Number parameters."""

    # Max PE 15 x max P/B 1.5
    multiplier: float = 22.5
    buy_min_pct: float = 30.0
    hold_min_pct: float = 0.0


@dataclass
class AssetBasedConfig:
    """Asset-based valuation parameters."""

    liquidation_discount: float = 0.30
    buy_min_pct: float = 50.0
    hold_min_pct: float = 0.0


@dataclass
class DiscountedEarningsConfig:
    """Discounted earnings valuation parameters."""

    growth_rate: float = 0.05
    discount_rate: float = 0.10
    projection_years: int = 10
    terminal_pe: float = 15.0
    buy_min_pct: float = 20.0
    hold_min_pct: float = -20.0


@dataclass
class EVEBITDAConfig:
    """EV/EBITDA relative valuation parameters."""

    industry_average: float | None = None
    undervalued_ratio: float = 0.8
    overvalued_ratio: float = 1.2

    # Absolute multiples used without an industry average
    absolute_buy_below: float = 6.0
    absolute_sell_above: float = 12.0


@dataclass
class TrendsConfig:
    """Historical ratio trend parameters."""

    window: int = 3
    stable_threshold: float = 0.05

    # Status bands relative to the series average
    low_ratio: float = 0.8
    high_ratio: float = 1.2

    # ROE status tiers (percent)
    roe_excellent: float = 15.0
    roe_good: float = 10.0
    roe_fair: float = 5.0


@dataclass
class AggregatorConfig:
    """Risk tier bands on the overall margin of safety (percent)."""

    very_low_min: float = 50.0
    low_min: float = 30.0
    medium_min: float = 10.0
    high_min: float = -10.0


@dataclass
class SynthesisConfig:
    """Confidence and data-quality thresholds."""

    # Missing/defaulted occurrences allowed per data-quality tier
    high_quality_max_missing: int = 2
    medium_quality_max_missing: int = 6


@dataclass
class EngineConfig:
    """Bundle of every engine parameter set."""

    pe_band: PEBandConfig = field(default_factory=PEBandConfig)
    ddm: DDMConfig = field(default_factory=DDMConfig)
    dcf: DCFConfig = field(default_factory=DCFConfig)
    graham: GrahamConfig = field(default_factory=GrahamConfig)
    asset_based: AssetBasedConfig = field(default_factory=AssetBasedConfig)
    discounted_earnings: DiscountedEarningsConfig = field(
        default_factory=DiscountedEarningsConfig
    )
    ev_ebitda: EVEBITDAConfig = field(default_factory=EVEBITDAConfig)
    trends: TrendsConfig = field(default_factory=TrendsConfig)
    aggregator: AggregatorConfig = field(default_factory=AggregatorConfig)
    synthesis: SynthesisConfig = field(default_factory=SynthesisConfig)

    # Discounted earnings and EV/EBITDA join the vote only when enabled
    include_supplementary_models: bool = False
