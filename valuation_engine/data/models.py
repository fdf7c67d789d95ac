"""Input data models for the engine."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class CanonicalFundamentals:
    """Normalized per-company fundamentals consumed by every model.

    Ratio fields (ROE, margins, ownership, price and share changes,
    dividend growth) are in percent units: 15.0 means 15%.

    Attributes:
        symbol: Normalized ticker symbol.
        eps: Earnings per share. Required, nonzero.
        pe_ratio: Price / earnings. Required, nonzero.
        shares_outstanding: Shares outstanding. Required, nonzero.
        current_price: Latest share price.
        dividend_per_share: Annual dividend per share.
        free_cash_flow: Annual free cash flow (company level).
        pb_ratio: Price / book value.
        book_value_per_share: Book value per share.
        return_on_equity: ROE (%).
        debt_to_equity: Debt / equity.
        gross_margin: Gross margin (%).
        operating_margin: Operating margin (%).
        profit_margin: Net profit margin (%).
        working_capital: Current assets - current liabilities.
        total_assets: Total assets.
        retained_earnings: Retained earnings.
        ebit: Earnings before interest and taxes.
        market_value_equity: Market capitalisation.
        total_liabilities: Total liabilities.
        sales: Annual revenue.
        shareholders_equity: Total shareholders' equity.
        operating_cash_flow: Annual operating cash flow.
        capital_expenditures: Annual capex (positive number).
        net_income: Annual net income.
        long_term_debt: Long-term debt.
        current_ratio: Current assets / current liabilities.
        total_debt: Total debt.
        cash: Cash and equivalents.
        enterprise_value: Enterprise value.
        ebitda: Annual EBITDA.
        institutional_ownership: Institutional ownership (%).
        price_change_52w: 52-week price change (%).
        shares_change_yoy: Shares outstanding change year on year (%).
        shares_change_qoq: Shares outstanding change quarter on quarter (%).
        dividend_growth: Dividend growth (%).
        defaulted_fields: Optional fields absent from the raw record and
            defaulted to 0.
    """

    symbol: str
    eps: float
    pe_ratio: float
    shares_outstanding: float
    current_price: float = 0.0
    dividend_per_share: float = 0.0
    free_cash_flow: float = 0.0
    pb_ratio: float = 0.0
    book_value_per_share: float = 0.0
    return_on_equity: float = 0.0
    debt_to_equity: float = 0.0
    gross_margin: float = 0.0
    operating_margin: float = 0.0
    profit_margin: float = 0.0

    # Altman inputs
    working_capital: float = 0.0
    total_assets: float = 0.0
    retained_earnings: float = 0.0
    ebit: float = 0.0
    market_value_equity: float = 0.0
    total_liabilities: float = 0.0
    sales: float = 0.0
    shareholders_equity: float = 0.0

    # Cash flow
    operating_cash_flow: float = 0.0
    capital_expenditures: float = 0.0
    net_income: float = 0.0

    # Leverage / liquidity
    long_term_debt: float = 0.0
    current_ratio: float = 0.0
    total_debt: float = 0.0
    cash: float = 0.0
    enterprise_value: float = 0.0
    ebitda: float = 0.0

    # Market / growth signals
    institutional_ownership: float = 0.0
    price_change_52w: float = 0.0
    shares_change_yoy: float = 0.0
    shares_change_qoq: float = 0.0
    dividend_growth: float = 0.0

    defaulted_fields: frozenset[str] = field(default_factory=frozenset)

    def is_defaulted(self, name: str) -> bool:
        """True when ``name`` was absent from the raw record."""
        return name in self.defaulted_fields


@dataclass(frozen=True)
class HistoricalRatioRecord:
    """One period of historical valuation and profitability ratios.

    Values are None when the period did not report the ratio.
    """

    fiscal_year: int | None = None
    pe: float | None = None
    pbv: float | None = None
    roe: float | None = None
    roa: float | None = None
    roic: float | None = None


@dataclass(frozen=True)
class QuarterlyEpsDelta:
    """Latest quarterly EPS and the same quarter one year earlier."""

    current: float | None = None
    prior_year: float | None = None


@dataclass(frozen=True)
class AnnualEarningsDelta:
    """Latest annual net income and the value three years earlier."""

    current: float | None = None
    three_years_ago: float | None = None
