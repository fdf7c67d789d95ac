"""CLI entry point for the valuation engine."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from valuation_engine.config import (
    DCFConfig,
    DDMConfig,
    EngineConfig,
    PEBandConfig,
)
from valuation_engine.data.models import AnnualEarningsDelta, QuarterlyEpsDelta
from valuation_engine.data.normalizer import normalize_symbol, parse_historical_series
from valuation_engine.metrics.growth import CanslimInputs
from valuation_engine.metrics.quality import PiotroskiPriorPeriod
from valuation_engine.metrics.trends import analyze_historical_ratios
from valuation_engine.runner import SupplementaryInputs, evaluate_symbol

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Argument list (defaults to sys.argv[1:]).

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        prog="valuation-engine",
        description="Valuation and composite scoring engine",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # evaluate command
    evaluate_parser = subparsers.add_parser(
        "evaluate", help="Value one company and write the report as JSON"
    )
    evaluate_parser.add_argument(
        "fundamentals",
        type=Path,
        help="JSON file with the fundamentals record",
    )
    evaluate_parser.add_argument(
        "--history",
        type=Path,
        default=None,
        help="JSON file with historical ratio records (most recent first)",
    )
    evaluate_parser.add_argument(
        "--canslim",
        type=Path,
        default=None,
        help="JSON file with manual CANSLIM inputs and fetched deltas",
    )
    evaluate_parser.add_argument(
        "--market",
        default="DEFAULT",
        help="Market whose default PE series is used (default: DEFAULT)",
    )
    evaluate_parser.add_argument(
        "--required-return",
        type=float,
        default=None,
        help="DDM required return (default: 0.10)",
    )
    evaluate_parser.add_argument(
        "--growth-rate",
        type=float,
        default=None,
        help="DDM and DCF growth rate (default: 0.05)",
    )
    evaluate_parser.add_argument(
        "--discount-rate",
        type=float,
        default=None,
        help="DCF discount rate (default: 0.10)",
    )
    evaluate_parser.add_argument(
        "--terminal-growth-rate",
        type=float,
        default=None,
        help="DCF terminal growth rate (default: 0.025)",
    )
    evaluate_parser.add_argument(
        "--years",
        type=int,
        default=None,
        help="DCF projection years (default: 5)",
    )
    evaluate_parser.add_argument(
        "--include-supplementary",
        action="store_true",
        help="Add discounted earnings and EV/EBITDA to the model set",
    )
    evaluate_parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Output JSON path (default: stdout)",
    )
    evaluate_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    # history command
    history_parser = subparsers.add_parser(
        "history", help="Analyse historical valuation and profitability ratios"
    )
    history_parser.add_argument(
        "history",
        type=Path,
        help="JSON file with historical ratio records (most recent first)",
    )
    history_parser.add_argument(
        "--symbol",
        required=True,
        help="Ticker symbol",
    )
    history_parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Output JSON path (default: stdout)",
    )
    history_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    return parser.parse_args(argv)


def _read_json(path: Path) -> Any:
    with path.open() as fh:
        return json.load(fh)


def _write_json(record: dict[str, Any], output: Path | None) -> None:
    text = json.dumps(record, indent=2)
    if output is None:
        sys.stdout.write(text + "\n")
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text + "\n")
    logger.info("Report written to %s", output)


def build_config(args: argparse.Namespace) -> EngineConfig:
    """Build an EngineConfig from CLI overrides.

    Args:
        args: Parsed ``evaluate`` arguments.

    Returns:
        EngineConfig with defaults for every unset option.
    """
    ddm = DDMConfig()
    dcf = DCFConfig()
    if args.required_return is not None:
        ddm.required_return = args.required_return
    if args.growth_rate is not None:
        ddm.growth_rate = args.growth_rate
        dcf.growth_rate = args.growth_rate
    if args.discount_rate is not None:
        dcf.discount_rate = args.discount_rate
    if args.terminal_growth_rate is not None:
        dcf.terminal_growth_rate = args.terminal_growth_rate
    if args.years is not None:
        dcf.projection_years = args.years

    return EngineConfig(
        pe_band=PEBandConfig(market=args.market),
        ddm=ddm,
        dcf=dcf,
        include_supplementary_models=args.include_supplementary,
    )


def build_extras(
    raw: dict[str, Any],
    history_raw: list[dict[str, Any]] | None,
    canslim_raw: dict[str, Any] | None,
) -> SupplementaryInputs:
    """Collect optional inputs from the fundamentals and CANSLIM records.

    Recognised fundamentals keys: ``dividendHistory``, ``previousROE``
    (fraction), ``previousYearOCF``, ``accountsReceivable``,
    ``previousYearAR``, ``previousYearRevenue`` and ``priorPeriod`` (longTermDebt,
    sharesOutstanding, grossMargin, assetTurnover). The CANSLIM record
    takes the manual input names plus ``quarterlyEps`` {current,
    priorYear} and ``annualEarnings`` {current, threeYearsAgo}.
    """
    canslim_raw = canslim_raw or {}
    prior = raw.get("priorPeriod") or {}
    quarterly = canslim_raw.get("quarterlyEps")
    annual = canslim_raw.get("annualEarnings")

    return SupplementaryInputs(
        history=parse_historical_series(history_raw or []),
        canslim=CanslimInputs(
            current_quarterly_eps=canslim_raw.get("currentQuarterlyEPS"),
            prior_year_quarter_eps=canslim_raw.get("priorYearQuarterEPS"),
            annual_earnings_current=canslim_raw.get("annualEarningsCurrentYear"),
            annual_earnings_3y_ago=canslim_raw.get("annualEarnings3YearsAgo"),
            market_direction=canslim_raw.get("marketDirection"),
            market_trend=canslim_raw.get("marketTrend"),
            external_conditions=canslim_raw.get("externalConditions"),
        ),
        quarterly_eps=(
            QuarterlyEpsDelta(quarterly.get("current"), quarterly.get("priorYear"))
            if quarterly else None
        ),
        annual_earnings=(
            AnnualEarningsDelta(annual.get("current"), annual.get("threeYearsAgo"))
            if annual else None
        ),
        piotroski_prior=PiotroskiPriorPeriod(
            long_term_debt=prior.get("longTermDebt"),
            shares_outstanding=prior.get("sharesOutstanding"),
            gross_margin=prior.get("grossMargin"),
            asset_turnover=prior.get("assetTurnover"),
        ),
        dividend_history=tuple(raw.get("dividendHistory") or ()),
        prior_roe=raw.get("previousROE"),
        prior_operating_cash_flow=raw.get("previousYearOCF"),
        accounts_receivable=raw.get("accountsReceivable"),
        prior_accounts_receivable=raw.get("previousYearAR"),
        prior_revenue=raw.get("previousYearRevenue"),
    )


def run_evaluate(args: argparse.Namespace) -> None:
    """Execute the evaluate command.

    Args:
        args: Parsed CLI arguments.
    """
    raw = _read_json(args.fundamentals)
    history_raw = _read_json(args.history) if args.history else None
    canslim_raw = _read_json(args.canslim) if args.canslim else None

    config = build_config(args)
    extras = build_extras(raw, history_raw, canslim_raw)
    report = evaluate_symbol(raw, config, extras)

    logger.info(
        "%s: %s, confidence %s, data quality %s",
        report.symbol,
        report.verdict.overall_recommendation.value,
        report.synthesis.confidence,
        report.synthesis.data_quality,
    )
    _write_json(report.to_record(), args.output)


def run_history(args: argparse.Namespace) -> None:
    """Execute the history command.

    Args:
        args: Parsed CLI arguments.
    """
    symbol = normalize_symbol(args.symbol)
    records = parse_historical_series(_read_json(args.history))
    analysis = analyze_historical_ratios(symbol, records)
    _write_json(analysis.to_record(), args.output)


def main(argv: list[str] | None = None) -> None:
    """Main entry point.

    Args:
        argv: Argument list (defaults to sys.argv[1:]).
    """
    args = _parse_args(argv)

    # Configure logging
    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        if args.command == "evaluate":
            run_evaluate(args)
        elif args.command == "history":
            run_history(args)
        else:
            logger.error("Unknown command: %s", args.command)
            sys.exit(1)
    except ValueError as exc:
        logger.error("%s", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
