#!/usr/bin/env python3
"""
Main CLI for the cross-asset risk/return workbench.
Usage: python cli.py analyze --crypto BTC.csv --equity SP500.csv --monthly gold_cpi.csv
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from analysis.analysis_job import run_analysis
from analysis.config import AnalysisConfig, ConfigError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Cross-asset risk/return analytics',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python cli.py analyze --crypto data/raw/btc.csv --equity data/raw/sp500.csv --monthly data/raw/gold_cpi.csv
  python cli.py analyze --crypto btc.csv --equity sp500.csv --monthly gold_cpi.csv --portfolios config/portfolios.yml --workers 4
        """
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    analyze = subparsers.add_parser('analyze', help='Run the full analysis')
    analyze.add_argument('--crypto', required=True, type=Path,
                         help='Daily OHLCV CSV for the crypto asset')
    analyze.add_argument('--equity', required=True, type=Path,
                         help='Daily OHLCV CSV for the equity index')
    analyze.add_argument('--monthly', required=True, type=Path,
                         help='Monthly CSV with commodity and inflation-index columns')
    analyze.add_argument('--output', type=Path,
                         help='Output directory (default: $ANALYSIS_OUTPUT_DIR or ./data/processed/analysis)')
    analyze.add_argument('--portfolios', type=Path,
                         help='YAML file with portfolio weight splits')
    analyze.add_argument('--workers', type=int,
                         help='Thread pool size (default: $ANALYSIS_WORKERS or 1)')
    analyze.add_argument('--commodity-column', default='Gold',
                         help='Commodity column in the monthly table (default: Gold)')
    analyze.add_argument('--inflation-column', default='CPI',
                         help='Inflation-index column in the monthly table (default: CPI)')
    analyze.add_argument('--quiet', '-q', action='store_true',
                         help='Minimal output (just success/failure)')
    analyze.add_argument('--verbose', '-v', action='store_true',
                         help='Debug logging')
    return parser


def main(argv=None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.WARNING if args.quiet else logging.INFO
    logging.basicConfig(level=level, format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    try:
        config = AnalysisConfig(
            crypto_path=args.crypto,
            equity_path=args.equity,
            monthly_path=args.monthly,
            output_dir=args.output,
            portfolio_config_path=args.portfolios,
            workers=args.workers,
            commodity_column=args.commodity_column,
            inflation_column=args.inflation_column,
        )
    except ConfigError as e:
        print(f"ERROR: {e}")
        return 1

    result = run_analysis(config)

    if args.quiet:
        print(result['status'])
    else:
        _print_summary(result)

    return 0 if result['status'] in ('completed', 'partial') else 1


def _ratio(value) -> str:
    return f"{value:>6.3f}" if value is not None else f"{'n/a':>6}"


def _print_summary(result) -> None:
    print(f"Status: {result['status']} ({result['duration_seconds']:.2f}s)")

    if result.get('error_message'):
        print(f"ERROR: {result['error_message']}")

    metrics = result.get('metrics')
    if not metrics:
        return

    print()
    print("Assets:")
    for name, entry in metrics['assets'].items():
        if entry['status'] == 'completed':
            print(f"  {name:<8} ann. return {entry['annualized_return']:>8.2%}  "
                  f"ann. vol {entry['annualized_volatility']:>8.2%}  "
                  f"Sharpe {_ratio(entry['sharpe_ratio'])}")
        else:
            print(f"  {name:<8} FAILED {entry['error_type']}: {entry['error_message']}")

    print()
    print("CAPM:")
    for entry in metrics['capm']:
        label = f"{entry['asset']} vs {entry['benchmark']}"
        if entry['status'] == 'completed':
            print(f"  {label:<16} alpha {entry['alpha']:>8.4f}  beta {entry['beta']:>7.3f}  "
                  f"IR {_ratio(entry['information_ratio'])}")
        else:
            print(f"  {label:<16} FAILED {entry['error_type']}: {entry['error_message']}")

    print()
    print(f"Portfolios: {len(metrics['portfolios'])}")
    if result['failures']:
        print(f"WARNING: {result['failures']} computations failed (see metrics.json)")

    print()
    for name, path in result.get('files', {}).items():
        print(f"  wrote {path}")


if __name__ == '__main__':
    sys.exit(main())
