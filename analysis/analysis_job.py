"""
Orchestrated analysis job - CSV inputs to MetricsJSON and chart tables.
Reads inputs, calls pure functions, persists results.
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from analysis.calculations.alignment import align_series
from analysis.calculations.portfolio import aggregate_portfolios
from analysis.calculations.returns import compute_returns
from analysis.config import AnalysisConfig
from analysis.errors import AnalyticsError
from analysis.metrics_aggregator import compose_metrics, count_failures, failure_entry, map_isolated
from analysis.models import AssetCategory, AssetSeries, ReturnKind, ReturnSeries
from ingestion.providers.csv_adapter import CSVAdapterError, read_table
from ingestion.transforms.normalizers import normalize_daily_prices, normalize_monthly_table
from ingestion.transforms.validators import ValidationError
from reports.atomic_writer import write_outputs_atomic
from reports.tables import capm_table, performance_table, portfolio_tables, price_frame, returns_frame

logger = logging.getLogger(__name__)

INPUT_ERRORS = (CSVAdapterError, ValidationError, AnalyticsError)


def load_inputs(config: AnalysisConfig) -> Tuple[List[AssetSeries], Dict[str, Exception]]:
    """
    Read and normalize the three input tables.

    A failing input only removes the series it carries.

    Returns:
        Tuple of (loaded series, series name -> error)
    """
    series = []
    failures = {}

    daily_inputs = [
        (config.crypto_path, config.crypto_name, AssetCategory.CRYPTO),
        (config.equity_path, config.equity_name, AssetCategory.EQUITY_INDEX),
    ]
    for path, name, category in daily_inputs:
        try:
            rows = read_table(path, date_column=config.date_column)
            series.append(normalize_daily_prices(
                rows, name=name, category=category, date_column=config.date_column
            ))
        except INPUT_ERRORS as e:
            logger.warning("Input %s rejected: %s", name, e)
            failures[name] = e

    try:
        monthly_rows = read_table(config.monthly_path, date_column=config.date_column)
    except CSVAdapterError as e:
        logger.warning("Monthly table rejected: %s", e)
        for name, _ in config.monthly_columns.values():
            failures[name] = e
        return series, failures

    for column, (name, category) in config.monthly_columns.items():
        try:
            series.extend(normalize_monthly_table(
                monthly_rows,
                columns={column: (name, category)},
                date_column=config.date_column
            ))
        except INPUT_ERRORS as e:
            logger.warning("Input %s rejected: %s", name, e)
            failures[name] = e

    return series, failures


def _returns_for(
    aligned: Mapping[str, AssetSeries],
    kind: ReturnKind,
    workers: int
) -> Tuple[Dict[str, ReturnSeries], Dict[str, AnalyticsError]]:
    names = list(aligned)
    results = map_isolated(lambda n: compute_returns(aligned[n], kind), names, workers)

    returns, failures = {}, {}
    for name, result in zip(names, results):
        if isinstance(result, AnalyticsError):
            failures[name] = result
        else:
            returns[name] = result
    return returns, failures


def _input_entry(series: AssetSeries) -> Dict[str, Any]:
    return {
        'status': 'completed',
        'category': series.category.value,
        'observations': len(series),
        'start_date': series.dates[0].isoformat(),
        'end_date': series.dates[-1].isoformat(),
    }


def run_analysis(config: AnalysisConfig, as_of_date: Optional[date] = None) -> Dict[str, Any]:
    """
    Run the complete cross-asset analysis and write its outputs.

    Pipeline stages:
    1. Read and normalize inputs
    2. Align to monthly and rebase
    3. Log returns per asset, discrete returns for portfolio constituents
    4. Performance and CAPM per asset, per (asset, benchmark) pair
    5. Aggregate and score portfolios
    6. Write metrics.json and CSV tables atomically

    Args:
        config: Job configuration
        as_of_date: Date recorded in the output (defaults to today)

    Returns:
        Dictionary with job status ('completed', 'partial' or 'failed'),
        output paths, failure count and the MetricsJSON document
    """
    if as_of_date is None:
        as_of_date = date.today()

    start_time = datetime.now()
    result = {
        'status': 'running',
        'output_dir': str(config.output_dir),
        'failures': 0,
        'error_message': None,
    }

    try:
        logger.info("Loading inputs")
        series, input_failures = load_inputs(config)

        logger.info("Aligning %d series to monthly", len(series))
        aligned_results = map_isolated(align_series, series, config.workers)
        aligned = {}
        for original, aligned_series in zip(series, aligned_results):
            if isinstance(aligned_series, AnalyticsError):
                logger.warning("Alignment of %s failed: %s", original.name, aligned_series)
                input_failures[original.name] = aligned_series
            else:
                aligned[original.name] = aligned_series

        asset_returns, asset_failures = _returns_for(aligned, config.asset_return_kind, config.workers)
        constituent_returns, _ = _returns_for(aligned, config.portfolio_return_kind, config.workers)

        logger.info("Aggregating %d portfolio configurations", len(config.portfolios))
        portfolio_results = dict(config.rejected_portfolios)
        portfolio_results.update(aggregate_portfolios(constituent_returns, config.portfolios))

        benchmark_returns = {
            name: constituent_returns[name]
            for name in config.benchmarks if name in constituent_returns
        }

        logger.info("Computing metrics")
        metrics_json = compose_metrics(
            asset_returns=asset_returns,
            portfolio_results=portfolio_results,
            portfolio_benchmark_returns=benchmark_returns,
            benchmarks=config.benchmarks,
            as_of_date=as_of_date,
            periods_per_year=config.periods_per_year,
            workers=config.workers
        )

        # Assets rejected before returns existed are reported alongside the rest
        for name, error in {**input_failures, **asset_failures}.items():
            metrics_json['assets'][name] = failure_entry(error)

        metrics_json['inputs'] = {name: _input_entry(s) for name, s in aligned.items()}
        for name, error in input_failures.items():
            metrics_json['inputs'][name] = failure_entry(error)

        portfolio_frames = portfolio_tables(metrics_json['portfolios'])
        portfolio_series = [s for s in portfolio_results.values() if isinstance(s, ReturnSeries)]

        frames = {
            'performance.csv': performance_table(metrics_json['assets']),
            'capm.csv': capm_table(metrics_json['capm']),
            'portfolio_performance.csv': portfolio_frames['performance'],
            'portfolio_capm.csv': portfolio_frames['capm'],
            'prices_rebased.csv': price_frame(aligned).reset_index(),
            'returns.csv': returns_frame(
                list(asset_returns.values())
                + list(constituent_returns.values())
                + portfolio_series
            ),
        }

        write_result = write_outputs_atomic({'metrics.json': metrics_json}, frames, config.output_dir)

        result['failures'] = count_failures(metrics_json)
        result['metrics'] = metrics_json
        result['files'] = {name: r['output_path'] for name, r in write_result['files'].items()}

        completed_assets = [e for e in metrics_json['assets'].values() if e['status'] == 'completed']

        if write_result['status'] != 'completed':
            result['status'] = 'failed'
            result['error_message'] = f"Failed to write {write_result['failed_files']}"
        elif not completed_assets:
            result['status'] = 'failed'
            result['error_message'] = 'No asset could be analysed'
        elif result['failures']:
            result['status'] = 'partial'
        else:
            result['status'] = 'completed'

    except Exception as e:
        logger.exception("Analysis job failed")
        result['status'] = 'failed'
        result['error_message'] = str(e)

    result['duration_seconds'] = (datetime.now() - start_time).total_seconds()
    logger.info("Analysis job %s with %d failures", result['status'], result['failures'])
    return result
