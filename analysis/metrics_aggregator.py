"""
Metrics aggregator - composes performance, CAPM and portfolio results into MetricsJSON.
Failures are isolated per entity: one bad asset, pair or portfolio is reported
and never aborts the others.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Mapping, Sequence, TypeVar, Union

from analysis.calculations.capm import capm, capm_pairs
from analysis.calculations.performance import PERIODS_PER_YEAR, summarize
from analysis.errors import AnalyticsError, MisalignedSeries
from analysis.models import PortfolioReturnSeries, ReturnKind, ReturnSeries

logger = logging.getLogger(__name__)

CALCULATION_VERSION = '1.0.0'

T = TypeVar('T')
R = TypeVar('R')


def failure_entry(error: Exception) -> Dict[str, Any]:
    """Uniform record of an isolated failure."""
    return {
        'status': 'failed',
        'error_type': type(error).__name__,
        'error_message': str(error),
    }


def _isolated(fn: Callable[[T], R]) -> Callable[[T], Union[R, AnalyticsError]]:
    def run(item):
        try:
            return fn(item)
        except AnalyticsError as e:
            return e
    return run


def map_isolated(
    fn: Callable[[T], R],
    items: Sequence[T],
    workers: int = 1
) -> List[Union[R, AnalyticsError]]:
    """
    Apply fn to every item, returning the result or the AnalyticsError it raised.

    Order of results matches items. With workers > 1 the calls run on a
    thread pool; inputs are read-only so no locking is needed.
    """
    run = _isolated(fn)
    if workers <= 1 or len(items) <= 1:
        return [run(item) for item in items]

    with ThreadPoolExecutor(max_workers=workers) as executor:
        return list(executor.map(run, items))


def _performance_entry(result) -> Dict[str, Any]:
    if isinstance(result, AnalyticsError):
        return failure_entry(result)
    entry = {'status': 'completed'}
    entry.update(result.to_dict())
    entry.pop('name')
    return entry


def _capm_entry(pair, result) -> Dict[str, Any]:
    asset, benchmark = pair
    if isinstance(result, AnalyticsError):
        return {'asset': asset, 'benchmark': benchmark, **failure_entry(result)}
    return {'status': 'completed', **result.to_dict()}


def summarize_all(
    returns_by_name: Mapping[str, ReturnSeries],
    periods_per_year: int = PERIODS_PER_YEAR,
    workers: int = 1
) -> Dict[str, Dict[str, Any]]:
    """Performance entry for every series, keyed by name."""
    names = list(returns_by_name)
    results = map_isolated(
        lambda name: summarize(returns_by_name[name], periods_per_year),
        names,
        workers
    )

    entries = {}
    for name, result in zip(names, results):
        if isinstance(result, AnalyticsError):
            logger.warning("Performance for %s failed: %s", name, result)
        entries[name] = _performance_entry(result)
    return entries


def regress_all(
    returns_by_name: Mapping[str, ReturnSeries],
    assets: Sequence[str],
    benchmarks: Sequence[str],
    workers: int = 1
) -> List[Dict[str, Any]]:
    """
    CAPM entry for every (asset, benchmark) pair.

    A benchmark with no return series fails its pairs with MisalignedSeries.
    """
    pairs = capm_pairs(assets, benchmarks)

    def regress(pair):
        asset, benchmark = pair
        for name in pair:
            if name not in returns_by_name:
                raise MisalignedSeries(f"No return series for {name}")
        return capm(returns_by_name[asset], returns_by_name[benchmark])

    results = map_isolated(regress, pairs, workers)

    entries = []
    for pair, result in zip(pairs, results):
        if isinstance(result, AnalyticsError):
            logger.warning("CAPM %s vs %s failed: %s", pair[0], pair[1], result)
        entries.append(_capm_entry(pair, result))
    return entries


def compose_portfolios(
    portfolio_results: Mapping[str, Union[PortfolioReturnSeries, AnalyticsError]],
    benchmark_returns: Mapping[str, ReturnSeries],
    benchmarks: Sequence[str],
    periods_per_year: int = PERIODS_PER_YEAR,
    workers: int = 1
) -> Dict[str, Dict[str, Any]]:
    """
    Score every portfolio exactly like an ordinary asset.

    Args:
        portfolio_results: Output of aggregate_portfolios
        benchmark_returns: Benchmark series of the portfolios' return kind
        benchmarks: Benchmark names to regress each portfolio against
    """
    built = {n: s for n, s in portfolio_results.items() if not isinstance(s, AnalyticsError)}

    performance = summarize_all(built, periods_per_year, workers)

    combined = dict(benchmark_returns)
    combined.update(built)
    capm_entries = regress_all(combined, list(built), benchmarks, workers)

    portfolios = {}
    for name, series in portfolio_results.items():
        if isinstance(series, AnalyticsError):
            portfolios[name] = failure_entry(series)
            continue
        portfolios[name] = {
            'status': 'completed',
            'weights': series.config.as_dict() if series.config else None,
            'performance': performance[name],
            'capm': [e for e in capm_entries if e['asset'] == name],
        }
    return portfolios


def compose_metrics(
    asset_returns: Mapping[str, ReturnSeries],
    portfolio_results: Mapping[str, Union[PortfolioReturnSeries, AnalyticsError]],
    portfolio_benchmark_returns: Mapping[str, ReturnSeries],
    benchmarks: Sequence[str],
    as_of_date: date,
    periods_per_year: int = PERIODS_PER_YEAR,
    workers: int = 1
) -> Dict[str, Any]:
    """
    Compose all analytics into the standardized MetricsJSON document.

    Individual assets are analysed on their own return kind (log returns in
    the standard job) and portfolios on theirs (discrete), each with the
    benchmark series of the matching kind. The two conventions are reported
    side by side, never mixed.

    Args:
        asset_returns: Per-asset return series, all of one kind
        portfolio_results: Portfolio name -> series or the error that rejected it
        portfolio_benchmark_returns: Benchmarks in the portfolios' return kind
        benchmarks: Benchmark names
        as_of_date: Date the analysis refers to
        periods_per_year: Annualization factor
        workers: Thread pool size for independent units

    Returns:
        MetricsJSON dictionary
    """
    asset_kinds = {s.kind.value for s in asset_returns.values()}
    portfolio_kinds = {
        s.kind.value for s in portfolio_results.values() if isinstance(s, ReturnSeries)
    }

    assets = summarize_all(asset_returns, periods_per_year, workers)
    asset_capm = regress_all(asset_returns, list(asset_returns), benchmarks, workers)
    portfolios = compose_portfolios(
        portfolio_results,
        portfolio_benchmark_returns,
        benchmarks,
        periods_per_year,
        workers
    )

    return {
        'as_of_date': as_of_date.isoformat(),
        'periods_per_year': periods_per_year,
        'return_conventions': {
            'assets': sorted(asset_kinds) or [ReturnKind.LOG.value],
            'portfolios': sorted(portfolio_kinds) or [ReturnKind.DISCRETE.value],
        },
        'benchmarks': list(benchmarks),
        'assets': assets,
        'capm': asset_capm,
        'portfolios': portfolios,
        'metadata': {
            'calculated_at': datetime.now().isoformat(),
            'calculation_version': CALCULATION_VERSION,
        },
    }


def count_failures(metrics_json: Dict[str, Any]) -> int:
    """Number of failed entries across all sections."""
    failed = sum(1 for e in metrics_json.get('assets', {}).values() if e['status'] == 'failed')
    failed += sum(1 for e in metrics_json.get('capm', []) if e['status'] == 'failed')

    for entry in metrics_json.get('portfolios', {}).values():
        if entry['status'] == 'failed':
            failed += 1
            continue
        if entry['performance']['status'] == 'failed':
            failed += 1
        failed += sum(1 for e in entry['capm'] if e['status'] == 'failed')

    return failed
