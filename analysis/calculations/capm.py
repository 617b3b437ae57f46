"""
Single-factor (CAPM-style) regression utilities.
Regresses asset returns on benchmark returns over their common dates.

    Ra = alpha + beta * Rb + e
    beta  = Cov(Ra, Rb) / Var(Rb)
    alpha = mean(Ra) - beta * mean(Rb)
    IR    = mean(Ra - Rb) / std(Ra - Rb)
"""

import logging
from typing import Iterable, List, Tuple

import numpy as np
from scipy import stats

from analysis.calculations.performance import ZERO_VARIANCE_TOLERANCE
from analysis.errors import EmptyOrDegenerateSeries, MisalignedSeries
from analysis.models import CAPMResult, ReturnSeries

logger = logging.getLogger(__name__)


def paired_returns(
    asset: ReturnSeries,
    benchmark: ReturnSeries
) -> Tuple[list, np.ndarray, np.ndarray]:
    """
    Join two return series on the dates where both have a defined value.

    Returns:
        Tuple of (common dates, asset returns, benchmark returns)

    Raises:
        MisalignedSeries: If kinds differ or no common dates exist
    """
    if asset.kind is not benchmark.kind:
        raise MisalignedSeries(
            f"{asset.name} ({asset.kind.value}) and {benchmark.name} "
            f"({benchmark.kind.value}) use different return kinds"
        )

    bench_map = dict(benchmark.defined_items())
    common = [(d, v, bench_map[d]) for d, v in asset.defined_items() if d in bench_map]

    if not common:
        raise MisalignedSeries(f"{asset.name} and {benchmark.name} share no common dates")

    dates = [d for d, _, _ in common]
    ra = np.array([a for _, a, _ in common], dtype=np.float64)
    rb = np.array([b for _, _, b in common], dtype=np.float64)
    return dates, ra, rb


def information_ratio(ra: np.ndarray, rb: np.ndarray) -> Tuple[float, float]:
    """
    Information ratio and tracking error of asset over benchmark.

    Identical series have zero active return, so the ratio is 0.0.

    Raises:
        EmptyOrDegenerateSeries: If the active return is constant but non-zero
    """
    active = ra - rb
    tracking_error = float(np.std(active, ddof=1))
    mean_active = float(np.mean(active))

    if tracking_error <= ZERO_VARIANCE_TOLERANCE:
        if abs(mean_active) <= ZERO_VARIANCE_TOLERANCE:
            return 0.0, 0.0
        raise EmptyOrDegenerateSeries("Information ratio undefined: constant active return")

    return mean_active / tracking_error, tracking_error


def capm(asset: ReturnSeries, benchmark: ReturnSeries) -> CAPMResult:
    """
    Fit alpha and beta of an asset against a benchmark.

    A constant non-zero active return leaves the information ratio None,
    with the reason in ``information_ratio_error``; alpha and beta stand.

    Args:
        asset: Asset (or portfolio) return series
        benchmark: Benchmark return series of the same kind

    Returns:
        CAPMResult over the date intersection

    Raises:
        MisalignedSeries: If the series cannot be joined
        EmptyOrDegenerateSeries: If < 2 common observations or zero benchmark variance
    """
    dates, ra, rb = paired_returns(asset, benchmark)
    pair = f"{asset.name} vs {benchmark.name}"

    if len(dates) < 2:
        raise EmptyOrDegenerateSeries(
            f"{pair}: need at least 2 overlapping observations, have {len(dates)}"
        )

    if float(np.std(rb, ddof=1)) <= ZERO_VARIANCE_TOLERANCE:
        raise EmptyOrDegenerateSeries(f"{pair}: benchmark returns have zero variance")

    fit = stats.linregress(rb, ra)

    ir_error = None
    try:
        ir, tracking_error = information_ratio(ra, rb)
    except EmptyOrDegenerateSeries as e:
        logger.warning("%s: %s", pair, e)
        ir, ir_error = None, str(e)
        tracking_error = float(np.std(ra - rb, ddof=1))

    return CAPMResult(
        asset=asset.name,
        benchmark=benchmark.name,
        alpha=float(fit.intercept),
        beta=float(fit.slope),
        information_ratio=ir,
        tracking_error=tracking_error,
        r_squared=float(fit.rvalue ** 2),
        observations=len(dates),
        start_date=dates[0],
        end_date=dates[-1],
        information_ratio_error=ir_error,
    )


def capm_pairs(
    assets: Iterable[str],
    benchmarks: Iterable[str]
) -> List[Tuple[str, str]]:
    """Every (asset, benchmark) pair to regress, skipping an asset against itself."""
    benchmarks = list(benchmarks)
    return [(a, b) for a in assets for b in benchmarks if a != b]
