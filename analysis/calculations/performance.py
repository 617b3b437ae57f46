"""
Performance metrics utilities.
Descriptive statistics, annualization and Sharpe ratio for a return series.

Annualization follows the series' return kind:
- log returns:      annualized_return = mean * P
- discrete returns: annualized_return = (1 + mean)^P - 1
Volatility is std * sqrt(P) for both. P = 12 for the monthly data used here.
"""

import logging
import math
from typing import Dict, Sequence

import numpy as np

from analysis.calculations.drawdown import return_drawdown
from analysis.errors import EmptyOrDegenerateSeries
from analysis.models import PerformanceSummary, ReturnKind, ReturnSeries

logger = logging.getLogger(__name__)

PERIODS_PER_YEAR = 12

# Standard deviations at or below this are treated as zero
ZERO_VARIANCE_TOLERANCE = 1e-12


def _as_array(values: Sequence[float]) -> np.ndarray:
    values_array = np.array([v for v in values if v is not None], dtype=np.float64)

    if len(values_array) < 2:
        raise EmptyOrDegenerateSeries(
            f"Insufficient data: need at least 2 returns, have {len(values_array)}"
        )

    if not np.all(np.isfinite(values_array)):
        raise EmptyOrDegenerateSeries("NaN or infinite values not allowed in returns")

    return values_array


def descriptive_stats(values: Sequence[float]) -> Dict[str, float]:
    """
    Descriptive statistics over the defined values of a return sequence.

    None entries (the undefined first return) are skipped. Quartiles use
    linear interpolation; std and variance are sample estimates (ddof=1).

    Raises:
        EmptyOrDegenerateSeries: If fewer than 2 defined values
    """
    values_array = _as_array(values)
    q1, median, q3 = np.percentile(values_array, [25, 50, 75])

    return {
        'mean': float(np.mean(values_array)),
        'min': float(np.min(values_array)),
        'max': float(np.max(values_array)),
        'median': float(median),
        'q1': float(q1),
        'q3': float(q3),
        'std': float(np.std(values_array, ddof=1)),
        'variance': float(np.var(values_array, ddof=1)),
    }


def annualized_return(
    mean_return: float,
    kind: ReturnKind,
    periods_per_year: int = PERIODS_PER_YEAR
) -> float:
    """Scale a mean period return to an annual figure using the kind's convention."""
    if kind is ReturnKind.LOG:
        return mean_return * periods_per_year
    return (1 + mean_return) ** periods_per_year - 1


def annualized_volatility(std: float, periods_per_year: int = PERIODS_PER_YEAR) -> float:
    return std * math.sqrt(periods_per_year)


def sharpe_ratio(values: Sequence[float]) -> float:
    """
    Classic Sharpe ratio with a zero risk-free rate: mean / std.

    Raises:
        EmptyOrDegenerateSeries: If fewer than 2 values or std is zero
    """
    values_array = _as_array(values)
    std = float(np.std(values_array, ddof=1))

    if std <= ZERO_VARIANCE_TOLERANCE:
        raise EmptyOrDegenerateSeries("Sharpe ratio undefined: returns have zero variance")

    return float(np.mean(values_array)) / std


def summarize(
    returns: ReturnSeries,
    periods_per_year: int = PERIODS_PER_YEAR
) -> PerformanceSummary:
    """
    Compute the full performance summary of a return series.

    Args:
        returns: Asset or portfolio return series
        periods_per_year: Annualization factor

    Returns:
        PerformanceSummary with descriptive stats, annualized figures,
        Sharpe ratio and max drawdown. A zero-variance series keeps its
        stats; its Sharpe ratio is None with the reason in ``errors``.

    Raises:
        EmptyOrDegenerateSeries: If fewer than 2 defined returns
    """
    try:
        stats = descriptive_stats(returns.values)
    except EmptyOrDegenerateSeries as e:
        raise EmptyOrDegenerateSeries(f"{returns.name}: {e}") from e

    metrics = dict(stats)
    errors = {}
    metrics['annualized_return'] = annualized_return(stats['mean'], returns.kind, periods_per_year)
    metrics['annualized_volatility'] = annualized_volatility(stats['std'], periods_per_year)

    try:
        metrics['sharpe_ratio'] = sharpe_ratio(returns.values)
    except EmptyOrDegenerateSeries as e:
        logger.warning("%s: %s", returns.name, e)
        metrics['sharpe_ratio'] = None
        errors['sharpe_ratio'] = str(e)

    metrics['max_drawdown'] = return_drawdown(returns)['max_drawdown']

    return PerformanceSummary(
        name=returns.name,
        kind=returns.kind,
        observations=len(returns.defined_values()),
        metrics=metrics,
        errors=errors,
    )
