"""
Returns calculation utilities.
Pure functions for log and discrete period returns from consecutive prices.
"""

import math
from typing import List, Optional, Sequence

import numpy as np

from analysis.errors import MalformedSeries
from analysis.models import AssetSeries, ReturnKind, ReturnSeries


def _check_prices(prices: Sequence[Optional[float]]) -> None:
    for i, p in enumerate(prices):
        if p is None or not math.isfinite(p):
            raise MalformedSeries(f"Missing or non-finite price at position {i}")
        if p <= 0:
            raise MalformedSeries("Zero or negative prices not allowed")


def log_returns(prices: Sequence[float]) -> List[Optional[float]]:
    """
    Calculate log returns from a price series.

    Formula: r_t = ln(P_t / P_{t-1})

    The first entry is None since there is no prior price.

    Example:
        prices = [100, 110, 121]
        Returns: [None, 0.09531, 0.09531]

    Raises:
        MalformedSeries: If any price is missing, zero or negative
    """
    _check_prices(prices)
    if not prices:
        return []

    log_ret = np.diff(np.log(np.array(prices, dtype=np.float64)))
    return [None] + [float(r) for r in log_ret]


def discrete_returns(prices: Sequence[float]) -> List[Optional[float]]:
    """
    Calculate simple returns from a price series.

    Formula: R_t = (P_t / P_{t-1}) - 1

    Example:
        prices = [100, 110, 121]
        Returns: [None, 0.10, 0.10]

    Raises:
        MalformedSeries: If any price is missing, zero or negative
    """
    _check_prices(prices)
    if not prices:
        return []

    prices_array = np.array(prices, dtype=np.float64)
    ret = prices_array[1:] / prices_array[:-1] - 1
    return [None] + [float(r) for r in ret]


_CALCULATORS = {
    ReturnKind.LOG: log_returns,
    ReturnKind.DISCRETE: discrete_returns,
}


def compute_returns(
    series: AssetSeries,
    kind: ReturnKind,
    column: str = 'close'
) -> ReturnSeries:
    """
    Derive a return series from one price column of an asset series.

    Args:
        series: Aligned asset series
        kind: ReturnKind.LOG or ReturnKind.DISCRETE
        column: 'close' or 'rebased'

    Returns:
        ReturnSeries whose first value is undefined (None)
    """
    try:
        values = _CALCULATORS[kind](series.column(column))
    except MalformedSeries as e:
        raise MalformedSeries(f"{series.name}: {e}") from e

    return ReturnSeries(name=series.name, kind=kind, dates=series.dates, values=values)


def cumulative_growth(returns: ReturnSeries) -> List[Optional[float]]:
    """
    Growth of 1 unit invested at the first date.

    Log returns compound as exp(cumsum(r)); discrete returns as cumprod(1 + r).
    The first entry is 1.0; the last equals P_last / P_first.

    Raises:
        MalformedSeries: If a return after the first date is undefined
    """
    if not returns.values:
        return []

    growth = [1.0]
    level = 0.0 if returns.kind is ReturnKind.LOG else 1.0

    for d, r in zip(returns.dates[1:], returns.values[1:]):
        if r is None:
            raise MalformedSeries(f"{returns.name}: undefined return at {d.isoformat()}")
        if returns.kind is ReturnKind.LOG:
            level += r
            growth.append(math.exp(level))
        else:
            level *= 1 + r
            growth.append(level)

    return growth
