"""
Drawdown calculation utilities.
Pure functions for maximum peak-to-trough decline of a cumulative return path.
"""

from datetime import date
from typing import Dict, Optional, Sequence, Union

import numpy as np

from analysis.calculations.returns import cumulative_growth
from analysis.errors import EmptyOrDegenerateSeries, MalformedSeries
from analysis.models import ReturnSeries


def drawdown_stats(
    levels: Sequence[float],
    dates: Sequence[date]
) -> Dict[str, Union[float, date, int, None]]:
    """
    Find the largest peak-to-trough decline of a level series.

    Args:
        levels: Prices or growth-of-1 levels in chronological order
        dates: Corresponding dates

    Returns:
        Dictionary with:
        - max_drawdown: Largest decline as decimal (negative, 0.0 if none)
        - peak_date: Date of the peak before the trough
        - trough_date: Date of the lowest point after that peak
        - recovery_date: First date the level exceeded the peak again (None if never)
        - drawdown_periods: Periods from peak to trough

    Raises:
        EmptyOrDegenerateSeries: If fewer than 2 levels
        MalformedSeries: If lengths differ or levels are not positive
    """
    if len(levels) < 2:
        raise EmptyOrDegenerateSeries("Insufficient data: need at least 2 levels")

    if len(levels) != len(dates):
        raise MalformedSeries("Levels and dates must have same length")

    if any(v <= 0 for v in levels):
        raise MalformedSeries("Zero or negative levels not allowed")

    levels_array = np.array(levels, dtype=np.float64)
    running_max = np.maximum.accumulate(levels_array)
    drawdowns = levels_array / running_max - 1

    trough_idx = int(np.argmin(drawdowns))
    max_drawdown = float(drawdowns[trough_idx])

    # Peak is the first index where the running max reached its value at the trough
    peak_idx = int(np.argmax(levels_array[:trough_idx + 1] >= running_max[trough_idx]))

    recovery_idx: Optional[int] = None
    if max_drawdown < 0:
        after = np.nonzero(levels_array[trough_idx + 1:] > running_max[trough_idx])[0]
        if after.size:
            recovery_idx = trough_idx + 1 + int(after[0])

    return {
        'max_drawdown': max_drawdown,
        'peak_date': dates[peak_idx],
        'trough_date': dates[trough_idx],
        'recovery_date': dates[recovery_idx] if recovery_idx is not None else None,
        'drawdown_periods': trough_idx - peak_idx,
    }


def return_drawdown(returns: ReturnSeries) -> Dict[str, Union[float, date, int, None]]:
    """Drawdown statistics of the growth-of-1 path implied by a return series."""
    growth = cumulative_growth(returns)
    return drawdown_stats(growth, list(returns.dates))
