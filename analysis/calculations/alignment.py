"""
Time series alignment utilities.
Pure functions that put mixed-periodicity series on a monthly axis and rebase them.
"""

import logging
import math
from dataclasses import replace
from datetime import date
from typing import Dict, Iterable, List

from analysis.errors import EmptyOrDegenerateSeries
from analysis.models import AssetSeries

logger = logging.getLogger(__name__)

REBASE_LEVEL = 100.0


def month_start(day: date) -> date:
    return day.replace(day=1)


def resample_monthly(series: AssetSeries) -> AssetSeries:
    """
    Keep the first trading day of each month, re-dated to the first of the month.

    No interpolation or carry-forward: a month without observations is simply
    absent. A series that is already monthly passes through with its dates
    moved to first-of-month.

    Args:
        series: Daily or monthly series in chronological order

    Returns:
        New series with one observation per calendar month
    """
    monthly = []
    last_month = None

    for obs in series.observations:
        key = month_start(obs.date)
        if key == last_month:
            continue
        monthly.append(replace(obs, date=key))
        last_month = key

    logger.debug("Resampled %s: %d -> %d observations", series.name, len(series), len(monthly))
    return series.with_observations(monthly)


def unify_schema(series: AssetSeries) -> AssetSeries:
    """
    Drop intraday fields from single-value series.

    Commodity and index levels only carry one value per period, so open, high,
    low and volume are represented as absent rather than as a fake range.
    """
    if not series.category.single_value:
        return series

    return series.with_observations(
        replace(obs, open=None, high=None, low=None, volume=None)
        for obs in series.observations
    )


def rebase(series: AssetSeries, base: float = REBASE_LEVEL, decimals: int = 1) -> AssetSeries:
    """
    Scale closes so the earliest value equals ``base``.

    Formula: rebased_t = round(base * close_t / close_0, decimals)

    Args:
        series: Series with a close at its earliest date
        base: Reference level for the first observation
        decimals: Rounding precision of the rebased column

    Returns:
        New series with the ``rebased`` field populated

    Raises:
        EmptyOrDegenerateSeries: If the series is empty or close_0 is zero or missing
    """
    if len(series) == 0:
        raise EmptyOrDegenerateSeries(f"{series.name}: cannot rebase an empty series")

    c0 = series.observations[0].close
    if c0 is None or not math.isfinite(c0) or c0 == 0:
        raise EmptyOrDegenerateSeries(f"{series.name}: cannot rebase on first value {c0!r}")

    rebased = []
    for obs in series.observations:
        value = None if obs.close is None else round(base * obs.close / c0, decimals)
        rebased.append(replace(obs, rebased=value))

    return series.with_observations(rebased)


def align_series(series: AssetSeries) -> AssetSeries:
    """Resample to months, drop absent intraday fields, then rebase."""
    return rebase(unify_schema(resample_monthly(series)))


def align(series_list: Iterable[AssetSeries]) -> Dict[str, AssetSeries]:
    """
    Resample, unify and rebase every series independently.

    No cross-series join happens here; consumers use ``date_axis`` when they
    need a shared axis and must tolerate gaps.

    Returns:
        Dictionary mapping series name to aligned series, in input order
    """
    aligned = {}
    for series in series_list:
        aligned[series.name] = align_series(series)
    return aligned


def date_axis(series_list: Iterable[AssetSeries]) -> List[date]:
    """Sorted union of all dates across the given series."""
    dates = set()
    for series in series_list:
        dates.update(series.dates)
    return sorted(dates)
