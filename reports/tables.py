"""
Output tables for the reporting and plotting layer.
Flattens composed metrics and series into pandas DataFrames.
"""

from typing import Any, Dict, Iterable, List, Mapping

import pandas as pd

from analysis.calculations.alignment import date_axis
from analysis.models import AssetSeries, ReturnSeries

PERFORMANCE_COLUMNS = [
    'name', 'status', 'kind', 'observations',
    'mean', 'min', 'max', 'median', 'q1', 'q3', 'std', 'variance',
    'annualized_return', 'annualized_volatility', 'sharpe_ratio', 'sharpe_ratio_error',
    'max_drawdown',
    'error_type', 'error_message',
]

CAPM_COLUMNS = [
    'asset', 'benchmark', 'status', 'alpha', 'beta', 'information_ratio',
    'information_ratio_error', 'tracking_error', 'r_squared', 'observations',
    'start_date', 'end_date',
    'error_type', 'error_message',
]


def performance_table(section: Mapping[str, Mapping[str, Any]]) -> pd.DataFrame:
    """
    One row per asset or portfolio, failed entries included with their error.

    Args:
        section: Name -> performance entry, as in compose_metrics output
    """
    rows = [{'name': name, **entry} for name, entry in section.items()]
    return pd.DataFrame(rows).reindex(columns=PERFORMANCE_COLUMNS)


def capm_table(entries: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    """One row per (asset, benchmark) regression."""
    return pd.DataFrame(list(entries)).reindex(columns=CAPM_COLUMNS)


def portfolio_tables(portfolios: Mapping[str, Mapping[str, Any]]) -> Dict[str, pd.DataFrame]:
    """Performance and CAPM tables for the portfolio section."""
    performance = {}
    capm_rows: List[Dict[str, Any]] = []

    for name, entry in portfolios.items():
        if entry['status'] != 'completed':
            performance[name] = entry
            continue
        performance[name] = entry['performance']
        capm_rows.extend(entry['capm'])

    perf_df = performance_table(performance)
    weights = {name: entry.get('weights') for name, entry in portfolios.items()}
    perf_df.insert(1, 'weights', perf_df['name'].map(
        lambda n: ', '.join(f'{a}={w:g}' for a, w in (weights.get(n) or {}).items())
    ))

    return {
        'performance': perf_df,
        'capm': capm_table(capm_rows),
    }


def price_frame(aligned: Mapping[str, AssetSeries], column: str = 'rebased') -> pd.DataFrame:
    """
    Wide date x asset frame of one price column on the union of dates.

    Dates a series does not cover are left as NaN.
    """
    columns = {
        name: pd.Series(series.column(column), index=series.dates, dtype='float64')
        for name, series in aligned.items()
    }
    df = pd.DataFrame(columns, index=date_axis(aligned.values()))
    df.index.name = 'date'
    return df


def returns_frame(series_list: Iterable[ReturnSeries]) -> pd.DataFrame:
    """Long frame (name, kind, date, value); undefined returns are kept as NaN."""
    rows = [
        {'name': series.name, 'kind': series.kind.value, 'date': d, 'value': v}
        for series in series_list
        for d, v in zip(series.dates, series.values)
    ]
    return pd.DataFrame(rows, columns=['name', 'kind', 'date', 'value'])
