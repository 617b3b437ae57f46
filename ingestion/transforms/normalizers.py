"""
Normalizers for transforming raw table rows to immutable asset series.
Pure functions - no IO, network, or side effects.
Minimal normalization - only when necessary.
"""

import logging
import math
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from analysis.models import AssetCategory, AssetSeries, Observation
from ingestion.transforms.validators import (
    ValidationError,
    validate_date_order,
    validate_observation_row,
)

logger = logging.getLogger(__name__)

# Provider column name -> canonical field. Exports differ in naming.
FIELD_ALIASES = {
    'open': 'open',
    'high': 'high',
    'low': 'low',
    'close': 'close',
    'price': 'close',
    'adj close': 'close',
    'volume': 'volume',
    'vol.': 'volume',
}


def parse_date(value: Any) -> date:
    """
    Parse a date cell to a calendar day.

    Accepts date/datetime objects (including pandas Timestamps) and ISO strings.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            pass
    raise ValidationError(f"Unparseable date: {value!r}")


def _number(value: Any) -> Optional[float]:
    """Cell to float, mapping blanks and NaN to None (absent, not zero)."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.replace(',', '').strip()
        if not value or value == '-':
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Non-numeric value: {value!r}")
    return None if math.isnan(number) else number


def _canonical_row(raw: Mapping[str, Any], date_column: str = 'Date') -> Dict[str, Any]:
    date_key = date_column.strip().lower()
    row = {}
    for key, value in raw.items():
        key = str(key).strip().lower()
        field = 'date' if key == date_key else FIELD_ALIASES.get(key)
        # First alias wins: an explicit Close is not overwritten by Adj Close
        if field is None or field in row:
            continue
        row[field] = parse_date(value) if field == 'date' else _number(value)
    return row


def _chronological(rows: List[Dict[str, Any]], name: str) -> List[Dict[str, Any]]:
    """
    Return rows oldest-first.

    Exports often list newest rows first; a file in strictly descending date
    order is reversed. Any other disorder is left for validate_date_order.
    """
    dates = [row['date'] for row in rows]
    if len(dates) > 1 and all(a > b for a, b in zip(dates, dates[1:])):
        logger.debug("%s: rows in descending date order, reversing", name)
        return rows[::-1]
    return rows


def _raw_date(raw: Mapping[str, Any], date_column: str) -> Any:
    for key, value in raw.items():
        if str(key).strip().lower() == date_column.strip().lower():
            return value
    return 'unknown'


def _build_series(
    rows: List[Dict[str, Any]],
    name: str,
    category: AssetCategory,
    total: Optional[int] = None
) -> AssetSeries:
    valid_rows = []
    for row in rows:
        try:
            validate_observation_row(row)
            valid_rows.append(row)
        except ValidationError as e:
            logger.warning("Validation warning for %s %s: %s", name, row.get('date', 'unknown'), e)

    valid_rows = _chronological(valid_rows, name)
    validate_date_order([row['date'] for row in valid_rows], name)

    observations = [
        Observation(
            date=row['date'],
            close=row['close'],
            open=row.get('open'),
            high=row.get('high'),
            low=row.get('low'),
            volume=row.get('volume'),
        )
        for row in valid_rows
    ]

    logger.info("Normalized %s: %d of %d rows kept", name, len(observations),
                len(rows) if total is None else total)
    return AssetSeries(name=name, category=category, observations=observations)


def normalize_daily_prices(
    raw_rows: List[Dict[str, Any]],
    *,
    name: str,
    category: AssetCategory,
    date_column: str = 'Date'
) -> AssetSeries:
    """
    Transform provider-native daily OHLCV rows to an AssetSeries.

    Minimal normalization:
    - Date cells to date objects
    - Field name mapping (Price/Adj Close -> close, Vol. -> volume)
    - Blank cells to None
    - Newest-first files reversed

    Invalid rows are skipped with a warning. Duplicate or out-of-order dates
    are not repaired.

    Args:
        raw_rows: List of provider-specific row dictionaries
        name: Series identifier (e.g. 'BTC')
        category: Asset category
        date_column: Column holding the observation date (case-insensitive)

    Returns:
        Immutable AssetSeries

    Raises:
        MalformedSeries: On duplicate or non-monotonic dates
        EmptyOrDegenerateSeries: If no valid rows remain
    """
    rows = []
    for raw in raw_rows:
        try:
            rows.append(_canonical_row(raw, date_column))
        except ValidationError as e:
            logger.warning("Validation warning for %s %s: %s", name, _raw_date(raw, date_column), e)
    return _build_series(rows, name, category, total=len(raw_rows))


def normalize_monthly_table(
    raw_rows: List[Dict[str, Any]],
    *,
    columns: Mapping[str, Tuple[str, AssetCategory]],
    date_column: str = 'Date'
) -> List[AssetSeries]:
    """
    Split a monthly multi-column table into one single-value series per column.

    Each series keeps only the rows where its column has a value; open, high,
    low and volume stay absent.

    Rows with an unparseable date or value are skipped with a warning.

    Args:
        raw_rows: Rows with a date column and one column per series
        columns: Table column -> (series name, category)
        date_column: Name of the date column

    Returns:
        List of AssetSeries in the order of ``columns``

    Raises:
        ValidationError: If a requested column is not in the table
    """
    if raw_rows:
        available = set(raw_rows[0].keys())
        missing = [c for c in [date_column, *columns] if c not in available]
        if missing:
            raise ValidationError(f"Missing columns {missing}; table has {sorted(available)}")

    series = []
    for column, (name, category) in columns.items():
        rows = []
        for raw in raw_rows:
            try:
                value = _number(raw.get(column))
                if value is None:
                    continue
                rows.append({'date': parse_date(raw[date_column]), 'close': value})
            except ValidationError as e:
                logger.warning("Validation warning for %s %s: %s", name, raw.get(date_column), e)
        series.append(_build_series(rows, name, category))

    return series
