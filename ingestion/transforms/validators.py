"""
Core validators for canonical observation rows.
Pure functions - no IO, network, or side effects.
"""

import math
from datetime import date
from typing import Dict, Any, List

from analysis.errors import EmptyOrDegenerateSeries
from analysis.models import check_dates


class ValidationError(ValueError):
    """Raised when data validation fails."""
    pass


PRICE_FIELDS = ['open', 'high', 'low', 'close']


def _check_number(row: Dict[str, Any], field: str) -> None:
    value = row[field]
    if not isinstance(value, (int, float)):
        raise ValidationError(f"{field} must be numeric, got {type(value)}")

    if not math.isfinite(value):
        raise ValidationError(f"{field} must be finite, got {value}")


def validate_observation_row(row: Dict[str, Any]) -> None:
    """
    Validate a canonical observation row.

    Only 'date' and 'close' are required. Open, high, low and volume are
    optional, but when present they must be consistent with each other.

    Args:
        row: Dictionary containing one dated observation

    Raises:
        ValidationError: If validation fails
    """
    missing = {'date', 'close'} - set(row.keys())
    if missing:
        raise ValidationError(f"Missing required keys: {missing}")

    if not isinstance(row['date'], date):
        raise ValidationError(f"date must be date, got {type(row['date'])}")

    present = [f for f in PRICE_FIELDS if row.get(f) is not None]
    if 'close' not in present:
        raise ValidationError(f"close is missing for {row['date'].isoformat()}")

    for field in present:
        _check_number(row, field)
        if row[field] <= 0:
            raise ValidationError(f"{field} must be positive, got {row[field]}")

    if row.get('volume') is not None:
        _check_number(row, 'volume')
        if row['volume'] < 0:
            raise ValidationError(f"volume must be non-negative, got {row['volume']}")

    # Range checks only apply when the row carries a full intraday range
    if row.get('high') is None or row.get('low') is None:
        return

    high = row['high']
    low = row['low']

    if high < low:
        raise ValidationError(f"high ({high}) must be >= low ({low})")

    for field in ('open', 'close'):
        value = row.get(field)
        if value is None:
            continue
        if value > high:
            raise ValidationError(f"high ({high}) must be >= {field} ({value})")
        if value < low:
            raise ValidationError(f"low ({low}) must be <= {field} ({value})")


def validate_date_order(dates: List[date], name: str) -> None:
    """
    Validate that a series' dates are strictly increasing and unique.

    Raises:
        EmptyOrDegenerateSeries: If there are no dates
        MalformedSeries: On duplicate or out-of-order dates
    """
    if not dates:
        raise EmptyOrDegenerateSeries(f"{name}: series has no observations")
    check_dates(dates, name)
