"""
CSV adapter - read the tabular inputs from disk.
File IO allowed here, but minimal business logic.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Union

import pandas as pd

logger = logging.getLogger(__name__)


class CSVAdapterError(Exception):
    """Raised when an input table cannot be read."""
    pass


def read_table(path: Union[str, Path], date_column: str = 'Date') -> List[Dict[str, Any]]:
    """
    Read a CSV file into raw row dictionaries.
    Returns rows in file order - no sorting, deduplication or normalization.

    Dates are parsed to calendar days; blank cells come back as None.

    Args:
        path: CSV file path
        date_column: Column holding the observation date (case-insensitive)

    Returns:
        List of row dictionaries keyed by the file's column names

    Raises:
        CSVAdapterError: If the file is missing, empty, or has no date column
    """
    path = Path(path)
    if not path.exists():
        raise CSVAdapterError(f"Input file not found: {path}")

    try:
        df = pd.read_csv(path, thousands=',')
    except (pd.errors.EmptyDataError, pd.errors.ParserError) as e:
        raise CSVAdapterError(f"Failed to read {path}: {e}")

    df.columns = [str(c).strip() for c in df.columns]

    matches = [c for c in df.columns if c.lower() == date_column.lower()]
    if not matches:
        raise CSVAdapterError(
            f"{path}: no '{date_column}' column. File has: {list(df.columns)}"
        )
    column = matches[0]

    try:
        df[column] = pd.to_datetime(df[column]).dt.date
    except (ValueError, TypeError) as e:
        raise CSVAdapterError(f"{path}: unparseable dates in '{column}': {e}")

    if column != date_column:
        df = df.rename(columns={column: date_column})

    # NaN -> None so absent fields stay absent downstream
    df = df.astype(object).where(pd.notna(df), None)

    logger.debug("Read %d rows from %s", len(df), path)
    return df.to_dict('records')
