"""
Tests for normalizer functions - transform provider rows to asset series.
Covers field aliasing, blank cells and row ordering.
"""

import logging
import pytest
from datetime import date, datetime

import pandas as pd

from analysis.errors import EmptyOrDegenerateSeries, MalformedSeries
from analysis.models import AssetCategory
from ingestion.transforms.normalizers import (
    normalize_daily_prices,
    normalize_monthly_table,
    parse_date,
)
from ingestion.transforms.validators import ValidationError


def ohlcv(day, close, **fields):
    row = {'Date': date(2021, 1, day), 'Close': close}
    row.update(fields)
    return row


class TestParseDate:

    def test_date_passthrough(self):
        assert parse_date(date(2021, 1, 4)) == date(2021, 1, 4)

    def test_datetime_and_timestamp(self):
        assert parse_date(datetime(2021, 1, 4, 16, 0)) == date(2021, 1, 4)
        assert parse_date(pd.Timestamp('2021-01-04 16:00')) == date(2021, 1, 4)

    def test_iso_string(self):
        assert parse_date(' 2021-01-04 ') == date(2021, 1, 4)
        assert parse_date('2021-01-04T00:00:00') == date(2021, 1, 4)

    def test_unparseable(self):
        with pytest.raises(ValidationError, match="Unparseable date"):
            parse_date('Jan 4th')


class TestNormalizeDailyPrices:
    """Tests for normalize_daily_prices function."""

    def test_basic_rows(self):
        rows = [
            ohlcv(1, 29400.0, Open=29000.0, High=29600.0, Low=28800.0, Volume=40000),
            ohlcv(2, 29500.0, Open=29400.0, High=29900.0, Low=29300.0, Volume=41000),
        ]

        series = normalize_daily_prices(rows, name='BTC', category=AssetCategory.CRYPTO)

        assert series.name == 'BTC'
        assert series.category is AssetCategory.CRYPTO
        assert series.dates == [date(2021, 1, 1), date(2021, 1, 2)]
        first = series.observations[0]
        assert first.open == 29000.0
        assert first.volume == 40000.0
        assert first.rebased is None

    def test_provider_aliases(self):
        """Price and Vol. columns map to close and volume."""
        rows = [
            {'Date': '2021-01-04', 'Price': '3,700.65', 'Vol.': '5,000,000'},
            {'Date': '2021-01-05', 'Price': '3,726.86', 'Vol.': '-'},
        ]

        series = normalize_daily_prices(rows, name='SP500', category=AssetCategory.EQUITY_INDEX)

        assert series.closes == [3700.65, 3726.86]
        assert series.observations[0].volume == 5000000.0
        assert series.observations[1].volume is None

    def test_explicit_close_wins_over_adj_close(self):
        rows = [{'Date': date(2021, 1, 4), 'Close': 100.0, 'Adj Close': 98.0}]

        series = normalize_daily_prices(rows, name='A', category=AssetCategory.EQUITY_INDEX)

        assert series.closes == [100.0]

    def test_descending_rows_reversed(self):
        rows = [ohlcv(3, 102.0), ohlcv(2, 101.0), ohlcv(1, 100.0)]

        series = normalize_daily_prices(rows, name='A', category=AssetCategory.EQUITY_INDEX)

        assert series.dates == [date(2021, 1, 1), date(2021, 1, 2), date(2021, 1, 3)]
        assert series.closes == [100.0, 101.0, 102.0]

    def test_unordered_rows_rejected(self):
        rows = [ohlcv(1, 100.0), ohlcv(3, 102.0), ohlcv(2, 101.0)]

        with pytest.raises(MalformedSeries, match="not increasing"):
            normalize_daily_prices(rows, name='A', category=AssetCategory.EQUITY_INDEX)

    def test_duplicate_dates_not_repaired(self):
        rows = [ohlcv(1, 100.0), ohlcv(1, 100.5), ohlcv(2, 101.0)]

        with pytest.raises(MalformedSeries, match="duplicate date"):
            normalize_daily_prices(rows, name='A', category=AssetCategory.EQUITY_INDEX)

    def test_invalid_row_skipped_with_warning(self, caplog):
        rows = [
            ohlcv(1, 100.0),
            ohlcv(2, 0.0),
            ohlcv(3, 102.0, High=101.0, Low=99.0),
            ohlcv(4, None),
            ohlcv(5, 103.0),
        ]

        with caplog.at_level(logging.WARNING):
            series = normalize_daily_prices(rows, name='A', category=AssetCategory.EQUITY_INDEX)

        assert series.dates == [date(2021, 1, 1), date(2021, 1, 5)]
        assert caplog.text.count('Validation warning for A') == 3

    def test_no_valid_rows(self):
        with pytest.raises(EmptyOrDegenerateSeries, match="no observations"):
            normalize_daily_prices([ohlcv(1, -5.0)], name='A', category=AssetCategory.CRYPTO)

    def test_non_numeric_cell_skips_row(self, caplog):
        rows = [
            ohlcv(1, 29400.0, Volume='40,000'),
            ohlcv(2, 29500.0, Volume='1.2K'),
            ohlcv(3, 29700.0, Volume='41,500'),
        ]

        with caplog.at_level(logging.WARNING):
            series = normalize_daily_prices(rows, name='BTC', category=AssetCategory.CRYPTO)

        assert series.dates == [date(2021, 1, 1), date(2021, 1, 3)]
        assert series.observations[1].volume == 41500.0
        assert "Non-numeric value: '1.2K'" in caplog.text

    def test_blank_date_skips_row(self, caplog):
        rows = [ohlcv(1, 100.0), {'Date': None, 'Close': 100.5}, ohlcv(2, 101.0)]

        with caplog.at_level(logging.WARNING):
            series = normalize_daily_prices(rows, name='A', category=AssetCategory.EQUITY_INDEX)

        assert series.closes == [100.0, 101.0]
        assert 'Unparseable date' in caplog.text

    def test_only_non_numeric_cells(self):
        with pytest.raises(EmptyOrDegenerateSeries, match="no observations"):
            normalize_daily_prices([ohlcv(1, 'n/a')], name='A', category=AssetCategory.CRYPTO)

    def test_custom_date_column(self):
        rows = [
            {'Day': date(2021, 1, 4), 'Close': 100.0},
            {'Day': date(2021, 1, 5), 'Close': 101.0},
        ]

        series = normalize_daily_prices(
            rows, name='A', category=AssetCategory.EQUITY_INDEX, date_column='Day'
        )

        assert series.dates == [date(2021, 1, 4), date(2021, 1, 5)]

    def test_date_column_not_aliased(self):
        """Only the configured date column is read as the date."""
        rows = [{'Day': date(2021, 1, 4), 'Date': 'stale', 'Close': 100.0}]

        series = normalize_daily_prices(
            rows, name='A', category=AssetCategory.EQUITY_INDEX, date_column='Day'
        )

        assert series.dates == [date(2021, 1, 4)]


class TestNormalizeMonthlyTable:
    """Tests for normalize_monthly_table function."""

    COLUMNS = {
        'Gold': ('GOLD', AssetCategory.COMMODITY),
        'CPI': ('CPI', AssetCategory.INFLATION_INDEX),
    }

    def rows(self):
        return [
            {'Date': date(2021, 1, 1), 'Gold': 1866.98, 'CPI': 261.582},
            {'Date': date(2021, 2, 1), 'Gold': 1808.17, 'CPI': 263.014},
            {'Date': date(2021, 3, 1), 'Gold': 1718.23, 'CPI': None},
        ]

    def test_split_per_column(self):
        gold, cpi = normalize_monthly_table(self.rows(), columns=self.COLUMNS)

        assert gold.name == 'GOLD'
        assert gold.category is AssetCategory.COMMODITY
        assert gold.closes == [1866.98, 1808.17, 1718.23]
        assert cpi.category is AssetCategory.INFLATION_INDEX

    def test_blank_cells_dropped(self):
        _, cpi = normalize_monthly_table(self.rows(), columns=self.COLUMNS)

        assert cpi.dates == [date(2021, 1, 1), date(2021, 2, 1)]

    def test_single_value_fields_absent(self):
        gold, _ = normalize_monthly_table(self.rows(), columns=self.COLUMNS)

        first = gold.observations[0]
        assert (first.open, first.high, first.low, first.volume) == (None, None, None, None)

    def test_missing_column(self):
        with pytest.raises(ValidationError, match="Missing columns"):
            normalize_monthly_table(
                self.rows(),
                columns={'Silver': ('SILVER', AssetCategory.COMMODITY)}
            )

    def test_custom_date_column(self):
        rows = [{'Month': '2021-01-01', 'Gold': 1866.98}, {'Month': '2021-02-01', 'Gold': 1808.17}]

        (gold,) = normalize_monthly_table(
            rows,
            columns={'Gold': ('GOLD', AssetCategory.COMMODITY)},
            date_column='Month'
        )

        assert gold.dates == [date(2021, 1, 1), date(2021, 2, 1)]

    def test_bad_cell_skips_row_for_that_column(self, caplog):
        rows = self.rows()
        rows[1]['Gold'] = 'n/a'

        with caplog.at_level(logging.WARNING):
            gold, cpi = normalize_monthly_table(rows, columns=self.COLUMNS)

        assert gold.dates == [date(2021, 1, 1), date(2021, 3, 1)]
        assert cpi.dates == [date(2021, 1, 1), date(2021, 2, 1)]
        assert 'Validation warning for GOLD' in caplog.text
