"""
Tests for metrics aggregator - composes all calculations into MetricsJSON.
Checks structure, return conventions and per-entity failure isolation.
"""

import pytest
from datetime import date
from unittest.mock import patch

from analysis.calculations.portfolio import aggregate_portfolios
from analysis.errors import EmptyOrDegenerateSeries, InvalidPortfolioWeights
from analysis.metrics_aggregator import (
    compose_metrics,
    count_failures,
    failure_entry,
    map_isolated,
    regress_all,
    summarize_all,
)
from analysis.models import PortfolioConfig, ReturnKind, ReturnSeries


def return_series(values, name, kind):
    dates = [date(2021, m, 1) for m in range(1, len(values) + 1)]
    return ReturnSeries(name=name, kind=kind, dates=dates, values=values)


VALUES = {
    'BTC': [None, 0.12, -0.08, 0.25, -0.15, 0.05],
    'SP500': [None, 0.02, 0.01, -0.01, 0.03, 0.015],
    'CPI': [None, 0.004, 0.006, 0.003, 0.005, 0.007],
}


def returns_of(kind):
    return {name: return_series(values, name, kind) for name, values in VALUES.items()}


class TestMapIsolated:
    """Tests for the isolating map helper."""

    def test_errors_returned_not_raised(self):
        def fn(x):
            if x == 2:
                raise EmptyOrDegenerateSeries("bad")
            return x * 10

        results = map_isolated(fn, [1, 2, 3])

        assert results[0] == 10
        assert isinstance(results[1], EmptyOrDegenerateSeries)
        assert results[2] == 30

    def test_thread_pool_preserves_order(self):
        results = map_isolated(lambda x: x * x, list(range(20)), workers=4)

        assert results == [x * x for x in range(20)]

    def test_other_exceptions_propagate(self):
        def fn(x):
            raise KeyError(x)

        with pytest.raises(KeyError):
            map_isolated(fn, [1])


class TestSummarizeAll:
    """Tests for per-asset performance entries."""

    def test_entries(self):
        entries = summarize_all(returns_of(ReturnKind.LOG))

        assert set(entries) == {'BTC', 'SP500', 'CPI'}
        assert entries['BTC']['status'] == 'completed'
        assert entries['BTC']['kind'] == 'log'
        assert entries['BTC']['observations'] == 5

    def test_degenerate_asset_isolated(self):
        returns = returns_of(ReturnKind.LOG)
        returns['SHORT'] = return_series([None, 0.01], 'SHORT', ReturnKind.LOG)

        entries = summarize_all(returns)

        assert entries['SHORT']['status'] == 'failed'
        assert entries['SHORT']['error_type'] == 'EmptyOrDegenerateSeries'
        assert entries['BTC']['status'] == 'completed'

    def test_zero_variance_asset_keeps_stats(self):
        returns = returns_of(ReturnKind.LOG)
        returns['FLAT'] = return_series([None, 0.01, 0.01, 0.01], 'FLAT', ReturnKind.LOG)

        entries = summarize_all(returns)

        assert entries['FLAT']['status'] == 'completed'
        assert entries['FLAT']['mean'] == pytest.approx(0.01)
        assert entries['FLAT']['sharpe_ratio'] is None
        assert 'zero variance' in entries['FLAT']['sharpe_ratio_error']


class TestRegressAll:
    """Tests for per-pair CAPM entries."""

    def test_pairs(self):
        entries = regress_all(returns_of(ReturnKind.LOG), ['BTC', 'SP500'], ['SP500', 'CPI'])

        pairs = [(e['asset'], e['benchmark']) for e in entries]
        assert pairs == [('BTC', 'SP500'), ('BTC', 'CPI'), ('SP500', 'CPI')]
        assert all(e['status'] == 'completed' for e in entries)

    def test_missing_benchmark_isolated(self):
        returns = returns_of(ReturnKind.LOG)
        del returns['CPI']

        entries = regress_all(returns, ['BTC'], ['SP500', 'CPI'])

        assert entries[0]['status'] == 'completed'
        assert entries[1]['status'] == 'failed'
        assert entries[1]['error_type'] == 'MisalignedSeries'
        assert entries[1]['benchmark'] == 'CPI'


class TestComposeMetrics:
    """Tests for compose_metrics."""

    def build(self, configs, workers=1):
        discrete = returns_of(ReturnKind.DISCRETE)
        portfolio_results = aggregate_portfolios(discrete, configs)
        return compose_metrics(
            asset_returns=returns_of(ReturnKind.LOG),
            portfolio_results=portfolio_results,
            portfolio_benchmark_returns={k: discrete[k] for k in ('SP500', 'CPI')},
            benchmarks=['SP500', 'CPI'],
            as_of_date=date(2021, 7, 1),
            workers=workers
        )

    def test_structure(self):
        metrics = self.build([PortfolioConfig.from_mapping({'BTC': 0.2, 'SP500': 0.8})])

        required_keys = {
            'as_of_date', 'periods_per_year', 'return_conventions', 'benchmarks',
            'assets', 'capm', 'portfolios', 'metadata'
        }
        assert required_keys.issubset(metrics.keys())
        assert metrics['as_of_date'] == '2021-07-01'
        assert metrics['return_conventions'] == {'assets': ['log'], 'portfolios': ['discrete']}

    def test_portfolio_scored_like_asset(self):
        config = PortfolioConfig.from_mapping({'BTC': 0.2, 'SP500': 0.8})

        metrics = self.build([config])
        entry = metrics['portfolios'][config.name]

        assert entry['status'] == 'completed'
        assert entry['weights'] == {'BTC': 0.2, 'SP500': 0.8}
        assert entry['performance']['kind'] == 'discrete'
        assert [c['benchmark'] for c in entry['capm']] == ['SP500', 'CPI']
        assert all(c['status'] == 'completed' for c in entry['capm'])

    def test_pure_benchmark_portfolio(self):
        config = PortfolioConfig.from_mapping({'BTC': 0.0, 'SP500': 1.0})

        metrics = self.build([config])
        sp500 = metrics['portfolios'][config.name]['capm'][0]

        assert sp500['beta'] == pytest.approx(1.0)
        assert sp500['information_ratio'] == 0.0

    def test_failed_portfolio_isolated(self):
        good = PortfolioConfig.from_mapping({'BTC': 0.5, 'SP500': 0.5})
        bad = PortfolioConfig.from_mapping({'BTC': 0.5, 'ETH': 0.5})

        metrics = self.build([good, bad])

        assert metrics['portfolios'][good.name]['status'] == 'completed'
        assert metrics['portfolios'][bad.name]['status'] == 'failed'
        assert count_failures(metrics) == 1

    def test_parallel_matches_serial(self):
        configs = [PortfolioConfig.from_mapping({'BTC': w, 'SP500': 1 - w}) for w in (0.1, 0.5)]

        with patch('analysis.metrics_aggregator.datetime') as mock_dt:
            mock_dt.now.return_value.isoformat.return_value = '2021-07-01T00:00:00'
            serial = self.build(configs)
            parallel = self.build(configs, workers=4)

        assert serial == parallel

    def test_count_failures_none(self):
        metrics = self.build([PortfolioConfig.from_mapping({'BTC': 0.5, 'SP500': 0.5})])
        assert count_failures(metrics) == 0


class TestFailureEntry:

    def test_failure_entry(self):
        entry = failure_entry(InvalidPortfolioWeights("weights sum to 0.9"))

        assert entry == {
            'status': 'failed',
            'error_type': 'InvalidPortfolioWeights',
            'error_message': 'weights sum to 0.9',
        }
