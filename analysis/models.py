"""
Immutable data model for the analytics pipeline.
Every downstream value is derived from its inputs, never mutated in place.
"""

import math
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from analysis.errors import MalformedSeries, InvalidPortfolioWeights

WEIGHT_TOLERANCE = 1e-6


class AssetCategory(Enum):
    """Closed set of asset categories handled by the pipeline."""
    CRYPTO = 'crypto'
    EQUITY_INDEX = 'equity_index'
    COMMODITY = 'commodity'
    INFLATION_INDEX = 'inflation_index'
    PORTFOLIO = 'portfolio'

    @property
    def single_value(self) -> bool:
        """True for series that carry one value per period and no intraday range."""
        return _SINGLE_VALUE[self]


_SINGLE_VALUE = {
    AssetCategory.CRYPTO: False,
    AssetCategory.EQUITY_INDEX: False,
    AssetCategory.COMMODITY: True,
    AssetCategory.INFLATION_INDEX: True,
    AssetCategory.PORTFOLIO: True,
}


class ReturnKind(Enum):
    LOG = 'log'
    DISCRETE = 'discrete'


def check_dates(dates: Sequence[date], name: str) -> None:
    """
    Ensure dates are strictly increasing (which also rules out duplicates).

    Raises:
        MalformedSeries: On the first duplicate or out-of-order date
    """
    for previous, current in zip(dates, dates[1:]):
        if current == previous:
            raise MalformedSeries(f"{name}: duplicate date {current.isoformat()}")
        if current < previous:
            raise MalformedSeries(
                f"{name}: dates not increasing ({previous.isoformat()} then {current.isoformat()})"
            )


@dataclass(frozen=True)
class Observation:
    """One dated row of a series. Absent fields are None, never zero."""
    date: date
    close: Optional[float]
    open: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    volume: Optional[float] = None
    rebased: Optional[float] = None

    def value(self, column: str) -> Optional[float]:
        return getattr(self, column)


@dataclass(frozen=True)
class AssetSeries:
    """Named price series with strictly increasing, unique dates."""
    name: str
    category: AssetCategory
    observations: Tuple[Observation, ...]

    def __post_init__(self):
        if not self.name:
            raise MalformedSeries("Series name must be non-empty")
        if not isinstance(self.category, AssetCategory):
            raise MalformedSeries(f"{self.name}: unknown category {self.category!r}")
        # Accept any sequence but store a tuple
        object.__setattr__(self, 'observations', tuple(self.observations))
        check_dates(self.dates, self.name)

    def __len__(self) -> int:
        return len(self.observations)

    @property
    def dates(self) -> List[date]:
        return [obs.date for obs in self.observations]

    @property
    def closes(self) -> List[Optional[float]]:
        return [obs.close for obs in self.observations]

    def column(self, name: str) -> List[Optional[float]]:
        """Values of one observation field, in date order."""
        if name not in Observation.__dataclass_fields__ or name == 'date':
            raise KeyError(f"Unknown column: {name}")
        return [obs.value(name) for obs in self.observations]

    def with_observations(self, observations: Iterable[Observation]) -> 'AssetSeries':
        return AssetSeries(name=self.name, category=self.category, observations=tuple(observations))


@dataclass(frozen=True)
class ReturnSeries:
    """
    Period returns of one series.

    The first value is always None: there is no prior observation to compare
    against. Statistics skip None values instead of treating them as zero.
    """
    name: str
    kind: ReturnKind
    dates: Tuple[date, ...]
    values: Tuple[Optional[float], ...]

    def __post_init__(self):
        object.__setattr__(self, 'dates', tuple(self.dates))
        object.__setattr__(self, 'values', tuple(self.values))
        if len(self.dates) != len(self.values):
            raise MalformedSeries(f"{self.name}: dates and values must have same length")
        check_dates(self.dates, self.name)

    def __len__(self) -> int:
        return len(self.dates)

    def defined_values(self) -> np.ndarray:
        """Numpy array of the defined (non-missing) returns."""
        return np.array([v for v in self.values if v is not None], dtype=np.float64)

    def as_mapping(self) -> Dict[date, Optional[float]]:
        """Date to value mapping, including undefined (None) entries."""
        return dict(zip(self.dates, self.values))

    def defined_items(self) -> List[Tuple[date, float]]:
        return [(d, v) for d, v in zip(self.dates, self.values) if v is not None]


@dataclass(frozen=True)
class PortfolioConfig:
    """Ordered asset to weight mapping; weights are non-negative and sum to 1."""
    name: str
    weights: Tuple[Tuple[str, float], ...]

    def __post_init__(self):
        object.__setattr__(self, 'weights', tuple((a, float(w)) for a, w in self.weights))

        if not self.weights:
            raise InvalidPortfolioWeights(f"{self.name}: portfolio needs at least one asset")

        assets = [asset for asset, _ in self.weights]
        if len(set(assets)) != len(assets):
            raise InvalidPortfolioWeights(f"{self.name}: duplicate asset in weights {assets}")

        for asset, weight in self.weights:
            if not math.isfinite(weight) or weight < 0:
                raise InvalidPortfolioWeights(
                    f"{self.name}: weight for {asset} must be non-negative, got {weight}"
                )

        total = sum(w for _, w in self.weights)
        if abs(total - 1.0) > WEIGHT_TOLERANCE:
            raise InvalidPortfolioWeights(f"{self.name}: weights sum to {total}, expected 1.0")

    @classmethod
    def from_mapping(cls, weights: Mapping[str, float], name: Optional[str] = None) -> 'PortfolioConfig':
        items = tuple(weights.items())
        if name is None:
            name = ' / '.join(f"{asset} {weight * 100:g}%" for asset, weight in items)
        return cls(name=name, weights=items)

    @property
    def assets(self) -> List[str]:
        return [asset for asset, _ in self.weights]

    def as_dict(self) -> Dict[str, float]:
        return dict(self.weights)


@dataclass(frozen=True)
class PortfolioReturnSeries(ReturnSeries):
    """Return series of a weighted portfolio, named after its configuration."""
    config: Optional[PortfolioConfig] = None


@dataclass(frozen=True)
class PerformanceSummary:
    name: str
    kind: ReturnKind
    observations: int
    metrics: Dict[str, Optional[float]] = field(default_factory=dict)
    # Metric name -> reason it is undefined (its value is None)
    errors: Dict[str, str] = field(default_factory=dict)

    def __getitem__(self, metric: str) -> Optional[float]:
        return self.metrics[metric]

    def to_dict(self) -> Dict[str, object]:
        return {
            'name': self.name,
            'kind': self.kind.value,
            'observations': self.observations,
            **self.metrics,
            **{f"{metric}_error": message for metric, message in self.errors.items()},
        }


@dataclass(frozen=True)
class CAPMResult:
    """Single-factor regression of an asset on a benchmark over their common dates."""
    asset: str
    benchmark: str
    alpha: float
    beta: float
    information_ratio: Optional[float]
    tracking_error: float
    r_squared: float
    observations: int
    start_date: date
    end_date: date
    information_ratio_error: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        result = {
            'asset': self.asset,
            'benchmark': self.benchmark,
            'alpha': self.alpha,
            'beta': self.beta,
            'information_ratio': self.information_ratio,
            'tracking_error': self.tracking_error,
            'r_squared': self.r_squared,
            'observations': self.observations,
            'start_date': self.start_date.isoformat(),
            'end_date': self.end_date.isoformat(),
        }
        if self.information_ratio_error:
            result['information_ratio_error'] = self.information_ratio_error
        return result
