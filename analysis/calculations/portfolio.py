"""
Portfolio aggregation utilities.
Combines weighted constituent return series into portfolio return series.
"""

import logging
from typing import Dict, Iterable, List, Mapping, Sequence, Union

from analysis.errors import AnalyticsError, MisalignedSeries
from analysis.models import PortfolioConfig, PortfolioReturnSeries, ReturnSeries

logger = logging.getLogger(__name__)

DEFAULT_FIRST_WEIGHTS = (0.0, 0.05, 0.10, 0.20, 0.30, 0.50, 1.0)


def portfolio_returns(
    returns_by_asset: Mapping[str, ReturnSeries],
    config: PortfolioConfig
) -> PortfolioReturnSeries:
    """
    Weighted sum of constituent returns on the dates every constituent shares.

    Formula: R_p,t = sum_i(w_i * R_i,t)

    Zero-weight constituents still restrict the date intersection. A date
    where any constituent is undefined (its first period) is undefined for
    the portfolio as well.

    Args:
        returns_by_asset: Available return series keyed by asset name
        config: Portfolio weights

    Returns:
        PortfolioReturnSeries named after the configuration

    Raises:
        MisalignedSeries: If a constituent is missing, kinds differ, or no
            date is shared by all constituents
    """
    missing = [a for a in config.assets if a not in returns_by_asset]
    if missing:
        raise MisalignedSeries(f"{config.name}: no return series for {missing}")

    constituents = [returns_by_asset[a] for a in config.assets]

    kinds = {series.kind for series in constituents}
    if len(kinds) > 1:
        raise MisalignedSeries(
            f"{config.name}: constituents mix return kinds {sorted(k.value for k in kinds)}"
        )

    mappings = [series.as_mapping() for series in constituents]
    common = set(mappings[0])
    for mapping in mappings[1:]:
        common &= set(mapping)

    if not common:
        raise MisalignedSeries(f"{config.name}: constituents share no common dates")

    dates = sorted(common)
    weights = [w for _, w in config.weights]
    values = []

    for d in dates:
        period = [mapping[d] for mapping in mappings]
        if any(r is None for r in period):
            values.append(None)
        else:
            values.append(sum(w * r for w, r in zip(weights, period)))

    return PortfolioReturnSeries(
        name=config.name,
        kind=constituents[0].kind,
        dates=dates,
        values=values,
        config=config,
    )


def two_asset_configs(
    first: str,
    second: str,
    first_weights: Sequence[float] = DEFAULT_FIRST_WEIGHTS
) -> List[PortfolioConfig]:
    """
    Enumerate the fixed weight splits for a pair of assets.

    Example:
        two_asset_configs('BTC', 'SP500', [0.1, 0.5])
        -> ['BTC 10% / SP500 90%', 'BTC 50% / SP500 50%']
    """
    configs = []
    for w in first_weights:
        # 1 - 0.7 is 0.30000000000000004 in floating point
        configs.append(PortfolioConfig.from_mapping({first: w, second: round(1.0 - w, 10)}))
    return configs


def aggregate_portfolios(
    returns_by_asset: Mapping[str, ReturnSeries],
    configs: Iterable[PortfolioConfig]
) -> Dict[str, Union[PortfolioReturnSeries, AnalyticsError]]:
    """
    Build every configured portfolio, isolating failures per configuration.

    Returns:
        Dictionary mapping configuration name to its series, or to the error
        that rejected it
    """
    results = {}
    for config in configs:
        try:
            results[config.name] = portfolio_returns(returns_by_asset, config)
        except AnalyticsError as e:
            logger.warning("Portfolio %s failed: %s", config.name, e)
            results[config.name] = e
    return results
