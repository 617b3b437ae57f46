"""
Configuration for the analysis job.
Defaults come from environment variables (.env supported); portfolio weight
splits come from a YAML file.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from dotenv import load_dotenv

from analysis.calculations.performance import PERIODS_PER_YEAR
from analysis.calculations.portfolio import DEFAULT_FIRST_WEIGHTS, two_asset_configs
from analysis.errors import InvalidPortfolioWeights
from analysis.models import AssetCategory, PortfolioConfig, ReturnKind

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration is invalid."""
    pass


@dataclass
class AnalysisConfig:
    """Configuration for the cross-asset analysis job."""
    crypto_path: Path
    equity_path: Path
    monthly_path: Path
    output_dir: Optional[Path] = None
    portfolio_config_path: Optional[Path] = None
    workers: Optional[int] = None
    periods_per_year: int = PERIODS_PER_YEAR

    crypto_name: str = 'BTC'
    equity_name: str = 'SP500'
    commodity_name: str = 'GOLD'
    inflation_name: str = 'CPI'
    commodity_column: str = 'Gold'
    inflation_column: str = 'CPI'
    date_column: str = 'Date'

    # Individual assets use log returns, portfolios discrete returns
    asset_return_kind: ReturnKind = ReturnKind.LOG
    portfolio_return_kind: ReturnKind = ReturnKind.DISCRETE

    portfolios: List[PortfolioConfig] = field(default_factory=list)
    rejected_portfolios: Dict[str, InvalidPortfolioWeights] = field(default_factory=dict)

    def __post_init__(self):
        """Validate and set defaults."""
        self.crypto_path = Path(self.crypto_path)
        self.equity_path = Path(self.equity_path)
        self.monthly_path = Path(self.monthly_path)

        if self.output_dir is None:
            self.output_dir = os.getenv('ANALYSIS_OUTPUT_DIR', './data/processed/analysis')
        self.output_dir = Path(self.output_dir)

        if self.portfolio_config_path is None:
            env_path = os.getenv('PORTFOLIO_CONFIG_PATH')
            self.portfolio_config_path = Path(env_path) if env_path else None

        if self.workers is None:
            try:
                self.workers = int(os.getenv('ANALYSIS_WORKERS', '1'))
            except ValueError:
                raise ConfigError("ANALYSIS_WORKERS must be an integer")

        if self.workers < 1:
            raise ConfigError("workers must be >= 1")

        if self.periods_per_year <= 0:
            raise ConfigError("periods_per_year must be positive")

        names = [self.crypto_name, self.equity_name, self.commodity_name, self.inflation_name]
        if len(set(names)) != len(names) or not all(names):
            raise ConfigError(f"Asset names must be unique and non-empty: {names}")

        if not self.portfolios:
            self.portfolios, self.rejected_portfolios = load_portfolio_configs(
                self.portfolio_config_path,
                default_pairs=[
                    (self.crypto_name, self.equity_name),
                    (self.crypto_name, self.commodity_name),
                ]
            )

    @property
    def benchmarks(self) -> Tuple[str, str]:
        """Equity-index and inflation-index benchmarks."""
        return (self.equity_name, self.inflation_name)

    @property
    def monthly_columns(self) -> Dict[str, Tuple[str, AssetCategory]]:
        return {
            self.commodity_column: (self.commodity_name, AssetCategory.COMMODITY),
            self.inflation_column: (self.inflation_name, AssetCategory.INFLATION_INDEX),
        }


def _entry_name(entry: Dict[str, Any]) -> str:
    if entry.get('name'):
        return str(entry['name'])
    if isinstance(entry.get('weights'), dict):
        return ' / '.join(f"{a} {w}" for a, w in entry['weights'].items())
    return ' / '.join(str(a) for a in entry.get('assets', []))


def _parse_portfolio_entry(entry: Dict[str, Any]) -> List[PortfolioConfig]:
    if 'weights' in entry:
        weights = entry['weights']
        if not isinstance(weights, dict):
            raise ConfigError(f"'weights' must be a mapping, got {weights!r}")
        return [PortfolioConfig.from_mapping(weights, name=entry.get('name'))]

    if 'assets' in entry:
        assets = entry['assets']
        if not isinstance(assets, list) or len(assets) != 2:
            raise ConfigError(f"'assets' must list exactly two assets, got {assets!r}")
        first_weights = entry.get('first_weights', list(DEFAULT_FIRST_WEIGHTS))
        return two_asset_configs(assets[0], assets[1], first_weights)

    raise ConfigError(f"Portfolio entry needs 'weights' or 'assets': {entry!r}")


def load_portfolio_configs(
    config_path: Optional[Path] = None,
    default_pairs: Optional[List[Tuple[str, str]]] = None
) -> Tuple[List[PortfolioConfig], Dict[str, InvalidPortfolioWeights]]:
    """
    Load portfolio weight configurations from YAML.

    File format:
        portfolios:
          - assets: [BTC, SP500]
            first_weights: [0.1, 0.2, 0.5]
          - name: Balanced
            weights: {BTC: 0.2, SP500: 0.5, GOLD: 0.3}

    An entry with invalid weights is rejected on its own; the rest still load.
    Portfolio names, generated or explicit, must be unique across the file.

    Args:
        config_path: YAML file; None uses the default pairs
        default_pairs: Asset pairs enumerated with DEFAULT_FIRST_WEIGHTS

    Returns:
        Tuple of (valid configs, rejected entry name -> error)

    Raises:
        ConfigError: If the file is missing or structurally invalid, or two
            entries produce the same portfolio name
    """
    if config_path is None:
        configs = []
        for first, second in default_pairs or []:
            configs.extend(two_asset_configs(first, second))
        return configs, {}

    config_file = Path(config_path)
    if not config_file.exists():
        raise ConfigError(f"Portfolio config file not found: {config_path}")

    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to load portfolio config: {e}")

    if not isinstance(config, dict) or not isinstance(config.get('portfolios'), list):
        raise ConfigError("Portfolio config missing 'portfolios' list")

    configs = []
    rejected = {}
    seen = set()
    for entry in config['portfolios']:
        if not isinstance(entry, dict):
            raise ConfigError(f"Portfolio entry must be a mapping, got {entry!r}")
        try:
            parsed = _parse_portfolio_entry(entry)
        except InvalidPortfolioWeights as e:
            logger.warning("Rejected portfolio entry: %s", e)
            names = [_entry_name(entry)]
            rejected[names[0]] = e
        else:
            configs.extend(parsed)
            names = [c.name for c in parsed]

        # Portfolio results are keyed by name
        for name in names:
            if name in seen:
                raise ConfigError(f"Duplicate portfolio name: {name!r}")
            seen.add(name)

    return configs, rejected
