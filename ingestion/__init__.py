"""
Data Ingestion Module

Handles reading and validating the tabular inputs:
- Daily OHLCV CSVs (crypto asset, equity index)
- Monthly CSV with commodity and inflation-index columns
"""

__version__ = "0.1.0"
