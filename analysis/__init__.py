"""
Analysis Engine Module

Calculates cross-asset risk/return analytics from aligned monthly series:
- Alignment (first-trading-day monthly resampling, rebasing to 100)
- Returns (log and discrete)
- Performance (descriptive stats, annualized return/volatility, Sharpe, drawdown)
- CAPM regression (alpha, beta, information ratio)
- Fixed-weight portfolio aggregation
"""

__version__ = "0.1.0"
