"""
Test Suite for the Cross-Asset Risk/Return Workbench

Includes:
- Unit tests for calculations
- Integration tests for the analysis job
- CSV fixtures (BTC, SP500, gold/CPI) in tests/fixtures
"""
