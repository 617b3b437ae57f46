"""
Error kinds raised by the analytics pipeline.
Each one is scoped to a single entity (series, pair, or portfolio) so
callers can isolate failures and keep processing the rest.
"""


class AnalyticsError(Exception):
    """Base class for analytics failures."""
    pass


class MalformedSeries(AnalyticsError):
    """Raised when a series has duplicate or out-of-order dates, or invalid prices."""
    pass


class EmptyOrDegenerateSeries(AnalyticsError):
    """Raised when a series is too short or has zero variance where a ratio needs it."""
    pass


class MisalignedSeries(AnalyticsError):
    """Raised when series meant for joint analysis cannot be joined."""
    pass


class InvalidPortfolioWeights(AnalyticsError):
    """Raised when portfolio weights are negative or do not sum to 1."""
    pass
