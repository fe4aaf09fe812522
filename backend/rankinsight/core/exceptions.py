"""Comparison engine exception taxonomy.

A missing user is not an error: the service returns ``None`` for it.
"""


class ComparisonError(Exception):
    """Base class for comparison engine failures."""


class EmptyPopulationError(ComparisonError):
    """A ranking population had no members."""

    def __init__(self, metric: str | None = None, scope: str | None = None):
        self.metric = metric
        self.scope = scope
        where = " ".join(p for p in (metric, scope) if p)
        super().__init__(f"Empty population{f' for {where}' if where else ''}")


class GatewayUnavailableError(ComparisonError):
    """The population data store could not be read."""


class CacheUnavailableError(ComparisonError):
    """The comparison cache backend could not be reached.

    Raised by the cache backends; ``UserComparisonService`` catches it, logs
    a warning and recomputes from the population store.
    """
