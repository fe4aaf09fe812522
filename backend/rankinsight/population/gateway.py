"""Population data gateway interface.

The gateway is the engine's only view of user records. Scans are lazy async
iterators over ranked users (at least one completed simulation); calling a
scan method again restarts it from the beginning.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from rankinsight.population.metrics import get_metric
from rankinsight.schemas.population import MetricSample, Scope, UserProfile


class PopulationGateway(ABC):
    """Read-only access to user profiles and metric distributions."""

    @abstractmethod
    async def fetch_user(self, user_id: str) -> UserProfile | None:
        """
        Fetch one user's profile.

        Returns:
            The profile, or None when no such user exists.

        Raises:
            GatewayUnavailableError: the store could not be read.
        """
        pass

    @abstractmethod
    def iter_profiles(self, scope: Scope) -> AsyncIterator[UserProfile]:
        """
        Stream ranked profiles belonging to ``scope``.

        Raises:
            GatewayUnavailableError: the store could not be read.
        """
        pass

    async def fetch_metric_distribution(self, metric: str, scope: Scope) -> AsyncIterator[MetricSample]:
        """Stream one metric's samples for every ranked user in ``scope``."""
        extract = get_metric(metric).extract
        async for profile in self.iter_profiles(scope):
            yield MetricSample(user_id=profile.id, metric=metric, value=extract(profile))

    async def collect_values(self, metric: str, scope: Scope) -> list[float]:
        """Materialize a metric distribution as plain floats."""
        return [sample.value async for sample in self.fetch_metric_distribution(metric, scope)]
