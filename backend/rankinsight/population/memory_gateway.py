"""In-memory population gateway (local dev, tests, seeded demos)."""

from collections.abc import AsyncIterator, Iterable

from rankinsight.population.gateway import PopulationGateway
from rankinsight.schemas.population import Scope, UserProfile


class InMemoryPopulationGateway(PopulationGateway):
    """Gateway over a fixed list of profiles."""

    def __init__(self, profiles: Iterable[UserProfile] = ()):
        self._profiles: dict[str, UserProfile] = {p.id: p for p in profiles}

    def upsert(self, profile: UserProfile) -> None:
        self._profiles[profile.id] = profile

    async def fetch_user(self, user_id: str) -> UserProfile | None:
        return self._profiles.get(user_id)

    async def iter_profiles(self, scope: Scope) -> AsyncIterator[UserProfile]:
        # Snapshot so concurrent upserts don't change a running scan
        for profile in list(self._profiles.values()):
            if profile.is_ranked and profile.in_scope(scope):
                yield profile
