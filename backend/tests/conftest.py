"""Pytest configuration and shared fixtures."""

import asyncio
from collections.abc import AsyncIterator, Callable, Generator
from datetime import UTC, datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from rankinsight.cache.comparison_cache import MemoryComparisonCache
from rankinsight.comparison.service import UserComparisonService
from rankinsight.core.exceptions import GatewayUnavailableError
from rankinsight.population.memory_gateway import InMemoryPopulationGateway
from rankinsight.schemas.population import Scope, ScopeKind, UserProfile, UserStatistics


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 3, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class CountingGateway(InMemoryPopulationGateway):
    """In-memory gateway that records calls and can fail selected scopes."""

    def __init__(self, profiles=(), failing_kinds: set[ScopeKind] | None = None):
        super().__init__(profiles)
        self.failing_kinds = failing_kinds or set()
        self.fetch_user_calls = 0
        self.scans: list[str] = []
        # When set, fetch_user waits on it after reading the profile
        self.gate: asyncio.Event | None = None

    async def fetch_user(self, user_id: str) -> UserProfile | None:
        self.fetch_user_calls += 1
        profile = await super().fetch_user(user_id)
        if self.gate is not None:
            await self.gate.wait()
        return profile

    async def iter_profiles(self, scope: Scope) -> AsyncIterator[UserProfile]:
        self.scans.append(str(scope))
        if scope.kind in self.failing_kinds:
            raise GatewayUnavailableError(f"{scope} offline")
        async for profile in super().iter_profiles(scope):
            yield profile


def make_profile(
    user_id: str,
    *,
    name: str | None = None,
    university: str | None = None,
    course: str | None = None,
    average_score: float = 60.0,
    total_simulations: int = 10,
    total_questions: int | None = None,
    correct_answers: int | None = None,
    streak_days: int = 3,
    experience: int = 600,
) -> UserProfile:
    """Build a profile; accuracy follows average_score unless given explicitly."""
    if total_questions is None:
        total_questions = total_simulations * 30
    if correct_answers is None:
        correct_answers = int(total_questions * average_score / 100)
    return UserProfile(
        id=user_id,
        name=name or f"User {user_id}",
        university=university,
        course=course,
        experience=experience,
        statistics=UserStatistics(
            average_score=average_score,
            total_simulations=total_simulations,
            total_questions=total_questions,
            correct_answers=correct_answers,
            time_spent=total_simulations * 300,
            streak_days=streak_days,
        ),
    )


@pytest.fixture
def profile_factory() -> Callable[..., UserProfile]:
    return make_profile


@pytest.fixture
def population() -> list[UserProfile]:
    """Ten ranked students across two universities plus one inactive account."""
    return [
        make_profile("ana", university="UFC", course="Medicina", average_score=92, total_simulations=40, streak_days=14, experience=1500),
        make_profile("bruno", university="UFC", course="Medicina", average_score=85, total_simulations=30, streak_days=9, experience=1200),
        make_profile("carla", university="UFC", course="Direito", average_score=78, total_simulations=22, streak_days=7, experience=950),
        make_profile("davi", university="UECE", course="Medicina", average_score=70, total_simulations=18, streak_days=5, experience=800),
        make_profile("elis", university="UECE", course="Direito", average_score=65, total_simulations=15, streak_days=4, experience=700),
        make_profile("fabio", university="UECE", average_score=60, total_simulations=12, streak_days=3, experience=600),
        make_profile("gabi", average_score=55, total_simulations=10, streak_days=2, experience=520),
        make_profile("hugo", university="UFC", course="Medicina", average_score=50, total_simulations=8, streak_days=1, experience=450),
        make_profile("iris", university="UECE", course="Medicina", average_score=45, total_simulations=6, streak_days=0, experience=380),
        make_profile("joao", average_score=40, total_simulations=4, streak_days=0, experience=300),
        make_profile("inactive", university="UFC", average_score=0, total_simulations=0, streak_days=0, experience=0),
    ]


@pytest.fixture
def gateway(population: list[UserProfile]) -> CountingGateway:
    return CountingGateway(population)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> MemoryComparisonCache:
    return MemoryComparisonCache(ttl_seconds=300, max_entries=100, cleanup_interval_seconds=60, clock=clock)


@pytest.fixture
def service(gateway: CountingGateway, cache: MemoryComparisonCache) -> UserComparisonService:
    return UserComparisonService(gateway, cache, similar_users_limit=3)


@pytest.fixture
def client(gateway: CountingGateway, cache: MemoryComparisonCache) -> Generator[TestClient, None, None]:
    """API client wired to the in-memory population."""
    from rankinsight.main import create_app

    app = create_app(gateway=gateway, cache=cache)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def gateway_factory(population: list[UserProfile]) -> Callable[..., CountingGateway]:
    """Build gateways over the shared population that fail selected scopes."""

    def _make(failing_kinds: set[ScopeKind] | None = None, profiles=None) -> CountingGateway:
        return CountingGateway(population if profiles is None else profiles, failing_kinds=failing_kinds)

    return _make
