"""Tests for the user comparison service."""

import asyncio
from unittest.mock import MagicMock, patch

import pytest

from rankinsight.cache.comparison_cache import RedisComparisonCache
from rankinsight.comparison.service import UserComparisonService
from rankinsight.core.exceptions import GatewayUnavailableError
from rankinsight.population.metrics import TRACKED_METRICS
from rankinsight.schemas.population import ScopeKind


@pytest.mark.asyncio
async def test_full_comparison(service, clock):
    comparison = await service.get_user_comparison("carla")

    assert comparison is not None
    assert comparison.user.id == "carla"
    assert comparison.user.university == "UFC"
    assert comparison.user.course == "Direito"
    assert comparison.ranking_positions.global_position == 3
    assert [m.metric for m in comparison.metric_comparisons] == [m.key for m in TRACKED_METRICS]
    assert len(comparison.insights) <= 4
    assert 0 < len(comparison.similar_users) <= 3
    assert "carla" not in {s.id for s in comparison.similar_users}
    assert comparison.calculated_at == clock()


@pytest.mark.asyncio
async def test_repeated_calls_within_ttl_are_identical(service, gateway, clock):
    first = await service.get_user_comparison("davi")
    clock.advance(120)
    second = await service.get_user_comparison("davi")

    assert second.model_dump_json(by_alias=True) == first.model_dump_json(by_alias=True)
    assert gateway.fetch_user_calls == 1


@pytest.mark.asyncio
async def test_recomputes_after_ttl(service, gateway, clock):
    first = await service.get_user_comparison("davi")
    clock.advance(301)
    second = await service.get_user_comparison("davi")

    assert gateway.fetch_user_calls == 2
    assert second.calculated_at > first.calculated_at


@pytest.mark.asyncio
async def test_invalidate_user_forces_recompute(service, gateway, clock):
    first = await service.get_user_comparison("elis")
    other = await service.get_user_comparison("fabio")

    clock.advance(10)
    service.invalidate_user_comparison("elis")
    refreshed = await service.get_user_comparison("elis")
    still_cached = await service.get_user_comparison("fabio")

    assert refreshed.calculated_at > first.calculated_at
    assert still_cached.calculated_at == other.calculated_at
    assert gateway.fetch_user_calls == 3


@pytest.mark.asyncio
async def test_invalidate_all(service, cache):
    for user_id in ("ana", "bruno", "carla"):
        await service.get_user_comparison(user_id)

    assert service.invalidate_all_comparisons() == 3
    assert cache.entry_count() == 0


@pytest.mark.asyncio
async def test_statistics_update_then_invalidate(service, gateway, profile_factory, clock):
    before = await service.get_user_comparison("joao")
    assert before.ranking_positions.global_position == 10

    gateway.upsert(profile_factory("joao", average_score=95, total_simulations=50, streak_days=20, experience=2000))
    # Stale cached view until the writer invalidates
    assert (await service.get_user_comparison("joao")).ranking_positions.global_position == 10

    service.invalidate_user_comparison("joao")
    after = await service.get_user_comparison("joao")
    assert after.ranking_positions.global_position == 1


@pytest.mark.asyncio
async def test_unknown_and_inactive_users_have_no_comparison(service, cache):
    assert await service.get_user_comparison("ghost") is None
    assert await service.get_user_comparison("inactive") is None
    assert cache.entry_count() == 0


@pytest.mark.asyncio
async def test_global_failure_propagates(gateway_factory, cache):
    service = UserComparisonService(gateway_factory(failing_kinds={ScopeKind.GLOBAL}), cache)

    with pytest.raises(GatewayUnavailableError):
        await service.get_user_comparison("carla")
    assert cache.entry_count() == 0


@pytest.mark.asyncio
async def test_scoped_failure_still_returns_comparison(gateway_factory, cache):
    service = UserComparisonService(gateway_factory(failing_kinds={ScopeKind.COURSE}), cache)
    comparison = await service.get_user_comparison("carla")

    assert comparison.ranking_positions.university_position == 3
    assert comparison.ranking_positions.course_position is None


@pytest.mark.asyncio
async def test_concurrent_misses_share_one_computation(service, gateway):
    results = await asyncio.gather(*(service.get_user_comparison("bruno") for _ in range(5)))

    assert gateway.fetch_user_calls == 1
    assert len({r.model_dump_json() for r in results}) == 1


@pytest.mark.asyncio
async def test_unavailable_cache_falls_back_to_computing(gateway, clock):
    service = UserComparisonService(gateway, RedisComparisonCache(ttl_seconds=300, clock=clock), similar_users_limit=2)

    with patch("rankinsight.cache.redis.get_redis_client", return_value=None):
        first = await service.get_user_comparison("hugo")
        second = await service.get_user_comparison("hugo")
        service.invalidate_user_comparison("hugo")
        removed = service.invalidate_all_comparisons()

    assert first is not None and second is not None
    assert len(first.similar_users) <= 2
    assert gateway.fetch_user_calls == 2
    assert removed == 0


async def _hold_in_fetch(gateway, service, user_id: str) -> asyncio.Task:
    """Start a comparison and return once it is parked inside fetch_user."""
    gateway.gate = asyncio.Event()
    task = asyncio.create_task(service.get_user_comparison(user_id))
    while gateway.fetch_user_calls == 0:
        await asyncio.sleep(0)
    return task


@pytest.mark.asyncio
async def test_invalidation_during_computation_is_not_overwritten(service, gateway, cache, profile_factory):
    task = await _hold_in_fetch(gateway, service, "joao")

    gateway.upsert(profile_factory("joao", average_score=95, total_simulations=50, streak_days=20, experience=2000))
    service.invalidate_user_comparison("joao")
    gateway.gate.set()
    await task

    # The result computed before the invalidation was not cached
    assert cache.entry_count() == 0

    gateway.gate = None
    after = await service.get_user_comparison("joao")
    assert after.ranking_positions.global_position == 1
    assert gateway.fetch_user_calls == 2


@pytest.mark.asyncio
async def test_invalidate_all_during_computation_is_not_overwritten(service, gateway, cache, profile_factory):
    task = await _hold_in_fetch(gateway, service, "joao")

    gateway.upsert(profile_factory("joao", average_score=95, total_simulations=50, streak_days=20, experience=2000))
    service.invalidate_all_comparisons()
    gateway.gate.set()
    await task

    assert cache.entry_count() == 0

    gateway.gate = None
    after = await service.get_user_comparison("joao")
    assert after.ranking_positions.global_position == 1
    assert cache.entry_count() == 1


@pytest.mark.asyncio
async def test_invalidating_another_user_keeps_computation_cached(service, gateway, cache):
    task = await _hold_in_fetch(gateway, service, "joao")

    service.invalidate_user_comparison("ana")
    gateway.gate.set()
    await task

    assert cache.get("joao") is not None


@pytest.mark.parametrize(
    "payload",
    ['{"user": {"id": "hugo"}}', '{"user":', "[1, 2, 3]"],
)
@pytest.mark.asyncio
async def test_unreadable_cached_entry_is_recomputed(gateway, clock, payload):
    service = UserComparisonService(gateway, RedisComparisonCache(ttl_seconds=300, clock=clock), similar_users_limit=2)
    mock_redis = MagicMock()
    mock_redis.get.return_value = payload

    with patch("rankinsight.cache.redis.get_redis_client", return_value=mock_redis):
        comparison = await service.get_user_comparison("hugo")

    assert comparison is not None
    assert comparison.user.id == "hugo"
    assert gateway.fetch_user_calls == 1
    mock_redis.delete.assert_called_once_with("user_comparison:hugo")
    assert mock_redis.setex.call_args[0][0] == "user_comparison:hugo"
