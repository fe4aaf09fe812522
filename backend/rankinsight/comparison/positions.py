"""Ranking positions of a user across global, university and course scopes."""

import asyncio

from rankinsight.comparison.statistics import RankStats, rank_and_percentile
from rankinsight.core.exceptions import EmptyPopulationError, GatewayUnavailableError
from rankinsight.core.logging import get_logger
from rankinsight.population.gateway import PopulationGateway
from rankinsight.population.metrics import COMPOSITE, COMPOSITE_SCORE
from rankinsight.schemas.comparison import UserRankingPosition
from rankinsight.schemas.population import Scope, UserProfile

logger = get_logger(__name__)


def _round_pct(value: float) -> float:
    return round(value, 1)


async def rank_in_scope(gateway: PopulationGateway, profile: UserProfile, scope: Scope) -> RankStats:
    """Rank the user's composite score within one scope."""
    values = await gateway.collect_values(COMPOSITE_SCORE, scope)
    if not values:
        raise EmptyPopulationError(COMPOSITE_SCORE, str(scope))
    return rank_and_percentile(values, COMPOSITE.extract(profile))


async def _rank_scoped(
    gateway: PopulationGateway, profile: UserProfile, scope: Scope | None
) -> RankStats | None:
    """Scoped ranks degrade to absent instead of failing the whole resolution."""
    if scope is None:
        return None
    try:
        return await rank_in_scope(gateway, profile, scope)
    except (EmptyPopulationError, GatewayUnavailableError) as e:
        logger.warning(
            "scoped_ranking_unavailable",
            extra={
                "event": "scoped_ranking_unavailable",
                "user_id": profile.id,
                "scope": str(scope),
                "error": str(e),
            },
        )
        return None


async def resolve_positions(gateway: PopulationGateway, profile: UserProfile) -> UserRankingPosition:
    """
    Compute the user's position in every applicable scope.

    Scopes are resolved concurrently. Only the global scope is mandatory.

    Raises:
        EmptyPopulationError, GatewayUnavailableError: global scope failed.
    """
    university_scope = Scope.university(profile.university) if profile.university else None
    course_scope = Scope.course(profile.course) if profile.course else None

    global_stats, university_stats, course_stats = await asyncio.gather(
        rank_in_scope(gateway, profile, Scope.everyone()),
        _rank_scoped(gateway, profile, university_scope),
        _rank_scoped(gateway, profile, course_scope),
    )

    fields: dict[str, int | float] = {
        "global_position": global_stats.rank,
        "total_users": global_stats.total,
        "global_percentile": _round_pct(global_stats.percentile),
    }
    if university_stats is not None:
        fields["university_position"] = university_stats.rank
        fields["total_university_users"] = university_stats.total
        fields["university_percentile"] = _round_pct(university_stats.percentile)
    if course_stats is not None:
        fields["course_position"] = course_stats.rank
        fields["total_course_users"] = course_stats.total
        fields["course_percentile"] = _round_pct(course_stats.percentile)
    return UserRankingPosition(**fields)
