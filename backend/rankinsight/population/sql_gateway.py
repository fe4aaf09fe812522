"""SQLAlchemy-backed population gateway.

Scans use keyset pagination on ``users.id`` so memory stays bounded by the
page size. Blocking queries run in worker threads.
"""

import asyncio
from collections.abc import AsyncIterator

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from rankinsight.core.config import settings
from rankinsight.core.exceptions import GatewayUnavailableError
from rankinsight.core.logging import get_logger
from rankinsight.models.user import User
from rankinsight.population.gateway import PopulationGateway
from rankinsight.schemas.population import Scope, ScopeKind, UserProfile, UserStatistics

logger = get_logger(__name__)


def profile_from_row(user: User) -> UserProfile:
    """Map a users row onto the gateway record."""
    return UserProfile(
        id=user.id,
        name=user.name,
        university=user.university or None,
        course=user.course or None,
        level=user.level or 1,
        experience=user.experience or 0,
        statistics=UserStatistics(
            average_score=user.average_score or 0.0,
            total_simulations=user.total_simulations or 0,
            total_questions=user.total_questions or 0,
            correct_answers=user.correct_answers or 0,
            time_spent=user.time_spent or 0,
            streak_days=user.streak_days or 0,
        ),
    )


class SqlPopulationGateway(PopulationGateway):
    """Gateway reading the ``users`` table."""

    def __init__(self, session_factory: sessionmaker[Session], page_size: int | None = None):
        self._session_factory = session_factory
        self._page_size = page_size or settings.POPULATION_PAGE_SIZE

    def _load_user(self, user_id: str) -> UserProfile | None:
        with self._session_factory() as db:
            user = db.get(User, user_id)
            return profile_from_row(user) if user is not None else None

    def _load_page(self, scope: Scope, after_id: str | None) -> list[UserProfile]:
        stmt = select(User).where(User.total_simulations > 0)
        if scope.kind == ScopeKind.UNIVERSITY:
            stmt = stmt.where(User.university == scope.value)
        elif scope.kind == ScopeKind.COURSE:
            stmt = stmt.where(User.course == scope.value)
        if after_id is not None:
            stmt = stmt.where(User.id > after_id)
        stmt = stmt.order_by(User.id).limit(self._page_size)

        with self._session_factory() as db:
            rows = db.execute(stmt).scalars().all()
            return [profile_from_row(row) for row in rows]

    async def fetch_user(self, user_id: str) -> UserProfile | None:
        try:
            return await asyncio.to_thread(self._load_user, user_id)
        except SQLAlchemyError as e:
            logger.error(
                "population_fetch_user_failed",
                extra={"event": "population_fetch_user_failed", "user_id": user_id, "error": str(e)},
            )
            raise GatewayUnavailableError(f"Could not load user {user_id}") from e

    async def iter_profiles(self, scope: Scope) -> AsyncIterator[UserProfile]:
        after_id: str | None = None
        while True:
            try:
                page = await asyncio.to_thread(self._load_page, scope, after_id)
            except SQLAlchemyError as e:
                logger.error(
                    "population_scan_failed",
                    extra={"event": "population_scan_failed", "scope": str(scope), "error": str(e)},
                )
                raise GatewayUnavailableError(f"Could not scan population {scope}") from e

            for profile in page:
                yield profile

            if len(page) < self._page_size:
                return
            after_id = page[-1].id
