"""Pydantic schemas for population records read through the gateway."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ScopeKind(str, Enum):
    """Ranking population subsets."""

    GLOBAL = "global"
    UNIVERSITY = "university"
    COURSE = "course"


class Scope(BaseModel):
    """A ranking population: everyone, or members of one university/course."""

    model_config = ConfigDict(frozen=True)

    kind: ScopeKind
    value: str | None = None

    @classmethod
    def everyone(cls) -> "Scope":
        return cls(kind=ScopeKind.GLOBAL)

    @classmethod
    def university(cls, name: str) -> "Scope":
        return cls(kind=ScopeKind.UNIVERSITY, value=name)

    @classmethod
    def course(cls, name: str) -> "Scope":
        return cls(kind=ScopeKind.COURSE, value=name)

    def __str__(self) -> str:
        if self.kind == ScopeKind.GLOBAL:
            return "global"
        return f"{self.kind.value}:{self.value}"


class UserStatistics(CamelModel):
    """Aggregated study statistics for one user."""

    average_score: float = 0.0
    total_simulations: int = 0
    total_questions: int = 0
    correct_answers: int = 0
    time_spent: int = 0
    streak_days: int = 0


class UserProfile(CamelModel):
    """One user's identity, affiliation and statistics."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    name: str
    university: str | None = None
    course: str | None = None
    level: int = 1
    experience: int = 0
    statistics: UserStatistics = Field(default_factory=UserStatistics)

    @property
    def is_ranked(self) -> bool:
        """Only users with at least one completed simulation enter rankings."""
        return self.statistics.total_simulations > 0

    def in_scope(self, scope: Scope) -> bool:
        if scope.kind == ScopeKind.UNIVERSITY:
            return self.university == scope.value
        if scope.kind == ScopeKind.COURSE:
            return self.course == scope.value
        return True


class MetricSample(CamelModel):
    """One user's value for one named metric."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    user_id: str
    metric: str
    value: float
