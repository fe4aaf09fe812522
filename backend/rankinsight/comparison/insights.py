"""Rule-based comparative insights.

Each rule is independent: ``matches`` decides whether it applies to the
context, ``produce`` builds the insight. Rules are evaluated in priority
order (achievement, improvement, goal, encouragement) and the output is capped.
Titles and descriptions are final Portuguese copy.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field

from rankinsight.population.metrics import METRICS_BY_KEY
from rankinsight.schemas.comparison import ComparativeInsight, Goal, MetricComparison, UserRankingPosition

MAX_INSIGHTS = 4
MAX_GOAL_INSIGHTS = 2
LOW_PERFORMANCE_PERCENTILE = 50.0

WEAK_CATEGORIES = frozenset({"below_average", "needs_improvement"})


@dataclass(frozen=True)
class InsightContext:
    positions: UserRankingPosition
    comparisons: Sequence[MetricComparison]
    goals: Sequence[Goal] = field(default_factory=tuple)


def _format_value(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}"


def _label(metric: str) -> str:
    known = METRICS_BY_KEY.get(metric)
    return known.label if known else metric


class InsightRule(ABC):
    """One conditional insight."""

    @abstractmethod
    def matches(self, context: InsightContext) -> bool:
        pass

    @abstractmethod
    def produce(self, context: InsightContext) -> ComparativeInsight:
        pass


class ExcellenceRule(InsightRule):
    """Celebrate the strongest metric in the excellent tier."""

    def _best(self, context: InsightContext) -> MetricComparison | None:
        excellent = [c for c in context.comparisons if c.category == "excellent"]
        if not excellent:
            return None
        # max() keeps the first of equal percentiles, i.e. declared order
        return max(excellent, key=lambda c: c.percentile)

    def matches(self, context: InsightContext) -> bool:
        return self._best(context) is not None

    def produce(self, context: InsightContext) -> ComparativeInsight:
        best = self._best(context)
        return ComparativeInsight(
            type="achievement",
            title="Desempenho Excepcional",
            description=(
                f"Seu resultado em {best.label} ({_format_value(best.user_value)}) "
                f"está melhor que {best.better_than_percent:.1f}% dos usuários"
            ),
            metric=best.metric,
            value=best.user_value,
            comparison=f"Top {max(100.0 - best.percentile, 0.0):.1f}%",
            icon="🏆",
        )


class WeakestMetricRule(InsightRule):
    """Point at the single weakest metric when it is below average."""

    def _weakest(self, context: InsightContext) -> MetricComparison | None:
        if not context.comparisons:
            return None
        weakest = min(context.comparisons, key=lambda c: c.percentile)
        return weakest if weakest.category in WEAK_CATEGORIES else None

    def matches(self, context: InsightContext) -> bool:
        return self._weakest(context) is not None

    def produce(self, context: InsightContext) -> ComparativeInsight:
        weakest = self._weakest(context)
        return ComparativeInsight(
            type="improvement",
            title="Espaço para Crescer",
            description=(
                f"Melhorar em {weakest.label} pode elevar sua posição geral. "
                f"Hoje você está melhor que {weakest.better_than_percent:.1f}% dos usuários nessa métrica"
            ),
            metric=weakest.metric,
            value=weakest.user_value,
            comparison=f"Média: {_format_value(weakest.average)}",
            icon="💪",
        )


class GoalRule(InsightRule):
    """Narrate the goal at position ``slot`` of the projected goals."""

    def __init__(self, slot: int):
        self.slot = slot

    def matches(self, context: InsightContext) -> bool:
        return len(context.goals) > self.slot

    def produce(self, context: InsightContext) -> ComparativeInsight:
        goal = context.goals[self.slot]
        description = (
            f"Alcance {_format_value(goal.target)} em {_label(goal.metric)} "
            f"para chegar ao percentil {goal.percentile_target:.0f}"
        )
        if goal.time_estimate:
            description += f" (estimativa: {goal.time_estimate})"
        return ComparativeInsight(
            type="goal",
            title="Próximo Objetivo",
            description=description,
            metric=goal.metric,
            value=goal.target,
            comparison=f"Atual: {_format_value(goal.current)}",
            icon="🎯",
        )


class LowStandingRule(InsightRule):
    """Encourage users in the lower half of the global ranking."""

    def matches(self, context: InsightContext) -> bool:
        return context.positions.global_percentile < LOW_PERFORMANCE_PERCENTILE

    def produce(self, context: InsightContext) -> ComparativeInsight:
        positions = context.positions
        return ComparativeInsight(
            type="encouragement",
            title="Continue Praticando",
            description=(
                f"Você está em {positions.global_position}º lugar entre {positions.total_users} "
                f"usuários. Cada simulado conta para subir no ranking!"
            ),
            value=positions.global_percentile,
            comparison=f"Melhor que {positions.global_percentile:.1f}% dos usuários",
            icon="📈",
        )


DEFAULT_RULES: tuple[InsightRule, ...] = (
    ExcellenceRule(),
    WeakestMetricRule(),
    *(GoalRule(slot) for slot in range(MAX_GOAL_INSIGHTS)),
    LowStandingRule(),
)


def generate_insights(
    positions: UserRankingPosition,
    comparisons: Sequence[MetricComparison],
    goals: Sequence[Goal] = (),
    rules: Sequence[InsightRule] = DEFAULT_RULES,
    limit: int = MAX_INSIGHTS,
) -> list[ComparativeInsight]:
    """Evaluate ``rules`` in order and keep at most ``limit`` insights."""
    context = InsightContext(positions=positions, comparisons=comparisons, goals=goals)
    insights: list[ComparativeInsight] = []
    for rule in rules:
        if len(insights) >= limit:
            break
        if rule.matches(context):
            insights.append(rule.produce(context))
    return insights
