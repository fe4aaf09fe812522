"""Tracked metrics and the composite ranking score."""

from collections.abc import Callable
from dataclasses import dataclass

from rankinsight.schemas.population import UserProfile

COMPOSITE_SCORE = "compositeScore"

# Composite score weights
SCORE_WEIGHT = 0.4
SIMULATIONS_WEIGHT = 0.3
SIMULATION_POINTS = 5
ACCURACY_WEIGHT = 0.3


@dataclass(frozen=True)
class Metric:
    """A named per-user value the engine ranks on."""

    key: str
    label: str
    extract: Callable[[UserProfile], float]


def accuracy(profile: UserProfile) -> float:
    stats = profile.statistics
    if stats.total_questions <= 0:
        return 0.0
    return stats.correct_answers / stats.total_questions * 100


def composite_score(profile: UserProfile) -> float:
    """Weighted blend of average score, volume of simulations and accuracy."""
    stats = profile.statistics
    return (
        stats.average_score * SCORE_WEIGHT
        + stats.total_simulations * SIMULATION_POINTS * SIMULATIONS_WEIGHT
        + accuracy(profile) * ACCURACY_WEIGHT
    )


# Declared order is the output order of metric comparisons.
TRACKED_METRICS: tuple[Metric, ...] = (
    Metric("averageScore", "Score Médio", lambda p: float(p.statistics.average_score)),
    Metric("accuracy", "Taxa de Acerto", accuracy),
    Metric("totalSimulations", "Total de Simulados", lambda p: float(p.statistics.total_simulations)),
    Metric("correctAnswers", "Questões Corretas", lambda p: float(p.statistics.correct_answers)),
    Metric("streakDays", "Sequência de Dias", lambda p: float(p.statistics.streak_days)),
    Metric("experience", "Experiência (XP)", lambda p: float(p.experience)),
)

COMPOSITE = Metric(COMPOSITE_SCORE, "Score Composto", composite_score)

METRICS_BY_KEY: dict[str, Metric] = {m.key: m for m in (*TRACKED_METRICS, COMPOSITE)}


def get_metric(key: str) -> Metric:
    try:
        return METRICS_BY_KEY[key]
    except KeyError:
        raise ValueError(f"Unknown metric: {key}") from None
