"""Synthetic student population for local development and demos."""

import random

from sqlalchemy.orm import Session

from rankinsight.models.user import User
from rankinsight.schemas.population import UserProfile, UserStatistics

FIRST_NAMES = [
    "Ana", "Carlos", "Julia", "Pedro", "Beatriz", "Marcos", "Larissa", "Rafael",
    "Gabriela", "Thiago", "Isabella", "Lucas", "Camila", "Felipe", "Sophia", "João",
]
LAST_NAMES = ["Costa", "Lima", "Rodrigues", "Oliveira", "Ferreira", "Souza", "Almeida", "Santos", "Silva"]
UNIVERSITIES = ["UFC", "UECE", "UVA", "URCA"]
COURSES = ["Medicina", "Engenharia", "Direito", "Administração", "Psicologia", "Educação Física"]


def generate_profiles(count: int, seed: int = 42) -> list[UserProfile]:
    """Deterministic pseudo-random profiles with plausible statistics."""
    rng = random.Random(seed)
    profiles = []
    for i in range(count):
        total_simulations = rng.randint(0, 55)
        total_questions = total_simulations * 30 + rng.randint(0, 200) if total_simulations else 0
        correct_rate = 0.4 + rng.random() * 0.5
        correct_answers = int(total_questions * correct_rate)
        average_score = float(int(correct_rate * 100)) if total_simulations else 0.0
        profiles.append(
            UserProfile(
                id=f"u{i + 1:05d}",
                name=f"{rng.choice(FIRST_NAMES)} {rng.choice(LAST_NAMES)}",
                university=rng.choice(UNIVERSITIES + [None]),
                course=rng.choice(COURSES + [None]),
                level=int(average_score // 20) + 1,
                experience=int(average_score * 10) + rng.randint(0, 500),
                statistics=UserStatistics(
                    average_score=average_score,
                    total_simulations=total_simulations,
                    total_questions=total_questions,
                    correct_answers=correct_answers,
                    time_spent=total_simulations * 300 + rng.randint(0, 3600),
                    streak_days=rng.randint(0, 15),
                ),
            )
        )
    return profiles


def seed_users(db: Session, profiles: list[UserProfile]) -> int:
    """Insert or update ``users`` rows for ``profiles``."""
    for profile in profiles:
        stats = profile.statistics
        db.merge(
            User(
                id=profile.id,
                name=profile.name,
                email=f"{profile.id}@simulados.test",
                university=profile.university,
                course=profile.course,
                level=profile.level,
                experience=profile.experience,
                average_score=stats.average_score,
                total_simulations=stats.total_simulations,
                total_questions=stats.total_questions,
                correct_answers=stats.correct_answers,
                time_spent=stats.time_spent,
                streak_days=stats.streak_days,
            )
        )
    db.commit()
    return len(profiles)
