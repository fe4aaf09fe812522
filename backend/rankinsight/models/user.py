"""User model with denormalized study statistics."""

import uuid

from sqlalchemy import Column, DateTime, Float, Index, Integer, String
from sqlalchemy.sql import func

from rankinsight.db.base import Base


def _new_user_id() -> str:
    return uuid.uuid4().hex


class User(Base):
    """User model.

    Statistics are written by the simulation pipeline; this service only reads them.
    """

    __tablename__ = "users"

    id = Column(String(64), primary_key=True, default=_new_user_id)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    university = Column(String(120), nullable=True)
    course = Column(String(120), nullable=True)
    level = Column(Integer, nullable=False, default=1)
    experience = Column(Integer, nullable=False, default=0)

    # Statistics
    average_score = Column(Float, nullable=False, default=0.0)
    total_simulations = Column(Integer, nullable=False, default=0)
    total_questions = Column(Integer, nullable=False, default=0)
    correct_answers = Column(Integer, nullable=False, default=0)
    time_spent = Column(Integer, nullable=False, default=0)  # seconds
    streak_days = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=func.now(),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_users_university", "university"),
        Index("ix_users_course", "course"),
    )
