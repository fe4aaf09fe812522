"""Database models."""

from rankinsight.models.user import User

__all__ = ["User"]
