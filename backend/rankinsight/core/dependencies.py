"""FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends, Header, Request

from rankinsight.comparison.service import UserComparisonService
from rankinsight.core.app_exceptions import ForbiddenError, UnauthenticatedError

ADMIN_ROLE = "ADMIN"


def get_current_user_id(
    x_user_id: Annotated[str | None, Header(alias="X-User-Id")] = None,
) -> str:
    """Caller id resolved by the upstream authentication layer."""
    if not x_user_id or not x_user_id.strip():
        raise UnauthenticatedError()
    return x_user_id.strip()


def require_roles(*allowed_roles: str):
    """Dependency factory requiring one of ``allowed_roles`` in the forwarded role header."""

    def role_checker(
        user_id: str = Depends(get_current_user_id),
        x_user_role: Annotated[str | None, Header(alias="X-User-Role")] = None,
    ) -> str:
        role = (x_user_role or "").strip().upper()
        if role not in allowed_roles:
            raise ForbiddenError(list(allowed_roles))
        return user_id

    return role_checker


def get_comparison_service(request: Request) -> UserComparisonService:
    return request.app.state.comparison_service
