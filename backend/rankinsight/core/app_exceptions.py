"""HTTP-facing errors of the comparison API."""

from typing import Any

from fastapi import HTTPException, status


class AppError(HTTPException):
    """HTTP error carrying a stable ``code`` for clients."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: dict[str, Any] | list[Any] | None = None,
    ):
        super().__init__(status_code=status_code, detail={"code": code, "message": message, "details": details})
        self.code = code
        self.message = message
        self.details = details


class UnauthenticatedError(AppError):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            code="UNAUTHENTICATED",
            message="Missing authenticated user",
        )


class ComparisonNotFoundError(AppError):
    """No comparison exists: unknown user, or a user without completed simulations."""

    def __init__(self, user_id: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            code="COMPARISON_NOT_FOUND",
            message="Dados de comparação não encontrados",
            details={"user_id": user_id},
        )


class ForbiddenError(AppError):
    def __init__(self, required_roles: list[str]):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            code="FORBIDDEN",
            message="Access denied",
            details={"required_roles": required_roles},
        )
