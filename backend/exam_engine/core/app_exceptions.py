"""Application-specific exceptions for consistent error handling."""

from typing import Any

from fastapi import HTTPException, status


class AppError(HTTPException):
    """Application error with standardized error code."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: dict[str, Any] | list[Any] | None = None,
    ):
        super().__init__(
            status_code=status_code,
            detail={
                "code": code,
                "message": message,
                "details": details,
            },
        )
        self.code = code
        self.message = message
        self.details = details


def raise_app_error(
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | list[Any] | None = None,
) -> None:
    """Raise an application error with standardized format."""
    raise AppError(status_code=status_code, code=code, message=message, details=details)


def invalid_session_error() -> AppError:
    """Generic failure for unknown or foreign sessions (never reveals which)."""
    return AppError(
        status_code=status.HTTP_403_FORBIDDEN,
        code="INVALID_SESSION",
        message="Invalid session",
    )


def conflict_error(code: str, message: str, details: dict[str, Any] | None = None) -> AppError:
    """State-conflict failure the client is expected to react to."""
    return AppError(
        status_code=status.HTTP_409_CONFLICT,
        code=code,
        message=message,
        details=details,
    )


def validation_error(code: str, message: str, field: str, **extra: Any) -> AppError:
    """Validation failure with field-level detail."""
    return AppError(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        code=code,
        message=message,
        details={"field": field, **extra},
    )
