"""FastAPI dependencies for authentication and authorization."""

import secrets
from typing import Annotated
from uuid import UUID

import jwt
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from exam_engine.core.app_exceptions import AppError
from exam_engine.core.authorization import AuthorizationContext, UserAuthorizationContext
from exam_engine.core.config import settings
from exam_engine.core.security import verify_access_token
from exam_engine.db.session import get_db
from exam_engine.models.user import User


def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
    db: Session = Depends(get_db),
) -> User:
    """Resolve the caller from a Bearer access token."""
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header missing",
        )

    try:
        scheme, token = authorization.split()
        if scheme.lower() != "bearer":
            raise ValueError("Invalid authorization scheme")
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format. Expected: Bearer <token>",
        ) from None

    try:
        payload = verify_access_token(token)
        user_id = UUID(payload["sub"])
        role = payload["role"]
    except (jwt.InvalidTokenError, KeyError, ValueError) as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        ) from e

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    # Token role must still match the stored role
    if user.role != role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token role mismatch. Please login again.",
        )

    return user


def get_auth_context(current_user: User = Depends(get_current_user)) -> AuthorizationContext:
    """Authorization context for exam operations; inactive and banned users stop here."""
    if not current_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )
    context = UserAuthorizationContext(current_user)
    if context.is_banned():
        raise AppError(
            status_code=status.HTTP_403_FORBIDDEN,
            code="FORBIDDEN",
            message="Account is not allowed to take exams",
        )
    return context


def require_exam_api_key(
    x_exam_api_key: Annotated[str | None, Header()] = None,
) -> None:
    """Shared-key gate for exam routes, active only when EXAM_API_KEY is configured."""
    expected = settings.EXAM_API_KEY
    if not expected:
        return
    if not x_exam_api_key or not secrets.compare_digest(x_exam_api_key, expected):
        raise AppError(
            status_code=status.HTTP_401_UNAUTHORIZED,
            code="INVALID_API_KEY",
            message="Invalid or missing API key",
        )


AuthContext = Annotated[AuthorizationContext, Depends(get_auth_context)]
DbSession = Annotated[Session, Depends(get_db)]
