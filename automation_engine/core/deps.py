"""FastAPI dependencies for authentication, authorization, and database access."""

from typing import Generator

import jwt
from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from automation_engine.core.security import (
    decode_session_token,
    parse_bearer_token,
    verify_cron_secret,
)
from automation_engine.db.enums import Role, is_privileged
from automation_engine.db.models import User
from automation_engine.db.session import SessionLocal
from automation_engine.schemas.auth import TokenPayload, UserSession
from automation_engine.services import identity_service


# Cookie and header names
COOKIE_NAME = "portal_session"
CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _user_from_cookie(request: Request, db: Session) -> User | None:
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        return None
    try:
        payload = TokenPayload.model_validate(decode_session_token(token))
    except (jwt.InvalidTokenError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid session")

    user = db.query(User).filter(User.id == payload.sub).first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account disabled")
    # Token version check (revocation support)
    if user.token_version != payload.token_version:
        raise HTTPException(status_code=401, detail="Session revoked")
    return user


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """
    Get authenticated user from session cookie.

    Validates:
    - Session cookie exists
    - JWT is valid and not expired
    - User exists and is active
    - Token version matches (for revocation support)

    Raises:
        HTTPException 401: Authentication failed
    """
    user = _user_from_cookie(request, db)
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def get_current_session(user: User = Depends(get_current_user)) -> UserSession:
    """
    Session context for the authenticated user.

    Raises:
        HTTPException 403: Unknown role
    """
    # Validate role is a known enum value - return 403 not 500
    if not Role.has_value(user.role):
        raise HTTPException(
            status_code=403,
            detail=f"Unknown role '{user.role}'. Contact administrator.",
        )
    return UserSession(
        user_id=user.id,
        role=Role(user.role),
        email=user.email,
        display_name=user.display_name,
        department=identity_service.department_of(user),
    )


def require_roles(allowed_roles: list | set):
    """
    Dependency factory for role-based authorization.

    Resolves to the authenticated User so handlers can pass it to services.

    Usage:
        user: User = Depends(require_roles([Role.FOUNDER, Role.ADMIN]))
    """
    def dependency(
        user: User = Depends(get_current_user),
        session: UserSession = Depends(get_current_session),
    ) -> User:
        if session.role not in allowed_roles:
            raise HTTPException(
                status_code=403,
                detail=f"Role '{session.role.value}' not authorized for this action",
            )
        return user
    return dependency


def require_csrf_header(request: Request) -> None:
    """
    Verify CSRF header on mutations.

    Apply to state-changing endpoints (POST, PATCH, DELETE).

    Raises:
        HTTPException 403: Missing or invalid CSRF header
    """
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise HTTPException(
            status_code=403,
            detail=f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'",
        )


def require_scheduler_access(
    request: Request,
    authorization: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> User | None:
    """
    Single capability check for scheduled-job endpoints.

    Passes with "Authorization: Bearer <CRON_SECRET>" (returns None, the
    system) or with a session cookie of a privileged user (returns the user).

    Raises:
        HTTPException 401: Neither credential present
        HTTPException 403: Session user is not privileged
    """
    if verify_cron_secret(parse_bearer_token(authorization)):
        return None

    user = _user_from_cookie(request, db)
    if user is None:
        raise HTTPException(status_code=401, detail="Scheduler credentials required")
    if not is_privileged(user.role):
        raise HTTPException(status_code=403, detail="Only founders and admins can run scheduled jobs")
    return user
