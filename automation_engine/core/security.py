"""Security utilities for JWT session tokens and scheduler credentials."""

import hmac
from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt

from automation_engine.core.config import settings


# =============================================================================
# Session Token (JWT in cookie)
# =============================================================================

def create_session_token(user_id: UUID, role: str, token_version: int) -> str:
    """
    Create signed session JWT.

    Always signs with current secret (JWT_SECRET).
    Token contains user identity, role at issue time, and revocation version.
    """
    payload = {
        "sub": str(user_id),
        "role": role,
        "token_version": token_version,
        "iat": datetime.now(timezone.utc),
        "exp": datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRES_HOURS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm="HS256")


def decode_session_token(token: str) -> dict:
    """
    Decode and verify session JWT.

    Tries current secret first, then previous (for rotation support).

    Raises:
        jwt.InvalidTokenError: If token invalid with all secrets
    """
    last_error = None
    for secret in settings.jwt_secrets:
        try:
            return jwt.decode(token, secret, algorithms=["HS256"])
        except jwt.InvalidTokenError as e:
            last_error = e
            continue
    raise last_error  # type: ignore


# =============================================================================
# Scheduler bearer credential
# =============================================================================

def parse_bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an 'Authorization: Bearer <token>' header value."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def verify_cron_secret(token: str | None) -> bool:
    """Constant-time comparison against CRON_SECRET. Unset secret never matches."""
    if not token or not settings.CRON_SECRET:
        return False
    return hmac.compare_digest(token, settings.CRON_SECRET)
