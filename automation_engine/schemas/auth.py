"""Authentication-related Pydantic schemas."""

from uuid import UUID

from pydantic import BaseModel

from automation_engine.db.enums import Role


class TokenPayload(BaseModel):
    """Decoded JWT payload structure."""
    sub: UUID  # user_id
    role: str
    token_version: int


class UserSession(BaseModel):
    """
    Session context for authenticated requests.

    Role is read from the user row on every request, not from the token,
    so a role change applies immediately.
    """
    user_id: UUID
    role: Role  # Validated enum
    email: str | None
    display_name: str
    department: str
