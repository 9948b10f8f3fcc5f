"""Audience resolver: logical recipient groups -> concrete user ids.

Descriptors are strings so they can be stored on action items and
reminders: "all", "role:<role>", "department:<name>", "team:<uuid>".
Resolution always queries current membership.
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session

from automation_engine.core.errors import InvalidPayload
from automation_engine.db.enums import AudienceKind, Role
from automation_engine.db.models import User
from automation_engine.services import identity_service


@dataclass(frozen=True)
class Audience:
    kind: AudienceKind
    value: str | None = None

    @classmethod
    def parse(cls, descriptor: str) -> "Audience":
        """Parse a stored descriptor. Raises InvalidPayload on malformed input."""
        raw = (descriptor or "").strip()
        if raw == AudienceKind.ALL.value:
            return cls(AudienceKind.ALL)

        kind_raw, sep, value = raw.partition(":")
        if not sep or not value:
            raise InvalidPayload(f"Invalid audience '{descriptor}'")
        try:
            kind = AudienceKind(kind_raw)
        except ValueError:
            raise InvalidPayload(f"Unknown audience kind '{kind_raw}'")

        if kind == AudienceKind.ROLE and not Role.has_value(value):
            raise InvalidPayload(f"Unknown role '{value}'")
        if kind == AudienceKind.TEAM:
            try:
                UUID(value)
            except ValueError:
                raise InvalidPayload(f"Invalid team id '{value}'")
        return cls(kind, value)

    @classmethod
    def role(cls, role: Role | str) -> "Audience":
        return cls(AudienceKind.ROLE, role.value if isinstance(role, Role) else role)

    @classmethod
    def department(cls, department: str) -> "Audience":
        return cls(AudienceKind.DEPARTMENT, department)

    @classmethod
    def team(cls, team_id: UUID) -> "Audience":
        return cls(AudienceKind.TEAM, str(team_id))

    def __str__(self) -> str:
        if self.kind == AudienceKind.ALL:
            return AudienceKind.ALL.value
        return f"{self.kind.value}:{self.value}"


# Broadcast sentinel: every active member
BROADCAST = Audience(AudienceKind.ALL)


def resolve(db: Session, audience: Audience | str) -> list[UUID]:
    """Current members of an audience, in stable order."""
    if isinstance(audience, str):
        audience = Audience.parse(audience)

    if audience.kind == AudienceKind.ALL:
        return identity_service.all_active_members(db)
    if audience.kind == AudienceKind.ROLE:
        return identity_service.members_of_role(db, audience.value)
    if audience.kind == AudienceKind.DEPARTMENT:
        return identity_service.members_of_department(db, audience.value)
    return identity_service.members_of_team(db, UUID(audience.value))


def audience_keys_for(db: Session, user: User) -> set[str]:
    """Every descriptor the user currently belongs to.

    Used to match stored descriptors (unassigned action items, role
    notifications) at read time without expanding them.
    """
    if not user.is_active:
        return set()
    keys = {
        str(BROADCAST),
        str(Audience.role(user.role)),
        str(Audience.department(identity_service.department_of(user))),
    }
    for team_id in identity_service.team_ids_for_user(db, user.id):
        keys.add(str(Audience.team(team_id)))
    return keys


def includes(db: Session, audience: Audience | str | None, user: User) -> bool:
    if audience is None:
        return False
    if isinstance(audience, str):
        audience = Audience.parse(audience)
    return str(audience) in audience_keys_for(db, user)
