"""Identity and role lookups used by the engine.

Every call reads current membership from the database; nothing is cached.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from automation_engine.core.errors import NotFound
from automation_engine.db.enums import Department, Role
from automation_engine.db.models import TeamMember, User

# Department used when a user has none set explicitly
DEFAULT_DEPARTMENT_BY_ROLE: dict[Role, Department] = {
    Role.FOUNDER: Department.OPERATIONS,
    Role.ADMIN: Department.OPERATIONS,
    Role.INTERN: Department.TECHNOLOGY,
    Role.VOLUNTEER: Department.VOLUNTEER_DEVELOPMENT,
    Role.TEACHER: Department.OUTREACH,
}


def get_user(db: Session, user_id: UUID) -> User | None:
    return db.query(User).filter(User.id == user_id).first()


def role_of(db: Session, user_id: UUID) -> Role:
    """Current role of a user. Raises NotFound for unknown users or roles."""
    user = get_user(db, user_id)
    if not user or not Role.has_value(user.role):
        raise NotFound(f"User {user_id} not found")
    return Role(user.role)


def department_of(user: User) -> str:
    """Explicit department, else the default for the user's role."""
    if user.department:
        return user.department
    if Role.has_value(user.role):
        return DEFAULT_DEPARTMENT_BY_ROLE[Role(user.role)].value
    return Department.OPERATIONS.value


def members_of_role(db: Session, role: Role | str) -> list[UUID]:
    value = role.value if isinstance(role, Role) else role
    rows = (
        db.query(User.id)
        .filter(User.role == value, User.is_active.is_(True))
        .order_by(User.created_at)
        .all()
    )
    return [row.id for row in rows]


def members_of_department(db: Session, department: str) -> list[UUID]:
    """Active users whose explicit or role-derived department matches."""
    users = db.query(User).filter(User.is_active.is_(True)).order_by(User.created_at).all()
    return [u.id for u in users if department_of(u) == department]


def members_of_team(db: Session, team_id: UUID) -> list[UUID]:
    rows = (
        db.query(User.id)
        .join(TeamMember, TeamMember.user_id == User.id)
        .filter(TeamMember.team_id == team_id, User.is_active.is_(True))
        .order_by(User.created_at)
        .all()
    )
    return [row.id for row in rows]


def all_active_members(db: Session) -> list[UUID]:
    rows = db.query(User.id).filter(User.is_active.is_(True)).order_by(User.created_at).all()
    return [row.id for row in rows]


def team_ids_for_user(db: Session, user_id: UUID) -> list[UUID]:
    rows = db.query(TeamMember.team_id).filter(TeamMember.user_id == user_id).all()
    return [row.team_id for row in rows]
