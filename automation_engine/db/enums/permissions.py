"""Role permission sets."""

from automation_engine.db.enums.auth import Role

# Privileged roles bypass relationship checks (assignee/assigner) and may
# trigger scheduled jobs without the cron secret.
ROLES_PRIVILEGED = {Role.FOUNDER, Role.ADMIN}

# AI actions
ROLES_CAN_PROPOSE_AI_ACTIONS = {Role.FOUNDER, Role.INTERN, Role.ADMIN}
ROLES_CAN_DECIDE_AI_ACTIONS = ROLES_PRIVILEGED

# Pipeline management (stage config, enrollment review)
ROLES_CAN_MANAGE_PIPELINE = {Role.FOUNDER, Role.ADMIN, Role.INTERN}

# Alerts
ROLES_CAN_VIEW_ALL_ALERTS = ROLES_PRIVILEGED


def is_privileged(role: Role | str | None) -> bool:
    """True if role is in ROLES_PRIVILEGED."""
    if role is None:
        return False
    if isinstance(role, str) and not isinstance(role, Role):
        if not Role.has_value(role):
            return False
        role = Role(role)
    return role in ROLES_PRIVILEGED
