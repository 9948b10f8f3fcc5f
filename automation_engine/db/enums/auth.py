"""Auth-related enums."""

from enum import Enum


class Role(str, Enum):
    """
    Portal roles.

    - VOLUNTEER: Presentation teams, sees own assigned work
    - TEACHER: External host of presentations
    - INTERN: Department staff (Technology by default)
    - FOUNDER: Organization leadership, reviews applicants and AI actions
    - ADMIN: Platform admin
    """

    VOLUNTEER = "volunteer"
    TEACHER = "teacher"
    INTERN = "intern"
    FOUNDER = "founder"
    ADMIN = "admin"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_
