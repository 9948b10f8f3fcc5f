"""Cross-department alert enums."""

from enum import Enum


class AlertSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class AlertStatus(str, Enum):
    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


class Department(str, Enum):
    OPERATIONS = "Operations"
    TECHNOLOGY = "Technology"
    VOLUNTEER_DEVELOPMENT = "Volunteer Development"
    OUTREACH = "Outreach"
    COMMUNICATIONS = "Communications"
    FUNDRAISING = "Fundraising"


ALL_DEPARTMENTS = "all"
