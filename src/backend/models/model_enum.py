"""
Model enums for database models.

Columns store the enum *value* as a plain string (see db.models), so every
enum here is a str Enum and compares equal to its stored value.
"""
from enum import Enum


class PoolType(str, Enum):
    """Kind of shared-capacity account backing a resource pool."""
    ADMIN_CONSOLE = "admin_console"
    FAMILY = "family"
    TEAM = "team"
    WORKSPACE = "workspace"


class PoolStatus(str, Enum):
    """
    Resource pool status.

    ACTIVE, OVERDUE and EXPIRED are derived from end_at by the status sweep.
    PAUSED and COMPLETED are set manually and are never touched by the sweep.
    """
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    OVERDUE = "overdue"
    EXPIRED = "expired"

    @classmethod
    def sweepable(cls) -> tuple:
        """Statuses the time-driven sweep is allowed to rewrite."""
        return (cls.ACTIVE.value, cls.OVERDUE.value)

    @classmethod
    def assignable(cls) -> tuple:
        """Statuses in which a pool accepts new seat assignments."""
        return (cls.ACTIVE.value, cls.OVERDUE.value)


class SeatStatus(str, Enum):
    """Assignment state of a single seat."""
    AVAILABLE = "available"
    RESERVED = "reserved"
    ASSIGNED = "assigned"


class PersonalAccountStatus(str, Enum):
    """Status of a single-tenant personal account."""
    AVAILABLE = "available"
    ASSIGNED = "assigned"
    EXPIRED = "expired"


class TimeBucket(str, Enum):
    """Pool list shortcut filters relative to today (UTC)."""
    TODAY = "today"
    THREE_DAYS = "3days"
    OVERDUE = "overdue"
    EXPIRED = "expired"
