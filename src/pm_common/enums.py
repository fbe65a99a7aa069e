"""Global enums — must match DB CHECK constraints exactly."""

from enum import Enum


class EntityStatus(str, Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    DELETED = "DELETED"


class PinOutcome(str, Enum):
    """Result of a single PIN verification attempt."""
    VALID = "VALID"
    INVALID = "INVALID"
    LOCKED = "LOCKED"
    NOT_SET = "NOT_SET"
    SUBJECT_NOT_FOUND = "SUBJECT_NOT_FOUND"
