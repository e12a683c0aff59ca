"""Enums for model fields."""

from enum import Enum


class AssignmentType(str, Enum):
    """How a template selects the resources it applies to."""

    PRODUCT = "PRODUCT"
    COLLECTION = "COLLECTION"
    DEFAULT = "DEFAULT"

    @property
    def priority(self) -> int:
        """Lookup priority for this assignment type (lower wins)."""
        return LOOKUP_PRIORITIES[self]

    @property
    def has_targets(self) -> bool:
        """Check if assignments of this type carry explicit targets."""
        return self in (AssignmentType.PRODUCT, AssignmentType.COLLECTION)


LOOKUP_PRIORITIES = {
    AssignmentType.PRODUCT: 1,
    AssignmentType.COLLECTION: 2,
    AssignmentType.DEFAULT: 3,
}


class RebuildState(str, Enum):
    """Per-shop state of the rebuild coordinator."""

    IDLE = "idle"
    REBUILDING = "rebuilding"
    COOLDOWN = "cooldown"
