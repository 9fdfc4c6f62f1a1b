# comp_grading/utils/status_enums.py

from enum import Enum


class ScenarioStatus(str, Enum):
    """Lifecycle status of a grading scenario."""

    DRAFT = "DRAFT"
    CURRENT = "CURRENT"
    ARCHIVED = "ARCHIVED"


class HistoryAction(str, Enum):
    """Actions recorded in a grading system's audit trail."""

    CREATED = "CREATED"
    RECALCULATED = "RECALCULATED"
    APPLIED = "APPLIED"
    ARCHIVED = "ARCHIVED"
    DUPLICATED = "DUPLICATED"
    DELETED = "DELETED"


# Explicit exports
__all__ = ["ScenarioStatus", "HistoryAction"]
