"""
Custom exception classes for the grading scenario engine.

Provides specific exception types for the failure modes of calculation,
scenario lifecycle transitions and structure loading, so callers can tell
a local input problem apart from a rejected transition or an unreachable
repository.
"""

from typing import Dict, Mapping, Optional


class GradingError(Exception):
    """Base exception for all grading engine errors."""

    pass


class ValidationError(GradingError):
    """Raised when scenario inputs are malformed.

    Carries a field-keyed mapping of messages so each error can be shown next
    to the input that caused it.
    """

    def __init__(self, errors: Mapping[str, str], message: Optional[str] = None):
        self.errors: Dict[str, str] = dict(errors)
        if message is None:
            message = "; ".join(f"{k}: {v}" for k, v in self.errors.items())
        super().__init__(message)


class CalculationError(ValidationError):
    """Raised when a derived band point is negative or non-finite."""

    def __init__(self, grade: str, errors: Mapping[str, str]):
        self.grade = grade
        super().__init__(errors)


class IncompleteScenario(GradingError):
    """Raised when a draft is saved without a base value or with open errors."""

    def __init__(self, message: str, errors: Optional[Mapping[str, str]] = None):
        self.errors: Dict[str, str] = dict(errors or {})
        super().__init__(message)


class InvalidTransition(GradingError):
    """Raised when a lifecycle operation targets a scenario in the wrong state.

    Also raised when the scenario does not exist or when a concurrent actor
    already changed its status.
    """

    def __init__(self, scenario_id: str, message: str):
        self.scenario_id = scenario_id
        super().__init__(message)


class ProtectedScenario(InvalidTransition):
    """Raised when deleting a CURRENT or ARCHIVED scenario.

    A delete that loses a race against a promote therefore still surfaces as an
    InvalidTransition to callers that only handle the general case.
    """

    pass


class StructureUnavailable(GradingError):
    """Raised when the structure repository cannot be reached."""

    def __init__(self, system_id: Optional[str], message: str):
        self.system_id = system_id
        super().__init__(message)


class ComparisonCapacityError(GradingError):
    """Raised when a comparison set is already full."""

    def __init__(self, capacity: int):
        self.capacity = capacity
        super().__init__(
            f"Comparison is limited to {capacity} scenarios; deselect one before adding another"
        )
