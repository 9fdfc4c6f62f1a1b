from .exceptions import (
    CalculationError,
    ComparisonCapacityError,
    GradingError,
    IncompleteScenario,
    InvalidTransition,
    ProtectedScenario,
    StructureUnavailable,
    ValidationError,
)
from .models import (
    CalculatedGrade,
    CalculationResult,
    CurrentStructure,
    HistoryEntry,
    PositionGrade,
    Scenario,
    ScenarioInputs,
    ScenarioMetrics,
)

__all__ = [
    "CalculatedGrade",
    "CalculationError",
    "CalculationResult",
    "ComparisonCapacityError",
    "CurrentStructure",
    "GradingError",
    "HistoryEntry",
    "IncompleteScenario",
    "InvalidTransition",
    "PositionGrade",
    "ProtectedScenario",
    "Scenario",
    "ScenarioInputs",
    "ScenarioMetrics",
    "StructureUnavailable",
    "ValidationError",
]
