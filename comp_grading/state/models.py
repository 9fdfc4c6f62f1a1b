"""
Data models for grading scenarios.

Engine-internal values (inputs, calculated bands, results) are plain
dataclasses. ``Scenario`` is a frozen pydantic model so that persisted
scenarios coming back from a repository are validated once, at the boundary,
and carry their lifecycle status as an enum.
"""

import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Union

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field

from comp_grading.state.schema import BAND_POINTS, HORIZONTAL_INTERVALS
from comp_grading.utils.status_enums import HistoryAction, ScenarioStatus


@dataclass(frozen=True)
class PositionGrade:
    """A named rung in the position hierarchy.

    Args:
        name: Unique grade name within a grading system
        hierarchy_level: Order index, 0 being the top of the hierarchy
    """
    name: str
    hierarchy_level: int

    @staticmethod
    def order_of(grades: Sequence[Union[str, "PositionGrade"]]) -> List[str]:
        """Grade names from top to base.

        PositionGrades are sorted by hierarchy level; plain names keep the
        order they are given in.
        """
        if grades and all(isinstance(g, PositionGrade) for g in grades):
            return [g.name for g in sorted(grades, key=lambda g: g.hierarchy_level)]
        return [g.name if isinstance(g, PositionGrade) else str(g) for g in grades]


@dataclass
class ScenarioInputs:
    """Editable inputs of a scenario, before calculation.

    Rates are percentages (0-100). The base grade (last in ``grade_order``)
    never carries a vertical rate.
    """
    base_value: Optional[float] = None
    grade_order: List[str] = field(default_factory=list)
    vertical_rates: Dict[str, Optional[float]] = field(default_factory=dict)
    horizontal_intervals: Dict[str, Optional[float]] = field(default_factory=dict)

    @classmethod
    def seeded(cls, grade_order: List[str]) -> "ScenarioInputs":
        """Empty inputs for a grade order: no base value, every rate unset."""
        return cls(
            base_value=None,
            grade_order=list(grade_order),
            vertical_rates={name: None for name in grade_order},
            horizontal_intervals={name: None for name in HORIZONTAL_INTERVALS},
        )

    @property
    def base_grade(self) -> Optional[str]:
        return self.grade_order[-1] if self.grade_order else None

    def copy(self) -> "ScenarioInputs":
        return copy.deepcopy(self)


@dataclass(frozen=True)
class CalculatedGrade:
    """The five salary points of one grade's band."""
    ld: float
    lq: float
    m: float
    uq: float
    ud: float

    def as_dict(self) -> Dict[str, float]:
        return dict(zip(BAND_POINTS, (self.ld, self.lq, self.m, self.uq, self.ud)))

    @classmethod
    def from_points(cls, points: Dict[str, float]) -> "CalculatedGrade":
        ld, lq, m, uq, ud = (float(points[p]) for p in BAND_POINTS)
        return cls(ld=ld, lq=lq, m=m, uq=uq, ud=ud)


@dataclass(frozen=True)
class CalculationResult:
    """Output of the scenario calculator."""
    grades: Dict[str, CalculatedGrade]
    vertical_avg: float
    horizontal_avg: float

    def to_frame(self) -> pd.DataFrame:
        """Band matrix as a DataFrame indexed by grade, columns LD..UD."""
        frame = pd.DataFrame(
            [grade.as_dict() for grade in self.grades.values()],
            index=pd.Index(list(self.grades.keys()), name="grade"),
            columns=list(BAND_POINTS),
        )
        return frame


@dataclass(frozen=True)
class ScenarioMetrics:
    """Comparison metrics of a scenario against a reference structure."""
    total_budget_impact: float = 0.0
    budget_change: float = 0.0
    avg_salary_increase: float = 0.0
    max_salary_increase: float = 0.0
    positions_affected: int = 0
    competitiveness: float = 50.0
    risk_level: str = "Low"


class Scenario(BaseModel):
    """A persisted snapshot of inputs and the grade matrix they produced."""

    model_config = ConfigDict(frozen=True)

    id: str
    system_id: str
    name: str
    description: str = ""
    status: ScenarioStatus = ScenarioStatus.DRAFT
    inputs: ScenarioInputs
    grades: Dict[str, CalculatedGrade] = Field(default_factory=dict)
    vertical_avg: float = 0.0
    horizontal_avg: float = 0.0
    metrics: Optional[ScenarioMetrics] = None
    created_at: datetime = Field(default_factory=datetime.now)
    created_by: Optional[str] = None
    calculated_at: Optional[datetime] = None
    applied_at: Optional[datetime] = None
    applied_by: Optional[str] = None

    @property
    def is_editable(self) -> bool:
        return self.status == ScenarioStatus.DRAFT

    @property
    def grade_order(self) -> List[str]:
        return list(self.inputs.grade_order)


@dataclass(frozen=True)
class CurrentStructure:
    """The authoritative structure of a grading system.

    ``grades`` holds the repository's default structure until a scenario has
    been promoted; afterwards it mirrors the current scenario.
    """
    system_id: str
    grade_order: List[str]
    current_scenario: Optional[Scenario] = None
    base_value: Optional[float] = None
    vertical_avg: float = 0.0
    horizontal_avg: float = 0.0
    grades: Dict[str, CalculatedGrade] = field(default_factory=dict)

    @property
    def positions(self) -> List[PositionGrade]:
        return [PositionGrade(name, level) for level, name in enumerate(self.grade_order)]

    @property
    def reference_grades(self) -> Dict[str, CalculatedGrade]:
        if self.current_scenario is not None:
            return self.current_scenario.grades
        return self.grades


@dataclass(frozen=True)
class HistoryEntry:
    """One record of a grading system's audit trail."""
    scenario_id: str
    action: HistoryAction
    timestamp: datetime = field(default_factory=datetime.now)
    previous_current_id: Optional[str] = None
    performed_by: Optional[str] = None
