# comp_grading/reporting/comparison.py
"""
Ranking and side-by-side comparison of grading scenarios.

Comparison is read-only: nothing here mutates a scenario. Participants are
keyed by scenario id and their grade matrices are aligned by grade name; a
grade missing from a participant is reported as not present, never
interpolated.
"""

import logging
from dataclasses import asdict
from typing import Dict, Iterator, List, Optional, Sequence

import pandas as pd

from comp_grading.state.exceptions import ComparisonCapacityError
from comp_grading.state.models import CalculatedGrade, Scenario
from comp_grading.state.schema import BAND_POINTS
from comp_grading.utils.status_enums import ScenarioStatus

logger = logging.getLogger(__name__)

DEFAULT_COMPARISON_CAPACITY = 4
NOT_PRESENT = "not present"

__all__ = [
    "DEFAULT_COMPARISON_CAPACITY",
    "NOT_PRESENT",
    "ComparisonSet",
    "ComparisonView",
    "balance_score",
    "scenario_balance_score",
    "best_draft",
    "build_comparison",
    "percentage_differences",
]


def balance_score(vertical_avg: float, horizontal_avg: float) -> float:
    """Rewards large vertical and horizontal growth that are close to each other."""
    vertical_avg = vertical_avg or 0.0
    horizontal_avg = horizontal_avg or 0.0
    return (vertical_avg + horizontal_avg) / (1 + abs(vertical_avg - horizontal_avg))


def scenario_balance_score(scenario: Scenario) -> float:
    return balance_score(scenario.vertical_avg, scenario.horizontal_avg)


def best_draft(scenarios: Sequence[Scenario]) -> Optional[Scenario]:
    """The DRAFT scenario with the highest balance score; the first wins ties.

    Returns None when there are no drafts.
    """
    drafts = [s for s in scenarios if s.status == ScenarioStatus.DRAFT]
    if not drafts:
        return None
    return max(drafts, key=scenario_balance_score)


class ComparisonSet:
    """A bounded, ordered selection of scenarios to compare.

    Adding to a full set raises ComparisonCapacityError; the oldest member is
    never evicted implicitly.
    """

    def __init__(self, capacity: int = DEFAULT_COMPARISON_CAPACITY):
        if capacity < 1:
            raise ValueError("Comparison capacity must be at least 1")
        self.capacity = capacity
        self._members: Dict[str, Scenario] = {}

    def __len__(self) -> int:
        return len(self._members)

    def __contains__(self, scenario_id: object) -> bool:
        return scenario_id in self._members

    def __iter__(self) -> Iterator[Scenario]:
        return iter(list(self._members.values()))

    @property
    def members(self) -> List[Scenario]:
        return list(self._members.values())

    @property
    def is_full(self) -> bool:
        return len(self._members) >= self.capacity

    def add(self, scenario: Scenario) -> None:
        if scenario.id in self._members:
            return
        if self.is_full:
            logger.info(
                f"Rejected {scenario.id}: comparison already holds {self.capacity} scenarios"
            )
            raise ComparisonCapacityError(self.capacity)
        self._members[scenario.id] = scenario

    def remove(self, scenario_id: str) -> None:
        self._members.pop(scenario_id, None)

    def toggle(self, scenario: Scenario) -> bool:
        """Remove the scenario if selected, add it otherwise.

        Returns:
            True if the scenario is selected afterwards.
        """
        if scenario.id in self._members:
            self.remove(scenario.id)
            return False
        self.add(scenario)
        return True

    def clear(self) -> None:
        self._members.clear()

    def view(self) -> "ComparisonView":
        return build_comparison(self.members)


class ComparisonView:
    """Side-by-side rendering of several scenarios' grade matrices."""

    def __init__(self, participants: Sequence[Scenario]):
        self.participants: List[Scenario] = list(participants)
        grade_names: List[str] = []
        for scenario in self.participants:
            for name in scenario.grade_order or list(scenario.grades):
                if name not in grade_names:
                    grade_names.append(name)
        self.grade_names = grade_names

    def cell(self, scenario_id: str, grade: str) -> Optional[CalculatedGrade]:
        """The participant's band for a grade, or None when not present."""
        for scenario in self.participants:
            if scenario.id == scenario_id:
                return scenario.grades.get(grade)
        raise KeyError(f"Scenario {scenario_id} is not part of this comparison")

    def matrix_frame(self, missing: object = NOT_PRESENT) -> pd.DataFrame:
        """
        Grade matrix of all participants.

        Rows are grade names, columns a (scenario id, point) MultiIndex. Cells of
        grades absent from a participant hold ``missing``.
        """
        columns = pd.MultiIndex.from_tuples(
            [(s.id, point) for s in self.participants for point in BAND_POINTS],
            names=["scenario", "point"],
        )
        rows = []
        for grade in self.grade_names:
            row = []
            for scenario in self.participants:
                band = scenario.grades.get(grade)
                if band is None:
                    row.extend([missing] * len(BAND_POINTS))
                else:
                    row.extend(band.as_dict()[p] for p in BAND_POINTS)
            rows.append(row)
        return pd.DataFrame(rows, index=pd.Index(self.grade_names, name="grade"), columns=columns, dtype=object)

    def medians_frame(self, missing: object = NOT_PRESENT) -> pd.DataFrame:
        """Medians only, one column per participant labelled by name."""
        data = {}
        for scenario in self.participants:
            label = f"{scenario.name} ({scenario.status.value})"
            data[label] = [
                scenario.grades[g].m if g in scenario.grades else missing
                for g in self.grade_names
            ]
        return pd.DataFrame(data, index=pd.Index(self.grade_names, name="grade"), dtype=object)

    def metrics_frame(self) -> pd.DataFrame:
        """Averages, balance score and stored metrics, one row per participant."""
        records = []
        for scenario in self.participants:
            record = {
                "scenario": scenario.id,
                "name": scenario.name,
                "status": scenario.status.value,
                "vertical_avg": scenario.vertical_avg,
                "horizontal_avg": scenario.horizontal_avg,
                "balance_score": scenario_balance_score(scenario),
            }
            if scenario.metrics is not None:
                record.update(asdict(scenario.metrics))
            records.append(record)
        return pd.DataFrame.from_records(records).set_index("scenario") if records else pd.DataFrame()


def build_comparison(scenarios: Sequence[Scenario]) -> ComparisonView:
    return ComparisonView(scenarios)


def percentage_differences(reference: Scenario, others: Sequence[Scenario]) -> pd.DataFrame:
    """
    Difference of each scenario's band points from a reference scenario.

    Only grades present in both the reference and the other scenario appear.

    Returns:
        DataFrame with columns grade, scenario, point, reference, value,
        diff_amount and diff_percent (0 where the reference value is 0).
    """
    records = []
    for grade in reference.grade_order:
        ref_band = reference.grades.get(grade)
        if ref_band is None:
            continue
        ref_points = ref_band.as_dict()
        for scenario in others:
            band = scenario.grades.get(grade)
            if band is None:
                continue
            for point, value in band.as_dict().items():
                ref_value = ref_points[point]
                diff_percent = (value - ref_value) / ref_value * 100 if ref_value > 0 else 0.0
                records.append({
                    "grade": grade,
                    "scenario": scenario.id,
                    "point": point,
                    "reference": ref_value,
                    "value": value,
                    "diff_amount": value - ref_value,
                    "diff_percent": diff_percent,
                })
    columns = ["grade", "scenario", "point", "reference", "value", "diff_amount", "diff_percent"]
    return pd.DataFrame.from_records(records, columns=columns)
