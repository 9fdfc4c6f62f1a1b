# comp_grading/data/repository.py
"""
The Structure Repository boundary.

``StructureRepository`` is the async contract the engine consumes: fetching
the current structure and scenario collections, and the remote side of every
lifecycle transition. ``InMemoryStructureRepository`` is a reference
authority implementing that contract in process. It enforces the scenario
state machine itself, so a transition that lost a race against another
client is rejected with InvalidTransition just as a remote service would.
"""

import copy
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Protocol, Sequence, Union, runtime_checkable

from comp_grading.state.exceptions import InvalidTransition, ProtectedScenario, StructureUnavailable
from comp_grading.state.models import (
    CalculatedGrade,
    CalculationResult,
    CurrentStructure,
    HistoryEntry,
    PositionGrade,
    Scenario,
    ScenarioInputs,
    ScenarioMetrics,
)
from comp_grading.utils.status_enums import HistoryAction, ScenarioStatus

logger = logging.getLogger(__name__)

COPY_SUFFIX = " (Copy)"


@runtime_checkable
class StructureRepository(Protocol):
    """Async boundary to wherever grading structures and scenarios live."""

    async def fetch_current_structure(self, system_id: str) -> CurrentStructure:
        ...

    async def fetch_scenarios(self, system_id: str, status: ScenarioStatus) -> List[Scenario]:
        ...

    async def fetch_scenario(self, system_id: str, scenario_id: str) -> Optional[Scenario]:
        ...

    async def create_draft(
        self,
        system_id: str,
        inputs: ScenarioInputs,
        result: CalculationResult,
        name: str,
        description: str = "",
        metrics: Optional[ScenarioMetrics] = None,
        created_by: Optional[str] = None,
    ) -> Scenario:
        ...

    async def save_calculation(
        self, system_id: str, scenario_id: str, result: CalculationResult
    ) -> Scenario:
        ...

    async def apply_scenario(
        self, system_id: str, scenario_id: str, applied_by: Optional[str] = None
    ) -> bool:
        ...

    async def archive_scenario(self, system_id: str, scenario_id: str) -> bool:
        ...

    async def duplicate_scenario(
        self, system_id: str, scenario_id: str, created_by: Optional[str] = None
    ) -> Scenario:
        ...

    async def delete_scenario(self, system_id: str, scenario_id: str) -> bool:
        ...

    async def fetch_history(self, system_id: str, limit: Optional[int] = None) -> List[HistoryEntry]:
        ...


@dataclass
class _SystemRecord:
    grade_order: List[str]
    base_value: Optional[float] = None
    vertical_avg: float = 0.0
    horizontal_avg: float = 0.0
    default_grades: Dict[str, CalculatedGrade] = field(default_factory=dict)
    scenarios: Dict[str, Scenario] = field(default_factory=dict)
    history: List[HistoryEntry] = field(default_factory=list)


class InMemoryStructureRepository:
    """In-process scenario authority.

    Every method completes without awaiting anything, so on a single event
    loop each call is atomic with respect to other coroutines. Scenarios are
    handed out as deep copies; callers never share state with the authority.
    """

    def __init__(self):
        self._systems: Dict[str, _SystemRecord] = {}

    # ------------------------------------------------------------------ setup

    def register_system(
        self,
        system_id: str,
        grade_order: Sequence[Union[str, PositionGrade]],
        base_value: Optional[float] = None,
        vertical_avg: float = 0.0,
        horizontal_avg: float = 0.0,
        default_grades: Optional[Dict[str, CalculatedGrade]] = None,
    ) -> None:
        """Create a grading system with its default (implicitly current) structure.

        ``grade_order`` is either grade names from top to base or PositionGrades,
        which are ordered by hierarchy level.
        """
        grade_order = PositionGrade.order_of(grade_order)
        if not grade_order:
            raise ValueError(f"Grading system {system_id} needs at least one grade")
        if len(set(grade_order)) != len(grade_order):
            raise ValueError(f"Grading system {system_id} has duplicate grade names")
        self._systems[system_id] = _SystemRecord(
            grade_order=list(grade_order),
            base_value=base_value,
            vertical_avg=vertical_avg,
            horizontal_avg=horizontal_avg,
            default_grades=dict(default_grades or {}),
        )
        logger.info(f"Registered grading system {system_id} with grades {grade_order}")

    @property
    def system_ids(self) -> List[str]:
        return list(self._systems)

    def _system(self, system_id: str) -> _SystemRecord:
        record = self._systems.get(system_id)
        if record is None:
            raise StructureUnavailable(system_id, f"Unknown grading system {system_id}")
        return record

    def _scenario(self, system_id: str, scenario_id: str) -> Scenario:
        scenario = self._system(system_id).scenarios.get(scenario_id)
        if scenario is None:
            raise InvalidTransition(scenario_id, f"Scenario {scenario_id} does not exist")
        return scenario

    def _record(self, system_id: str, entry: HistoryEntry) -> None:
        self._system(system_id).history.append(entry)

    @staticmethod
    def _current(record: _SystemRecord) -> Optional[Scenario]:
        for scenario in record.scenarios.values():
            if scenario.status == ScenarioStatus.CURRENT:
                return scenario
        return None

    # ------------------------------------------------------------------ reads

    async def fetch_current_structure(self, system_id: str) -> CurrentStructure:
        record = self._system(system_id)
        current = self._current(record)
        if current is None:
            return CurrentStructure(
                system_id=system_id,
                grade_order=list(record.grade_order),
                current_scenario=None,
                base_value=record.base_value,
                vertical_avg=record.vertical_avg,
                horizontal_avg=record.horizontal_avg,
                grades=dict(record.default_grades),
            )
        return CurrentStructure(
            system_id=system_id,
            grade_order=list(record.grade_order),
            current_scenario=current.model_copy(deep=True),
            base_value=current.inputs.base_value,
            vertical_avg=current.vertical_avg,
            horizontal_avg=current.horizontal_avg,
            grades=dict(current.grades),
        )

    async def fetch_scenarios(self, system_id: str, status: ScenarioStatus) -> List[Scenario]:
        """Scenarios of one status, newest first."""
        record = self._system(system_id)
        matches = [s for s in record.scenarios.values() if s.status == status]
        matches.sort(key=lambda s: s.created_at, reverse=True)
        return [s.model_copy(deep=True) for s in matches]

    async def fetch_scenario(self, system_id: str, scenario_id: str) -> Optional[Scenario]:
        scenario = self._system(system_id).scenarios.get(scenario_id)
        return scenario.model_copy(deep=True) if scenario is not None else None

    async def fetch_history(self, system_id: str, limit: Optional[int] = None) -> List[HistoryEntry]:
        """Audit trail, newest first."""
        entries = list(reversed(self._system(system_id).history))
        return entries[:limit] if limit is not None else entries

    # ------------------------------------------------------------------ writes

    async def create_draft(
        self,
        system_id: str,
        inputs: ScenarioInputs,
        result: CalculationResult,
        name: str,
        description: str = "",
        metrics: Optional[ScenarioMetrics] = None,
        created_by: Optional[str] = None,
    ) -> Scenario:
        record = self._system(system_id)
        now = datetime.now()
        scenario = Scenario(
            id=str(uuid.uuid4()),
            system_id=system_id,
            name=name.strip(),
            description=description,
            status=ScenarioStatus.DRAFT,
            inputs=copy.deepcopy(inputs),
            grades=dict(result.grades),
            vertical_avg=result.vertical_avg,
            horizontal_avg=result.horizontal_avg,
            metrics=metrics,
            created_at=now,
            created_by=created_by,
            calculated_at=now,
        )
        record.scenarios[scenario.id] = scenario
        self._record(system_id, HistoryEntry(scenario.id, HistoryAction.CREATED, performed_by=created_by))
        logger.info(f"Created draft scenario {scenario.id} ({scenario.name}) in {system_id}")
        return scenario.model_copy(deep=True)

    async def save_calculation(
        self, system_id: str, scenario_id: str, result: CalculationResult
    ) -> Scenario:
        record = self._system(system_id)
        scenario = self._scenario(system_id, scenario_id)
        if scenario.status != ScenarioStatus.DRAFT:
            raise InvalidTransition(scenario_id, f"Only draft scenarios can be recalculated ({scenario.status.value})")
        updated = scenario.model_copy(update={
            "grades": dict(result.grades),
            "vertical_avg": result.vertical_avg,
            "horizontal_avg": result.horizontal_avg,
            "calculated_at": datetime.now(),
        })
        record.scenarios[scenario_id] = updated
        self._record(system_id, HistoryEntry(scenario_id, HistoryAction.RECALCULATED))
        return updated.model_copy(deep=True)

    async def apply_scenario(
        self, system_id: str, scenario_id: str, applied_by: Optional[str] = None
    ) -> bool:
        """Promote a draft; the previous current scenario is archived in the same commit."""
        record = self._system(system_id)
        target = self._scenario(system_id, scenario_id)
        if target.status != ScenarioStatus.DRAFT:
            raise InvalidTransition(
                scenario_id, f"Only draft scenarios can be applied ({target.status.value})"
            )
        if not target.grades:
            raise InvalidTransition(
                scenario_id, f"Scenario {scenario_id} has no calculated grades and cannot be applied"
            )
        previous = self._current(record)

        staged = dict(record.scenarios)
        if previous is not None:
            staged[previous.id] = previous.model_copy(update={"status": ScenarioStatus.ARCHIVED})
        staged[scenario_id] = target.model_copy(update={
            "status": ScenarioStatus.CURRENT,
            "applied_at": datetime.now(),
            "applied_by": applied_by,
        })
        record.scenarios = staged

        self._record(system_id, HistoryEntry(
            scenario_id,
            HistoryAction.APPLIED,
            previous_current_id=previous.id if previous else None,
            performed_by=applied_by,
        ))
        logger.info(
            f"Applied scenario {scenario_id} in {system_id}"
            + (f"; archived previous current {previous.id}" if previous else "")
        )
        return True

    async def archive_scenario(self, system_id: str, scenario_id: str) -> bool:
        record = self._system(system_id)
        target = self._scenario(system_id, scenario_id)
        if target.status != ScenarioStatus.DRAFT:
            raise InvalidTransition(
                scenario_id, f"Only draft scenarios can be archived ({target.status.value})"
            )
        record.scenarios[scenario_id] = target.model_copy(update={"status": ScenarioStatus.ARCHIVED})
        self._record(system_id, HistoryEntry(scenario_id, HistoryAction.ARCHIVED))
        return True

    async def duplicate_scenario(
        self, system_id: str, scenario_id: str, created_by: Optional[str] = None
    ) -> Scenario:
        """New draft with the source's inputs; the outputs are not copied.

        The copy has no grades until a calculation is saved for it.
        """
        record = self._system(system_id)
        source = self._scenario(system_id, scenario_id)
        duplicate = Scenario(
            id=str(uuid.uuid4()),
            system_id=system_id,
            name=f"{source.name}{COPY_SUFFIX}",
            description=source.description,
            status=ScenarioStatus.DRAFT,
            inputs=copy.deepcopy(source.inputs),
            created_by=created_by,
        )
        record.scenarios[duplicate.id] = duplicate
        self._record(system_id, HistoryEntry(duplicate.id, HistoryAction.DUPLICATED, performed_by=created_by))
        return duplicate.model_copy(deep=True)

    async def delete_scenario(self, system_id: str, scenario_id: str) -> bool:
        record = self._system(system_id)
        target = self._scenario(system_id, scenario_id)
        if target.status != ScenarioStatus.DRAFT:
            raise ProtectedScenario(
                scenario_id, f"{target.status.value} scenarios are kept for audit and cannot be deleted"
            )
        del record.scenarios[scenario_id]
        self._record(system_id, HistoryEntry(scenario_id, HistoryAction.DELETED))
        return True

    def seed_scenario(self, scenario: Scenario) -> None:
        """Insert an already persisted scenario, e.g. one read from a fixture file."""
        record = self._system(scenario.system_id)
        if scenario.status == ScenarioStatus.CURRENT:
            current = self._current(record)
            if current is not None and current.id != scenario.id:
                raise ValueError(
                    f"Grading system {scenario.system_id} already has current scenario {current.id}"
                )
        record.scenarios[scenario.id] = scenario.model_copy(deep=True)
