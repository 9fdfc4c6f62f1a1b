# comp_grading/state/store.py
"""
Scenario store: the single working copy of scenario inputs being edited, its
last good calculation, and wholesale caches of the persisted scenarios of
one grading system.

Edits are synchronous and never suspend. Each edit re-arms a debounce timer
that recalculates once editing goes quiet; ``recalculate()`` can also be
called directly. Only the calls that reach the structure repository are
coroutines.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from comp_grading.config.models import EngineSettings
from comp_grading.data.repository import StructureRepository
from comp_grading.engines.calculator import calculate_scenario, validate_inputs
from comp_grading.reporting.comparison import best_draft as rank_best_draft
from comp_grading.reporting.metrics import calculate_metrics, scenario_statistics
from comp_grading.state.debounce import Debouncer
from comp_grading.state.exceptions import IncompleteScenario, StructureUnavailable, ValidationError
from comp_grading.state.lifecycle import LifecycleManager
from comp_grading.state.models import (
    CalculationResult,
    CurrentStructure,
    Scenario,
    ScenarioInputs,
)
from comp_grading.state.schema import (
    FIELD_BASE_VALUE,
    HORIZONTAL_INTERVALS,
    INTERVAL_LABELS,
    horizontal_field,
    normalize_interval_name,
    vertical_field,
)
from comp_grading.utils.status_enums import ScenarioStatus

logger = logging.getLogger(__name__)
events_logger = logging.getLogger("comp_grading.grading")
errors_logger = logging.getLogger("comp_grading.errors")


def _parse_number(value: Any) -> Tuple[bool, Optional[float]]:
    """Parse an edited value. None and blank text mean unset.

    Returns:
        (ok, value); ok is False when the value is not a number.
    """
    if value is None:
        return True, None
    if isinstance(value, bool):
        return False, None
    if isinstance(value, (int, float)):
        return True, float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return True, None
        try:
            return True, float(text)
        except ValueError:
            return False, None
    return False, None


class ScenarioStore:
    """Working inputs, last calculation and cached scenarios of one grading system.

    Args:
        repository: Structure repository to load from
        lifecycle: Lifecycle manager used to persist drafts; one is created on
                   the same repository if omitted
        settings: Engine settings; defaults apply if omitted
    """

    def __init__(
        self,
        repository: StructureRepository,
        lifecycle: Optional[LifecycleManager] = None,
        settings: Optional[EngineSettings] = None,
    ):
        self.repository = repository
        self.lifecycle = lifecycle or LifecycleManager(repository)
        self.settings = settings or EngineSettings()

        self.system_id: Optional[str] = None
        self._structure: Optional[CurrentStructure] = None
        self._drafts: List[Scenario] = []
        self._archived: List[Scenario] = []
        self._stale = False
        self._load_error: Optional[str] = None

        self._inputs = ScenarioInputs()
        self._last_result: Optional[CalculationResult] = None
        self._last_calculated: Optional[ScenarioInputs] = None
        self._calc_errors: Dict[str, str] = {}
        self._input_errors: Dict[str, str] = {}

        self._debouncer = Debouncer(self.recalculate, self.settings.debounce_seconds)
        self.lifecycle.add_listener(self._on_mutation)

    # ------------------------------------------------------------------ state

    @property
    def working_inputs(self) -> ScenarioInputs:
        """A copy of the inputs being edited."""
        return self._inputs.copy()

    @property
    def last_result(self) -> Optional[CalculationResult]:
        return self._last_result

    @property
    def errors(self) -> Dict[str, str]:
        """Field-keyed errors of the last calculation and of unparseable edits."""
        merged = dict(self._calc_errors)
        merged.update(self._input_errors)
        return merged

    @property
    def current_structure(self) -> Optional[CurrentStructure]:
        return self._structure

    @property
    def current_scenario(self) -> Optional[Scenario]:
        return self._structure.current_scenario if self._structure else None

    @property
    def drafts(self) -> List[Scenario]:
        return list(self._drafts)

    @property
    def archived(self) -> List[Scenario]:
        return list(self._archived)

    @property
    def is_stale(self) -> bool:
        return self._stale

    @property
    def load_error(self) -> Optional[str]:
        return self._load_error

    @property
    def recalculation_pending(self) -> bool:
        return self._debouncer.pending

    @property
    def best_draft(self) -> Optional[Scenario]:
        return rank_best_draft(self._drafts)

    @property
    def can_save_draft(self) -> bool:
        return (
            self.system_id is not None
            and self._inputs.base_value is not None
            and not self._input_errors
            and not validate_inputs(self._inputs)
        )

    # ------------------------------------------------------------------ loading

    async def _fetch_collections(self, system_id: str) -> Tuple[CurrentStructure, List[Scenario], List[Scenario]]:
        structure = await self.repository.fetch_current_structure(system_id)
        drafts = await self.repository.fetch_scenarios(system_id, ScenarioStatus.DRAFT)
        archived = await self.repository.fetch_scenarios(system_id, ScenarioStatus.ARCHIVED)
        return structure, drafts, archived

    def _mark_unavailable(self, system_id: str, error: Exception) -> None:
        self._stale = True
        self._load_error = str(error) or error.__class__.__name__
        errors_logger.error(f"Structure repository unavailable for {system_id}: {self._load_error}")

    async def load_structure(self, system_id: str) -> CurrentStructure:
        """
        Load a grading system and re-seed the working inputs for it.

        Raises:
            StructureUnavailable: If the repository call fails. The previously
                loaded structure and inputs are kept and marked stale.
        """
        try:
            structure, drafts, archived = await self._fetch_collections(system_id)
        except StructureUnavailable as e:
            self._mark_unavailable(system_id, e)
            raise
        except Exception as e:
            self._mark_unavailable(system_id, e)
            raise StructureUnavailable(system_id, f"Could not load grading structure {system_id}: {e}") from e

        self._debouncer.cancel()
        self.system_id = system_id
        self._structure = structure
        self._drafts = drafts
        self._archived = archived
        self._stale = False
        self._load_error = None

        self._inputs = ScenarioInputs.seeded(structure.grade_order)
        self._last_result = None
        self._last_calculated = None
        self._calc_errors = {}
        self._input_errors = {}

        events_logger.info(
            f"[{system_id}] Structure loaded: {len(structure.grade_order)} grades, "
            f"{len(drafts)} drafts, {len(archived)} archived"
        )
        return structure

    async def refresh_scenarios(self) -> None:
        """Refetch the current structure, drafts and archived scenarios wholesale.

        Raises:
            StructureUnavailable: The previous caches are kept and marked stale.
        """
        if self.system_id is None:
            raise StructureUnavailable(None, "No grading structure loaded")
        system_id = self.system_id
        try:
            structure, drafts, archived = await self._fetch_collections(system_id)
        except StructureUnavailable as e:
            self._mark_unavailable(system_id, e)
            raise
        except Exception as e:
            self._mark_unavailable(system_id, e)
            raise StructureUnavailable(system_id, f"Could not load grading structure {system_id}: {e}") from e
        self._structure = structure
        self._drafts = drafts
        self._archived = archived
        self._stale = False
        self._load_error = None
        logger.debug(f"Refreshed scenarios of {system_id}")

    async def _on_mutation(self, system_id: str) -> None:
        if system_id != self.system_id:
            return
        try:
            await self.refresh_scenarios()
        except StructureUnavailable:
            logger.warning(f"Scenario caches of {system_id} are stale after a lifecycle change")

    def load_scenario_inputs(self, scenario: Scenario) -> Optional[CalculationResult]:
        """Copy a scenario's inputs into the working inputs and recalculate.

        Grades of the loaded structure missing from the scenario are left unset.
        """
        grade_order = self._structure.grade_order if self._structure else scenario.grade_order
        inputs = ScenarioInputs.seeded(grade_order)
        inputs.base_value = scenario.inputs.base_value
        for grade, rate in scenario.inputs.vertical_rates.items():
            if grade in inputs.vertical_rates and grade != inputs.base_grade:
                inputs.vertical_rates[grade] = rate
        for raw_name, value in scenario.inputs.horizontal_intervals.items():
            name = normalize_interval_name(raw_name)
            if name is not None:
                inputs.horizontal_intervals[name] = value

        self._debouncer.cancel()
        self._inputs = inputs
        self._input_errors = {}
        logger.info(f"Loaded inputs of scenario {scenario.id} ({scenario.name})")
        return self.recalculate()

    # ------------------------------------------------------------------ edits

    def _after_edit(self) -> None:
        self._debouncer.schedule()

    def set_base_value(self, value: Any) -> bool:
        """Set the base value. Returns False if the value was rejected."""
        ok, number = _parse_number(value)
        if not ok:
            self._input_errors[FIELD_BASE_VALUE] = f"Base value {value!r} is not a number"
            return False
        self._input_errors.pop(FIELD_BASE_VALUE, None)
        self._inputs.base_value = number
        self._after_edit()
        return True

    def set_vertical_rate(self, grade: str, value: Any) -> bool:
        """Set a grade's vertical rate. The base grade's rate cannot be set."""
        key = vertical_field(grade)
        if grade not in self._inputs.grade_order:
            self._input_errors[key] = f"Unknown grade {grade}"
            return False
        if grade == self._inputs.base_grade:
            logger.info(f"Ignoring vertical rate for base grade {grade}")
            return False
        ok, number = _parse_number(value)
        if not ok:
            self._input_errors[key] = f"Vertical rate {value!r} for {grade} is not a number"
            return False
        self._input_errors.pop(key, None)
        self._inputs.vertical_rates[grade] = number
        self._after_edit()
        return True

    def set_horizontal_interval(self, name: str, value: Any) -> bool:
        """Set one of the four horizontal intervals by key or label (``LD→LQ``)."""
        interval = normalize_interval_name(name)
        if interval is None:
            self._input_errors[horizontal_field(str(name))] = f"Unknown horizontal interval {name}"
            return False
        key = horizontal_field(interval)
        ok, number = _parse_number(value)
        if not ok:
            self._input_errors[key] = f"Horizontal interval {value!r} for {INTERVAL_LABELS[interval]} is not a number"
            return False
        self._input_errors.pop(key, None)
        self._inputs.horizontal_intervals[interval] = number
        self._after_edit()
        return True

    def recalculate(self) -> Optional[CalculationResult]:
        """
        Run the calculator on the working inputs.

        A pending debounced run is cancelled. On success the result replaces the
        last result and calculation errors are cleared; on failure the errors are
        stored and the last good result is kept.

        Returns:
            The new (or unchanged) result, or None if the inputs are invalid.
        """
        self._debouncer.cancel()
        if (
            self.settings.skip_unchanged_recalculation
            and self._last_result is not None
            and not self._calc_errors
            and self._inputs == self._last_calculated
        ):
            logger.debug("Inputs unchanged since last calculation; skipping")
            return self._last_result

        snapshot = self._inputs.copy()
        try:
            result = calculate_scenario(snapshot)
        except ValidationError as e:
            self._calc_errors = dict(e.errors)
            logger.debug(f"Recalculation rejected: {e.errors}")
            return None

        self._last_result = result
        self._last_calculated = snapshot
        self._calc_errors = {}
        events_logger.info(
            f"[{self.system_id}] Recalculated {len(result.grades)} grades "
            f"(vertical_avg={result.vertical_avg:.2f}, horizontal_avg={result.horizontal_avg:.2f})"
        )
        return result

    # ------------------------------------------------------------------ persistence

    def _default_name(self) -> str:
        return self.settings.default_draft_name.format(timestamp=datetime.now())

    async def save_draft(
        self,
        name: Optional[str] = None,
        description: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> Scenario:
        """
        Persist the working inputs and their calculation as a new DRAFT.

        Raises:
            IncompleteScenario: If no structure is loaded, the base value is unset
                or validation errors remain.
        """
        if self.system_id is None or self._structure is None:
            raise IncompleteScenario("Load a grading structure before saving a draft")
        self._debouncer.flush()
        if self._inputs.base_value is None:
            raise IncompleteScenario("Base value is required", {FIELD_BASE_VALUE: "Base value is required"})

        result = self.recalculate()
        if result is None or self.errors:
            raise IncompleteScenario("Resolve validation errors before saving the draft", self.errors)

        metrics = calculate_metrics(
            result.grades,
            self._inputs.grade_order,
            result.vertical_avg,
            result.horizontal_avg,
            reference_grades=self._structure.reference_grades,
            thresholds=self.settings.risk_thresholds,
        )
        draft_name = name.strip() if name and name.strip() else self._default_name()
        if description is None:
            description = self.settings.default_draft_description

        return await self.lifecycle.create_draft(
            self.system_id,
            self._inputs.copy(),
            result,
            draft_name,
            description,
            metrics,
            created_by,
        )

    # ------------------------------------------------------------------ summaries

    def input_summary(self) -> Dict[str, Any]:
        """Overview of the working inputs and the last result's averages."""
        grade_order = self._inputs.grade_order
        base_grade = self._inputs.base_grade
        missing_rates = [
            g for g in grade_order
            if g != base_grade and self._inputs.vertical_rates.get(g) is None
        ]
        return {
            "system_id": self.system_id,
            "base_value": self._inputs.base_value,
            "base_grade": base_grade,
            "grade_count": len(grade_order),
            "vertical_rates_set": len(grade_order) - len(missing_rates) - (1 if base_grade else 0),
            "missing_vertical_rates": missing_rates,
            "horizontal_intervals": {
                INTERVAL_LABELS[name]: self._inputs.horizontal_intervals.get(name)
                for name in HORIZONTAL_INTERVALS
            },
            "vertical_avg": self._last_result.vertical_avg if self._last_result else None,
            "horizontal_avg": self._last_result.horizontal_avg if self._last_result else None,
        }

    def validation_summary(self) -> Dict[str, Any]:
        """Every open error on the working inputs, whether or not recalculated yet."""
        errors = validate_inputs(self._inputs)
        errors.update(self._input_errors)
        return {
            "is_valid": not errors,
            "error_count": len(errors),
            "errors": errors,
        }

    def statistics(self) -> Dict[str, Any]:
        return scenario_statistics(self.current_scenario, self._drafts, self._archived)

    def close(self) -> None:
        """Cancel any pending recalculation and detach from the lifecycle manager."""
        self._debouncer.cancel()
        self.lifecycle.remove_listener(self._on_mutation)
