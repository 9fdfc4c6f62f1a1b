# comp_grading/state/lifecycle.py
"""
Lifecycle manager for grading scenarios.

Scenario states and transitions:

    DRAFT --promote--> CURRENT --(another promote)--> ARCHIVED
    DRAFT --archive--> ARCHIVED
    any   --duplicate--> new DRAFT
    DRAFT --delete--> (gone)

Every transition is check-then-act under a per-scenario asyncio.Lock: the
scenario is re-read from the repository inside the lock, so of two
transitions racing on the same id only the first can succeed. The remote
repository stays the authority; nothing is patched locally. After a
successful mutation the registered listeners are awaited with the system id
so they can refetch whatever they cache. Repository and transport errors
propagate unchanged and are never retried here.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Dict, List, Optional

from comp_grading.data.repository import StructureRepository
from comp_grading.engines.calculator import calculate_scenario
from comp_grading.state.exceptions import InvalidTransition, ProtectedScenario, ValidationError
from comp_grading.state.models import (
    CalculationResult,
    HistoryEntry,
    Scenario,
    ScenarioInputs,
    ScenarioMetrics,
)
from comp_grading.utils.status_enums import ScenarioStatus

logger = logging.getLogger(__name__)
events_logger = logging.getLogger("comp_grading.lifecycle")

Listener = Callable[[str], Awaitable[None]]


class LifecycleManager:
    """Serializes lifecycle transitions against a StructureRepository."""

    def __init__(self, repository: StructureRepository):
        self.repository = repository
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}
        self._listeners: List[Listener] = []

    def add_listener(self, callback: Listener) -> None:
        """Register a coroutine function awaited with the system id after each mutation."""
        if callback not in self._listeners:
            self._listeners.append(callback)

    def remove_listener(self, callback: Listener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    @asynccontextmanager
    async def _locked(self, scenario_id: str) -> AsyncIterator[None]:
        """Hold the scenario's lock; the entry is dropped once no holder or waiter is left."""
        lock = self._locks.get(scenario_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[scenario_id] = lock
        self._lock_users[scenario_id] = self._lock_users.get(scenario_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[scenario_id] -= 1
            if not self._lock_users[scenario_id]:
                del self._lock_users[scenario_id]
                del self._locks[scenario_id]

    async def _notify(self, system_id: str) -> None:
        for callback in list(self._listeners):
            await callback(system_id)

    async def _require(
        self, system_id: str, scenario_id: str, action: str, allowed: Optional[ScenarioStatus] = None
    ) -> Scenario:
        """Re-read a scenario and check it is in the required state."""
        scenario = await self.repository.fetch_scenario(system_id, scenario_id)
        if scenario is None:
            raise InvalidTransition(scenario_id, f"Cannot {action} scenario {scenario_id}: it does not exist")
        if allowed is not None and scenario.status != allowed:
            raise InvalidTransition(
                scenario_id,
                f"Cannot {action} scenario {scenario_id}: status is {scenario.status.value}, "
                f"expected {allowed.value}",
            )
        return scenario

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
        """Persist new inputs and their calculation as a DRAFT."""
        scenario = await self.repository.create_draft(
            system_id, inputs, result, name, description, metrics, created_by
        )
        events_logger.info(f"[{system_id}] Draft created: {scenario.id} ({scenario.name})")
        await self._notify(system_id)
        return scenario

    async def recalculate(self, system_id: str, scenario_id: str) -> Scenario:
        """Recompute a persisted draft from its stored inputs and save the result."""
        async with self._locked(scenario_id):
            scenario = await self._require(system_id, scenario_id, "recalculate", ScenarioStatus.DRAFT)
            result = calculate_scenario(scenario.inputs)
            updated = await self.repository.save_calculation(system_id, scenario_id, result)
        events_logger.info(f"[{system_id}] Draft recalculated: {scenario_id}")
        await self._notify(system_id)
        return updated

    async def promote(self, system_id: str, scenario_id: str, applied_by: Optional[str] = None) -> bool:
        """Make a DRAFT the current structure; the previous current is archived."""
        async with self._locked(scenario_id):
            scenario = await self._require(system_id, scenario_id, "promote", ScenarioStatus.DRAFT)
            if not scenario.grades:
                raise InvalidTransition(
                    scenario_id,
                    f"Cannot promote scenario {scenario_id}: it has no calculated grades, recalculate it first",
                )
            applied =await self.repository.apply_scenario(system_id, scenario_id, applied_by)
        events_logger.info(f"[{system_id}] Scenario promoted to current: {scenario_id}")
        await self._notify(system_id)
        return applied

    async def archive(self, system_id: str, scenario_id: str) -> bool:
        """Retire a DRAFT without making it current."""
        async with self._locked(scenario_id):
            await self._require(system_id, scenario_id, "archive", ScenarioStatus.DRAFT)
            archived = await self.repository.archive_scenario(system_id, scenario_id)
        events_logger.info(f"[{system_id}] Draft archived: {scenario_id}")
        await self._notify(system_id)
        return archived

    async def duplicate(self, system_id: str, scenario_id: str, created_by: Optional[str] = None) -> Scenario:
        """Copy the inputs of any scenario into a new DRAFT and calculate it.

        Inputs that do not calculate leave the copy without grades; it then
        has to be fixed and recalculated before it can be promoted.
        """
        async with self._locked(scenario_id):
            await self._require(system_id, scenario_id, "duplicate")
            duplicate = await self.repository.duplicate_scenario(system_id, scenario_id, created_by)
        try:
            result = calculate_scenario(duplicate.inputs)
        except ValidationError as e:
            logger.warning(f"Duplicate {duplicate.id} of {scenario_id} left uncalculated: {e.errors}")
        else:
            async with self._locked(duplicate.id):
                duplicate = await self.repository.save_calculation(system_id, duplicate.id, result)
        events_logger.info(f"[{system_id}] Scenario {scenario_id} duplicated as {duplicate.id}")
        await self._notify(system_id)
        return duplicate

    async def delete(self, system_id: str, scenario_id: str) -> bool:
        """Delete a DRAFT. CURRENT and ARCHIVED scenarios are protected."""
        async with self._locked(scenario_id):
            scenario = await self._require(system_id, scenario_id, "delete")
            if scenario.status != ScenarioStatus.DRAFT:
                logger.warning(f"Refusing to delete {scenario.status.value} scenario {scenario_id}")
                raise ProtectedScenario(
                    scenario_id,
                    f"Scenario {scenario_id} is {scenario.status.value} and cannot be deleted",
                )
            deleted = await self.repository.delete_scenario(system_id, scenario_id)
        events_logger.info(f"[{system_id}] Draft deleted: {scenario_id}")
        await self._notify(system_id)
        return deleted

    async def history(self, system_id: str, limit: Optional[int] = None) -> List[HistoryEntry]:
        return await self.repository.fetch_history(system_id, limit)
