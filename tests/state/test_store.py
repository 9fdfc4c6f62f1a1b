"""
Tests for the scenario store: loading, edits, debounced recalculation,
saving drafts and wholesale cache refreshes.
"""
import asyncio

import pytest

from comp_grading.config.models import EngineSettings
from comp_grading.state.exceptions import IncompleteScenario, StructureUnavailable
from comp_grading.state.lifecycle import LifecycleManager
from comp_grading.state.store import ScenarioStore
from comp_grading.utils.status_enums import ScenarioStatus

pytestmark = [pytest.mark.state]

SYSTEM = "engineering"


def _fill(store):
    store.set_base_value(1000)
    store.set_vertical_rate("Manager", 20)
    store.set_vertical_rate("Director", "10")
    for name in ("LD→LQ", "LQ→M", "M→UQ", "UQ→UD"):
        store.set_horizontal_interval(name, 10)


def _loaded_store(repository, settings=None):
    store = ScenarioStore(repository, settings=settings)
    asyncio.run(store.load_structure(SYSTEM))
    return store


def test_load_structure_seeds_empty_inputs(repository):
    store = _loaded_store(repository)
    inputs = store.working_inputs
    assert store.system_id == SYSTEM
    assert inputs.grade_order == ["Director", "Manager", "Specialist"]
    assert inputs.base_value is None
    assert inputs.vertical_rates == {"Director": None, "Manager": None, "Specialist": None}
    assert set(inputs.horizontal_intervals.values()) == {None}
    assert store.current_scenario is None
    assert store.last_result is None
    assert not store.is_stale


def test_recalculate_without_loop(repository):
    store = _loaded_store(repository)
    _fill(store)
    result = store.recalculate()
    assert result.grades["Director"].m == pytest.approx(1320.0)
    assert store.errors == {}
    assert store.last_result is result


def test_base_grade_rate_is_ignored(repository):
    store = _loaded_store(repository)
    assert store.set_vertical_rate("Specialist", 5) is False
    assert store.working_inputs.vertical_rates["Specialist"] is None
    assert store.errors == {}


def test_unknown_names_are_field_errors(repository):
    store = _loaded_store(repository)
    assert store.set_vertical_rate("Intern", 5) is False
    assert store.set_horizontal_interval("LD→UD", 5) is False
    assert set(store.errors) == {"vertical_rate.Intern", "horizontal.LD→UD"}


def test_unparseable_text_keeps_value_until_fixed(repository):
    store = _loaded_store(repository)
    store.set_base_value(1000)
    assert store.set_base_value("12a") is False
    assert store.working_inputs.base_value == 1000.0
    assert "base_value" in store.errors
    assert store.set_base_value(" 1500 ") is True
    assert "base_value" not in store.errors
    assert store.working_inputs.base_value == 1500.0


def test_blank_text_unsets_value(repository):
    store = _loaded_store(repository)
    store.set_vertical_rate("Manager", 20)
    store.set_vertical_rate("Manager", "")
    assert store.working_inputs.vertical_rates["Manager"] is None


def test_validation_failure_keeps_last_good_result(repository):
    store = _loaded_store(repository)
    _fill(store)
    good = store.recalculate()

    store.set_vertical_rate("Manager", 250)
    assert store.recalculate() is None
    assert "vertical_rate.Manager" in store.errors
    assert store.last_result is good

    store.set_vertical_rate("Manager", 20)
    assert store.recalculate() is not None
    assert store.errors == {}


def test_unchanged_inputs_skip_recalculation(repository):
    store = _loaded_store(repository)
    _fill(store)
    first = store.recalculate()
    assert store.recalculate() is first

    store.settings = EngineSettings(skip_unchanged_recalculation=False)
    assert store.recalculate() is not first


def test_edits_are_debounced_on_running_loop(repository):
    async def scenario():
        store = ScenarioStore(repository, settings=EngineSettings(debounce_seconds=0.02))
        await store.load_structure(SYSTEM)
        _fill(store)
        assert store.recalculation_pending
        assert store.last_result is None
        await asyncio.sleep(0.1)
        return store

    store = asyncio.run(scenario())
    assert not store.recalculation_pending
    assert store.last_result.grades["Manager"].m == pytest.approx(1200.0)
    assert store._debouncer.fired_count == 1


def test_explicit_recalculate_cancels_pending_run(repository):
    async def scenario():
        store = ScenarioStore(repository, settings=EngineSettings(debounce_seconds=0.02))
        await store.load_structure(SYSTEM)
        _fill(store)
        store.recalculate()
        assert not store.recalculation_pending
        await asyncio.sleep(0.05)
        return store

    store = asyncio.run(scenario())
    assert store._debouncer.fired_count == 0


def test_save_draft(repository):
    async def scenario():
        store = ScenarioStore(repository, settings=EngineSettings(debounce_seconds=5))
        await store.load_structure(SYSTEM)
        _fill(store)
        draft = await store.save_draft("Plan A", "ten percent everywhere")
        return store, draft

    store, draft = asyncio.run(scenario())
    assert draft.status == ScenarioStatus.DRAFT
    assert draft.name == "Plan A"
    assert draft.grades["Director"].m == pytest.approx(1320.0)
    assert draft.metrics is not None
    # Compared against the default structure: medians 1200, 1050, 900
    assert draft.metrics.total_budget_impact == pytest.approx(1320 + 1200 + 1000)
    assert draft.metrics.budget_change == pytest.approx(3520 - 3150)
    assert draft.metrics.positions_affected == 3
    assert [d.id for d in store.drafts] == [draft.id]


def test_save_draft_default_name(repository):
    async def scenario():
        settings = EngineSettings(default_draft_name="Draft {timestamp:%Y}")
        store = ScenarioStore(repository, settings=settings)
        await store.load_structure(SYSTEM)
        _fill(store)
        return await store.save_draft()

    draft = asyncio.run(scenario())
    assert draft.name.startswith("Draft 20")


def test_save_draft_requires_base_value(repository):
    async def scenario():
        store = ScenarioStore(repository)
        await store.load_structure(SYSTEM)
        store.set_vertical_rate("Manager", 20)
        store.set_vertical_rate("Director", 10)
        await store.save_draft("Incomplete")

    with pytest.raises(IncompleteScenario) as exc_info:
        asyncio.run(scenario())
    assert "base_value" in exc_info.value.errors


def test_save_draft_with_open_errors(repository):
    async def scenario():
        store = ScenarioStore(repository)
        await store.load_structure(SYSTEM)
        store.set_base_value(1000)
        store.set_vertical_rate("Manager", 20)
        await store.save_draft("Missing director rate")

    with pytest.raises(IncompleteScenario) as exc_info:
        asyncio.run(scenario())
    assert "vertical_rate.Director" in exc_info.value.errors


def test_can_save_draft(repository):
    store = _loaded_store(repository)
    assert not store.can_save_draft
    _fill(store)
    assert store.can_save_draft
    store.set_base_value("abc")
    assert not store.can_save_draft


def test_collections_refetched_after_lifecycle_change(repository):
    async def scenario():
        lifecycle = LifecycleManager(repository)
        store = ScenarioStore(repository, lifecycle=lifecycle)
        await store.load_structure(SYSTEM)
        _fill(store)
        draft = await store.save_draft("To promote")
        await lifecycle.promote(SYSTEM, draft.id)
        return store, draft

    store, draft = asyncio.run(scenario())
    assert store.drafts == []
    assert store.current_scenario.id == draft.id
    assert store.statistics()["CURRENT"] == 1


def test_best_draft(repository):
    async def scenario():
        store = ScenarioStore(repository)
        await store.load_structure(SYSTEM)
        _fill(store)
        await store.save_draft("Balanced")
        store.set_vertical_rate("Manager", 90)
        store.set_vertical_rate("Director", 90)
        await store.save_draft("Lopsided")
        return store

    store = asyncio.run(scenario())
    assert store.best_draft.name == "Balanced"


def test_load_scenario_inputs(repository):
    async def scenario():
        store = ScenarioStore(repository)
        await store.load_structure(SYSTEM)
        _fill(store)
        draft = await store.save_draft("Saved")
        await store.load_structure(SYSTEM)
        return store, store.load_scenario_inputs(draft)

    store, result = asyncio.run(scenario())
    assert store.working_inputs.base_value == 1000.0
    assert store.working_inputs.vertical_rates["Manager"] == 20.0
    assert result.grades["Director"].m == pytest.approx(1320.0)


class _FailingRepository:
    def __init__(self, inner):
        self.inner = inner
        self.fail = False

    def __getattr__(self, name):
        attr = getattr(self.inner, name)
        if name.startswith("fetch") and callable(attr):
            async def wrapper(*args, **kwargs):
                if self.fail:
                    raise ConnectionError("repository offline")
                return await attr(*args, **kwargs)
            return wrapper
        return attr


def test_load_failure_keeps_previous_structure(repository):
    failing = _FailingRepository(repository)

    async def scenario():
        store = ScenarioStore(failing)
        await store.load_structure(SYSTEM)
        store.set_base_value(1000)
        failing.fail = True
        with pytest.raises(StructureUnavailable):
            await store.load_structure(SYSTEM)
        return store

    store = asyncio.run(scenario())
    assert store.is_stale
    assert "repository offline" in store.load_error
    assert store.current_structure is not None
    assert store.working_inputs.base_value == 1000.0


def test_refresh_failure_marks_stale(repository):
    failing = _FailingRepository(repository)

    async def scenario():
        store = ScenarioStore(failing)
        await store.load_structure(SYSTEM)
        failing.fail = True
        with pytest.raises(StructureUnavailable):
            await store.refresh_scenarios()
        failing.fail = False
        await store.refresh_scenarios()
        return store

    store = asyncio.run(scenario())
    assert not store.is_stale
    assert store.load_error is None


def test_unknown_system(repository):
    store = ScenarioStore(repository)
    with pytest.raises(StructureUnavailable):
        asyncio.run(store.load_structure("missing"))
    assert store.system_id is None


def test_summaries(repository):
    store = _loaded_store(repository)
    store.set_base_value(1000)
    store.set_vertical_rate("Manager", 20)
    summary = store.input_summary()
    assert summary["base_grade"] == "Specialist"
    assert summary["vertical_rates_set"] == 1
    assert summary["missing_vertical_rates"] == ["Director"]
    assert summary["horizontal_intervals"]["LD→LQ"] is None

    validation = store.validation_summary()
    assert not validation["is_valid"]
    assert "vertical_rate.Director" in validation["errors"]


def test_close_detaches_listener(repository):
    lifecycle = LifecycleManager(repository)
    store = ScenarioStore(repository, lifecycle=lifecycle)
    store.close()
    assert store._on_mutation not in lifecycle._listeners
