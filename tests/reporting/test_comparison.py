"""
Tests for balance scores, best-draft ranking and side-by-side comparison.
"""
import pandas as pd
import pytest

from comp_grading.reporting.comparison import (
    NOT_PRESENT,
    ComparisonSet,
    balance_score,
    best_draft,
    build_comparison,
    percentage_differences,
)
from comp_grading.state.exceptions import ComparisonCapacityError
from comp_grading.state.models import CalculatedGrade, Scenario, ScenarioInputs
from comp_grading.utils.status_enums import ScenarioStatus

pytestmark = [pytest.mark.reporting, pytest.mark.unit]


def make_scenario(scenario_id, grades, status=ScenarioStatus.DRAFT, vertical_avg=0.0, horizontal_avg=0.0):
    return Scenario(
        id=scenario_id,
        system_id="engineering",
        name=f"Scenario {scenario_id}",
        status=status,
        inputs=ScenarioInputs(base_value=1000.0, grade_order=list(grades)),
        grades={name: CalculatedGrade(m * 0.8, m * 0.9, m, m * 1.1, m * 1.2) for name, m in grades.items()},
        vertical_avg=vertical_avg,
        horizontal_avg=horizontal_avg,
    )


def test_balance_score_formula():
    assert balance_score(10, 10) == pytest.approx(20.0)
    assert balance_score(20, 10) == pytest.approx(30 / 11)
    assert balance_score(0, 0) == 0.0


def test_best_draft_prefers_balanced():
    balanced = make_scenario("a", {"M": 1000}, vertical_avg=10, horizontal_avg=10)
    lopsided = make_scenario("b", {"M": 1000}, vertical_avg=40, horizontal_avg=0)
    assert best_draft([lopsided, balanced]).id == "a"


def test_best_draft_ignores_non_drafts():
    current = make_scenario("c", {"M": 1000}, ScenarioStatus.CURRENT, 10, 10)
    draft = make_scenario("d", {"M": 1000}, ScenarioStatus.DRAFT, 1, 1)
    assert best_draft([current, draft]).id == "d"
    assert best_draft([current]) is None
    assert best_draft([]) is None


def test_best_draft_first_wins_ties():
    first = make_scenario("first", {"M": 1000}, vertical_avg=5, horizontal_avg=5)
    second = make_scenario("second", {"M": 1000}, vertical_avg=5, horizontal_avg=5)
    assert best_draft([first, second]).id == "first"


def test_capacity_rejects_fifth_member():
    selection = ComparisonSet()
    scenarios = [make_scenario(str(i), {"M": 1000}) for i in range(5)]
    for scenario in scenarios[:4]:
        selection.add(scenario)

    with pytest.raises(ComparisonCapacityError):
        selection.add(scenarios[4])

    assert [s.id for s in selection] == ["0", "1", "2", "3"]
    assert selection.is_full


def test_add_existing_member_is_a_no_op():
    selection = ComparisonSet(capacity=1)
    scenario = make_scenario("a", {"M": 1000})
    selection.add(scenario)
    selection.add(scenario)
    assert len(selection) == 1


def test_toggle_and_remove():
    selection = ComparisonSet(capacity=2)
    a = make_scenario("a", {"M": 1000})
    b = make_scenario("b", {"M": 1000})
    assert selection.toggle(a) is True
    assert selection.toggle(b) is True
    assert selection.toggle(a) is False
    assert "a" not in selection
    selection.remove("b")
    assert len(selection) == 0
    selection.add(a)
    selection.clear()
    assert selection.members == []


def test_invalid_capacity():
    with pytest.raises(ValueError):
        ComparisonSet(capacity=0)


def test_view_aligns_grades_by_name():
    a = make_scenario("a", {"Director": 1300, "Manager": 1200, "Specialist": 1000})
    b = make_scenario("b", {"Lead": 1400, "Manager": 1100})
    view = build_comparison([a, b])

    assert view.grade_names == ["Director", "Manager", "Specialist", "Lead"]
    assert view.cell("a", "Lead") is None
    assert view.cell("b", "Manager").m == 1100
    with pytest.raises(KeyError):
        view.cell("zzz", "Manager")

    matrix = view.matrix_frame()
    assert matrix.loc["Specialist", ("b", "M")] == NOT_PRESENT
    assert matrix.loc["Lead", ("b", "UD")] == pytest.approx(1680.0)
    assert matrix.loc["Manager", ("a", "M")] == 1200


def test_comparison_does_not_mutate_scenarios():
    a = make_scenario("a", {"Manager": 1200})
    before = a.model_dump()
    view = build_comparison([a])
    view.matrix_frame()
    view.metrics_frame()
    percentage_differences(a, [a])
    assert a.model_dump() == before


def test_medians_and_metrics_frames():
    a = make_scenario("a", {"Manager": 1200}, vertical_avg=10, horizontal_avg=10)
    b = make_scenario("b", {"Specialist": 1000}, ScenarioStatus.CURRENT)
    view = ComparisonSet(capacity=4)
    view.add(a)
    view.add(b)
    frame = view.view().medians_frame()
    assert list(frame.columns) == ["Scenario a (DRAFT)", "Scenario b (CURRENT)"]
    assert frame.loc["Specialist", "Scenario a (DRAFT)"] == NOT_PRESENT

    metrics = view.view().metrics_frame()
    assert metrics.loc["a", "balance_score"] == pytest.approx(20.0)


def test_percentage_differences():
    reference = make_scenario("ref", {"Manager": 1000, "Specialist": 800})
    other = make_scenario("new", {"Manager": 1100})
    diffs = percentage_differences(reference, [other])

    assert isinstance(diffs, pd.DataFrame)
    assert set(diffs["grade"]) == {"Manager"}
    median = diffs[diffs["point"] == "M"].iloc[0]
    assert median["diff_amount"] == pytest.approx(100.0)
    assert median["diff_percent"] == pytest.approx(10.0)
