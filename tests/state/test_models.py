"""
Tests for scenario data models and canonical names.
"""
import pytest
from pydantic import ValidationError as PydanticValidationError

from comp_grading.state.models import CalculatedGrade, CurrentStructure, PositionGrade, Scenario, ScenarioInputs
from comp_grading.state.schema import normalize_interval_name
from comp_grading.utils.status_enums import ScenarioStatus

pytestmark = [pytest.mark.state, pytest.mark.unit]


@pytest.mark.parametrize("name, expected", [
    ("LD_to_LQ", "LD_to_LQ"),
    ("LQ→M", "LQ_to_M"),
    (" M->UQ ", "M_to_UQ"),
    ("UQ_to_LD", None),
    (None, None),
])
def test_normalize_interval_name(name, expected):
    assert normalize_interval_name(name) == expected


def test_seeded_inputs(grade_order):
    inputs = ScenarioInputs.seeded(grade_order)
    assert inputs.base_grade == "Specialist"
    assert inputs.base_value is None
    assert list(inputs.horizontal_intervals) == ["LD_to_LQ", "LQ_to_M", "M_to_UQ", "UQ_to_UD"]


def test_inputs_copy_is_independent(example_inputs):
    copy = example_inputs.copy()
    copy.vertical_rates["Manager"] = 1.0
    assert example_inputs.vertical_rates["Manager"] == 20.0


def test_calculated_grade_points():
    grade = CalculatedGrade.from_points({"LD": 1, "LQ": 2, "M": 3, "UQ": 4, "UD": 5})
    assert grade.m == 3.0
    assert grade.as_dict() == {"LD": 1.0, "LQ": 2.0, "M": 3.0, "UQ": 4.0, "UD": 5.0}


def test_scenario_status_is_validated(example_inputs):
    with pytest.raises(PydanticValidationError):
        Scenario(id="x", system_id="s", name="x", status="PENDING", inputs=example_inputs)


def test_scenario_is_frozen(example_inputs):
    scenario = Scenario(id="x", system_id="s", name="x", inputs=example_inputs)
    assert scenario.is_editable
    assert scenario.grade_order == ["Director", "Manager", "Specialist"]
    with pytest.raises(PydanticValidationError):
        scenario.status = ScenarioStatus.CURRENT


def test_reference_grades_prefer_current_scenario(example_inputs):
    current = Scenario(
        id="c", system_id="s", name="c", status=ScenarioStatus.CURRENT, inputs=example_inputs,
        grades={"Manager": CalculatedGrade(1, 2, 3, 4, 5)},
    )
    default = {"Manager": CalculatedGrade(9, 9, 9, 9, 9)}
    assert CurrentStructure("s", ["Manager"], grades=default).reference_grades is default
    assert CurrentStructure("s", ["Manager"], current, grades=default).reference_grades["Manager"].m == 3


def test_position_grades_order_by_hierarchy_level():
    grades = [PositionGrade("Specialist", 2), PositionGrade("Director", 0), PositionGrade("Manager", 1)]
    assert PositionGrade.order_of(grades) == ["Director", "Manager", "Specialist"]
    assert PositionGrade.order_of(["Lead", "Staff"]) == ["Lead", "Staff"]
    assert PositionGrade.order_of([]) == []


def test_structure_positions(grade_order):
    structure = CurrentStructure(system_id="engineering", grade_order=grade_order)
    assert structure.positions == [
        PositionGrade("Director", 0),
        PositionGrade("Manager", 1),
        PositionGrade("Specialist", 2),
    ]
