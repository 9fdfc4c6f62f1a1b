"""
Tests for converting backend scenario payloads.
"""
import pytest

from comp_grading.data.payloads import scenario_from_payload, scenario_to_payload
from comp_grading.state.exceptions import ValidationError
from comp_grading.utils.status_enums import ScenarioStatus

pytestmark = [pytest.mark.data, pytest.mark.unit]

INTERVALS = {"LD_to_LQ": 10, "LQ_to_M": 10, "M_to_UQ": 10, "UQ_to_UD": 10}


@pytest.fixture
def payload():
    return {
        "id": 42,
        "name": "Plan A",
        "description": "",
        "status": "draft",
        "grading_system": {"id": 7, "name": "Engineering"},
        "base_value": "1000",
        "grade_order": ["Manager", "Specialist"],
        "input_rates": {
            "Manager": {"vertical": 20, "horizontal_intervals": INTERVALS},
            "Specialist": {"vertical": None, "horizontal_intervals": INTERVALS},
        },
        "calculated_grades": {
            "Manager": {"LD": 991.74, "LQ": 1090.91, "M": 1200, "UQ": 1320, "UD": 1452},
            "Specialist": {"LD": 826.45, "LQ": 909.09, "M": 1000, "UQ": 1100, "UD": 1210},
        },
        "created_at": "2024-03-01T10:00:00",
        "created_by_name": "HR Admin",
        "unrelated_field": True,
    }


def test_from_payload(payload):
    scenario = scenario_from_payload(payload)
    assert scenario.id == "42"
    assert scenario.system_id == "7"
    assert scenario.status == ScenarioStatus.DRAFT
    assert scenario.inputs.base_value == 1000.0
    assert scenario.inputs.vertical_rates == {"Manager": 20.0, "Specialist": None}
    assert scenario.inputs.horizontal_intervals["LQ_to_M"] == 10.0
    assert scenario.grades["Specialist"].m == 1000.0
    assert scenario.created_by == "HR Admin"
    assert scenario.created_at.year == 2024


def test_missing_averages_are_derived(payload):
    scenario = scenario_from_payload(payload)
    assert scenario.vertical_avg == pytest.approx(20.0)
    assert scenario.horizontal_avg == pytest.approx(10.0)


def test_unknown_status_rejected(payload):
    payload["status"] = "PENDING"
    with pytest.raises(ValidationError) as exc_info:
        scenario_from_payload(payload)
    assert "status" in exc_info.value.errors


def test_missing_band_point_keyed_by_path(payload):
    del payload["calculated_grades"]["Manager"]["UQ"]
    with pytest.raises(ValidationError) as exc_info:
        scenario_from_payload(payload)
    assert "calculated_grades.Manager.UQ" in exc_info.value.errors


def test_non_numeric_point_keyed_by_path(payload):
    payload["calculated_grades"]["Specialist"]["M"] = "lots"
    with pytest.raises(ValidationError) as exc_info:
        scenario_from_payload(payload)
    assert "calculated_grades.Specialist.M" in exc_info.value.errors


def test_missing_grading_system(payload):
    del payload["grading_system"]
    with pytest.raises(ValidationError) as exc_info:
        scenario_from_payload(payload)
    assert "grading_system" in exc_info.value.errors


def test_round_trip_preserves_scenario(payload):
    scenario = scenario_from_payload(payload)
    again = scenario_from_payload(scenario_to_payload(scenario))
    assert again == scenario


def test_to_payload_shape(payload):
    data = scenario_to_payload(scenario_from_payload(payload))
    assert data["status"] == "DRAFT"
    assert data["input_rates"]["Manager"]["vertical"] == 20.0
    assert data["calculated_grades"]["Manager"]["M"] == 1200.0
    assert data["metrics"] is None
