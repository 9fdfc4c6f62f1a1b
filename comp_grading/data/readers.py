# comp_grading/data/readers.py
"""
Functions for reading input files (scenario inputs, grading structure fixtures).
"""

import logging
from pathlib import Path
from typing import Any, Dict, Union

import yaml
from cerberus import Validator

from comp_grading.data.payloads import scenario_from_payload
from comp_grading.data.repository import InMemoryStructureRepository
from comp_grading.state.exceptions import ValidationError
from comp_grading.state.models import CalculatedGrade, ScenarioInputs
from comp_grading.state.schema import BAND_POINTS, normalize_interval_name

logger = logging.getLogger(__name__)

_RATE_MAP = {"type": "dict", "valuesrules": {"type": "number", "nullable": True}}

INPUTS_SCHEMA: Dict[str, Any] = {
    "name": {"type": "string", "required": False},
    "description": {"type": "string", "required": False},
    "base_value": {"type": "number", "required": False, "nullable": True},
    "grade_order": {"type": "list", "required": True, "schema": {"type": "string"}},
    "vertical_rates": dict(_RATE_MAP, required=False),
    "horizontal_intervals": dict(_RATE_MAP, required=False),
}

STRUCTURES_SCHEMA: Dict[str, Any] = {
    "systems": {
        "type": "dict",
        "required": True,
        "valuesrules": {
            "type": "dict",
            "schema": {
                "grade_order": {"type": "list", "required": True, "schema": {"type": "string"}},
                "base_value": {"type": "number", "nullable": True},
                "vertical_avg": {"type": "number"},
                "horizontal_avg": {"type": "number"},
                "default_grades": {"type": "dict", "valuesrules": {"type": "dict"}},
                "scenarios": {"type": "list", "schema": {"type": "dict"}},
            },
        },
    },
}


# Define a custom exception for data reading errors
class DataReadError(Exception):
    """Custom exception for errors during data reading."""
    pass


def _read_yaml(file_path: Path, what: str) -> Dict[str, Any]:
    logger.info(f"Attempting to read {what} from: {file_path}")
    if not file_path.exists():
        logger.error(f"{what.capitalize()} file not found: {file_path}")
        raise DataReadError(f"{what.capitalize()} file not found: {file_path}")
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (yaml.YAMLError, OSError) as e:
        logger.exception(f"Error reading {what} from {file_path}: {e}")
        raise DataReadError(f"Error reading {what} from {file_path}: {e}") from e
    if not isinstance(data, dict):
        raise DataReadError(f"Invalid {what} format in {file_path}: Expected a mapping.")
    return data


def read_scenario_inputs(file_path: Union[str, Path]) -> ScenarioInputs:
    """
    Reads scenario inputs from a YAML file.

    Expected keys: ``grade_order`` (top to base), ``base_value``,
    ``vertical_rates`` (grade -> percent) and ``horizontal_intervals``
    (``LD_to_LQ`` or ``LD→LQ`` style names -> percent). Values are not range
    checked here; the calculator validates them.

    Raises:
        DataReadError: If the file cannot be found, read or does not have the expected shape.
    """
    if not isinstance(file_path, Path):
        file_path = Path(file_path)

    data = _read_yaml(file_path, "scenario inputs")
    v = Validator(INPUTS_SCHEMA, allow_unknown=True)
    if not v.validate(data):
        raise DataReadError(f"Invalid scenario inputs in {file_path}: {v.errors}")

    inputs = ScenarioInputs.seeded(data["grade_order"])
    inputs.base_value = data.get("base_value")
    for grade, rate in (data.get("vertical_rates") or {}).items():
        inputs.vertical_rates[str(grade)] = rate
    for raw_name, value in (data.get("horizontal_intervals") or {}).items():
        # Unknown names are kept so the calculator reports them
        inputs.horizontal_intervals[normalize_interval_name(raw_name) or raw_name] = value

    logger.info(f"Read scenario inputs for {len(inputs.grade_order)} grades from {file_path}")
    return inputs


def read_structures(file_path: Union[str, Path]) -> InMemoryStructureRepository:
    """
    Reads grading systems (and optionally persisted scenarios) into an
    in-memory repository.

    Scenarios are backend-shaped payloads; see ``scenario_from_payload``.

    Raises:
        DataReadError: On a missing file, a malformed structure or an invalid scenario.
    """
    if not isinstance(file_path, Path):
        file_path = Path(file_path)

    data = _read_yaml(file_path, "grading structures")
    v = Validator(STRUCTURES_SCHEMA, allow_unknown=True)
    if not v.validate(data):
        raise DataReadError(f"Invalid grading structures in {file_path}: {v.errors}")

    repository = InMemoryStructureRepository()
    for system_id, system in data["systems"].items():
        system_id = str(system_id)
        try:
            default_grades = {
                grade: CalculatedGrade.from_points(points)
                for grade, points in (system.get("default_grades") or {}).items()
            }
            repository.register_system(
                system_id,
                system["grade_order"],
                base_value=system.get("base_value"),
                vertical_avg=system.get("vertical_avg", 0.0),
                horizontal_avg=system.get("horizontal_avg", 0.0),
                default_grades=default_grades,
            )
            for payload in system.get("scenarios") or []:
                payload = dict(payload)
                payload.setdefault("grading_system", system_id)
                repository.seed_scenario(scenario_from_payload(payload))
        except KeyError as e:
            raise DataReadError(
                f"Default grade of {system_id} in {file_path} is missing band point {e}; "
                f"expected {', '.join(BAND_POINTS)}"
            ) from e
        except (ValueError, ValidationError) as e:
            raise DataReadError(f"Invalid grading system {system_id} in {file_path}: {e}") from e

    logger.info(f"Read {len(repository.system_ids)} grading systems from {file_path}")
    return repository


__all__ = [
    "DataReadError",
    "read_scenario_inputs",
    "read_structures",
]
