# comp_grading/data/payloads.py
"""
Conversion between backend-shaped scenario dictionaries and ``Scenario``.

The backend sends loosely typed payloads: vertical rates and the (global)
horizontal intervals are nested per grade under ``input_rates``, the grading
system may be an id or a nested object, and optional fields come and go.
Everything is validated here once, so the rest of the engine only ever sees a
``Scenario`` with an enum status.
"""

import logging
from dataclasses import asdict, fields
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from comp_grading.engines.calculator import resolve_intervals
from comp_grading.state.exceptions import ValidationError
from comp_grading.state.models import CalculatedGrade, Scenario, ScenarioInputs, ScenarioMetrics
from comp_grading.state.schema import BAND_POINTS, HORIZONTAL_INTERVALS, normalize_interval_name
from comp_grading.utils.status_enums import ScenarioStatus

logger = logging.getLogger(__name__)

__all__ = ["scenario_from_payload", "scenario_to_payload"]


class GradeRatesPayload(BaseModel):
    """Per-grade entry of ``input_rates``."""

    model_config = ConfigDict(extra="ignore")

    vertical: Optional[float] = None
    horizontal_intervals: Dict[str, Optional[float]] = Field(default_factory=dict)


class ScenarioPayload(BaseModel):
    """Shape of a scenario as the backend returns it."""

    model_config = ConfigDict(extra="ignore")

    id: Union[str, int]
    name: str
    description: Optional[str] = ""
    status: ScenarioStatus
    system_id: Optional[Union[str, int]] = None
    grading_system: Optional[Union[str, int, Dict[str, Any]]] = None
    base_value: Optional[float] = None
    grade_order: List[str] = Field(default_factory=list)
    input_rates: Dict[str, GradeRatesPayload] = Field(default_factory=dict)
    calculated_grades: Dict[str, Dict[str, float]] = Field(default_factory=dict)
    vertical_avg: Optional[float] = None
    horizontal_avg: Optional[float] = None
    metrics: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    calculated_at: Optional[datetime] = None
    calculation_timestamp: Optional[datetime] = None
    applied_at: Optional[datetime] = None
    created_by_name: Optional[str] = None
    applied_by_name: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value


def _field_errors(error: PydanticValidationError) -> Dict[str, str]:
    return {".".join(str(part) for part in e["loc"]) or "payload": e["msg"] for e in error.errors()}


def _system_id(payload: ScenarioPayload) -> Optional[str]:
    if payload.system_id is not None:
        return str(payload.system_id)
    system = payload.grading_system
    if isinstance(system, dict):
        system = system.get("id")
    return str(system) if system is not None else None


def _metrics(raw: Optional[Dict[str, Any]]) -> Optional[ScenarioMetrics]:
    if not raw:
        return None
    known = {f.name for f in fields(ScenarioMetrics)}
    try:
        return ScenarioMetrics(**{k: v for k, v in raw.items() if k in known})
    except TypeError as e:
        raise ValidationError({"metrics": str(e)}) from e


def scenario_from_payload(payload: Mapping[str, Any]) -> Scenario:
    """
    Validate a backend scenario payload and convert it to a ``Scenario``.

    Args:
        payload: Backend dictionary (``base_value``, ``grade_order``,
                 ``input_rates``, ``calculated_grades``, ``status``, ...).

    Returns:
        The validated Scenario. Averages missing from the payload are derived
        from the inputs.

    Raises:
        ValidationError: Keyed by the offending field path, e.g.
            ``calculated_grades.Manager.UQ``.
    """
    try:
        parsed = ScenarioPayload.model_validate(dict(payload))
    except PydanticValidationError as e:
        raise ValidationError(_field_errors(e)) from e

    errors: Dict[str, str] = {}
    system_id = _system_id(parsed)
    if system_id is None:
        errors["grading_system"] = "Grading system is required"

    grade_order = list(parsed.grade_order or parsed.calculated_grades or parsed.input_rates)
    base_grade = grade_order[-1] if grade_order else None

    vertical_rates: Dict[str, Optional[float]] = {}
    for grade in grade_order:
        rates = parsed.input_rates.get(grade)
        vertical_rates[grade] = None if rates is None or grade == base_grade else rates.vertical

    # Intervals are global; every grade carries the same copy.
    horizontal: Dict[str, Optional[float]] = {name: None for name in HORIZONTAL_INTERVALS}
    for grade, rates in parsed.input_rates.items():
        if not rates.horizontal_intervals:
            continue
        for raw_name, value in rates.horizontal_intervals.items():
            name = normalize_interval_name(raw_name)
            if name is None:
                errors[f"input_rates.{grade}.horizontal_intervals.{raw_name}"] = "Unknown horizontal interval"
            else:
                horizontal[name] = value
        break

    grades: Dict[str, CalculatedGrade] = {}
    for grade, points in parsed.calculated_grades.items():
        if grade not in grade_order:
            errors[f"calculated_grades.{grade}"] = "Grade is not part of grade_order"
            continue
        missing = [p for p in BAND_POINTS if p not in points]
        for point in missing:
            errors[f"calculated_grades.{grade}.{point}"] = "Band point is required"
        if not missing:
            grades[grade] = CalculatedGrade.from_points(points)

    if errors:
        raise ValidationError(errors)

    vertical_avg = parsed.vertical_avg
    if vertical_avg is None:
        defined = [r for g, r in vertical_rates.items() if g != base_grade and r is not None]
        vertical_avg = float(np.mean(defined)) if defined else 0.0
    horizontal_avg = parsed.horizontal_avg
    if horizontal_avg is None:
        horizontal_avg = float(np.mean(list(resolve_intervals(horizontal).values())))

    try:
        scenario = Scenario(
            id=str(parsed.id),
            system_id=system_id,
            name=parsed.name,
            description=parsed.description or "",
            status=parsed.status,
            inputs=ScenarioInputs(
                base_value=parsed.base_value,
                grade_order=grade_order,
                vertical_rates=vertical_rates,
                horizontal_intervals=horizontal,
            ),
            grades={g: grades[g] for g in grade_order if g in grades},
            vertical_avg=vertical_avg,
            horizontal_avg=horizontal_avg,
            metrics=_metrics(parsed.metrics),
            created_at=parsed.created_at or datetime.now(),
            created_by=parsed.created_by_name,
            calculated_at=parsed.calculated_at or parsed.calculation_timestamp,
            applied_at=parsed.applied_at,
            applied_by=parsed.applied_by_name,
        )
    except PydanticValidationError as e:
        raise ValidationError(_field_errors(e)) from e

    logger.debug(f"Parsed scenario payload {scenario.id} ({scenario.status.value})")
    return scenario


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def scenario_to_payload(scenario: Scenario) -> Dict[str, Any]:
    """Backend-shaped dictionary of a scenario; inverse of ``scenario_from_payload``."""
    intervals = {
        name: scenario.inputs.horizontal_intervals.get(name) for name in HORIZONTAL_INTERVALS
    }
    input_rates = {
        grade: {
            "vertical": scenario.inputs.vertical_rates.get(grade),
            "horizontal_intervals": dict(intervals),
        }
        for grade in scenario.grade_order
    }
    return {
        "id": scenario.id,
        "name": scenario.name,
        "description": scenario.description,
        "status": scenario.status.value,
        "grading_system": scenario.system_id,
        "base_value": scenario.inputs.base_value,
        "grade_order": scenario.grade_order,
        "input_rates": input_rates,
        "calculated_grades": {g: band.as_dict() for g, band in scenario.grades.items()},
        "vertical_avg": scenario.vertical_avg,
        "horizontal_avg": scenario.horizontal_avg,
        "metrics": asdict(scenario.metrics) if scenario.metrics is not None else None,
        "created_at": _isoformat(scenario.created_at),
        "calculated_at": _isoformat(scenario.calculated_at),
        "applied_at": _isoformat(scenario.applied_at),
        "created_by_name": scenario.created_by,
        "applied_by_name": scenario.applied_by,
    }
