# comp_grading/engines/calculator.py
"""
Scenario calculator: derives the full salary band matrix of a grading system
from a base value, per-grade vertical rates and four global horizontal
interval rates.

The calculation is pure. Identical inputs always produce identical outputs,
which is what allows historical scenarios to be audited by recomputing them.

Algorithm:
    1. Validate inputs (field-keyed errors).
    2. Vertical pass, bottom-up: the base grade's median is the base value;
       each grade above compounds its own vertical rate on the median of the
       grade immediately below it.
    3. Horizontal pass, per grade: the interval ``A_to_B`` is the percentage
       growth from point A to point B. Moving up from the median multiplies,
       moving down divides.
    4. Averages of the vertical rates and of the four intervals.
"""

import logging
import math
from collections import Counter
from typing import Dict, List, Optional

import numpy as np

from comp_grading.state.exceptions import CalculationError, ValidationError
from comp_grading.state.models import CalculatedGrade, CalculationResult, ScenarioInputs
from comp_grading.state.schema import (
    BAND_POINTS,
    FIELD_BASE_VALUE,
    FIELD_GRADE_ORDER,
    HORIZONTAL_INTERVALS,
    LD_TO_LQ,
    LQ_TO_M,
    M_TO_UQ,
    RATE_MAX,
    RATE_MIN,
    UQ_TO_UD,
    grade_field,
    horizontal_field,
    normalize_interval_name,
    vertical_field,
)

logger = logging.getLogger(__name__)

__all__ = ["validate_inputs", "calculate_scenario", "resolve_intervals"]


def _is_number(value) -> bool:
    return isinstance(value, (int, float, np.number)) and not isinstance(value, bool)


def _check_rate(value, label: str) -> Optional[str]:
    """Return an error message for a rate outside [0, 100], or None."""
    if not _is_number(value) or not math.isfinite(float(value)):
        return f"{label} must be a finite number"
    if not RATE_MIN <= float(value) <= RATE_MAX:
        return f"{label} must be between {RATE_MIN:g} and {RATE_MAX:g} percent"
    return None


def resolve_intervals(intervals: Dict[str, Optional[float]]) -> Dict[str, float]:
    """Normalize interval names and default unset intervals to 0.

    Unknown names are ignored here; ``validate_inputs`` reports them.
    """
    resolved = {name: 0.0 for name in HORIZONTAL_INTERVALS}
    for raw_name, value in (intervals or {}).items():
        name = normalize_interval_name(raw_name)
        if name is None or value is None:
            continue
        resolved[name] = float(value)
    return resolved


def validate_inputs(inputs: ScenarioInputs) -> Dict[str, str]:
    """
    Validate scenario inputs without calculating anything.

    Args:
        inputs: The scenario inputs to check.

    Returns:
        A mapping of field key to error message; empty when the inputs are valid.
    """
    errors: Dict[str, str] = {}

    base_value = inputs.base_value
    if base_value is None:
        errors[FIELD_BASE_VALUE] = "Base value is required"
    elif not _is_number(base_value) or not math.isfinite(float(base_value)):
        errors[FIELD_BASE_VALUE] = "Base value must be a finite number"
    elif float(base_value) <= 0:
        errors[FIELD_BASE_VALUE] = "Base value must be greater than 0"

    grade_order = list(inputs.grade_order or [])
    if not grade_order:
        errors[FIELD_GRADE_ORDER] = "Grade order must contain at least one grade"
    else:
        duplicates = sorted(name for name, count in Counter(grade_order).items() if count > 1)
        if duplicates:
            errors[FIELD_GRADE_ORDER] = f"Duplicate grade names: {', '.join(duplicates)}"

    if grade_order:
        base_grade = grade_order[-1]
        rates = inputs.vertical_rates or {}
        for grade in grade_order[:-1]:
            rate = rates.get(grade)
            if rate is None:
                errors[vertical_field(grade)] = f"Vertical rate for {grade} is required"
                continue
            message = _check_rate(rate, f"Vertical rate for {grade}")
            if message:
                errors[vertical_field(grade)] = message
        if rates.get(base_grade) is not None:
            errors[vertical_field(base_grade)] = (
                f"Base grade {base_grade} cannot have a vertical rate"
            )
        for grade in rates:
            if grade not in grade_order and rates[grade] is not None:
                errors[vertical_field(grade)] = f"Unknown grade {grade}"

    for raw_name, value in (inputs.horizontal_intervals or {}).items():
        name = normalize_interval_name(raw_name)
        if name is None:
            errors[horizontal_field(str(raw_name))] = f"Unknown horizontal interval {raw_name}"
            continue
        if value is None:
            continue
        message = _check_rate(value, f"Horizontal interval {name}")
        if message:
            errors[horizontal_field(name)] = message

    return errors


def _vertical_pass(base_value: float, grade_order: List[str], rates: Dict[str, Optional[float]]) -> Dict[str, float]:
    medians: Dict[str, float] = {}
    below: Optional[str] = None
    for grade in reversed(grade_order):
        if below is None:
            medians[grade] = float(base_value)
        else:
            medians[grade] = medians[below] * (1 + float(rates[grade]) / 100)
        below = grade
    return medians


def _horizontal_pass(median: float, intervals: Dict[str, float]) -> CalculatedGrade:
    lq = median / (1 + intervals[LQ_TO_M] / 100)
    ld = lq / (1 + intervals[LD_TO_LQ] / 100)
    uq = median * (1 + intervals[M_TO_UQ] / 100)
    ud = uq * (1 + intervals[UQ_TO_UD] / 100)
    return CalculatedGrade(ld=ld, lq=lq, m=median, uq=uq, ud=ud)


def calculate_scenario(inputs: ScenarioInputs) -> CalculationResult:
    """
    Calculate the band matrix for a scenario.

    Args:
        inputs: Base value, grade order (top to base), vertical rates and
                horizontal intervals, all rates in percent.

    Returns:
        CalculationResult with grades in ``grade_order`` order and the
        vertical/horizontal averages in percent.

    Raises:
        ValidationError: If the inputs are malformed.
        CalculationError: If a derived point is negative or non-finite.
    """
    errors = validate_inputs(inputs)
    if errors:
        logger.debug("Scenario inputs rejected: %s", errors)
        raise ValidationError(errors)

    grade_order = list(inputs.grade_order)
    intervals = resolve_intervals(inputs.horizontal_intervals)
    medians = _vertical_pass(float(inputs.base_value), grade_order, inputs.vertical_rates)

    grades: Dict[str, CalculatedGrade] = {}
    for grade in grade_order:
        band = _horizontal_pass(medians[grade], intervals)
        points = band.as_dict()
        bad = [p for p in BAND_POINTS if not math.isfinite(points[p]) or points[p] < 0]
        if bad:
            message = f"Derived {'/'.join(bad)} for {grade} is negative or non-finite"
            logger.warning(message)
            raise CalculationError(grade, {grade_field(grade): message})
        grades[grade] = band

    defined_rates = [
        float(inputs.vertical_rates[g]) for g in grade_order[:-1]
    ]
    vertical_avg = float(np.mean(defined_rates)) if defined_rates else 0.0
    horizontal_avg = float(np.mean([intervals[name] for name in HORIZONTAL_INTERVALS]))

    logger.debug(
        "Calculated %d grades (base=%s, vertical_avg=%.4f, horizontal_avg=%.4f)",
        len(grades), inputs.base_value, vertical_avg, horizontal_avg,
    )
    return CalculationResult(grades=grades, vertical_avg=vertical_avg, horizontal_avg=horizontal_avg)
