# comp_grading/reporting/metrics.py
"""
Functions to calculate comparison metrics and summary statistics for
grading scenarios.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np

from comp_grading.config.models import RiskThresholds
from comp_grading.reporting.comparison import best_draft, scenario_balance_score
from comp_grading.state.models import CalculatedGrade, Scenario, ScenarioMetrics
from comp_grading.utils.status_enums import ScenarioStatus

logger = logging.getLogger(__name__)

RISK_HIGH = "High"
RISK_MEDIUM = "Medium"
RISK_LOW = "Low"

NEUTRAL_COMPETITIVENESS = 50.0


def calculate_competitiveness(vertical_avg: float, horizontal_avg: float) -> float:
    """Higher growth rates read as more competitive; capped at 100."""
    if vertical_avg and horizontal_avg:
        return float(min((vertical_avg + horizontal_avg) * 2, 100.0))
    return NEUTRAL_COMPETITIVENESS


def calculate_risk_level(
    vertical_avg: float,
    horizontal_avg: float,
    thresholds: Optional[RiskThresholds] = None,
) -> str:
    thresholds = thresholds or RiskThresholds()
    if vertical_avg > thresholds.vertical_high or horizontal_avg > thresholds.horizontal_high:
        return RISK_HIGH
    if vertical_avg > thresholds.vertical_medium or horizontal_avg > thresholds.horizontal_medium:
        return RISK_MEDIUM
    return RISK_LOW


def calculate_metrics(
    grades: Mapping[str, CalculatedGrade],
    grade_order: Sequence[str],
    vertical_avg: float,
    horizontal_avg: float,
    reference_grades: Optional[Mapping[str, CalculatedGrade]] = None,
    thresholds: Optional[RiskThresholds] = None,
) -> ScenarioMetrics:
    """
    Calculates a scenario's metrics against a reference structure.

    Args:
        grades: Calculated bands of the scenario.
        grade_order: Order of the scenario's grades.
        vertical_avg: Average vertical rate, in percent.
        horizontal_avg: Average horizontal interval, in percent.
        reference_grades: Bands of the structure being compared against,
                          normally the current scenario. Only grades present in
                          both contribute to the budget figures.
        thresholds: Risk thresholds; defaults to RiskThresholds().

    Returns:
        ScenarioMetrics. Budget figures are 0 without a reference.
    """
    total_budget_impact = 0.0
    reference_total = 0.0
    increases: List[float] = []
    positions_affected = 0

    if reference_grades:
        for grade_name in grade_order:
            if grade_name not in grades or grade_name not in reference_grades:
                continue
            scenario_median = grades[grade_name].m
            current_median = reference_grades[grade_name].m

            total_budget_impact += scenario_median
            reference_total += current_median
            if not np.isclose(scenario_median, current_median):
                positions_affected += 1
            if current_median > 0:
                increases.append((scenario_median - current_median) / current_median * 100)
    else:
        logger.debug("No reference structure supplied; budget metrics default to 0")

    metrics = ScenarioMetrics(
        total_budget_impact=total_budget_impact,
        budget_change=total_budget_impact - reference_total,
        avg_salary_increase=float(np.mean(increases)) if increases else 0.0,
        max_salary_increase=float(np.max(increases)) if increases else 0.0,
        positions_affected=positions_affected,
        competitiveness=calculate_competitiveness(vertical_avg, horizontal_avg),
        risk_level=calculate_risk_level(vertical_avg, horizontal_avg, thresholds),
    )
    logger.debug(f"Scenario metrics: {metrics}")
    return metrics


def scenario_statistics(
    current: Optional[Scenario],
    drafts: Sequence[Scenario],
    archived: Sequence[Scenario],
) -> Dict[str, Any]:
    """
    Summary statistics of a grading system's scenarios.

    Returns:
        Dict with counts per status, the total, and the best draft's id and
        balance score (None when there are no drafts).
    """
    best = best_draft(drafts)
    stats = {
        "total_scenarios": len(drafts) + len(archived) + (1 if current else 0),
        ScenarioStatus.DRAFT.value: len(drafts),
        ScenarioStatus.CURRENT.value: 1 if current else 0,
        ScenarioStatus.ARCHIVED.value: len(archived),
        "best_draft_id": best.id if best else None,
        "best_draft_score": scenario_balance_score(best) if best else None,
    }
    return stats
