# comp_grading/config/models.py
"""
Pydantic models for validating the engine settings loaded from YAML files
(the ``grading:`` section of a config file).
"""

import logging
from typing import Optional

from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger(__name__)


class RiskThresholds(BaseModel):
    """Average rates (in percent) above which a scenario is flagged as risky."""

    vertical_high: float = Field(25.0, ge=0.0, description="Vertical average for High risk")
    horizontal_high: float = Field(15.0, ge=0.0, description="Horizontal average for High risk")
    vertical_medium: float = Field(15.0, ge=0.0, description="Vertical average for Medium risk")
    horizontal_medium: float = Field(10.0, ge=0.0, description="Horizontal average for Medium risk")

    @model_validator(mode='after')
    def check_medium_below_high(self) -> 'RiskThresholds':
        if self.vertical_medium > self.vertical_high:
            raise ValueError("vertical_medium cannot exceed vertical_high")
        if self.horizontal_medium > self.horizontal_high:
            raise ValueError("horizontal_medium cannot exceed horizontal_high")
        return self


class EngineSettings(BaseModel):
    """Tunable behaviour of the scenario store, lifecycle and comparison."""

    debounce_seconds: float = Field(
        0.5, ge=0.0, description="Quiet period before an edit triggers recalculation"
    )
    comparison_capacity: int = Field(
        4, ge=1, description="Maximum number of scenarios compared side by side"
    )
    skip_unchanged_recalculation: bool = Field(
        True, description="Skip recalculating when inputs match the last calculation"
    )
    default_draft_name: str = Field(
        "Scenario {timestamp:%Y-%m-%d %H:%M:%S}",
        description="Template for unnamed drafts; receives `timestamp`",
    )
    default_draft_description: str = ""
    risk_thresholds: RiskThresholds = Field(default_factory=RiskThresholds)
    log_dir: Optional[str] = Field(None, description="Directory for log files (CLI)")


class MainConfig(BaseModel):
    """Top-level config file."""

    grading: EngineSettings = Field(default_factory=EngineSettings)
