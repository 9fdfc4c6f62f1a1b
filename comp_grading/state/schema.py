# comp_grading/state/schema.py
"""
Canonical names for salary band points and horizontal intervals.
"""

from typing import Dict, Optional, Tuple

# Band points, lowest to highest
LOWER_DECILE = "LD"
LOWER_QUARTILE = "LQ"
MEDIAN = "M"
UPPER_QUARTILE = "UQ"
UPPER_DECILE = "UD"

BAND_POINTS: Tuple[str, ...] = (
    LOWER_DECILE,
    LOWER_QUARTILE,
    MEDIAN,
    UPPER_QUARTILE,
    UPPER_DECILE,
)

# Horizontal intervals: percentage growth from the first point to the second
LD_TO_LQ = "LD_to_LQ"
LQ_TO_M = "LQ_to_M"
M_TO_UQ = "M_to_UQ"
UQ_TO_UD = "UQ_to_UD"

HORIZONTAL_INTERVALS: Tuple[str, ...] = (LD_TO_LQ, LQ_TO_M, M_TO_UQ, UQ_TO_UD)

INTERVAL_LABELS: Dict[str, str] = {
    LD_TO_LQ: "LD→LQ",
    LQ_TO_M: "LQ→M",
    M_TO_UQ: "M→UQ",
    UQ_TO_UD: "UQ→UD",
}

_INTERVAL_ALIASES: Dict[str, str] = {
    **{name: name for name in HORIZONTAL_INTERVALS},
    **{label: name for name, label in INTERVAL_LABELS.items()},
    **{label.replace("→", "->"): name for name, label in INTERVAL_LABELS.items()},
}

# Field keys used in validation error mappings
FIELD_BASE_VALUE = "base_value"
FIELD_GRADE_ORDER = "grade_order"
VERTICAL_FIELD_PREFIX = "vertical_rate."
HORIZONTAL_FIELD_PREFIX = "horizontal."
GRADE_FIELD_PREFIX = "grade."

RATE_MIN = 0.0
RATE_MAX = 100.0


def normalize_interval_name(name: str) -> Optional[str]:
    """Map an interval name or display label (``LD→LQ``, ``LD->LQ``) to its key."""
    if not isinstance(name, str):
        return None
    return _INTERVAL_ALIASES.get(name.strip())


def vertical_field(grade: str) -> str:
    return f"{VERTICAL_FIELD_PREFIX}{grade}"


def horizontal_field(interval: str) -> str:
    return f"{HORIZONTAL_FIELD_PREFIX}{interval}"


def grade_field(grade: str) -> str:
    return f"{GRADE_FIELD_PREFIX}{grade}"
