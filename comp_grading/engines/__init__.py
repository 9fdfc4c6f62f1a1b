"""
Engines package for the grading scenario engine.

This package contains the pure calculation logic.
"""

from .calculator import calculate_scenario, resolve_intervals, validate_inputs

__all__ = ["calculate_scenario", "resolve_intervals", "validate_inputs"]
