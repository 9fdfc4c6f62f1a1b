# comp_grading/data/writers.py
"""
Functions for writing calculation and comparison outputs.
"""

import logging
from pathlib import Path
from typing import Optional, Union

import pandas as pd

from comp_grading.state.models import CalculationResult

logger = logging.getLogger(__name__)


# Define a custom exception for data writing errors
class DataWriteError(Exception):
    """Custom exception for errors during data writing."""

    pass


def write_frame(frame: pd.DataFrame, output_path: Union[str, Path], float_format: Optional[str] = "%.2f") -> Path:
    """
    Writes a DataFrame to CSV, creating parent directories as needed.

    ``float_format`` also applies to floats held in object columns, such as
    comparison matrices where absent grades carry a text marker.

    Raises:
        DataWriteError: If writing fails.
    """
    output_path = Path(output_path)
    object_columns = frame.columns[(frame.dtypes == object).to_numpy()]
    if float_format is not None and len(object_columns):
        frame = frame.copy()
        for column in object_columns:
            frame[column] = frame[column].map(
                lambda value: float_format % value if isinstance(value, float) and not pd.isna(value) else value
            )
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        frame.to_csv(output_path, float_format=float_format)
    except OSError as e:
        logger.error(f"Failed to write {output_path}: {e}")
        raise DataWriteError(f"Failed to write {output_path}") from e
    logger.info(f"Wrote {len(frame)} rows to {output_path}")
    return output_path


def write_band_matrix(result: CalculationResult, output_path: Union[str, Path]) -> Path:
    """Writes a calculated band matrix (one row per grade, LD..UD) to CSV."""
    return write_frame(result.to_frame(), output_path)
