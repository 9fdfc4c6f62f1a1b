# comp_grading/cli.py
# Command-line interface entry point (argparse)
import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from comp_grading.config.loaders import ConfigLoadError, load_settings
from comp_grading.config.models import EngineSettings
from comp_grading.data.readers import DataReadError, read_scenario_inputs
from comp_grading.data.repository import InMemoryStructureRepository
from comp_grading.data.writers import DataWriteError, write_band_matrix, write_frame
from comp_grading.engines.calculator import calculate_scenario
from comp_grading.reporting.comparison import ComparisonSet, best_draft
from comp_grading.reporting.metrics import calculate_metrics
from comp_grading.state.exceptions import GradingError, ValidationError
from comp_grading.state.lifecycle import LifecycleManager
from comp_grading.state.models import Scenario
from comp_grading.state.schema import INTERVAL_LABELS

# Import logging configuration
from logging_config import DEBUG_LOGGER, ERROR_LOGGER, setup_logging

# Get logger for this module
logger = logging.getLogger(__name__)

# Directory for log files
LOG_DIR = Path("output_dev/grading_logs")


def parse_arguments(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="comp-grading",
        description="Calculate and compare compensation grading scenarios.",
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to the YAML configuration file (default: $COMP_GRADING_CONFIG or built-in settings)."
    )
    common.add_argument(
        "--csv",
        type=str,
        default=None,
        help="Write the result table to this CSV file."
    )
    common.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )
    common.add_argument(
        "--log-dir",
        type=str,
        default=None,
        help=f"Directory to store log files (default: config log_dir or {LOG_DIR})"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    calc = subparsers.add_parser(
        "calculate", parents=[common], help="Calculate the band matrix of one scenario inputs file."
    )
    calc.add_argument("inputs", type=str, help="Path to the YAML scenario inputs file.")

    compare = subparsers.add_parser(
        "compare", parents=[common], help="Compare several scenario inputs files side by side."
    )
    compare.add_argument(
        "inputs", type=str, nargs="+", help="Scenario inputs files; the first one is the reference."
    )

    return parser.parse_args(argv)


def initialize_logging(debug: bool = False, log_dir: Path = LOG_DIR) -> None:
    """Initialize the logging configuration.

    Args:
        debug: Whether to enable debug logging
        log_dir: Directory to store log files
    """
    setup_logging(log_dir=log_dir, debug=debug)

    logger.info("Starting comp-grading")
    logger.info(f"Command line arguments: {sys.argv}")
    logger.info(f"Pandas version: {pd.__version__}")
    logger.info(f"NumPy version: {np.__version__}")
    if debug:
        logging.getLogger(DEBUG_LOGGER).debug("Debug logging enabled")


def _print_errors(errors) -> None:
    for field_key, message in errors.items():
        print(f"  {field_key}: {message}", file=sys.stderr)


def run_calculate(args: argparse.Namespace, settings: EngineSettings) -> int:
    inputs = read_scenario_inputs(args.inputs)
    try:
        result = calculate_scenario(inputs)
    except ValidationError as e:
        print(f"Invalid scenario inputs in {args.inputs}:", file=sys.stderr)
        _print_errors(e.errors)
        return 1

    metrics = calculate_metrics(
        result.grades,
        inputs.grade_order,
        result.vertical_avg,
        result.horizontal_avg,
        thresholds=settings.risk_thresholds,
    )

    print(result.to_frame().round(2).to_string())
    print()
    intervals = ", ".join(
        f"{label}={inputs.horizontal_intervals.get(name) or 0:g}%"
        for name, label in INTERVAL_LABELS.items()
    )
    print(f"Horizontal intervals: {intervals}")
    print(f"Vertical average:   {result.vertical_avg:.2f}%")
    print(f"Horizontal average: {result.horizontal_avg:.2f}%")
    print(f"Competitiveness:    {metrics.competitiveness:.1f}")
    print(f"Risk level:         {metrics.risk_level}")

    if args.csv:
        path = write_band_matrix(result, args.csv)
        print(f"\nBand matrix written to {path}")
    return 0


async def _build_scenarios(paths: List[str], settings: EngineSettings) -> List[Scenario]:
    """Calculate each inputs file and persist it as a draft of its own grading system."""
    repository = InMemoryStructureRepository()
    lifecycle = LifecycleManager(repository)
    scenarios: List[Scenario] = []
    reference_grades = None

    for index, path in enumerate(paths):
        inputs = read_scenario_inputs(path)
        result = calculate_scenario(inputs)
        system_id = f"{index}-{Path(path).stem}"
        repository.register_system(system_id, inputs.grade_order, base_value=inputs.base_value)
        metrics = calculate_metrics(
            result.grades,
            inputs.grade_order,
            result.vertical_avg,
            result.horizontal_avg,
            reference_grades=reference_grades,
            thresholds=settings.risk_thresholds,
        )
        scenario = await lifecycle.create_draft(system_id, inputs, result, Path(path).stem, metrics=metrics)
        if reference_grades is None:
            reference_grades = scenario.grades
        scenarios.append(scenario)
    return scenarios


def run_compare(args: argparse.Namespace, settings: EngineSettings) -> int:
    try:
        scenarios = asyncio.run(_build_scenarios(args.inputs, settings))
    except ValidationError as e:
        print("Invalid scenario inputs:", file=sys.stderr)
        _print_errors(e.errors)
        return 1

    selection = ComparisonSet(capacity=settings.comparison_capacity)
    for scenario in scenarios:
        selection.add(scenario)
    view = selection.view()

    print("Medians by grade:")
    print(view.medians_frame().to_string())
    print()
    summary = view.metrics_frame()[
        ["name", "vertical_avg", "horizontal_avg", "balance_score", "budget_change", "risk_level"]
    ]
    print(summary.round(2).to_string(index=False))

    best = best_draft(scenarios)
    if best is not None:
        print(f"\nBest balanced scenario: {best.name}")

    if args.csv:
        path = write_frame(view.matrix_frame(), args.csv)
        print(f"\nComparison matrix written to {path}")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the comp-grading CLI."""
    err_logger = logging.getLogger(ERROR_LOGGER)
    args = parse_arguments(argv)

    try:
        settings = load_settings(args.config)
    except ConfigLoadError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    log_dir = Path(args.log_dir or settings.log_dir or LOG_DIR)
    initialize_logging(debug=args.debug, log_dir=log_dir)
    logger.info(f"Running {args.command} with arguments: {vars(args)}")

    try:
        if args.command == "calculate":
            return run_calculate(args, settings)
        return run_compare(args, settings)
    except (DataReadError, DataWriteError) as e:
        err_logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except GradingError as e:
        err_logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
