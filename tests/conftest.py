import os
import sys

import pytest

# Ensure project root is on sys.path before imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from comp_grading.data.repository import InMemoryStructureRepository  # noqa: E402
from comp_grading.state.models import CalculatedGrade, ScenarioInputs  # noqa: E402


# Define pytest markers for test categories
def pytest_configure(config):
    """
    Register custom markers to avoid pytest warnings.
    """
    config.addinivalue_line("markers", "unit: mark a test as a unit test")
    config.addinivalue_line("markers", "integration: mark a test as an integration test")
    config.addinivalue_line("markers", "quick: mark a test as a quick test for CI")
    config.addinivalue_line("markers", "config: mark a test as a config test")
    config.addinivalue_line("markers", "engines: mark a test as an engines test")
    config.addinivalue_line("markers", "state: mark a test as a state test")
    config.addinivalue_line("markers", "reporting: mark a test as a reporting test")
    config.addinivalue_line("markers", "data: mark a test as a data test")


GRADE_ORDER = ["Director", "Manager", "Specialist"]
SYSTEM_ID = "engineering"


@pytest.fixture
def grade_order():
    return list(GRADE_ORDER)


@pytest.fixture
def example_inputs():
    """Three grades, Specialist at the base, 10% on every interval."""
    return ScenarioInputs(
        base_value=1000.0,
        grade_order=list(GRADE_ORDER),
        vertical_rates={"Director": 10.0, "Manager": 20.0, "Specialist": None},
        horizontal_intervals={"LD_to_LQ": 10.0, "LQ_to_M": 10.0, "M_to_UQ": 10.0, "UQ_to_UD": 10.0},
    )


@pytest.fixture
def repository():
    """In-memory repository with one grading system and a default structure."""
    repo = InMemoryStructureRepository()
    repo.register_system(
        SYSTEM_ID,
        list(GRADE_ORDER),
        base_value=900.0,
        default_grades={
            "Director": CalculatedGrade(1100.0, 1150.0, 1200.0, 1250.0, 1300.0),
            "Manager": CalculatedGrade(950.0, 1000.0, 1050.0, 1100.0, 1150.0),
            "Specialist": CalculatedGrade(800.0, 850.0, 900.0, 950.0, 1000.0),
        },
    )
    return repo
