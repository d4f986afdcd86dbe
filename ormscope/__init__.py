"""
ormscope - Time equivalent ORM access patterns side by side.

Runs named scenarios one after another through a timing harness that logs each
one, measures it, and records failures without stopping the run. The bundled
suite compares counter updates and polymorphic / single-table-inheritance
association loading with SQLAlchemy.
"""

__version__ = "0.1.0"

from ormscope.config import BenchConfig
from ormscope.harness import (
    Failure,
    Harness,
    InvalidScenario,
    Scenario,
    ScenarioResult,
    Success,
)
from ormscope.suite import run_suite

__all__ = [
    "BenchConfig",
    "Failure",
    "Harness",
    "InvalidScenario",
    "Scenario",
    "ScenarioResult",
    "Success",
    "run_suite",
]
