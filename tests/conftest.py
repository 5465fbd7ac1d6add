"""
Shared pytest fixtures for fanoutsim tests.
"""

import logging
import random
from pathlib import Path

import pytest

from fanoutsim import ConstantLatency, ConstantWork, SimulationConfig


@pytest.fixture(scope="session")
def test_output_root() -> Path:
    """
    Returns the root test_output directory. Created once per test session.
    Plots and CSV exports written by tests persist here after the run.
    """
    output_dir = Path(__file__).parent.parent / "test_output"
    output_dir.mkdir(exist_ok=True)
    return output_dir


@pytest.fixture
def test_output_dir(request, test_output_root) -> Path:
    """
    Returns a directory for the current test to write output files.
    Directory structure: test_output/<module_name>/<test_name>/
    """
    module_name = request.module.__name__.split(".")[-1]
    test_dir = test_output_root / module_name / request.node.name
    test_dir.mkdir(parents=True, exist_ok=True)
    return test_dir


@pytest.fixture
def seeded():
    """Seed the module-level RNG so routing and latency draws repeat."""
    random.seed(1234)
    return 1234


@pytest.fixture
def deterministic_config() -> SimulationConfig:
    """One source, one server, 100ms network legs, 50ms processing, no emission."""
    return SimulationConfig(
        source_count=1,
        server_count=1,
        global_rps=5,
        work_fn=ConstantWork(50),
        latency_fn=ConstantLatency(50),
        network_delay_ms=100,
        arrival="constant",
        emit_paused=True,
        seed=7,
    )


@pytest.fixture(autouse=True)
def reset_fanoutsim_logging():
    """Reset logging state before each test.

    Removes every handler except NullHandler and resets the level to NOTSET
    so logging configuration from one test never leaks into another.
    """
    logger = logging.getLogger("fanoutsim")

    def _reset():
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
            if not isinstance(handler, logging.NullHandler):
                handler.close()
        logger.addHandler(logging.NullHandler())
        logger.setLevel(logging.NOTSET)

    _reset()
    yield
    _reset()
