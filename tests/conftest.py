"""
Shared pytest fixtures for processflow tests.
"""

import logging
from datetime import datetime
from pathlib import Path

import pytest


@pytest.fixture(scope="session")
def test_output_root() -> Path:
    """
    Returns the root test_output directory. Created once per test session.
    Files here persist after tests complete for easy access.
    """
    output_dir = Path(__file__).parent.parent / "test_output"
    output_dir.mkdir(exist_ok=True)
    return output_dir


@pytest.fixture
def test_output_dir(request, test_output_root) -> Path:
    """
    Returns a directory for the current test to write output files.
    Directory structure: test_output/<module_name>/<test_name>/

    Example usage:
        def test_queue_plot(test_output_dir):
            fig.savefig(test_output_dir / "queue_length.png")
    """
    module_name = request.module.__name__.split(".")[-1]
    test_name = request.node.name

    test_dir = test_output_root / module_name / test_name
    test_dir.mkdir(parents=True, exist_ok=True)
    return test_dir


@pytest.fixture
def timestamped_output_dir(request, test_output_root) -> Path:
    """
    Like test_output_dir but includes a timestamp, useful when you want to
    keep multiple runs of the same test for comparison.

    Directory structure: test_output/<module>/<test>/<timestamp>/
    """
    module_name = request.module.__name__.split(".")[-1]
    test_name = request.node.name
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

    test_dir = test_output_root / module_name / test_name / timestamp
    test_dir.mkdir(parents=True, exist_ok=True)
    return test_dir


def _reset_logger(logger: logging.Logger) -> None:
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        if not isinstance(handler, logging.NullHandler):
            handler.close()
    logger.addHandler(logging.NullHandler())
    logger.setLevel(logging.NOTSET)


@pytest.fixture(autouse=True)
def reset_processflow_logging():
    """Reset logging state before and after each test.

    Removes every handler except a NullHandler and resets the level to
    NOTSET, so logging configured by one test never leaks into another.
    """
    logger = logging.getLogger("processflow")
    _reset_logger(logger)
    yield
    _reset_logger(logger)
