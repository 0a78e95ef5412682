"""
Shared fixtures.
"""

import logging
import pytest

from workflow.logging_config import PACKAGES


@pytest.fixture(autouse=True)
def restore_loggers():
    """Undo any logging setup done by a test (setup_logging or BayesianWorkflow)."""
    yield
    for package in PACKAGES:
        logger = logging.getLogger(package)
        for handler in logger.handlers:
            handler.close()
        logger.handlers.clear()
        logger.setLevel(logging.NOTSET)
        logger.propagate = True
