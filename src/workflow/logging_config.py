"""
Logging configuration for the project's packages.
"""

import logging
import sys
from typing import Optional, Union

PACKAGES = ("families", "dependence", "simulation", "inference", "comparison", "workflow")


def setup_logging(level: Union[int, str] = logging.INFO, log_file: Optional[str] = None) -> None:
    """
    Configure console (and optional file) logging for the project packages.

    PyMC and PyTensor are kept at WARNING so sampler chatter does not drown
    the workflow messages.

    Args:
        level: Logging level (e.g. logging.DEBUG or "DEBUG")
        log_file: Optional path to also write logs to.
    """
    if isinstance(level, str):
        name = level.upper()
        level = logging.getLevelName(name)
        if not isinstance(level, int):
            raise ValueError(f"Unknown logging level: {name}")

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="w", encoding="utf-8"))
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    for package in PACKAGES:
        logger = logging.getLogger(package)
        logger.setLevel(level)
        # Avoid duplicate handlers when called again
        logger.handlers.clear()
        for handler in handlers:
            logger.addHandler(handler)
        logger.propagate = False

    logging.getLogger("pymc").setLevel(logging.WARNING)
    logging.getLogger("pytensor").setLevel(logging.WARNING)

    logging.getLogger("workflow").info("Logging initialized.")
