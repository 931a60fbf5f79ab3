"""Logging utilities for the relocatable tool builder.

This module configures loguru sinks for the step-by-step progress narration
printed while a build runs, plus a debug log file kept in the temporary
directory for post-mortem inspection of failed builds.
"""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

from loguru import logger

from relobuild.constants import DEBUG_LOG_FILE_NAME, LOG_LEVEL_ENV

CONSOLE_FORMAT = (
    "<fg 100,100,100>[{time:HH:mm:ss}] {module}.{function}.{line}</> <level>{level}: {message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} - {name} - {level} - {message}"


def debug_log_path() -> Path:
    """Get the path of the debug log file.

    Returns
    -------
    Path
        Location of the debug log file in the system temporary directory

    """
    return Path(tempfile.gettempdir()) / DEBUG_LOG_FILE_NAME


def setup_logging(debug_mode: bool = False, log_file: Path | None = None) -> None:
    """Set up logging configuration based on debug mode.

    Parameters
    ----------
    debug_mode : bool, optional
        Whether to enable verbose console output and full file logging, by default False
    log_file : Path | None, optional
        Where to write the log file, by default the debug log in the temporary directory

    """
    # Clear any existing sinks to prevent duplicates
    logger.remove()
    logger.level("INFO", color="<fg 92,168,255>")

    console_level = "DEBUG" if debug_mode else os.environ.get(LOG_LEVEL_ENV, "INFO")
    logger.add(
        sys.stdout,
        colorize=True,
        format=CONSOLE_FORMAT,
        level=console_level,
    )

    # In normal mode, only log warnings/errors to file
    logger.add(
        log_file or debug_log_path(),
        format=FILE_FORMAT,
        level="DEBUG" if debug_mode else "WARNING",
    )


def step_banner(title: str) -> None:
    """Log a section banner announcing a build step.

    Parameters
    ----------
    title : str
        Name of the step being started

    """
    logger.info("#" * 43)
    logger.info(f"# {title}")
    logger.info("#" * 43)

