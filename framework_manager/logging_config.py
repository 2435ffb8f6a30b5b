"""
Logging for the frameworks command.

Every module logs through a child of the ``framework_manager`` logger, so
the handlers installed here see lifecycle, state and backup messages alike.
Console output goes to stderr; stdout is reserved for command results.
"""

import logging
import sys
from pathlib import Path
from typing import Optional


LOGGER_NAME = "framework_manager"

CONSOLE_FORMAT = "%(level_tag)s%(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


class LevelTagFormatter(logging.Formatter):
    """
    Console formatter that prints INFO lines bare and tags everything else.

    Tags are coloured when the stream is a terminal.
    """

    TAGS = {
        logging.DEBUG: ("debug", "\033[2m"),
        logging.WARNING: ("warning", "\033[33m"),
        logging.ERROR: ("error", "\033[31m"),
        logging.CRITICAL: ("error", "\033[1;31m"),
    }
    RESET = "\033[0m"

    def __init__(self, fmt: str = CONSOLE_FORMAT, use_colors: bool = False):
        super().__init__(fmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        tag = self.TAGS.get(record.levelno)
        if tag is None:
            record.level_tag = ""
        elif self.use_colors:
            record.level_tag = f"{tag[1]}{tag[0]}:{self.RESET} "
        else:
            record.level_tag = f"{tag[0]}: "
        return super().format(record)


def setup_logging(
    verbose: bool = False,
    quiet: bool = False,
    log_file: Optional[str] = None,
    propagate: bool = False,
) -> logging.Logger:
    """
    Configure the package logger, replacing any handlers from an earlier call.

    Args:
        verbose: Show DEBUG messages on the console
        quiet: Only show warnings and errors on the console
        log_file: Also write every record, DEBUG included, to this file
        propagate: Pass records on to the root logger (pytest caplog needs it)

    Returns:
        The ``framework_manager`` logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if verbose:
        console_level = logging.DEBUG
    elif quiet:
        console_level = logging.WARNING
    else:
        console_level = logging.INFO

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(LevelTagFormatter(use_colors=sys.stderr.isatty()))
    logger.addHandler(console)

    logger_level = console_level
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(file_handler)
        logger_level = logging.DEBUG

    logger.setLevel(logger_level)
    logger.propagate = propagate
    return logger


def get_logger() -> logging.Logger:
    """Return the package logger, configuring defaults on first use."""
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        setup_logging()
    return logger
