"""
Logging setup and the run log for sisrs.
"""

import logging
import sys
from typing import Optional

_LOGGER_NAME = "sisrs"
_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def get_logger(name: Optional[str] = None) -> logging.Logger:
    if name:
        return logging.getLogger(f"{_LOGGER_NAME}.{name}")
    return logging.getLogger(_LOGGER_NAME)


def setup_logger(log_file: Optional[str] = None) -> logging.Logger:
    """Configure the 'sisrs' logger.

    INFO goes to the console, DEBUG to `log_file` when given. Calling it again
    replaces the previous handlers, so each run writes to its own log file.
    A log file that cannot be opened only costs the file handler.

    Parameters
    ----------
    log_file : str, optional
        Path of the run log

    Returns
    -------
    logging.Logger
        The configured package logger
    """

    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()

    fmt = logging.Formatter(_FORMAT)

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(logging.INFO)
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    if log_file:
        try:
            fh = logging.FileHandler(log_file, encoding="utf-8")
        except OSError as e:
            logger.warning("Could not open run log %s (%s); logging to console only", log_file, e)
        else:
            fh.setLevel(logging.DEBUG)
            fh.setFormatter(fmt)
            logger.addHandler(fh)

    return logger


def log_stage(index: int, name: str) -> None:
    """Write the timestamped stage-boundary entry to the run log."""
    get_logger("pipeline").info("Stage %d: %s", index, name)
