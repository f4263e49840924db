"""
Logging configuration for pync250.

Library modules obtain loggers through get_logger(); only applications (and
the command line entry point) should call setup_logging().
"""
import logging
import sys
from pathlib import Path
from typing import Optional, Union

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

logging.getLogger('pync250').addHandler(logging.NullHandler())


def setup_logging(level: Union[int, str] = logging.INFO,
                  log_file: Optional[Path] = None,
                  fmt: str = DEFAULT_FORMAT) -> logging.Logger:
    """Configure the package logger.

    Args:
        level: Logging level (e.g. logging.DEBUG or "DEBUG")
        log_file: Optional file to write log records to in addition to stderr
        fmt: Log record format string

    Returns:
        The configured 'pync250' logger
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger('pync250')
    logger.setLevel(level)

    # Replace handlers from earlier calls
    for handler in list(logger.handlers):
        if not isinstance(handler, logging.NullHandler):
            logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(fmt)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a pync250 module.

    Args:
        name: Module name, usually __name__

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def log_batch_summary(logger: logging.Logger, operation: str, n_trees: int,
                      n_small_stems: int = 0) -> None:
    """Log a one-line summary of a batch estimation call.

    Args:
        logger: Logger to write to
        operation: Name of the estimation operation
        n_trees: Number of observations in the batch
        n_small_stems: Number of observations handled by the small-stem rule
    """
    logger.debug(
        "%s: %d tree(s), %d below the 5.0 inch merchantable limit",
        operation, n_trees, n_small_stems
    )
