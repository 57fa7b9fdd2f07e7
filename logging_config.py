"""Logging setup shared by every ``medifind.*`` logger."""

import logging
import sys

from settings import Settings

_DETAILED_FORMAT = (
    '%(asctime)s | %(levelname)-8s | %(name)s | '
    '%(module)s:%(funcName)s:%(lineno)d | %(message)s')

_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logging(level: str | None = None,
                  log_file: str | None = None) -> logging.Logger:
    """
    Initialise the root ``medifind`` logger.

    Safe to call more than once (e.g. from tests): handlers are only
    attached the first time.

    Args:
        level (str|None): level name, defaults to Settings.LOG_LEVEL
        log_file (str|None): optional file to log to as well as stderr,
            defaults to Settings.LOG_FILE

    Returns:
        The configured ``medifind`` logger.
    """

    root_logger = logging.getLogger('medifind')
    root_logger.setLevel((level or Settings.LOG_LEVEL).upper())

    if root_logger.handlers:
        return root_logger

    formatter = logging.Formatter(_DETAILED_FORMAT, datefmt=_DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    log_file = log_file or Settings.LOG_FILE
    if log_file:
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    root_logger.debug('Logging initialised (file: %s)', log_file)
    return root_logger
