"""
Default logging interface
"""

import logging
from typing import Union

# Every module logger lives under this name.
ROOT_LOGGER_NAME = "stakesync"

_LOG_FORMATTER = logging.Formatter(
    "[%(asctime)s][%(threadName)s][%(name)s][%(levelname)s]:%(message)s"
)


def get_default_logger(name: str, level: Union[int, str] = logging.INFO) -> logging.Logger:
    """
    Get default logger for a given name.
    Each poll task runs on a thread named after its target,
    so the thread name identifies the (family, contract) pair of a line.

    :param name: The logger name.
    :param level: The initial log level.
    :return: The logger object.
    """
    # Embedding processes may never configure logging.
    if not logging.getLogger().handlers:
        logging.getLogger().addHandler(logging.NullHandler())

    log = logging.getLogger(name)
    log.setLevel(level)
    if not log.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(_LOG_FORMATTER)
        log.addHandler(handler)
        log.propagate = False
    return log


def set_log_level(level: Union[int, str]):
    """
    Set the level of every stakesync logger created so far.

    :param level: The log level, e.g. logging.DEBUG or "DEBUG".
    """
    prefix = ROOT_LOGGER_NAME + "."
    for name in list(logging.root.manager.loggerDict):
        if name == ROOT_LOGGER_NAME or name.startswith(prefix):
            logging.getLogger(name).setLevel(level)
