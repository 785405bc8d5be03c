import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_log_level = logging.INFO
_log_dir = os.path.join(os.getcwd(), "logs")
_managed_loggers = {}


def configure_logging(level: str = "INFO", log_dir: Optional[str] = None) -> None:
    """
    Set the level and log directory used by every logger handed out by
    get_logger(). Loggers created before this call are updated in place.
    """
    global _log_level, _log_dir

    _log_level = logging.getLevelName(level.upper())
    if not isinstance(_log_level, int):
        _log_level = logging.INFO
    if log_dir:
        _log_dir = os.path.abspath(log_dir)

    for logger in _managed_loggers.values():
        logger.setLevel(_log_level)
        for handler in logger.handlers:
            handler.setLevel(_log_level)


def get_logger(name: str) -> logging.Logger:
    """
    Creates a logger instance that writes to console AND a file.
    """
    logger = logging.getLogger(name)

    if logger.handlers:
        return logger

    logger.setLevel(_log_level)

    formatter = logging.Formatter(_LOG_FORMAT)

    if not os.path.exists(_log_dir):
        os.makedirs(_log_dir, exist_ok=True)

    file_handler = RotatingFileHandler(
        os.path.join(_log_dir, "accessibility_scanner.log"),
        maxBytes=10_000_000,
        backupCount=5,
    )
    file_handler.setFormatter(formatter)
    file_handler.setLevel(_log_level)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.setLevel(_log_level)

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    _managed_loggers[name] = logger
    return logger
