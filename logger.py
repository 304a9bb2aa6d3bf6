# logger.py
import logging
import os
from typing import Literal, Optional

from config import CONFIG_MODEL

# Logger level types
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def setup_logger(
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    file_mode: Literal["w", "a"] = "w",
) -> logging.Logger:
    """
    Configure and return a logger instance based on configuration parameters.

    Args:
        level: Logging level (defaults to CONFIG_MODEL.logging_level)
        log_file: Log file path (defaults to CONFIG_MODEL.log_file)
        log_format: Log message format (defaults to CONFIG_MODEL.log_format)
        file_mode: File writing mode - 'w' for overwrite, 'a' for append

    Returns:
        Configured logging.Logger instance
    """
    config_level = level or CONFIG_MODEL.logging_level
    config_file = log_file or CONFIG_MODEL.log_file
    config_format = log_format or CONFIG_MODEL.log_format

    level_map: dict[str, int] = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }

    numeric_level = level_map.get(config_level.upper(), logging.DEBUG)

    log_dir = os.path.dirname(config_file)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    logging.basicConfig(
        level=numeric_level,
        format=config_format,
        filename=config_file,
        filemode=file_mode,
        force=True,
    )

    return logging.getLogger()


def log(message: str, level: LogLevel = "DEBUG") -> None:
    """
    Log a message at the specified level.

    Args:
        message: The message to log
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    match level.upper():
        case "INFO":
            logging.info(message)
        case "WARNING":
            logging.warning(message)
        case "ERROR":
            logging.error(message)
        case "CRITICAL":
            logging.critical(message)
        case _:
            logging.debug(message)
