"""
Logging for the extraction pipeline.

Every module logs through a child of the ``invoice_pipeline`` logger, so the
handlers installed by ``setup_logger`` cover the whole package. The CLI calls
``setup_logger_from_config`` once and may raise verbosity with ``set_level``.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional, Union

import colorama
from colorama import Fore, Style

colorama.init()

ROOT_LOGGER_NAME = "invoice_pipeline"
DEFAULT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_MAX_BYTES = 10 * 1024 * 1024

# Level name -> console color
LEVEL_COLORS = {
    'DEBUG': Fore.CYAN,
    'INFO': Fore.GREEN,
    'WARNING': Fore.YELLOW,
    'ERROR': Fore.RED,
    'CRITICAL': Fore.RED + Style.BRIGHT,
}


class ColoredFormatter(logging.Formatter):
    """Wraps each console line in the color of its level."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        color = LEVEL_COLORS.get(record.levelname)
        if not color:
            return message
        return f"{color}{message}{Style.RESET_ALL}"


def _to_level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value


def _console_handler(formatter: logging.Formatter) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    return handler


def _file_handler(
    log_file: Union[str, Path],
    formatter: logging.Formatter,
    max_bytes: int,
    backup_count: int
) -> logging.Handler:
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count, encoding='utf-8'
    )
    handler.setFormatter(formatter)
    return handler


def setup_logger(
    level: Union[str, int] = "INFO",
    log_format: Optional[str] = None,
    date_format: Optional[str] = None,
    log_file: Optional[str] = None,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = 5,
    colorize: bool = True
) -> logging.Logger:
    """
    Install console (and optionally rotating file) handlers on the package logger.

    Calling it again replaces the previous handlers rather than adding to them.

    Args:
        level: Level name or number applied to the logger and its handlers.
        log_format: Record format, ``DEFAULT_FORMAT`` when omitted.
        date_format: ``asctime`` format, ``DEFAULT_DATE_FORMAT`` when omitted.
        log_file: Also log to this file when given.
        max_bytes: File size that triggers rotation.
        backup_count: Rotated files to keep.
        colorize: Color console lines by level.

    Returns:
        The ``invoice_pipeline`` logger.
    """
    log_format = log_format or DEFAULT_FORMAT
    date_format = date_format or DEFAULT_DATE_FORMAT
    plain = logging.Formatter(log_format, datefmt=date_format)

    app_logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(app_logger.handlers):
        app_logger.removeHandler(handler)
        handler.close()

    console_formatter = ColoredFormatter(log_format, datefmt=date_format) if colorize else plain
    app_logger.addHandler(_console_handler(console_formatter))
    if log_file:
        app_logger.addHandler(_file_handler(log_file, plain, max_bytes, backup_count))

    # Records stop here; the host application's root logger stays untouched
    app_logger.propagate = False
    set_level(level)

    app_logger.debug(f"Logging configured (file: {log_file or 'disabled'})")
    return app_logger


def set_level(level: Union[str, int]) -> None:
    """Change the verbosity of the package logger and all of its handlers."""
    value = _to_level(level)
    app_logger = logging.getLogger(ROOT_LOGGER_NAME)
    app_logger.setLevel(value)
    for handler in app_logger.handlers:
        handler.setLevel(value)


def get_logger(name: str) -> logging.Logger:
    """
    Logger for a module, placed under the ``invoice_pipeline`` namespace.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Extraction started")
    """
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def setup_logger_from_config(config_path: Optional[str] = None) -> logging.Logger:
    """Configure logging from the ``logging`` section of the settings file."""
    from config import ConfigurationManager

    config = ConfigurationManager(config_path)
    log_file = config.get("logging.file.path") if config.get("logging.file.enabled", False) else None

    return setup_logger(
        level=config.get("logging.level", "INFO"),
        log_format=config.get("logging.format"),
        date_format=config.get("logging.date_format"),
        log_file=log_file,
        max_bytes=config.get("logging.file.max_bytes", DEFAULT_MAX_BYTES),
        backup_count=config.get("logging.file.backup_count", 5),
        colorize=config.get("logging.console.colorize", True)
    )
