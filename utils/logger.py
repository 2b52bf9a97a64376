"""
Logger Configuration
Shared logging setup backed by rich.
"""
import logging
import sys
from pathlib import Path
from typing import Optional

from rich.logging import RichHandler
from rich.console import Console


console = Console(stderr=True)

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_FORMAT_SIMPLE = "%(message)s"

LOG_DIR = Path(__file__).parent.parent / "logs"

ROOT_LOGGER = "specharvest"


def setup_logger(
    name: str = ROOT_LOGGER,
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    use_rich: bool = True,
) -> logging.Logger:
    """
    Configure a logger once.

    Args:
        name: logger name
        level: log level
        log_file: optional file name under ``logs/``
        use_rich: pretty console output via rich

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    if use_rich:
        console_handler = RichHandler(
            console=console,
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
        )
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT_SIMPLE))
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))

    console_handler.setLevel(level)
    logger.addHandler(console_handler)

    if log_file:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        file_path = LOG_DIR / log_file

        file_handler = logging.FileHandler(file_path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    return logger


def configure_package_loggers(level: int = logging.INFO, use_rich: bool = True) -> None:
    """Route the module loggers of every package through one handler."""
    handler_owner = setup_logger(level=level, use_rich=use_rich)
    for package in ("acquisition", "pipeline", "extractors", "llm", "search", "storage", "monitoring"):
        package_logger = logging.getLogger(package)
        package_logger.setLevel(level)
        if not package_logger.handlers:
            for handler in handler_owner.handlers:
                package_logger.addHandler(handler)
        package_logger.propagate = False


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """
    Get a logger, configuring it on first use.

    Args:
        name: logger name

    Returns:
        Logger instance
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        return setup_logger(name)

    return logger
