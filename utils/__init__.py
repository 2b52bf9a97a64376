"""
Utils Module
Logging and exception helpers.
"""
from .logger import setup_logger, get_logger, configure_package_loggers
from .exceptions import (
    ProductSpecError,
    ConfigurationError,
    InvalidInputError,
    AcquisitionError,
    PoolTimeoutError,
    ContentSkippedError,
    ExtractionError,
    LLMError,
    SearchError,
    StorageError,
)

__all__ = [
    "setup_logger",
    "get_logger",
    "configure_package_loggers",
    "ProductSpecError",
    "ConfigurationError",
    "InvalidInputError",
    "AcquisitionError",
    "PoolTimeoutError",
    "ContentSkippedError",
    "ExtractionError",
    "LLMError",
    "SearchError",
    "StorageError",
]
