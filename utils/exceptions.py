"""
Custom Exceptions
Error taxonomy for the product spec harvester.
"""


class ProductSpecError(Exception):
    """Base error for the harvester"""

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(ProductSpecError):
    """Invalid or missing configuration"""
    pass


class InvalidInputError(ProductSpecError):
    """Rejected pipeline input (identity or property schema)"""
    pass


class AcquisitionError(ProductSpecError):
    """Content acquisition failure for one source"""

    def __init__(self, message: str, source: str = None, kind: str = "network", **kwargs):
        super().__init__(message, kwargs)
        self.source = source
        self.kind = kind


class PoolTimeoutError(AcquisitionError, TimeoutError):
    """No browser worker became free in time"""

    def __init__(self, message: str, source: str = None, **kwargs):
        super().__init__(message, source=source, kind="pool-exhausted", **kwargs)


class ContentSkippedError(AcquisitionError):
    """Source deliberately skipped (e.g. PDF handling disabled)"""

    def __init__(self, message: str, source: str = None, reason: str = "", **kwargs):
        super().__init__(message, source=source, kind="skipped", **kwargs)
        self.reason = reason


class ExtractionError(ProductSpecError):
    """Structured extraction failure"""
    pass


class LLMError(ProductSpecError):
    """LLM call failure"""

    def __init__(self, message: str, provider: str = None, **kwargs):
        super().__init__(message, kwargs)
        self.provider = provider


class SearchError(ProductSpecError):
    """Search provider failure"""

    def __init__(self, message: str, provider: str = None, **kwargs):
        super().__init__(message, kwargs)
        self.provider = provider


class StorageError(ProductSpecError):
    """Persistence failure"""
    pass
