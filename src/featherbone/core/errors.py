"""
Errors

Exceptions raised by the Featherbone object layer.

Taxonomy:
- ValidationError: a validator rejected the data, save aborted, state unchanged
- FetchError / SaveError: the data source failed, object goes to Error
- ConfigurationError: misuse detected at call time
- NotFoundError: unknown feather
- ReadOnlyError: write to a calculated property
"""


class FeatherboneError(Exception):
    """Base exception for Featherbone errors"""
    pass


class ValidationError(FeatherboneError):
    """Raised when a validator rejects model data"""
    pass


class DataSourceError(FeatherboneError):
    """Raised when a data source request fails"""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class FetchError(DataSourceError):
    """Raised when reading from the data source fails"""
    pass


class SaveError(DataSourceError):
    """Raised when writing to the data source fails"""
    pass


class ConfigurationError(FeatherboneError):
    """Raised on invalid setup (missing names, bad transition tables)"""
    pass


class NotFoundError(FeatherboneError):
    """Raised when a feather doesn't exist"""
    pass


class ReadOnlyError(FeatherboneError):
    """Raised when writing to a calculated property"""
    pass
