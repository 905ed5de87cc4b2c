"""
Custom exceptions for funnel analytics.

Store implementations, the query layer and the spreadsheet mirror raise
these exceptions so callers can handle failures consistently.
"""


class AnalyticsError(Exception):
    """Base exception for all funnel analytics errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(AnalyticsError):
    """Raised when required configuration is missing or invalid."""

    def __init__(self, setting: str, reason: str | None = None):
        details = {"setting": setting}
        if reason:
            details["reason"] = reason
        message = f"Missing or invalid configuration: {setting}"
        if reason:
            message += f" ({reason})"
        super().__init__(message, details)
        self.setting = setting
        self.reason = reason


class SessionNotFoundError(AnalyticsError):
    """Raised when a session document does not exist."""

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}", {"session_id": session_id})
        self.session_id = session_id


class StoreIOError(AnalyticsError):
    """Raised when a store read or write fails."""

    def __init__(self, operation: str, container: str | None = None, cause: Exception | None = None):
        details = {"operation": operation}
        if container:
            details["container"] = container
        if cause:
            details["cause"] = str(cause)
        message = f"Store I/O error during {operation}"
        if container:
            message += f": {container}"
        super().__init__(message, details)
        self.operation = operation
        self.container = container
        self.cause = cause


class StoreConnectionError(AnalyticsError):
    """Raised when connecting to the remote store fails.

    Note: Named StoreConnectionError to avoid shadowing the builtin ConnectionError.
    """

    def __init__(self, endpoint: str, cause: Exception | None = None):
        details = {"endpoint": endpoint}
        if cause:
            details["cause"] = str(cause)
        super().__init__(f"Connection failed to {endpoint}", details)
        self.endpoint = endpoint
        self.cause = cause


class ValidationError(AnalyticsError):
    """Raised when a stored document or argument fails validation."""

    def __init__(self, field: str, reason: str, value: str | None = None):
        details = {"field": field, "reason": reason}
        if value is not None:
            details["value"] = value
        super().__init__(f"Validation failed for {field}: {reason}", details)
        self.field = field
        self.reason = reason
        self.value = value


class SheetsError(AnalyticsError):
    """Raised when a spreadsheet mirror request fails."""

    def __init__(self, operation: str, status: int | None = None, cause: Exception | None = None):
        details: dict = {"operation": operation}
        if status is not None:
            details["status"] = status
        if cause:
            details["cause"] = str(cause)
        message = f"Sheets request failed during {operation}"
        if status is not None:
            message += f" (HTTP {status})"
        super().__init__(message, details)
        self.operation = operation
        self.status = status
        self.cause = cause
