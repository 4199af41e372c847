"""
Error types for notification configuration and delivery.
"""


class ConfigurationError(ValueError):
    """Raised when notification options are missing or invalid."""

    def __init__(self, message: str, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


class DispatchError(Exception):
    """Raised by a dispatcher when a notification could not be delivered."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
