# File: atmos/exceptions.py

"""
Custom exception hierarchy for Atmos.

API errors carry the name of the service that failed and, when known, the
HTTP-like status code, so callers (Dash callbacks, the report script) can log
them uniformly.
"""


class AtmosError(Exception):
    """Base class for all Atmos errors."""
    pass


# --- Configuration Errors ---

class ConfigError(AtmosError):
    """Raised when the configuration cannot be parsed or is incomplete."""
    pass


class ConfigFileNotFoundError(ConfigError, FileNotFoundError):
    """Raised when config/config.yaml is missing."""
    pass


# --- API Errors ---

class APIError(AtmosError):
    """Generic failure talking to an external service.

    The formatted message is ``"<service> API Error: <message> (Status: <code>)"``;
    the status part is omitted when no status code is known.
    """

    def __init__(self, message, status_code=None, service=None):
        self.message = message
        self.status_code = status_code
        self.service = service or "Unknown"
        full_message = f"{self.service} API Error: {message}"
        if status_code is not None:
            full_message += f" (Status: {status_code})"
        super().__init__(full_message)


class APIKeyError(APIError):
    """Missing or rejected API key."""

    def __init__(self, message, status_code=401, service=None):
        super().__init__(message, status_code=status_code, service=service)


class APITimeoutError(APIError):
    """The external service did not answer in time."""
    pass


class APINotFoundError(APIError):
    """The requested resource does not exist on the external service."""

    def __init__(self, message, status_code=404, service=None):
        super().__init__(message, status_code=status_code, service=service)


class AqiFetchError(APIError):
    """AQI data could not be obtained, even after the fallback attempt."""

    def __init__(self, message, status_code=None, service="Gemini"):
        super().__init__(message, status_code=status_code, service=service)
