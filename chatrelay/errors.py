"""Exception types raised by the relay services.

Each exception carries the HTTP status code it is reported with; the
handlers registered in ``chatrelay.main`` turn them into JSON error bodies.
"""

from typing import Any, Dict, Optional


class RelayError(Exception):
    """Base class for all relay errors."""

    status_code = 500
    default_message = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class ClientInputError(RelayError):
    """Missing or invalid request data. Not retryable."""

    status_code = 400
    default_message = "Invalid request data"


class NotFoundError(RelayError):
    status_code = 404
    default_message = "Resource not found"


class UpstreamError(RelayError):
    """The completion API failed or timed out. Safe to retry."""

    status_code = 502
    default_message = "The completion service is unavailable"


class StorageError(RelayError):
    status_code = 503
    default_message = "Storage is unavailable"
