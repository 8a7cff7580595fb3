"""Errors raised by the call-event pipeline.

Each error carries the HTTP status code the webhook router answers with.
"""

from typing import Any, Optional


class CallEventError(Exception):
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthenticationError(CallEventError):
    """Missing or invalid webhook signature."""

    status_code = 403


class SecretNotConfiguredError(AuthenticationError):
    """The shared signing secret is empty, so no webhook can be trusted."""

    status_code = 500


class ResolutionError(CallEventError):
    """No employee could be determined for the call."""

    status_code = 400


class PersistenceError(CallEventError):
    """The store rejected a read or write; the provider should retry."""

    status_code = 500


class DeliveryError(CallEventError):
    """A subscriber channel refused a frame. Never leaves the broadcaster."""


class TelephonyProviderError(CallEventError):
    def __init__(self, message: str, status_code: int = 502, details: Optional[Any] = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details
