"""Service-layer exceptions mapped to HTTP responses.

Each class carries the status code the API returns for it and a message
that is safe to show to the client. Anything that is not an ``AuthError``
is treated as an internal failure and surfaced as a generic 500.
"""
from typing import Optional


class AuthError(Exception):
    status_code: int = 400

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AuthError):
    """Malformed input (400)."""
    status_code = 400


class InvalidOrUsedToken(ValidationError):
    """Reset token unknown, superseded, or already consumed (400)."""


class AuthenticationError(AuthError):
    """No valid credential presented (401)."""
    status_code = 401


class InvalidCredentials(AuthenticationError):
    """Unknown email or wrong password. Same message for both."""


class AuthorizationError(AuthError):
    """Authenticated but not allowed (403)."""
    status_code = 403


class AccountDisabled(AuthorizationError):
    pass


class NotFoundError(AuthError):
    status_code = 404


class ConflictError(AuthError):
    """Uniqueness violation, e.g. email already taken (409)."""
    status_code = 409


class ExpiredError(AuthError):
    """Reset link past its expiry (410)."""
    status_code = 410


class ConfigurationError(AuthError):
    """A required secret or credential is missing. Operators must fix this."""
    status_code = 500


class DeliveryError(AuthError):
    """Outbound notification could not be sent (500)."""
    status_code = 500
