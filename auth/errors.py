"""
auth/errors.py -- Exception taxonomy for the auth core.

Two families:

  AuthError subclasses are caller-facing. Each carries the HTTP status the
  API layer should answer with and a human-readable message. api/main.py
  registers one exception handler that turns any AuthError into
  {"error": message} with that status, so gateway code never builds HTTP
  responses itself.

  TokenError subclasses describe why a JWT failed verification. They never
  leave the gateway: authenticate() collapses every TokenError into
  Unauthorized so clients cannot probe token internals.

Layer rule: stdlib only.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500
    default_message: str = "Server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationConflict(AuthError):
    status_code = 400
    default_message = "User already exists with this email"


class InvalidRole(AuthError):
    status_code = 400
    default_message = "Invalid role"


class InvalidCredentials(AuthError):
    """Wrong email and wrong password share this error on purpose."""

    status_code = 400
    default_message = "Invalid email or password"


class Unauthorized(AuthError):
    status_code = 401
    default_message = "Invalid or expired token."


class Forbidden(AuthError):
    status_code = 403
    default_message = "Access denied."


class NotFound(AuthError):
    status_code = 404
    default_message = "Not found"


class InternalFailure(AuthError):
    status_code = 500
    default_message = "Server error"


# ---------------------------------------------------------------------------
# Token verification failures
# ---------------------------------------------------------------------------


class TokenError(Exception):
    """Base class for JWT verification failures."""


class ExpiredToken(TokenError):
    pass


class InvalidSignature(TokenError):
    pass


class MalformedToken(TokenError):
    pass
