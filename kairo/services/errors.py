"""
Authentication error taxonomy.

Routers translate these into HTTP responses: UnauthenticatedError -> 401,
RegistrationError -> 400, AccountExistsError -> 409. Anything else (storage
failures) propagates as an internal error.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for authentication-related exceptions."""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class UnauthenticatedError(AuthError):
    """Terminal failure: the caller could not be authenticated. Never retried."""


class InvalidCredentialsError(UnauthenticatedError):
    pass


class TokenInvalidError(UnauthenticatedError):
    pass


class TokenExpiredError(UnauthenticatedError):
    pass


class RegistrationError(AuthError):
    pass


class AccountExistsError(AuthError):
    pass
