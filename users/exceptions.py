"""Exceptions."""

from typing import Optional


class DuplicateResource(RuntimeError):
    """An account with the same email or username already exists."""

    def __init__(self, field: str, message: Optional[str] = None) -> None:
        self.field = field
        super(DuplicateResource, self).__init__(
            message or f'{field.capitalize()} already exists'
        )


class ResourceNotFound(RuntimeError):
    """No account matches the requested id, email, or username."""


class InvalidField(ValueError):
    """A value failed a check that the domain owns."""

    def __init__(self, field: Optional[str], message: str) -> None:
        self.field = field
        super(InvalidField, self).__init__(message)


class AuthenticationRejected(RuntimeError):
    """A bearer token could not establish the caller's identity."""


class InvalidToken(AuthenticationRejected):
    """Token is malformed, badly signed, or from an unexpected issuer."""


class ExpiredToken(InvalidToken):
    """Token has expired."""


class ConfigurationError(RuntimeError):
    """A required configuration parameter is missing."""
