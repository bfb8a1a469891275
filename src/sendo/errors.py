from abc import ABC


class UserError(ABC, Exception):
    """Base class for user-related errors.

    All errors that inherit from UserError will have their messages
    displayed to the client. These errors must not contain storage paths
    or tokens.
    """


class NotFoundError(UserError):
    """Raised when a session, code or file is not found."""

    def __init__(self, message: str = "Session not found") -> None:
        super().__init__(message)


class AuthenticationError(UserError):
    """Raised when a role token does not match the session."""

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class ExpiredError(UserError):
    """Raised when the session is closed or its TTL has passed."""

    def __init__(self, message: str = "Session expired or closed") -> None:
        super().__init__(message)


class ValidationError(UserError):
    """Raised when user input fails validation."""


class UnsupportedMediaTypeError(ValidationError):
    """Raised when an uploaded file type is not on the allow-list."""


class FileTooLargeError(ValidationError):
    """Raised when an upload exceeds the configured size limit."""
