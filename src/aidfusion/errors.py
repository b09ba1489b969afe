from abc import ABC


class UserError(ABC, Exception):
    """Base class for user-related errors.

    All errors that inherit from UserError will have their messages
    displayed to the user. These errors should not contain any
    sensitive information.
    """


class NotFoundError(UserError):
    """Raised when a requested resource is not found."""

    def __init__(self, message: str = "Document not found") -> None:
        super().__init__(message)


class AuthenticationError(UserError):
    """Raised when a request carries no valid session."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class InvalidCredentialsError(AuthenticationError):
    """Raised when email/password (or second factor) do not match.

    The message is fixed so that callers cannot tell an unknown email
    from a wrong password.
    """

    def __init__(self) -> None:
        super().__init__("Invalid credentials.")


class TwoFactorRequiredError(AuthenticationError):
    """Raised when the password was correct but a second factor is missing."""

    def __init__(self, message: str = "Two-factor code required.") -> None:
        super().__init__(message)


class AccessDeniedError(UserError):
    """Raised when a user tries to access a resource they do not have permission for."""


class SelfDemotionError(AccessDeniedError):
    """Raised when an administrator tries to remove their own admin role."""

    def __init__(self) -> None:
        super().__init__("You cannot revoke your own admin access.")


class ValidationError(UserError):
    """Raised when user input fails validation."""


class ConflictError(UserError):
    """Raised when a resource with the same unique key already exists."""


class UnavailableError(Exception):
    """Raised when storage or hashing backends fail or time out.

    Not a UserError: the underlying cause is logged, the client only
    gets a generic message.
    """
