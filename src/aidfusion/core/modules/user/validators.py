from aidfusion.core.modules.user.models import Role
from aidfusion.errors import ValidationError
from aidfusion.utils import is_email

MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_BYTES = 72  # bcrypt input limit


def validate_email(email: str) -> None:
    """Validate an already normalized email address.

    Raises:
        ValidationError: If the address is empty or malformed
    """
    if not email or not is_email(email):
        raise ValidationError("Please provide a valid email address.")


def validate_password(password: str) -> None:
    """Validate password meets requirements.

    Requirements:
    - Minimum length of 6 characters
    - At most 72 bytes once UTF-8 encoded

    Raises:
        ValidationError: If password doesn't meet requirements
    """
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")

    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")


def validate_role(role: str) -> Role:
    """Parse a role name, rejecting anything outside the Role enum."""
    try:
        return Role(role)
    except ValueError as e:
        raise ValidationError("Role must be 'user' or 'admin'.") from e
