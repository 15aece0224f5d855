"""
Credential validation and profile normalization.

Each validator raises ``ValidationError`` naming the offending field on the
first rule it violates and returns the normalized value otherwise.
"""

import re
import string

from brokerforce_core.exceptions import ValidationError

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 20
PASSWORD_MIN_LENGTH = 8
PASSWORD_SYMBOLS = frozenset(string.punctuation)
# Column widths of the users table
NAME_MAX_LENGTH = 100
DISPLAY_NAME_MAX_LENGTH = 255
EMAIL_MAX_LENGTH = 254
AVATAR_URL_MAX_LENGTH = 1024

_USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")
_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def validate_username(username: str | None) -> str:
    """
    Validate a username and fold it to lower case.

    Args:
        username: Submitted username.

    Returns:
        Lower-cased username.

    Raises:
        ValidationError: If the username is missing, too short/long or uses
            characters outside ``[a-zA-Z0-9_-]``.
    """
    if not username or not isinstance(username, str):
        raise ValidationError("username", "Username is required")
    if not USERNAME_MIN_LENGTH <= len(username) <= USERNAME_MAX_LENGTH:
        raise ValidationError(
            "username",
            f"Username must be between {USERNAME_MIN_LENGTH} and {USERNAME_MAX_LENGTH} characters",
        )
    if not _USERNAME_PATTERN.match(username):
        raise ValidationError(
            "username",
            "Username can only contain letters, numbers, underscores, and hyphens",
        )
    return username.lower()


def validate_password(password: str | None) -> str:
    """
    Validate password strength.

    Rules are checked in order: length, uppercase, lowercase, digit, symbol.

    Args:
        password: Submitted password.

    Returns:
        The password unchanged.

    Raises:
        ValidationError: On the first rule the password breaks.
    """
    if not password or not isinstance(password, str):
        raise ValidationError("password", "Password is required")
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationError(
            "password", f"Password must be at least {PASSWORD_MIN_LENGTH} characters"
        )
    if not any(ch.isupper() for ch in password):
        raise ValidationError("password", "Password must contain an uppercase letter")
    if not any(ch.islower() for ch in password):
        raise ValidationError("password", "Password must contain a lowercase letter")
    if not any(ch.isdigit() for ch in password):
        raise ValidationError("password", "Password must contain a number")
    if not any(ch in PASSWORD_SYMBOLS for ch in password):
        raise ValidationError("password", "Password must contain a symbol")
    return password


def validate_name(value: str | None, field: str, label: str) -> str:
    """
    Require a non-blank name that fits the profile column.

    Args:
        value: Submitted value.
        field: Field name reported in the error.
        label: Human-readable label for the message.

    Returns:
        Trimmed name.

    Raises:
        ValidationError: If the value is empty after trimming or too long.
    """
    if not value or not isinstance(value, str) or not value.strip():
        raise ValidationError(field, f"{label} is required")
    value = value.strip()
    if len(value) > NAME_MAX_LENGTH:
        raise ValidationError(field, f"{label} must be at most {NAME_MAX_LENGTH} characters")
    return value


def normalize_email(email: str) -> str:
    """Lower-case and trim an email address."""
    return email.strip().lower()


def validate_email(email: str | None) -> str:
    """
    Validate an email address.

    Args:
        email: Submitted email.

    Returns:
        Normalized (trimmed, lower-cased) email.

    Raises:
        ValidationError: If the email is missing, too long or not
            ``local@domain.tld``.
    """
    if not email or not isinstance(email, str) or not email.strip():
        raise ValidationError("email", "Email is required")
    if len(email.strip()) > EMAIL_MAX_LENGTH:
        raise ValidationError("email", f"Email must be at most {EMAIL_MAX_LENGTH} characters")
    if not _EMAIL_PATTERN.match(email.strip()):
        raise ValidationError("email", "Please enter a valid email address")
    return normalize_email(email)


def split_display_name(display_name: str | None) -> tuple[str, str, str]:
    """
    Split a provider display name into full, first and last name.

    The first token becomes the first name and everything after the first
    space becomes the last name, which may be empty. Each part is cut to its
    column width since providers impose no limit of their own.

    Args:
        display_name: Name as supplied by the identity provider.

    Returns:
        Tuple of (name, first_name, last_name).
    """
    name = (display_name or "").strip()
    first_name, _, last_name = name.partition(" ")
    return (
        name[:DISPLAY_NAME_MAX_LENGTH],
        first_name[:NAME_MAX_LENGTH],
        last_name.strip()[:NAME_MAX_LENGTH].rstrip(),
    )


def clean_avatar_url(avatar_url: str | None) -> str | None:
    """Drop avatar URLs too long to store; a truncated URL would not resolve."""
    if avatar_url and len(avatar_url) > AVATAR_URL_MAX_LENGTH:
        return None
    return avatar_url
