"""
Identity error taxonomy.

Every failure the identity layer reports to callers. User-facing errors carry
an actionable message; ``PersistenceError`` carries an opaque one and the
underlying cause is logged where it is raised.
"""


class IdentityError(ValueError):
    """Base class for identity and authentication failures."""

    default_message = "Authentication error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(IdentityError):
    """A submitted field is malformed."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(message)


class UsernameTakenError(IdentityError):
    default_message = "Username already taken"


class EmailAlreadyRegisteredError(IdentityError):
    default_message = "Email is already registered. Please sign in instead."


class InvalidCredentialsError(IdentityError):
    """Login failed. Never says whether the username exists."""

    default_message = "Invalid username or password"


class LinkVerificationError(IdentityError):
    """Linking was requested without proof of control over the external account."""

    default_message = "Sign in with the external account again to confirm linking"


class PersistenceError(IdentityError):
    """The credential store failed."""

    default_message = "Internal server error"
