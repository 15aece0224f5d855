"""
Password hashing utilities.

Uses bcrypt with a per-hash random salt.
"""

import bcrypt

# bcrypt only looks at the first 72 bytes of input
_BCRYPT_MAX_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    """
    Hash a password for storage.

    Args:
        password: Plain text password.

    Returns:
        Bcrypt hash string.
    """
    return bcrypt.hashpw(_encode(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str | None) -> bool:
    """
    Verify a password against a stored hash.

    Args:
        plain: Plain text password.
        hashed: Stored bcrypt hash.

    Returns:
        True if the password matches, False otherwise.
    """
    if not plain or not hashed:
        return False
    try:
        return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in storage
        return False
