"""
User model definition.

This module defines the User model, the single record that carries both the
local credential (username/password) and the external identity binding.
"""

from enum import Enum

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, generate_uuid


class IdentityState(str, Enum):
    """Which sign-in methods a user row currently supports."""

    LOCAL = "local"
    EXTERNAL = "external"
    LINKED = "linked"


class User(Base, TimestampMixin):
    """
    User account.

    Attributes:
        id: Unique user identifier (UUID), immutable.
        external_id: Subject id from the external identity provider (nullable-unique).
        username: Lower-cased local login name (nullable-unique).
        password_hash: Bcrypt hash of the local password.
        email: Lower-cased email address. Not unique on its own.
        name: Full display name.
        first_name: Given name.
        last_name: Family name.
        avatar: Profile picture URL.
    """

    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("external_id", name="uq_users_external_id"),
        UniqueConstraint("username", name="uq_users_username"),
    )

    # Primary key
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)

    # Identity bindings
    external_id: Mapped[str | None] = mapped_column(String(255))
    username: Mapped[str | None] = mapped_column(String(20))
    password_hash: Mapped[str | None] = mapped_column(String(255))

    # Profile
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(String(255))
    first_name: Mapped[str | None] = mapped_column(String(100))
    last_name: Mapped[str | None] = mapped_column(String(100))
    avatar: Mapped[str | None] = mapped_column(String(1024))

    @property
    def external_linked(self) -> bool:
        return self.external_id is not None

    @property
    def has_password(self) -> bool:
        return bool(self.username and self.password_hash)

    @property
    def identity_state(self) -> IdentityState:
        if self.external_id and self.has_password:
            return IdentityState.LINKED
        if self.external_id:
            return IdentityState.EXTERNAL
        return IdentityState.LOCAL

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username} state={self.identity_state.value}>"
