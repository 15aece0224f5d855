"""
Identity resolution schemas.

Inputs and outcomes of ``IdentityService`` operations.
"""

from pydantic import BaseModel, Field, field_validator


class ExternalProfile(BaseModel):
    """Profile asserted by an external identity provider."""

    external_id: str = Field(min_length=1)
    email: str
    display_name: str | None = None
    avatar_url: str | None = None
    email_verified: bool = True

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class ExternalAssertion(BaseModel):
    """Proof that the caller just completed a login with an external identity."""

    external_id: str
    email: str


class LinkCandidate(BaseModel):
    """Existing external account a new local registration may be linked to."""

    email: str
    name: str | None = None


class LocalRegistration(BaseModel):
    """Raw local registration input. Validated by ``IdentityService``."""

    username: str = ""
    password: str = ""
    first_name: str = ""
    last_name: str = ""
    email: str = ""
