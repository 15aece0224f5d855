"""
User schemas.

Response models for user records. The password hash never leaves the service layer.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class UserResponse(BaseModel):
    """User response model."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str | None = None
    email: str
    name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    avatar: str | None = None
    external_linked: bool = False
    has_password: bool = False
    created_at: datetime
    updated_at: datetime

