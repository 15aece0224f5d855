"""
Database models package.

This module exports all SQLAlchemy models for the BrokerForce application.
"""

from .base import Base, TimestampMixin, generate_uuid, utcnow
from .user import IdentityState, User

__all__ = [
    "Base",
    "TimestampMixin",
    "generate_uuid",
    "utcnow",
    "User",
    "IdentityState",
]
