"""
Service layer.

Business logic services for the application.
"""

from .auth_service import AuthService
from .identity_service import IdentityService, RegistrationResult

__all__ = [
    "AuthService",
    "IdentityService",
    "RegistrationResult",
]
