"""
BrokerForce Core Package.

This package contains the identity resolution logic, authentication
services and shared schemas for the BrokerForce backend.
"""

__version__ = "0.1.0"

from .logging_config import get_logger, init_logging

__all__ = ["init_logging", "get_logger"]
