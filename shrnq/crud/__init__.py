# shrnq/crud/__init__.py
"""
CRUD operations package for the application.
This module re-exports the CRUD objects from the underlying modules.
"""

from .crud_authenticator import authenticator
from .crud_user import user

__all__ = ["authenticator", "user"]
