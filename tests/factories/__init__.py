# tests/factories/__init__.py

from .user_factory import AuthenticatorFactory, UserFactory

__all__ = ["AuthenticatorFactory", "UserFactory"]
