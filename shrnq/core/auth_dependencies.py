# shrnq/core/auth_dependencies.py
"""
Request-scoped dependencies for passkey accounts.

The signed-in user is whatever ``user_id`` the session cookie carries after a
successful ceremony; there is no token layer.
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from shrnq.crud.passkey_store import PasskeyStore
from shrnq.db.models.user import User
from shrnq.db.session import get_async_session
from shrnq.services.passkey_service import USER_SESSION_KEY


async def get_passkey_store(
    db: Annotated[AsyncSession, Depends(get_async_session)],
) -> PasskeyStore:
    return PasskeyStore(db)


async def get_optional_user(
    request: Request,
    store: Annotated[PasskeyStore, Depends(get_passkey_store)],
) -> User | None:
    """The signed-in user, or None for anonymous visitors.

    A session pointing at a user that no longer exists is treated as anonymous.
    """
    user_id = request.session.get(USER_SESSION_KEY)
    if not user_id:
        return None
    user = await store.find_user_by_id(user_id)
    if user is None:
        request.session.pop(USER_SESSION_KEY, None)
    return user
