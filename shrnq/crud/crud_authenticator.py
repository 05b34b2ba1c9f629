# shrnq/crud/crud_authenticator.py
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shrnq.crud.base import CRUDBase
from shrnq.db.models.authenticator import Authenticator


class CRUDAuthenticator(CRUDBase[Authenticator]):
    async def get_multi_by_user(self, db: AsyncSession, *, user_id: str) -> list[Authenticator]:
        result = await db.execute(
            select(Authenticator)
            .where(Authenticator.user_id == user_id)
            .order_by(Authenticator.created_at)
        )
        return list(result.scalars().all())

    async def update_counter(self, db: AsyncSession, *, credential_id: str, counter: int) -> None:
        await db.execute(
            update(Authenticator)
            .where(Authenticator.credential_id == credential_id)
            .values(counter=counter)
        )


authenticator = CRUDAuthenticator(Authenticator)
