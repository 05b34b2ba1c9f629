# shrnq/crud/crud_user.py
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shrnq.crud.base import CRUDBase
from shrnq.db.models.user import User


class CRUDUser(CRUDBase[User]):
    async def get_by_username(self, db: AsyncSession, *, username: str) -> User | None:
        result = await db.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()


user = CRUDUser(User)
