# shrnq/crud/base.py
from typing import Any, Generic, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from shrnq.db.base_class import Base

ModelType = TypeVar("ModelType", bound=Base)


class CRUDBase(Generic[ModelType]):
    def __init__(self, model: type[ModelType]):
        """
        CRUD object with the default read/create methods.

        **Parameters**

        * `model`: A SQLAlchemy model class
        """
        self.model = model

    async def get(self, db: AsyncSession, id: Any) -> ModelType | None:
        """
        Get a single record by primary key.
        """
        return await db.get(self.model, id)

    async def create(self, db: AsyncSession, *, obj_in: dict[str, Any]) -> ModelType:
        """
        Add a new record and flush it so constraint violations surface here.

        The caller owns the transaction and decides when to commit.
        """
        db_obj = self.model(**obj_in)
        db.add(db_obj)
        await db.flush()
        return db_obj
