# shrnq/db/models/user.py

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shrnq.core.ids import random_id
from shrnq.db.base_class import Base

if TYPE_CHECKING:
    from shrnq.db.models.authenticator import Authenticator

USER_ID_LENGTH = 10


def generate_user_id() -> str:
    return random_id(USER_ID_LENGTH)


class User(Base):
    """
    A passkey account. Created once during a registration ceremony and never
    updated afterwards; the username is immutable.
    """

    __tablename__ = "user"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[str] = mapped_column(
        String(USER_ID_LENGTH), primary_key=True, default=generate_user_id
    )
    username: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        "createdAt", DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    authenticators: Mapped[list["Authenticator"]] = relationship(
        "shrnq.db.models.authenticator.Authenticator",
        back_populates="user",
        lazy="raise",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id!r}, username={self.username!r})>"
