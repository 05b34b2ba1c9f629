# shrnq/db/models/authenticator.py
"""
Model for WebAuthn credentials (passkeys).

Each user can own several authenticators, e.g. one per device. Column names
follow the WebAuthn vocabulary (credentialID, credentialPublicKey, ...).
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shrnq.db.base_class import Base

if TYPE_CHECKING:
    from shrnq.db.models.user import User

TRANSPORTS_SEPARATOR = ","


class Authenticator(Base):
    """
    A registered WebAuthn credential.

    Rows are created once, after a successful registration ceremony. Only the
    signature counter changes afterwards.
    """

    __tablename__ = "authenticator"
    __mapper_args__ = {"eager_defaults": True}

    # Base64url credential id reported by the authenticator; the lookup key
    # during authentication and unique across the system.
    credential_id: Mapped[str] = mapped_column(
        "credentialID", String(1024), primary_key=True, index=True
    )

    user_id: Mapped[str] = mapped_column(
        "userId",
        String(10),
        ForeignKey("user.id"),
        nullable=False,
        index=True,
    )

    # Base64url COSE public key, used to verify future assertions
    credential_public_key: Mapped[str] = mapped_column(
        "credentialPublicKey", Text, nullable=False
    )

    # Signature counter; a value that fails to increase indicates a cloned credential
    counter: Mapped[int] = mapped_column("counter", Integer, nullable=False, default=0)

    # "single_device" or "multi_device"
    credential_device_type: Mapped[str] = mapped_column(
        "credentialDeviceType", String(32), nullable=False
    )
    credential_backed_up: Mapped[bool] = mapped_column(
        "credentialBackedUp", Boolean, nullable=False, default=False
    )

    # Transport hints stored comma separated, e.g. "internal,hybrid"
    transports: Mapped[str] = mapped_column("transports", String(255), nullable=False, default="")

    created_at: Mapped[datetime] = mapped_column(
        "createdAt", DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    user: Mapped["User"] = relationship(
        "shrnq.db.models.user.User", back_populates="authenticators", lazy="raise"
    )

    @property
    def transport_list(self) -> list[str]:
        return [t for t in (self.transports or "").split(TRANSPORTS_SEPARATOR) if t]

    def __repr__(self) -> str:
        return (
            f"<Authenticator(credential_id={self.credential_id!r}, user_id={self.user_id!r}, "
            f"counter={self.counter})>"
        )
