# shrnq/crud/passkey_store.py
"""
Persistence capabilities needed by the passkey ceremonies, bound to one
AsyncSession.

Uniqueness of usernames and credential ids is left to the database
constraints: a violation on insert is the authoritative signal, so two
concurrent registrations racing on the same name cannot both succeed.
"""

import logging
from dataclasses import dataclass, field

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from shrnq import crud
from shrnq.core.log_utils import sanitize_for_log
from shrnq.db.models.authenticator import TRANSPORTS_SEPARATOR, Authenticator
from shrnq.db.models.user import User
from shrnq.exceptions import DuplicateCredentialError, UsernameTakenError

logger = logging.getLogger(__name__)


@dataclass
class NewAuthenticator:
    """A verified credential that is about to be stored."""

    credential_id: str
    credential_public_key: str
    counter: int
    credential_device_type: str
    credential_backed_up: bool
    transports: list[str] = field(default_factory=list)


class PasskeyStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def find_user_by_username(self, username: str) -> User | None:
        return await crud.user.get_by_username(self.db, username=username)

    async def find_user_by_id(self, user_id: str) -> User | None:
        return await crud.user.get(self.db, user_id)

    async def find_authenticator_by_id(self, credential_id: str) -> Authenticator | None:
        return await crud.authenticator.get(self.db, credential_id)

    async def list_user_authenticators(self, user_id: str) -> list[Authenticator]:
        return await crud.authenticator.get_multi_by_user(self.db, user_id=user_id)

    async def create_user(self, username: str) -> User:
        try:
            return await crud.user.create(self.db, obj_in={"username": username})
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(
                "Username %s taken by a concurrent registration", sanitize_for_log(username)
            )
            raise UsernameTakenError() from e

    async def create_authenticator(self, new: NewAuthenticator, user_id: str) -> Authenticator:
        try:
            return await crud.authenticator.create(
                self.db,
                obj_in={
                    "credential_id": new.credential_id,
                    "user_id": user_id,
                    "credential_public_key": new.credential_public_key,
                    "counter": new.counter,
                    "credential_device_type": new.credential_device_type,
                    "credential_backed_up": new.credential_backed_up,
                    "transports": TRANSPORTS_SEPARATOR.join(new.transports),
                },
            )
        except IntegrityError as e:
            # Also discards the user row flushed earlier in this transaction.
            await self.db.rollback()
            logger.warning(
                "Credential %s registered by a concurrent request",
                sanitize_for_log(new.credential_id),
            )
            raise DuplicateCredentialError() from e

    async def update_counter(self, credential_id: str, counter: int) -> None:
        await crud.authenticator.update_counter(
            self.db, credential_id=credential_id, counter=counter
        )

    async def commit(self) -> None:
        await self.db.commit()
