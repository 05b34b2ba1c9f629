# shrnq/services/passkey_service.py
"""
Passkey (WebAuthn) ceremonies for passwordless sign-up and sign-in.

Flow:
- ``generate_options`` builds the ceremony options with py_webauthn and keeps
  their challenge (with its issue time) in the signed session.
- ``verify_ceremony`` consumes that challenge, lets py_webauthn verify the
  browser response, then registers a new user or resolves the owner of an
  existing credential.

Security considerations:
- Challenges are single use: they are popped from the session before verifying
- Challenges older than the configured TTL are rejected
- Registration never attaches a credential to an existing account
- Signature counters are checked by py_webauthn and persisted after each sign-in
"""

import enum
import logging
import time
from collections.abc import MutableMapping
from typing import Any
from urllib.parse import urlparse

from webauthn import (
    generate_authentication_options,
    generate_registration_options,
    verify_authentication_response,
    verify_registration_response,
)
from webauthn.helpers import (
    base64url_to_bytes,
    bytes_to_base64url,
    parse_authentication_credential_json,
    parse_registration_credential_json,
)
from webauthn.helpers.structs import (
    AuthenticationCredential,
    AuthenticatorSelectionCriteria,
    AuthenticatorTransport,
    PublicKeyCredentialDescriptor,
    ResidentKeyRequirement,
    UserVerificationRequirement,
)

from shrnq.core.config import Settings
from shrnq.core.log_utils import sanitize_for_log
from shrnq.crud.passkey_store import NewAuthenticator, PasskeyStore
from shrnq.db.models.authenticator import Authenticator
from shrnq.db.models.user import User
from shrnq.exceptions import (
    AuthenticatorNotFoundError,
    CeremonyVerificationError,
    ChallengeMissingError,
    DuplicateCredentialError,
    InvalidCeremonyTypeError,
    MissingUsernameError,
    UserAlreadyExistsError,
    UserNotFoundError,
)

logger = logging.getLogger(__name__)

CHALLENGE_SESSION_KEY = "challenge"
CHALLENGE_ISSUED_AT_SESSION_KEY = "challenge_issued_at"
USER_SESSION_KEY = "user_id"
DEFAULT_CHALLENGE_TTL_SECONDS = 300

# Placeholder user entity for visitors who have not picked a username yet;
# the browser fills in the real one before creating the credential.
ANONYMOUS_USER_NAME = "anonymous"


class CeremonyType(str, enum.Enum):
    REGISTRATION = "registration"
    AUTHENTICATION = "authentication"


def get_rp_id(request_url: str, settings: Settings) -> str:
    """Relying Party ID: the configured override, else the request hostname."""
    if settings.WEBAUTHN_RP_ID:
        return settings.WEBAUTHN_RP_ID
    return urlparse(request_url).hostname or "localhost"


def get_origin(request_url: str, settings: Settings) -> str:
    """Expected origin: the configured override, else the request origin."""
    if settings.WEBAUTHN_ORIGIN:
        return settings.WEBAUTHN_ORIGIN
    parsed = urlparse(request_url)
    return f"{parsed.scheme}://{parsed.netloc}"


def _credential_descriptor(authenticator: Authenticator) -> PublicKeyCredentialDescriptor:
    return PublicKeyCredentialDescriptor(
        id=base64url_to_bytes(authenticator.credential_id),
        transports=[AuthenticatorTransport(t) for t in authenticator.transport_list],
    )


async def generate_options(
    store: PasskeyStore,
    session: MutableMapping[str, Any],
    *,
    rp_id: str,
    rp_name: str,
    current_user: User | None = None,
    username: str | None = None,
) -> dict:
    """
    Build the options for both ceremonies and remember their challenge.

    The signed-in user's credentials are passed to py_webauthn as
    ``exclude_credentials`` so the browser refuses to register them twice.
    ``usernameAvailable`` is None unless a username was asked about.
    """
    authenticators = []
    if current_user is not None:
        authenticators = await store.list_user_authenticators(current_user.id)

    username_available: bool | None = None
    if username:
        username_available = await store.find_user_by_username(username) is None

    if current_user is not None:
        user_id = current_user.id.encode()
        user_name = current_user.username
    else:
        user_id = None
        user_name = username or ANONYMOUS_USER_NAME

    registration = generate_registration_options(
        rp_id=rp_id,
        rp_name=rp_name,
        user_id=user_id,
        user_name=user_name,
        exclude_credentials=[_credential_descriptor(a) for a in authenticators],
        authenticator_selection=AuthenticatorSelectionCriteria(
            resident_key=ResidentKeyRequirement.REQUIRED,
            user_verification=UserVerificationRequirement.PREFERRED,
        ),
    )
    # One challenge serves whichever ceremony the visitor picks.
    authentication = generate_authentication_options(
        rp_id=rp_id,
        challenge=registration.challenge,
        user_verification=UserVerificationRequirement.PREFERRED,
    )

    challenge = bytes_to_base64url(registration.challenge)
    session[CHALLENGE_SESSION_KEY] = challenge
    session[CHALLENGE_ISSUED_AT_SESSION_KEY] = int(time.time())

    selection = registration.authenticator_selection
    return {
        "usernameAvailable": username_available,
        "rp": {"name": registration.rp.name, "id": registration.rp.id},
        "user": (
            {
                "id": bytes_to_base64url(registration.user.id),
                "name": registration.user.name,
                "displayName": registration.user.display_name,
            }
            if current_user is not None
            else None
        ),
        "challenge": challenge,
        "authenticators": [
            {"id": a.credential_id, "transports": a.transport_list} for a in authenticators
        ],
        "pubKeyCredParams": [
            {"type": p.type, "alg": p.alg} for p in registration.pub_key_cred_params
        ],
        "timeout": registration.timeout,
        "excludeCredentials": [
            {
                "id": bytes_to_base64url(c.id),
                "type": c.type,
                "transports": [t.value for t in (c.transports or [])],
            }
            for c in (registration.exclude_credentials or [])
        ],
        "authenticatorSelection": {
            "residentKey": selection.resident_key.value,
            "userVerification": selection.user_verification.value,
        },
        "attestation": registration.attestation.value,
        "userVerification": authentication.user_verification.value,
    }


def _pop_challenge(session: MutableMapping[str, Any], ttl_seconds: int) -> bytes:
    challenge = session.pop(CHALLENGE_SESSION_KEY, None)
    issued_at = session.pop(CHALLENGE_ISSUED_AT_SESSION_KEY, None)
    if not challenge or not isinstance(issued_at, int):
        raise ChallengeMissingError()
    if time.time() - issued_at > ttl_seconds:
        logger.info("Rejected a passkey challenge issued %ss ago", int(time.time() - issued_at))
        raise ChallengeMissingError()
    try:
        return base64url_to_bytes(challenge)
    except Exception as e:
        raise ChallengeMissingError() from e


def verify_registration(
    response_json: str | dict,
    *,
    expected_challenge: bytes,
    rp_id: str,
    origin: str,
) -> NewAuthenticator:
    """Verify an attestation with py_webauthn and return the credential to store."""
    try:
        credential = parse_registration_credential_json(response_json)
        verification = verify_registration_response(
            credential=credential,
            expected_challenge=expected_challenge,
            expected_rp_id=rp_id,
            expected_origin=origin,
        )
    except Exception as e:
        logger.warning("WebAuthn registration verification failed: %s", sanitize_for_log(e))
        raise CeremonyVerificationError(f"Registration verification failed: {e}") from e

    return NewAuthenticator(
        credential_id=bytes_to_base64url(verification.credential_id),
        credential_public_key=bytes_to_base64url(verification.credential_public_key),
        counter=verification.sign_count,
        credential_device_type=verification.credential_device_type.value,
        credential_backed_up=verification.credential_backed_up,
        transports=[t.value for t in (credential.response.transports or [])],
    )


async def register_user(
    store: PasskeyStore, new_authenticator: NewAuthenticator, username: str | None
) -> User:
    """
    Create a user together with its first authenticator.

    Raises:
        DuplicateCredentialError: the credential is already registered
        MissingUsernameError: no username was submitted
        UserAlreadyExistsError: the username belongs to another account
        UsernameTakenError: a concurrent registration claimed the username first
    """
    if await store.find_authenticator_by_id(new_authenticator.credential_id):
        raise DuplicateCredentialError()

    if not username:
        raise MissingUsernameError()

    # Registering a passkey onto someone else's account is never allowed.
    if await store.find_user_by_username(username):
        raise UserAlreadyExistsError()

    user = await store.create_user(username)
    await store.create_authenticator(new_authenticator, user.id)
    await store.commit()

    logger.info(
        "Registered user %s with authenticator %s",
        sanitize_for_log(username),
        sanitize_for_log(new_authenticator.credential_id),
    )
    return user


async def authenticate_user(
    store: PasskeyStore,
    credential: AuthenticationCredential,
    *,
    expected_challenge: bytes,
    rp_id: str,
    origin: str,
) -> User:
    """
    Verify an assertion against the stored credential and return its owner.

    Raises:
        AuthenticatorNotFoundError: the credential id is unknown
        CeremonyVerificationError: py_webauthn rejected the assertion
        UserNotFoundError: the credential points at a missing user
    """
    saved = await store.find_authenticator_by_id(credential.id)
    if saved is None:
        raise AuthenticatorNotFoundError()

    try:
        verification = verify_authentication_response(
            credential=credential,
            expected_challenge=expected_challenge,
            expected_rp_id=rp_id,
            expected_origin=origin,
            credential_public_key=base64url_to_bytes(saved.credential_public_key),
            credential_current_sign_count=saved.counter,
        )
    except Exception as e:
        logger.warning(
            "WebAuthn authentication failed for authenticator %s: %s",
            sanitize_for_log(saved.credential_id),
            sanitize_for_log(e),
        )
        raise CeremonyVerificationError(f"Authentication failed: {e}") from e

    user = await store.find_user_by_id(saved.user_id)
    if user is None:
        logger.error(
            "Authenticator %s references missing user %s",
            sanitize_for_log(saved.credential_id),
            sanitize_for_log(saved.user_id),
        )
        raise UserNotFoundError()

    await store.update_counter(saved.credential_id, verification.new_sign_count)
    await store.commit()

    logger.info("User %s authenticated via passkey", sanitize_for_log(user.username))
    return user


async def verify_ceremony(
    store: PasskeyStore,
    session: MutableMapping[str, Any],
    *,
    ceremony_type: str | None,
    username: str | None,
    response_json: str | dict | None,
    rp_id: str,
    origin: str,
    challenge_ttl_seconds: int = DEFAULT_CHALLENGE_TTL_SECONDS,
) -> User:
    """Complete a registration or authentication ceremony and return the user."""
    try:
        ceremony = CeremonyType(ceremony_type)
    except ValueError as e:
        raise InvalidCeremonyTypeError() from e

    expected_challenge = _pop_challenge(session, challenge_ttl_seconds)

    if not response_json:
        raise CeremonyVerificationError("Missing passkey response.")

    username = username.strip() if username else None

    if ceremony is CeremonyType.REGISTRATION:
        new_authenticator = verify_registration(
            response_json,
            expected_challenge=expected_challenge,
            rp_id=rp_id,
            origin=origin,
        )
        return await register_user(store, new_authenticator, username)

    try:
        credential = parse_authentication_credential_json(response_json)
    except Exception as e:
        logger.warning("Malformed authentication response: %s", sanitize_for_log(e))
        raise CeremonyVerificationError(f"Authentication failed: {e}") from e

    return await authenticate_user(
        store,
        credential,
        expected_challenge=expected_challenge,
        rp_id=rp_id,
        origin=origin,
    )
