# shrnq/api/routers/login.py
"""
Passkey sign-up and sign-in.

- ``GET /login`` issues ceremony options (and a fresh challenge)
- ``POST /login`` verifies a ceremony and signs the user in
- ``POST /logout`` forgets the signed-in user
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse, RedirectResponse

from shrnq.core.auth_dependencies import get_optional_user, get_passkey_store
from shrnq.core.log_utils import sanitize_for_log
from shrnq.core.rate_limit import (
    get_real_client_ip,
    limiter,
    login_rate_limit,
    rate_limit_disabled,
)
from shrnq.crud.passkey_store import PasskeyStore
from shrnq.db.models.user import User
from shrnq.exceptions import PasskeyError
from shrnq.services import passkey_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Auth - Passkeys"])


def _form_str(value) -> str | None:
    return value if isinstance(value, str) else None


@router.get("/login", summary="Get passkey ceremony options")
async def login_options(
    request: Request,
    store: Annotated[PasskeyStore, Depends(get_passkey_store)],
    user: Annotated[User | None, Depends(get_optional_user)],
    username: Annotated[str | None, Query(max_length=255)] = None,
) -> dict:
    """
    Options for ``navigator.credentials.create()`` / ``.get()``.

    ``usernameAvailable`` answers the "Check Username" button and is null when
    no username was given.
    """
    settings = request.app.state.settings
    return await passkey_service.generate_options(
        store,
        request.session,
        rp_id=passkey_service.get_rp_id(str(request.url), settings),
        rp_name=settings.WEBAUTHN_RP_NAME,
        current_user=user,
        username=username.strip() if username else None,
    )


@router.post("/login", summary="Verify a passkey ceremony")
@limiter.limit(login_rate_limit, exempt_when=rate_limit_disabled)
async def login(
    request: Request,
    store: Annotated[PasskeyStore, Depends(get_passkey_store)],
):
    """
    Complete a registration or authentication ceremony.

    Form fields: ``intent`` (registration | authentication), ``username`` and
    ``response`` (the credential JSON produced by the browser). Redirects home
    on success; failures are returned as ``{"error": {"message": ...}}``.
    """
    settings = request.app.state.settings
    form = await request.form()
    request_url = str(request.url)

    try:
        user = await passkey_service.verify_ceremony(
            store,
            request.session,
            ceremony_type=_form_str(form.get("intent")),
            username=_form_str(form.get("username")),
            response_json=_form_str(form.get("response")),
            rp_id=passkey_service.get_rp_id(request_url, settings),
            origin=passkey_service.get_origin(request_url, settings),
            challenge_ttl_seconds=settings.WEBAUTHN_CHALLENGE_TTL_SECONDS,
        )
    except PasskeyError as e:
        logger.warning(
            "Passkey ceremony rejected from %s: %s",
            sanitize_for_log(get_real_client_ip(request)),
            e.message,
        )
        return JSONResponse(status_code=e.status_code, content={"error": {"message": e.message}})

    request.session[passkey_service.USER_SESSION_KEY] = user.id
    return RedirectResponse(url="/", status_code=status.HTTP_302_FOUND)


@router.post("/logout", summary="Sign out")
async def logout(request: Request) -> RedirectResponse:
    request.session.pop(passkey_service.USER_SESSION_KEY, None)
    return RedirectResponse(url="/", status_code=status.HTTP_302_FOUND)
