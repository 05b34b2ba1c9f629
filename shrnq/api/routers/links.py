# shrnq/api/routers/links.py
"""
Shorten form and short-link redirects.

The catch-all redirect router must be included after every other router,
otherwise it would shadow them.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import ValidationError

from shrnq.core.auth_dependencies import get_optional_user
from shrnq.core.log_utils import sanitize_for_log
from shrnq.core.rate_limit import limiter, rate_limit_disabled, shorten_rate_limit
from shrnq.core.request_context import get_domain_url, get_public_url
from shrnq.core.security import check_honeypot, get_csrf_token, validate_csrf
from shrnq.core.theme import get_theme
from shrnq.db.kv import KVStore, get_kv_store
from shrnq.db.models.user import User
from shrnq.exceptions import AllocationExhaustedError, StoreUnavailableError
from shrnq.schemas.link import ShortenRequest, field_errors
from shrnq.services import slug_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Links"])
redirect_router = APIRouter(tags=["Links - Redirects"])


def _error(status_code: int, error: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content={"status": "error", "error": error, **extra}
    )


@router.get("/", summary="Data for the shorten form")
async def index(
    request: Request,
    user: Annotated[User | None, Depends(get_optional_user)],
) -> dict:
    return {
        "requestInfo": {
            "origin": get_domain_url(request),
            "path": request.url.path,
            "userPrefs": {"theme": get_theme(request)},
        },
        "csrfToken": get_csrf_token(request),
        "honeypot": request.app.state.honeypot.get_input_props(),
        "user": {"id": user.id, "username": user.username} if user else None,
    }


@router.post("/", summary="Shorten a URL")
@limiter.limit(shorten_rate_limit, exempt_when=rate_limit_disabled)
async def create_short_link(
    request: Request,
    store: Annotated[KVStore, Depends(get_kv_store)],
) -> JSONResponse:
    """
    Shorten the submitted ``url`` field.

    CSRF and honeypot rejections are raised before any validation and are
    answered by the app-level SecurityCheckError handler.
    """
    form = await request.form()
    validate_csrf(request, form)
    check_honeypot(request, form)

    try:
        payload = ShortenRequest.model_validate(dict(form))
    except ValidationError as e:
        return _error(
            status.HTTP_400_BAD_REQUEST, "Invalid submission", errors=field_errors(e)
        )

    max_attempts = request.app.state.settings.SLUG_MAX_ATTEMPTS
    try:
        slug = await slug_service.shorten(store, payload.url, max_attempts=max_attempts)
    except AllocationExhaustedError as e:
        return _error(e.status_code, e.message)
    except StoreUnavailableError as e:
        return _error(e.status_code, e.message)

    host = get_public_url(request).split("://", 1)[-1]
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={"status": "success", "url": f"{host}/{slug}"},
    )


@redirect_router.get("/{slug:path}", summary="Follow a short link")
async def follow_short_link(
    request: Request,
    slug: str,  # noqa: ARG001 - the full request path is the lookup key
    store: Annotated[KVStore, Depends(get_kv_store)],
):
    try:
        target = await slug_service.resolve(store, request.url.path)
    except StoreUnavailableError as e:
        return _error(e.status_code, e.message)

    if target is None:
        logger.debug("Short link not found: %s", sanitize_for_log(request.url.path))
        return _error(status.HTTP_404_NOT_FOUND, "Not found")

    return RedirectResponse(url=target.url, status_code=target.status_code)
