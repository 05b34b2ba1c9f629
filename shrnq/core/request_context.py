# shrnq/core/request_context.py
"""
Per-request context: a request id exposed as X-Request-ID, plus helpers to
derive the public origin of the service from the incoming request.
"""

import uuid
from contextvars import ContextVar

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from shrnq.core.config import Settings

REQUEST_ID_HEADER = "X-Request-ID"

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)
_settings: ContextVar[Settings | None] = ContextVar("settings", default=None)


def get_request_id() -> str | None:
    """Get the id of the request currently being handled."""
    return _request_id.get()


def get_request_settings() -> Settings | None:
    """Settings of the app handling the current request."""
    return _settings.get()


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Assigns a request id (or reuses a sane incoming one) and echoes it back.

    Also exposes the app settings to code that only sees the request
    indirectly, such as the rate-limit providers.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        incoming = request.headers.get(REQUEST_ID_HEADER, "")
        request_id = incoming if incoming.isalnum() and len(incoming) <= 64 else uuid.uuid4().hex

        token = _request_id.set(request_id)
        settings_token = _settings.set(request.app.state.settings)
        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            _settings.reset(settings_token)
            _request_id.reset(token)


def get_domain_url(request: Request) -> str:
    """Public origin of the request, honouring X-Forwarded-Host.

    Local hosts are served over plain http, everything else is assumed to sit
    behind TLS.
    """
    host = request.headers.get("X-Forwarded-Host") or request.headers.get("host")
    if not host:
        host = request.url.netloc
    protocol = "http" if "localhost" in host else "https"
    return f"{protocol}://{host}"


def get_public_url(request: Request) -> str:
    """BASE_URL when configured, otherwise the request's domain URL."""
    base_url = request.app.state.settings.BASE_URL
    return base_url or get_domain_url(request)
