from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from shrnq.core.config import Settings
from shrnq.core.request_context import get_request_settings


def get_real_client_ip(request: Request) -> str:
    """Client IP, preferring the first hop of X-Forwarded-For when behind a proxy."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        first_hop = forwarded_for.split(",")[0].strip()
        if first_hop:
            return first_hop
    return get_remote_address(request)


def _current_settings() -> Settings:
    settings = get_request_settings()
    if settings is None:
        raise RuntimeError("Rate limits require RequestContextMiddleware")
    return settings


# slowapi calls these per request; values come from the serving app's settings.
def shorten_rate_limit() -> str:
    return _current_settings().RATE_LIMIT_SHORTEN


def login_rate_limit() -> str:
    return _current_settings().RATE_LIMIT_LOGIN


def rate_limit_disabled() -> bool:
    return not _current_settings().RATE_LIMIT_ENABLED


# Clients are identified by IP address.
limiter = Limiter(key_func=get_real_client_ip)
