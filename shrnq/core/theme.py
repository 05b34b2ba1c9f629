# shrnq/core/theme.py

from typing import Literal

from starlette.requests import Request
from starlette.responses import Response

THEME_COOKIE_NAME = "theme"
THEME_COOKIE_MAX_AGE = 365 * 24 * 60 * 60

Theme = Literal["light", "dark"]


def get_theme(request: Request) -> Theme | None:
    """Stored theme preference, or None when the client follows the system setting."""
    value = request.cookies.get(THEME_COOKIE_NAME)
    if value in ("light", "dark"):
        return value  # type: ignore[return-value]
    return None


def set_theme(response: Response, theme: str, *, secure: bool = False) -> None:
    """Persist the preference on the response; "system" clears the cookie."""
    if theme == "system":
        response.delete_cookie(THEME_COOKIE_NAME, path="/")
        return
    response.set_cookie(
        key=THEME_COOKIE_NAME,
        value=theme,
        max_age=THEME_COOKIE_MAX_AGE,
        path="/",
        secure=secure,
        httponly=False,
        samesite="lax",
    )
