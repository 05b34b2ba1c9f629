# shrnq/api/routers/theme.py
from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from shrnq.core.theme import set_theme
from shrnq.schemas.link import ThemeRequest, field_errors

router = APIRouter(tags=["Preferences"])


@router.post("/theme", summary="Persist the colour theme preference")
async def update_theme(request: Request) -> JSONResponse:
    form = await request.form()
    try:
        payload = ThemeRequest.model_validate(dict(form))
    except ValidationError as e:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"status": "error", "errors": field_errors(e)},
        )

    response = JSONResponse(content={"status": "success", "theme": payload.theme})
    set_theme(response, payload.theme, secure=request.app.state.settings.COOKIE_SECURE)
    return response
