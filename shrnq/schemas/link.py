# shrnq/schemas/link.py
from typing import Literal

from pydantic import AnyUrl, BaseModel, Field, TypeAdapter, ValidationError, field_validator
from pydantic_core import PydanticCustomError

_url_adapter = TypeAdapter(AnyUrl)


class ShortenRequest(BaseModel):
    """The shorten form. The URL is stored exactly as submitted."""

    url: str = Field(..., max_length=2048)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        try:
            _url_adapter.validate_python(v)
        except ValidationError as e:
            raise PydanticCustomError("url_parsing", "Invalid url") from e
        if not v.startswith("https://"):
            raise PydanticCustomError("url_scheme", "URL must start with https://")
        return v


class ThemeRequest(BaseModel):
    theme: Literal["system", "light", "dark"]


def field_errors(exc: ValidationError) -> dict[str, list[str]]:
    """Group pydantic errors by form field name."""
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        field_name = str(error["loc"][-1]) if error["loc"] else "__all__"
        errors.setdefault(field_name, []).append(error["msg"])
    return errors
