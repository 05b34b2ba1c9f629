# shrnq/core/security.py
"""
Form protections shared by the public endpoints.

- CSRF: a synchronizer token kept in the signed session cookie and echoed back
  by forms in the ``csrf`` field.
- Honeypot: a hidden field that humans leave empty, plus a Fernet-encrypted
  "valid from" timestamp that rejects replayed or pre-filled submissions.
"""

import base64
import hashlib
import logging
import secrets
import time
from collections.abc import Mapping
from typing import Any

from cryptography.fernet import Fernet, InvalidToken
from fastapi import Request

from shrnq.core.log_utils import sanitize_for_log
from shrnq.core.rate_limit import get_real_client_ip
from shrnq.exceptions import InvalidCSRFTokenError, SpamError

logger = logging.getLogger(__name__)

CSRF_SESSION_KEY = "csrf"
CSRF_FORM_FIELD = "csrf"

HONEYPOT_NAME_FIELD = "name__confirm"
HONEYPOT_VALID_FROM_FIELD = "from__confirm"


# --- CSRF ---


def get_csrf_token(request: Request) -> str:
    """Return the session's CSRF token, creating one on first use."""
    token = request.session.get(CSRF_SESSION_KEY)
    if not token:
        token = secrets.token_urlsafe(32)
        request.session[CSRF_SESSION_KEY] = token
    return token


def validate_csrf(request: Request, form: Mapping[str, Any]) -> None:
    """Raise InvalidCSRFTokenError unless the form echoes the session token."""
    expected = request.session.get(CSRF_SESSION_KEY)
    submitted = form.get(CSRF_FORM_FIELD)

    if not expected or not isinstance(submitted, str) or not submitted:
        logger.warning(
            "CSRF token missing on %s from %s",
            sanitize_for_log(request.url.path),
            sanitize_for_log(get_real_client_ip(request)),
        )
        raise InvalidCSRFTokenError()

    if not secrets.compare_digest(expected, submitted):
        logger.warning(
            "CSRF token mismatch on %s from %s",
            sanitize_for_log(request.url.path),
            sanitize_for_log(get_real_client_ip(request)),
        )
        raise InvalidCSRFTokenError()


# --- Honeypot ---


def _derive_fernet_key(secret: str) -> bytes:
    """Derive a Fernet key (urlsafe base64 of 32 bytes) from an arbitrary secret."""
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


class Honeypot:
    """Issues and checks honeypot form fields."""

    def __init__(self, secret: str, min_submit_seconds: int = 0) -> None:
        self._fernet = Fernet(_derive_fernet_key(secret))
        self.min_submit_seconds = min_submit_seconds
        self.name_field_name = HONEYPOT_NAME_FIELD
        self.valid_from_field_name = HONEYPOT_VALID_FROM_FIELD

    def get_input_props(self, now: float | None = None) -> dict[str, str]:
        """Props the form renders as hidden inputs."""
        valid_from = str(int((now if now is not None else time.time()) * 1000))
        return {
            "nameFieldName": self.name_field_name,
            "validFromFieldName": self.valid_from_field_name,
            "encryptedValidFrom": self._fernet.encrypt(valid_from.encode()).decode(),
        }

    def check(self, form: Mapping[str, Any], now: float | None = None) -> None:
        """Raise SpamError if the submission looks automated."""
        if self.name_field_name not in form:
            raise SpamError("Missing honeypot input")

        if form.get(self.name_field_name):
            raise SpamError("Honeypot input not empty")

        encrypted = form.get(self.valid_from_field_name)
        if encrypted is None:
            return

        try:
            valid_from_ms = int(self._fernet.decrypt(str(encrypted).encode()).decode())
        except (InvalidToken, ValueError) as e:
            raise SpamError("Invalid honeypot valid from input") from e

        now_ms = int((now if now is not None else time.time()) * 1000)
        if valid_from_ms > now_ms:
            raise SpamError("Honeypot valid from is in future")
        if now_ms - valid_from_ms < self.min_submit_seconds * 1000:
            raise SpamError("Form submitted too quickly")


def check_honeypot(request: Request, form: Mapping[str, Any]) -> None:
    """Run the app's honeypot against a submitted form, logging rejections."""
    honeypot: Honeypot = request.app.state.honeypot
    try:
        honeypot.check(form)
    except SpamError as e:
        logger.warning(
            "Honeypot rejected submission to %s from %s: %s",
            sanitize_for_log(request.url.path),
            sanitize_for_log(get_real_client_ip(request)),
            e.message,
        )
        # Clients only ever see the generic message.
        raise SpamError() from e
