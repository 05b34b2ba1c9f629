# tests/unit/core/test_security.py
"""Unit tests for the honeypot and CSRF helpers."""

from types import SimpleNamespace

import pytest

from shrnq.core.security import (
    CSRF_SESSION_KEY,
    HONEYPOT_NAME_FIELD,
    HONEYPOT_VALID_FROM_FIELD,
    Honeypot,
    get_csrf_token,
    validate_csrf,
)
from shrnq.exceptions import InvalidCSRFTokenError, SpamError

NOW = 1_700_000_000.0


def _fake_request(session: dict) -> SimpleNamespace:
    return SimpleNamespace(
        session=session,
        url=SimpleNamespace(path="/"),
        headers={},
        client=SimpleNamespace(host="127.0.0.1"),
    )


@pytest.fixture
def honeypot() -> Honeypot:
    return Honeypot("unit-test-secret")


def _form(honeypot: Honeypot, *, issued_at: float = NOW, name_value: str = "") -> dict:
    props = honeypot.get_input_props(now=issued_at)
    return {
        props["nameFieldName"]: name_value,
        props["validFromFieldName"]: props["encryptedValidFrom"],
    }


class TestHoneypot:
    def test_input_props_field_names(self, honeypot: Honeypot) -> None:
        props = honeypot.get_input_props(now=NOW)
        assert props["nameFieldName"] == HONEYPOT_NAME_FIELD
        assert props["validFromFieldName"] == HONEYPOT_VALID_FROM_FIELD
        # The timestamp is never exposed in clear text.
        assert str(int(NOW * 1000)) not in props["encryptedValidFrom"]

    def test_valid_submission_passes(self, honeypot: Honeypot) -> None:
        honeypot.check(_form(honeypot), now=NOW + 5)

    def test_valid_from_is_optional(self, honeypot: Honeypot) -> None:
        honeypot.check({HONEYPOT_NAME_FIELD: ""}, now=NOW)

    def test_missing_name_field(self, honeypot: Honeypot) -> None:
        with pytest.raises(SpamError, match="Missing honeypot input"):
            honeypot.check({}, now=NOW)

    def test_filled_name_field(self, honeypot: Honeypot) -> None:
        with pytest.raises(SpamError, match="Honeypot input not empty"):
            honeypot.check(_form(honeypot, name_value="bot"), now=NOW + 5)

    def test_tampered_valid_from(self, honeypot: Honeypot) -> None:
        form = {HONEYPOT_NAME_FIELD: "", HONEYPOT_VALID_FROM_FIELD: "not-a-token"}
        with pytest.raises(SpamError, match="Invalid honeypot valid from input"):
            honeypot.check(form, now=NOW)

    def test_token_from_other_secret_rejected(self, honeypot: Honeypot) -> None:
        other = Honeypot("another-secret")
        with pytest.raises(SpamError, match="Invalid honeypot valid from input"):
            honeypot.check(_form(other), now=NOW + 5)

    def test_valid_from_in_future(self, honeypot: Honeypot) -> None:
        with pytest.raises(SpamError, match="in future"):
            honeypot.check(_form(honeypot, issued_at=NOW + 60), now=NOW)

    def test_submitted_too_quickly(self) -> None:
        honeypot = Honeypot("unit-test-secret", min_submit_seconds=3)
        with pytest.raises(SpamError, match="too quickly"):
            honeypot.check(_form(honeypot), now=NOW + 1)
        honeypot.check(_form(honeypot), now=NOW + 3)


class TestCSRF:
    def test_token_is_created_once_per_session(self) -> None:
        request = _fake_request({})
        token = get_csrf_token(request)
        assert token
        assert request.session[CSRF_SESSION_KEY] == token
        assert get_csrf_token(request) == token

    def test_matching_token_passes(self) -> None:
        request = _fake_request({CSRF_SESSION_KEY: "abc123"})
        validate_csrf(request, {"csrf": "abc123"})

    @pytest.mark.parametrize(
        "session, form",
        [
            ({}, {"csrf": "abc123"}),
            ({CSRF_SESSION_KEY: "abc123"}, {}),
            ({CSRF_SESSION_KEY: "abc123"}, {"csrf": "other"}),
        ],
    )
    def test_invalid_token_rejected(self, session: dict, form: dict) -> None:
        with pytest.raises(InvalidCSRFTokenError):
            validate_csrf(_fake_request(session), form)
