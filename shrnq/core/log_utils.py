# shrnq/core/log_utils.py
"""Helpers for logging user-controlled values without enabling log injection.

Slugs, usernames, request paths and forwarded IPs all reach the logs straight
from the client. ``sanitize_for_log`` strips terminal escapes and control
characters, makes line breaks visible and caps the length.

Always pass the sanitized value as an argument: ``logger.info("%s", value)``.
"""

import re
from typing import Any

# CSI, OSC and single-character ESC sequences
_ANSI_RE = re.compile(
    r"""
    \x1B
    (?:
        [@-Z\\-_]
      | \[ [0-?]* [ -/]* [@-~]
      | \] (?: [^\x07\x1B]* (?:\x07|\x1B\\))
    )
    """,
    re.VERBOSE,
)

# C0/C1 controls except \t, \n and \r, which are escaped separately
_UNSAFE_CTRL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")

# Bidirectional overrides and zero-width characters
_INVISIBLE_RE = re.compile(r"[\u202A-\u202E\u2066-\u2069\u200E\u200F\u200B-\u200D\u2060\u00AD]")

_TRUNCATED_SUFFIX = "...[truncated]"


def sanitize_for_log(value: Any, max_length: int | None = 256) -> str:
    """Return a single-line, printable rendition of ``value``.

    Examples:
        >>> sanitize_for_log("alice\\nFAKE ENTRY")
        'alice\\\\nFAKE ENTRY'
        >>> sanitize_for_log(None)
        '<None>'
    """
    if value is None:
        return "<None>"

    try:
        text = str(value)
    except Exception:
        return f"<unprintable {type(value).__name__}>"

    text = _ANSI_RE.sub("", text)
    text = (
        text.replace("\\", "\\\\")
        .replace("\r", "\\r")
        .replace("\n", "\\n")
        .replace("\t", "\\t")
        .replace("\u2028", "\\u2028")
        .replace("\u2029", "\\u2029")
    )
    text = _UNSAFE_CTRL_RE.sub("", text)
    text = _INVISIBLE_RE.sub("", text)

    if max_length is not None and len(text) > max_length:
        keep = max(0, max_length - len(_TRUNCATED_SUFFIX))
        text = text[:keep] + _TRUNCATED_SUFFIX

    return text
