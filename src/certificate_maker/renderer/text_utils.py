"""File name helpers for rendered documents."""

from __future__ import annotations

import html as html_module
import re

MAX_FILENAME_BYTES = 255

_ILLEGAL_RE = re.compile(r'[/\?<>\\:\*\|"]')
_CONTROL_RE = re.compile(r"[\x00-\x1f\x80-\x9f]")
_RESERVED_RE = re.compile(r"^\.+$")
_WINDOWS_RESERVED_RE = re.compile(r"^(con|prn|aux|nul|com[0-9]|lpt[0-9])(\..*)?$", re.IGNORECASE)
_WINDOWS_TRAILING_RE = re.compile(r"[\. ]+$")


def _truncate_bytes(text: str, limit: int) -> str:
    encoded = text.encode("utf-8")
    if len(encoded) <= limit:
        return text
    return encoded[:limit].decode("utf-8", errors="ignore")


def sanitize_filename(
    name: str, replacement: str = "", max_bytes: int = MAX_FILENAME_BYTES,
) -> str:
    """Make *name* safe to use as a file name on any common filesystem.

    Drops path separators, characters Windows forbids, control characters,
    "." / "..", reserved device names and trailing dots/spaces, then caps
    the result at *max_bytes* UTF-8 bytes.
    """
    name = _ILLEGAL_RE.sub(replacement, name)
    name = _CONTROL_RE.sub(replacement, name)
    name = _RESERVED_RE.sub(replacement, name)
    name = _WINDOWS_RESERVED_RE.sub(replacement, name)
    name = _WINDOWS_TRAILING_RE.sub(replacement, name)
    return _truncate_bytes(name, max_bytes)


def clean_filename(raw: str) -> str:
    """Decode HTML entities in a rendered file name, then sanitize it.

    Leaves room for the longest extension appended to it (".html").
    """
    return sanitize_filename(
        html_module.unescape(raw).strip(),
        max_bytes=MAX_FILENAME_BYTES - len(".html"),
    )
