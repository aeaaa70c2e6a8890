"""
Websafe keys: opaque, reversible string encodings of record identity.

A conference key embeds its organizer's user id as the parent, so the
organizer can be recovered from the key alone.
"""

from __future__ import annotations

import base64
import binascii
import uuid

CONFERENCE_KIND = "Conference"
PROFILE_KIND = "Profile"
_SEPARATOR = "\x1f"


class InvalidKeyError(ValueError):
    """Raised when a string is not a websafe key of the expected kind."""


def _encode(parts: list[str]) -> str:
    raw = _SEPARATOR.join(parts).encode("utf-8")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _decode(key: str) -> list[str]:
    padding = "=" * (-len(key) % 4)
    try:
        raw = base64.urlsafe_b64decode((key + padding).encode("ascii"))
        return raw.decode("utf-8").split(_SEPARATOR)
    except (binascii.Error, UnicodeError, ValueError) as exc:
        raise InvalidKeyError(f"Malformed key: {key!r}") from exc


def make_conference_key(organizer_user_id: str) -> str:
    """Allocate a new conference key under the organizer's profile."""
    return _encode(
        [PROFILE_KIND, organizer_user_id, CONFERENCE_KIND, uuid.uuid4().hex]
    )


def parse_conference_key(key: str) -> tuple[str, str]:
    """Return ``(organizer_user_id, conference_uid)`` for a conference key."""
    if not key:
        raise InvalidKeyError("Empty key")
    parts = _decode(key)
    if (
        len(parts) != 4
        or parts[0] != PROFILE_KIND
        or parts[2] != CONFERENCE_KIND
        or not parts[1]
        or not parts[3]
    ):
        raise InvalidKeyError(f"Not a conference key: {key!r}")
    return parts[1], parts[3]


def is_conference_key(key: str) -> bool:
    try:
        parse_conference_key(key)
    except InvalidKeyError:
        return False
    return True
