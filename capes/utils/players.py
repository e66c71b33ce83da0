"""Parsing of loosely-typed player references (name or uuid)."""

import re
from dataclasses import dataclass

from capes.errors import InvalidPlayerReference

_PLAYER_ID_RE = re.compile(r"^[0-9a-f]{32}$")
_PLAYER_NAME_RE = re.compile(r"^[a-z0-9_]{1,16}$")


@dataclass(frozen=True, slots=True)
class PlayerReference:
    """A normalized player reference.

    ``value`` is lower-case; for ids it is the 32-char undashed uuid.
    """

    value: str
    is_id: bool


def parse_player_reference(raw: str) -> PlayerReference:
    """Normalize a raw name or (dashed or undashed) uuid.

    Raises:
        InvalidPlayerReference: If the value is neither a name nor a uuid
    """
    if not raw or len(raw) > 36:
        raise InvalidPlayerReference()
    value = raw.replace("-", "").lower()
    if _PLAYER_ID_RE.match(value):
        return PlayerReference(value=value, is_id=True)
    if _PLAYER_NAME_RE.match(value):
        return PlayerReference(value=value, is_id=False)
    raise InvalidPlayerReference()
