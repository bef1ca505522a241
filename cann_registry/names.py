"""Name validation and byte conversion.

Names are byte-exact: no case folding, normalization or IDNA processing is
applied before they are committed on-chain.
"""

from __future__ import annotations

import re

from .errors import InvalidNameError

_VALID_NAME_RE = re.compile(r"^[A-Za-z0-9-]+$")
_VALID_CHAR_RE = re.compile(r"^[A-Za-z0-9-]$")


def is_valid_name(name: str) -> bool:
    return bool(name) and _VALID_NAME_RE.match(name) is not None


def find_first_invalid_character_index(name: str) -> int:
    """Return the 0-based index of the first disallowed character, or -1."""

    for index, char in enumerate(name):
        if not _VALID_CHAR_RE.match(char):
            return index
    return -1


def invalid_character_number(name: str) -> int:
    """Return the 1-based byte position of the first disallowed character.

    The name enforcer covenant inspects the UTF-8 encoded name, so the proof
    argument counts bytes rather than characters.
    """

    index = find_first_invalid_character_index(name)
    if index == -1:
        raise InvalidNameError(f"Name {name!r} has no invalid character")
    return len(name[:index].encode("utf-8")) + 1


def validate_name(name: str) -> None:
    if not name:
        raise InvalidNameError("Name must not be empty")
    index = find_first_invalid_character_index(name)
    if index != -1:
        raise InvalidNameError(
            f"Invalid name {name!r}: character {name[index]!r} at index {index} is not in [A-Za-z0-9-]"
        )


def name_to_bytes(name: str) -> bytes:
    return name.encode("utf-8")


def bytes_to_name(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")
