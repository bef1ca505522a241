from __future__ import annotations

import pytest

from cann_registry.errors import InvalidNameError
from cann_registry.names import (
    bytes_to_name,
    find_first_invalid_character_index,
    invalid_character_number,
    is_valid_name,
    name_to_bytes,
    validate_name,
)


@pytest.mark.parametrize("name", ["alice", "Alice-01", "0", "a-b-c"])
def test_valid_names(name: str) -> None:
    assert is_valid_name(name)
    assert find_first_invalid_character_index(name) == -1
    validate_name(name)


@pytest.mark.parametrize(
    "name,index",
    [
        ("bad name!", 3),
        ("alice.bch", 5),
        ("über", 0),
        ("under_score", 5),
    ],
)
def test_first_invalid_character(name: str, index: int) -> None:
    assert not is_valid_name(name)
    assert find_first_invalid_character_index(name) == index
    with pytest.raises(InvalidNameError):
        validate_name(name)


def test_empty_name_is_invalid() -> None:
    assert not is_valid_name("")
    with pytest.raises(InvalidNameError, match="empty"):
        validate_name("")


def test_invalid_character_number_is_one_based() -> None:
    assert invalid_character_number("bad name!") == 4
    assert invalid_character_number("é") == 1
    with pytest.raises(InvalidNameError):
        invalid_character_number("alice")


def test_names_are_byte_exact() -> None:
    assert name_to_bytes("Alice") == b"Alice"
    assert name_to_bytes("Alice") != name_to_bytes("alice")
    assert bytes_to_name(b"alice") == "alice"
