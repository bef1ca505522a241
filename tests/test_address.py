from __future__ import annotations

import hashlib

import pytest

from cann_registry.address import (
    address_to_locking_bytecode,
    address_to_pkh,
    build_p2sh32_locking_bytecode,
    decode_cashaddr,
    locking_bytecode_to_address,
    pkh_to_locking_bytecode,
    script_to_scripthash,
    to_plain_address,
    to_token_address,
)
from cann_registry.errors import AddressError

KNOWN_ADDRESS = "bitcoincash:qpm2qsznhks23z7629mms6s4cwef74vcwvy22gdx6a"
KNOWN_PKH = bytes.fromhex("76a04053bda0a88bda5177b86a15c3b29f559873")


def test_known_p2pkh_vector() -> None:
    locking = address_to_locking_bytecode(KNOWN_ADDRESS)
    assert locking == bytes.fromhex("76a914") + KNOWN_PKH + bytes.fromhex("88ac")
    assert locking_bytecode_to_address(locking) == KNOWN_ADDRESS
    assert address_to_pkh(KNOWN_ADDRESS) == KNOWN_PKH


def test_address_without_prefix_and_uppercase() -> None:
    body = KNOWN_ADDRESS.split(":", 1)[1]
    assert address_to_locking_bytecode(body) == pkh_to_locking_bytecode(KNOWN_PKH)
    assert address_to_locking_bytecode(KNOWN_ADDRESS.upper()) == pkh_to_locking_bytecode(KNOWN_PKH)


def test_token_aware_forms() -> None:
    token_address = to_token_address(KNOWN_ADDRESS)
    assert token_address.startswith("bitcoincash:z")
    assert decode_cashaddr(token_address).token_aware
    assert to_plain_address(token_address) == KNOWN_ADDRESS
    assert address_to_locking_bytecode(token_address) == address_to_locking_bytecode(KNOWN_ADDRESS)


def test_p2sh32_round_trip() -> None:
    locking = build_p2sh32_locking_bytecode(b"\x51")
    assert locking[:2] == b"\xaa\x20" and locking[-1:] == b"\x87"
    address = locking_bytecode_to_address(locking)
    assert address.startswith("bitcoincash:p")
    assert address_to_locking_bytecode(address) == locking
    assert locking_bytecode_to_address(locking, token_aware=True).startswith("bitcoincash:r")
    with pytest.raises(AddressError):
        address_to_pkh(address)


def test_network_prefixes() -> None:
    locking = pkh_to_locking_bytecode(KNOWN_PKH)
    assert locking_bytecode_to_address(locking, "testnet").startswith("bchtest:")
    assert locking_bytecode_to_address(locking, "chipnet").startswith("bchtest:")
    assert locking_bytecode_to_address(locking, "regtest").startswith("bchreg:")
    with pytest.raises(AddressError):
        locking_bytecode_to_address(locking, "signet")


@pytest.mark.parametrize(
    "address",
    [
        "bitcoincash:qpm2qsznhks23z7629mms6s4cwef74vcwvy22gdx6c",
        "bitcoincash:Qpm2qsznhks23z7629mms6s4cwef74vcwvy22gdx6a",
        "bitcoincash:qpm2qsznhks23z7629mms6s4cwef74vcwvy22gdx6i",
        "bitcoincash:qq",
    ],
)
def test_rejects_malformed_addresses(address: str) -> None:
    with pytest.raises(AddressError):
        address_to_locking_bytecode(address)


def test_unsupported_locking_bytecode() -> None:
    with pytest.raises(AddressError):
        locking_bytecode_to_address(b"\x6a\x00")


def test_scripthash_is_reversed_sha256() -> None:
    locking = pkh_to_locking_bytecode(KNOWN_PKH)
    assert script_to_scripthash(locking) == hashlib.sha256(locking).digest()[::-1].hex()
