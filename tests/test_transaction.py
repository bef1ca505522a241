from __future__ import annotations

import pytest

from cann_registry.address import address_to_locking_bytecode
from cann_registry.binary import hash256
from cann_registry.errors import TokenConservationError, TransactionDecodeError
from cann_registry.model import UTXO, Capability, TokenData
from cann_registry.transaction import (
    PlaceholderUnlocker,
    Transaction,
    check_token_conservation,
    decode_token_prefix,
    encode_token_prefix,
)

from conftest import ALICE, ALICE_PKH, BOB, CATEGORY, txid_for


def test_token_prefix_layout() -> None:
    token = TokenData(category=CATEGORY, amount=5, capability=Capability.MUTABLE, commitment=b"\x01\x02")
    prefix = encode_token_prefix(token)
    assert prefix[0] == 0xEF
    assert prefix[1:33] == bytes.fromhex(CATEGORY)[::-1]
    assert prefix[33] == 0x71
    assert prefix[34:] == b"\x02\x01\x02\x05"

    decoded, rest = decode_token_prefix(prefix + b"\x51")
    assert decoded == token
    assert rest == b"\x51"


def test_token_prefix_bitfields() -> None:
    fungible = encode_token_prefix(TokenData(category=CATEGORY, amount=1))
    assert fungible[33] == 0x10
    minting = encode_token_prefix(TokenData(category=CATEGORY, capability=Capability.MINTING))
    assert minting[33] == 0x22
    assert len(minting) == 34


def test_token_prefix_rejects_empty_tokens() -> None:
    with pytest.raises(ValueError):
        encode_token_prefix(TokenData(category=CATEGORY))
    with pytest.raises(ValueError):
        encode_token_prefix(TokenData(category=CATEGORY, amount=1, commitment=b"\x01"))


def test_token_prefix_rejects_truncated_commitment() -> None:
    token = TokenData(category=CATEGORY, capability=Capability.NONE, commitment=b"\x01" * 8)
    prefix = encode_token_prefix(token)

    with pytest.raises(TransactionDecodeError, match="commitment"):
        decode_token_prefix(prefix[:-3])


def test_untokened_locking_passes_through() -> None:
    assert decode_token_prefix(b"\x76\xa9") == (None, b"\x76\xa9")


def _sample_transaction() -> Transaction:
    utxo = UTXO(
        txid=txid_for(1),
        vout=2,
        value=5000,
        locking_bytecode=address_to_locking_bytecode(ALICE),
        token=TokenData(category=CATEGORY, amount=7),
    )
    tx = Transaction()
    tx.add_input(utxo, PlaceholderUnlocker(ALICE), sequence=4194306)
    tx.add_output(1000, address_to_locking_bytecode(BOB), TokenData(category=CATEGORY, amount=7))
    tx.add_output(3000, address_to_locking_bytecode(ALICE))
    return tx


def test_serialization_round_trip_preserves_fields() -> None:
    tx = _sample_transaction()
    decoded = Transaction.from_hex(tx.to_hex())

    assert decoded.version == 2
    assert decoded.inputs[0].txid == txid_for(1)
    assert decoded.inputs[0].vout == 2
    assert decoded.inputs[0].sequence == 4194306
    assert decoded.inputs[0].unlocking_bytecode == b""
    assert decoded.outputs[0].token == TokenData(category=CATEGORY, amount=7)
    assert decoded.outputs[1].locking_bytecode[3:23] == ALICE_PKH
    assert decoded.txid == tx.txid
    assert tx.txid == hash256(tx.serialize())[::-1].hex()


def test_decode_rejects_malformed_hex() -> None:
    with pytest.raises(TransactionDecodeError):
        Transaction.from_hex("zz")
    with pytest.raises(TransactionDecodeError):
        Transaction.from_hex(_sample_transaction().to_hex() + "00")
    with pytest.raises(TransactionDecodeError):
        Transaction.from_hex(_sample_transaction().to_hex()[:-20])


def test_token_conservation() -> None:
    tx = _sample_transaction()
    check_token_conservation(tx)

    tx.outputs[0].token = TokenData(category=CATEGORY, amount=8)
    with pytest.raises(TokenConservationError):
        check_token_conservation(tx)


def test_to_jsonable_reports_input_values() -> None:
    data = _sample_transaction().to_jsonable()
    assert data["inputs"][0]["value"] == 5000
    assert data["outputs"][0]["token"]["amount"] == "7"
    assert data["hex"] == _sample_transaction().to_hex()
