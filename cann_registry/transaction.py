"""Unsigned transaction model with CashTokens-aware serialization.

Builders in :mod:`cann_registry.assembler` produce :class:`Transaction`
objects. Signing is left to the caller: P2PKH inputs carry an empty
placeholder unlocking script, covenant inputs carry their full unlocking data.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Protocol

from .address import address_to_locking_bytecode
from .binary import hash256, read_compact_size, ser_compact_size
from .errors import TokenConservationError, TransactionDecodeError
from .model import UTXO, Capability, TokenData

logger = logging.getLogger(__name__)

PREFIX_TOKEN = 0xEF
HAS_COMMITMENT_LENGTH = 0x40
HAS_NFT = 0x20
HAS_AMOUNT = 0x10
DEFAULT_SEQUENCE = 0xFFFFFFFF
TX_VERSION = 2


class Unlocker(Protocol):
    def unlocking_bytecode(self) -> bytes:
        ...


@dataclass(frozen=True)
class PlaceholderUnlocker:
    """Stand-in for an input the caller will sign later."""

    address: str

    @property
    def locking_bytecode(self) -> bytes:
        return address_to_locking_bytecode(self.address)

    def unlocking_bytecode(self) -> bytes:
        return b""


def encode_token_prefix(token: TokenData) -> bytes:
    if token.capability is None and token.amount <= 0:
        raise ValueError("token prefix requires an NFT or a positive fungible amount")
    if token.commitment and token.capability is None:
        raise ValueError("commitment present on a token without an NFT")
    out = bytearray([PREFIX_TOKEN])
    out += bytes.fromhex(token.category)[::-1]
    bitfield = 0
    if token.capability is not None:
        bitfield |= HAS_NFT | token.capability.bitfield
        if token.commitment:
            bitfield |= HAS_COMMITMENT_LENGTH
    if token.amount > 0:
        bitfield |= HAS_AMOUNT
    out.append(bitfield)
    if bitfield & HAS_COMMITMENT_LENGTH:
        out += ser_compact_size(len(token.commitment)) + token.commitment
    if bitfield & HAS_AMOUNT:
        out += ser_compact_size(token.amount)
    return bytes(out)


def decode_token_prefix(data: bytes) -> tuple[TokenData | None, bytes]:
    """Split a token-prefixed locking field into ``(token, locking_bytecode)``."""

    if not data or data[0] != PREFIX_TOKEN:
        return None, data
    if len(data) < 34:
        raise TransactionDecodeError("token prefix truncated")
    category = data[1:33][::-1].hex()
    bitfield = data[33]
    cursor = 34
    capability = None
    commitment = b""
    amount = 0
    try:
        if bitfield & HAS_NFT:
            capability = Capability.from_bitfield(bitfield & 0x0F)
        if bitfield & HAS_COMMITMENT_LENGTH:
            length, cursor = read_compact_size(data, cursor)
            commitment = data[cursor : cursor + length]
            if len(commitment) != length:
                raise TransactionDecodeError("token commitment runs past end of locking field")
            cursor += length
        if bitfield & HAS_AMOUNT:
            amount, cursor = read_compact_size(data, cursor)
    except ValueError as exc:
        raise TransactionDecodeError(f"invalid token prefix: {exc}") from exc
    token = TokenData(category=category, amount=amount, capability=capability, commitment=commitment)
    return token, data[cursor:]


@dataclass
class TxInput:
    txid: str
    vout: int
    unlocking_bytecode: bytes = b""
    sequence: int = DEFAULT_SEQUENCE
    utxo: UTXO | None = None

    def serialize(self) -> bytes:
        return (
            bytes.fromhex(self.txid)[::-1]
            + self.vout.to_bytes(4, "little")
            + ser_compact_size(len(self.unlocking_bytecode))
            + self.unlocking_bytecode
            + self.sequence.to_bytes(4, "little")
        )


@dataclass
class TxOutput:
    value: int
    locking_bytecode: bytes
    token: TokenData | None = None

    def serialize(self) -> bytes:
        locking_field = self.locking_bytecode
        if self.token is not None:
            locking_field = encode_token_prefix(self.token) + locking_field
        return self.value.to_bytes(8, "little") + ser_compact_size(len(locking_field)) + locking_field

    def to_jsonable(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"value": self.value, "locking_bytecode": self.locking_bytecode.hex()}
        if self.token is not None:
            data["token"] = self.token.to_jsonable()
        return data


@dataclass
class Transaction:
    inputs: List[TxInput] = field(default_factory=list)
    outputs: List[TxOutput] = field(default_factory=list)
    version: int = TX_VERSION
    locktime: int = 0

    def add_input(self, utxo: UTXO, unlocker: Unlocker, sequence: int = DEFAULT_SEQUENCE) -> "Transaction":
        self.inputs.append(
            TxInput(
                txid=utxo.txid,
                vout=utxo.vout,
                unlocking_bytecode=unlocker.unlocking_bytecode(),
                sequence=sequence,
                utxo=utxo,
            )
        )
        return self

    def add_output(self, value: int, locking_bytecode: bytes, token: TokenData | None = None) -> "Transaction":
        self.outputs.append(TxOutput(value=value, locking_bytecode=locking_bytecode, token=token))
        return self

    def serialize(self) -> bytes:
        parts = [self.version.to_bytes(4, "little"), ser_compact_size(len(self.inputs))]
        parts.extend(tx_in.serialize() for tx_in in self.inputs)
        parts.append(ser_compact_size(len(self.outputs)))
        parts.extend(tx_out.serialize() for tx_out in self.outputs)
        parts.append(self.locktime.to_bytes(4, "little"))
        return b"".join(parts)

    def size(self) -> int:
        return len(self.serialize())

    def to_hex(self) -> str:
        return self.serialize().hex()

    @property
    def txid(self) -> str:
        return hash256(self.serialize())[::-1].hex()

    def to_jsonable(self) -> Dict[str, Any]:
        return {
            "txid": self.txid,
            "size": self.size(),
            "inputs": [
                {
                    "txid": tx_in.txid,
                    "vout": tx_in.vout,
                    "sequence": tx_in.sequence,
                    "value": tx_in.utxo.value if tx_in.utxo else None,
                }
                for tx_in in self.inputs
            ],
            "outputs": [tx_out.to_jsonable() for tx_out in self.outputs],
            "hex": self.to_hex(),
        }

    @classmethod
    def deserialize(cls, raw: bytes) -> "Transaction":
        try:
            return cls._deserialize(raw)
        except (ValueError, IndexError) as exc:
            if isinstance(exc, TransactionDecodeError):
                raise
            raise TransactionDecodeError(f"malformed transaction: {exc}") from exc

    @classmethod
    def from_hex(cls, raw_hex: str) -> "Transaction":
        try:
            raw = bytes.fromhex(raw_hex)
        except ValueError as exc:
            raise TransactionDecodeError("transaction hex is not valid hex") from exc
        return cls.deserialize(raw)

    @classmethod
    def _deserialize(cls, raw: bytes) -> "Transaction":
        if len(raw) < 10:
            raise TransactionDecodeError("transaction too short")
        version = int.from_bytes(raw[0:4], "little")
        cursor = 4
        count, cursor = read_compact_size(raw, cursor)
        inputs: List[TxInput] = []
        for _ in range(count):
            txid = raw[cursor : cursor + 32][::-1].hex()
            vout = int.from_bytes(raw[cursor + 32 : cursor + 36], "little")
            length, cursor = read_compact_size(raw, cursor + 36)
            unlocking = raw[cursor : cursor + length]
            cursor += length
            sequence = int.from_bytes(raw[cursor : cursor + 4], "little")
            cursor += 4
            inputs.append(TxInput(txid=txid, vout=vout, unlocking_bytecode=unlocking, sequence=sequence))
        count, cursor = read_compact_size(raw, cursor)
        outputs: List[TxOutput] = []
        for _ in range(count):
            value = int.from_bytes(raw[cursor : cursor + 8], "little")
            length, cursor = read_compact_size(raw, cursor + 8)
            locking_field = raw[cursor : cursor + length]
            if len(locking_field) != length:
                raise TransactionDecodeError("output script runs past end of transaction")
            cursor += length
            token, locking = decode_token_prefix(locking_field)
            outputs.append(TxOutput(value=value, locking_bytecode=locking, token=token))
        if cursor + 4 != len(raw):
            raise TransactionDecodeError("unexpected trailing bytes after locktime")
        locktime = int.from_bytes(raw[cursor : cursor + 4], "little")
        return cls(inputs=inputs, outputs=outputs, version=version, locktime=locktime)


def _sum_by_category(tokens: Iterable[TokenData | None]) -> Dict[str, int]:
    totals: Dict[str, int] = defaultdict(int)
    for token in tokens:
        if token is not None:
            totals[token.category] += token.amount
    return dict(totals)


def token_balance(tx: Transaction) -> tuple[Dict[str, int], Dict[str, int]]:
    """Return per-category fungible totals for ``(inputs, outputs)``."""

    missing = [f"{tx_in.txid}:{tx_in.vout}" for tx_in in tx.inputs if tx_in.utxo is None]
    if missing:
        raise ValueError(f"inputs without source UTXO data: {', '.join(missing)}")
    spent = _sum_by_category(tx_in.utxo.token for tx_in in tx.inputs if tx_in.utxo is not None)
    created = _sum_by_category(tx_out.token for tx_out in tx.outputs)
    return spent, created


def check_token_conservation(tx: Transaction) -> None:
    spent, created = token_balance(tx)
    for category in set(spent) | set(created):
        if spent.get(category, 0) != created.get(category, 0):
            logger.error(
                "Token imbalance for %s: inputs=%s outputs=%s",
                category,
                spent.get(category, 0),
                created.get(category, 0),
            )
            raise TokenConservationError(
                f"Fungible amount for category {category} not conserved: "
                f"{spent.get(category, 0)} in, {created.get(category, 0)} out"
            )
