"""Domain models for token-carrying outputs and their registry roles.

A role is never stored on-chain. It is inferred from the token's category,
capability, commitment shape, amount and location, once, when outputs are
fetched (see :mod:`cann_registry.classifier`). Everything downstream matches on
:class:`Role` instead of re-inspecting token fields.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Mapping


class Capability(str, Enum):
    NONE = "none"
    MUTABLE = "mutable"
    MINTING = "minting"

    @property
    def bitfield(self) -> int:
        return {"none": 0x00, "mutable": 0x01, "minting": 0x02}[self.value]

    @classmethod
    def from_bitfield(cls, value: int) -> "Capability":
        for capability in cls:
            if capability.bitfield == value:
                return capability
        raise ValueError(f"Unknown token capability 0x{value:02x}")


@dataclass(frozen=True)
class TokenData:
    """Token attached to an output.

    ``category`` is display-order hex. ``capability`` is ``None`` for an
    output that carries only fungible tokens.
    """

    category: str
    amount: int = 0
    capability: Capability | None = None
    commitment: bytes = b""

    def with_amount(self, amount: int) -> "TokenData":
        return replace(self, amount=amount)

    def with_commitment(self, commitment: bytes) -> "TokenData":
        return replace(self, commitment=commitment)

    def matches(self, other: "TokenData | None") -> bool:
        """Return True when ``other`` is the same token (ignoring location)."""

        return (
            other is not None
            and other.category == self.category
            and other.amount == self.amount
            and other.capability == self.capability
            and other.commitment == self.commitment
        )

    def to_jsonable(self) -> dict[str, Any]:
        data: dict[str, Any] = {"category": self.category, "amount": str(self.amount)}
        if self.capability is not None:
            data["nft"] = {"capability": self.capability.value, "commitment": self.commitment.hex()}
        return data

    @classmethod
    def from_electrum(cls, token_data: Mapping[str, Any]) -> "TokenData":
        nft = token_data.get("nft") or None
        return cls(
            category=str(token_data["category"]),
            amount=int(token_data.get("amount", 0) or 0),
            capability=Capability(nft["capability"]) if nft else None,
            commitment=bytes.fromhex(nft.get("commitment", "")) if nft else b"",
        )


@dataclass(frozen=True)
class UTXO:
    txid: str
    vout: int
    value: int
    locking_bytecode: bytes
    token: TokenData | None = None
    height: int = 0

    @property
    def outpoint(self) -> tuple[str, int]:
        return self.txid, self.vout

    @classmethod
    def from_electrum(cls, entry: Mapping[str, Any], locking_bytecode: bytes) -> "UTXO":
        """Build a UTXO from a ``blockchain.*.listunspent`` entry."""

        token_data = entry.get("token_data")
        return cls(
            txid=str(entry["tx_hash"]),
            vout=int(entry["tx_pos"]),
            value=int(entry["value"]),
            locking_bytecode=locking_bytecode,
            token=TokenData.from_electrum(token_data) if token_data else None,
            height=int(entry.get("height", 0) or 0),
        )

    def to_jsonable(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "txid": self.txid,
            "vout": self.vout,
            "value": self.value,
            "locking_bytecode": self.locking_bytecode.hex(),
            "height": self.height,
        }
        if self.token is not None:
            data["token"] = self.token.to_jsonable()
        return data


class Role(str, Enum):
    THREAD = "thread"
    REGISTRATION_COUNTER = "registration_counter"
    NAME_MINTING = "name_minting"
    AUCTION = "auction"
    OWNERSHIP = "ownership"
    INTERNAL_AUTH = "internal_auth"
    EXTERNAL_AUTH = "external_auth"
    AUTHORIZED_CONTRACT = "authorized_contract"
    FUNDING = "funding"
    FOREIGN = "foreign"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class RoleOutput:
    role: Role
    utxo: UTXO

    @property
    def token(self) -> TokenData:
        if self.utxo.token is None:
            raise ValueError(f"{self.role.value} output {self.utxo.txid}:{self.utxo.vout} carries no token")
        return self.utxo.token


@dataclass(frozen=True)
class HistoryEntry:
    """One entry of an address or script-hash history.

    Electrum reports unconfirmed transactions with a height of 0 or -1.
    """

    txid: str
    height: int

    @property
    def confirmed(self) -> bool:
        return self.height > 0

    @classmethod
    def from_electrum(cls, entry: Mapping[str, Any]) -> "HistoryEntry":
        return cls(txid=str(entry["tx_hash"]), height=int(entry.get("height", 0) or 0))


@dataclass(frozen=True)
class Auction:
    """Auction state reconstructed from an auction-role output."""

    name: str
    bidder_pkh: bytes
    bidder_address: str
    amount: int
    registration_id: int
    utxo: UTXO

    def to_jsonable(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "bidder": self.bidder_address,
            "amount": self.amount,
            "registration_id": self.registration_id,
            "txid": self.utxo.txid,
            "vout": self.utxo.vout,
        }


class NameStatus(str, Enum):
    REGISTERED = "registered"
    AUCTIONING = "auctioning"
    AVAILABLE = "available"
    INVALID = "invalid"


@dataclass
class NameInfo:
    name: str
    address: str
    status: NameStatus
    utxos: list[UTXO] = field(default_factory=list)

    def to_jsonable(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "address": self.address,
            "status": self.status.value,
            "utxos": [utxo.to_jsonable() for utxo in self.utxos],
        }
