"""CashAddr and locking-bytecode conversions.

Only the standard templates the registry touches are supported: P2PKH for
bidders and record writers, and P2SH32 for every covenant.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List

from .binary import hash256, sha256
from .errors import AddressError

CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
_GENERATORS = (0x98F2BC8E61, 0x79B76D99E2, 0xF33E5FB3C4, 0xAE2EABE2A8, 0x1E4F43E470)

NETWORK_PREFIXES = {
    "mainnet": "bitcoincash",
    "testnet": "bchtest",
    "chipnet": "bchtest",
    "regtest": "bchreg",
}

TYPE_P2PKH = 0
TYPE_P2SH = 1
TYPE_TOKEN_P2PKH = 2
TYPE_TOKEN_P2SH = 3

_SIZE_CODES = {20: 0, 24: 1, 28: 2, 32: 3, 40: 4, 48: 5, 56: 6, 64: 7}
_SIZE_BY_CODE = {code: size for size, code in _SIZE_CODES.items()}

P2PKH_PREFIX = b"\x76\xa9\x14"
P2PKH_SUFFIX = b"\x88\xac"


@dataclass(frozen=True)
class CashAddress:
    prefix: str
    addr_type: int
    payload: bytes

    @property
    def token_aware(self) -> bool:
        return self.addr_type in (TYPE_TOKEN_P2PKH, TYPE_TOKEN_P2SH)

    @property
    def is_p2sh(self) -> bool:
        return self.addr_type in (TYPE_P2SH, TYPE_TOKEN_P2SH)


def prefix_for_network(network: str) -> str:
    try:
        return NETWORK_PREFIXES[network]
    except KeyError as exc:
        raise AddressError(f"Unknown network {network!r}") from exc


def _polymod(values: Iterable[int]) -> int:
    checksum = 1
    for value in values:
        top = checksum >> 35
        checksum = ((checksum & 0x07FFFFFFFF) << 5) ^ value
        for bit, generator in enumerate(_GENERATORS):
            if (top >> bit) & 1:
                checksum ^= generator
    return checksum ^ 1


def _prefix_expand(prefix: str) -> List[int]:
    return [ord(char) & 0x1F for char in prefix] + [0]


def _convertbits(data: Iterable[int], frombits: int, tobits: int, pad: bool = True) -> List[int]:
    acc = 0
    bits = 0
    out: List[int] = []
    maxv = (1 << tobits) - 1
    for value in data:
        if value < 0 or value >> frombits:
            raise AddressError("invalid value in bit conversion")
        acc = (acc << frombits) | value
        bits += frombits
        while bits >= tobits:
            bits -= tobits
            out.append((acc >> bits) & maxv)
    if pad:
        if bits:
            out.append((acc << (tobits - bits)) & maxv)
    elif bits >= frombits or ((acc << (tobits - bits)) & maxv):
        raise AddressError("invalid padding in address payload")
    return out


def encode_cashaddr(prefix: str, addr_type: int, payload: bytes) -> str:
    try:
        size_code = _SIZE_CODES[len(payload)]
    except KeyError as exc:
        raise AddressError(f"Unsupported hash length {len(payload)}") from exc
    version = (addr_type << 3) | size_code
    data = _convertbits(bytes([version]) + payload, 8, 5)
    polymod = _polymod(_prefix_expand(prefix) + data + [0] * 8)
    checksum = [(polymod >> 5 * (7 - i)) & 0x1F for i in range(8)]
    return prefix + ":" + "".join(CHARSET[d] for d in data + checksum)


def decode_cashaddr(address: str, default_prefix: str = "bitcoincash") -> CashAddress:
    if address.lower() != address and address.upper() != address:
        raise AddressError(f"Mixed case address: {address}")
    address = address.lower()
    if ":" in address:
        prefix, body = address.split(":", 1)
    else:
        prefix, body = default_prefix, address
    try:
        data = [CHARSET.index(char) for char in body]
    except ValueError as exc:
        raise AddressError(f"Invalid character in address: {address}") from exc
    if len(data) < 9:
        raise AddressError(f"Address too short: {address}")
    if _polymod(_prefix_expand(prefix) + data) != 0:
        raise AddressError(f"Invalid checksum for address: {address}")
    decoded = bytes(_convertbits(data[:-8], 5, 8, pad=False))
    version, payload = decoded[0], decoded[1:]
    size = _SIZE_BY_CODE.get(version & 0x07)
    if size != len(payload):
        raise AddressError(f"Address payload length mismatch: {address}")
    return CashAddress(prefix=prefix, addr_type=(version >> 3) & 0x0F, payload=payload)


def pkh_to_locking_bytecode(pkh: bytes) -> bytes:
    if len(pkh) != 20:
        raise AddressError(f"Public key hash must be 20 bytes, got {len(pkh)}")
    return P2PKH_PREFIX + pkh + P2PKH_SUFFIX


def locking_bytecode_to_pkh(locking_bytecode: bytes) -> bytes:
    if (
        len(locking_bytecode) != 25
        or not locking_bytecode.startswith(P2PKH_PREFIX)
        or not locking_bytecode.endswith(P2PKH_SUFFIX)
    ):
        raise AddressError("Locking bytecode is not P2PKH")
    return locking_bytecode[3:23]


def build_p2sh32_locking_bytecode(redeem_script: bytes) -> bytes:
    return b"\xaa\x20" + hash256(redeem_script) + b"\x87"


def script_to_scripthash(locking_bytecode: bytes) -> str:
    """Return the Electrum script hash (reversed SHA256, hex)."""

    return sha256(locking_bytecode)[::-1].hex()


def locking_bytecode_to_address(
    locking_bytecode: bytes, network: str = "mainnet", *, token_aware: bool = False
) -> str:
    prefix = prefix_for_network(network)
    if len(locking_bytecode) == 25 and locking_bytecode.startswith(P2PKH_PREFIX):
        addr_type = TYPE_TOKEN_P2PKH if token_aware else TYPE_P2PKH
        return encode_cashaddr(prefix, addr_type, locking_bytecode_to_pkh(locking_bytecode))
    if len(locking_bytecode) == 35 and locking_bytecode[:2] == b"\xaa\x20" and locking_bytecode[-1] == 0x87:
        addr_type = TYPE_TOKEN_P2SH if token_aware else TYPE_P2SH
        return encode_cashaddr(prefix, addr_type, locking_bytecode[2:34])
    if len(locking_bytecode) == 23 and locking_bytecode[:2] == b"\xa9\x14" and locking_bytecode[-1] == 0x87:
        addr_type = TYPE_TOKEN_P2SH if token_aware else TYPE_P2SH
        return encode_cashaddr(prefix, addr_type, locking_bytecode[2:22])
    raise AddressError(f"Unsupported locking bytecode: {locking_bytecode.hex()}")


def address_to_locking_bytecode(address: str) -> bytes:
    decoded = decode_cashaddr(address)
    if not decoded.is_p2sh:
        return pkh_to_locking_bytecode(decoded.payload)
    if len(decoded.payload) == 32:
        return b"\xaa\x20" + decoded.payload + b"\x87"
    if len(decoded.payload) == 20:
        return b"\xa9\x14" + decoded.payload + b"\x87"
    raise AddressError(f"Unsupported P2SH payload length in {address}")


def address_to_pkh(address: str) -> bytes:
    decoded = decode_cashaddr(address)
    if decoded.is_p2sh:
        raise AddressError(f"Expected a P2PKH address, got script address {address}")
    return decoded.payload


def to_token_address(address: str) -> str:
    decoded = decode_cashaddr(address)
    addr_type = TYPE_TOKEN_P2SH if decoded.is_p2sh else TYPE_TOKEN_P2PKH
    return encode_cashaddr(decoded.prefix, addr_type, decoded.payload)


def to_plain_address(address: str) -> str:
    decoded = decode_cashaddr(address)
    addr_type = TYPE_P2SH if decoded.is_p2sh else TYPE_P2PKH
    return encode_cashaddr(decoded.prefix, addr_type, decoded.payload)
