"""Byte-level helpers: compact sizes, script pushes, VM numbers and hashes."""

from __future__ import annotations

import hashlib
from typing import Tuple

OP_0 = 0x00
OP_PUSHDATA1 = 0x4C
OP_PUSHDATA2 = 0x4D
OP_PUSHDATA4 = 0x4E
OP_1NEGATE = 0x4F
OP_1 = 0x51
OP_16 = 0x60
OP_RETURN = 0x6A

REGISTRATION_ID_LENGTH = 8


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def hash256(data: bytes) -> bytes:
    """Double SHA256, as used for txids and P2SH32 script hashes."""

    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def ser_compact_size(n: int) -> bytes:
    """Serialize an integer as a compact size."""

    if n < 0:
        raise ValueError("compact size must be non-negative")
    if n < 253:
        return bytes([n])
    if n <= 0xFFFF:
        return b"\xfd" + n.to_bytes(2, "little")
    if n <= 0xFFFFFFFF:
        return b"\xfe" + n.to_bytes(4, "little")
    return b"\xff" + n.to_bytes(8, "little")


def read_compact_size(data: bytes, offset: int) -> Tuple[int, int]:
    """Return ``(value, new_offset)`` for the compact size at ``offset``."""

    if offset >= len(data):
        raise ValueError("compact size runs past end of data")
    first = data[offset]
    if first < 253:
        return first, offset + 1
    width = {0xFD: 2, 0xFE: 4, 0xFF: 8}[first]
    end = offset + 1 + width
    if end > len(data):
        raise ValueError("compact size runs past end of data")
    return int.from_bytes(data[offset + 1 : end], "little"), end


def push_data(data: bytes) -> bytes:
    """Return the minimal script push for ``data``."""

    length = len(data)
    if length == 0:
        return bytes([OP_0])
    if length == 1 and 1 <= data[0] <= 16:
        return bytes([OP_1 + data[0] - 1])
    if length == 1 and data[0] == 0x81:
        return bytes([OP_1NEGATE])
    if length <= 75:
        return bytes([length]) + data
    if length <= 0xFF:
        return bytes([OP_PUSHDATA1, length]) + data
    if length <= 0xFFFF:
        return bytes([OP_PUSHDATA2]) + length.to_bytes(2, "little") + data
    return bytes([OP_PUSHDATA4]) + length.to_bytes(4, "little") + data


def read_push(script: bytes, offset: int) -> Tuple[bytes, int]:
    """Decode a single push operation starting at ``offset``."""

    if offset >= len(script):
        raise ValueError("script ended before push opcode")
    opcode = script[offset]
    cursor = offset + 1
    if opcode == OP_0:
        return b"", cursor
    if opcode == OP_1NEGATE:
        return b"\x81", cursor
    if OP_1 <= opcode <= OP_16:
        return bytes([opcode - OP_1 + 1]), cursor
    if opcode < OP_PUSHDATA1:
        length = opcode
    elif opcode == OP_PUSHDATA1:
        length = script[cursor]
        cursor += 1
    elif opcode == OP_PUSHDATA2:
        length = int.from_bytes(script[cursor : cursor + 2], "little")
        cursor += 2
    elif opcode == OP_PUSHDATA4:
        length = int.from_bytes(script[cursor : cursor + 4], "little")
        cursor += 4
    else:
        raise ValueError(f"opcode 0x{opcode:02x} is not a push")
    end = cursor + length
    if end > len(script):
        raise ValueError("push runs past end of script")
    return script[cursor:end], end


def encode_vm_number(value: int) -> bytes:
    """Minimally encode ``value`` as a little-endian sign-magnitude VM number."""

    if value == 0:
        return b""
    negative = value < 0
    magnitude = abs(value)
    out = bytearray()
    while magnitude:
        out.append(magnitude & 0xFF)
        magnitude >>= 8
    if out[-1] & 0x80:
        out.append(0x80 if negative else 0x00)
    elif negative:
        out[-1] |= 0x80
    return bytes(out)


def decode_vm_number(data: bytes) -> int:
    if not data:
        return 0
    magnitude = int.from_bytes(data[:-1] + bytes([data[-1] & 0x7F]), "little")
    return -magnitude if data[-1] & 0x80 else magnitude


def pad_vm_number(value: int, length: int) -> bytes:
    """Encode ``value`` as a VM number zero-padded to ``length`` bytes.

    The sign bit moves to the final padding byte so the padded form still
    decodes to the same number.
    """

    encoded = bytearray(encode_vm_number(value))
    if len(encoded) > length:
        raise ValueError(f"{value} does not fit in {length} bytes")
    if len(encoded) == length:
        return bytes(encoded)
    negative = bool(encoded) and bool(encoded[-1] & 0x80)
    if negative:
        encoded[-1] &= 0x7F
    encoded.extend(b"\x00" * (length - len(encoded)))
    if negative:
        encoded[-1] |= 0x80
    return bytes(encoded)


def encode_registration_id(registration_id: int) -> bytes:
    """Encode a registration id as the 8-byte big-endian commitment prefix."""

    if registration_id < 0:
        raise ValueError("registration id must be non-negative")
    return registration_id.to_bytes(REGISTRATION_ID_LENGTH, "big")


def decode_registration_id(commitment: bytes) -> int:
    if len(commitment) < REGISTRATION_ID_LENGTH:
        raise ValueError(
            f"commitment of {len(commitment)} bytes is too short for a registration id"
        )
    return int.from_bytes(commitment[:REGISTRATION_ID_LENGTH], "big")


def build_op_return(*chunks: bytes) -> bytes:
    return bytes([OP_RETURN]) + b"".join(push_data(chunk) for chunk in chunks)


def is_op_return(locking_bytecode: bytes) -> bool:
    return bool(locking_bytecode) and locking_bytecode[0] == OP_RETURN


def extract_op_return_payload(locking_bytecode: bytes) -> bytes:
    """Return the first data push carried by an OP_RETURN script."""

    if not is_op_return(locking_bytecode):
        raise ValueError("Not a valid OP_RETURN script")
    if len(locking_bytecode) == 1:
        return b""
    payload, _ = read_push(locking_bytecode, 1)
    return payload
