"""Attaching records to an owned name."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from ..address import address_to_pkh, pkh_to_locking_bytecode
from ..binary import build_op_return
from ..classifier import find_biggest_funding_utxo, find_internal_auth_utxo, find_ownership_utxo
from ..covenants import NAME_AUTH_INTERNAL
from ..errors import InvalidInputError, RecordTooLargeError
from ..model import RoleOutput
from ..names import validate_name
from ..records import MAX_RECORD_BYTES
from ..transaction import PlaceholderUnlocker, Transaction
from .common import AssemblerContext, finalize, reemit


@dataclass(frozen=True)
class RecordsInputs:
    internal_auth: RoleOutput
    ownership: RoleOutput
    funding: RoleOutput

    @classmethod
    def select(
        cls,
        ctx: AssemblerContext,
        *,
        name: str,
        name_outputs: Sequence[RoleOutput],
        owner_outputs: Sequence[RoleOutput],
    ) -> "RecordsInputs":
        return cls(
            internal_auth=find_internal_auth_utxo(name_outputs),
            ownership=find_ownership_utxo(owner_outputs, name),
            funding=find_biggest_funding_utxo(owner_outputs),
        )


def _encode_records(records: Sequence[str]) -> list[bytes]:
    if not records:
        raise InvalidInputError("At least one record is required")
    encoded = []
    for record in records:
        data = record.encode("utf-8")
        if len(data) > MAX_RECORD_BYTES:
            raise RecordTooLargeError(
                f"Record of {len(data)} bytes exceeds the {MAX_RECORD_BYTES}-byte limit: {record[:32]!r}..."
            )
        encoded.append(data)
    return encoded


def build_records_transaction(
    ctx: AssemblerContext,
    *,
    name: str,
    records: Sequence[str],
    owner_address: str,
    inputs: RecordsInputs,
) -> Transaction:
    """Publish ``records`` for ``name`` as one OP_RETURN output each.

    Spending the name contract's internal auth token ties the records to the
    name; it is recreated unchanged alongside the owner's ownership token.
    """

    validate_name(name)
    payloads = _encode_records(records)
    name_contract = ctx.contracts.name_contract(name)
    owner_locking = pkh_to_locking_bytecode(address_to_pkh(owner_address))
    unlocker = PlaceholderUnlocker(owner_address)

    tx = Transaction()
    tx.add_input(inputs.internal_auth.utxo, name_contract.unlock("useAuth", NAME_AUTH_INTERNAL))
    tx.add_input(inputs.ownership.utxo, unlocker)
    tx.add_input(inputs.funding.utxo, unlocker)

    reemit(tx, inputs.internal_auth)
    reemit(tx, inputs.ownership, locking_bytecode=owner_locking)
    for payload in payloads:
        tx.add_output(0, build_op_return(payload))
    change_index = len(tx.outputs)
    tx.add_output(0, owner_locking)
    return finalize(
        ctx,
        tx,
        change_index=change_index,
        budget=inputs.funding.utxo.value,
        label=f"records ({len(payloads)})",
    )
