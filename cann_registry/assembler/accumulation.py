"""Returning fungible tokens parked on thread NFTs to the registration counter."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from ..address import address_to_pkh, pkh_to_locking_bytecode
from ..classifier import (
    find_authorized_contract_utxo,
    find_funding_utxo,
    find_registration_counter_utxo,
    find_thread_utxo,
    find_thread_with_token_utxo,
)
from ..model import RoleOutput
from ..transaction import PlaceholderUnlocker, Transaction
from .common import MIN_FEE_FUNDING, AssemblerContext, finalize, reemit


@dataclass(frozen=True)
class AccumulationInputs:
    thread: RoleOutput
    authorized_contract: RoleOutput
    counter: RoleOutput
    thread_with_token: RoleOutput
    funding: RoleOutput

    @classmethod
    def select(
        cls,
        ctx: AssemblerContext,
        *,
        registry_outputs: Sequence[RoleOutput],
        authorized_outputs: Sequence[RoleOutput],
        funding_outputs: Sequence[RoleOutput],
    ) -> "AccumulationInputs":
        covenant = ctx.contracts.accumulator.locking_bytecode
        thread = find_thread_utxo(registry_outputs, covenant)
        return cls(
            thread=thread,
            authorized_contract=find_authorized_contract_utxo(authorized_outputs, covenant),
            counter=find_registration_counter_utxo(registry_outputs),
            thread_with_token=find_thread_with_token_utxo(registry_outputs, exclude={thread.utxo.outpoint}),
            funding=find_funding_utxo(funding_outputs, MIN_FEE_FUNDING),
        )


def build_accumulation_transaction(
    ctx: AssemblerContext,
    *,
    funding_address: str,
    inputs: AccumulationInputs,
) -> Transaction:
    """Move a thread's fungible tokens back onto the registration counter."""

    contracts = ctx.contracts
    counter = inputs.counter
    parked = inputs.thread_with_token
    registry_unlocker = contracts.registry.unlock("call")
    funder_locking = pkh_to_locking_bytecode(address_to_pkh(funding_address))

    tx = Transaction()
    tx.add_input(inputs.thread.utxo, registry_unlocker)
    tx.add_input(inputs.authorized_contract.utxo, contracts.accumulator.unlock("call"))
    tx.add_input(counter.utxo, registry_unlocker)
    tx.add_input(parked.utxo, registry_unlocker)
    tx.add_input(inputs.funding.utxo, PlaceholderUnlocker(funding_address))

    reemit(tx, inputs.thread)
    reemit(tx, inputs.authorized_contract)
    reemit(tx, counter, token=counter.token.with_amount(counter.token.amount + parked.token.amount))
    reemit(tx, parked, token=parked.token.with_amount(0))
    tx.add_output(0, funder_locking)
    return finalize(ctx, tx, change_index=4, budget=inputs.funding.utxo.value, label="accumulation")
