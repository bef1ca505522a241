"""Penalty transactions that forfeit illegitimate auctions.

Anyone may build these. The offending auction's fungible tokens return to the
covenant's thread and its locked bid value, minus the fee, goes to whoever
submitted the proof.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from ..address import address_to_locking_bytecode
from ..classifier import (
    find_auction_utxos,
    find_authorized_contract_utxo,
    find_external_auth_utxo,
    find_running_auction_utxo,
    find_thread_utxo,
)
from ..covenants import NAME_AUTH_EXTERNAL
from ..errors import PenaltyConditionError
from ..model import RoleOutput
from ..names import find_first_invalid_character_index, invalid_character_number
from ..transaction import Transaction
from .common import AssemblerContext, finalize, reemit

logger = logging.getLogger(__name__)


def _forfeit_into_thread(tx: Transaction, thread: RoleOutput, forfeited: RoleOutput) -> None:
    token = thread.token
    reemit(tx, thread, token=token.with_amount(token.amount + forfeited.token.amount))


@dataclass(frozen=True)
class InvalidNameInputs:
    thread: RoleOutput
    authorized_contract: RoleOutput
    auction: RoleOutput

    @classmethod
    def select(
        cls,
        ctx: AssemblerContext,
        *,
        name: str,
        registry_outputs: Sequence[RoleOutput],
        authorized_outputs: Sequence[RoleOutput],
    ) -> "InvalidNameInputs":
        covenant = ctx.contracts.name_enforcer.locking_bytecode
        return cls(
            thread=find_thread_utxo(registry_outputs, covenant),
            authorized_contract=find_authorized_contract_utxo(authorized_outputs, covenant),
            auction=find_running_auction_utxo(registry_outputs, name),
        )


def build_penalize_invalid_name_transaction(
    ctx: AssemblerContext,
    *,
    name: str,
    reward_to: str,
    inputs: InvalidNameInputs,
) -> Transaction:
    """Forfeit an auction whose name contains a disallowed character.

    The name enforcer is handed the 1-based byte position of the offending
    character and checks it against the auction's commitment.
    """

    if find_first_invalid_character_index(name) == -1:
        raise PenaltyConditionError(f"Name {name!r} is valid; there is nothing to penalize")
    character_number = invalid_character_number(name)
    contracts = ctx.contracts
    auction = inputs.auction

    tx = Transaction()
    tx.add_input(inputs.thread.utxo, contracts.registry.unlock("call"))
    tx.add_input(inputs.authorized_contract.utxo, contracts.name_enforcer.unlock("call", character_number))
    tx.add_input(auction.utxo, contracts.registry.unlock("call"))

    _forfeit_into_thread(tx, inputs.thread, auction)
    reemit(tx, inputs.authorized_contract)
    tx.add_output(0, address_to_locking_bytecode(reward_to))
    logger.info("Penalizing invalid name %r at character %d", name, character_number)
    return finalize(ctx, tx, change_index=2, budget=auction.utxo.value, label="invalid-name penalty")


@dataclass(frozen=True)
class DuplicateAuctionInputs:
    thread: RoleOutput
    authorized_contract: RoleOutput
    valid_auction: RoleOutput
    duplicate_auction: RoleOutput

    @classmethod
    def select(
        cls,
        ctx: AssemblerContext,
        *,
        name: str,
        registry_outputs: Sequence[RoleOutput],
        authorized_outputs: Sequence[RoleOutput],
    ) -> "DuplicateAuctionInputs":
        auctions = find_auction_utxos(registry_outputs, name)
        if len(auctions) < 2:
            raise PenaltyConditionError(
                f"Found {len(auctions)} auction(s) for {name!r}; a duplicate needs at least two"
            )
        covenant = ctx.contracts.conflict_resolver.locking_bytecode
        return cls(
            thread=find_thread_utxo(registry_outputs, covenant),
            authorized_contract=find_authorized_contract_utxo(authorized_outputs, covenant),
            valid_auction=auctions[0],
            duplicate_auction=auctions[1],
        )


def build_penalize_duplicate_auction_transaction(
    ctx: AssemblerContext,
    *,
    name: str,
    reward_to: str,
    inputs: DuplicateAuctionInputs,
) -> Transaction:
    """Forfeit the later of two auctions for the same name.

    The auction with the lower registration id was opened first and stays.
    """

    valid, duplicate = inputs.valid_auction, inputs.duplicate_auction
    if valid.token.amount >= duplicate.token.amount:
        raise PenaltyConditionError(
            f"Auction {duplicate.utxo.txid}:{duplicate.utxo.vout} does not have a later registration id"
        )
    contracts = ctx.contracts
    registry_unlocker = contracts.registry.unlock("call")

    tx = Transaction()
    tx.add_input(inputs.thread.utxo, registry_unlocker)
    tx.add_input(inputs.authorized_contract.utxo, contracts.conflict_resolver.unlock("call"))
    tx.add_input(valid.utxo, registry_unlocker)
    tx.add_input(duplicate.utxo, registry_unlocker)

    _forfeit_into_thread(tx, inputs.thread, duplicate)
    reemit(tx, inputs.authorized_contract)
    reemit(tx, valid)
    tx.add_output(0, address_to_locking_bytecode(reward_to))
    logger.info(
        "Penalizing duplicate auction for %r: keeping id %d, forfeiting id %d",
        name,
        valid.token.amount,
        duplicate.token.amount,
    )
    return finalize(ctx, tx, change_index=3, budget=duplicate.utxo.value, label="duplicate-auction penalty")


@dataclass(frozen=True)
class IllegalAuctionInputs:
    thread: RoleOutput
    authorized_contract: RoleOutput
    external_auth: RoleOutput
    auction: RoleOutput

    @classmethod
    def select(
        cls,
        ctx: AssemblerContext,
        *,
        name: str,
        registry_outputs: Sequence[RoleOutput],
        authorized_outputs: Sequence[RoleOutput],
        name_outputs: Sequence[RoleOutput],
    ) -> "IllegalAuctionInputs":
        covenant = ctx.contracts.ownership_guard.locking_bytecode
        return cls(
            thread=find_thread_utxo(registry_outputs, covenant),
            authorized_contract=find_authorized_contract_utxo(authorized_outputs, covenant),
            external_auth=find_external_auth_utxo(name_outputs),
            auction=find_running_auction_utxo(registry_outputs, name),
        )


def build_penalize_illegal_auction_transaction(
    ctx: AssemblerContext,
    *,
    name: str,
    reward_to: str,
    inputs: IllegalAuctionInputs,
) -> Transaction:
    """Forfeit an auction for a name that is already owned.

    The name contract's external auth token proves the name was claimed; it is
    spent and recreated unchanged.
    """

    contracts = ctx.contracts
    name_contract = contracts.name_contract(name)
    external_auth = inputs.external_auth
    if external_auth.utxo.locking_bytecode != name_contract.locking_bytecode:
        raise PenaltyConditionError(f"External auth output is not held by the contract for {name!r}")
    auction = inputs.auction

    tx = Transaction()
    tx.add_input(inputs.thread.utxo, contracts.registry.unlock("call"))
    tx.add_input(inputs.authorized_contract.utxo, contracts.ownership_guard.unlock("call"))
    tx.add_input(external_auth.utxo, name_contract.unlock("useAuth", NAME_AUTH_EXTERNAL))
    tx.add_input(auction.utxo, contracts.registry.unlock("call"))

    _forfeit_into_thread(tx, inputs.thread, auction)
    reemit(tx, inputs.authorized_contract)
    reemit(tx, external_auth)
    tx.add_output(0, address_to_locking_bytecode(reward_to))
    logger.info("Penalizing illegal auction for owned name %r", name)
    return finalize(ctx, tx, change_index=3, budget=auction.utxo.value, label="illegal-auction penalty")
