"""Claiming a name once its auction has aged past the minimum wait time."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from ..address import address_to_locking_bytecode, locking_bytecode_to_address, pkh_to_locking_bytecode
from ..binary import encode_registration_id
from ..classifier import (
    PKH_LENGTH,
    find_authorized_contract_utxo,
    find_funding_utxo,
    find_name_minting_utxo,
    find_running_auction_utxo,
    find_thread_utxo,
)
from ..errors import MalformedCommitmentError
from ..model import Capability, RoleOutput, TokenData
from ..names import name_to_bytes, validate_name
from ..pricing import payable_creator_incentive
from ..transaction import PlaceholderUnlocker, Transaction
from .common import (
    MIN_FEE_FUNDING,
    TOKEN_OUTPUT_VALUE,
    AssemblerContext,
    finalize,
    reemit,
    require_funds,
)

logger = logging.getLogger(__name__)

CLAIM_TOKEN_OUTPUTS = 3


@dataclass(frozen=True)
class ClaimInputs:
    thread: RoleOutput
    authorized_contract: RoleOutput
    minting: RoleOutput
    auction: RoleOutput
    funding: RoleOutput

    @classmethod
    def select(
        cls,
        ctx: AssemblerContext,
        *,
        name: str,
        registry_outputs: Sequence[RoleOutput],
        authorized_outputs: Sequence[RoleOutput],
        bidder_outputs: Sequence[RoleOutput],
    ) -> "ClaimInputs":
        covenant = ctx.contracts.factory.locking_bytecode
        return cls(
            thread=find_thread_utxo(registry_outputs, covenant),
            authorized_contract=find_authorized_contract_utxo(authorized_outputs, covenant),
            minting=find_name_minting_utxo(registry_outputs),
            auction=find_running_auction_utxo(registry_outputs, name),
            funding=find_funding_utxo(bidder_outputs, MIN_FEE_FUNDING),
        )


def build_claim_transaction(ctx: AssemblerContext, *, name: str, inputs: ClaimInputs) -> Transaction:
    """Turn the winning auction into the name's auth and ownership tokens.

    The auction's fungible tokens go back to the Factory thread. The winning
    bid pays for the three 1000-sat token outputs and the creator incentive;
    whatever remains of it is left as fee. The bidder's own funding input pays
    the transaction fee and receives the change.
    """

    validate_name(name)
    contracts = ctx.contracts
    auction = inputs.auction
    bidder_pkh = auction.token.commitment[:PKH_LENGTH]
    if len(bidder_pkh) != PKH_LENGTH:
        raise MalformedCommitmentError("Auction commitment is too short to hold the winning bidder")
    registration_id = auction.token.amount
    bidder_locking = pkh_to_locking_bytecode(bidder_pkh)
    bidder_address = locking_bytecode_to_address(bidder_locking, ctx.network)
    name_contract = contracts.name_contract(name)
    id_commitment = encode_registration_id(registration_id)

    incentive = None
    if ctx.creator_incentive_address:
        incentive = payable_creator_incentive(auction.utxo.value, registration_id)
    require_funds(
        auction.utxo.value,
        CLAIM_TOKEN_OUTPUTS * TOKEN_OUTPUT_VALUE + (incentive or 0),
        "Winning bid",
    )

    registry_unlocker = contracts.registry.unlock("call")
    tx = Transaction()
    tx.add_input(inputs.thread.utxo, registry_unlocker)
    tx.add_input(inputs.authorized_contract.utxo, contracts.factory.unlock("call"))
    tx.add_input(inputs.minting.utxo, registry_unlocker)
    tx.add_input(auction.utxo, registry_unlocker, sequence=ctx.min_wait_time)
    tx.add_input(inputs.funding.utxo, PlaceholderUnlocker(bidder_address))

    thread_token = inputs.thread.token
    reemit(tx, inputs.thread, token=thread_token.with_amount(thread_token.amount + auction.token.amount))
    reemit(tx, inputs.authorized_contract)
    reemit(tx, inputs.minting)
    tx.add_output(
        TOKEN_OUTPUT_VALUE,
        name_contract.locking_bytecode,
        TokenData(category=ctx.category, capability=Capability.NONE),
    )
    tx.add_output(
        TOKEN_OUTPUT_VALUE,
        name_contract.locking_bytecode,
        TokenData(category=ctx.category, capability=Capability.NONE, commitment=id_commitment),
    )
    tx.add_output(
        TOKEN_OUTPUT_VALUE,
        bidder_locking,
        TokenData(
            category=ctx.category,
            capability=Capability.NONE,
            commitment=id_commitment + name_to_bytes(name),
        ),
    )
    tx.add_output(0, bidder_locking)
    if incentive is not None:
        tx.add_output(incentive, address_to_locking_bytecode(ctx.creator_incentive_address))
        logger.info("Claim of %r pays %d sats creator incentive", name, incentive)
    return finalize(ctx, tx, change_index=6, budget=inputs.funding.utxo.value, label="claim")
