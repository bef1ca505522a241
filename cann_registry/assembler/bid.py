"""Bidding on a running auction."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from ..address import address_to_pkh, pkh_to_locking_bytecode
from ..classifier import (
    PKH_LENGTH,
    find_authorized_contract_utxo,
    find_funding_utxo,
    find_running_auction_utxo,
    find_thread_utxo,
)
from ..errors import BidTooLowError, MalformedCommitmentError
from ..model import RoleOutput
from ..names import name_to_bytes, validate_name
from ..pricing import minimum_next_bid
from ..transaction import PlaceholderUnlocker, Transaction
from .common import AUCTION_FUNDING_HEADROOM, AssemblerContext, finalize, reemit, require_funds


@dataclass(frozen=True)
class BidInputs:
    thread: RoleOutput
    authorized_contract: RoleOutput
    auction: RoleOutput
    funding: RoleOutput

    @classmethod
    def select(
        cls,
        ctx: AssemblerContext,
        *,
        name: str,
        amount: int,
        registry_outputs: Sequence[RoleOutput],
        authorized_outputs: Sequence[RoleOutput],
        funding_outputs: Sequence[RoleOutput],
    ) -> "BidInputs":
        covenant = ctx.contracts.bid.locking_bytecode
        return cls(
            thread=find_thread_utxo(registry_outputs, covenant),
            authorized_contract=find_authorized_contract_utxo(authorized_outputs, covenant),
            auction=find_running_auction_utxo(registry_outputs, name),
            funding=find_funding_utxo(funding_outputs, amount + AUCTION_FUNDING_HEADROOM),
        )


def build_bid_transaction(
    ctx: AssemblerContext,
    *,
    name: str,
    amount: int,
    funding_address: str,
    inputs: BidInputs,
) -> Transaction:
    """Outbid the current auction holder and refund their bid."""

    validate_name(name)
    auction = inputs.auction
    minimum = minimum_next_bid(auction.utxo.value, ctx.min_bid_increase_percentage)
    if amount < minimum:
        raise BidTooLowError(amount, minimum)
    previous_pkh = auction.token.commitment[:PKH_LENGTH]
    if len(previous_pkh) != PKH_LENGTH:
        raise MalformedCommitmentError("Auction commitment is too short to hold the previous bidder")
    funding = inputs.funding.utxo
    require_funds(funding.value, amount + ctx.fee_policy.dust_limit, "Bid funding")

    contracts = ctx.contracts
    bidder_pkh = address_to_pkh(funding_address)

    tx = Transaction()
    tx.add_input(inputs.thread.utxo, contracts.registry.unlock("call"))
    tx.add_input(inputs.authorized_contract.utxo, contracts.bid.unlock("call"))
    tx.add_input(auction.utxo, contracts.registry.unlock("call"))
    tx.add_input(funding, PlaceholderUnlocker(funding_address))

    reemit(tx, inputs.thread)
    reemit(tx, inputs.authorized_contract)
    tx.add_output(
        amount,
        auction.utxo.locking_bytecode,
        auction.token.with_commitment(bidder_pkh + name_to_bytes(name)),
    )
    tx.add_output(auction.utxo.value, pkh_to_locking_bytecode(previous_pkh))
    tx.add_output(0, pkh_to_locking_bytecode(bidder_pkh))
    return finalize(ctx, tx, change_index=4, budget=funding.value - amount, label="bid")
