"""Auction creation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from ..address import address_to_pkh, pkh_to_locking_bytecode
from ..binary import decode_registration_id, encode_registration_id
from ..classifier import (
    find_authorized_contract_utxo,
    find_funding_utxo,
    find_registration_counter_utxo,
    find_thread_utxo,
)
from ..errors import AuctionPriceError, InsufficientFundsError
from ..model import Capability, RoleOutput, TokenData
from ..names import name_to_bytes, validate_name
from ..pricing import auction_price
from ..transaction import PlaceholderUnlocker, Transaction
from .common import AUCTION_FUNDING_HEADROOM, AssemblerContext, finalize, reemit, require_funds


@dataclass(frozen=True)
class AuctionInputs:
    thread: RoleOutput
    authorized_contract: RoleOutput
    counter: RoleOutput
    funding: RoleOutput

    @classmethod
    def select(
        cls,
        ctx: AssemblerContext,
        *,
        amount: int,
        registry_outputs: Sequence[RoleOutput],
        authorized_outputs: Sequence[RoleOutput],
        funding_outputs: Sequence[RoleOutput],
    ) -> "AuctionInputs":
        covenant = ctx.contracts.auction.locking_bytecode
        return cls(
            thread=find_thread_utxo(registry_outputs, covenant),
            authorized_contract=find_authorized_contract_utxo(authorized_outputs, covenant),
            counter=find_registration_counter_utxo(registry_outputs),
            funding=find_funding_utxo(funding_outputs, amount + AUCTION_FUNDING_HEADROOM),
        )


def build_auction_transaction(
    ctx: AssemblerContext,
    *,
    name: str,
    amount: int,
    funding_address: str,
    inputs: AuctionInputs,
) -> Transaction:
    """Open an auction for ``name`` with ``amount`` sats as the first bid.

    The counter's commitment is the registration id handed to this auction.
    The auction carries that id as its fungible amount, taken from the
    counter's supply, and the counter moves on to ``id + 1``.
    """

    validate_name(name)
    contracts = ctx.contracts
    counter = inputs.counter
    registration_id = decode_registration_id(counter.token.commitment)
    price = auction_price(registration_id, ctx.min_starting_bid)
    if amount < price:
        raise AuctionPriceError(amount, price)
    if counter.token.amount < registration_id:
        raise InsufficientFundsError(
            f"Registration counter holds {counter.token.amount} tokens, "
            f"cannot issue registration id {registration_id}"
        )
    funding = inputs.funding.utxo
    require_funds(funding.value, amount + ctx.fee_policy.dust_limit, "Auction funding")

    funder_pkh = address_to_pkh(funding_address)
    registry_unlocker = contracts.registry.unlock("call")

    tx = Transaction()
    tx.add_input(inputs.thread.utxo, registry_unlocker)
    tx.add_input(inputs.authorized_contract.utxo, contracts.auction.unlock("call", name_to_bytes(name)))
    tx.add_input(counter.utxo, registry_unlocker)
    tx.add_input(funding, PlaceholderUnlocker(funding_address))

    reemit(tx, inputs.thread)
    reemit(tx, inputs.authorized_contract)
    reemit(
        tx,
        counter,
        token=TokenData(
            category=counter.token.category,
            amount=counter.token.amount - registration_id,
            capability=Capability.MINTING,
            commitment=encode_registration_id(registration_id + 1),
        ),
    )
    tx.add_output(
        amount,
        contracts.registry.locking_bytecode,
        TokenData(
            category=ctx.category,
            amount=registration_id,
            capability=Capability.MUTABLE,
            commitment=funder_pkh + name_to_bytes(name),
        ),
    )
    tx.add_output(0, pkh_to_locking_bytecode(funder_pkh))
    return finalize(ctx, tx, change_index=4, budget=funding.value - amount, label="auction")
