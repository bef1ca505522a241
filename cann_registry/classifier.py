"""Structural role classification for fetched outputs.

Outputs are tagged once, when they are fetched, with :func:`classify_utxos`.
The finders below then select by :class:`~cann_registry.model.Role` and raise
a role-specific :class:`~cann_registry.errors.UTXONotFoundError` subclass when
nothing qualifies.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Collection, Iterable, List, Sequence

from .address import locking_bytecode_to_address, pkh_to_locking_bytecode
from .binary import REGISTRATION_ID_LENGTH, decode_registration_id
from .errors import (
    AuthorizedContractNotFoundError,
    ExternalAuthNotFoundError,
    FundingNotFoundError,
    InternalAuthNotFoundError,
    MalformedCommitmentError,
    NameMintingNotFoundError,
    OwnershipNotFoundError,
    RegistrationCounterNotFoundError,
    RunningAuctionNotFoundError,
    ThreadNFTNotFoundError,
    ThreadWithTokenNotFoundError,
)
from .model import UTXO, Auction, Capability, Role, RoleOutput
from .names import bytes_to_name, name_to_bytes

PKH_LENGTH = 20


@dataclass(frozen=True)
class ClassificationContext:
    """What a classifier needs to know about the registry being queried."""

    category: str
    covenant_lockings: frozenset[bytes] = frozenset()


def classify_utxo(utxo: UTXO, context: ClassificationContext) -> Role:
    token = utxo.token
    if token is None:
        if utxo.locking_bytecode in context.covenant_lockings:
            return Role.AUTHORIZED_CONTRACT
        return Role.FUNDING
    if token.category != context.category:
        return Role.FOREIGN
    if token.capability is Capability.MINTING:
        if token.commitment:
            return Role.REGISTRATION_COUNTER
        return Role.NAME_MINTING if token.amount == 0 else Role.UNRECOGNIZED
    if token.capability is Capability.MUTABLE:
        return Role.AUCTION if len(token.commitment) > PKH_LENGTH else Role.UNRECOGNIZED
    if token.capability is Capability.NONE:
        commitment = token.commitment
        if commitment in context.covenant_lockings:
            return Role.THREAD
        if not commitment:
            return Role.EXTERNAL_AUTH
        if len(commitment) == REGISTRATION_ID_LENGTH:
            return Role.INTERNAL_AUTH
        if len(commitment) > REGISTRATION_ID_LENGTH:
            return Role.OWNERSHIP
    return Role.UNRECOGNIZED


def classify_utxos(utxos: Iterable[UTXO], context: ClassificationContext) -> List[RoleOutput]:
    return [RoleOutput(role=classify_utxo(utxo, context), utxo=utxo) for utxo in utxos]


def _with_role(outputs: Iterable[RoleOutput], role: Role) -> List[RoleOutput]:
    return [output for output in outputs if output.role is role]


def _by_outpoint(outputs: Iterable[RoleOutput]) -> List[RoleOutput]:
    return sorted(outputs, key=lambda output: output.utxo.outpoint)


def find_thread_utxo(outputs: Sequence[RoleOutput], covenant_locking: bytes) -> RoleOutput:
    """Return the thread NFT that authorizes the covenant at ``covenant_locking``."""

    for output in _by_outpoint(_with_role(outputs, Role.THREAD)):
        if output.token.commitment == covenant_locking:
            return output
    raise ThreadNFTNotFoundError()


def find_registration_counter_utxo(outputs: Sequence[RoleOutput]) -> RoleOutput:
    candidates = _by_outpoint(_with_role(outputs, Role.REGISTRATION_COUNTER))
    if not candidates:
        raise RegistrationCounterNotFoundError()
    return candidates[0]


def find_name_minting_utxo(outputs: Sequence[RoleOutput]) -> RoleOutput:
    candidates = _by_outpoint(_with_role(outputs, Role.NAME_MINTING))
    if not candidates:
        raise NameMintingNotFoundError()
    return candidates[0]


def auction_name_bytes(output: RoleOutput) -> bytes:
    return output.token.commitment[PKH_LENGTH:]


def find_auction_utxos(outputs: Sequence[RoleOutput], name: str) -> List[RoleOutput]:
    """Return every auction for ``name``, lowest registration id first.

    The lowest registration id is the earliest auction and the canonical one;
    later duplicates are the ones a conflict resolver penalizes.
    """

    name_bytes = name_to_bytes(name)
    matches = [output for output in _with_role(outputs, Role.AUCTION) if auction_name_bytes(output) == name_bytes]
    return sorted(matches, key=lambda output: (output.token.amount, output.utxo.outpoint))


def find_running_auction_utxo(outputs: Sequence[RoleOutput], name: str) -> RoleOutput:
    auctions = find_auction_utxos(outputs, name)
    if not auctions:
        raise RunningAuctionNotFoundError(f"No running auction found for {name!r}")
    return auctions[0]


def find_authorized_contract_utxo(
    outputs: Sequence[RoleOutput], covenant_locking: bytes | None = None
) -> RoleOutput:
    """Return a plain output sitting at a covenant address.

    The covenant accepts any of them. The lowest outpoint is taken so that
    identical inputs always produce identical transactions.
    """

    candidates = _by_outpoint(
        output
        for output in _with_role(outputs, Role.AUTHORIZED_CONTRACT)
        if covenant_locking is None or output.utxo.locking_bytecode == covenant_locking
    )
    if not candidates:
        raise AuthorizedContractNotFoundError()
    return candidates[0]


def find_thread_with_token_utxo(
    outputs: Sequence[RoleOutput], exclude: Collection[tuple[str, int]] = ()
) -> RoleOutput:
    """Return a thread NFT holding fungible tokens waiting to be accumulated."""

    for output in _by_outpoint(_with_role(outputs, Role.THREAD)):
        if output.token.amount > 0 and output.utxo.outpoint not in exclude:
            return output
    raise ThreadWithTokenNotFoundError()


def find_internal_auth_utxo(outputs: Sequence[RoleOutput]) -> RoleOutput:
    candidates = sorted(
        _with_role(outputs, Role.INTERNAL_AUTH),
        key=lambda output: (decode_registration_id(output.token.commitment), output.utxo.outpoint),
    )
    if not candidates:
        raise InternalAuthNotFoundError()
    return candidates[0]


def find_external_auth_utxo(outputs: Sequence[RoleOutput]) -> RoleOutput:
    candidates = _by_outpoint(_with_role(outputs, Role.EXTERNAL_AUTH))
    if not candidates:
        raise ExternalAuthNotFoundError()
    return candidates[0]


def find_ownership_utxo(outputs: Sequence[RoleOutput], name: str) -> RoleOutput:
    name_bytes = name_to_bytes(name)
    for output in _by_outpoint(_with_role(outputs, Role.OWNERSHIP)):
        if output.token.commitment[REGISTRATION_ID_LENGTH:] == name_bytes:
            return output
    raise OwnershipNotFoundError(f"No ownership NFT found for {name!r}")


def find_funding_utxo(outputs: Sequence[RoleOutput], minimum: int = 0) -> RoleOutput:
    """Return the smallest plain output worth at least ``minimum`` sats."""

    candidates = sorted(
        (output for output in _with_role(outputs, Role.FUNDING) if output.utxo.value >= minimum),
        key=lambda output: (output.utxo.value, output.utxo.outpoint),
    )
    if not candidates:
        raise FundingNotFoundError(f"No funding UTXO of at least {minimum} sats found")
    return candidates[0]


def find_biggest_funding_utxo(outputs: Sequence[RoleOutput]) -> RoleOutput:
    candidates = _with_role(outputs, Role.FUNDING)
    if not candidates:
        raise FundingNotFoundError()
    return min(candidates, key=lambda output: (-output.utxo.value, output.utxo.outpoint))


def names_from_ownership(outputs: Iterable[RoleOutput]) -> List[str]:
    return [
        bytes_to_name(output.token.commitment[REGISTRATION_ID_LENGTH:])
        for output in outputs
        if output.role is Role.OWNERSHIP
    ]


def auction_from_output(output: RoleOutput, network: str = "mainnet") -> Auction:
    """Reconstruct the auction described by an auction-role output."""

    commitment = output.token.commitment
    if len(commitment) <= PKH_LENGTH:
        raise MalformedCommitmentError(
            f"Auction commitment of {len(commitment)} bytes cannot hold a bidder PKH and a name"
        )
    bidder_pkh = commitment[:PKH_LENGTH]
    return Auction(
        name=bytes_to_name(commitment[PKH_LENGTH:]),
        bidder_pkh=bidder_pkh,
        bidder_address=locking_bytecode_to_address(pkh_to_locking_bytecode(bidder_pkh), network),
        amount=output.utxo.value,
        registration_id=output.token.amount,
        utxo=output.utxo,
    )
