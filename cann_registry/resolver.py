"""Ownership resolution for claimed names.

A claimed name's identity token (registration id followed by the name) is
created by the claim transaction and then moves freely between holders. Two
strategies find its current holder:

* linear replay follows the token forward through each holder's script-hash
  history, one transfer at a time;
* indexed lookup asks a Chaingraph index for every output that ever carried
  the token and checks which of the latest holders still has it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence

from .address import locking_bytecode_to_address, script_to_scripthash
from .binary import REGISTRATION_ID_LENGTH, decode_registration_id
from .chaingraph import ChaingraphClient
from .classifier import ClassificationContext, classify_utxos, names_from_ownership
from .covenants import RegistryContracts
from .errors import AmbiguousOwnershipError, NameNotClaimedError, ResolutionError
from .ledger import LedgerProvider, fetch_all, fetch_concurrently, fetch_decoded_transaction
from .model import UTXO, Capability, HistoryEntry, TokenData
from .names import name_to_bytes
from .transaction import Transaction

logger = logging.getLogger(__name__)

DEFAULT_STEP_LIMIT = 1000
UNCONFIRMED_ORDER = 2**31
CLAIM_INPUT_COUNT = 5
CLAIM_OUTPUT_COUNTS = (7, 8)
CLAIM_CATEGORY_OUTPUTS = (0, 2, 3, 4, 5)
CLAIM_MINTING_OUTPUT = 2
CLAIM_IDENTITY_OUTPUT = 5


class ResolutionStrategy(str, Enum):
    LINEAR_REPLAY = "linear"
    INDEXED_LOOKUP = "indexed"


@dataclass(frozen=True)
class ClaimRecord:
    """The claim transaction of a name and the identity token it created."""

    txid: str
    height: int
    identity: TokenData
    holder_locking: bytes


@dataclass(frozen=True)
class WalkState:
    """Position of a linear replay: who holds the token, and from when."""

    holder_locking: bytes
    lower_bound: int
    visited: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class Ownership:
    name: str
    registration_id: int
    owner_address: str
    owner_locking: bytes
    claim_txid: str
    strategy: ResolutionStrategy

    def to_jsonable(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "registration_id": self.registration_id,
            "owner": self.owner_address,
            "claim_txid": self.claim_txid,
            "strategy": self.strategy.value,
        }


def order_height(height: int) -> int:
    """Map a ledger height onto walk order; unconfirmed entries sort last."""

    return height if height > 0 else UNCONFIRMED_ORDER


def has_claim_shape(tx: Transaction, category: str) -> bool:
    """Return True when ``tx`` is laid out like a claim of this registry."""

    if len(tx.inputs) != CLAIM_INPUT_COUNT or len(tx.outputs) not in CLAIM_OUTPUT_COUNTS:
        return False
    for index in CLAIM_CATEGORY_OUTPUTS:
        token = tx.outputs[index].token
        if token is None or token.category != category:
            return False
    if tx.outputs[CLAIM_MINTING_OUTPUT].token.capability is not Capability.MINTING:
        return False
    return len(tx.outputs[CLAIM_IDENTITY_OUTPUT].token.commitment) > REGISTRATION_ID_LENGTH


def is_claim_transaction(tx: Transaction, category: str, registration_commitment: bytes) -> bool:
    if not has_claim_shape(tx, category):
        return False
    identity = tx.outputs[CLAIM_IDENTITY_OUTPUT].token
    return identity.commitment[:REGISTRATION_ID_LENGTH] == registration_commitment


def _registration_commitment(utxos: Sequence[UTXO], category: str) -> Optional[bytes]:
    commitments = [
        utxo.token.commitment
        for utxo in utxos
        if utxo.token is not None and utxo.token.category == category and utxo.token.commitment
    ]
    if not commitments:
        return None
    return min(commitments, key=lambda commitment: int.from_bytes(commitment, "big"))


class OwnershipResolver:
    """Find the current holder of a claimed name's identity token."""

    def __init__(
        self,
        ledger: LedgerProvider,
        contracts: RegistryContracts,
        *,
        chaingraph: ChaingraphClient | None = None,
        step_limit: int = DEFAULT_STEP_LIMIT,
    ) -> None:
        self.ledger = ledger
        self.contracts = contracts
        self.chaingraph = chaingraph
        self.step_limit = step_limit

    @property
    def category(self) -> str:
        return self.contracts.category

    def resolve(self, name: str, strategy: ResolutionStrategy = ResolutionStrategy.LINEAR_REPLAY) -> Ownership:
        claim = self.find_claim(name)
        if strategy is ResolutionStrategy.LINEAR_REPLAY:
            owner_locking = self.replay(claim)
        elif strategy is ResolutionStrategy.INDEXED_LOOKUP:
            owner_locking = self.lookup_indexed(claim)
        else:
            raise ValueError(f"Unknown resolution strategy {strategy!r}")
        owner_address = locking_bytecode_to_address(owner_locking, self.contracts.network)
        logger.info("Resolved %r to %s via %s", name, owner_address, strategy.value)
        return Ownership(
            name=name,
            registration_id=decode_registration_id(claim.identity.commitment[:REGISTRATION_ID_LENGTH]),
            owner_address=owner_address,
            owner_locking=owner_locking,
            claim_txid=claim.txid,
            strategy=strategy,
        )

    # Claim discovery -------------------------------------------------------

    def find_claim(self, name: str) -> ClaimRecord:
        """Locate the claim transaction that created ``name``'s identity token."""

        address = self.contracts.name_contract(name).address
        history, utxos = fetch_concurrently(
            lambda: self.ledger.get_address_history(address),
            lambda: self.ledger.get_unspent_outputs(address),
        )
        commitment = _registration_commitment(utxos, self.category)
        if commitment is None:
            raise NameNotClaimedError(f"Name {name!r} has no registration at {address}")
        logger.debug("Valid registration of %r is %s", name, commitment.hex())

        transactions = fetch_all(lambda entry: fetch_decoded_transaction(self.ledger, entry.txid), history)
        for entry, tx in zip(history, transactions):
            if not is_claim_transaction(tx, self.category, commitment):
                continue
            identity = tx.outputs[CLAIM_IDENTITY_OUTPUT]
            if identity.token.commitment[REGISTRATION_ID_LENGTH:] != name_to_bytes(name):
                logger.warning("Claim %s carries a different name; skipping", entry.txid)
                continue
            return ClaimRecord(
                txid=entry.txid,
                height=entry.height,
                identity=identity.token,
                holder_locking=identity.locking_bytecode,
            )
        raise NameNotClaimedError("Name has not been auctioned yet")

    # Linear replay ---------------------------------------------------------

    def replay(self, claim: ClaimRecord) -> bytes:
        state = WalkState(
            holder_locking=claim.holder_locking,
            lower_bound=order_height(claim.height),
            visited=frozenset({claim.txid}),
        )
        for _ in range(self.step_limit):
            next_state = self.step(claim.identity, state)
            if next_state is None:
                return state.holder_locking
            state = next_state
        raise ResolutionError(f"Ownership walk exceeded {self.step_limit} transfers")

    def step(self, identity: TokenData, state: WalkState) -> Optional[WalkState]:
        """Advance the walk by one transfer, or return ``None`` when it ends."""

        history = self.ledger.get_scripthash_history(script_to_scripthash(state.holder_locking))
        candidates: List[HistoryEntry] = sorted(
            (
                entry
                for entry in history
                if entry.txid not in state.visited and order_height(entry.height) >= state.lower_bound
            ),
            key=lambda entry: order_height(entry.height),
        )
        visited = set(state.visited)
        for entry in candidates:
            visited.add(entry.txid)
            tx = fetch_decoded_transaction(self.ledger, entry.txid)
            for output in tx.outputs:
                if identity.matches(output.token) and output.locking_bytecode != state.holder_locking:
                    logger.info("Identity token moved in %s", entry.txid)
                    return WalkState(
                        holder_locking=output.locking_bytecode,
                        lower_bound=order_height(entry.height),
                        visited=frozenset(visited),
                    )
        return None

    # Indexed lookup --------------------------------------------------------

    def lookup_indexed(self, claim: ClaimRecord) -> bytes:
        if self.chaingraph is None:
            raise ResolutionError("Indexed lookup requires a Chaingraph endpoint (CANN_CHAINGRAPH_URL)")
        identity = claim.identity
        results = self.chaingraph.search_outputs(self.category, identity.commitment)
        if not results:
            raise ResolutionError("No owner found")
        unconfirmed = [result for result in results if not result.confirmed]
        if unconfirmed:
            latest = unconfirmed
        else:
            top = max(result.height for result in results)
            latest = [result for result in results if result.height == top]
        txids = list(dict.fromkeys(result.txid for result in latest))
        transactions = fetch_all(lambda txid: fetch_decoded_transaction(self.ledger, txid), txids)

        candidates: List[bytes] = []
        for tx in transactions:
            for output in tx.outputs:
                if identity.matches(output.token) and output.locking_bytecode not in candidates:
                    candidates.append(output.locking_bytecode)
        logger.debug("Indexed lookup found %d candidate holder(s)", len(candidates))

        def holds(locking: bytes) -> bool:
            address = locking_bytecode_to_address(locking, self.contracts.network)
            return any(identity.matches(utxo.token) for utxo in self.ledger.get_unspent_outputs(address))

        holders = [locking for locking, held in zip(candidates, fetch_all(holds, candidates)) if held]
        if not holders:
            raise ResolutionError("No owner found")
        if len(holders) > 1:
            raise AmbiguousOwnershipError(
                [locking_bytecode_to_address(locking, self.contracts.network) for locking in holders]
            )
        return holders[0]


def lookup_address(ledger: LedgerProvider, contracts: RegistryContracts, address: str) -> List[str]:
    """Return the names whose identity tokens are held at ``address``."""

    context = ClassificationContext(contracts.category, contracts.authorized_lockings)
    return names_from_ownership(classify_utxos(ledger.get_unspent_outputs(address), context))
