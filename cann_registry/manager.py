"""High-level entry point tying configuration, ledger access and builders together."""

from __future__ import annotations

import logging
from functools import partial
from typing import Any, Dict, List, Sequence

from .assembler import (
    AccumulationInputs,
    AssemblerContext,
    AuctionInputs,
    BidInputs,
    ClaimInputs,
    DuplicateAuctionInputs,
    IllegalAuctionInputs,
    InvalidNameInputs,
    RecordsInputs,
    build_accumulation_transaction,
    build_auction_transaction,
    build_bid_transaction,
    build_claim_transaction,
    build_penalize_duplicate_auction_transaction,
    build_penalize_illegal_auction_transaction,
    build_penalize_invalid_name_transaction,
    build_records_transaction,
)
from .binary import decode_registration_id
from .chaingraph import ChaingraphClient
from .classifier import (
    ClassificationContext,
    auction_from_output,
    classify_utxos,
    find_registration_counter_utxo,
    find_running_auction_utxo,
)
from .config import RegistryConfig, load_registry_config
from .covenants import RegistryContracts
from .electrum_client import ElectrumClient
from .ledger import LedgerProvider, fetch_concurrently
from .model import NameInfo, RoleOutput
from .pricing import auction_price, minimum_next_bid
from .resolver import Ownership, OwnershipResolver, ResolutionStrategy, lookup_address
from .services import AuctionInfo, NameService, PastAuction, RegistryService
from .transaction import Transaction

logger = logging.getLogger(__name__)


class RegistryManager:
    """Fetch, classify and build for one registry deployment.

    Every builder method fetches the outputs it needs concurrently, classifies
    them once, and hands them to the matching builder in
    :mod:`cann_registry.assembler`. The returned transactions are unsigned.
    """

    def __init__(
        self,
        config: RegistryConfig,
        *,
        ledger: LedgerProvider | None = None,
        contracts: RegistryContracts | None = None,
        chaingraph: ChaingraphClient | None = None,
    ) -> None:
        self.config = config
        self.contracts = contracts or RegistryContracts.from_config(config)
        self.ledger = ledger or ElectrumClient.from_registry_config(config)
        if chaingraph is None and config.chaingraph_url:
            chaingraph = ChaingraphClient(config.chaingraph_url, timeout=config.electrum.timeout)
        self.chaingraph = chaingraph
        self.assembler = AssemblerContext.from_config(config, self.contracts)
        self.context = ClassificationContext(self.contracts.category, self.contracts.authorized_lockings)
        self.names = NameService(self.ledger, self.contracts)
        self.registry = RegistryService(self.ledger, self.contracts)
        self.resolver = OwnershipResolver(self.ledger, self.contracts, chaingraph=chaingraph)

    @classmethod
    def from_env(cls, **kwargs: Any) -> "RegistryManager":
        return cls(load_registry_config(), **kwargs)

    def _outputs(self, address: str) -> List[RoleOutput]:
        return classify_utxos(self.ledger.get_unspent_outputs(address), self.context)

    def _fetch_outputs(self, *addresses: str) -> tuple[List[RoleOutput], ...]:
        return fetch_concurrently(*(partial(self._outputs, address) for address in addresses))

    # Queries ----------------------------------------------------------------

    def get_name(self, name: str) -> NameInfo:
        return self.names.get_name(name)

    def fetch_records(self, name: str) -> Dict[str, Any]:
        return self.names.fetch_records(name)

    def get_auctions(self) -> List[AuctionInfo]:
        return self.registry.get_auctions()

    def get_past_auctions(self) -> List[PastAuction]:
        return self.registry.get_past_auctions()

    def lookup_address(self, address: str) -> List[str]:
        return lookup_address(self.ledger, self.contracts, address)

    def resolve_name(self, name: str, *, use_electrum: bool = False, use_chaingraph: bool = False) -> Ownership:
        """Resolve the owner of ``name`` by replaying transfers or by index lookup.

        Exactly one of ``use_electrum`` (linear replay over the ledger) and
        ``use_chaingraph`` (indexed lookup) must be set.
        """

        if use_electrum == use_chaingraph:
            raise ValueError("Specify exactly one of use_electrum or use_chaingraph")
        strategy = ResolutionStrategy.INDEXED_LOOKUP if use_chaingraph else ResolutionStrategy.LINEAR_REPLAY
        return self.resolver.resolve(name, strategy)

    def current_auction_price(self) -> Dict[str, int]:
        """Return the next registration id and the minimum opening bid for it."""

        counter = find_registration_counter_utxo(self._outputs(self.contracts.registry.address))
        registration_id = decode_registration_id(counter.token.commitment)
        return {
            "registration_id": registration_id,
            "price": auction_price(registration_id, self.config.min_starting_bid),
        }

    def minimum_bid(self, name: str) -> Dict[str, Any]:
        auction = find_running_auction_utxo(self._outputs(self.contracts.registry.address), name)
        data = auction_from_output(auction, self.contracts.network).to_jsonable()
        data["minimum_bid"] = minimum_next_bid(auction.utxo.value, self.config.min_bid_increase_percentage)
        return data

    # Builders ---------------------------------------------------------------

    def create_auction(self, name: str, amount: int, funding_address: str) -> Transaction:
        registry_outputs, authorized_outputs, funding_outputs = self._fetch_outputs(
            self.contracts.registry.address,
            self.contracts.auction.address,
            funding_address,
        )
        inputs = AuctionInputs.select(
            self.assembler,
            amount=amount,
            registry_outputs=registry_outputs,
            authorized_outputs=authorized_outputs,
            funding_outputs=funding_outputs,
        )
        return build_auction_transaction(
            self.assembler, name=name, amount=amount, funding_address=funding_address, inputs=inputs
        )

    def create_bid(self, name: str, amount: int, funding_address: str) -> Transaction:
        registry_outputs, authorized_outputs, funding_outputs = self._fetch_outputs(
            self.contracts.registry.address,
            self.contracts.bid.address,
            funding_address,
        )
        inputs = BidInputs.select(
            self.assembler,
            name=name,
            amount=amount,
            registry_outputs=registry_outputs,
            authorized_outputs=authorized_outputs,
            funding_outputs=funding_outputs,
        )
        return build_bid_transaction(
            self.assembler, name=name, amount=amount, funding_address=funding_address, inputs=inputs
        )

    def claim_name(self, name: str) -> Transaction:
        registry_outputs, authorized_outputs = self._fetch_outputs(
            self.contracts.registry.address,
            self.contracts.factory.address,
        )
        auction = auction_from_output(
            find_running_auction_utxo(registry_outputs, name), self.contracts.network
        )
        bidder_outputs = self._outputs(auction.bidder_address)
        inputs = ClaimInputs.select(
            self.assembler,
            name=name,
            registry_outputs=registry_outputs,
            authorized_outputs=authorized_outputs,
            bidder_outputs=bidder_outputs,
        )
        return build_claim_transaction(self.assembler, name=name, inputs=inputs)

    def penalize_invalid_name(self, name: str, reward_to: str) -> Transaction:
        registry_outputs, authorized_outputs = self._fetch_outputs(
            self.contracts.registry.address,
            self.contracts.name_enforcer.address,
        )
        inputs = InvalidNameInputs.select(
            self.assembler,
            name=name,
            registry_outputs=registry_outputs,
            authorized_outputs=authorized_outputs,
        )
        return build_penalize_invalid_name_transaction(
            self.assembler, name=name, reward_to=reward_to, inputs=inputs
        )

    def penalize_duplicate_auction(self, name: str, reward_to: str) -> Transaction:
        registry_outputs, authorized_outputs = self._fetch_outputs(
            self.contracts.registry.address,
            self.contracts.conflict_resolver.address,
        )
        inputs = DuplicateAuctionInputs.select(
            self.assembler,
            name=name,
            registry_outputs=registry_outputs,
            authorized_outputs=authorized_outputs,
        )
        return build_penalize_duplicate_auction_transaction(
            self.assembler, name=name, reward_to=reward_to, inputs=inputs
        )

    def penalize_illegal_auction(self, name: str, reward_to: str) -> Transaction:
        registry_outputs, authorized_outputs, name_outputs = self._fetch_outputs(
            self.contracts.registry.address,
            self.contracts.ownership_guard.address,
            self.contracts.name_contract(name).address,
        )
        inputs = IllegalAuctionInputs.select(
            self.assembler,
            name=name,
            registry_outputs=registry_outputs,
            authorized_outputs=authorized_outputs,
            name_outputs=name_outputs,
        )
        return build_penalize_illegal_auction_transaction(
            self.assembler, name=name, reward_to=reward_to, inputs=inputs
        )

    def add_records(self, name: str, records: Sequence[str], owner_address: str) -> Transaction:
        name_outputs, owner_outputs = self._fetch_outputs(
            self.contracts.name_contract(name).address,
            owner_address,
        )
        inputs = RecordsInputs.select(
            self.assembler, name=name, name_outputs=name_outputs, owner_outputs=owner_outputs
        )
        return build_records_transaction(
            self.assembler, name=name, records=records, owner_address=owner_address, inputs=inputs
        )

    def accumulate(self, funding_address: str) -> Transaction:
        registry_outputs, authorized_outputs, funding_outputs = self._fetch_outputs(
            self.contracts.registry.address,
            self.contracts.accumulator.address,
            funding_address,
        )
        inputs = AccumulationInputs.select(
            self.assembler,
            registry_outputs=registry_outputs,
            authorized_outputs=authorized_outputs,
            funding_outputs=funding_outputs,
        )
        return build_accumulation_transaction(self.assembler, funding_address=funding_address, inputs=inputs)
