"""Read-side views of the registry: name status, records and auctions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .address import locking_bytecode_to_address
from .binary import REGISTRATION_ID_LENGTH, decode_registration_id, is_op_return
from .classifier import (
    ClassificationContext,
    auction_from_output,
    classify_utxos,
    find_auction_utxos,
)
from .covenants import RegistryContracts
from .ledger import LedgerProvider, fetch_all, fetch_concurrently, fetch_decoded_transaction
from .model import Auction, NameInfo, NameStatus, Role, RoleOutput
from .names import bytes_to_name, is_valid_name
from .records import extract_records_from_transaction, parse_records
from .resolver import CLAIM_IDENTITY_OUTPUT, has_claim_shape
from .transaction import Transaction

logger = logging.getLogger(__name__)

AUCTION_CREATION_OUTPUT = 3
BID_AUCTION_OUTPUT = 2
BID_AUCTION_INPUT = 2
CLAIM_AUCTION_INPUT = 3
MAX_BID_TRACE = 1000


@dataclass(frozen=True)
class AuctionInfo:
    """A running auction with its opening bid traced back to creation."""

    auction: Auction
    initial_amount: Optional[int]
    created_txid: Optional[str]
    created_height: Optional[int]

    def to_jsonable(self) -> Dict[str, Any]:
        data = self.auction.to_jsonable()
        data.update(
            {
                "current_amount": self.auction.amount,
                "initial_amount": self.initial_amount,
                "created_txid": self.created_txid,
                "created_height": self.created_height,
            }
        )
        return data


@dataclass(frozen=True)
class PastAuction:
    name: str
    registration_id: int
    winner_address: str
    amount: Optional[int]
    claim_txid: str
    height: int

    def to_jsonable(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "registration_id": self.registration_id,
            "winner": self.winner_address,
            "amount": self.amount,
            "claim_txid": self.claim_txid,
            "height": self.height,
        }


class NameService:
    def __init__(self, ledger: LedgerProvider, contracts: RegistryContracts) -> None:
        self.ledger = ledger
        self.contracts = contracts
        self.context = ClassificationContext(contracts.category, contracts.authorized_lockings)

    def get_name(self, name: str) -> NameInfo:
        """Report whether ``name`` is registered, being auctioned or free."""

        name_contract = self.contracts.name_contract(name)
        if not is_valid_name(name):
            return NameInfo(name=name, address=name_contract.address, status=NameStatus.INVALID)
        registry_utxos, name_utxos = fetch_concurrently(
            lambda: self.ledger.get_unspent_outputs(self.contracts.registry.address),
            lambda: self.ledger.get_unspent_outputs(name_contract.address),
        )
        name_outputs = classify_utxos(name_utxos, self.context)
        if any(output.role in (Role.INTERNAL_AUTH, Role.EXTERNAL_AUTH) for output in name_outputs):
            status = NameStatus.REGISTERED
        elif find_auction_utxos(classify_utxos(registry_utxos, self.context), name):
            status = NameStatus.AUCTIONING
        else:
            status = NameStatus.AVAILABLE
        return NameInfo(name=name, address=name_contract.address, status=status, utxos=list(name_utxos))

    def fetch_record_strings(self, name: str) -> List[str]:
        """Return every record published for ``name``, oldest first, without repeats."""

        name_locking = self.contracts.name_contract(name).locking_bytecode
        history = self.ledger.get_address_history(self.contracts.name_contract(name).address)
        transactions = fetch_all(lambda entry: fetch_decoded_transaction(self.ledger, entry.txid), history)
        records: List[str] = []
        for tx in transactions:
            if not self._publishes_records(tx, name_locking):
                continue
            records.extend(extract_records_from_transaction(tx))
        return list(dict.fromkeys(records))

    def fetch_records(self, name: str) -> Dict[str, Any]:
        return parse_records(self.fetch_record_strings(name))

    def _publishes_records(self, tx: Transaction, name_locking: bytes) -> bool:
        has_data = any(output.value == 0 and is_op_return(output.locking_bytecode) for output in tx.outputs)
        has_auth = any(
            output.token is not None
            and output.token.category == self.contracts.category
            and output.locking_bytecode == name_locking
            for output in tx.outputs
        )
        return has_data and has_auth


class RegistryService:
    def __init__(self, ledger: LedgerProvider, contracts: RegistryContracts) -> None:
        self.ledger = ledger
        self.contracts = contracts
        self.context = ClassificationContext(contracts.category, contracts.authorized_lockings)

    def registry_outputs(self) -> List[RoleOutput]:
        return classify_utxos(self.ledger.get_unspent_outputs(self.contracts.registry.address), self.context)

    def get_auctions(self) -> List[AuctionInfo]:
        auctions = [
            auction_from_output(output, self.contracts.network)
            for output in self.registry_outputs()
            if output.role is Role.AUCTION
        ]
        return fetch_all(self._trace_auction, auctions)

    def _trace_auction(self, auction: Auction) -> AuctionInfo:
        """Follow the bid chain of ``auction`` back to the transaction that opened it."""

        txid, vout = auction.utxo.outpoint
        for _ in range(MAX_BID_TRACE):
            tx = fetch_decoded_transaction(self.ledger, txid)
            if vout == AUCTION_CREATION_OUTPUT:
                return AuctionInfo(
                    auction=auction,
                    initial_amount=tx.outputs[vout].value,
                    created_txid=txid,
                    created_height=self.ledger.get_transaction_height(txid),
                )
            if vout != BID_AUCTION_OUTPUT or len(tx.inputs) <= BID_AUCTION_INPUT:
                break
            previous = tx.inputs[BID_AUCTION_INPUT]
            txid, vout = previous.txid, previous.vout
        logger.warning("Could not trace auction for %r back to its creation", auction.name)
        return AuctionInfo(auction=auction, initial_amount=None, created_txid=None, created_height=None)

    def get_past_auctions(self) -> List[PastAuction]:
        """Return claimed auctions found in the Factory covenant's history."""

        entries = self.ledger.get_address_history(self.contracts.factory.address)
        history = list({entry.txid: entry for entry in entries}.values())
        transactions = fetch_all(lambda entry: fetch_decoded_transaction(self.ledger, entry.txid), history)
        claims = [
            (entry, tx)
            for entry, tx in zip(history, transactions)
            if has_claim_shape(tx, self.contracts.category)
        ]
        return fetch_all(lambda claim: self._past_auction(*claim), claims)

    def _past_auction(self, entry, tx: Transaction) -> PastAuction:
        identity = tx.outputs[CLAIM_IDENTITY_OUTPUT]
        spent = tx.inputs[CLAIM_AUCTION_INPUT]
        try:
            amount = fetch_decoded_transaction(self.ledger, spent.txid).outputs[spent.vout].value
        except IndexError:
            logger.warning("Claim %s spends a missing auction output %s:%s", entry.txid, spent.txid, spent.vout)
            amount = None
        return PastAuction(
            name=bytes_to_name(identity.token.commitment[REGISTRATION_ID_LENGTH:]),
            registration_id=decode_registration_id(identity.token.commitment[:REGISTRATION_ID_LENGTH]),
            winner_address=locking_bytecode_to_address(identity.locking_bytecode, self.contracts.network),
            amount=amount,
            claim_txid=entry.txid,
            height=entry.height,
        )
