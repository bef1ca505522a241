from __future__ import annotations

from dataclasses import replace

from cann_registry.binary import build_op_return, encode_registration_id
from cann_registry.model import Capability, NameStatus, TokenData
from cann_registry.services import NameService, RegistryService
from cann_registry.transaction import PlaceholderUnlocker, Transaction

from conftest import ALICE, CATEGORY, auction_utxo, funding_utxo


def publish(ledger, name_locking: bytes, seed: int, records, token=None) -> Transaction:
    tx = Transaction()
    tx.add_input(ledger.add_utxo(funding_utxo(seed, ALICE, 5000)), PlaceholderUnlocker(ALICE))
    tx.add_output(1000, name_locking, token)
    for record in records:
        tx.add_output(0, build_op_return(record.encode()))
    ledger.add_transaction(tx, 100 + seed)
    return tx


def test_records_require_a_registry_token_at_the_name_contract(ledger, contracts) -> None:
    service = NameService(ledger, contracts)
    name_locking = contracts.name_contract("alice").locking_bytecode
    auth = TokenData(category=CATEGORY, capability=Capability.NONE, commitment=encode_registration_id(1))

    publish(ledger, name_locking, 1, ["social.x=@spoofed"])
    publish(ledger, name_locking, 2, ["social.x=@alice", "text.bio=hi"], auth)
    publish(ledger, name_locking, 3, ["social.x=@alice"], auth)

    assert service.fetch_record_strings("alice") == ["social.x=@alice", "text.bio=hi"]
    assert service.fetch_records("alice") == {"social": {"x": "@alice"}, "text": {"bio": "hi"}}


def test_name_status_from_seeded_outputs(ledger, contracts) -> None:
    service = NameService(ledger, contracts)
    ledger.add_utxo(auction_utxo(40, contracts, "bob"))

    assert service.get_name("bob").status is NameStatus.AUCTIONING
    assert service.get_name("carol").status is NameStatus.AVAILABLE
    assert service.get_name("carol!").status is NameStatus.INVALID


def test_untraceable_auction_is_reported_without_origin(ledger, contracts) -> None:
    ledger.add_utxo(replace(auction_utxo(41, contracts, "bob"), vout=2))
    ledger.transactions[f"{41:064x}"] = Transaction().add_output(1, b"\x51").to_hex()

    [info] = RegistryService(ledger, contracts).get_auctions()

    assert info.auction.name == "bob"
    assert info.initial_amount is None
    assert info.created_txid is None
    assert info.to_jsonable()["current_amount"] == 10000


def test_past_auctions_empty_without_claims(ledger, contracts) -> None:
    assert RegistryService(ledger, contracts).get_past_auctions() == []
