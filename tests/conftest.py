from __future__ import annotations

import json
from collections import defaultdict
from pathlib import Path
from typing import Dict, Iterable, List

import pytest

from cann_registry.address import (
    address_to_locking_bytecode,
    locking_bytecode_to_address,
    pkh_to_locking_bytecode,
    script_to_scripthash,
)
from cann_registry.assembler import AssemblerContext
from cann_registry.binary import encode_registration_id, is_op_return
from cann_registry.classifier import ClassificationContext, classify_utxos
from cann_registry.config import RegistryConfig
from cann_registry.covenants import CovenantArtifact, RegistryContracts
from cann_registry.model import UTXO, Capability, HistoryEntry, TokenData
from cann_registry.transaction import Transaction

CATEGORY = bytes(range(32)).hex()
FOREIGN_CATEGORY = "ff" * 32

ALICE_PKH = bytes([0x11]) * 20
BOB_PKH = bytes([0x22]) * 20
CAROL_PKH = bytes([0x33]) * 20
ALICE = locking_bytecode_to_address(pkh_to_locking_bytecode(ALICE_PKH))
BOB = locking_bytecode_to_address(pkh_to_locking_bytecode(BOB_PKH))
CAROL = locking_bytecode_to_address(pkh_to_locking_bytecode(CAROL_PKH))

MIN_STARTING_BID = 10000
MIN_BID_INCREASE_PERCENTAGE = 5
MIN_WAIT_TIME = 4194306
MAX_PLATFORM_FEE_PERCENTAGE = 50
COUNTER_SUPPLY = 1_000_000

ARTIFACT_SPECS = {
    "Registry": ([("tokenCategoryReversed", "bytes32")], [("call", [])]),
    "Auction": ([("minStartingBid", "int")], [("call", [("name", "bytes")])]),
    "Bid": ([("minBidIncreasePercentage", "int")], [("call", [])]),
    "Factory": (
        [("nameContractBytecode", "bytes"), ("minWaitTime", "int"), ("maxPlatformFeePercentage", "int")],
        [("call", [])],
    ),
    "ConflictResolver": ([], [("call", [])]),
    "NameEnforcer": ([], [("call", [("characterNumber", "int")])]),
    "OwnershipGuard": ([("nameContractBytecode", "bytes")], [("call", [])]),
    "Accumulator": ([], [("call", [])]),
    "Name": (
        [("name", "bytes"), ("tld", "bytes"), ("tokenCategoryReversed", "bytes32")],
        [("useAuth", [("authID", "int")]), ("burn", [])],
    ),
}


def txid_for(seed: int) -> str:
    return f"{seed:064x}"


def artifact_dict(name: str) -> dict:
    constructor, functions = ARTIFACT_SPECS[name]
    return {
        "contractName": name,
        "constructorInputs": [{"name": arg, "type": type_name} for arg, type_name in constructor],
        "abi": [
            {"name": fn, "inputs": [{"name": arg, "type": type_name} for arg, type_name in inputs]}
            for fn, inputs in functions
        ],
        # Opaque body; distinct per contract so argument-free covenants get distinct addresses.
        "debug": {"bytecode": ("75" + name.encode("utf-8").hex() + "7551")},
    }


@pytest.fixture
def artifacts() -> Dict[str, CovenantArtifact]:
    return {name: CovenantArtifact.from_dict(artifact_dict(name)) for name in ARTIFACT_SPECS}


@pytest.fixture
def artifacts_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "artifacts"
    directory.mkdir()
    for name in ARTIFACT_SPECS:
        (directory / f"{name}.json").write_text(json.dumps(artifact_dict(name)))
    return directory


@pytest.fixture
def contracts(artifacts) -> RegistryContracts:
    return RegistryContracts.build(
        artifacts,
        category=CATEGORY,
        tld=".bch",
        min_starting_bid=MIN_STARTING_BID,
        min_bid_increase_percentage=MIN_BID_INCREASE_PERCENTAGE,
        min_wait_time=MIN_WAIT_TIME,
        max_platform_fee_percentage=MAX_PLATFORM_FEE_PERCENTAGE,
    )


@pytest.fixture
def ctx(contracts) -> AssemblerContext:
    return AssemblerContext(
        contracts=contracts,
        min_starting_bid=MIN_STARTING_BID,
        min_bid_increase_percentage=MIN_BID_INCREASE_PERCENTAGE,
        min_wait_time=MIN_WAIT_TIME,
    )


@pytest.fixture
def config() -> RegistryConfig:
    return RegistryConfig(
        category=CATEGORY,
        min_starting_bid=MIN_STARTING_BID,
        min_bid_increase_percentage=MIN_BID_INCREASE_PERCENTAGE,
        min_wait_time=MIN_WAIT_TIME,
        max_platform_fee_percentage=MAX_PLATFORM_FEE_PERCENTAGE,
    )


@pytest.fixture
def classification(contracts) -> ClassificationContext:
    return ClassificationContext(contracts.category, contracts.authorized_lockings)


class StubLedger:
    """In-memory ledger: applying a transaction spends its inputs and adds its outputs."""

    def __init__(self) -> None:
        self.utxos: Dict[bytes, List[UTXO]] = defaultdict(list)
        self.transactions: Dict[str, str] = {}
        self.heights: Dict[str, int] = {}
        self.histories: Dict[bytes, List[HistoryEntry]] = defaultdict(list)

    def add_utxo(self, utxo: UTXO) -> UTXO:
        self.utxos[utxo.locking_bytecode].append(utxo)
        return utxo

    def add_transaction(self, tx: Transaction, height: int = 0) -> str:
        txid = tx.txid
        self.transactions[txid] = tx.to_hex()
        self.heights[txid] = height
        touched: List[bytes] = []
        for tx_in in tx.inputs:
            self._spend(tx_in.txid, tx_in.vout)
            if tx_in.utxo is not None:
                touched.append(tx_in.utxo.locking_bytecode)
        for vout, output in enumerate(tx.outputs):
            touched.append(output.locking_bytecode)
            if not is_op_return(output.locking_bytecode):
                self.utxos[output.locking_bytecode].append(
                    UTXO(
                        txid=txid,
                        vout=vout,
                        value=output.value,
                        locking_bytecode=output.locking_bytecode,
                        token=output.token,
                        height=height,
                    )
                )
        for locking in dict.fromkeys(touched):
            self.histories[locking].append(HistoryEntry(txid=txid, height=height))
        return txid

    def _spend(self, txid: str, vout: int) -> None:
        for locking, utxos in self.utxos.items():
            self.utxos[locking] = [utxo for utxo in utxos if utxo.outpoint != (txid, vout)]

    def get_unspent_outputs(self, address: str) -> List[UTXO]:
        return list(self.utxos.get(address_to_locking_bytecode(address), []))

    def get_transaction(self, txid: str) -> str:
        return self.transactions[txid]

    def get_address_history(self, address: str) -> List[HistoryEntry]:
        return list(self.histories.get(address_to_locking_bytecode(address), []))

    def get_transaction_height(self, txid: str) -> int:
        return self.heights[txid]

    def get_scripthash_history(self, scripthash: str) -> List[HistoryEntry]:
        for locking, entries in self.histories.items():
            if script_to_scripthash(locking) == scripthash:
                return list(entries)
        return []


def funding_utxo(seed: int, address: str, value: int) -> UTXO:
    return UTXO(txid=txid_for(seed), vout=0, value=value, locking_bytecode=address_to_locking_bytecode(address), height=50)


def thread_utxo(seed: int, contracts: RegistryContracts, covenant_locking: bytes, amount: int = 0) -> UTXO:
    return UTXO(
        txid=txid_for(seed),
        vout=0,
        value=1000,
        locking_bytecode=contracts.registry.locking_bytecode,
        token=TokenData(category=CATEGORY, amount=amount, capability=Capability.NONE, commitment=covenant_locking),
        height=50,
    )


def counter_utxo(seed: int, contracts: RegistryContracts, next_id: int = 1, supply: int = COUNTER_SUPPLY) -> UTXO:
    return UTXO(
        txid=txid_for(seed),
        vout=0,
        value=1000,
        locking_bytecode=contracts.registry.locking_bytecode,
        token=TokenData(
            category=CATEGORY,
            amount=supply,
            capability=Capability.MINTING,
            commitment=encode_registration_id(next_id),
        ),
        height=50,
    )


def minting_utxo(seed: int, contracts: RegistryContracts) -> UTXO:
    return UTXO(
        txid=txid_for(seed),
        vout=0,
        value=1000,
        locking_bytecode=contracts.registry.locking_bytecode,
        token=TokenData(category=CATEGORY, capability=Capability.MINTING),
        height=50,
    )


def auction_utxo(
    seed: int,
    contracts: RegistryContracts,
    name: str,
    *,
    bidder_pkh: bytes = ALICE_PKH,
    value: int = 10000,
    registration_id: int = 1,
) -> UTXO:
    return UTXO(
        txid=txid_for(seed),
        vout=3,
        value=value,
        locking_bytecode=contracts.registry.locking_bytecode,
        token=TokenData(
            category=CATEGORY,
            amount=registration_id,
            capability=Capability.MUTABLE,
            commitment=bidder_pkh + name.encode("utf-8"),
        ),
        height=60,
    )


def authorized_utxo(seed: int, locking_bytecode: bytes) -> UTXO:
    return UTXO(txid=txid_for(seed), vout=1, value=1000, locking_bytecode=locking_bytecode, height=50)


def registry_utxos(contracts: RegistryContracts, *, next_id: int = 1) -> List[UTXO]:
    """Initial registry state: one thread per authorized covenant, the counter and the minting NFT."""

    utxos = [
        thread_utxo(100 + index, contracts, contract.locking_bytecode)
        for index, contract in enumerate(contracts.authorized_contracts)
    ]
    utxos.append(counter_utxo(200, contracts, next_id=next_id))
    utxos.append(minting_utxo(201, contracts))
    return utxos


def seed_registry(ledger: StubLedger, contracts: RegistryContracts, *, next_id: int = 1) -> None:
    for utxo in registry_utxos(contracts, next_id=next_id):
        ledger.add_utxo(utxo)
    for index, contract in enumerate(contracts.authorized_contracts):
        ledger.add_utxo(authorized_utxo(300 + index, contract.locking_bytecode))


def classify(utxos: Iterable[UTXO], context: ClassificationContext):
    return classify_utxos(list(utxos), context)


@pytest.fixture
def ledger(contracts) -> StubLedger:
    ledger = StubLedger()
    seed_registry(ledger, contracts)
    return ledger
