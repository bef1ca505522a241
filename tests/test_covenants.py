from __future__ import annotations

import json
from pathlib import Path

import pytest

from cann_registry import covenants
from cann_registry.address import build_p2sh32_locking_bytecode
from cann_registry.binary import push_data
from cann_registry.covenants import (
    CONTRACT_NAMES,
    NAME_AUTH_INTERNAL,
    CovenantArtifact,
    RegistryContracts,
    encode_argument,
    load_artifacts,
)
from cann_registry.errors import ArtifactError

from conftest import CATEGORY, MIN_STARTING_BID, artifact_dict


def test_load_artifacts_from_directory(artifacts_dir: Path) -> None:
    artifacts = load_artifacts(artifacts_dir)
    assert set(artifacts) == set(CONTRACT_NAMES)
    assert artifacts["Name"].functions[0].name == "useAuth"
    assert artifacts["Factory"].constructor_types == ("bytes", "int", "int")


def test_load_artifacts_reports_missing_and_invalid_files(tmp_path: Path) -> None:
    with pytest.raises(ArtifactError, match="not found"):
        load_artifacts(tmp_path)
    (tmp_path / "Registry.json").write_text("{not json")
    with pytest.raises(ArtifactError, match="Invalid JSON"):
        load_artifacts(tmp_path, names=["Registry"])


def test_artifact_requires_bytecode_and_functions() -> None:
    data = artifact_dict("Bid")
    data["debug"] = {}
    with pytest.raises(ArtifactError, match="bytecode"):
        CovenantArtifact.from_dict(data)
    data = artifact_dict("Bid")
    data["abi"] = []
    with pytest.raises(ArtifactError, match="no functions"):
        CovenantArtifact.from_dict(data)


def test_redeem_script_pushes_constructor_args_in_reverse(contracts: RegistryContracts) -> None:
    auction = contracts.auction
    assert auction.redeem_script == b"\x02\x10\x27" + auction.artifact.bytecode
    assert auction.locking_bytecode == build_p2sh32_locking_bytecode(auction.redeem_script)

    registry = contracts.registry
    reversed_category = bytes.fromhex(CATEGORY)[::-1]
    assert registry.redeem_script == push_data(reversed_category) + registry.artifact.bytecode

    factory = contracts.factory
    expected_prefix = push_data(b"\x32") + push_data(b"\x02\x00\x40") + push_data(contracts.name_artifact.bytecode)
    assert factory.redeem_script.startswith(expected_prefix)


def test_single_function_unlock_has_no_selector(contracts: RegistryContracts) -> None:
    registry = contracts.registry
    assert registry.unlock("call").unlocking_bytecode() == push_data(registry.redeem_script)

    enforcer = contracts.name_enforcer
    assert enforcer.unlock("call", 4).unlocking_bytecode() == b"\x54" + push_data(enforcer.redeem_script)


def test_multi_function_unlock_pushes_selector(contracts: RegistryContracts) -> None:
    name = contracts.name_contract("alice")
    internal = name.unlock("useAuth", NAME_AUTH_INTERNAL).unlocking_bytecode()
    assert internal == b"\x51" + b"\x00" + push_data(name.redeem_script)

    burn = name.unlock("burn").unlocking_bytecode()
    assert burn == b"\x51" + push_data(name.redeem_script)


def test_unlock_validates_arguments(contracts: RegistryContracts) -> None:
    with pytest.raises(ArtifactError):
        contracts.auction.unlock("call")
    with pytest.raises(ArtifactError):
        contracts.auction.unlock("missing", b"alice")
    with pytest.raises(ArtifactError):
        contracts.name_enforcer.unlock("call", "4")


def test_encode_argument_types() -> None:
    assert encode_argument(True, "bool") == b"\x01"
    assert encode_argument("ab", "string") == b"ab"
    assert encode_argument("0a0b", "bytes") == b"\x0a\x0b"
    with pytest.raises(ArtifactError):
        encode_argument(b"\x00" * 31, "bytes32")
    with pytest.raises(ArtifactError):
        encode_argument(1, "sig64")


def test_name_contracts_are_cached_and_distinct(contracts: RegistryContracts) -> None:
    alice = contracts.name_contract("alice")
    assert contracts.name_contract("alice") is alice
    assert contracts.name_contract("Alice").address != alice.address
    assert alice.redeem_script.startswith(
        push_data(bytes.fromhex(CATEGORY)[::-1]) + push_data(b".bch") + push_data(b"alice")
    )


def test_name_contract_cache_is_bounded(contracts: RegistryContracts, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(covenants, "NAME_CACHE_SIZE", 2)
    alice = contracts.name_contract("alice")
    contracts.name_contract("bob")
    assert contracts.name_contract("alice") is alice

    contracts.name_contract("carol")

    assert list(contracts._name_cache) == ["alice", "carol"]
    assert contracts.name_contract("bob").address == contracts.name_contract("bob").address
    assert len(contracts._name_cache) == 2


def test_authorized_contracts_have_distinct_lockings(contracts: RegistryContracts) -> None:
    assert len(contracts.authorized_lockings) == 7
    assert contracts.registry.locking_bytecode not in contracts.authorized_lockings


def test_build_requires_every_artifact(artifacts) -> None:
    partial = dict(artifacts)
    del partial["Accumulator"]
    with pytest.raises(ArtifactError, match="Accumulator"):
        RegistryContracts.build(
            partial,
            category=CATEGORY,
            tld=".bch",
            min_starting_bid=MIN_STARTING_BID,
            min_bid_increase_percentage=5,
            min_wait_time=1,
            max_platform_fee_percentage=50,
        )


def test_from_config_loads_artifacts(config, artifacts_dir: Path) -> None:
    config.artifacts_dir = artifacts_dir
    contracts = RegistryContracts.from_config(config)
    assert contracts.category == CATEGORY

    config.artifacts_dir = None
    with pytest.raises(ArtifactError):
        RegistryContracts.from_config(config)


def test_artifact_file_matches_dict(artifacts_dir: Path) -> None:
    data = json.loads((artifacts_dir / "Bid.json").read_text())
    assert CovenantArtifact.load(artifacts_dir / "Bid.json") == CovenantArtifact.from_dict(data)
