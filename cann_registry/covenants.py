"""Covenant artifacts, address derivation and unlock intents.

Compiled contracts are treated as opaque: an artifact supplies the body
bytecode and the argument types of its constructor and functions. A contract
instance prepends the encoded constructor arguments, pushed in reverse order,
to the body; its address is the P2SH32 hash of that redeem script. Spending an
instance pushes the function arguments in reverse, a function selector when
the artifact has more than one function, and finally the redeem script.
"""

from __future__ import annotations

import json
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Sequence, Tuple

from .address import build_p2sh32_locking_bytecode, locking_bytecode_to_address
from .binary import encode_vm_number, push_data
from .errors import ArtifactError
from .names import name_to_bytes

logger = logging.getLogger(__name__)

REGISTRY = "Registry"
AUCTION = "Auction"
BID = "Bid"
FACTORY = "Factory"
CONFLICT_RESOLVER = "ConflictResolver"
NAME_ENFORCER = "NameEnforcer"
OWNERSHIP_GUARD = "OwnershipGuard"
ACCUMULATOR = "Accumulator"
NAME = "Name"

# Most recently used per-name contracts kept by a RegistryContracts.
NAME_CACHE_SIZE = 1024

CONTRACT_NAMES = (
    REGISTRY,
    AUCTION,
    BID,
    FACTORY,
    CONFLICT_RESOLVER,
    NAME_ENFORCER,
    OWNERSHIP_GUARD,
    ACCUMULATOR,
    NAME,
)

NAME_AUTH_EXTERNAL = 0
NAME_AUTH_INTERNAL = 1


@dataclass(frozen=True)
class AbiFunction:
    name: str
    input_types: Tuple[str, ...] = ()


def encode_argument(value: Any, type_name: str) -> bytes:
    """Encode a constructor or function argument as its stack item."""

    if type_name == "int":
        if isinstance(value, bool) or not isinstance(value, int):
            raise ArtifactError(f"Expected an int argument, got {value!r}")
        return encode_vm_number(value)
    if type_name == "bool":
        return encode_vm_number(1 if value else 0)
    if type_name == "string":
        if not isinstance(value, str):
            raise ArtifactError(f"Expected a string argument, got {value!r}")
        return value.encode("utf-8")
    if type_name.startswith("bytes") or type_name in {"pubkey", "sig", "datasig"}:
        if isinstance(value, str):
            try:
                value = bytes.fromhex(value)
            except ValueError as exc:
                raise ArtifactError(f"Invalid hex for {type_name} argument: {value!r}") from exc
        if not isinstance(value, (bytes, bytearray)):
            raise ArtifactError(f"Expected bytes for {type_name} argument, got {value!r}")
        width = type_name[5:]
        if type_name.startswith("bytes") and width and len(value) != int(width):
            raise ArtifactError(f"{type_name} argument must be {width} bytes, got {len(value)}")
        return bytes(value)
    raise ArtifactError(f"Unsupported argument type {type_name!r}")


@dataclass(frozen=True)
class CovenantArtifact:
    contract_name: str
    constructor_types: Tuple[str, ...]
    functions: Tuple[AbiFunction, ...]
    bytecode: bytes

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CovenantArtifact":
        try:
            contract_name = str(data["contractName"])
            constructor_types = tuple(str(item["type"]) for item in data.get("constructorInputs", []))
            functions = tuple(
                AbiFunction(
                    name=str(entry["name"]),
                    input_types=tuple(str(item["type"]) for item in entry.get("inputs", [])),
                )
                for entry in data.get("abi", [])
            )
            bytecode_hex = (data.get("debug") or {}).get("bytecode")
        except (KeyError, TypeError) as exc:
            raise ArtifactError(f"Malformed artifact: {exc}") from exc
        if not bytecode_hex:
            raise ArtifactError(f"Artifact {contract_name} has no debug.bytecode hex")
        try:
            bytecode = bytes.fromhex(bytecode_hex)
        except ValueError as exc:
            raise ArtifactError(f"Artifact {contract_name} bytecode is not hex") from exc
        if not functions:
            raise ArtifactError(f"Artifact {contract_name} declares no functions")
        return cls(
            contract_name=contract_name,
            constructor_types=constructor_types,
            functions=functions,
            bytecode=bytecode,
        )

    @classmethod
    def load(cls, path: str | Path) -> "CovenantArtifact":
        path = Path(path)
        try:
            data = json.loads(path.read_text())
        except FileNotFoundError as exc:
            raise ArtifactError(f"Artifact file not found: {path}") from exc
        except json.JSONDecodeError as exc:
            raise ArtifactError(f"Invalid JSON in artifact {path}: {exc}") from exc
        return cls.from_dict(data)

    def function_index(self, name: str) -> int:
        for index, function in enumerate(self.functions):
            if function.name == name:
                return index
        raise ArtifactError(f"{self.contract_name} has no function named {name!r}")

    def instantiate(self, args: Sequence[Any], *, network: str = "mainnet") -> "ContractInstance":
        if len(args) != len(self.constructor_types):
            raise ArtifactError(
                f"{self.contract_name} expects {len(self.constructor_types)} constructor arguments, got {len(args)}"
            )
        encoded = tuple(encode_argument(value, type_name) for value, type_name in zip(args, self.constructor_types))
        return ContractInstance(artifact=self, encoded_args=encoded, network=network)


def load_artifacts(directory: str | Path, names: Iterable[str] = CONTRACT_NAMES) -> Dict[str, CovenantArtifact]:
    """Load ``<Name>.json`` for every contract in ``names`` from ``directory``."""

    base = Path(directory).expanduser()
    artifacts = {}
    for name in names:
        artifact = CovenantArtifact.load(base / f"{name}.json")
        if artifact.contract_name != name:
            logger.warning("Artifact %s.json declares contractName %s", name, artifact.contract_name)
        artifacts[name] = artifact
    return artifacts


@dataclass(frozen=True)
class ContractInstance:
    artifact: CovenantArtifact
    encoded_args: Tuple[bytes, ...]
    network: str = "mainnet"

    @property
    def name(self) -> str:
        return self.artifact.contract_name

    @property
    def redeem_script(self) -> bytes:
        pushes = b"".join(push_data(arg) for arg in reversed(self.encoded_args))
        return pushes + self.artifact.bytecode

    @property
    def locking_bytecode(self) -> bytes:
        return build_p2sh32_locking_bytecode(self.redeem_script)

    @property
    def address(self) -> str:
        return locking_bytecode_to_address(self.locking_bytecode, self.network)

    @property
    def token_address(self) -> str:
        return locking_bytecode_to_address(self.locking_bytecode, self.network, token_aware=True)

    def unlock(self, function: str, *args: Any) -> "ContractUnlocker":
        index = self.artifact.function_index(function)
        input_types = self.artifact.functions[index].input_types
        if len(args) != len(input_types):
            raise ArtifactError(
                f"{self.name}.{function} expects {len(input_types)} arguments, got {len(args)}"
            )
        encoded = tuple(encode_argument(value, type_name) for value, type_name in zip(args, input_types))
        return ContractUnlocker(contract=self, function=function, arguments=encoded)


@dataclass(frozen=True)
class ContractUnlocker:
    contract: ContractInstance
    function: str
    arguments: Tuple[bytes, ...] = ()

    def unlocking_bytecode(self) -> bytes:
        parts = [push_data(arg) for arg in reversed(self.arguments)]
        if len(self.contract.artifact.functions) > 1:
            index = self.contract.artifact.function_index(self.function)
            parts.append(push_data(encode_vm_number(index)))
        parts.append(push_data(self.contract.redeem_script))
        return b"".join(parts)


@dataclass
class RegistryContracts:
    """The covenant set of one registry instance (one token category)."""

    category: str
    tld: str
    network: str
    registry: ContractInstance
    auction: ContractInstance
    bid: ContractInstance
    factory: ContractInstance
    conflict_resolver: ContractInstance
    name_enforcer: ContractInstance
    ownership_guard: ContractInstance
    accumulator: ContractInstance
    name_artifact: CovenantArtifact
    _name_cache: OrderedDict[str, ContractInstance] = field(default_factory=OrderedDict, repr=False)

    @classmethod
    def build(
        cls,
        artifacts: Mapping[str, CovenantArtifact],
        *,
        category: str,
        tld: str,
        network: str = "mainnet",
        min_starting_bid: int,
        min_bid_increase_percentage: int,
        min_wait_time: int,
        max_platform_fee_percentage: int,
    ) -> "RegistryContracts":
        missing = [name for name in CONTRACT_NAMES if name not in artifacts]
        if missing:
            raise ArtifactError(f"Missing covenant artifacts: {', '.join(missing)}")
        reversed_category = bytes.fromhex(category)[::-1]
        name_partial_bytecode = artifacts[NAME].bytecode

        def make(name: str, *args: Any) -> ContractInstance:
            return artifacts[name].instantiate(args, network=network)

        return cls(
            category=category,
            tld=tld,
            network=network,
            registry=make(REGISTRY, reversed_category),
            auction=make(AUCTION, min_starting_bid),
            bid=make(BID, min_bid_increase_percentage),
            factory=make(FACTORY, name_partial_bytecode, min_wait_time, max_platform_fee_percentage),
            conflict_resolver=make(CONFLICT_RESOLVER),
            name_enforcer=make(NAME_ENFORCER),
            ownership_guard=make(OWNERSHIP_GUARD, name_partial_bytecode),
            accumulator=make(ACCUMULATOR),
            name_artifact=artifacts[NAME],
        )

    @classmethod
    def from_config(cls, config: Any) -> "RegistryContracts":
        """Build the set from a :class:`cann_registry.config.RegistryConfig`."""

        if not config.artifacts_dir:
            raise ArtifactError("artifacts_dir is not configured")
        return cls.build(
            load_artifacts(config.artifacts_dir),
            category=config.category,
            tld=config.tld,
            network=config.network,
            min_starting_bid=config.min_starting_bid,
            min_bid_increase_percentage=config.min_bid_increase_percentage,
            min_wait_time=config.min_wait_time,
            max_platform_fee_percentage=config.max_platform_fee_percentage,
        )

    def name_contract(self, name: str) -> ContractInstance:
        """Return the per-name contract whose address holds the name's auth tokens."""

        cached = self._name_cache.get(name)
        if cached is not None:
            self._name_cache.move_to_end(name)
            return cached
        instance = self.name_artifact.instantiate(
            (name_to_bytes(name), self.tld.encode("utf-8"), bytes.fromhex(self.category)[::-1]),
            network=self.network,
        )
        self._name_cache[name] = instance
        if len(self._name_cache) > NAME_CACHE_SIZE:
            self._name_cache.popitem(last=False)
        return instance

    @property
    def authorized_contracts(self) -> Tuple[ContractInstance, ...]:
        """Covenants that take part in registry transactions through a thread NFT."""

        return (
            self.auction,
            self.bid,
            self.factory,
            self.conflict_resolver,
            self.name_enforcer,
            self.ownership_guard,
            self.accumulator,
        )

    @property
    def authorized_lockings(self) -> frozenset[bytes]:
        return frozenset(contract.locking_bytecode for contract in self.authorized_contracts)
