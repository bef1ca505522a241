"""Off-chain library for a covenant-enforced CashTokens name registry."""

from .address import (
    address_to_locking_bytecode,
    decode_cashaddr,
    encode_cashaddr,
    locking_bytecode_to_address,
    to_token_address,
)
from .classifier import ClassificationContext, classify_utxo, classify_utxos
from .config import ConfigurationError, ElectrumConfig, RegistryConfig, load_registry_config
from .covenants import CovenantArtifact, RegistryContracts, load_artifacts
from .errors import (
    AmbiguousOwnershipError,
    BidTooLowError,
    InvalidInputError,
    InvalidNameError,
    NameNotClaimedError,
    ResolutionError,
    UTXONotFoundError,
)
from .manager import RegistryManager
from .model import UTXO, Auction, Capability, NameInfo, NameStatus, Role, RoleOutput, TokenData
from .names import find_first_invalid_character_index, is_valid_name, validate_name
from .pricing import auction_price, creator_incentive, minimum_next_bid
from .records import parse_records, revocation_record, serialize_records
from .resolver import Ownership, OwnershipResolver, ResolutionStrategy, lookup_address
from .transaction import Transaction

__all__ = [
    "AmbiguousOwnershipError",
    "Auction",
    "BidTooLowError",
    "Capability",
    "ClassificationContext",
    "ConfigurationError",
    "CovenantArtifact",
    "ElectrumConfig",
    "InvalidInputError",
    "InvalidNameError",
    "NameInfo",
    "NameNotClaimedError",
    "NameStatus",
    "Ownership",
    "OwnershipResolver",
    "RegistryConfig",
    "RegistryContracts",
    "RegistryManager",
    "ResolutionError",
    "ResolutionStrategy",
    "Role",
    "RoleOutput",
    "TokenData",
    "Transaction",
    "UTXO",
    "UTXONotFoundError",
    "address_to_locking_bytecode",
    "auction_price",
    "classify_utxo",
    "classify_utxos",
    "creator_incentive",
    "decode_cashaddr",
    "encode_cashaddr",
    "find_first_invalid_character_index",
    "is_valid_name",
    "load_artifacts",
    "load_registry_config",
    "locking_bytecode_to_address",
    "lookup_address",
    "minimum_next_bid",
    "parse_records",
    "revocation_record",
    "serialize_records",
    "to_token_address",
    "validate_name",
]
