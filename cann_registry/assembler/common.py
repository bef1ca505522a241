"""Pieces shared by every registry transaction builder."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..covenants import RegistryContracts
from ..errors import InsufficientFundsError
from ..fees import FeePolicy, apply_fee_to_change
from ..model import RoleOutput, TokenData
from ..transaction import Transaction, check_token_conservation

logger = logging.getLogger(__name__)

TOKEN_OUTPUT_VALUE = 1000
AUCTION_FUNDING_HEADROOM = 3500
MIN_FEE_FUNDING = 2000


@dataclass(frozen=True)
class AssemblerContext:
    """Deployment parameters every builder needs."""

    contracts: RegistryContracts
    min_starting_bid: int
    min_bid_increase_percentage: int
    min_wait_time: int
    creator_incentive_address: str | None = None
    fee_policy: FeePolicy = FeePolicy()

    @property
    def category(self) -> str:
        return self.contracts.category

    @property
    def network(self) -> str:
        return self.contracts.network

    @classmethod
    def from_config(cls, config, contracts: RegistryContracts) -> "AssemblerContext":
        return cls(
            contracts=contracts,
            min_starting_bid=config.min_starting_bid,
            min_bid_increase_percentage=config.min_bid_increase_percentage,
            min_wait_time=config.min_wait_time,
            creator_incentive_address=config.creator_incentive_address,
            fee_policy=FeePolicy(fee_rate_sat_per_byte=config.fee_rate),
        )


def reemit(
    tx: Transaction,
    output: RoleOutput,
    *,
    locking_bytecode: bytes | None = None,
    token: TokenData | None = None,
) -> None:
    """Append an output that recreates ``output``, optionally with a new token or location."""

    utxo = output.utxo
    tx.add_output(
        utxo.value,
        utxo.locking_bytecode if locking_bytecode is None else locking_bytecode,
        utxo.token if token is None else token,
    )


def require_funds(available: int, required: int, label: str) -> None:
    if available < required:
        raise InsufficientFundsError(
            f"{label} needs at least {required} sats but the selected input holds {available}"
        )


def finalize(
    ctx: AssemblerContext,
    tx: Transaction,
    *,
    change_index: int,
    budget: int,
    label: str,
) -> Transaction:
    """Size the fee into the change output and check token conservation."""

    result = apply_fee_to_change(
        tx, change_index=change_index, budget=budget, policy=ctx.fee_policy, label=label
    )
    check_token_conservation(tx)
    logger.info(
        "Built %s: %d inputs, %d outputs, %d bytes, fee %d sats",
        label,
        len(tx.inputs),
        len(tx.outputs),
        result.size,
        result.fee_sats,
    )
    return tx
