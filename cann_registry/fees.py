"""Fee policy and two-pass fee sizing for registry transactions."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from .errors import InsufficientFundsError
from .transaction import Transaction

logger = logging.getLogger(__name__)

# Placeholder P2PKH inputs are serialized without their signature and public
# key, so the measured size undercounts. Two satoshis per measured byte covers
# the missing ~107 bytes per signed input at the 1 sat/byte relay minimum.
DEFAULT_FEE_RATE_SAT_PER_BYTE = 2.0
DUST_LIMIT_SATS = 546


def calculate_fee_sats(fee_rate_sat_per_byte: float, size: int) -> int:
    """Return the ceil'd fee in satoshis for the provided size."""

    return int(math.ceil(fee_rate_sat_per_byte * size))


@dataclass(frozen=True)
class FeePolicy:
    """Single fee rule applied by every builder: ``ceil(size * rate)``."""

    fee_rate_sat_per_byte: float = DEFAULT_FEE_RATE_SAT_PER_BYTE
    dust_limit: int = DUST_LIMIT_SATS

    def __post_init__(self) -> None:
        if self.fee_rate_sat_per_byte <= 0:
            raise ValueError(f"fee rate must be positive, got {self.fee_rate_sat_per_byte}")

    def fee_for(self, size: int) -> int:
        return calculate_fee_sats(self.fee_rate_sat_per_byte, size)


@dataclass(frozen=True)
class FeeSizingResult:
    size: int
    fee_sats: int
    change_value: int


def apply_fee_to_change(
    tx: Transaction,
    *,
    change_index: int,
    budget: int,
    policy: FeePolicy,
    label: str = "transaction",
) -> FeeSizingResult:
    """Measure ``tx`` and rewrite the change output to ``budget - fee``.

    ``budget`` is what the change output would receive with a zero fee: the
    funding value minus any amount the operation locks elsewhere. The output
    value is a fixed eight-byte field, so patching it never changes the size.
    """

    size = tx.size()
    fee = policy.fee_for(size)
    change_value = budget - fee
    if change_value < policy.dust_limit:
        logger.warning(
            "%s cannot cover fee: budget=%s fee=%s size=%s", label, budget, fee, size
        )
        raise InsufficientFundsError(
            f"Funding for {label} leaves {change_value} sats after a {fee} sat fee; "
            f"at least {policy.dust_limit} sats of change are required"
        )
    tx.outputs[change_index].value = change_value
    logger.debug("Sized %s: %s bytes, fee %s sats, change %s sats", label, size, fee, change_value)
    return FeeSizingResult(size=size, fee_sats=fee, change_value=change_value)
