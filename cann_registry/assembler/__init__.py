"""Per-operation registry transaction builders.

Each builder takes outputs that were fetched and classified beforehand,
selected through the matching ``*Inputs.select`` helper, and returns an
unsigned :class:`~cann_registry.transaction.Transaction` whose change output
has been sized for the fee and whose token amounts balance.
"""

from .accumulation import AccumulationInputs, build_accumulation_transaction
from .auction import AuctionInputs, build_auction_transaction
from .bid import BidInputs, build_bid_transaction
from .claim import ClaimInputs, build_claim_transaction
from .common import (
    AUCTION_FUNDING_HEADROOM,
    MIN_FEE_FUNDING,
    TOKEN_OUTPUT_VALUE,
    AssemblerContext,
)
from .penalties import (
    DuplicateAuctionInputs,
    IllegalAuctionInputs,
    InvalidNameInputs,
    build_penalize_duplicate_auction_transaction,
    build_penalize_illegal_auction_transaction,
    build_penalize_invalid_name_transaction,
)
from .records import RecordsInputs, build_records_transaction

__all__ = [
    "AUCTION_FUNDING_HEADROOM",
    "MIN_FEE_FUNDING",
    "TOKEN_OUTPUT_VALUE",
    "AccumulationInputs",
    "AssemblerContext",
    "AuctionInputs",
    "BidInputs",
    "ClaimInputs",
    "DuplicateAuctionInputs",
    "IllegalAuctionInputs",
    "InvalidNameInputs",
    "RecordsInputs",
    "build_accumulation_transaction",
    "build_auction_transaction",
    "build_bid_transaction",
    "build_claim_transaction",
    "build_penalize_duplicate_auction_transaction",
    "build_penalize_illegal_auction_transaction",
    "build_penalize_invalid_name_transaction",
    "build_records_transaction",
]
