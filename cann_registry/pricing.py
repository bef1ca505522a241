"""Auction pricing rules.

All amounts are integer satoshis. The registry covenants perform the same
arithmetic with VM integers, so nothing here may touch floating point.
"""

from __future__ import annotations

import math
from decimal import Decimal
from fractions import Fraction

MINIMAL_AUCTION_PRICE = 6000
MINIMAL_CREATOR_INCENTIVE = 1000
CREATOR_INCENTIVE_DEDUCTION = 5000
CREATOR_INCENTIVE_UPPER_BOUND = 100_000
PRICE_DECAY_SCALE = 1_000_000
PRICE_DECAY_FACTOR = 3


def auction_price(registration_id: int, min_starting_bid: int) -> int:
    """Return the opening price for the auction that will receive ``registration_id``.

    The price decays linearly as more names are registered and never drops
    below :data:`MINIMAL_AUCTION_PRICE`.
    """

    if registration_id < 0:
        raise ValueError("registration_id must be non-negative")
    decay_points = min_starting_bid * registration_id * PRICE_DECAY_FACTOR
    price_points = min_starting_bid * PRICE_DECAY_SCALE
    current = (price_points - decay_points) // PRICE_DECAY_SCALE
    return max(current, MINIMAL_AUCTION_PRICE)


def minimum_next_bid(current_amount: int, min_bid_increase_percentage: int | Fraction | Decimal) -> int:
    """Return the smallest acceptable bid over ``current_amount``, rounded up."""

    pct = Fraction(min_bid_increase_percentage)
    return math.ceil(Fraction(current_amount) * (100 + pct) / 100)


def creator_incentive(auction_price: int, registration_id: int) -> int:
    """Return the raw creator incentive for a finished auction.

    The result can be zero or negative for cheap auctions or registration ids
    past the upper bound; use :func:`payable_creator_incentive` to decide
    whether an output is emitted.
    """

    remaining = auction_price - CREATOR_INCENTIVE_DEDUCTION
    return remaining * (CREATOR_INCENTIVE_UPPER_BOUND - registration_id) // CREATOR_INCENTIVE_UPPER_BOUND


def payable_creator_incentive(auction_price: int, registration_id: int) -> int | None:
    """Return the incentive when it clears the minimum threshold, else ``None``."""

    incentive = creator_incentive(auction_price, registration_id)
    if incentive > MINIMAL_CREATOR_INCENTIVE:
        return incentive
    return None
