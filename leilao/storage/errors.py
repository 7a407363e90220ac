"""Errors raised by item store backends."""

from __future__ import annotations

import math


class InvalidArgument(ValueError):
    """Raised when an item or bid violates the store preconditions."""


class StorageFailure(RuntimeError):
    """Raised when the underlying driver fails."""


def check_new_item(name: str, initial_price: float) -> None:
    if not name or not name.strip():
        raise InvalidArgument("item name must not be empty")
    if not math.isfinite(initial_price) or initial_price < 0:
        raise InvalidArgument("initial price must be a non-negative number")


def check_bid(bidder: str, value: float) -> None:
    if not bidder or not bidder.strip():
        raise InvalidArgument("bidder must not be empty")
    if not math.isfinite(value) or value <= 0:
        raise InvalidArgument("bid value must be greater than zero")
