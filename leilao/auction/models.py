"""Shared auction data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


@dataclass
class Item:
    id: int
    name: str
    description: str
    initial_price: float
    highest_bid: float = 0.0
    highest_bidder: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "initial_price": self.initial_price,
            "highest_bid": self.highest_bid,
            "highest_bidder": self.highest_bidder,
        }


@dataclass
class Bid:
    id: int
    item_id: int
    bidder: str
    value: float
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class BidStatus(str, Enum):
    ACCEPTED = "accepted"
    TOO_LOW = "too_low"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class BidResult:
    status: BidStatus
    item_id: int
    highest_bid: float = 0.0
