from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum


class SaleItemType(str, Enum):
    CARD = "card"
    DECK = "deck"


@dataclass
class Sale:
    """
    A recorded sale.

    For card sales `purchase_price` and `sell_price` are per copy.
    For deck sales they are the whole deck's cost basis and price, with
    quantity 1.
    """

    id: int
    item_type: SaleItemType
    item_id: int | None
    item_name: str
    purchase_price: Decimal
    sell_price: Decimal
    quantity: int
    profit: Decimal
    created_at: datetime | None = None


def compute_profit(purchase_price: Decimal, sell_price: Decimal, quantity: int) -> Decimal:
    """(sell - purchase) x quantity."""
    return (sell_price - purchase_price) * quantity


@dataclass
class SaleOutcome:
    """Result of a sell operation, including the inventory it consumed."""

    sale: Sale
    deleted_row_ids: list[int] = field(default_factory=list)
    # Slots still unreserved when a deck was sold
    missing_count: int = 0
