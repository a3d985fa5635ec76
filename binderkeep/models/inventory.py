from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from binderkeep.config import TRASH_FOLDER


@dataclass
class InventoryItem:
    """
    An inventory row together with its derived reservation state.

    Attributes:
        id: Inventory row id
        card_name: Display name as entered or imported
        set_code: Printing set code, if known
        quantity: Physical copies the row represents
        reserved_quantity: Copies claimed by deck reservations
        folder: Folder the row sits in (Trash marks a soft delete)
        purchase_price: Per-copy cost basis
    """

    id: int
    card_name: str
    set_code: str | None
    quantity: int
    reserved_quantity: int
    folder: str
    purchase_price: Decimal
    set_name: str | None = None
    foil: bool = False
    quality: str = "NM"
    image_url: str | None = None
    scryfall_id: str | None = None
    created_at: datetime | None = None

    @property
    def available(self) -> int:
        """Copies not claimed by any deck."""
        return self.quantity - self.reserved_quantity

    @property
    def in_trash(self) -> bool:
        return self.folder == TRASH_FOLDER


@dataclass(frozen=True)
class Candidate:
    """
    An inventory row offered to the selection policy for one slot.

    Candidates arrive already ordered (oldest, cheapest, lowest id first).
    """

    inventory_row_id: int
    available: int
    purchase_price: Decimal = Decimal("0")
    created_at: datetime | None = None
    folder: str | None = None


@dataclass(frozen=True)
class Allocation:
    """Copies the selection policy decided to take from one inventory row."""

    inventory_row_id: int
    take: int


@dataclass
class FolderSummary:
    """Aggregate figures for one folder of a user's inventory."""

    folder: str
    unique_cards: int = 0
    total_quantity: int = 0
    total_available: int = 0
    total_value: Decimal = field(default_factory=lambda: Decimal("0"))

    @property
    def is_trash(self) -> bool:
        return self.folder == TRASH_FOLDER


@dataclass
class Folder:
    """A folder an owner files inventory rows in."""

    id: int | None
    name: str
    description: str | None = None
    builtin: bool = False
    created_at: datetime | None = None
