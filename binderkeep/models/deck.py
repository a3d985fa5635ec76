from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum


class SlotMode(str, Enum):
    """How strictly a deck caps reservations at each slot's requirement."""

    STRICT = "strict"  # reservations never exceed a slot's requirement
    PERMISSIVE = "permissive"  # extras allowed, reported separately


@dataclass(frozen=True)
class DeckSlot:
    """
    One entry of a deck's declared list.

    Attributes:
        card_name: Display name of the card
        quantity: Copies the deck requires
        set_code: Optional printing constraint; None accepts any printing
    """

    card_name: str
    quantity: int
    set_code: str | None = None


@dataclass
class SlotFill:
    """Outcome of filling one slot during auto-fill or re-optimize."""

    card_name: str
    required: int
    filled: int  # copies newly reserved by this call
    reserved: int  # copies held for the slot after this call
    still_missing: int


@dataclass
class FillReport:
    """Per-slot outcome of an auto-fill or re-optimize pass."""

    deck_id: int
    slots: list[SlotFill] = field(default_factory=list)
    reserved_before: int = 0
    reserved_after: int = 0
    cost_before: Decimal = field(default_factory=lambda: Decimal("0"))
    cost_after: Decimal = field(default_factory=lambda: Decimal("0"))

    @property
    def filled(self) -> int:
        """Copies newly reserved across all slots."""
        return sum(s.filled for s in self.slots)

    @property
    def missing_count(self) -> int:
        return sum(s.still_missing for s in self.slots)


@dataclass
class SlotView:
    """Fill status of one slot in a deck view."""

    card_name: str
    required: int
    reserved: int
    set_code: str | None = None

    @property
    def missing(self) -> int:
        return max(0, self.required - self.reserved)

    @property
    def extras(self) -> int:
        return max(0, self.reserved - self.required)

    @property
    def is_filled(self) -> bool:
        return self.reserved >= self.required


@dataclass
class ReservationView:
    """A reservation joined with the inventory row it claims."""

    id: int
    deck_id: int
    inventory_row_id: int
    card_name: str
    set_code: str | None
    quantity_reserved: int
    purchase_price: Decimal
    folder: str
    original_folder: str | None
    inventory_quantity: int

    @property
    def cost(self) -> Decimal:
        return self.purchase_price * self.quantity_reserved


@dataclass
class DeckView:
    """
    Read model of one deck: what it holds, what it lacks, what it cost.

    Counts follow the decklist, not the inventory: a reservation whose card
    has no slot counts as an extra.
    """

    deck_id: int
    name: str
    commander: str | None = None
    format: str | None = None
    description: str | None = None
    is_instance: bool = False
    slot_mode: SlotMode = SlotMode.STRICT
    slots: list[SlotView] = field(default_factory=list)
    reservations: list[ReservationView] = field(default_factory=list)
    reserved_count: int = 0
    decklist_total: int = 0
    missing_count: int = 0
    extras_count: int = 0
    total_cost: Decimal = field(default_factory=lambda: Decimal("0"))

    @property
    def is_complete(self) -> bool:
        """True if every slot is fully reserved."""
        return all(slot.is_filled for slot in self.slots)


@dataclass
class ReleaseOutcome:
    """What releasing a deck gave back to the inventory."""

    deck_id: int
    released_copies: int = 0
    restored_row_ids: list[int] = field(default_factory=list)
