"""
Response models shared by the API routers.

Prices leave the service as plain JSON numbers.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from binderkeep.models.deck import DeckView, FillReport, ReservationView
from binderkeep.models.inventory import Candidate, InventoryItem
from binderkeep.models.sale import Sale, SaleOutcome


class OkResponse(BaseModel):
    ok: bool = True


class ReservationResponse(BaseModel):
    """A reservation joined with its inventory row."""

    id: int
    deck_id: int
    inventory_item_id: int
    card_name: str
    set_code: str | None = None
    quantity_reserved: int
    purchase_price: float
    folder: str
    original_folder: str | None = None

    @classmethod
    def from_view(cls, view: ReservationView) -> "ReservationResponse":
        return cls(
            id=view.id,
            deck_id=view.deck_id,
            inventory_item_id=view.inventory_row_id,
            card_name=view.card_name,
            set_code=view.set_code,
            quantity_reserved=view.quantity_reserved,
            purchase_price=float(view.purchase_price),
            folder=view.folder,
            original_folder=view.original_folder,
        )


class SlotResponse(BaseModel):
    card_name: str
    set_code: str | None = None
    required: int
    reserved: int
    missing: int
    extras: int


class DeckResponse(BaseModel):
    """Deck metadata and slot list."""

    id: int
    name: str
    commander: str | None = None
    format: str | None = None
    description: str | None = None
    is_instance: bool
    slot_mode: str
    slots: list[SlotResponse] = Field(default_factory=list)


class DeckDetailsResponse(BaseModel):
    """A deck with its reservations and aggregate counts."""

    deck: DeckResponse
    reservations: list[ReservationResponse] = Field(default_factory=list)
    reserved_count: int = 0
    decklist_total: int = 0
    missing_count: int = 0
    extras_count: int = 0
    total_cost: float = 0.0

    @classmethod
    def from_view(cls, view: DeckView) -> "DeckDetailsResponse":
        return cls(
            deck=DeckResponse(
                id=view.deck_id,
                name=view.name,
                commander=view.commander,
                format=view.format,
                description=view.description,
                is_instance=view.is_instance,
                slot_mode=view.slot_mode.value,
                slots=[
                    SlotResponse(
                        card_name=s.card_name,
                        set_code=s.set_code,
                        required=s.required,
                        reserved=s.reserved,
                        missing=s.missing,
                        extras=s.extras,
                    )
                    for s in view.slots
                ],
            ),
            reservations=[ReservationResponse.from_view(r) for r in view.reservations],
            reserved_count=view.reserved_count,
            decklist_total=view.decklist_total,
            missing_count=view.missing_count,
            extras_count=view.extras_count,
            total_cost=float(view.total_cost),
        )


class SlotFillResponse(BaseModel):
    card_name: str
    required: int
    filled: int
    reserved: int
    still_missing: int


class FillReportResponse(BaseModel):
    """Per-slot outcome of auto-fill or re-optimize."""

    deck_id: int
    slots: list[SlotFillResponse] = Field(default_factory=list)
    filled: int = 0
    missing_count: int = 0
    reserved_before: int = 0
    reserved_after: int = 0
    cost_before: float = 0.0
    cost_after: float = 0.0

    @classmethod
    def from_report(cls, report: FillReport) -> "FillReportResponse":
        return cls(
            deck_id=report.deck_id,
            slots=[
                SlotFillResponse(
                    card_name=s.card_name,
                    required=s.required,
                    filled=s.filled,
                    reserved=s.reserved,
                    still_missing=s.still_missing,
                )
                for s in report.slots
            ],
            filled=report.filled,
            missing_count=report.missing_count,
            reserved_before=report.reserved_before,
            reserved_after=report.reserved_after,
            cost_before=float(report.cost_before),
            cost_after=float(report.cost_after),
        )


class InventoryItemResponse(BaseModel):
    """An inventory row with derived reservation state."""

    id: int
    card_name: str
    set_code: str | None = None
    set_name: str | None = None
    quantity: int
    reserved_quantity: int
    available: int
    folder: str
    purchase_price: float
    foil: bool = False
    quality: str = "NM"
    image_url: str | None = None
    scryfall_id: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_item(cls, item: InventoryItem) -> "InventoryItemResponse":
        return cls(
            id=item.id,
            card_name=item.card_name,
            set_code=item.set_code,
            set_name=item.set_name,
            quantity=item.quantity,
            reserved_quantity=item.reserved_quantity,
            available=item.available,
            folder=item.folder,
            purchase_price=float(item.purchase_price),
            foil=item.foil,
            quality=item.quality,
            image_url=item.image_url,
            scryfall_id=item.scryfall_id,
            created_at=item.created_at,
        )


class CandidateResponse(BaseModel):
    inventory_item_id: int
    available: int
    purchase_price: float
    folder: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_candidate(cls, candidate: Candidate) -> "CandidateResponse":
        return cls(
            inventory_item_id=candidate.inventory_row_id,
            available=candidate.available,
            purchase_price=float(candidate.purchase_price),
            folder=candidate.folder,
            created_at=candidate.created_at,
        )


class SaleResponse(BaseModel):
    id: int
    item_type: str
    item_id: int | None = None
    item_name: str
    purchase_price: float
    sell_price: float
    quantity: int
    profit: float
    created_at: datetime | None = None

    @classmethod
    def from_sale(cls, sale: Sale) -> "SaleResponse":
        return cls(
            id=sale.id,
            item_type=sale.item_type.value,
            item_id=sale.item_id,
            item_name=sale.item_name,
            purchase_price=float(sale.purchase_price),
            sell_price=float(sale.sell_price),
            quantity=sale.quantity,
            profit=float(sale.profit),
            created_at=sale.created_at,
        )


class SaleOutcomeResponse(BaseModel):
    sale: SaleResponse
    deleted_item_ids: list[int] = Field(default_factory=list)
    missing_count: int = Field(
        default=0,
        description="Cards the deck was still missing when it was sold",
    )

    @classmethod
    def from_outcome(cls, outcome: SaleOutcome) -> "SaleOutcomeResponse":
        return cls(
            sale=SaleResponse.from_sale(outcome.sale),
            deleted_item_ids=outcome.deleted_row_ids,
            missing_count=outcome.missing_count,
        )
