"""
Deck API endpoints.

Decklist catalog, deck instances, and the reservation operations that tie
decks to physical inventory.
"""

from typing import Annotated

from fastapi import APIRouter, Body, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from binderkeep.api.dependencies import Catalog, OwnerId, Reservations
from binderkeep.api.schemas import (
    CandidateResponse,
    DeckDetailsResponse,
    FillReportResponse,
    OkResponse,
    ReservationResponse,
)
from binderkeep.db import decks as deck_store
from binderkeep.db.database import get_session
from binderkeep.db.inventory import query_for_slot
from binderkeep.models.card_ref import normalize
from binderkeep.models.deck import DeckSlot, SlotMode
from binderkeep.services.view_projector import deck_view, deck_views, instance_summaries

router = APIRouter(prefix="/decks", tags=["decks"])


class SlotRequest(BaseModel):
    card_name: str = Field(..., examples=["Sol Ring"])
    quantity: int = Field(default=1, description="Copies the deck requires")
    set_code: str | None = Field(
        default=None,
        description="Only this printing fills the slot when given",
    )

    def to_slot(self) -> DeckSlot:
        return DeckSlot(card_name=self.card_name, quantity=self.quantity, set_code=self.set_code)


class DeckCreateRequest(BaseModel):
    """Request model for creating a decklist or deck instance."""

    name: str
    commander: str | None = None
    format: str | None = None
    description: str | None = None
    is_instance: bool = Field(
        default=False,
        description="True for a deck that reserves inventory, False for a plain decklist",
    )
    slot_mode: SlotMode | None = Field(
        default=None,
        description="strict caps each slot at its requirement; permissive allows extras",
    )
    slots: list[SlotRequest] = Field(default_factory=list)
    decklist_text: str | None = Field(
        default=None,
        description="Pasted decklist, one card per line",
        examples=["1 Sol Ring (CMM)\n1 Command Tower\n30 Island"],
    )


class DeckUpdateRequest(BaseModel):
    name: str | None = None
    commander: str | None = None
    format: str | None = None
    description: str | None = None
    slot_mode: SlotMode | None = None


class SlotsReplaceRequest(BaseModel):
    slots: list[SlotRequest] = Field(default_factory=list)
    decklist_text: str | None = None


class AddCardRequest(BaseModel):
    inventory_item_id: int
    quantity: int = 1


class AddCardResponse(BaseModel):
    reservation: ReservationResponse


class RemoveCardRequest(BaseModel):
    reservation_id: int
    quantity: int = 1


class RemoveCardResponse(OkResponse):
    remaining: int = Field(..., description="Copies the reservation still holds")


class AutoFillSlotRequest(BaseModel):
    card_name: str
    count: int | None = Field(default=None, description="Reserve at most this many copies")


class ReleaseResponse(OkResponse):
    released_copies: int = 0
    restored_item_ids: list[int] = Field(default_factory=list)


class CopyToInventoryRequest(BaseModel):
    name: str | None = Field(default=None, description="Name for the new deck instance")


class CopyToInventoryResponse(BaseModel):
    deck: DeckDetailsResponse
    report: FillReportResponse


# --- Catalog ---


@router.get("", response_model=list[DeckDetailsResponse])
async def list_user_decks(
    owner_id: OwnerId,
    session: Annotated[AsyncSession, Depends(get_session)],
    instances: bool | None = None,
) -> list[DeckDetailsResponse]:
    """
    List decks, newest first.

    Pass `instances=true` for deck instances, `instances=false` for decklists.
    """
    views = await deck_views(session, owner_id, instances=instances)
    return [DeckDetailsResponse.from_view(v) for v in views]


@router.get("/instances", response_model=list[DeckDetailsResponse])
async def list_instances(
    owner_id: OwnerId,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> list[DeckDetailsResponse]:
    """Deck instances with reserved, missing, extras, and cost totals."""
    views = await instance_summaries(session, owner_id)
    return [DeckDetailsResponse.from_view(v) for v in views]


@router.post("", response_model=DeckDetailsResponse, status_code=201)
async def create_user_deck(
    request: DeckCreateRequest,
    owner_id: OwnerId,
    catalog: Catalog,
) -> DeckDetailsResponse:
    view = await catalog.create_deck(
        owner_id,
        request.name,
        commander=request.commander,
        format_name=request.format,
        description=request.description,
        is_instance=request.is_instance,
        slot_mode=request.slot_mode,
        slots=[s.to_slot() for s in request.slots],
        decklist_text=request.decklist_text,
    )
    return DeckDetailsResponse.from_view(view)


@router.patch("/{deck_id}", response_model=DeckDetailsResponse)
async def update_user_deck(
    deck_id: int,
    request: DeckUpdateRequest,
    owner_id: OwnerId,
    catalog: Catalog,
) -> DeckDetailsResponse:
    view = await catalog.update_deck(
        owner_id,
        deck_id,
        name=request.name,
        commander=request.commander,
        format_name=request.format,
        description=request.description,
        slot_mode=request.slot_mode,
    )
    return DeckDetailsResponse.from_view(view)


@router.put("/{deck_id}/slots", response_model=DeckDetailsResponse)
async def replace_slots(
    deck_id: int,
    request: SlotsReplaceRequest,
    owner_id: OwnerId,
    catalog: Catalog,
) -> DeckDetailsResponse:
    """Replace the slot list. Duplicate card names are merged."""
    view = await catalog.set_deck_slots(
        owner_id,
        deck_id,
        [s.to_slot() for s in request.slots],
        decklist_text=request.decklist_text,
    )
    return DeckDetailsResponse.from_view(view)


@router.delete("/{deck_id}", response_model=OkResponse)
async def delete_user_deck(deck_id: int, owner_id: OwnerId, catalog: Catalog) -> OkResponse:
    """Delete a deck with no reservations. Use release or sell otherwise."""
    await catalog.delete_deck(owner_id, deck_id)
    return OkResponse()


@router.get("/{deck_id}/details", response_model=DeckDetailsResponse)
async def get_deck_details(
    deck_id: int,
    owner_id: OwnerId,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> DeckDetailsResponse:
    view = await deck_view(session, owner_id, deck_id)
    return DeckDetailsResponse.from_view(view)


@router.get(
    "/{deck_id}/slots/{card_name}/candidates",
    response_model=list[CandidateResponse],
)
async def get_slot_candidates(
    deck_id: int,
    card_name: str,
    owner_id: OwnerId,
    session: Annotated[AsyncSession, Depends(get_session)],
    include_exhausted: Annotated[bool, Query()] = True,
) -> list[CandidateResponse]:
    """
    Inventory rows able to fill a slot, in the order auto-fill would use them.

    Honors the slot's set constraint when the deck has that slot.
    """
    deck = await deck_store.get_deck(session, owner_id, deck_id)
    key = normalize(card_name)
    slot = next((s for s in deck.slots if s.name_key == key), None)
    candidates = await query_for_slot(
        session, owner_id, card_name, set_code=slot.set_code if slot is not None else None
    )
    if not include_exhausted:
        candidates = [c for c in candidates if c.available > 0]
    return [CandidateResponse.from_candidate(c) for c in candidates]


# --- Reservations ---


@router.post("/{deck_id}/add-card", response_model=AddCardResponse)
async def add_card(
    deck_id: int,
    request: AddCardRequest,
    owner_id: OwnerId,
    service: Reservations,
) -> AddCardResponse:
    """
    Reserve copies of an inventory row for this deck.

    Reserves fewer copies than asked when fewer are available.
    """
    view = await service.add_card_to_deck(
        owner_id, deck_id, request.inventory_item_id, request.quantity
    )
    return AddCardResponse(reservation=ReservationResponse.from_view(view))


@router.delete("/{deck_id}/remove-card", response_model=RemoveCardResponse)
async def remove_card(
    deck_id: int,
    request: Annotated[RemoveCardRequest, Body()],
    owner_id: OwnerId,
    service: Reservations,
) -> RemoveCardResponse:
    remaining = await service.remove_card_from_deck(
        owner_id, deck_id, request.reservation_id, request.quantity
    )
    return RemoveCardResponse(remaining=remaining)


@router.post("/{deck_id}/auto-fill", response_model=FillReportResponse)
async def auto_fill(deck_id: int, owner_id: OwnerId, service: Reservations) -> FillReportResponse:
    report = await service.auto_fill_deck(owner_id, deck_id)
    return FillReportResponse.from_report(report)


@router.post("/{deck_id}/auto-fill-slot", response_model=FillReportResponse)
async def auto_fill_slot(
    deck_id: int,
    request: AutoFillSlotRequest,
    owner_id: OwnerId,
    service: Reservations,
) -> FillReportResponse:
    report = await service.auto_fill_slot(owner_id, deck_id, request.card_name, request.count)
    return FillReportResponse.from_report(report)


@router.post("/{deck_id}/reoptimize", response_model=FillReportResponse)
async def reoptimize(deck_id: int, owner_id: OwnerId, service: Reservations) -> FillReportResponse:
    """
    Release and re-fill the deck in one transaction.

    `reserved_after` may be lower than `reserved_before` when inventory left
    the candidate pool; `missing_count` shows what is still unfilled.
    """
    report = await service.reoptimize_deck(owner_id, deck_id)
    return FillReportResponse.from_report(report)


@router.post("/{deck_id}/release", response_model=ReleaseResponse)
async def release(
    deck_id: int,
    owner_id: OwnerId,
    service: Reservations,
    restore_folders: bool | None = None,
) -> ReleaseResponse:
    """Drop every reservation and delete the deck."""
    outcome = await service.release_deck(owner_id, deck_id, restore_folders=restore_folders)
    return ReleaseResponse(
        released_copies=outcome.released_copies,
        restored_item_ids=outcome.restored_row_ids,
    )


@router.post("/{deck_id}/copy-to-inventory", response_model=CopyToInventoryResponse)
async def copy_to_inventory(
    deck_id: int,
    owner_id: OwnerId,
    service: Reservations,
    request: Annotated[CopyToInventoryRequest | None, Body()] = None,
) -> CopyToInventoryResponse:
    """Create a deck instance from this decklist and auto-fill it."""
    name = request.name if request is not None else None
    view, report = await service.create_instance_from_decklist(owner_id, deck_id, name)
    return CopyToInventoryResponse(
        deck=DeckDetailsResponse.from_view(view),
        report=FillReportResponse.from_report(report),
    )
