"""
Reservation move endpoints (drag and drop between decks and folders).
"""

from fastapi import APIRouter
from pydantic import BaseModel

from binderkeep.api.dependencies import OwnerId, Reservations
from binderkeep.api.schemas import InventoryItemResponse, ReservationResponse

router = APIRouter(prefix="/reservations", tags=["reservations"])


class MoveToDeckRequest(BaseModel):
    target_deck_id: int


class MoveToFolderRequest(BaseModel):
    folder: str


@router.post("/{reservation_id}/move-to-deck", response_model=ReservationResponse)
async def move_to_deck(
    reservation_id: int,
    request: MoveToDeckRequest,
    owner_id: OwnerId,
    service: Reservations,
) -> ReservationResponse:
    """Move a reservation to another deck, keeping its quantity."""
    view = await service.move_card_between_decks(owner_id, reservation_id, request.target_deck_id)
    return ReservationResponse.from_view(view)


@router.post("/{reservation_id}/move-to-folder", response_model=InventoryItemResponse)
async def move_to_folder(
    reservation_id: int,
    request: MoveToFolderRequest,
    owner_id: OwnerId,
    service: Reservations,
) -> InventoryItemResponse:
    """Take the copies out of their deck and file the row under a folder."""
    item = await service.move_card_from_deck_to_folder(owner_id, reservation_id, request.folder)
    return InventoryItemResponse.from_item(item)
