"""
Inventory API endpoints.

CRUD over inventory rows, folder views, and the Trash.
"""

from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from binderkeep.api.dependencies import Catalog, OwnerId, Reservations
from binderkeep.api.schemas import InventoryItemResponse, OkResponse
from binderkeep.db.database import get_session
from binderkeep.db.inventory import folder_summaries, get_item, list_items

router = APIRouter(prefix="/inventory", tags=["inventory"])


class InventoryCreateRequest(BaseModel):
    """Request model for adding cards to the inventory."""

    card_name: str = Field(..., examples=["Sol Ring"])
    quantity: int = 1
    set_code: str | None = None
    set_name: str | None = None
    folder: str | None = Field(default=None, description="Defaults to Uncategorized")
    purchase_price: float | None = Field(default=None, description="Per-copy cost basis")
    foil: bool = False
    quality: str | None = Field(default=None, examples=["NM"])
    image_url: str | None = None
    scryfall_id: str | None = None
    created_at: datetime | None = None


class InventoryUpdateRequest(BaseModel):
    """Partial update. Only fields present in the body change."""

    card_name: str | None = None
    set_code: str | None = None
    set_name: str | None = None
    quantity: int | None = None
    folder: str | None = None
    purchase_price: float | None = None
    foil: bool | None = None
    quality: str | None = None
    image_url: str | None = None
    scryfall_id: str | None = None


class MoveRequest(BaseModel):
    folder: str


class AdjustRequest(BaseModel):
    delta: int = Field(..., description="Copies added (positive) or removed (negative)")


class FolderSummaryResponse(BaseModel):
    folder: str
    unique_cards: int
    total_quantity: int
    total_available: int
    total_value: float
    is_trash: bool


class PurgeResponse(OkResponse):
    deleted_item_ids: list[int] = Field(default_factory=list)


@router.get("", response_model=list[InventoryItemResponse])
async def list_inventory(
    owner_id: OwnerId,
    session: Annotated[AsyncSession, Depends(get_session)],
    folder: str | None = None,
    include_trash: bool = False,
) -> list[InventoryItemResponse]:
    """
    List inventory rows.

    Without `folder` this is the All Cards view, which leaves out the Trash.
    `folder=Trash` gives the Trash view.
    """
    items = await list_items(session, owner_id, folder=folder, include_trash=include_trash)
    return [InventoryItemResponse.from_item(i) for i in items]


@router.get("/folders", response_model=list[FolderSummaryResponse])
async def list_folders(
    owner_id: OwnerId,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> list[FolderSummaryResponse]:
    """Per-folder totals. The Trash is its own entry, listed last."""
    summaries = await folder_summaries(session, owner_id)
    return [
        FolderSummaryResponse(
            folder=s.folder,
            unique_cards=s.unique_cards,
            total_quantity=s.total_quantity,
            total_available=s.total_available,
            total_value=float(s.total_value),
            is_trash=s.is_trash,
        )
        for s in summaries
    ]


@router.post("", response_model=InventoryItemResponse, status_code=201)
async def create_inventory_item(
    request: InventoryCreateRequest,
    owner_id: OwnerId,
    catalog: Catalog,
) -> InventoryItemResponse:
    item = await catalog.create_inventory(
        owner_id,
        card_name=request.card_name,
        quantity=request.quantity,
        set_code=request.set_code,
        set_name=request.set_name,
        folder=request.folder,
        purchase_price=request.purchase_price,
        foil=request.foil,
        quality=request.quality,
        image_url=request.image_url,
        scryfall_id=request.scryfall_id,
        created_at=request.created_at,
    )
    return InventoryItemResponse.from_item(item)


@router.delete("/trash", response_model=PurgeResponse)
async def empty_trash(owner_id: OwnerId, service: Reservations) -> PurgeResponse:
    """Permanently delete everything in the Trash. Rejected if any of it is reserved."""
    deleted = await service.purge_trash(owner_id)
    return PurgeResponse(deleted_item_ids=deleted)


@router.get("/{item_id}", response_model=InventoryItemResponse)
async def get_inventory_item(
    item_id: int,
    owner_id: OwnerId,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> InventoryItemResponse:
    item = await get_item(session, owner_id, item_id)
    return InventoryItemResponse.from_item(item)


@router.put("/{item_id}", response_model=InventoryItemResponse)
async def update_inventory_item(
    item_id: int,
    request: InventoryUpdateRequest,
    owner_id: OwnerId,
    catalog: Catalog,
) -> InventoryItemResponse:
    """
    Update fields of an inventory row.

    Quantity cannot drop below the copies decks have reserved.
    """
    patch: dict[str, Any] = request.model_dump(exclude_unset=True)
    item = await catalog.update_inventory(owner_id, item_id, patch)
    return InventoryItemResponse.from_item(item)


@router.post("/{item_id}/move", response_model=InventoryItemResponse)
async def move_inventory_item(
    item_id: int,
    request: MoveRequest,
    owner_id: OwnerId,
    service: Reservations,
) -> InventoryItemResponse:
    """Move a row to another folder. Moving to Trash soft-deletes it."""
    item = await service.move_inventory_to_folder(owner_id, item_id, request.folder)
    return InventoryItemResponse.from_item(item)


@router.post("/{item_id}/adjust", response_model=InventoryItemResponse)
async def adjust_inventory_item(
    item_id: int,
    request: AdjustRequest,
    owner_id: OwnerId,
    catalog: Catalog,
) -> InventoryItemResponse:
    """Add or remove copies. The result may not drop below the reserved copies."""
    item = await catalog.adjust_inventory(owner_id, item_id, request.delta)
    return InventoryItemResponse.from_item(item)


@router.delete("/{item_id}", response_model=OkResponse)
async def delete_inventory_item(item_id: int, owner_id: OwnerId, catalog: Catalog) -> OkResponse:
    """Permanently delete a row that no deck holds."""
    await catalog.delete_inventory(owner_id, item_id)
    return OkResponse()
