"""
Sales API endpoints.

Selling consumes inventory: a card sale takes unreserved copies of one row,
a deck sale consumes every copy the deck reserved and deletes the deck.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from binderkeep.api.dependencies import OwnerId, Reservations
from binderkeep.api.schemas import SaleOutcomeResponse, SaleResponse
from binderkeep.db.database import get_session
from binderkeep.db.sales import list_sales, sale_to_model
from binderkeep.models.sale import SaleItemType

router = APIRouter(prefix="/sales", tags=["sales"])


class SaleRequest(BaseModel):
    """
    Request model for recording a sale.

    The cost basis always comes from the inventory ledger; `purchasePrice`
    is accepted for older clients and ignored.
    """

    model_config = ConfigDict(populate_by_name=True)

    item_type: SaleItemType = Field(..., alias="itemType")
    item_id: int = Field(..., alias="itemId")
    purchase_price: float | None = Field(default=None, alias="purchasePrice")
    sell_price: float = Field(..., alias="sellPrice")
    quantity: int = Field(default=1, description="Copies sold; ignored for decks")


@router.post("", response_model=SaleOutcomeResponse, status_code=201)
async def record_sale(
    request: SaleRequest,
    owner_id: OwnerId,
    service: Reservations,
) -> SaleOutcomeResponse:
    if request.item_type is SaleItemType.DECK:
        outcome = await service.sell_deck(owner_id, request.item_id, request.sell_price)
    else:
        outcome = await service.sell_card(
            owner_id, request.item_id, request.sell_price, request.quantity
        )
    return SaleOutcomeResponse.from_outcome(outcome)


@router.get("", response_model=list[SaleResponse])
async def list_user_sales(
    owner_id: OwnerId,
    session: Annotated[AsyncSession, Depends(get_session)],
    limit: Annotated[int, Query(ge=1, le=1000)] = 200,
) -> list[SaleResponse]:
    """Sales, newest first."""
    sales = await list_sales(session, owner_id, limit=limit)
    return [SaleResponse.from_sale(sale_to_model(s)) for s in sales]
