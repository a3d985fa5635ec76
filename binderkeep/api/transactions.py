"""
Transaction log endpoint (read-only audit trail).
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from binderkeep.api.dependencies import OwnerId
from binderkeep.db.database import get_session
from binderkeep.db.transaction_log import TransactionType, list_transactions

router = APIRouter(prefix="/transactions", tags=["transactions"])


class TransactionResponse(BaseModel):
    id: int
    transaction_type: TransactionType
    card_name: str | None = None
    inventory_item_id: int | None = None
    deck_id: int | None = None
    quantity: int
    purchase_price: float | None = None
    sale_price: float | None = None
    detail: str | None = None
    created_at: datetime | None = None


@router.get("", response_model=list[TransactionResponse])
async def list_user_transactions(
    owner_id: OwnerId,
    session: Annotated[AsyncSession, Depends(get_session)],
    transaction_type: Annotated[TransactionType | None, Query(alias="type")] = None,
    limit: Annotated[int, Query(ge=1, le=1000)] = 200,
) -> list[TransactionResponse]:
    """Log entries, newest first, optionally filtered by type."""
    entries = await list_transactions(session, owner_id, transaction_type, limit=limit)
    return [
        TransactionResponse(
            id=e.id,
            transaction_type=TransactionType(e.transaction_type),
            card_name=e.card_name,
            inventory_item_id=e.inventory_row_id,
            deck_id=e.deck_id,
            quantity=e.quantity,
            purchase_price=float(e.purchase_price) if e.purchase_price is not None else None,
            sale_price=float(e.sale_price) if e.sale_price is not None else None,
            detail=e.detail,
            created_at=e.created_at,
        )
        for e in entries
    ]
