"""
Append-only audit log of inventory and deck mutations.

Every store mutation appends here inside the same transaction, so the log
never records an effect that was rolled back.
"""

from decimal import Decimal
from enum import Enum

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from binderkeep.models.db import TransactionLogDB


class TransactionType(str, Enum):
    PURCHASE = "PURCHASE"
    UPDATE = "UPDATE"
    ADJUST = "ADJUST"
    MOVE = "MOVE"
    DELETE = "DELETE"
    PURGE = "PURGE"
    RESERVE = "RESERVE"
    UNRESERVE = "UNRESERVE"
    DECK_CREATE = "DECK_CREATE"
    DECK_UPDATE = "DECK_UPDATE"
    DECK_DELETE = "DECK_DELETE"
    DECK_RELEASE = "DECK_RELEASE"
    SALE = "SALE"
    FOLDER_CREATE = "FOLDER_CREATE"
    FOLDER_UPDATE = "FOLDER_UPDATE"
    FOLDER_DELETE = "FOLDER_DELETE"


async def record(
    session: AsyncSession,
    owner_id: str,
    transaction_type: TransactionType,
    *,
    quantity: int = 0,
    card_name: str | None = None,
    inventory_row_id: int | None = None,
    deck_id: int | None = None,
    purchase_price: Decimal | None = None,
    sale_price: Decimal | None = None,
    detail: str | None = None,
) -> TransactionLogDB:
    """Append one log entry to the current transaction."""
    entry = TransactionLogDB(
        owner_id=owner_id,
        transaction_type=transaction_type.value,
        card_name=card_name,
        inventory_row_id=inventory_row_id,
        deck_id=deck_id,
        quantity=quantity,
        purchase_price=purchase_price,
        sale_price=sale_price,
        detail=detail,
    )
    session.add(entry)
    await session.flush()
    return entry


async def list_transactions(
    session: AsyncSession,
    owner_id: str,
    transaction_type: TransactionType | None = None,
    limit: int = 200,
) -> list[TransactionLogDB]:
    """Get log entries for an owner, newest first."""
    query = select(TransactionLogDB).where(TransactionLogDB.owner_id == owner_id)
    if transaction_type is not None:
        query = query.where(TransactionLogDB.transaction_type == transaction_type.value)
    result = await session.execute(
        query.order_by(TransactionLogDB.created_at.desc(), TransactionLogDB.id.desc()).limit(limit)
    )
    return list(result.scalars().all())
