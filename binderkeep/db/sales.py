"""Sale records and their conversion to domain models."""

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from binderkeep.db import transaction_log
from binderkeep.db.transaction_log import TransactionType
from binderkeep.models.db import SaleDB
from binderkeep.models.sale import Sale, SaleItemType, compute_profit


async def record_sale(
    session: AsyncSession,
    owner_id: str,
    *,
    item_type: SaleItemType,
    item_id: int | None,
    item_name: str,
    purchase_price: Decimal,
    sell_price: Decimal,
    quantity: int = 1,
) -> SaleDB:
    """Insert a sale with its profit and log a SALE transaction."""
    sale = SaleDB(
        owner_id=owner_id,
        item_type=item_type.value,
        item_id=item_id,
        item_name=item_name,
        purchase_price=purchase_price,
        sell_price=sell_price,
        quantity=quantity,
        profit=compute_profit(purchase_price, sell_price, quantity),
    )
    session.add(sale)
    await session.flush()

    await transaction_log.record(
        session,
        owner_id,
        TransactionType.SALE,
        card_name=item_name,
        inventory_row_id=item_id if item_type is SaleItemType.CARD else None,
        deck_id=item_id if item_type is SaleItemType.DECK else None,
        quantity=quantity,
        purchase_price=purchase_price,
        sale_price=sell_price,
    )
    return sale


async def list_sales(session: AsyncSession, owner_id: str, limit: int = 200) -> list[SaleDB]:
    """Get an owner's sales, newest first."""
    result = await session.execute(
        select(SaleDB)
        .where(SaleDB.owner_id == owner_id)
        .order_by(SaleDB.created_at.desc(), SaleDB.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


def sale_to_model(sale: SaleDB) -> Sale:
    """Convert a database sale to a domain model."""
    return Sale(
        id=sale.id,
        item_type=SaleItemType(sale.item_type),
        item_id=sale.item_id,
        item_name=sale.item_name,
        purchase_price=sale.purchase_price,
        sell_price=sale.sell_price,
        quantity=sale.quantity,
        profit=sale.profit,
        created_at=sale.created_at,
    )
