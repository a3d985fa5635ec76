"""
Reservation ledger: link rows claiming inventory copies for decks.

These functions only touch the reservations table (plus the audit log).
Availability checks and slot caps are the reservation service's job; it
calls in here only after locking the inventory rows involved.
"""

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from binderkeep.db import transaction_log
from binderkeep.db.ownership import ensure_owned
from binderkeep.db.transaction_log import TransactionType
from binderkeep.models.db import InventoryRowDB, ReservationDB
from binderkeep.models.failure import ValidationFailedError

# --- Reads ---


async def get_reservation(
    session: AsyncSession,
    owner_id: str,
    reservation_id: int,
    *,
    for_update: bool = False,
) -> ReservationDB:
    """
    Get one reservation owned by `owner_id`.

    Raises NotFoundError or ForbiddenError.
    """
    query = select(ReservationDB).where(ReservationDB.id == reservation_id)
    if for_update:
        query = query.with_for_update(of=ReservationDB).execution_options(populate_existing=True)
    result = await session.execute(query)
    return ensure_owned(
        "Reservation", reservation_id, result.unique().scalar_one_or_none(), owner_id
    )


async def find_reservation(
    session: AsyncSession,
    deck_id: int,
    inventory_row_id: int,
) -> ReservationDB | None:
    """The reservation of one inventory row by one deck, if any."""
    result = await session.execute(
        select(ReservationDB).where(
            ReservationDB.deck_id == deck_id,
            ReservationDB.inventory_row_id == inventory_row_id,
        )
    )
    return result.unique().scalar_one_or_none()


async def list_for_deck(session: AsyncSession, deck_id: int) -> list[ReservationDB]:
    """All reservations of a deck with their inventory rows, in id order."""
    result = await session.execute(
        select(ReservationDB).where(ReservationDB.deck_id == deck_id).order_by(ReservationDB.id)
    )
    return list(result.unique().scalars().all())


async def list_for_decks(
    session: AsyncSession,
    deck_ids: Iterable[int],
) -> dict[int, list[ReservationDB]]:
    """Reservations grouped by deck id."""
    ids = list(deck_ids)
    grouped: dict[int, list[ReservationDB]] = {deck_id: [] for deck_id in ids}
    if not ids:
        return grouped
    result = await session.execute(
        select(ReservationDB).where(ReservationDB.deck_id.in_(ids)).order_by(ReservationDB.id)
    )
    for reservation in result.unique().scalars().all():
        grouped[reservation.deck_id].append(reservation)
    return grouped


async def snapshot_folders(session: AsyncSession, deck_id: int) -> set[str]:
    """Folders a deck's reservations were taken from."""
    result = await session.execute(
        select(ReservationDB.original_folder)
        .where(ReservationDB.deck_id == deck_id, ReservationDB.original_folder.is_not(None))
        .distinct()
    )
    return set(result.scalars().all())


async def other_deck_row_ids(
    session: AsyncSession,
    row_ids: Iterable[int],
    excluding_deck_id: int,
) -> set[int]:
    """Inventory rows among `row_ids` that another deck also reserves."""
    ids = list(row_ids)
    if not ids:
        return set()
    result = await session.execute(
        select(ReservationDB.inventory_row_id).where(
            ReservationDB.inventory_row_id.in_(ids),
            ReservationDB.deck_id != excluding_deck_id,
        )
    )
    return set(result.scalars().all())


# --- Writes ---


async def reserve(
    session: AsyncSession,
    owner_id: str,
    deck_id: int,
    row: InventoryRowDB,
    quantity: int,
    *,
    original_folder: str | None = None,
) -> ReservationDB:
    """
    Create or increment the reservation of `row` by `deck_id`.

    The folder snapshot is taken only when the reservation is first created,
    from `original_folder` if given, else from the row's current folder.
    """
    if quantity <= 0:
        raise ValidationFailedError("Reserved quantity must be positive", detail=f"got {quantity}")

    reservation = await find_reservation(session, deck_id, row.id)
    if reservation is None:
        reservation = ReservationDB(
            owner_id=owner_id,
            deck_id=deck_id,
            inventory_row_id=row.id,
            quantity_reserved=quantity,
            original_folder=original_folder or row.folder,
        )
        reservation.inventory_row = row
        session.add(reservation)
    else:
        reservation.quantity_reserved += quantity
    await session.flush()

    await transaction_log.record(
        session,
        owner_id,
        TransactionType.RESERVE,
        card_name=row.card_name,
        inventory_row_id=row.id,
        deck_id=deck_id,
        quantity=quantity,
    )
    return reservation


async def release(
    session: AsyncSession,
    owner_id: str,
    reservation: ReservationDB,
    quantity: int | None = None,
) -> int:
    """
    Give back `quantity` copies of a reservation (all of them if None).

    Deletes the reservation when nothing remains.

    Returns:
        Copies still reserved afterwards
    """
    released = reservation.quantity_reserved if quantity is None else quantity
    if released <= 0:
        raise ValidationFailedError("Quantity must be positive", detail=f"got {released}")
    released = min(released, reservation.quantity_reserved)
    remaining = reservation.quantity_reserved - released

    await transaction_log.record(
        session,
        owner_id,
        TransactionType.UNRESERVE,
        card_name=reservation.inventory_row.card_name,
        inventory_row_id=reservation.inventory_row_id,
        deck_id=reservation.deck_id,
        quantity=released,
    )
    if remaining == 0:
        await session.delete(reservation)
    else:
        reservation.quantity_reserved = remaining
    await session.flush()
    return remaining
