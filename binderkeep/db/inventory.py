"""
Inventory store: authoritative ledger of physical card copies.

All functions are scoped to an owner and run inside the caller's
transaction. Reserved quantities are never stored on the row; they are
summed from the reservations table whenever needed.

INVARIANT: after any committed transaction, for every row
0 <= reserved_quantity <= quantity.
"""

import logging
from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from binderkeep.config import TRASH_FOLDER, UNCATEGORIZED_FOLDER
from binderkeep.db import folders, transaction_log
from binderkeep.db.ownership import ensure_owned
from binderkeep.db.transaction_log import TransactionType
from binderkeep.models.card_ref import CardRef, normalize, normalize_set
from binderkeep.models.db import InventoryRowDB, ReservationDB
from binderkeep.models.failure import (
    InsufficientQuantityError,
    ReservedRowInTrashError,
    ValidationFailedError,
)
from binderkeep.models.inventory import Candidate, FolderSummary, InventoryItem
from binderkeep.models.validation import (
    require_folder,
    require_name,
    require_non_negative,
    require_positive,
    require_quality,
    to_price,
)

logger = logging.getLogger(__name__)

# Fields a partial update may touch
UPDATABLE_FIELDS = frozenset(
    {
        "card_name",
        "set_code",
        "set_name",
        "quantity",
        "folder",
        "purchase_price",
        "foil",
        "quality",
        "image_url",
        "scryfall_id",
    }
)


# --- Reads ---


async def reserved_quantities(session: AsyncSession, row_ids: Iterable[int]) -> dict[int, int]:
    """Sum reservations per inventory row. Rows with none are absent."""
    ids = list(row_ids)
    if not ids:
        return {}
    result = await session.execute(
        select(ReservationDB.inventory_row_id, func.sum(ReservationDB.quantity_reserved))
        .where(ReservationDB.inventory_row_id.in_(ids))
        .group_by(ReservationDB.inventory_row_id)
    )
    return {row_id: int(total or 0) for row_id, total in result.all()}


async def get_row(
    session: AsyncSession,
    owner_id: str,
    row_id: int,
    *,
    for_update: bool = False,
) -> InventoryRowDB:
    """
    Get one inventory row owned by `owner_id`.

    Raises NotFoundError or ForbiddenError.
    """
    query = select(InventoryRowDB).where(InventoryRowDB.id == row_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(query)
    return ensure_owned("Inventory row", row_id, result.scalar_one_or_none(), owner_id)


async def lock_inventory_rows(
    session: AsyncSession,
    owner_id: str,
    row_ids: Iterable[int],
) -> dict[int, InventoryRowDB]:
    """
    Lock inventory rows FOR UPDATE in ascending id order.

    Every mutating operation locks through here, so two operations touching
    overlapping rows always acquire their locks in the same order.
    """
    ids = sorted(set(row_ids))
    if not ids:
        return {}
    result = await session.execute(
        select(InventoryRowDB)
        .where(InventoryRowDB.id.in_(ids))
        .order_by(InventoryRowDB.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    found = {row.id: row for row in result.scalars().all()}
    for row_id in ids:
        ensure_owned("Inventory row", row_id, found.get(row_id), owner_id)
    return found


async def get_item(session: AsyncSession, owner_id: str, row_id: int) -> InventoryItem:
    """Get one inventory row with its derived reservation state."""
    row = await get_row(session, owner_id, row_id)
    reserved = await reserved_quantities(session, [row.id])
    return row_to_item(row, reserved.get(row.id, 0))


async def list_items(
    session: AsyncSession,
    owner_id: str,
    *,
    folder: str | None = None,
    include_trash: bool = False,
) -> list[InventoryItem]:
    """
    List inventory rows with derived reservation state.

    Without a folder this is the All Cards view: Trash is excluded unless
    `include_trash` is set. Asking for the Trash folder returns the Trash view.
    """
    query = select(InventoryRowDB).where(InventoryRowDB.owner_id == owner_id)
    if folder is not None:
        query = query.where(InventoryRowDB.folder == folder)
    elif not include_trash:
        query = query.where(InventoryRowDB.folder != TRASH_FOLDER)
    result = await session.execute(query.order_by(InventoryRowDB.card_name, InventoryRowDB.id))
    rows = list(result.scalars().all())
    reserved = await reserved_quantities(session, [r.id for r in rows])
    return [row_to_item(r, reserved.get(r.id, 0)) for r in rows]


async def folder_summaries(session: AsyncSession, owner_id: str) -> list[FolderSummary]:
    """
    Per-folder totals: unique cards, available copies, value at purchase price.

    Trash appears as its own entry and is never folded into other folders.
    """
    items = await list_items(session, owner_id, include_trash=True)
    summaries: dict[str, FolderSummary] = {}
    unique: dict[str, set[str]] = {}
    for item in items:
        summary = summaries.setdefault(item.folder, FolderSummary(folder=item.folder))
        unique.setdefault(item.folder, set()).add(normalize(item.card_name))
        summary.total_quantity += item.quantity
        summary.total_available += item.available
        summary.total_value += item.purchase_price * item.quantity
    for name, summary in summaries.items():
        summary.unique_cards = len(unique[name])
    return sorted(summaries.values(), key=lambda s: (s.is_trash, s.folder.casefold()))


async def query_for_slot(
    session: AsyncSession,
    owner_id: str,
    slot_name: str,
    *,
    set_code: str | None = None,
    exclude_folders: Iterable[str] = (TRASH_FOLDER,),
    lock: bool = False,
) -> list[Candidate]:
    """
    Inventory rows able to fill a slot, in selection order.

    Ordering is (created_at asc, purchase_price asc, id asc). Rows with
    nothing available are included so callers can show them as exhausted.
    """
    ref = CardRef.of(slot_name, set_code)
    candidates = await query_for_slots(
        session, owner_id, [ref], exclude_folders=exclude_folders, lock=lock
    )
    return candidates[ref]


async def query_for_slots(
    session: AsyncSession,
    owner_id: str,
    refs: Iterable[CardRef],
    *,
    exclude_folders: Iterable[str] = (TRASH_FOLDER,),
    lock: bool = True,
) -> dict[CardRef, list[Candidate]]:
    """
    Candidates for several slots at once.

    When `lock` is set the union of matching rows is locked in ascending id
    order before availability is computed.
    """
    wanted = list(dict.fromkeys(refs))
    if not wanted:
        return {}
    query = select(InventoryRowDB).where(
        InventoryRowDB.owner_id == owner_id,
        InventoryRowDB.name_key.in_(sorted({ref.name_key for ref in wanted})),
    )
    excluded = list(exclude_folders)
    if excluded:
        query = query.where(InventoryRowDB.folder.not_in(excluded))
    if lock:
        query = (
            query.order_by(InventoryRowDB.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    result = await session.execute(query)
    rows = list(result.scalars().all())
    reserved = await reserved_quantities(session, [r.id for r in rows])

    rows.sort(key=_selection_order)
    by_ref: dict[CardRef, list[Candidate]] = {ref: [] for ref in wanted}
    for row in rows:
        for ref in wanted:
            if row.name_key != ref.name_key:
                continue
            if ref.has_set_constraint and normalize_set(row.set_code) != ref.set_code:
                continue
            by_ref[ref].append(
                Candidate(
                    inventory_row_id=row.id,
                    available=row.quantity - reserved.get(row.id, 0),
                    purchase_price=row.purchase_price,
                    created_at=row.created_at,
                    folder=row.folder,
                )
            )
    return by_ref


def _selection_order(row: InventoryRowDB) -> tuple[Any, Decimal, int]:
    created = row.created_at
    return (
        created.replace(tzinfo=None) if created is not None else datetime.min,
        row.purchase_price if row.purchase_price is not None else Decimal("0"),
        row.id,
    )


def row_to_item(row: InventoryRowDB, reserved: int) -> InventoryItem:
    """Convert a database row to a domain model."""
    return InventoryItem(
        id=row.id,
        card_name=row.card_name,
        set_code=row.set_code,
        set_name=row.set_name,
        quantity=row.quantity,
        reserved_quantity=reserved,
        folder=row.folder,
        purchase_price=row.purchase_price if row.purchase_price is not None else Decimal("0"),
        foil=row.foil,
        quality=row.quality,
        image_url=row.image_url,
        scryfall_id=row.scryfall_id,
        created_at=row.created_at,
    )


# --- Writes ---


async def insert_row(
    session: AsyncSession,
    owner_id: str,
    *,
    card_name: str,
    quantity: int = 1,
    set_code: str | None = None,
    set_name: str | None = None,
    folder: str | None = None,
    purchase_price: Decimal | float | str | None = None,
    foil: bool = False,
    quality: str | None = None,
    image_url: str | None = None,
    scryfall_id: str | None = None,
    created_at: datetime | None = None,
) -> InventoryRowDB:
    """
    Create an inventory row.

    Folder defaults to Uncategorized; any other folder must exist. A PURCHASE
    entry is logged when a purchase price is known.
    """
    name = require_name(card_name, "Card name")
    require_positive(quantity)
    price = to_price(purchase_price, "Purchase price")
    target = UNCATEGORIZED_FOLDER
    if folder is not None:
        target = await folders.require_known(session, owner_id, folder)
    row = InventoryRowDB(
        owner_id=owner_id,
        card_name=name,
        name_key=normalize(name),
        set_code=normalize_set(set_code) or None,
        set_name=set_name,
        quantity=quantity,
        folder=target,
        purchase_price=price,
        foil=foil,
        quality=require_quality(quality),
        image_url=image_url,
        scryfall_id=scryfall_id,
    )
    if created_at is not None:
        row.created_at = created_at
    session.add(row)
    await session.flush()

    if purchase_price is not None:
        await transaction_log.record(
            session,
            owner_id,
            TransactionType.PURCHASE,
            card_name=name,
            inventory_row_id=row.id,
            quantity=quantity,
            purchase_price=price,
        )
    return row


async def update_fields(
    session: AsyncSession,
    owner_id: str,
    row_id: int,
    patch: dict[str, Any],
) -> InventoryRowDB:
    """
    Partially update a row.

    Rejects a quantity below the row's reserved quantity, and a new card name
    or set code on a row decks hold. Display fixes that keep the normalized
    name and set are allowed.
    """
    unknown = set(patch) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationFailedError("Unknown inventory fields", detail=f"{sorted(unknown)}")
    if not patch:
        raise ValidationFailedError("No fields to update")

    folder: str | None = None
    if "folder" in patch:
        folder = await folders.require_known(session, owner_id, patch["folder"])
    row = await get_row(session, owner_id, row_id, for_update=True)
    changes: list[str] = []
    reserved = (await reserved_quantities(session, [row.id])).get(row.id, 0)

    if "quantity" in patch:
        quantity = require_non_negative(patch["quantity"])
        if quantity < reserved:
            raise InsufficientQuantityError(row.id, requested=reserved, available=quantity)
        if quantity != row.quantity:
            changes.append(f"quantity {row.quantity}->{quantity}")
        row.quantity = quantity
    if "card_name" in patch:
        name = require_name(patch["card_name"], "Card name")
        if reserved and normalize(name) != row.name_key:
            raise _reserved_identity(row, reserved, "card name")
        row.card_name = name
        row.name_key = normalize(name)
    if "set_code" in patch:
        set_code = normalize_set(patch["set_code"]) or None
        if reserved and set_code != (normalize_set(row.set_code) or None):
            raise _reserved_identity(row, reserved, "set code")
        row.set_code = set_code
    if "set_name" in patch:
        row.set_name = patch["set_name"]
    if folder is not None:
        if folder != row.folder:
            changes.append(f"folder {row.folder}->{folder}")
        row.folder = folder
    if "purchase_price" in patch:
        price = to_price(patch["purchase_price"], "Purchase price")
        if price != row.purchase_price:
            changes.append(f"purchase_price {row.purchase_price}->{price}")
        row.purchase_price = price
    if "foil" in patch:
        row.foil = bool(patch["foil"])
    if "quality" in patch:
        row.quality = require_quality(patch["quality"])
    if "image_url" in patch:
        row.image_url = patch["image_url"]
    if "scryfall_id" in patch:
        row.scryfall_id = patch["scryfall_id"]

    await session.flush()
    await transaction_log.record(
        session,
        owner_id,
        TransactionType.UPDATE,
        card_name=row.card_name,
        inventory_row_id=row.id,
        quantity=row.quantity,
        detail=", ".join(changes) or None,
    )
    return row


def _reserved_identity(row: InventoryRowDB, reserved: int, what: str) -> ValidationFailedError:
    return ValidationFailedError(
        f"Inventory row {row.id} is reserved by a deck; its {what} cannot change",
        detail=f"{reserved} copies reserved; release them first",
    )


async def adjust_quantity(
    session: AsyncSession,
    owner_id: str,
    row_id: int,
    delta: int,
) -> InventoryRowDB:
    """
    Increment or decrement a row's quantity.

    Rejects a result that is negative or below the reserved quantity.
    """
    row = await get_row(session, owner_id, row_id, for_update=True)
    reserved = (await reserved_quantities(session, [row.id])).get(row.id, 0)
    new_quantity = row.quantity + delta
    if new_quantity < 0 or new_quantity < reserved:
        raise InsufficientQuantityError(
            row.id, requested=-delta, available=row.quantity - reserved
        )
    row.quantity = new_quantity
    await session.flush()
    await transaction_log.record(
        session,
        owner_id,
        TransactionType.ADJUST,
        card_name=row.card_name,
        inventory_row_id=row.id,
        quantity=delta,
    )
    return row


async def move_to_folder(
    session: AsyncSession,
    owner_id: str,
    row_id: int,
    folder: str,
    *,
    verify: bool = True,
) -> InventoryRowDB:
    """
    Change a row's folder.

    Moving to Trash is a soft delete. Reservations are unaffected either way.
    Pass `verify=False` only when the caller already checked the folder
    through `folders.require_known` earlier in the transaction.
    """
    if verify:
        target = await folders.require_known(session, owner_id, folder)
    else:
        target = require_folder(folder)
    row = await get_row(session, owner_id, row_id, for_update=True)
    previous = row.folder
    row.folder = target
    await session.flush()
    await transaction_log.record(
        session,
        owner_id,
        TransactionType.MOVE,
        card_name=row.card_name,
        inventory_row_id=row.id,
        quantity=row.quantity,
        detail=f"{previous}->{target}",
    )
    return row


async def delete_row(session: AsyncSession, owner_id: str, row_id: int) -> InventoryRowDB:
    """
    Permanently delete one row.

    Rows still held by a deck cannot be deleted.
    """
    row = await get_row(session, owner_id, row_id, for_update=True)
    reserved = (await reserved_quantities(session, [row.id])).get(row.id, 0)
    if reserved > 0:
        raise ValidationFailedError(
            f"Inventory row {row.id} is reserved by a deck",
            detail=f"{reserved} copies reserved",
        )
    await transaction_log.record(
        session,
        owner_id,
        TransactionType.DELETE,
        card_name=row.card_name,
        inventory_row_id=row.id,
        quantity=row.quantity,
    )
    await session.delete(row)
    await session.flush()
    return row


async def delete_consumed_row(session: AsyncSession, row: InventoryRowDB) -> None:
    """Remove a row whose quantity reached zero through a sale."""
    await session.delete(row)
    await session.flush()


async def purge_trash(session: AsyncSession, owner_id: str) -> list[int]:
    """
    Permanently remove every row in the owner's Trash.

    Rejects the whole purge if any trashed row is still reserved.

    Returns:
        Ids of the deleted rows
    """
    result = await session.execute(
        select(InventoryRowDB)
        .where(InventoryRowDB.owner_id == owner_id, InventoryRowDB.folder == TRASH_FOLDER)
        .order_by(InventoryRowDB.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    rows = list(result.scalars().all())
    if not rows:
        return []

    reserved = await reserved_quantities(session, [r.id for r in rows])
    blocked = sorted(row_id for row_id, qty in reserved.items() if qty > 0)
    if blocked:
        raise ReservedRowInTrashError(blocked)

    ids = [r.id for r in rows]
    total = sum(r.quantity for r in rows)
    await session.execute(delete(InventoryRowDB).where(InventoryRowDB.id.in_(ids)))
    await transaction_log.record(
        session,
        owner_id,
        TransactionType.PURGE,
        quantity=total,
        detail=f"{len(ids)} rows",
    )
    logger.info("Purged %d trash rows (%d copies) for owner %s", len(ids), total, owner_id)
    return ids
