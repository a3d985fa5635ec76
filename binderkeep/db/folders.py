"""
Folder registry: the folders an owner may file inventory rows in.

Uncategorized and Trash exist for every owner and are never stored.
Inventory rows and reservation snapshots refer to folders by name, so a
rename relabels both and a delete clears the snapshots.

Lock order: folder row first, then decks, then inventory rows. Paths that
file a row under a folder take a share lock on the folder row through
`require_known`, so a rename or delete waits for them and vice versa.
"""

import logging
from collections.abc import Iterable

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from binderkeep.config import BUILTIN_FOLDERS, TRASH_FOLDER, UNCATEGORIZED_FOLDER
from binderkeep.db import transaction_log
from binderkeep.db.decks import lock_decks
from binderkeep.db.ownership import ensure_owned
from binderkeep.db.transaction_log import TransactionType
from binderkeep.models.db import FolderDB, InventoryRowDB, ReservationDB
from binderkeep.models.failure import DuplicateFolderError, ValidationFailedError
from binderkeep.models.inventory import Folder
from binderkeep.models.validation import require_folder

logger = logging.getLogger(__name__)

_BUILTIN_ORDER = (UNCATEGORIZED_FOLDER, TRASH_FOLDER)


def folder_to_model(folder: FolderDB) -> Folder:
    return Folder(
        id=folder.id,
        name=folder.name,
        description=folder.description,
        created_at=folder.created_at,
    )


# --- Reads ---


async def list_folders(session: AsyncSession, owner_id: str) -> list[Folder]:
    """Built-in folders first (Uncategorized, Trash), then stored ones by name."""
    result = await session.execute(
        select(FolderDB).where(FolderDB.owner_id == owner_id).order_by(FolderDB.name)
    )
    builtin = [Folder(id=None, name=name, builtin=True) for name in _BUILTIN_ORDER]
    return builtin + [folder_to_model(f) for f in result.scalars().all()]


async def get_folder(
    session: AsyncSession,
    owner_id: str,
    folder_id: int,
    *,
    for_update: bool = False,
) -> FolderDB:
    """
    Get one stored folder.

    Raises NotFoundError or ForbiddenError.
    """
    query = select(FolderDB).where(FolderDB.id == folder_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(query)
    return ensure_owned("Folder", folder_id, result.scalar_one_or_none(), owner_id)


async def find_folder(session: AsyncSession, owner_id: str, name: str) -> FolderDB | None:
    result = await session.execute(
        select(FolderDB).where(FolderDB.owner_id == owner_id, FolderDB.name == name)
    )
    return result.scalar_one_or_none()


async def require_known(
    session: AsyncSession,
    owner_id: str,
    folder: str | None,
    *,
    lock: bool = True,
) -> str:
    """
    Clean a folder name and check the owner has it.

    With `lock`, the stored folder row is share-locked until the transaction
    ends, so it cannot be renamed or deleted under the caller.

    Raises:
        ValidationFailedError: Blank, too long, or not a known folder
    """
    cleaned = require_folder(folder)
    if cleaned in BUILTIN_FOLDERS:
        return cleaned
    found = await known_folders(session, owner_id, [cleaned], lock=lock)
    return require_folder(cleaned, known=found)


async def known_folders(
    session: AsyncSession,
    owner_id: str,
    names: Iterable[str],
    *,
    lock: bool = True,
) -> set[str]:
    """
    The subset of `names` the owner has, built-in folders included.

    Stored folders are share-locked in name order when `lock` is set.
    """
    wanted = {name for name in names if name}
    known = wanted & BUILTIN_FOLDERS
    stored = sorted(wanted - BUILTIN_FOLDERS)
    if not stored:
        return known
    query = (
        select(FolderDB.name)
        .where(FolderDB.owner_id == owner_id, FolderDB.name.in_(stored))
        .order_by(FolderDB.name)
    )
    if lock:
        query = query.with_for_update(read=True)
    result = await session.execute(query)
    return known | set(result.scalars().all())


# --- Writes ---


async def create_folder(
    session: AsyncSession,
    owner_id: str,
    name: str,
    *,
    description: str | None = None,
) -> FolderDB:
    """
    Create a folder.

    Raises:
        DuplicateFolderError: The name is built in or already taken
    """
    cleaned = require_folder(name)
    if cleaned in BUILTIN_FOLDERS or await find_folder(session, owner_id, cleaned) is not None:
        raise DuplicateFolderError(cleaned)
    folder = FolderDB(owner_id=owner_id, name=cleaned, description=description)
    session.add(folder)
    await session.flush()
    await transaction_log.record(
        session, owner_id, TransactionType.FOLDER_CREATE, detail=cleaned
    )
    return folder


async def update_folder(
    session: AsyncSession,
    owner_id: str,
    folder_id: int,
    *,
    name: str | None = None,
    description: str | None = None,
) -> FolderDB:
    """
    Rename a folder or change its description.

    A rename relabels every row filed there and every reservation snapshot
    taken from it.
    """
    if name is None and description is None:
        raise ValidationFailedError("No fields to update")
    folder = await get_folder(session, owner_id, folder_id, for_update=True)
    if description is not None:
        folder.description = description

    previous = folder.name
    target = require_folder(name) if name is not None else previous
    relabeled = 0
    if target != previous:
        if target in BUILTIN_FOLDERS or await find_folder(session, owner_id, target) is not None:
            raise DuplicateFolderError(target)
        await _rewrite_snapshots(session, owner_id, previous, target)
        rows = await _lock_rows_in(session, owner_id, previous)
        for row in rows:
            row.folder = target
        relabeled = len(rows)
        folder.name = target
    await session.flush()

    await transaction_log.record(
        session,
        owner_id,
        TransactionType.FOLDER_UPDATE,
        quantity=relabeled,
        detail=f"{previous}->{target}" if target != previous else target,
    )
    if relabeled:
        logger.info("Renamed folder %s to %s (%d rows)", previous, target, relabeled)
    return folder


async def delete_folder(session: AsyncSession, owner_id: str, folder_id: int) -> None:
    """
    Delete an empty folder.

    Reservation snapshots pointing at it are cleared, so releasing those
    decks leaves the rows where they are.
    """
    folder = await get_folder(session, owner_id, folder_id, for_update=True)
    result = await session.execute(
        select(func.count(InventoryRowDB.id)).where(
            InventoryRowDB.owner_id == owner_id, InventoryRowDB.folder == folder.name
        )
    )
    filed = int(result.scalar_one())
    if filed:
        raise ValidationFailedError(
            f"Folder '{folder.name}' still holds {filed} inventory rows",
            detail="Move or trash its cards before deleting it",
        )
    await _rewrite_snapshots(session, owner_id, folder.name, None)
    name = folder.name
    await session.delete(folder)
    await session.flush()
    await transaction_log.record(session, owner_id, TransactionType.FOLDER_DELETE, detail=name)


async def _rewrite_snapshots(
    session: AsyncSession,
    owner_id: str,
    previous: str,
    target: str | None,
) -> None:
    # Reservations only change under their deck's lock
    result = await session.execute(
        select(ReservationDB.deck_id)
        .where(ReservationDB.owner_id == owner_id, ReservationDB.original_folder == previous)
        .distinct()
    )
    deck_ids = set(result.scalars().all())
    if not deck_ids:
        return
    await lock_decks(session, owner_id, deck_ids)
    await session.execute(
        update(ReservationDB)
        .where(
            ReservationDB.owner_id == owner_id,
            ReservationDB.deck_id.in_(sorted(deck_ids)),
            ReservationDB.original_folder == previous,
        )
        .values(original_folder=target)
        .execution_options(synchronize_session=False)
    )


async def _lock_rows_in(session: AsyncSession, owner_id: str, folder: str) -> list[InventoryRowDB]:
    result = await session.execute(
        select(InventoryRowDB)
        .where(InventoryRowDB.owner_id == owner_id, InventoryRowDB.folder == folder)
        .order_by(InventoryRowDB.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())
