"""
Job to empty the Trash for one owner or for every owner.

Owners whose Trash still holds reserved cards are skipped and logged;
their Trash is left untouched.
"""

import argparse
import asyncio
import logging

from sqlalchemy import select

from binderkeep.config import TRASH_FOLDER
from binderkeep.db.database import async_session_factory
from binderkeep.models.db import InventoryRowDB
from binderkeep.models.failure import ReservedRowInTrashError
from binderkeep.services.reservation_service import ReservationService

logger = logging.getLogger(__name__)


async def owners_with_trash() -> list[str]:
    async with async_session_factory() as session:
        result = await session.execute(
            select(InventoryRowDB.owner_id)
            .where(InventoryRowDB.folder == TRASH_FOLDER)
            .distinct()
            .order_by(InventoryRowDB.owner_id)
        )
        return list(result.scalars().all())


async def run_purge(
    owner_id: str | None = None,
    service: ReservationService | None = None,
) -> dict[str, int]:
    """
    Purge the Trash of one owner, or of every owner with something in it.

    Returns:
        Dict mapping owner id to the number of rows deleted
    """
    service = service or ReservationService(async_session_factory)
    owners = [owner_id] if owner_id is not None else await owners_with_trash()
    results: dict[str, int] = {}

    for owner in owners:
        try:
            deleted = await service.purge_trash(owner)
        except ReservedRowInTrashError as e:
            logger.warning(
                "Trash of %s not purged: rows %s are reserved", owner, e.inventory_row_ids
            )
            continue
        results[owner] = len(deleted)

    logger.info("Purge complete. %d rows deleted", sum(results.values()))
    return results


def main() -> None:
    """CLI entry point for emptying the Trash."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    parser = argparse.ArgumentParser(description="Empty the Trash")
    parser.add_argument("--owner", help="Only this owner's Trash")
    args = parser.parse_args()
    asyncio.run(run_purge(args.owner))


if __name__ == "__main__":
    main()
