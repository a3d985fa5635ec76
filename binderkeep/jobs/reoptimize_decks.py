"""
Scheduled job to re-optimize deck instances.

Re-runs the selection policy over every deck instance of one owner (or of
all owners) so newly added older or cheaper copies replace what decks hold.
Can be run as a standalone script or called from a scheduler.
"""

import argparse
import asyncio
import logging

from sqlalchemy import select

from binderkeep.db.database import async_session_factory
from binderkeep.models.db import DeckDB
from binderkeep.models.failure import KnownError
from binderkeep.services.reservation_service import ReservationService

logger = logging.getLogger(__name__)


async def find_instances(owner_id: str | None = None) -> list[tuple[str, int]]:
    """(owner id, deck id) of every deck instance, oldest first."""
    query = select(DeckDB.owner_id, DeckDB.id).where(DeckDB.is_instance.is_(True))
    if owner_id is not None:
        query = query.where(DeckDB.owner_id == owner_id)
    async with async_session_factory() as session:
        result = await session.execute(query.order_by(DeckDB.id))
        return [(row.owner_id, row.id) for row in result.all()]


async def run_reoptimize(
    owner_id: str | None = None,
    service: ReservationService | None = None,
) -> dict[int, int]:
    """
    Re-optimize deck instances one transaction at a time.

    A deck that fails is logged and skipped; the others still run.

    Returns:
        Dict mapping deck id to its missing count afterwards
    """
    service = service or ReservationService(async_session_factory)
    results: dict[int, int] = {}

    for deck_owner, deck_id in await find_instances(owner_id):
        try:
            report = await service.reoptimize_deck(deck_owner, deck_id)
        except KnownError as e:
            logger.warning("Skipping deck %d: %s", deck_id, e.message)
            continue
        results[deck_id] = report.missing_count
        logger.info(
            "Deck %d: %d -> %d reserved, cost %s -> %s, %d missing",
            deck_id,
            report.reserved_before,
            report.reserved_after,
            report.cost_before,
            report.cost_after,
            report.missing_count,
        )

    logger.info("Re-optimize complete. %d decks processed", len(results))
    return results


def main() -> None:
    """CLI entry point for re-optimizing decks."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    parser = argparse.ArgumentParser(description="Re-optimize deck instances")
    parser.add_argument("--owner", help="Only this owner's decks")
    args = parser.parse_args()
    asyncio.run(run_reoptimize(args.owner))


if __name__ == "__main__":
    main()
