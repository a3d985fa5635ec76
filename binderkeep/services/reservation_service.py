"""
Reservation service: the single mutating entry point for deck reservations.

Every public method is one transaction run through `run_atomic`. Inside a
transaction locks are taken in one order: folder rows (share locks, by
name), then decks (ascending id), then reservations, then inventory rows
(ascending id). A reservation is only locked or changed by a transaction
that already holds its deck, so concurrent operations over overlapping
rows serialize instead of deadlocking.

INVARIANTS (hold after every committed transaction):
- Per inventory row, reserved copies never exceed `quantity`
- Every reservation holds at least one copy
- Under STRICT mode, copies held for a slot never exceed its requirement

Post-commit events are published only after the transaction committed.
"""

import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import replace
from decimal import Decimal
from typing import TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from binderkeep.config import TRASH_FOLDER, settings
from binderkeep.db import decks as deck_store
from binderkeep.db import folders
from binderkeep.db import inventory
from binderkeep.db import reservations as ledger
from binderkeep.db import transaction_log
from binderkeep.db.sales import record_sale, sale_to_model
from binderkeep.db.transaction_log import TransactionType
from binderkeep.models.card_ref import CardRef, matches, normalize
from binderkeep.models.db import DeckDB, DeckSlotDB, InventoryRowDB, ReservationDB
from binderkeep.models.deck import (
    DeckView,
    FillReport,
    ReleaseOutcome,
    ReservationView,
    SlotFill,
    SlotMode,
)
from binderkeep.models.failure import (
    ConflictError,
    InsufficientQuantityError,
    NotFoundError,
    SlotOverfilledError,
    ValidationFailedError,
)
from binderkeep.models.inventory import Allocation, Candidate, InventoryItem
from binderkeep.models.sale import SaleItemType, SaleOutcome
from binderkeep.models.validation import require_folder, require_positive, to_price
from binderkeep.services import events as event_kinds
from binderkeep.services.events import CommitEvent, EventBus, event_bus
from binderkeep.services.selection_policy import select_many
from binderkeep.services.unit_of_work import run_atomic
from binderkeep.services.view_projector import build_view, reservation_to_view

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _ref(slot: DeckSlotDB) -> CardRef:
    return CardRef.of(slot.card_name, slot.set_code)


def _slot_for(deck: DeckDB, row: InventoryRowDB) -> DeckSlotDB | None:
    """The deck slot an inventory row can fill, if any."""
    for slot in deck.slots:
        if matches(row, slot):
            return slot
    return None


def _held_for_slot(slot: DeckSlotDB, reservations: Iterable[ReservationDB]) -> int:
    return sum(r.quantity_reserved for r in reservations if matches(r.inventory_row, slot))


def _totals(reservations: Iterable[ReservationDB]) -> tuple[int, Decimal]:
    count = 0
    cost = Decimal("0")
    for r in reservations:
        count += r.quantity_reserved
        cost += r.inventory_row.purchase_price * r.quantity_reserved
    return count, cost


def _require_instance(deck: DeckDB) -> None:
    if not deck.is_instance:
        raise ValidationFailedError(
            f"Deck {deck.id} is a decklist and cannot reserve inventory",
            detail="Copy the decklist to inventory to create a deck instance",
        )


def _plan_cost(plans: Sequence[list[Allocation]], candidates: Iterable[Candidate]) -> Decimal:
    prices = {c.inventory_row_id: c.purchase_price for c in candidates}
    return sum(
        (prices[a.inventory_row_id] * a.take for plan in plans for a in plan),
        start=Decimal("0"),
    )


async def _lock_candidates(
    session: AsyncSession,
    owner_id: str,
    slots: Sequence[DeckSlotDB],
    extra_row_ids: Iterable[int] = (),
) -> tuple[dict[int, InventoryRowDB], dict[CardRef, list[Candidate]]]:
    """
    Lock every row a fill may touch, then read candidates under the locks.

    The rows are discovered with a plain read, locked together in ascending
    id order, and re-read so availability reflects the locked state. Rows
    that appeared after the discovery read are left out of this fill.
    """
    refs = [_ref(slot) for slot in slots]
    preview = await inventory.query_for_slots(session, owner_id, refs, lock=False)
    ids = {c.inventory_row_id for found in preview.values() for c in found}
    ids.update(extra_row_ids)
    rows = await inventory.lock_inventory_rows(session, owner_id, ids)

    current = await inventory.query_for_slots(session, owner_id, refs, lock=False)
    locked = {
        ref: [c for c in found if c.inventory_row_id in rows] for ref, found in current.items()
    }
    return rows, locked


async def _relock(
    session: AsyncSession,
    owner_id: str,
    reservation_id: int,
    deck_id: int,
) -> ReservationDB:
    """
    Lock a reservation once its deck is locked.

    Raises ConflictError when it moved to another deck since it was first read.
    """
    reservation = await ledger.get_reservation(session, owner_id, reservation_id, for_update=True)
    if reservation.deck_id != deck_id:
        raise ConflictError(detail=f"reservation {reservation_id} changed deck")
    return reservation


class ReservationService:
    """
    Mutating operations over decks, reservations, and the inventory they claim.

    Args:
        session_factory: Produces one session per transaction
        events: Bus receiving post-commit events (module bus by default)
        retries: Conflict retries per operation (settings by default)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        events: EventBus | None = None,
        retries: int | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._events = events if events is not None else event_bus
        self._retries = retries

    async def _atomic(self, operation: Callable[[AsyncSession], Awaitable[T]]) -> T:
        return await run_atomic(self._session_factory, operation, retries=self._retries)

    # --- Single-card moves ---

    async def add_card_to_deck(
        self,
        owner_id: str,
        deck_id: int,
        inventory_row_id: int,
        desired_quantity: int = 1,
    ) -> ReservationView:
        """
        Reserve copies of one inventory row for a deck.

        When fewer than `desired_quantity` copies are available the request
        steps down one copy at a time to what is available.

        Raises:
            InsufficientQuantityError: Not even one copy is available
            SlotOverfilledError: STRICT deck would hold more than required
        """
        require_positive(desired_quantity)

        async def op(session: AsyncSession) -> ReservationView:
            deck = await deck_store.get_deck(session, owner_id, deck_id, for_update=True)
            _require_instance(deck)
            rows = await inventory.lock_inventory_rows(session, owner_id, [inventory_row_id])
            row = rows[inventory_row_id]
            if row.folder == TRASH_FOLDER:
                raise ValidationFailedError(
                    f"Inventory row {row.id} is in the Trash",
                    detail="Move it out of the Trash before adding it to a deck",
                )

            reserved = (await inventory.reserved_quantities(session, [row.id])).get(row.id, 0)
            available = row.quantity - reserved

            quantity = desired_quantity
            while quantity > available and quantity > 1:
                quantity -= 1
            if quantity > available:
                raise InsufficientQuantityError(
                    row.id, requested=desired_quantity, available=available
                )
            if quantity < desired_quantity:
                logger.warning(
                    "Row %d had %d available; reserving %d of %d requested for deck %d",
                    row.id,
                    available,
                    quantity,
                    desired_quantity,
                    deck.id,
                )

            if deck_store.deck_mode(deck) is SlotMode.STRICT:
                slot = _slot_for(deck, row)
                required = slot.quantity_required if slot is not None else 0
                held = 0
                if slot is not None:
                    held = _held_for_slot(slot, await ledger.list_for_deck(session, deck.id))
                if held + quantity > required:
                    raise SlotOverfilledError(deck.id, row.card_name, required, held + quantity)

            reservation = await ledger.reserve(session, owner_id, deck.id, row, quantity)
            logger.info(
                "Reserved %d x %s (row %d) for deck %d", quantity, row.card_name, row.id, deck.id
            )
            return reservation_to_view(reservation)

        return await self._atomic(op)

    async def remove_card_from_deck(
        self,
        owner_id: str,
        deck_id: int,
        reservation_id: int,
        quantity: int = 1,
    ) -> int:
        """
        Give back copies of a reservation. Deletes it when none remain.

        Returns:
            Copies the reservation still holds
        """
        require_positive(quantity)

        async def op(session: AsyncSession) -> int:
            deck = await deck_store.get_deck(session, owner_id, deck_id, for_update=True)
            reservation = await ledger.get_reservation(
                session, owner_id, reservation_id, for_update=True
            )
            if reservation.deck_id != deck.id:
                raise NotFoundError("Reservation", reservation_id)
            await inventory.lock_inventory_rows(session, owner_id, [reservation.inventory_row_id])
            return await ledger.release(session, owner_id, reservation, quantity)

        return await self._atomic(op)

    async def move_card_between_decks(
        self,
        owner_id: str,
        reservation_id: int,
        target_deck_id: int,
    ) -> ReservationView:
        """
        Move a whole reservation to another deck, keeping its quantity.

        Merges into an existing reservation of the same row on the target.
        The target's slot mode still applies.
        """

        async def op(session: AsyncSession) -> ReservationView:
            seen = await ledger.get_reservation(session, owner_id, reservation_id)
            source_id = seen.deck_id
            if source_id == target_deck_id:
                raise ValidationFailedError("Reservation already belongs to the target deck")

            decks = await deck_store.lock_decks(session, owner_id, [source_id, target_deck_id])
            reservation = await _relock(session, owner_id, reservation_id, source_id)
            target = decks[target_deck_id]
            _require_instance(target)

            rows = await inventory.lock_inventory_rows(
                session, owner_id, [reservation.inventory_row_id]
            )
            row = rows[reservation.inventory_row_id]
            quantity = reservation.quantity_reserved
            snapshot = reservation.original_folder

            if deck_store.deck_mode(target) is SlotMode.STRICT:
                slot = _slot_for(target, row)
                required = slot.quantity_required if slot is not None else 0
                held = 0
                if slot is not None:
                    held = _held_for_slot(slot, await ledger.list_for_deck(session, target.id))
                if held + quantity > required:
                    raise SlotOverfilledError(target.id, row.card_name, required, held + quantity)

            await ledger.release(session, owner_id, reservation)
            moved = await ledger.reserve(
                session, owner_id, target.id, row, quantity, original_folder=snapshot
            )
            logger.info(
                "Moved %d x %s from deck %d to deck %d",
                quantity,
                row.card_name,
                source_id,
                target.id,
            )
            return reservation_to_view(moved)

        return await self._atomic(op)

    async def move_card_from_deck_to_folder(
        self,
        owner_id: str,
        reservation_id: int,
        target_folder: str,
    ) -> InventoryItem:
        """Drop a reservation and file its inventory row under `target_folder`."""
        require_folder(target_folder)

        async def op(session: AsyncSession) -> InventoryItem:
            folder = await folders.require_known(session, owner_id, target_folder)
            seen = await ledger.get_reservation(session, owner_id, reservation_id)
            await deck_store.get_deck(session, owner_id, seen.deck_id, for_update=True)
            reservation = await _relock(session, owner_id, reservation_id, seen.deck_id)
            row_id = reservation.inventory_row_id
            await inventory.lock_inventory_rows(session, owner_id, [row_id])
            await ledger.release(session, owner_id, reservation)
            await inventory.move_to_folder(session, owner_id, row_id, folder, verify=False)
            return await inventory.get_item(session, owner_id, row_id)

        return await self._atomic(op)

    async def move_inventory_to_folder(
        self,
        owner_id: str,
        inventory_row_id: int,
        target_folder: str,
    ) -> InventoryItem:
        """Change a row's folder. Reservations and their snapshots are untouched."""
        require_folder(target_folder)

        async def op(session: AsyncSession) -> InventoryItem:
            folder = await folders.require_known(session, owner_id, target_folder)
            await inventory.lock_inventory_rows(session, owner_id, [inventory_row_id])
            await inventory.move_to_folder(
                session, owner_id, inventory_row_id, folder, verify=False
            )
            return await inventory.get_item(session, owner_id, inventory_row_id)

        return await self._atomic(op)

    # --- Auto-fill ---

    async def _fill_slots(
        self,
        session: AsyncSession,
        owner_id: str,
        deck: DeckDB,
        targets: Sequence[tuple[DeckSlotDB, int | None]],
    ) -> FillReport:
        """
        Reserve copies for `targets` of (slot, cap on new copies) pairs.

        A slot never receives more than it is missing; a cap of None means
        "everything missing".
        """
        reservations = await ledger.list_for_deck(session, deck.id)
        reserved_before, cost_before = _totals(reservations)
        slots = [slot for slot, _ in targets]
        _, candidates = await _lock_candidates(
            session, owner_id, slots, [r.inventory_row_id for r in reservations]
        )

        requests = []
        held: list[int] = []
        for slot, cap in targets:
            already = _held_for_slot(slot, reservations)
            missing = max(0, slot.quantity_required - already)
            held.append(already)
            requests.append((candidates[_ref(slot)], missing if cap is None else min(cap, missing)))
        plans = select_many(requests)

        rows = await inventory.lock_inventory_rows(
            session, owner_id, [a.inventory_row_id for plan in plans for a in plan]
        )
        report = FillReport(
            deck_id=deck.id, reserved_before=reserved_before, cost_before=cost_before
        )
        for (slot, _), already, plan in zip(targets, held, plans, strict=True):
            for allocation in plan:
                await ledger.reserve(
                    session, owner_id, deck.id, rows[allocation.inventory_row_id], allocation.take
                )
            filled = sum(a.take for a in plan)
            report.slots.append(
                SlotFill(
                    card_name=slot.card_name,
                    required=slot.quantity_required,
                    filled=filled,
                    reserved=already + filled,
                    still_missing=max(0, slot.quantity_required - already - filled),
                )
            )

        report.reserved_after, report.cost_after = _totals(
            await ledger.list_for_deck(session, deck.id)
        )
        return report

    async def auto_fill_deck(self, owner_id: str, deck_id: int) -> FillReport:
        """
        Fill every slot's missing copies from available inventory.

        Running it twice in a row reserves nothing the second time.
        """

        async def op(session: AsyncSession) -> FillReport:
            deck = await deck_store.get_deck(session, owner_id, deck_id, for_update=True)
            _require_instance(deck)
            return await self._fill_slots(session, owner_id, deck, [(s, None) for s in deck.slots])

        report = await self._atomic(op)
        logger.info(
            "Auto-filled deck %d: %d copies reserved, %d still missing",
            deck_id,
            report.filled,
            report.missing_count,
        )
        return report

    async def auto_fill_slot(
        self,
        owner_id: str,
        deck_id: int,
        card_name: str,
        count: int | None = None,
    ) -> FillReport:
        """Fill one slot, reserving at most `count` new copies."""
        if count is not None:
            require_positive(count, "Count")
        key = normalize(card_name)

        async def op(session: AsyncSession) -> FillReport:
            deck = await deck_store.get_deck(session, owner_id, deck_id, for_update=True)
            _require_instance(deck)
            slot = next((s for s in deck.slots if s.name_key == key), None)
            if slot is None:
                raise NotFoundError("Deck slot", card_name)
            return await self._fill_slots(session, owner_id, deck, [(slot, count)])

        return await self._atomic(op)

    async def reoptimize_deck(self, owner_id: str, deck_id: int) -> FillReport:
        """
        Release the deck's reservations and fill it again in one transaction.

        The new selection sees the deck's own copies as available, so older
        or cheaper stock can replace what the deck holds. When the new
        selection would cost more without reserving more copies the current
        reservations are kept. The reserved count may go down when copies
        left the candidate pool (moved to Trash, sold to zero).
        """

        async def op(session: AsyncSession) -> FillReport:
            deck = await deck_store.get_deck(session, owner_id, deck_id, for_update=True)
            _require_instance(deck)
            reservations = await ledger.list_for_deck(session, deck.id)
            reserved_before, cost_before = _totals(reservations)
            own = {r.inventory_row_id: r.quantity_reserved for r in reservations}
            slots = list(deck.slots)
            rows, candidates = await _lock_candidates(session, owner_id, slots, own.keys())

            requests = []
            pool: list[Candidate] = []
            for slot in slots:
                freed = [
                    replace(c, available=c.available + own.get(c.inventory_row_id, 0))
                    for c in candidates[_ref(slot)]
                ]
                pool.extend(freed)
                requests.append((freed, slot.quantity_required))
            plans = select_many(requests)
            planned = sum(a.take for plan in plans for a in plan)
            planned_cost = _plan_cost(plans, pool)

            report = FillReport(
                deck_id=deck.id, reserved_before=reserved_before, cost_before=cost_before
            )
            if planned_cost > cost_before and planned <= reserved_before:
                logger.info(
                    "Deck %d already holds its cheapest selection (%s <= %s)",
                    deck.id,
                    cost_before,
                    planned_cost,
                )
                for slot in slots:
                    held = _held_for_slot(slot, reservations)
                    report.slots.append(
                        SlotFill(
                            card_name=slot.card_name,
                            required=slot.quantity_required,
                            filled=0,
                            reserved=held,
                            still_missing=max(0, slot.quantity_required - held),
                        )
                    )
                report.reserved_after, report.cost_after = reserved_before, cost_before
                return report

            for reservation in reservations:
                await ledger.release(session, owner_id, reservation)
            for slot, plan in zip(slots, plans, strict=True):
                for allocation in plan:
                    await ledger.reserve(
                        session,
                        owner_id,
                        deck.id,
                        rows[allocation.inventory_row_id],
                        allocation.take,
                    )
                filled = sum(a.take for a in plan)
                report.slots.append(
                    SlotFill(
                        card_name=slot.card_name,
                        required=slot.quantity_required,
                        filled=filled,
                        reserved=filled,
                        still_missing=slot.quantity_required - filled,
                    )
                )
            report.reserved_after, report.cost_after = _totals(
                await ledger.list_for_deck(session, deck.id)
            )
            return report

        report = await self._atomic(op)
        if report.reserved_after < report.reserved_before:
            logger.warning(
                "Re-optimizing deck %d reduced reserved copies from %d to %d",
                deck_id,
                report.reserved_before,
                report.reserved_after,
            )
        return report

    # --- Deck lifecycle ---

    async def create_instance_from_decklist(
        self,
        owner_id: str,
        decklist_id: int,
        name: str | None = None,
    ) -> tuple[DeckView, FillReport]:
        """
        Create a deck instance from a decklist's slots and auto-fill it.

        Both happen in one transaction: the instance never exists unfilled.
        """

        async def op(session: AsyncSession) -> tuple[DeckView, FillReport]:
            source = await deck_store.get_deck(session, owner_id, decklist_id)
            deck = await deck_store.create_deck(
                session,
                owner_id,
                name or source.name,
                commander=source.commander,
                format_name=source.format,
                description=source.description,
                is_instance=True,
                slot_mode=source.slot_mode,
                source_decklist_id=source.id,
                slots=deck_store.slots_to_model(source),
            )
            report = await self._fill_slots(
                session, owner_id, deck, [(s, None) for s in deck.slots]
            )
            view = build_view(deck, await ledger.list_for_deck(session, deck.id))
            return view, report

        view, report = await self._atomic(op)
        logger.info(
            "Created deck instance %d from decklist %d (%d missing)",
            view.deck_id,
            decklist_id,
            report.missing_count,
        )
        return view, report

    async def release_deck(
        self,
        owner_id: str,
        deck_id: int,
        *,
        restore_folders: bool | None = None,
    ) -> ReleaseOutcome:
        """
        Drop all of a deck's reservations, then delete the deck.

        With `restore_folders` (default from settings), rows go back to the
        folder they were reserved from, but only rows no other deck holds and
        only while that folder still exists.
        """
        restore = settings.restore_folder_on_release if restore_folders is None else restore_folders

        async def op(session: AsyncSession) -> ReleaseOutcome:
            known: set[str] = set()
            if restore:
                snapshots = await ledger.snapshot_folders(session, deck_id)
                known = await folders.known_folders(session, owner_id, snapshots)
            deck = await deck_store.get_deck(session, owner_id, deck_id, for_update=True)
            reservations = await ledger.list_for_deck(session, deck.id)
            row_ids = [r.inventory_row_id for r in reservations]
            rows = await inventory.lock_inventory_rows(session, owner_id, row_ids)
            shared = await ledger.other_deck_row_ids(session, row_ids, deck.id)

            outcome = ReleaseOutcome(deck_id=deck.id)
            for reservation in reservations:
                snapshot = reservation.original_folder
                outcome.released_copies += reservation.quantity_reserved
                row = rows[reservation.inventory_row_id]
                await ledger.release(session, owner_id, reservation)
                if not restore or not snapshot or row.id in shared or row.folder == snapshot:
                    continue
                if snapshot not in known:
                    logger.info(
                        "Folder %s is gone; row %d stays in %s", snapshot, row.id, row.folder
                    )
                    continue
                await inventory.move_to_folder(session, owner_id, row.id, snapshot, verify=False)
                outcome.restored_row_ids.append(row.id)

            await transaction_log.record(
                session,
                owner_id,
                TransactionType.DECK_RELEASE,
                deck_id=deck.id,
                quantity=outcome.released_copies,
                detail=deck.name,
            )
            await deck_store.delete_deck(session, owner_id, deck.id, allow_reservations=True)
            return outcome

        outcome = await self._atomic(op)
        logger.info("Released deck %d (%d copies)", deck_id, outcome.released_copies)
        await self._events.publish(
            CommitEvent(
                kind=event_kinds.DECK_RELEASED,
                owner_id=owner_id,
                payload={"deck_id": deck_id, "released_copies": outcome.released_copies},
            )
        )
        return outcome

    # --- Sales ---

    async def sell_deck(
        self,
        owner_id: str,
        deck_id: int,
        sale_price: Decimal | float | str,
    ) -> SaleOutcome:
        """
        Sell a deck: consume its reserved copies and record the sale.

        Each reserved row loses the reserved copies and is deleted when it
        reaches zero. Profit uses the cost basis of the copies actually
        reserved; an incomplete deck may be sold.
        """
        price = to_price(sale_price, "Sale price")

        async def op(session: AsyncSession) -> SaleOutcome:
            deck = await deck_store.get_deck(session, owner_id, deck_id, for_update=True)
            reservations = await ledger.list_for_deck(session, deck.id)
            rows = await inventory.lock_inventory_rows(
                session, owner_id, [r.inventory_row_id for r in reservations]
            )
            view = build_view(deck, reservations)
            consumed = {r.inventory_row_id: r.quantity_reserved for r in reservations}
            _, basis = _totals(reservations)

            for reservation in reservations:
                await session.delete(reservation)
            await session.flush()

            deleted: list[int] = []
            for row_id in sorted(consumed):
                row = rows[row_id]
                row.quantity -= consumed[row_id]
                if row.quantity == 0:
                    await inventory.delete_consumed_row(session, row)
                    deleted.append(row_id)
            await session.flush()

            deck_name = deck.name
            await deck_store.delete_deck(session, owner_id, deck.id, allow_reservations=True)
            sale = await record_sale(
                session,
                owner_id,
                item_type=SaleItemType.DECK,
                item_id=deck_id,
                item_name=deck_name,
                purchase_price=basis,
                sell_price=price,
                quantity=1,
            )
            return SaleOutcome(
                sale=sale_to_model(sale),
                deleted_row_ids=deleted,
                missing_count=view.missing_count,
            )

        outcome = await self._atomic(op)
        if outcome.missing_count:
            logger.warning("Sold deck %d with %d cards missing", deck_id, outcome.missing_count)
        logger.info(
            "Sold deck %d for %s (basis %s, profit %s)",
            deck_id,
            outcome.sale.sell_price,
            outcome.sale.purchase_price,
            outcome.sale.profit,
        )
        await self._events.publish(
            CommitEvent(
                kind=event_kinds.DECK_SOLD,
                owner_id=owner_id,
                payload={
                    "deck_id": deck_id,
                    "sale_id": outcome.sale.id,
                    "deleted_row_ids": outcome.deleted_row_ids,
                },
            )
        )
        return outcome

    async def sell_card(
        self,
        owner_id: str,
        inventory_row_id: int,
        sell_price: Decimal | float | str,
        quantity: int = 1,
    ) -> SaleOutcome:
        """
        Sell unreserved copies of one inventory row.

        `sell_price` is per copy. The row is deleted when it reaches zero.
        """
        require_positive(quantity)
        price = to_price(sell_price, "Sell price")

        async def op(session: AsyncSession) -> SaleOutcome:
            rows = await inventory.lock_inventory_rows(session, owner_id, [inventory_row_id])
            row = rows[inventory_row_id]
            reserved = (await inventory.reserved_quantities(session, [row.id])).get(row.id, 0)
            available = row.quantity - reserved
            if quantity > available:
                raise InsufficientQuantityError(row.id, requested=quantity, available=available)

            card_name = row.card_name
            basis = row.purchase_price
            row.quantity -= quantity
            deleted: list[int] = []
            if row.quantity == 0:
                await inventory.delete_consumed_row(session, row)
                deleted.append(inventory_row_id)
            else:
                await session.flush()

            sale = await record_sale(
                session,
                owner_id,
                item_type=SaleItemType.CARD,
                item_id=inventory_row_id,
                item_name=card_name,
                purchase_price=basis,
                sell_price=price,
                quantity=quantity,
            )
            return SaleOutcome(sale=sale_to_model(sale), deleted_row_ids=deleted)

        outcome = await self._atomic(op)
        logger.info(
            "Sold %d x row %d for %s each", quantity, inventory_row_id, outcome.sale.sell_price
        )
        await self._events.publish(
            CommitEvent(
                kind=event_kinds.CARD_SOLD,
                owner_id=owner_id,
                payload={"inventory_row_id": inventory_row_id, "sale_id": outcome.sale.id},
            )
        )
        return outcome

    # --- Trash ---

    async def purge_trash(self, owner_id: str) -> list[int]:
        """
        Permanently delete every row in the Trash.

        Raises:
            ReservedRowInTrashError: A trashed row is still reserved; nothing is deleted
        """

        async def op(session: AsyncSession) -> list[int]:
            return await inventory.purge_trash(session, owner_id)

        deleted = await self._atomic(op)
        if deleted:
            await self._events.publish(
                CommitEvent(
                    kind=event_kinds.TRASH_PURGED,
                    owner_id=owner_id,
                    payload={"inventory_row_ids": deleted},
                )
            )
        return deleted
