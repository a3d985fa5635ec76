"""
Tests for the reservation service.

Scenarios run against an in-memory database through the public service
methods; committed state is read back through fresh sessions.
"""

import logging
from decimal import Decimal

import pytest
from sqlalchemy.orm.attributes import set_committed_value

from binderkeep.db import decks as deck_store
from binderkeep.db import reservations as ledger
from binderkeep.db.sales import list_sales
from binderkeep.models.deck import DeckSlot, DeckView
from binderkeep.models.failure import (
    ForbiddenError,
    InsufficientQuantityError,
    NotFoundError,
    ReservedRowInTrashError,
    SlotOverfilledError,
    ValidationFailedError,
)
from binderkeep.models.sale import SaleItemType
from binderkeep.services import events as event_kinds
from binderkeep.services.view_projector import deck_view

OWNER = "owner-1"
SERVICE_LOGGER = "binderkeep.services.reservation_service"


@pytest.fixture
def view_of(session_factory):
    """Project a deck from committed state."""

    async def _view_of(deck_id: int) -> DeckView:
        async with session_factory() as session:
            return await deck_view(session, OWNER, deck_id)

    return _view_of


def holdings(view: DeckView) -> dict[int, int]:
    """Inventory row id -> copies the deck holds."""
    return {r.inventory_row_id: r.quantity_reserved for r in view.reservations}


class TestAddCard:
    async def test_simple_reserve(self, service, add_row, make_deck, read_item, view_of) -> None:
        """One copy of a two-copy row is reserved and priced into the deck."""
        row_a = await add_row("Sol Ring", 2, "1.00")
        deck = await make_deck([("Sol Ring", 1)])

        reservation = await service.add_card_to_deck(OWNER, deck, row_a, 1)

        assert reservation.quantity_reserved == 1
        assert reservation.original_folder == "Uncategorized"
        view = await view_of(deck)
        assert view.reserved_count == 1
        assert view.missing_count == 0
        assert view.total_cost == Decimal("1.00")
        assert (await read_item(row_a)).available == 1

    async def test_insufficient_steps_down(
        self, service, add_row, make_deck, read_item, view_of, caplog
    ) -> None:
        """Asking for more than is available reserves what is left."""
        row_a = await add_row("Sol Ring", 3)
        for name in ("Other 1", "Other 2"):
            other = await make_deck([("Sol Ring", 1)], name=name)
            await service.add_card_to_deck(OWNER, other, row_a, 1)
        deck = await make_deck([("Sol Ring", 2)])

        with caplog.at_level(logging.WARNING, logger=SERVICE_LOGGER):
            reservation = await service.add_card_to_deck(OWNER, deck, row_a, 2)

        assert reservation.quantity_reserved == 1
        assert (await read_item(row_a)).available == 0
        assert holdings(await view_of(deck)) == {row_a: 1}
        assert "reserving 1 of 2" in caplog.text

    async def test_nothing_available(self, service, add_row, make_deck) -> None:
        row = await add_row("Sol Ring", 1)
        first = await make_deck([("Sol Ring", 1)], name="First")
        second = await make_deck([("Sol Ring", 1)], name="Second")
        await service.add_card_to_deck(OWNER, first, row, 1)

        with pytest.raises(InsufficientQuantityError) as exc_info:
            await service.add_card_to_deck(OWNER, second, row, 1)

        assert exc_info.value.available == 0

    async def test_repeat_add_merges_reservation(self, service, add_row, make_deck) -> None:
        row = await add_row("Island", 4)
        deck = await make_deck([("Island", 4)])

        first = await service.add_card_to_deck(OWNER, deck, row, 1)
        second = await service.add_card_to_deck(OWNER, deck, row, 2)

        assert second.id == first.id
        assert second.quantity_reserved == 3

    async def test_strict_slot_cap(self, service, add_row, make_deck, view_of) -> None:
        """A STRICT deck never holds more than a slot requires."""
        row = await add_row("Island", 4)
        deck = await make_deck([("Island", 2)])
        await service.add_card_to_deck(OWNER, deck, row, 1)

        with pytest.raises(SlotOverfilledError) as exc_info:
            await service.add_card_to_deck(OWNER, deck, row, 2)

        assert exc_info.value.required == 2
        assert exc_info.value.resulting == 3
        assert holdings(await view_of(deck)) == {row: 1}

    async def test_strict_rejects_card_without_slot(self, service, add_row, make_deck) -> None:
        row = await add_row("Forest", 1)
        deck = await make_deck([("Island", 2)])

        with pytest.raises(SlotOverfilledError) as exc_info:
            await service.add_card_to_deck(OWNER, deck, row, 1)

        assert exc_info.value.required == 0

    async def test_permissive_allows_extras(self, service, add_row, make_deck, view_of) -> None:
        row = await add_row("Island", 4)
        forest = await add_row("Forest", 1)
        deck = await make_deck([("Island", 1)], slot_mode="permissive")

        await service.add_card_to_deck(OWNER, deck, row, 3)
        await service.add_card_to_deck(OWNER, deck, forest, 1)

        view = await view_of(deck)
        assert view.reserved_count == 4
        assert view.extras_count == 3
        assert view.slots[0].extras == 2

    async def test_trashed_row_rejected(self, service, add_row, make_deck) -> None:
        row = await add_row("Island", 1, folder="Trash")
        deck = await make_deck([("Island", 1)])

        with pytest.raises(ValidationFailedError):
            await service.add_card_to_deck(OWNER, deck, row, 1)

    async def test_decklist_cannot_reserve(self, service, add_row, make_deck) -> None:
        row = await add_row("Island", 1)
        decklist = await make_deck([("Island", 1)], is_instance=False)

        with pytest.raises(ValidationFailedError):
            await service.add_card_to_deck(OWNER, decklist, row, 1)

    async def test_other_owners_row_forbidden(self, service, add_row, make_deck) -> None:
        theirs = await add_row("Island", 1, owner_id="owner-2")
        deck = await make_deck([("Island", 1)])

        with pytest.raises(ForbiddenError):
            await service.add_card_to_deck(OWNER, deck, theirs, 1)

    async def test_non_positive_quantity(self, service, add_row, make_deck) -> None:
        row = await add_row("Island", 1)
        deck = await make_deck([("Island", 1)])

        with pytest.raises(ValidationFailedError):
            await service.add_card_to_deck(OWNER, deck, row, 0)


class TestRemoveCard:
    async def test_partial_then_full(self, service, add_row, make_deck, read_item) -> None:
        row = await add_row("Island", 3)
        deck = await make_deck([("Island", 3)])
        reservation = await service.add_card_to_deck(OWNER, deck, row, 3)

        remaining = await service.remove_card_from_deck(OWNER, deck, reservation.id, 2)
        assert remaining == 1
        assert (await read_item(row)).available == 2

        remaining = await service.remove_card_from_deck(OWNER, deck, reservation.id, 5)
        assert remaining == 0
        assert (await read_item(row)).reserved_quantity == 0

    async def test_wrong_deck(self, service, add_row, make_deck) -> None:
        row = await add_row("Island", 1)
        deck = await make_deck([("Island", 1)])
        other = await make_deck([("Island", 1)], name="Other")
        reservation = await service.add_card_to_deck(OWNER, deck, row, 1)

        with pytest.raises(NotFoundError):
            await service.remove_card_from_deck(OWNER, other, reservation.id, 1)

    async def test_release_is_left_inverse_of_reserving(
        self, service, add_row, make_deck, read_item
    ) -> None:
        """Any add/remove sequence followed by release leaves the row as it was."""
        row = await add_row("Island", 3, "0.25", folder="Binder")
        before = await read_item(row)
        deck = await make_deck([("Island", 3)])

        reservation = await service.add_card_to_deck(OWNER, deck, row, 2)
        await service.remove_card_from_deck(OWNER, deck, reservation.id, 1)
        await service.add_card_to_deck(OWNER, deck, row, 2)
        await service.release_deck(OWNER, deck)

        after = await read_item(row)
        assert after.quantity == before.quantity
        assert after.reserved_quantity == 0
        assert after.folder == before.folder
        assert after.purchase_price == before.purchase_price


class TestMoves:
    async def test_move_between_decks(
        self, service, add_row, make_deck, read_item, view_of
    ) -> None:
        """The whole reservation changes deck; the row's reserved total is unchanged."""
        row = await add_row("Island", 2, folder="Binder")
        first = await make_deck([("Island", 2)], name="First")
        second = await make_deck([("Island", 2)], name="Second")
        reservation = await service.add_card_to_deck(OWNER, first, row, 2)

        moved = await service.move_card_between_decks(OWNER, reservation.id, second)

        assert moved.deck_id == second
        assert moved.quantity_reserved == 2
        assert moved.original_folder == "Binder"
        assert holdings(await view_of(first)) == {}
        assert holdings(await view_of(second)) == {row: 2}
        assert (await read_item(row)).reserved_quantity == 2

    async def test_move_respects_target_cap(self, service, add_row, make_deck, view_of) -> None:
        row = await add_row("Island", 2)
        first = await make_deck([("Island", 2)], name="First")
        second = await make_deck([("Island", 1)], name="Second")
        reservation = await service.add_card_to_deck(OWNER, first, row, 2)

        with pytest.raises(SlotOverfilledError):
            await service.move_card_between_decks(OWNER, reservation.id, second)

        assert holdings(await view_of(first)) == {row: 2}

    async def test_move_merges_into_target(self, service, add_row, make_deck, view_of) -> None:
        row = await add_row("Island", 3)
        first = await make_deck([("Island", 2)], name="First")
        second = await make_deck([("Island", 3)], name="Second")
        reservation = await service.add_card_to_deck(OWNER, first, row, 2)
        await service.add_card_to_deck(OWNER, second, row, 1)

        await service.move_card_between_decks(OWNER, reservation.id, second)

        view = await view_of(second)
        assert len(view.reservations) == 1
        assert view.reserved_count == 3

    async def test_move_to_same_deck_rejected(self, service, add_row, make_deck) -> None:
        row = await add_row("Island", 1)
        deck = await make_deck([("Island", 1)])
        reservation = await service.add_card_to_deck(OWNER, deck, row, 1)

        with pytest.raises(ValidationFailedError):
            await service.move_card_between_decks(OWNER, reservation.id, deck)

    async def test_move_from_deck_to_folder(self, service, add_row, make_deck, view_of) -> None:
        row = await add_row("Island", 2)
        deck = await make_deck([("Island", 2)])
        reservation = await service.add_card_to_deck(OWNER, deck, row, 2)

        item = await service.move_card_from_deck_to_folder(OWNER, reservation.id, "Binder")

        assert item.folder == "Binder"
        assert item.reserved_quantity == 0
        assert (await view_of(deck)).reserved_count == 0

    async def test_move_inventory_keeps_reservations(
        self, service, add_row, make_deck, read_item, view_of
    ) -> None:
        """Moving a row between folders never touches what decks hold."""
        row = await add_row("Island", 2)
        deck = await make_deck([("Island", 2)])
        await service.add_card_to_deck(OWNER, deck, row, 1)

        item = await service.move_inventory_to_folder(OWNER, row, "Deck Box")

        assert item.folder == "Deck Box"
        assert item.reserved_quantity == 1
        view = await view_of(deck)
        assert view.reservations[0].original_folder == "Uncategorized"

    async def test_blank_folder_rejected(self, service, add_row) -> None:
        row = await add_row("Island", 1)

        with pytest.raises(ValidationFailedError):
            await service.move_inventory_to_folder(OWNER, row, "  ")

    async def test_unknown_folder_rejected(
        self, service, add_row, make_deck, read_item, view_of
    ) -> None:
        row = await add_row("Island", 1)
        deck = await make_deck([("Island", 1)])
        reservation = await service.add_card_to_deck(OWNER, deck, row, 1)

        with pytest.raises(ValidationFailedError, match="Unknown folder"):
            await service.move_inventory_to_folder(OWNER, row, "Shoebox")
        with pytest.raises(ValidationFailedError, match="Unknown folder"):
            await service.move_card_from_deck_to_folder(OWNER, reservation.id, "Shoebox")

        assert (await read_item(row)).folder == "Uncategorized"
        assert holdings(await view_of(deck)) == {row: 1}


class TestLockOrder:
    """Reservations are locked only after the decks that own them."""

    @pytest.fixture
    def lock_calls(self, monkeypatch) -> list[str]:
        calls: list[str] = []
        real_get_reservation = ledger.get_reservation
        real_get_deck = deck_store.get_deck
        real_lock_decks = deck_store.lock_decks

        async def get_reservation(session, owner_id, reservation_id, *, for_update=False):
            calls.append("reservation locked" if for_update else "reservation read")
            return await real_get_reservation(
                session, owner_id, reservation_id, for_update=for_update
            )

        async def get_deck(session, owner_id, deck_id, *, for_update=False):
            if for_update:
                calls.append("decks locked")
            return await real_get_deck(session, owner_id, deck_id, for_update=for_update)

        async def lock_decks(session, owner_id, deck_ids):
            calls.append("decks locked")
            return await real_lock_decks(session, owner_id, deck_ids)

        monkeypatch.setattr(ledger, "get_reservation", get_reservation)
        monkeypatch.setattr(deck_store, "get_deck", get_deck)
        monkeypatch.setattr(deck_store, "lock_decks", lock_decks)
        return calls

    async def test_move_between_decks(self, service, add_row, make_deck, lock_calls) -> None:
        row = await add_row("Island", 1)
        first = await make_deck([("Island", 1)], name="First")
        second = await make_deck([("Island", 1)], name="Second")
        reservation = await service.add_card_to_deck(OWNER, first, row, 1)
        lock_calls.clear()

        await service.move_card_between_decks(OWNER, reservation.id, second)

        assert lock_calls == ["reservation read", "decks locked", "reservation locked"]

    async def test_move_to_folder(self, service, add_row, make_deck, lock_calls) -> None:
        row = await add_row("Island", 1)
        deck = await make_deck([("Island", 1)])
        reservation = await service.add_card_to_deck(OWNER, deck, row, 1)
        lock_calls.clear()

        await service.move_card_from_deck_to_folder(OWNER, reservation.id, "Binder")

        assert lock_calls == ["reservation read", "decks locked", "reservation locked"]

    async def test_reservation_moved_meanwhile_is_retried(
        self, service, add_row, make_deck, view_of, monkeypatch, caplog
    ) -> None:
        """A reservation that changed deck after the first read is re-read from scratch."""
        row = await add_row("Island", 1)
        first = await make_deck([("Island", 1)], name="First")
        second = await make_deck([("Island", 1)], name="Second")
        third = await make_deck([("Island", 1)], name="Third")
        reservation = await service.add_card_to_deck(OWNER, first, row, 1)
        real_get_reservation = ledger.get_reservation
        stale_reads = [third]

        async def get_reservation(session, owner_id, reservation_id, *, for_update=False):
            found = await real_get_reservation(
                session, owner_id, reservation_id, for_update=for_update
            )
            if not for_update and stale_reads:
                # As if another transaction had moved it before this one locked
                set_committed_value(found, "deck_id", stale_reads.pop())
            return found

        monkeypatch.setattr(ledger, "get_reservation", get_reservation)
        with caplog.at_level(logging.WARNING, logger="binderkeep.services.unit_of_work"):
            moved = await service.move_card_between_decks(OWNER, reservation.id, second)

        assert moved.deck_id == second
        assert "retrying 1/" in caplog.text
        assert holdings(await view_of(first)) == {}
        assert holdings(await view_of(third)) == {}
        assert holdings(await view_of(second)) == {row: 1}


class TestAutoFill:
    async def test_prefers_older_then_cheaper(self, service, add_row, make_deck, view_of) -> None:
        """The older row is drained first, the newer cheaper one fills the rest."""
        row_x = await add_row("Island", 1, "0.50", days=0)
        row_y = await add_row("Island", 4, "0.10", days=1)
        deck = await make_deck([("Island", 3)])

        report = await service.auto_fill_deck(OWNER, deck)

        assert report.filled == 3
        assert report.missing_count == 0
        assert report.cost_after == Decimal("0.70")
        view = await view_of(deck)
        assert holdings(view) == {row_x: 1, row_y: 2}
        assert view.total_cost == Decimal("0.70")

    async def test_idempotent(self, service, add_row, make_deck, view_of) -> None:
        await add_row("Island", 2, days=0)
        await add_row("Island", 5, days=1)
        await add_row("Sol Ring", 1)
        deck = await make_deck([("Island", 4), ("Sol Ring", 1), ("Mox Opal", 1)])

        await service.auto_fill_deck(OWNER, deck)
        once = holdings(await view_of(deck))
        second = await service.auto_fill_deck(OWNER, deck)

        assert second.filled == 0
        assert holdings(await view_of(deck)) == once
        assert second.missing_count == 1

    async def test_partial_fill_reports_missing(self, service, add_row, make_deck) -> None:
        await add_row("Island", 1)
        deck = await make_deck([("Island", 3), ("Forest", 2)])

        report = await service.auto_fill_deck(OWNER, deck)

        by_name = {s.card_name: s for s in report.slots}
        assert by_name["Island"].filled == 1
        assert by_name["Island"].still_missing == 2
        assert by_name["Forest"].still_missing == 2
        assert report.missing_count == 4

    async def test_skips_trash(self, service, add_row, make_deck, view_of) -> None:
        await add_row("Island", 3, folder="Trash")
        kept = await add_row("Island", 1, days=5)
        deck = await make_deck([("Island", 2)])

        await service.auto_fill_deck(OWNER, deck)

        assert holdings(await view_of(deck)) == {kept: 1}

    async def test_honors_set_constraint(self, service, add_row, make_deck, view_of) -> None:
        await add_row("Island", 4, set_code="ZNR", days=0)
        m21 = await add_row("Island", 4, set_code="M21", days=1)
        deck = await make_deck([DeckSlot("Island", 2, "M21")])

        await service.auto_fill_deck(OWNER, deck)

        assert holdings(await view_of(deck)) == {m21: 2}

    async def test_does_not_take_reserved_copies(
        self, service, add_row, make_deck, read_item
    ) -> None:
        """Two decks competing for one row never over-commit it."""
        row = await add_row("Island", 3)
        first = await make_deck([("Island", 2)], name="First")
        second = await make_deck([("Island", 2)], name="Second")

        await service.auto_fill_deck(OWNER, first)
        report = await service.auto_fill_deck(OWNER, second)

        assert report.filled == 1
        item = await read_item(row)
        assert item.reserved_quantity == item.quantity == 3

    async def test_fill_one_slot_with_count(self, service, add_row, make_deck, view_of) -> None:
        row = await add_row("Island", 5)
        await add_row("Forest", 5)
        deck = await make_deck([("Island", 4), ("Forest", 4)])

        report = await service.auto_fill_slot(OWNER, deck, "  island", count=2)

        assert [s.card_name for s in report.slots] == ["Island"]
        assert report.slots[0].filled == 2
        assert report.slots[0].still_missing == 2
        assert holdings(await view_of(deck)) == {row: 2}

    async def test_fill_unknown_slot(self, service, make_deck) -> None:
        deck = await make_deck([("Island", 1)])

        with pytest.raises(NotFoundError):
            await service.auto_fill_slot(OWNER, deck, "Forest")

    async def test_decklist_cannot_fill(self, service, make_deck) -> None:
        decklist = await make_deck([("Island", 1)], is_instance=False)

        with pytest.raises(ValidationFailedError):
            await service.auto_fill_deck(OWNER, decklist)


class TestReoptimize:
    async def test_switches_to_better_stock(
        self, service, add_row, make_deck, read_item, view_of
    ) -> None:
        """Older cheaper copies added later replace what the deck holds."""
        pricey = await add_row("Island", 2, "2.00", days=5)
        deck = await make_deck([("Island", 2)])
        await service.auto_fill_deck(OWNER, deck)
        cheap = await add_row("Island", 2, "1.00", days=0)

        report = await service.reoptimize_deck(OWNER, deck)

        assert report.cost_before == Decimal("4.00")
        assert report.cost_after == Decimal("2.00")
        assert report.reserved_after == 2
        assert holdings(await view_of(deck)) == {cheap: 2}
        assert (await read_item(pricey)).available == 2

    async def test_never_increases_cost(self, service, add_row, make_deck, view_of) -> None:
        """An older but pricier row freed up later does not displace cheaper holdings."""
        await add_row("Island", 1, "0.50", days=0)
        newer = await add_row("Island", 4, "0.10", days=1)
        blocker = await make_deck([("Island", 1)], name="Blocker")
        await service.auto_fill_deck(OWNER, blocker)
        deck = await make_deck([("Island", 2)])
        await service.auto_fill_deck(OWNER, deck)
        await service.release_deck(OWNER, blocker)

        report = await service.reoptimize_deck(OWNER, deck)

        assert report.cost_after <= report.cost_before
        assert report.cost_after == Decimal("0.20")
        assert report.filled == 0
        assert holdings(await view_of(deck)) == {newer: 2}

    async def test_repeat_is_stable(self, service, add_row, make_deck, view_of) -> None:
        await add_row("Island", 2, "0.30", days=0)
        await add_row("Island", 2, "0.10", days=1)
        deck = await make_deck([("Island", 3)])
        await service.auto_fill_deck(OWNER, deck)
        before = holdings(await view_of(deck))

        first = await service.reoptimize_deck(OWNER, deck)
        second = await service.reoptimize_deck(OWNER, deck)

        assert holdings(await view_of(deck)) == before
        assert first.cost_after == first.cost_before
        assert second.cost_after == second.cost_before

    async def test_fills_newly_available_copies(self, service, add_row, make_deck) -> None:
        await add_row("Island", 1, "0.10", days=0)
        deck = await make_deck([("Island", 3)])
        await service.auto_fill_deck(OWNER, deck)
        await add_row("Island", 2, "5.00", days=3)

        report = await service.reoptimize_deck(OWNER, deck)

        assert report.reserved_before == 1
        assert report.reserved_after == 3
        assert report.missing_count == 0

    async def test_may_reduce_count(self, service, add_row, make_deck, caplog) -> None:
        """Copies moved to the Trash leave the pool; the drop is logged."""
        row = await add_row("Island", 2)
        deck = await make_deck([("Island", 2)])
        await service.auto_fill_deck(OWNER, deck)
        await service.move_inventory_to_folder(OWNER, row, "Trash")

        with caplog.at_level(logging.WARNING, logger=SERVICE_LOGGER):
            report = await service.reoptimize_deck(OWNER, deck)

        assert report.reserved_before == 2
        assert report.reserved_after == 0
        assert report.missing_count == 2
        assert "reduced reserved copies" in caplog.text


class TestDeckLifecycle:
    async def test_release_restores_availability(
        self, service, events, add_row, make_deck, read_item, session_factory
    ) -> None:
        row_a = await add_row("Sol Ring", 2, "1.00")
        deck = await make_deck([("Sol Ring", 1)])
        await service.add_card_to_deck(OWNER, deck, row_a, 1)

        outcome = await service.release_deck(OWNER, deck)

        assert outcome.released_copies == 1
        item = await read_item(row_a)
        assert item.quantity == 2
        assert item.available == 2
        async with session_factory() as session:
            with pytest.raises(NotFoundError):
                await deck_view(session, OWNER, deck)
        assert events.recent[-1].kind == event_kinds.DECK_RELEASED

    async def test_release_restores_folders(self, service, add_row, make_deck, read_item) -> None:
        row = await add_row("Island", 1, folder="Binder")
        deck = await make_deck([("Island", 1)])
        await service.add_card_to_deck(OWNER, deck, row, 1)
        await service.move_inventory_to_folder(OWNER, row, "Deck Box")

        outcome = await service.release_deck(OWNER, deck, restore_folders=True)

        assert outcome.restored_row_ids == [row]
        assert (await read_item(row)).folder == "Binder"

    async def test_release_keeps_folder_by_default(
        self, service, add_row, make_deck, read_item
    ) -> None:
        row = await add_row("Island", 1, folder="Binder")
        deck = await make_deck([("Island", 1)])
        await service.add_card_to_deck(OWNER, deck, row, 1)
        await service.move_inventory_to_folder(OWNER, row, "Deck Box")

        outcome = await service.release_deck(OWNER, deck)

        assert outcome.restored_row_ids == []
        assert (await read_item(row)).folder == "Deck Box"

    async def test_release_skips_rows_other_decks_hold(
        self, service, add_row, make_deck, read_item
    ) -> None:
        row = await add_row("Island", 2, folder="Binder")
        first = await make_deck([("Island", 1)], name="First")
        second = await make_deck([("Island", 1)], name="Second")
        await service.add_card_to_deck(OWNER, first, row, 1)
        await service.add_card_to_deck(OWNER, second, row, 1)
        await service.move_inventory_to_folder(OWNER, row, "Deck Box")

        outcome = await service.release_deck(OWNER, first, restore_folders=True)

        assert outcome.restored_row_ids == []
        item = await read_item(row)
        assert item.folder == "Deck Box"
        assert item.reserved_quantity == 1

    async def test_copy_decklist_to_inventory(self, service, add_row, make_deck, view_of) -> None:
        """A decklist becomes a filled deck instance in one step."""
        await add_row("Island", 2)
        decklist = await make_deck(
            [("Island", 3), ("Sol Ring", 1)], name="Mono Blue", is_instance=False
        )

        view, report = await service.create_instance_from_decklist(OWNER, decklist)

        assert view.is_instance
        assert view.name == "Mono Blue"
        assert view.deck_id != decklist
        assert view.reserved_count == 2
        assert report.missing_count == 2
        assert (await view_of(decklist)).reserved_count == 0

    async def test_copy_with_new_name(self, service, make_deck) -> None:
        decklist = await make_deck([("Island", 1)], is_instance=False)

        view, _ = await service.create_instance_from_decklist(OWNER, decklist, "Paper copy")

        assert view.name == "Paper copy"


class TestSales:
    async def test_sell_deck_consumes_reserved_copies(
        self, service, events, add_row, make_deck, read_item, session_factory
    ) -> None:
        """Fully reserved rows disappear; partly reserved rows shrink."""
        row_a = await add_row("Sol Ring", 1, "0.50")
        row_b = await add_row("Island", 4, "2.00")
        deck = await make_deck([("Sol Ring", 1), ("Island", 3)])
        await service.auto_fill_deck(OWNER, deck)

        outcome = await service.sell_deck(OWNER, deck, "20.00")

        assert outcome.deleted_row_ids == [row_a]
        assert outcome.missing_count == 0
        assert outcome.sale.item_type is SaleItemType.DECK
        assert outcome.sale.purchase_price == Decimal("6.50")
        assert outcome.sale.sell_price == Decimal("20.00")
        assert outcome.sale.profit == Decimal("13.50")

        with pytest.raises(NotFoundError):
            await read_item(row_a)
        item_b = await read_item(row_b)
        assert item_b.quantity == 1
        assert item_b.reserved_quantity == 0
        async with session_factory() as session:
            with pytest.raises(NotFoundError):
                await deck_view(session, OWNER, deck)
            sales = await list_sales(session, OWNER)
        assert [s.id for s in sales] == [outcome.sale.id]
        assert events.recent[-1].kind == event_kinds.DECK_SOLD
        assert events.recent[-1].payload["deleted_row_ids"] == [row_a]

    async def test_sell_incomplete_deck(self, service, add_row, make_deck, caplog) -> None:
        await add_row("Island", 1, "1.00")
        deck = await make_deck([("Island", 3)])
        await service.auto_fill_deck(OWNER, deck)

        with caplog.at_level(logging.WARNING, logger=SERVICE_LOGGER):
            outcome = await service.sell_deck(OWNER, deck, 5)

        assert outcome.missing_count == 2
        assert outcome.sale.profit == Decimal("4.00")
        assert "2 cards missing" in caplog.text

    async def test_sell_card(self, service, events, add_row, read_item) -> None:
        row = await add_row("Sol Ring", 3, "1.00")

        outcome = await service.sell_card(OWNER, row, "2.50", quantity=2)

        assert outcome.sale.quantity == 2
        assert outcome.sale.profit == Decimal("3.00")
        assert outcome.deleted_row_ids == []
        assert (await read_item(row)).quantity == 1
        assert events.recent[-1].kind == event_kinds.CARD_SOLD

    async def test_sell_last_copy_deletes_row(self, service, add_row, read_item) -> None:
        row = await add_row("Sol Ring", 1, "1.00")

        outcome = await service.sell_card(OWNER, row, "1.00")

        assert outcome.deleted_row_ids == [row]
        with pytest.raises(NotFoundError):
            await read_item(row)

    async def test_reserved_copies_not_sellable(self, service, add_row, make_deck) -> None:
        row = await add_row("Sol Ring", 2)
        deck = await make_deck([("Sol Ring", 1)])
        await service.add_card_to_deck(OWNER, deck, row, 1)

        with pytest.raises(InsufficientQuantityError):
            await service.sell_card(OWNER, row, "1.00", quantity=2)

    async def test_negative_price_rejected(self, service, add_row) -> None:
        row = await add_row("Sol Ring", 1)

        with pytest.raises(ValidationFailedError):
            await service.sell_card(OWNER, row, "-1")


class TestTrash:
    async def test_purge_rejects_reserved(self, service, add_row, make_deck, read_item) -> None:
        """Emptying the Trash fails while a trashed row is still reserved."""
        row_a = await add_row("Island", 1)
        deck = await make_deck([("Island", 1)])
        await service.add_card_to_deck(OWNER, deck, row_a, 1)
        await service.move_inventory_to_folder(OWNER, row_a, "Trash")

        with pytest.raises(ReservedRowInTrashError):
            await service.purge_trash(OWNER)

        item = await read_item(row_a)
        assert item.in_trash

    async def test_purge(self, service, events, add_row, read_item) -> None:
        kept = await add_row("Island", 1)
        trashed = await add_row("Forest", 2, folder="Trash")
        await add_row("Swamp", 1, folder="Trash", owner_id="owner-2")

        deleted = await service.purge_trash(OWNER)

        assert deleted == [trashed]
        assert (await read_item(kept)).folder == "Uncategorized"
        assert events.recent[-1].kind == event_kinds.TRASH_PURGED

    async def test_purge_nothing_publishes_nothing(self, service, events) -> None:
        assert await service.purge_trash(OWNER) == []
        assert len(events.recent) == 0
