"""Tests for the deck read model."""

from decimal import Decimal

from binderkeep.models.deck import DeckSlot, ReservationView
from binderkeep.services.view_projector import project_deck, slot_reserved


def reservation(
    res_id: int,
    card_name: str,
    quantity: int,
    price: str = "1.00",
    set_code: str | None = None,
) -> ReservationView:
    return ReservationView(
        id=res_id,
        deck_id=1,
        inventory_row_id=100 + res_id,
        card_name=card_name,
        set_code=set_code,
        quantity_reserved=quantity,
        purchase_price=Decimal(price),
        folder="Uncategorized",
        original_folder="Uncategorized",
        inventory_quantity=quantity,
    )


class TestProjectDeck:
    def test_complete_deck(self) -> None:
        view = project_deck(
            1,
            "Deck",
            [DeckSlot("Sol Ring", 1), DeckSlot("Island", 2)],
            [reservation(1, "Sol Ring", 1, "1.00"), reservation(2, "island", 2, "0.25")],
        )

        assert view.reserved_count == 3
        assert view.decklist_total == 3
        assert view.missing_count == 0
        assert view.extras_count == 0
        assert view.total_cost == Decimal("1.50")
        assert view.is_complete

    def test_missing_cards(self) -> None:
        view = project_deck(1, "Deck", [DeckSlot("Island", 4)], [reservation(1, "Island", 1)])

        assert view.missing_count == 3
        assert view.slots[0].missing == 3
        assert not view.is_complete

    def test_reservation_without_slot_counts_as_extra(self) -> None:
        """Cards the decklist does not name are extras."""
        view = project_deck(
            1,
            "Deck",
            [DeckSlot("Island", 1)],
            [reservation(1, "Island", 1), reservation(2, "Forest", 2)],
        )

        assert view.extras_count == 2
        assert view.missing_count == 0
        assert view.slots[0].extras == 0

    def test_permissive_overfill_shows_slot_extras(self) -> None:
        view = project_deck(1, "Deck", [DeckSlot("Island", 2)], [reservation(1, "Island", 5)])

        assert view.slots[0].extras == 3
        assert view.extras_count == 3
        assert view.is_complete

    def test_counts_are_deck_wide(self) -> None:
        """An overfilled slot offsets a short one in the deck totals."""
        view = project_deck(
            1,
            "Deck",
            [DeckSlot("Island", 2), DeckSlot("Forest", 2)],
            [reservation(1, "Island", 4)],
        )

        assert view.missing_count == 0
        assert view.extras_count == 0
        assert [s.missing for s in view.slots] == [0, 2]
        assert not view.is_complete

    def test_empty_deck(self) -> None:
        view = project_deck(1, "Empty", [], [])

        assert view.reserved_count == 0
        assert view.total_cost == Decimal("0")
        assert view.is_complete


class TestSlotReserved:
    def test_set_constraint_applies(self) -> None:
        reservations = [
            reservation(1, "Island", 1, set_code="M21"),
            reservation(2, "Island", 2, set_code="ZNR"),
        ]

        assert slot_reserved(DeckSlot("Island", 3, "M21"), reservations) == 1
        assert slot_reserved(DeckSlot("Island", 3), reservations) == 3
