"""
Deck read model.

`project_deck` is a pure function of a deck's slots and reservations.
The async loaders read committed state and hand it to the projector;
they never mutate anything.
"""

from collections.abc import Sequence
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from binderkeep.db import decks as deck_store
from binderkeep.db import reservations as ledger
from binderkeep.models.card_ref import matches
from binderkeep.models.db import DeckDB, ReservationDB
from binderkeep.models.deck import DeckSlot, DeckView, ReservationView, SlotMode, SlotView


def reservation_to_view(reservation: ReservationDB) -> ReservationView:
    """Join a reservation with the inventory row it claims."""
    row = reservation.inventory_row
    return ReservationView(
        id=reservation.id,
        deck_id=reservation.deck_id,
        inventory_row_id=reservation.inventory_row_id,
        card_name=row.card_name,
        set_code=row.set_code,
        quantity_reserved=reservation.quantity_reserved,
        purchase_price=row.purchase_price if row.purchase_price is not None else Decimal("0"),
        folder=row.folder,
        original_folder=reservation.original_folder,
        inventory_quantity=row.quantity,
    )


def slot_reserved(slot: DeckSlot, reservations: Sequence[ReservationView]) -> int:
    """Copies held for one slot: reservations whose row matches it."""
    return sum(r.quantity_reserved for r in reservations if matches(r, slot))


def project_deck(
    deck_id: int,
    name: str,
    slots: Sequence[DeckSlot],
    reservations: Sequence[ReservationView],
) -> DeckView:
    """
    Compute the deck view from slots and reservations.

    Missing and extras follow the deck-wide totals; the per-slot views
    break them down by card.
    """
    slot_views = [
        SlotView(
            card_name=slot.card_name,
            required=slot.quantity,
            reserved=slot_reserved(slot, reservations),
            set_code=slot.set_code,
        )
        for slot in slots
    ]
    reserved_count = sum(r.quantity_reserved for r in reservations)
    decklist_total = sum(slot.quantity for slot in slots)
    return DeckView(
        deck_id=deck_id,
        name=name,
        slots=slot_views,
        reservations=list(reservations),
        reserved_count=reserved_count,
        decklist_total=decklist_total,
        missing_count=max(0, decklist_total - reserved_count),
        extras_count=max(0, reserved_count - decklist_total),
        total_cost=sum((r.cost for r in reservations), start=Decimal("0")),
    )


def build_view(deck: DeckDB, reservations: Sequence[ReservationDB]) -> DeckView:
    """Project a loaded deck and its reservations, carrying deck metadata."""
    view = project_deck(
        deck.id,
        deck.name,
        deck_store.slots_to_model(deck),
        [reservation_to_view(r) for r in reservations],
    )
    view.commander = deck.commander
    view.format = deck.format
    view.description = deck.description
    view.is_instance = deck.is_instance
    view.slot_mode = SlotMode(deck.slot_mode)
    return view


async def deck_view(session: AsyncSession, owner_id: str, deck_id: int) -> DeckView:
    """Load and project one deck."""
    deck = await deck_store.get_deck(session, owner_id, deck_id)
    reservations = await ledger.list_for_deck(session, deck.id)
    return build_view(deck, reservations)


async def deck_views(
    session: AsyncSession,
    owner_id: str,
    *,
    instances: bool | None = None,
) -> list[DeckView]:
    """Project every deck of an owner, newest first."""
    decks = await deck_store.list_decks(session, owner_id, instances=instances)
    grouped = await ledger.list_for_decks(session, [d.id for d in decks])
    return [build_view(deck, grouped[deck.id]) for deck in decks]


async def instance_summaries(session: AsyncSession, owner_id: str) -> list[DeckView]:
    """Aggregate view over an owner's deck instances."""
    return await deck_views(session, owner_id, instances=True)
