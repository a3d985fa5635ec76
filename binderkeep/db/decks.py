"""
Deck catalog: deck definitions and their slot lists.

Slots live in their own table with one row per normalized card name, so
a deck can never carry the same card in two slots.
"""

from collections.abc import Iterable

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from binderkeep.config import settings
from binderkeep.db import reservations as ledger
from binderkeep.db import transaction_log
from binderkeep.db.ownership import ensure_owned
from binderkeep.db.transaction_log import TransactionType
from binderkeep.models.card_ref import matches, normalize, normalize_set
from binderkeep.models.db import DeckDB, DeckSlotDB, ReservationDB
from binderkeep.models.deck import DeckSlot, SlotMode
from binderkeep.models.failure import SlotOverfilledError, ValidationFailedError
from binderkeep.models.validation import require_name, require_positive, require_slot_mode


def merge_slots(slots: Iterable[DeckSlot]) -> list[DeckSlot]:
    """
    Merge duplicate card names by summing their quantities.

    The first occurrence keeps its position, display name, and set code.
    Rejects non-positive quantities and blank names.
    """
    merged: dict[str, DeckSlot] = {}
    for slot in slots:
        name = require_name(slot.card_name, "Card name")
        require_positive(slot.quantity, f"Quantity for '{name}'")
        key = normalize(name)
        existing = merged.get(key)
        if existing is None:
            merged[key] = DeckSlot(
                card_name=name,
                quantity=slot.quantity,
                set_code=normalize_set(slot.set_code) or None,
            )
        else:
            merged[key] = DeckSlot(
                card_name=existing.card_name,
                quantity=existing.quantity + slot.quantity,
                set_code=existing.set_code,
            )
    return list(merged.values())


# --- Reads ---


async def get_deck(
    session: AsyncSession,
    owner_id: str,
    deck_id: int,
    *,
    for_update: bool = False,
) -> DeckDB:
    """
    Get a deck with its slots loaded.

    Raises NotFoundError or ForbiddenError.
    """
    query = select(DeckDB).where(DeckDB.id == deck_id).options(selectinload(DeckDB.slots))
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(query)
    return ensure_owned("Deck", deck_id, result.scalar_one_or_none(), owner_id)


async def lock_decks(
    session: AsyncSession,
    owner_id: str,
    deck_ids: Iterable[int],
) -> dict[int, DeckDB]:
    """
    Lock decks FOR UPDATE in ascending id order, slots loaded.

    Raises NotFoundError or ForbiddenError for any id that is missing or foreign.
    """
    ids = sorted(set(deck_ids))
    if not ids:
        return {}
    result = await session.execute(
        select(DeckDB)
        .where(DeckDB.id.in_(ids))
        .options(selectinload(DeckDB.slots))
        .order_by(DeckDB.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    found = {deck.id: deck for deck in result.scalars().all()}
    for deck_id in ids:
        ensure_owned("Deck", deck_id, found.get(deck_id), owner_id)
    return found


async def list_decks(
    session: AsyncSession,
    owner_id: str,
    *,
    instances: bool | None = None,
) -> list[DeckDB]:
    """List an owner's decks, newest first. Filter on instance flag if given."""
    query = (
        select(DeckDB).where(DeckDB.owner_id == owner_id).options(selectinload(DeckDB.slots))
    )
    if instances is not None:
        query = query.where(DeckDB.is_instance == instances)
    result = await session.execute(query.order_by(DeckDB.created_at.desc(), DeckDB.id.desc()))
    return list(result.scalars().all())


def get_slots(deck: DeckDB) -> list[tuple[str, int]]:
    """The deck's slots as (normalized name, required) pairs."""
    return [(slot.name_key, slot.quantity_required) for slot in deck.slots]


def slots_to_model(deck: DeckDB) -> list[DeckSlot]:
    """Convert a deck's slot rows to domain models."""
    return [
        DeckSlot(card_name=s.card_name, quantity=s.quantity_required, set_code=s.set_code)
        for s in deck.slots
    ]


async def count_reservations(session: AsyncSession, deck_id: int) -> int:
    result = await session.execute(
        select(func.count(ReservationDB.id)).where(ReservationDB.deck_id == deck_id)
    )
    return int(result.scalar_one())


async def ensure_strict_caps(session: AsyncSession, deck: DeckDB) -> None:
    """
    Reject a STRICT deck whose reservations exceed its slots.

    A reservation matching no slot counts against a requirement of zero.

    Raises:
        SlotOverfilledError: First slot (or unmatched card) found over its cap
    """
    held: dict[int, int] = {}
    for reservation in await ledger.list_for_deck(session, deck.id):
        row = reservation.inventory_row
        slot = next((s for s in deck.slots if matches(row, s)), None)
        if slot is None:
            raise SlotOverfilledError(deck.id, row.card_name, 0, reservation.quantity_reserved)
        held[slot.id] = held.get(slot.id, 0) + reservation.quantity_reserved
    for slot in deck.slots:
        if held.get(slot.id, 0) > slot.quantity_required:
            raise SlotOverfilledError(
                deck.id, slot.card_name, slot.quantity_required, held[slot.id]
            )


# --- Writes ---


async def create_deck(
    session: AsyncSession,
    owner_id: str,
    name: str,
    *,
    commander: str | None = None,
    format_name: str | None = None,
    description: str | None = None,
    is_instance: bool = False,
    slot_mode: SlotMode | str | None = None,
    source_decklist_id: int | None = None,
    slots: Iterable[DeckSlot] = (),
) -> DeckDB:
    """Create a deck, optionally with an initial slot list."""
    deck = DeckDB(
        owner_id=owner_id,
        name=require_name(name, "Deck name"),
        commander=commander.strip() if commander and commander.strip() else None,
        format=format_name,
        description=description,
        is_instance=is_instance,
        slot_mode=require_slot_mode(slot_mode, settings.default_slot_mode).value,
        source_decklist_id=source_decklist_id,
        slots=[],
    )
    session.add(deck)
    await session.flush()

    merged = merge_slots(slots)
    for position, slot in enumerate(merged):
        deck.slots.append(_slot_row(position, slot))
    await session.flush()

    await transaction_log.record(
        session,
        owner_id,
        TransactionType.DECK_CREATE,
        deck_id=deck.id,
        quantity=sum(s.quantity for s in merged),
        detail=deck.name,
    )
    return deck


async def set_slots(
    session: AsyncSession,
    owner_id: str,
    deck_id: int,
    slots: Iterable[DeckSlot],
) -> DeckDB:
    """
    Replace a deck's slots.

    Duplicate names are merged by summing quantities. On a PERMISSIVE deck
    existing reservations are left alone, and a slot that shrinks below its
    reservations shows up as extras until the deck is re-optimized. A STRICT
    deck rejects a slot list its reservations would overfill.

    Raises:
        SlotOverfilledError: STRICT deck holds more than the new slots allow
    """
    merged = merge_slots(slots)
    deck = await get_deck(session, owner_id, deck_id, for_update=True)

    # Flush the removals first so re-added names do not collide on uq_deck_slot_name
    deck.slots.clear()
    await session.flush()
    for position, slot in enumerate(merged):
        deck.slots.append(_slot_row(position, slot))
    await session.flush()
    if deck_mode(deck) is SlotMode.STRICT:
        await ensure_strict_caps(session, deck)

    await transaction_log.record(
        session,
        owner_id,
        TransactionType.DECK_UPDATE,
        deck_id=deck.id,
        quantity=sum(s.quantity for s in merged),
        detail=f"{len(merged)} slots",
    )
    return deck


async def update_deck(
    session: AsyncSession,
    owner_id: str,
    deck_id: int,
    *,
    name: str | None = None,
    commander: str | None = None,
    format_name: str | None = None,
    description: str | None = None,
    slot_mode: SlotMode | str | None = None,
) -> DeckDB:
    """
    Update deck metadata. Only the given fields change.

    Switching to STRICT is rejected while the deck holds extras.
    """
    if all(v is None for v in (name, commander, format_name, description, slot_mode)):
        raise ValidationFailedError("No fields to update")
    deck = await get_deck(session, owner_id, deck_id, for_update=True)
    if name is not None:
        deck.name = require_name(name, "Deck name")
    if commander is not None:
        deck.commander = commander.strip() or None
    if format_name is not None:
        deck.format = format_name
    if description is not None:
        deck.description = description
    if slot_mode is not None:
        deck.slot_mode = require_slot_mode(slot_mode, settings.default_slot_mode).value
    await session.flush()
    if slot_mode is not None and deck_mode(deck) is SlotMode.STRICT:
        await ensure_strict_caps(session, deck)
    await transaction_log.record(
        session, owner_id, TransactionType.DECK_UPDATE, deck_id=deck.id, detail=deck.name
    )
    return deck


async def rename_deck(session: AsyncSession, owner_id: str, deck_id: int, name: str) -> DeckDB:
    return await update_deck(session, owner_id, deck_id, name=name)


async def delete_deck(
    session: AsyncSession,
    owner_id: str,
    deck_id: int,
    *,
    allow_reservations: bool = False,
) -> None:
    """
    Delete a deck and its slots.

    Forbidden while the deck holds reservations, unless the caller is the
    release or sell path which has already consumed them.
    """
    deck = await get_deck(session, owner_id, deck_id, for_update=True)
    if not allow_reservations and await count_reservations(session, deck.id) > 0:
        raise ValidationFailedError(
            f"Deck {deck.id} still reserves inventory",
            detail="Release or sell the deck instead of deleting it",
        )
    await session.execute(delete(ReservationDB).where(ReservationDB.deck_id == deck.id))
    await session.delete(deck)
    await session.flush()
    await transaction_log.record(
        session, owner_id, TransactionType.DECK_DELETE, deck_id=deck_id, detail=deck.name
    )


def deck_mode(deck: DeckDB) -> SlotMode:
    return SlotMode(deck.slot_mode)


def _slot_row(position: int, slot: DeckSlot) -> DeckSlotDB:
    return DeckSlotDB(
        position=position,
        card_name=slot.card_name,
        name_key=normalize(slot.card_name),
        set_code=slot.set_code,
        quantity_required=slot.quantity,
    )
