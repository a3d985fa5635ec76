"""
Catalog service: transactional CRUD for inventory rows and deck definitions.

Reservation-aware moves live in ReservationService; this service covers
the plain edits around them, each in its own transaction.
"""

import logging
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime
from decimal import Decimal
from typing import Any, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from binderkeep.db import decks as deck_store
from binderkeep.db import folders
from binderkeep.db import inventory
from binderkeep.db import reservations as ledger
from binderkeep.models.deck import DeckSlot, DeckView, SlotMode
from binderkeep.models.inventory import Folder, InventoryItem
from binderkeep.services.decklist_parser import parse_decklist
from binderkeep.services.unit_of_work import run_atomic
from binderkeep.services.view_projector import build_view

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CatalogService:
    """Create, edit, and delete inventory rows, folders and decks."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        retries: int | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._retries = retries

    async def _atomic(self, operation: Callable[[AsyncSession], Awaitable[T]]) -> T:
        return await run_atomic(self._session_factory, operation, retries=self._retries)

    # --- Inventory ---

    async def create_inventory(
        self,
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
    ) -> InventoryItem:
        async def op(session: AsyncSession) -> InventoryItem:
            row = await inventory.insert_row(
                session,
                owner_id,
                card_name=card_name,
                quantity=quantity,
                set_code=set_code,
                set_name=set_name,
                folder=folder,
                purchase_price=purchase_price,
                foil=foil,
                quality=quality,
                image_url=image_url,
                scryfall_id=scryfall_id,
                created_at=created_at,
            )
            return inventory.row_to_item(row, 0)

        item = await self._atomic(op)
        logger.info("Added %d x %s as row %d", item.quantity, item.card_name, item.id)
        return item

    async def update_inventory(
        self,
        owner_id: str,
        inventory_row_id: int,
        patch: dict[str, Any],
    ) -> InventoryItem:
        """Partially update a row. Quantity may not drop below what decks hold."""

        async def op(session: AsyncSession) -> InventoryItem:
            await inventory.update_fields(session, owner_id, inventory_row_id, patch)
            return await inventory.get_item(session, owner_id, inventory_row_id)

        return await self._atomic(op)

    async def adjust_inventory(
        self,
        owner_id: str,
        inventory_row_id: int,
        delta: int,
    ) -> InventoryItem:
        async def op(session: AsyncSession) -> InventoryItem:
            await inventory.adjust_quantity(session, owner_id, inventory_row_id, delta)
            return await inventory.get_item(session, owner_id, inventory_row_id)

        return await self._atomic(op)

    async def delete_inventory(self, owner_id: str, inventory_row_id: int) -> None:
        """Permanently delete one unreserved row."""

        async def op(session: AsyncSession) -> None:
            await inventory.delete_row(session, owner_id, inventory_row_id)

        await self._atomic(op)
        logger.info("Deleted inventory row %d", inventory_row_id)

    # --- Folders ---

    async def create_folder(
        self,
        owner_id: str,
        name: str,
        *,
        description: str | None = None,
    ) -> Folder:
        async def op(session: AsyncSession) -> Folder:
            folder = await folders.create_folder(
                session, owner_id, name, description=description
            )
            return folders.folder_to_model(folder)

        folder = await self._atomic(op)
        logger.info("Created folder %d '%s'", folder.id, folder.name)
        return folder

    async def update_folder(
        self,
        owner_id: str,
        folder_id: int,
        *,
        name: str | None = None,
        description: str | None = None,
    ) -> Folder:
        """Rename a folder (relabeling its rows) or change its description."""

        async def op(session: AsyncSession) -> Folder:
            folder = await folders.update_folder(
                session, owner_id, folder_id, name=name, description=description
            )
            return folders.folder_to_model(folder)

        return await self._atomic(op)

    async def delete_folder(self, owner_id: str, folder_id: int) -> None:
        """Delete a folder no inventory row is filed in."""

        async def op(session: AsyncSession) -> None:
            await folders.delete_folder(session, owner_id, folder_id)

        await self._atomic(op)
        logger.info("Deleted folder %d", folder_id)

    # --- Decks ---

    async def create_deck(
        self,
        owner_id: str,
        name: str,
        *,
        commander: str | None = None,
        format_name: str | None = None,
        description: str | None = None,
        is_instance: bool = False,
        slot_mode: SlotMode | str | None = None,
        slots: Iterable[DeckSlot] = (),
        decklist_text: str | None = None,
    ) -> DeckView:
        """
        Create a decklist or an empty deck instance.

        Slots come from `slots`, from `decklist_text`, or both (text last).
        """
        entries = list(slots) + parse_decklist(decklist_text)

        async def op(session: AsyncSession) -> DeckView:
            deck = await deck_store.create_deck(
                session,
                owner_id,
                name,
                commander=commander,
                format_name=format_name,
                description=description,
                is_instance=is_instance,
                slot_mode=slot_mode,
                slots=entries,
            )
            return build_view(deck, [])

        view = await self._atomic(op)
        logger.info(
            "Created deck %d '%s' with %d cards", view.deck_id, view.name, view.decklist_total
        )
        return view

    async def update_deck(
        self,
        owner_id: str,
        deck_id: int,
        *,
        name: str | None = None,
        commander: str | None = None,
        format_name: str | None = None,
        description: str | None = None,
        slot_mode: SlotMode | str | None = None,
    ) -> DeckView:
        async def op(session: AsyncSession) -> DeckView:
            deck = await deck_store.update_deck(
                session,
                owner_id,
                deck_id,
                name=name,
                commander=commander,
                format_name=format_name,
                description=description,
                slot_mode=slot_mode,
            )
            return build_view(deck, await ledger.list_for_deck(session, deck.id))

        return await self._atomic(op)

    async def set_deck_slots(
        self,
        owner_id: str,
        deck_id: int,
        slots: Iterable[DeckSlot] = (),
        *,
        decklist_text: str | None = None,
    ) -> DeckView:
        """Replace a deck's slots from entries and/or decklist text."""
        entries = list(slots) + parse_decklist(decklist_text)

        async def op(session: AsyncSession) -> DeckView:
            deck = await deck_store.set_slots(session, owner_id, deck_id, entries)
            return build_view(deck, await ledger.list_for_deck(session, deck.id))

        return await self._atomic(op)

    async def delete_deck(self, owner_id: str, deck_id: int) -> None:
        """Delete a deck that holds no reservations."""

        async def op(session: AsyncSession) -> None:
            await deck_store.delete_deck(session, owner_id, deck_id)

        await self._atomic(op)
        logger.info("Deleted deck %d", deck_id)
