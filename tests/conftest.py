from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from binderkeep.db.database import get_session, get_session_factory
from binderkeep.db.inventory import get_item
from binderkeep.main import app
from binderkeep.models.db import Base, FolderDB
from binderkeep.models.deck import DeckSlot
from binderkeep.models.inventory import InventoryItem
from binderkeep.services.catalog_service import CatalogService
from binderkeep.services.events import EventBus
from binderkeep.services.reservation_service import ReservationService

OWNER = "owner-1"

# Fixed clock so selection order tests do not depend on insert timing
T0 = datetime(2024, 1, 1, tzinfo=UTC)

# Folders OWNER starts with besides the built-in ones
SEEDED_FOLDERS = ("Binder", "Deck Box", "Lands")


async def seed_folders(conn) -> None:
    await conn.execute(
        insert(FolderDB), [{"owner_id": OWNER, "name": name} for name in SEEDED_FOLDERS]
    )


@pytest.fixture
async def async_engine():
    """Create an in-memory SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await seed_folders(conn)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory) -> AsyncSession:
    """Provide a database session for store-level tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def events() -> EventBus:
    return EventBus()


@pytest.fixture
def service(session_factory, events) -> ReservationService:
    return ReservationService(session_factory, events=events)


@pytest.fixture
def catalog(session_factory) -> CatalogService:
    return CatalogService(session_factory)


@pytest.fixture
def add_row(catalog) -> Callable[..., Awaitable[int]]:
    """Insert an inventory row through the catalog and return its id."""

    async def _add_row(
        card_name: str,
        quantity: int = 1,
        price: str | None = "0.00",
        *,
        days: int = 0,
        folder: str | None = None,
        set_code: str | None = None,
        owner_id: str = OWNER,
    ) -> int:
        item = await catalog.create_inventory(
            owner_id,
            card_name=card_name,
            quantity=quantity,
            purchase_price=price,
            folder=folder,
            set_code=set_code,
            created_at=T0 + timedelta(days=days),
        )
        return item.id

    return _add_row


@pytest.fixture
def make_deck(catalog) -> Callable[..., Awaitable[int]]:
    """Create a deck instance from (name, quantity) pairs and return its id."""

    async def _make_deck(
        slots: list[tuple[str, int]] | list[DeckSlot],
        *,
        name: str = "Test Deck",
        slot_mode: str = "strict",
        is_instance: bool = True,
        owner_id: str = OWNER,
    ) -> int:
        entries = [s if isinstance(s, DeckSlot) else DeckSlot(s[0], s[1]) for s in slots]
        view = await catalog.create_deck(
            owner_id,
            name,
            slots=entries,
            slot_mode=slot_mode,
            is_instance=is_instance,
        )
        return view.deck_id

    return _make_deck


@pytest.fixture
def read_item(session_factory) -> Callable[..., Awaitable[InventoryItem]]:
    """Read an inventory row's committed state in a fresh session."""

    async def _read_item(row_id: int, owner_id: str = OWNER) -> InventoryItem:
        async with session_factory() as session:
            return await get_item(session, owner_id, row_id)

    return _read_item


@pytest.fixture
async def client(session_factory):
    """Provide an async test client with overridden database access."""

    async def override_get_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport, base_url="http://test", headers={"X-Owner-Id": OWNER}
    ) as client:
        yield client

    app.dependency_overrides.clear()
