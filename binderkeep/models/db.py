"""
SQLAlchemy ORM models for persistent storage.

The reservation invariants are backed by the schema where a declarative
constraint can express them: positive reservation quantities, one
reservation per (deck, inventory row), one slot per normalized name per
deck. The cross-table invariant (reserved copies never exceed owned
copies) is enforced by the services under row locks.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from binderkeep.config import UNCATEGORIZED_FOLDER

Price = Numeric(12, 2, asdecimal=True)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class InventoryRowDB(Base):
    """
    A group of physical copies of one printing owned by one user.

    `quantity` counts every copy the row represents, reserved or not.
    The reserved share is derived from the reservations table.
    """

    __tablename__ = "inventory_rows"
    __table_args__ = (CheckConstraint("quantity >= 0", name="ck_inventory_quantity"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(String(255), index=True)

    card_name: Mapped[str] = mapped_column(String(255))
    name_key: Mapped[str] = mapped_column(String(255), index=True)
    set_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    set_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    quantity: Mapped[int] = mapped_column(Integer, default=1)
    folder: Mapped[str] = mapped_column(String(255), default=UNCATEGORIZED_FOLDER, index=True)
    purchase_price: Mapped[Decimal] = mapped_column(Price, default=Decimal("0"))

    foil: Mapped[bool] = mapped_column(Boolean, default=False)
    quality: Mapped[str] = mapped_column(String(10), default="NM")
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    scryfall_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=_utcnow
    )

    def __repr__(self) -> str:
        return f"<InventoryRowDB(id={self.id}, card={self.card_name}, qty={self.quantity})>"


class FolderDB(Base):
    """
    A user-created folder. Uncategorized and Trash are built in and never stored.

    Inventory rows reference folders by name, so renaming one relabels rows.
    """

    __tablename__ = "folders"
    __table_args__ = (UniqueConstraint("owner_id", "name", name="uq_folder_owner_name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(String(255), index=True)
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=_utcnow
    )

    def __repr__(self) -> str:
        return f"<FolderDB(id={self.id}, name={self.name})>"


class DeckDB(Base):
    """
    A deck definition.

    Descriptive decklists (`is_instance=False`) never reserve inventory.
    Deck instances reserve concrete inventory copies against their slots.
    """

    __tablename__ = "decks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(String(255), index=True)
    name: Mapped[str] = mapped_column(String(255))
    commander: Mapped[str | None] = mapped_column(String(255), nullable=True)
    format: Mapped[str | None] = mapped_column(String(50), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    is_instance: Mapped[bool] = mapped_column(Boolean, default=False)
    slot_mode: Mapped[str] = mapped_column(String(20), default="strict")
    source_decklist_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=_utcnow
    )

    slots: Mapped[list["DeckSlotDB"]] = relationship(
        back_populates="deck",
        cascade="all, delete-orphan",
        order_by="DeckSlotDB.position",
    )

    def __repr__(self) -> str:
        return f"<DeckDB(id={self.id}, name={self.name}, instance={self.is_instance})>"


class DeckSlotDB(Base):
    """One (card name, quantity required) entry of a deck."""

    __tablename__ = "deck_slots"
    __table_args__ = (
        UniqueConstraint("deck_id", "name_key", name="uq_deck_slot_name"),
        CheckConstraint("quantity_required > 0", name="ck_slot_quantity"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    deck_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("decks.id", ondelete="CASCADE"), index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0)
    card_name: Mapped[str] = mapped_column(String(255))
    name_key: Mapped[str] = mapped_column(String(255))
    set_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    quantity_required: Mapped[int] = mapped_column(Integer)

    deck: Mapped["DeckDB"] = relationship(back_populates="slots")

    def __repr__(self) -> str:
        return f"<DeckSlotDB(card={self.card_name}, required={self.quantity_required})>"


class ReservationDB(Base):
    """A claim of `quantity_reserved` copies of one inventory row by one deck."""

    __tablename__ = "reservations"
    __table_args__ = (
        UniqueConstraint("deck_id", "inventory_row_id", name="uq_reservation_deck_row"),
        CheckConstraint("quantity_reserved > 0", name="ck_reservation_quantity"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(String(255), index=True)
    deck_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("decks.id", ondelete="CASCADE"), index=True
    )
    inventory_row_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("inventory_rows.id", ondelete="RESTRICT"), index=True
    )
    quantity_reserved: Mapped[int] = mapped_column(Integer)
    # Folder snapshot taken when the reservation was created
    original_folder: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    inventory_row: Mapped["InventoryRowDB"] = relationship(lazy="joined")

    def __repr__(self) -> str:
        return (
            f"<ReservationDB(id={self.id}, deck={self.deck_id}, "
            f"row={self.inventory_row_id}, qty={self.quantity_reserved})>"
        )


class SaleDB(Base):
    """A recorded sale of a single card row or a whole deck."""

    __tablename__ = "sales"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(String(255), index=True)
    item_type: Mapped[str] = mapped_column(String(10))
    item_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    item_name: Mapped[str] = mapped_column(String(255))
    purchase_price: Mapped[Decimal] = mapped_column(Price)
    sell_price: Mapped[Decimal] = mapped_column(Price)
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    profit: Mapped[Decimal] = mapped_column(Price)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<SaleDB(id={self.id}, type={self.item_type}, profit={self.profit})>"


class TransactionLogDB(Base):
    """Append-only audit record of an inventory or deck mutation."""

    __tablename__ = "transaction_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(String(255), index=True)
    transaction_type: Mapped[str] = mapped_column(String(30), index=True)
    card_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # No foreign keys: log rows outlive the rows they describe
    inventory_row_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    deck_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, default=0)
    purchase_price: Mapped[Decimal | None] = mapped_column(Price, nullable=True)
    sale_price: Mapped[Decimal | None] = mapped_column(Price, nullable=True)
    detail: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<TransactionLogDB(type={self.transaction_type}, qty={self.quantity})>"
