from binderkeep.db.database import get_session, get_session_factory, init_db
from binderkeep.db.decks import (
    create_deck,
    delete_deck,
    get_deck,
    list_decks,
    set_slots,
    slots_to_model,
    update_deck,
)
from binderkeep.db.inventory import (
    folder_summaries,
    get_item,
    insert_row,
    list_items,
    query_for_slot,
)
from binderkeep.db.sales import list_sales, sale_to_model
from binderkeep.db.transaction_log import TransactionType, list_transactions

__all__ = [
    "TransactionType",
    "create_deck",
    "delete_deck",
    "folder_summaries",
    "get_deck",
    "get_item",
    "get_session",
    "get_session_factory",
    "init_db",
    "insert_row",
    "list_decks",
    "list_items",
    "list_sales",
    "list_transactions",
    "query_for_slot",
    "sale_to_model",
    "set_slots",
    "slots_to_model",
    "update_deck",
]
