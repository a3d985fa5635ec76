from binderkeep.api.decks import router as decks_router
from binderkeep.api.folders import router as folders_router
from binderkeep.api.health import router as health_router
from binderkeep.api.inventory import router as inventory_router
from binderkeep.api.reservations import router as reservations_router
from binderkeep.api.sales import router as sales_router
from binderkeep.api.transactions import router as transactions_router

__all__ = [
    "decks_router",
    "folders_router",
    "health_router",
    "inventory_router",
    "reservations_router",
    "sales_router",
    "transactions_router",
]
