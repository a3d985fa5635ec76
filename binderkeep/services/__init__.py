"""
BinderKeep services.

Transactional operations over inventory, decks, and reservations.
"""

from binderkeep.services.catalog_service import CatalogService
from binderkeep.services.decklist_parser import parse_decklist, parse_line
from binderkeep.services.events import CommitEvent, EventBus, event_bus
from binderkeep.services.reservation_service import ReservationService
from binderkeep.services.selection_policy import select, select_many
from binderkeep.services.unit_of_work import run_atomic
from binderkeep.services.view_projector import (
    deck_view,
    deck_views,
    instance_summaries,
    project_deck,
)

__all__ = [
    "CatalogService",
    "CommitEvent",
    "EventBus",
    "ReservationService",
    "deck_view",
    "deck_views",
    "event_bus",
    "instance_summaries",
    "parse_decklist",
    "parse_line",
    "project_deck",
    "run_atomic",
    "select",
    "select_many",
]
