from binderkeep.models.card_ref import CardRef, matches, normalize, normalize_set
from binderkeep.models.deck import (
    DeckSlot,
    DeckView,
    FillReport,
    ReleaseOutcome,
    ReservationView,
    SlotFill,
    SlotMode,
    SlotView,
)
from binderkeep.models.failure import (
    ConflictError,
    DuplicateFolderError,
    ErrorResponse,
    FailureKind,
    ForbiddenError,
    InsufficientQuantityError,
    KnownError,
    NotFoundError,
    ReservedRowInTrashError,
    SlotOverfilledError,
    ValidationFailedError,
)
from binderkeep.models.inventory import (
    Allocation,
    Candidate,
    Folder,
    FolderSummary,
    InventoryItem,
)
from binderkeep.models.sale import Sale, SaleItemType, SaleOutcome, compute_profit

__all__ = [
    "Allocation",
    "Candidate",
    "CardRef",
    "ConflictError",
    "DeckSlot",
    "DeckView",
    "DuplicateFolderError",
    "ErrorResponse",
    "FailureKind",
    "FillReport",
    "Folder",
    "FolderSummary",
    "ForbiddenError",
    "InsufficientQuantityError",
    "InventoryItem",
    "KnownError",
    "NotFoundError",
    "ReleaseOutcome",
    "ReservationView",
    "ReservedRowInTrashError",
    "Sale",
    "SaleItemType",
    "SaleOutcome",
    "SlotFill",
    "SlotMode",
    "SlotOverfilledError",
    "SlotView",
    "ValidationFailedError",
    "compute_profit",
    "matches",
    "normalize",
    "normalize_set",
]
