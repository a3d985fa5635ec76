"""
Failure classification for the reservation core.

Every failure the core surfaces is a KnownError subclass carrying a short
machine code (FailureKind) and a human message. The HTTP layer turns these
into ErrorResponse bodies; anything that is not a KnownError is reported
as `internal`.

INVARIANT: a KnownError raised inside a transaction aborts it. No partial
state is ever committed alongside a failure.
"""

from enum import Enum

from pydantic import BaseModel, Field


class FailureKind(str, Enum):
    """Machine codes for failures surfaced by the core."""

    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    INSUFFICIENT_QUANTITY = "insufficient_quantity"
    SLOT_OVERFILLED = "slot_overfilled"
    RESERVED_ROW_IN_TRASH = "reserved_row_in_trash"
    VALIDATION_FAILED = "validation_failed"
    CONFLICT = "conflict"
    INTERNAL = "internal"


class ErrorResponse(BaseModel):
    """Error body returned by every endpoint on failure."""

    error: str = Field(
        ...,
        description="Human readable explanation of what went wrong",
    )
    code: FailureKind = Field(
        ...,
        description="Machine code classifying the failure",
    )
    detail: str | None = Field(
        default=None,
        description="Additional technical detail (optional)",
    )
    suggestion: str | None = Field(
        default=None,
        description="Suggested action for the user",
    )


class KnownError(Exception):
    """
    A rejected operation the caller can act on.

    Raised inside a transaction it rolls the whole operation back; the API
    layer turns it into an ErrorResponse with `status_code`.
    """

    retryable = False

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
        status_code: int = 400,
    ):
        self.kind = kind
        self.message = message
        self.detail = detail
        self.suggestion = suggestion
        self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to an ErrorResponse."""
        return ErrorResponse(
            error=self.message,
            code=self.kind,
            detail=self.detail,
            suggestion=self.suggestion,
        )


class NotFoundError(KnownError):
    """A deck, inventory row, or reservation does not exist."""

    def __init__(self, entity: str, entity_id: int | str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            kind=FailureKind.NOT_FOUND,
            message=f"{entity} {entity_id} not found",
            status_code=404,
        )


class ForbiddenError(KnownError):
    """The caller does not own the target entity."""

    def __init__(self, entity: str, entity_id: int | str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            kind=FailureKind.FORBIDDEN,
            message=f"{entity} {entity_id} belongs to another owner",
            status_code=403,
        )


class InsufficientQuantityError(KnownError):
    """A reservation, sale, or quantity change exceeds what is available."""

    def __init__(self, inventory_row_id: int, requested: int, available: int):
        self.inventory_row_id = inventory_row_id
        self.requested = requested
        self.available = available
        super().__init__(
            kind=FailureKind.INSUFFICIENT_QUANTITY,
            message=(
                f"Inventory row {inventory_row_id} has {available} available "
                f"but {requested} were requested"
            ),
            suggestion="Release a deck holding these copies or add more inventory.",
            status_code=409,
        )


class SlotOverfilledError(KnownError):
    """A STRICT deck slot would hold more copies than the decklist requires."""

    def __init__(self, deck_id: int, card_name: str, required: int, resulting: int):
        self.deck_id = deck_id
        self.card_name = card_name
        self.required = required
        self.resulting = resulting
        super().__init__(
            kind=FailureKind.SLOT_OVERFILLED,
            message=(
                f"Deck {deck_id} needs {required} of '{card_name}'; "
                f"reserving would hold {resulting}"
            ),
            suggestion="Switch the deck to permissive mode to keep extras.",
            status_code=409,
        )


class ReservedRowInTrashError(KnownError):
    """Empty-trash found rows that are still reserved by a deck."""

    def __init__(self, inventory_row_ids: list[int]):
        self.inventory_row_ids = inventory_row_ids
        super().__init__(
            kind=FailureKind.RESERVED_ROW_IN_TRASH,
            message="Trash contains cards that are still reserved by a deck",
            detail=f"Reserved rows: {inventory_row_ids}",
            suggestion="Remove the cards from their decks before emptying the trash.",
            status_code=409,
        )


class ValidationFailedError(KnownError):
    """A numeric or string constraint was violated."""

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(
            kind=FailureKind.VALIDATION_FAILED,
            message=message,
            detail=detail,
            status_code=422,
        )


class ConflictError(KnownError):
    """Row state changed between read and commit. Safe to retry."""

    retryable = True

    def __init__(self, detail: str | None = None):
        super().__init__(
            kind=FailureKind.CONFLICT,
            message="The data changed while the request was running",
            detail=detail,
            suggestion="Retry the request.",
            status_code=409,
        )


class DuplicateFolderError(KnownError):
    """A folder with this name already exists. Retrying cannot help."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(
            kind=FailureKind.CONFLICT,
            message=f"Folder '{name}' already exists",
            suggestion="Pick another name or file the cards in the existing folder.",
            status_code=409,
        )
