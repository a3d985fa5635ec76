"""
Input validation shared by the stores and services.

All functions either return the cleaned value or raise
ValidationFailedError; none of them touch the database.
"""

from collections.abc import Collection
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from binderkeep.config import BUILTIN_FOLDERS, CARD_QUALITIES, MAX_FOLDER_NAME_LENGTH
from binderkeep.models.deck import SlotMode
from binderkeep.models.failure import ValidationFailedError

_CENT = Decimal("0.01")


def require_name(value: str | None, what: str = "Name") -> str:
    """Trim a required display string; reject empty values."""
    if value is None or not value.strip():
        raise ValidationFailedError(f"{what} is required")
    cleaned = value.strip()
    if len(cleaned) > 255:
        raise ValidationFailedError(f"{what} must be less than 255 characters")
    return cleaned


def require_folder(folder: str | None, known: Collection[str] | None = None) -> str:
    """
    Clean a folder name; never blank.

    With `known`, the name must be a built-in folder or one of `known`.
    """
    if folder is None or not folder.strip():
        raise ValidationFailedError("Folder name is required")
    cleaned = folder.strip()
    if len(cleaned) > MAX_FOLDER_NAME_LENGTH:
        raise ValidationFailedError(
            f"Folder name must be less than {MAX_FOLDER_NAME_LENGTH} characters"
        )
    if known is not None and cleaned not in BUILTIN_FOLDERS and cleaned not in known:
        raise ValidationFailedError(
            f"Unknown folder '{cleaned}'",
            detail="Create the folder before filing cards in it",
        )
    return cleaned


def require_positive(value: int, what: str = "Quantity") -> int:
    if value is None or value <= 0:
        raise ValidationFailedError(f"{what} must be positive", detail=f"got {value}")
    return value


def require_non_negative(value: int, what: str = "Quantity") -> int:
    if value is None or value < 0:
        raise ValidationFailedError(f"{what} cannot be negative", detail=f"got {value}")
    return value


def to_price(value: Decimal | float | int | str | None, what: str = "Price") -> Decimal:
    """
    Convert a price to a two-place Decimal.

    None means "unknown" and is stored as zero cost basis.
    """
    if value is None:
        return Decimal("0.00")
    try:
        price = Decimal(str(value))
    except InvalidOperation as e:
        raise ValidationFailedError(f"{what} must be a number", detail=str(value)) from e
    if not price.is_finite():
        raise ValidationFailedError(f"{what} must be a number", detail=str(value))
    if price < 0:
        raise ValidationFailedError(f"{what} cannot be negative", detail=str(value))
    return price.quantize(_CENT, rounding=ROUND_HALF_UP)


def require_quality(quality: str | None) -> str:
    if quality is None:
        return "NM"
    cleaned = quality.strip().upper()
    if cleaned not in CARD_QUALITIES:
        raise ValidationFailedError(
            f"Unknown card quality '{quality}'",
            detail=f"Valid: {list(CARD_QUALITIES)}",
        )
    return cleaned


def require_slot_mode(mode: str | SlotMode | None, default: str) -> SlotMode:
    try:
        return SlotMode(mode or default)
    except ValueError as e:
        raise ValidationFailedError(
            f"Unknown slot mode '{mode}'",
            detail=f"Valid: {[m.value for m in SlotMode]}",
        ) from e
