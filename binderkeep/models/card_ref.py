"""
Card reference resolution.

Maps free-form (name, set) pairs typed by users or produced by importers to
a normalized key used to join inventory rows with deck slots. The display
form of a name is never rewritten; only the key is normalized.

INVARIANTS:
- Normalization is total: any string maps to a key, never raises
- Name keys ignore case and whitespace differences
- Set codes are compared upper-cased
"""

import re
from dataclasses import dataclass
from typing import Protocol

_WHITESPACE_RE = re.compile(r"\s+")


def normalize(name: str | None) -> str:
    """Trim, collapse internal whitespace, and case-fold a card name."""
    if not name:
        return ""
    return _WHITESPACE_RE.sub(" ", name.strip()).casefold()


def normalize_set(code: str | None) -> str:
    """Trim and upper-case a set code."""
    if not code:
        return ""
    return code.strip().upper()


@dataclass(frozen=True, slots=True)
class CardRef:
    """
    Normalized identity of a card for matching purposes.

    Attributes:
        name_key: Normalized card name
        set_code: Normalized set code, empty when any printing is acceptable
    """

    name_key: str
    set_code: str = ""

    @classmethod
    def of(cls, name: str | None, set_code: str | None = None) -> "CardRef":
        return cls(name_key=normalize(name), set_code=normalize_set(set_code))

    @property
    def has_set_constraint(self) -> bool:
        return bool(self.set_code)


class _NamedCard(Protocol):
    card_name: str


class _Slot(Protocol):
    card_name: str
    set_code: str | None


def matches(inv_row: _NamedCard, slot: _Slot) -> bool:
    """
    True if an inventory row can fill a deck slot.

    Set codes only matter when the slot carries an explicit set constraint.
    """
    if normalize(inv_row.card_name) != normalize(slot.card_name):
        return False
    slot_set = normalize_set(slot.set_code)
    if not slot_set:
        return True
    return normalize_set(getattr(inv_row, "set_code", None)) == slot_set
