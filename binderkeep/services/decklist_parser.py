"""
Decklist text parser.

Extracts (name, quantity, set code) entries from pasted decklists.
Accepted line shapes:

    4 Sol Ring
    4x Sol Ring
    1 Sol Ring (CMM)
    1 Sol Ring (CMM) 410
    2 Island - M21
    Command Tower

Blank lines, comment lines (starting with // or #) and section headers
(Deck, Sideboard, Commander, ...) are skipped. Quantities are not
validated here; duplicates and non-positive counts are handled when the
entries become deck slots.
"""

import re

from binderkeep.models.deck import DeckSlot

# "4 Name" or "4x Name"
_QUANTITY_PATTERN = re.compile(r"^(\d+)\s*[xX]?\s+(.+)$")

# "Name (SET)" or "Name (SET) 123"
_PAREN_SET_PATTERN = re.compile(r"^(.+?)\s*\(\s*([A-Za-z0-9]+)\s*\)(?:\s+\S+)?$")

# "Name - SET" or "Name | SET"
_SEPARATOR_SET_PATTERN = re.compile(r"^(.+?)\s+[-|]\s+([A-Za-z0-9]{2,6})$")

# Section header, optionally with a colon or a "(n)" card count
_SECTION_PATTERN = re.compile(r"^([A-Za-z ]+?)\s*(?:\(\d+\))?\s*:?$")

KNOWN_SECTIONS: frozenset[str] = frozenset(
    {
        "deck",
        "main",
        "mainboard",
        "sideboard",
        "commander",
        "companion",
        "maybeboard",
    }
)


def _is_comment(line: str) -> bool:
    return line.startswith("//") or line.startswith("#")


def _is_section_header(line: str) -> bool:
    match = _SECTION_PATTERN.match(line)
    return match is not None and match.group(1).strip().lower() in KNOWN_SECTIONS


def parse_line(line: str) -> DeckSlot | None:
    """
    Parse one decklist line.

    Returns None for blank lines, comments, and section headers.
    """
    stripped = line.strip()
    if not stripped or _is_comment(stripped) or _is_section_header(stripped):
        return None

    quantity = 1
    rest = stripped
    qty_match = _QUANTITY_PATTERN.match(stripped)
    if qty_match:
        quantity = int(qty_match.group(1))
        rest = qty_match.group(2).strip()

    name = rest
    set_code: str | None = None
    paren_match = _PAREN_SET_PATTERN.match(rest)
    if paren_match:
        name, set_code = paren_match.group(1).strip(), paren_match.group(2)
    else:
        sep_match = _SEPARATOR_SET_PATTERN.match(rest)
        if sep_match:
            name, set_code = sep_match.group(1).strip(), sep_match.group(2)

    if not name:
        return None
    return DeckSlot(
        card_name=name,
        quantity=quantity,
        set_code=set_code.upper() if set_code else None,
    )


def parse_decklist(text: str | None) -> list[DeckSlot]:
    """Parse decklist text into slot entries, in input order."""
    if not text:
        return []
    entries: list[DeckSlot] = []
    for line in text.splitlines():
        entry = parse_line(line)
        if entry is not None:
            entries.append(entry)
    return entries
