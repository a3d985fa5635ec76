"""Tests for card name normalization and slot matching."""

from dataclasses import dataclass

from binderkeep.models.card_ref import CardRef, matches, normalize, normalize_set


@dataclass
class Row:
    card_name: str
    set_code: str | None = None


@dataclass
class Slot:
    card_name: str
    set_code: str | None = None


class TestNormalize:
    def test_case_and_whitespace_insensitive(self) -> None:
        """Names differing only in case and spacing share a key."""
        assert normalize("  Sol   Ring ") == normalize("sol ring")

    def test_empty_and_none(self) -> None:
        """Normalization never raises on missing input."""
        assert normalize(None) == ""
        assert normalize("   ") == ""

    def test_punctuation_is_kept(self) -> None:
        assert normalize("Lim-Dûl's Vault") == "lim-dûl's vault"

    def test_set_codes_upper_cased(self) -> None:
        assert normalize_set(" cmm ") == "CMM"
        assert normalize_set(None) == ""


class TestCardRef:
    def test_of_normalizes_both_parts(self) -> None:
        ref = CardRef.of("Sol Ring", "cmm")

        assert ref == CardRef(name_key="sol ring", set_code="CMM")
        assert ref.has_set_constraint

    def test_no_set_constraint(self) -> None:
        assert not CardRef.of("Island").has_set_constraint

    def test_refs_are_hashable(self) -> None:
        """Refs key the candidate map."""
        refs = {CardRef.of("Island"), CardRef.of("island "), CardRef.of("Island", "M21")}

        assert len(refs) == 2


class TestMatches:
    def test_same_name_any_printing(self) -> None:
        """A slot without a set accepts every printing."""
        assert matches(Row("SOL RING", "C21"), Slot("Sol Ring"))

    def test_different_name(self) -> None:
        assert not matches(Row("Sol Ring"), Slot("Arcane Signet"))

    def test_set_constraint_must_match(self) -> None:
        assert matches(Row("Island", "m21"), Slot("Island", "M21"))
        assert not matches(Row("Island", "ZNR"), Slot("Island", "M21"))

    def test_set_constraint_rejects_unknown_printing(self) -> None:
        """A row without a set code cannot fill a slot that names one."""
        assert not matches(Row("Island"), Slot("Island", "M21"))
