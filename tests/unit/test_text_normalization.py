"""Testes para utils/text.py."""

from __future__ import annotations

from entelequia_wf1.utils.text import (
    contains_any_whole_term,
    contains_normalized_term,
    normalize_for_token,
    normalize_text_for_search,
    normalize_text_strict,
    normalize_with_repeated_chars,
    strip_accents,
    word_count,
)


class TestNormalization:
    def test_strip_accents_removes_diacritics(self) -> None:
        assert strip_accents("envío rápido ñandú") == "envio rapido nandu"

    def test_normalize_for_search_drops_punctuation(self) -> None:
        assert normalize_text_for_search("¡Hola, Qué   tal!") == "hola que tal"

    def test_normalize_for_token_keeps_punctuation(self) -> None:
        assert normalize_for_token("  Tomo  #3 ") == "tomo #3"

    def test_repeated_chars_are_reduced_to_two(self) -> None:
        """Ênfase ("siiii") reduz para duas letras."""
        assert normalize_with_repeated_chars("Siiiii!!") == "sii"
        assert normalize_with_repeated_chars("noooo") == "noo"

    def test_strict_normalization_keeps_only_allowed_chars(self) -> None:
        assert normalize_text_strict("Pedido #123, ¿dónde está?") == "pedido 123 donde esta"
        assert normalize_text_strict("Pedido #123", keep="#") == "pedido #123"


class TestTermMatching:
    def test_single_word_term_requires_whole_word(self) -> None:
        assert contains_normalized_term("quiero un manga", "manga") is True
        assert contains_normalized_term("quiero mangas", "manga") is False

    def test_multi_word_term_uses_substring(self) -> None:
        assert contains_normalized_term("hacen envio internacional", "envio internacional") is True

    def test_empty_term_never_matches(self) -> None:
        assert contains_normalized_term("hola", "") is False

    def test_whole_term_with_spaces(self) -> None:
        assert contains_any_whole_term("no tengo nada", ("no tengo",)) is True
        assert contains_any_whole_term("nono tengo", ("no tengo",)) is False

    def test_word_count(self) -> None:
        assert word_count("") == 0
        assert word_count("de una") == 2
