"""Normalização de texto para matching determinístico de termos.

Variantes:
- normalize_for_token: trim, sem acentos, lowercase, espaços colapsados
- normalize_text_for_search: idem + remove pontuação (mantém \\w e espaços)
- normalize_with_repeated_chars: idem + reduz 3+ letras repetidas para 2
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterable

_NON_WORD = re.compile(r"[^\w\s]")
_SPACES = re.compile(r"\s+")
_REPEATED_LETTERS = re.compile(r"([a-z])\1{2,}")


def strip_accents(value: str) -> str:
    """Remove diacríticos via NFD (ex.: "envío" -> "envio", "ñ" -> "n")."""

    decomposed = unicodedata.normalize("NFD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_for_token(value: str) -> str:
    return re.sub(r"\s{2,}", " ", strip_accents(value.strip()).lower())


def normalize_text_for_search(value: str) -> str:
    """Normalização padrão para busca e comparação de termos."""

    text = strip_accents(value.lower())
    text = _NON_WORD.sub(" ", text)
    return _SPACES.sub(" ", text).strip()


def normalize_with_repeated_chars(value: str) -> str:
    """Como normalize_text_for_search, reduzindo ênfase ("siii" -> "sii")."""

    text = strip_accents(value.lower())
    text = _REPEATED_LETTERS.sub(r"\1\1", text)
    text = _NON_WORD.sub(" ", text)
    return _SPACES.sub(" ", text).strip()


def contains_normalized_term(text: str, normalized_term: str) -> bool:
    """Verifica termo como palavra inteira; termos com espaço usam substring."""

    if not normalized_term:
        return False
    if text == normalized_term:
        return True
    if " " in normalized_term:
        return normalized_term in text
    return re.search(rf"(^|\s){re.escape(normalized_term)}(\s|$)", text) is not None


def contains_any_term(text: str, terms: Iterable[str]) -> bool:
    return any(contains_normalized_term(text, normalize_text_for_search(term)) for term in terms)


def word_count(normalized: str) -> int:
    return len(normalized.split()) if normalized else 0


def contains_whole_term(text: str, normalized_term: str) -> bool:
    """Termo (inclusive com espaços) delimitado por início/fim ou espaço."""

    if not normalized_term:
        return False
    if text == normalized_term:
        return True
    return re.search(rf"(^|\s){re.escape(normalized_term)}(\s|$)", text) is not None


def contains_any_whole_term(text: str, terms: Iterable[str]) -> bool:
    return any(contains_whole_term(text, term) for term in terms)


def normalize_text_strict(value: str, keep: str = "") -> str:
    """Somente [a-z0-9] e espaços (mais os caracteres de `keep`)."""

    text = strip_accents(value).lower()
    text = re.sub(rf"[^a-z0-9\s{re.escape(keep)}]", " ", text)
    return _SPACES.sub(" ", text).strip()
