"""Comparação de preços a partir do snapshot de catálogo e detecção de contestação.

A comparação responde sem LLM usando os cards persistidos no último turno de
bot. A contestação ("estas seguro?") nunca responde sozinha: só adiciona um
bloco de contexto pedindo revalidação quando o snapshot ainda está fresco.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from entelequia_wf1.application.flow_state import RecommendationsMemorySnapshot, is_snapshot_fresh
from entelequia_wf1.domain.enums import PriceComparisonIntent
from entelequia_wf1.domain.models import CatalogSnapshotItem, ContextBlock, Money
from entelequia_wf1.domain.money import format_money
from entelequia_wf1.utils.text import normalize_text_for_search

CHEAPEST_PATTERNS = (
    re.compile(r"\bmas\s+(barat[oa]?|economico)\b"),
    re.compile(r"\bcual\s+sale\s+menos\b"),
    re.compile(r"\bprecio\s+mas\s+bajo\b"),
    re.compile(r"\b(cheapest|precio\s+minimo)\b"),
)

MOST_EXPENSIVE_PATTERNS = (
    re.compile(r"\bmas\s+car[oa]\b"),
    re.compile(r"\bcual\s+sale\s+mas\b"),
    re.compile(r"\bprecio\s+mas\s+alto\b"),
)

CHALLENGE_PATTERNS = (
    re.compile(r"\bestas\s+segur[oa]\b"),
    re.compile(r"\b(recien|antes|me)\s+dijiste\b"),
    re.compile(r"\bpero.+(precio|valor|costo)\b"),
    re.compile(r"\b(como|no)\s+puede\s+ser\b"),
    re.compile(r"\b(te\s+contradices|contradictorio)\b"),
)

PRICE_CHALLENGE_CONTEXT_TYPE = "price_challenge"
PRICE_CHALLENGE_HINT = (
    "IMPORTANTE: El usuario esta cuestionando tu respuesta anterior. Valida que el precio "
    "que indicaste sigue siendo correcto segun el snapshot actual."
)

MISSING_SNAPSHOT_MESSAGE = (
    "No tengo una lista reciente de productos en esta conversacion. Si queres, te muestro "
    "opciones y te digo al toque cual es el mas barato."
)


@dataclass(slots=True)
class PriceChallenge:
    is_challenge: bool
    should_revalidate: bool
    original_answer: str | None = None


def resolve_price_comparison_intent(text: str) -> PriceComparisonIntent:
    normalized = normalize_text_for_search(text)
    if not normalized:
        return PriceComparisonIntent.NONE
    if any(pattern.search(normalized) for pattern in CHEAPEST_PATTERNS):
        return PriceComparisonIntent.CHEAPEST
    if any(pattern.search(normalized) for pattern in MOST_EXPENSIVE_PATTERNS):
        return PriceComparisonIntent.MOST_EXPENSIVE
    return PriceComparisonIntent.NONE


def select_price_comparison_item(
    intent: PriceComparisonIntent,
    items: list[CatalogSnapshotItem],
) -> CatalogSnapshotItem | None:
    """Comparação estrita: em empate fica o primeiro item visto."""

    if not items or intent == PriceComparisonIntent.NONE:
        return None

    selected = items[0]
    for item in items[1:]:
        if intent == PriceComparisonIntent.CHEAPEST and item.amount < selected.amount:
            selected = item
        elif intent == PriceComparisonIntent.MOST_EXPENSIVE and item.amount > selected.amount:
            selected = item
    return selected


def build_price_comparison_message(
    intent: PriceComparisonIntent,
    item: CatalogSnapshotItem,
    compared_count: int,
) -> str:
    price = format_money(Money(amount=item.amount, currency=item.currency))
    label = "el mas barato" if intent == PriceComparisonIntent.CHEAPEST else "el mas caro"
    return (
        f"De los {compared_count} productos que te mostre, {label} es "
        f'"{item.title}" por {price}.'
    )


def build_price_requery_text(franchise: str) -> str:
    franchise_text = franchise.replace("_", " ")
    return f"mostrame opciones de {franchise_text} ordenadas por precio de menor a mayor"


def detect_price_challenge(
    text: str,
    memory: RecommendationsMemorySnapshot,
    now_ms: int,
    last_bot_message: str | None = None,
    max_age_seconds: int = 120,
) -> PriceChallenge:
    normalized = normalize_text_for_search(text)
    if not any(pattern.search(normalized) for pattern in CHALLENGE_PATTERNS):
        return PriceChallenge(is_challenge=False, should_revalidate=False)
    return PriceChallenge(
        is_challenge=True,
        should_revalidate=is_snapshot_fresh(memory, now_ms, max_age_seconds),
        original_answer=last_bot_message,
    )


def append_price_challenge_block(blocks: list[ContextBlock]) -> list[ContextBlock]:
    """Substitui qualquer bloco de contestação anterior."""

    kept = [block for block in blocks if block.context_type != PRICE_CHALLENGE_CONTEXT_TYPE]
    return [
        *kept,
        ContextBlock(
            context_type=PRICE_CHALLENGE_CONTEXT_TYPE,
            context_payload={"hint": PRICE_CHALLENGE_HINT},
        ),
    ]
