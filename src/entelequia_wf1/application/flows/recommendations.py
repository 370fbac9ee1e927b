"""Desambiguação de recomendações e continuação por memória.

Estados: None → awaiting_category_or_volume → awaiting_volume_detail → None.
Respostas curtas ("mangas", "tomo 3") são reescritas em uma consulta completa
com override de entidades; o enriquecimento de contexto faz o resto.

A continuação usa a memória persistida no metadata do bot: confirmação curta
("dale") resolve contra a franquia perguntada antes da última exibida.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from entelequia_wf1.application.flow_state import (
    RecommendationsFlowSnapshot,
    RecommendationsMemorySnapshot,
    is_snapshot_fresh,
)
from entelequia_wf1.application.responses.recommendations import (
    build_franchise_disambiguation_response,
    build_unknown_followup_response,
    build_volume_disambiguation_response,
)
from entelequia_wf1.domain.enums import Intent, RecommendationFlowState
from entelequia_wf1.domain.models import ContextBlock, Wf1Response
from entelequia_wf1.domain.recommendations import (
    RecommendationFollowup,
    build_recommendations_rewrite_text,
    detect_recommendation_types,
    format_category_label,
    format_franchise_label,
    is_polite_closing,
    resolve_followup,
    resolve_franchise_keywords,
)
from entelequia_wf1.utils.text import contains_normalized_term, normalize_text_for_search

SHORT_ACK_TERMS = frozenset(
    {
        "si",
        "sii",
        "siii",
        "seh",
        "sep",
        "yes",
        "dale",
        "ok",
        "okey",
        "oka",
        "okay",
        "bueno",
        "va",
        "va bien",
        "listo",
        "joya",
        "de una",
        "barbaro",
        "genial",
        "perfecto",
        "excelente",
        "claro",
        "obvio",
        "seguro",
        "por supuesto",
        "desde ya",
        "no",
        "nop",
        "nope",
        "negativo",
        "no gracias",
    }
)

# "barato" sozinho é pedido novo, não continuação
CONTINUATION_PATTERNS = (
    re.compile(r"\bmas\s+barat[oa]\b"),
    re.compile(r"\balgo\s+mas\b"),
    re.compile(r"\b(tenes|tienes)\b"),
    re.compile(r"\bque\s+tenes\b"),
    re.compile(r"\bpresupuesto\b"),
)

CATALOG_SIGNAL_PATTERN = re.compile(
    r"\b(manga|mangas|comic|comics|figura|figuras|funko|merch|k\s*-?\s*pop|kpop|booster|tcg"
    r"|carta|cartas|yu\s*-?\s*gi\s*-?\s*oh|yugioh|pokemon|evangelion|naruto|chainsaw\s+man"
    r"|demon\s+slayer|one\s+piece|attack\s+on\s+titan|shingeki|boku\s+no\s+hero|dragon\s+ball"
    r"|jujutsu\s+kaisen|spy\s+family|bleach|hunter|kimetsu|my\s+hero\s+academia)\b"
)

_VOLUME_CATEGORIES = frozenset({"mangas", "comics"})

DISAMBIGUATION_REASON_FRANCHISE = "franchise_scope"
DISAMBIGUATION_REASON_VOLUME = "volume_scope"


@dataclass(slots=True)
class PendingRecommendationsOutcome:
    """Resultado do fluxo pendente.

    response None significa reescrita: o pipeline segue com rewritten_text,
    intent recommendations e entities_override.
    """

    response: Wf1Response | None
    rewritten_text: str
    entities_override: list[str]
    next_state: RecommendationFlowState | None
    next_franchise: str | None = None
    next_category_hint: str | None = None
    resolved: bool = False


@dataclass(slots=True)
class ContextDisambiguation:
    response: Wf1Response
    reason: str
    next_state: RecommendationFlowState
    franchise: str
    category_hint: str | None = None


@dataclass(slots=True)
class RecommendationsMemoryUpdate:
    last_franchise: str | None
    last_type: str | None
    snapshot_timestamp: int
    snapshot_source: str
    snapshot_item_count: int


@dataclass(slots=True)
class ContinuationResolution:
    force_recommendations_intent: bool
    rewritten_text: str
    entities_override: list[str] = field(default_factory=list)

    def rewrote(self, original_text: str) -> bool:
        return self.rewritten_text != original_text


def should_continue_recommendations_flow(
    current_state: RecommendationFlowState | None,
    text: str,
    entities: list[str],
) -> bool:
    if current_state is None or is_polite_closing(text):
        return False
    return resolve_followup(text, entities).has_signals


def _unchanged(
    text: str,
    entities: list[str],
    state: RecommendationFlowState | None,
    franchise: str | None = None,
    category_hint: str | None = None,
) -> PendingRecommendationsOutcome:
    return PendingRecommendationsOutcome(
        response=None,
        rewritten_text=text,
        entities_override=list(entities),
        next_state=state,
        next_franchise=franchise,
        next_category_hint=category_hint,
    )


def _resolved_rewrite(
    franchise: str,
    category_hint: str | None,
    followup: RecommendationFollowup,
) -> PendingRecommendationsOutcome:
    return PendingRecommendationsOutcome(
        response=None,
        rewritten_text=build_recommendations_rewrite_text(
            franchise,
            category_hint,
            volume_number=followup.volume_number,
            wants_latest=followup.wants_latest,
            wants_start=followup.wants_start,
        ),
        entities_override=[franchise],
        next_state=None,
        resolved=True,
    )


def _has_volume_detail(followup: RecommendationFollowup) -> bool:
    return bool(followup.volume_number) or followup.wants_latest or followup.wants_start


def handle_pending_recommendations_flow(
    current: RecommendationsFlowSnapshot,
    text: str,
    entities: list[str],
) -> PendingRecommendationsOutcome:
    followup = resolve_followup(text, entities)
    if not followup.has_signals:
        return _unchanged(text, entities, current.state, current.franchise, current.category_hint)

    franchise = followup.mentioned_franchise or current.franchise
    if not franchise or current.state is None:
        return _unchanged(text, entities, None)

    if current.state == RecommendationFlowState.AWAITING_CATEGORY_OR_VOLUME:
        return _handle_awaiting_category_or_volume(current, followup, franchise, text, entities)
    return _handle_awaiting_volume_detail(current, followup, franchise, text, entities)


def _handle_awaiting_category_or_volume(
    current: RecommendationsFlowSnapshot,
    followup: RecommendationFollowup,
    franchise: str,
    text: str,
    entities: list[str],
) -> PendingRecommendationsOutcome:
    category_hint = followup.requested_type or current.category_hint

    if _has_volume_detail(followup):
        return _resolved_rewrite(franchise, category_hint, followup)

    franchise_label = format_franchise_label(franchise)
    if category_hint in _VOLUME_CATEGORIES:
        # Mangas/comics ainda precisam de tomo, início ou lançamentos
        return PendingRecommendationsOutcome(
            response=build_volume_disambiguation_response(
                franchise_label, format_category_label(category_hint)
            ),
            rewritten_text=text,
            entities_override=list(entities),
            next_state=RecommendationFlowState.AWAITING_VOLUME_DETAIL,
            next_franchise=franchise,
            next_category_hint=category_hint,
        )

    if category_hint:
        return _resolved_rewrite(franchise, category_hint, followup)

    return PendingRecommendationsOutcome(
        response=build_unknown_followup_response(
            franchise_label, RecommendationFlowState.AWAITING_CATEGORY_OR_VOLUME
        ),
        rewritten_text=text,
        entities_override=list(entities),
        next_state=RecommendationFlowState.AWAITING_CATEGORY_OR_VOLUME,
        next_franchise=franchise,
    )


def _handle_awaiting_volume_detail(
    current: RecommendationsFlowSnapshot,
    followup: RecommendationFollowup,
    franchise: str,
    text: str,
    entities: list[str],
) -> PendingRecommendationsOutcome:
    """Só tomo/início/lançamentos resolvem; categoria solta re-pergunta."""

    category_hint = current.category_hint or followup.requested_type

    if _has_volume_detail(followup):
        return _resolved_rewrite(franchise, category_hint, followup)

    return PendingRecommendationsOutcome(
        response=build_unknown_followup_response(
            format_franchise_label(franchise),
            RecommendationFlowState.AWAITING_VOLUME_DETAIL,
            format_category_label(category_hint),
        ),
        rewritten_text=text,
        entities_override=list(entities),
        next_state=RecommendationFlowState.AWAITING_VOLUME_DETAIL,
        next_franchise=franchise,
        next_category_hint=category_hint,
    )


def _find_block(blocks: list[ContextBlock], context_type: str) -> ContextBlock | None:
    return next((block for block in blocks if block.context_type == context_type), None)


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [entry for entry in value if isinstance(entry, str) and entry]


def build_disambiguation_from_context(blocks: list[ContextBlock]) -> ContextDisambiguation | None:
    """Prompt de desambiguação quando o bloco de recomendações pede."""

    block = _find_block(blocks, "recommendations")
    if block is None:
        return None

    payload = block.context_payload
    if payload.get("needsDisambiguation") is not True:
        return None

    franchise = payload.get("disambiguationFranchise")
    if not isinstance(franchise, str) or not franchise:
        return None

    reason = payload.get("disambiguationReason")
    suggested_types = _string_list(payload.get("disambiguationSuggestedTypes"))
    franchise_label = format_franchise_label(franchise)

    if reason == DISAMBIGUATION_REASON_VOLUME:
        category_hint = suggested_types[0] if suggested_types else "mangas"
        return ContextDisambiguation(
            response=build_volume_disambiguation_response(
                franchise_label, format_category_label(category_hint)
            ),
            reason=DISAMBIGUATION_REASON_VOLUME,
            next_state=RecommendationFlowState.AWAITING_VOLUME_DETAIL,
            franchise=franchise,
            category_hint=category_hint,
        )

    total = payload.get("disambiguationTotalCandidates")
    total_candidates = total if isinstance(total, int) and not isinstance(total, bool) else 0
    return ContextDisambiguation(
        response=build_franchise_disambiguation_response(
            franchise_label, suggested_types, total_candidates
        ),
        reason=DISAMBIGUATION_REASON_FRANCHISE,
        next_state=RecommendationFlowState.AWAITING_CATEGORY_OR_VOLUME,
        franchise=franchise,
    )


def resolve_memory_update_from_context(
    blocks: list[ContextBlock],
    text: str,
    entities: list[str],
    now_ms: int,
) -> RecommendationsMemoryUpdate | None:
    """Atualização de memória a partir do contexto exibido neste turno."""

    recommendations = _find_block(blocks, "recommendations")
    if recommendations is not None:
        products = recommendations.context_payload.get("products")
        if isinstance(products, list) and products:
            payload = recommendations.context_payload
            preferences = payload.get("preferences")
            preferences = preferences if isinstance(preferences, dict) else {}
            candidates = [
                *_string_list(payload.get("matchedFranchises")),
                *_string_list(preferences.get("franchiseKeywords")),
                *resolve_franchise_keywords(text, entities),
            ]
            types = _string_list(preferences.get("type"))
            return RecommendationsMemoryUpdate(
                last_franchise=candidates[0] if candidates else None,
                last_type=types[0] if types else None,
                snapshot_timestamp=now_ms,
                snapshot_source="recommendations",
                snapshot_item_count=len(products),
            )

    products_block = _find_block(blocks, "products")
    if products_block is None:
        return None

    items = products_block.context_payload.get("items")
    if not isinstance(items, list) or not items:
        return None

    resolved_query = products_block.context_payload.get("resolvedQuery")
    query_text = text
    if isinstance(resolved_query, dict):
        product_name = resolved_query.get("productName")
        if isinstance(product_name, str) and product_name.strip():
            query_text = product_name.strip()

    franchises = resolve_franchise_keywords(query_text, entities)
    types = detect_recommendation_types(text, entities)
    if not franchises and not types:
        return None

    return RecommendationsMemoryUpdate(
        last_franchise=franchises[0] if franchises else None,
        last_type=types[0] if types else None,
        snapshot_timestamp=now_ms,
        snapshot_source="products",
        snapshot_item_count=len(items),
    )


def _continuation_franchise(
    explicit_franchise: str | None,
    is_short_ack: bool,
    has_continuation_signal: bool,
    memory: RecommendationsMemorySnapshot,
) -> str | None:
    if explicit_franchise:
        return explicit_franchise
    if is_short_ack:
        return memory.prompted_franchise or memory.last_franchise
    if has_continuation_signal:
        return memory.last_franchise
    return None


def _append_franchise(text: str, franchise: str) -> str:
    normalized_franchise = normalize_text_for_search(franchise)
    if normalized_franchise and contains_normalized_term(
        normalize_text_for_search(text), normalized_franchise
    ):
        return text
    return f"{text} de {franchise}"


def _append_entity(entities: list[str], candidate: str) -> list[str]:
    normalized = normalize_text_for_search(candidate)
    if not normalized:
        return list(entities)
    if any(normalize_text_for_search(entity) == normalized for entity in entities):
        return list(entities)
    return [*entities, candidate]


def resolve_recommendation_continuation(
    text: str,
    entities: list[str],
    routed_intent: str,
    memory: RecommendationsMemorySnapshot,
    now_ms: int,
    max_age_seconds: int = 300,
) -> ContinuationResolution:
    """Decide se a mensagem continua a última conversa de catálogo.

    Memória vencida só vale para a franquia perguntada (prompted); confirmação
    curta sem franquia perguntada e com memória vencida não continua nada.
    """

    explicit_franchises = resolve_franchise_keywords(text, entities)
    normalized = normalize_text_for_search(text)
    is_short_ack = normalized in SHORT_ACK_TERMS
    has_continuation_signal = is_short_ack or any(
        pattern.search(normalized) for pattern in CONTINUATION_PATTERNS
    )
    has_catalog_signals = bool(explicit_franchises) or CATALOG_SIGNAL_PATTERN.search(normalized) is not None
    fresh = is_snapshot_fresh(memory, now_ms, max_age_seconds)

    franchise = _continuation_franchise(
        explicit_franchises[0] if explicit_franchises else None,
        is_short_ack,
        has_continuation_signal,
        memory,
    )
    if franchise and not explicit_franchises and has_continuation_signal and not fresh:
        franchise = memory.prompted_franchise
    if franchise and is_short_ack and memory.prompted_franchise is None and not fresh:
        franchise = None

    force = routed_intent == Intent.RECOMMENDATIONS or (
        routed_intent == Intent.GENERAL
        and (
            has_catalog_signals
            or (is_short_ack and memory.prompted_franchise is not None)
            or (has_continuation_signal and memory.last_franchise is not None)
        )
    )

    unchanged = ContinuationResolution(force, text, list(entities))
    if not franchise or explicit_franchises:
        return unchanged
    if not has_continuation_signal and routed_intent != Intent.GENERAL:
        return unchanged

    query_franchise = format_franchise_label(franchise).strip()
    rewritten = (
        f"quiero ver productos de {query_franchise}"
        if is_short_ack
        else _append_franchise(text, query_franchise)
    )
    return ContinuationResolution(force, rewritten, _append_entity(entities, query_franchise))
