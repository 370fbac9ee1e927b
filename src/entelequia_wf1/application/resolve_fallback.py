"""Cascata de fallback e estágio de contexto + LLM.

Executada só quando nenhum fluxo respondeu. Passagem única, primeira
resposta vence:
1. Continuação por memória (reescreve texto/intenção, não responde)
2. Comparação de preço a partir do snapshot de catálogo
3. Detecção de política comercial (só métrica)
4. Classificação de escopo
5. Contexto + LLM com retry guiado
"""

from __future__ import annotations

from entelequia_wf1.application.context_blocks import (
    append_policy_context,
    build_orders_minimal_context,
)
from entelequia_wf1.application.flow_state import resolve_latest_catalog_snapshot
from entelequia_wf1.application.flows.policy import detect_business_policy
from entelequia_wf1.application.flows.pricing import (
    MISSING_SNAPSHOT_MESSAGE,
    append_price_challenge_block,
    build_price_comparison_message,
    build_price_requery_text,
    detect_price_challenge,
    resolve_price_comparison_intent,
    select_price_comparison_item,
)
from entelequia_wf1.application.flows.recommendations import (
    build_disambiguation_from_context,
    resolve_memory_update_from_context,
    resolve_recommendation_continuation,
)
from entelequia_wf1.application.flows.scope import resolve_domain_scope
from entelequia_wf1.application.llm_retry import call_llm_with_guided_retry
from entelequia_wf1.application.resolution_state import (
    ResolutionDependencies,
    ResolutionInput,
    ResolutionState,
)
from entelequia_wf1.application.responses.errors import map_error_to_response
from entelequia_wf1.domain.catalog import build_catalog_snapshot
from entelequia_wf1.domain.enums import Intent, PriceComparisonIntent
from entelequia_wf1.domain.errors import Wf1Error
from entelequia_wf1.domain.models import ContextBlock, Wf1Response, Wf1SuccessResponse
from entelequia_wf1.domain.recommendations import format_franchise_label, is_polite_closing
from entelequia_wf1.observability.logging import get_logger, log_fallback

logger = get_logger(__name__)


def _success(resolution_input: ResolutionInput, message: str, intent: str) -> Wf1SuccessResponse:
    return Wf1SuccessResponse(
        message=message,
        conversation_id=resolution_input.message.conversation_id,
        intent=intent,
    )


def apply_continuation(
    resolution_input: ResolutionInput,
    state: ResolutionState,
    deps: ResolutionDependencies,
) -> None:
    original_text = state.effective_text
    if is_polite_closing(original_text):
        return

    continuation = resolve_recommendation_continuation(
        original_text,
        state.effective_intent_result.entities,
        state.effective_intent,
        resolution_input.flow_state.memory,
        resolution_input.now_ms,
        deps.settings.recommendations_snapshot_max_age_seconds,
    )
    if not continuation.force_recommendations_intent:
        return

    state.rewrite(
        text=continuation.rewritten_text,
        intent=Intent.RECOMMENDATIONS.value,
        entities=continuation.entities_override,
    )
    if continuation.rewrote(original_text):
        logger.info(
            "recommendation_continuation_rewritten",
            extra={"entities_count": len(continuation.entities_override)},
        )


def resolve_price_comparison(
    resolution_input: ResolutionInput,
    state: ResolutionState,
) -> Wf1Response | None:
    # Sinal de comparação vem do texto do usuário, não de reescritas de estágios anteriores
    comparison = resolve_price_comparison_intent(resolution_input.message.text)
    if comparison == PriceComparisonIntent.NONE:
        return None

    items = resolve_latest_catalog_snapshot(resolution_input.history)
    if items:
        selected = select_price_comparison_item(comparison, items)
        if selected is not None:
            state.catalog_snapshot = items
            logger.info(
                "price_comparison_answered",
                extra={"comparison": comparison.value, "compared_count": len(items)},
            )
            return _success(
                resolution_input,
                build_price_comparison_message(comparison, selected, len(items)),
                Intent.PRODUCTS.value,
            )

    last_franchise = resolution_input.flow_state.memory.last_franchise
    if last_franchise:
        # Sem snapshot: reconsulta o catálogo ordenado em vez de adivinhar
        franchise_label = format_franchise_label(last_franchise).strip()
        entities = state.effective_intent_result.entities
        state.rewrite(
            text=build_price_requery_text(last_franchise),
            intent=Intent.RECOMMENDATIONS.value,
            entities=entities if franchise_label in entities else [*entities, franchise_label],
        )
        state.record_fallback("price_comparison_snapshot_missing_requery")
        return None

    state.record_fallback("price_comparison_snapshot_missing_clarify")
    return _success(resolution_input, MISSING_SNAPSHOT_MESSAGE, Intent.PRODUCTS.value)


def observe_business_policy(state: ResolutionState, deps: ResolutionDependencies) -> None:
    match = detect_business_policy(state.effective_text)
    if match is None:
        return
    state.business_policy = match.policy_type
    deps.metrics.increment_business_policy_detected(match.policy_type.value)
    logger.info(
        "business_policy_detected",
        extra={"policy": match.policy_type.value, "intent": match.intent.value},
    )


def resolve_scope(
    resolution_input: ResolutionInput,
    state: ResolutionState,
    deps: ResolutionDependencies,
) -> Wf1Response | None:
    resolution = resolve_domain_scope(state.effective_text, state.effective_intent)
    if resolution.is_in_scope or resolution.message is None:
        return None

    reason = f"scope_{resolution.scope.value}"
    state.record_fallback(reason)
    deps.metrics.increment_scope_redirect(resolution.scope.value)
    log_fallback(logger, "domain_scope", reason=reason)
    logger.info(
        "scope_redirect_applied",
        extra={
            "scope": resolution.scope.value,
            "smalltalk_kind": resolution.smalltalk_kind.value if resolution.smalltalk_kind else None,
        },
    )
    return _success(resolution_input, resolution.message, Intent.GENERAL.value)


def resolve_fallback_cascade(
    resolution_input: ResolutionInput,
    state: ResolutionState,
    deps: ResolutionDependencies,
) -> Wf1Response | None:
    """Estágios 1 a 4; None segue para contexto + LLM."""

    apply_continuation(resolution_input, state, deps)

    response = resolve_price_comparison(resolution_input, state)
    if response is not None:
        return response

    observe_business_policy(state, deps)
    return resolve_scope(resolution_input, state, deps)


def _prepare_llm_blocks(
    resolution_input: ResolutionInput,
    state: ResolutionState,
    deps: ResolutionDependencies,
    blocks: list[ContextBlock],
) -> list[ContextBlock]:
    settings = deps.settings
    if resolution_input.is_authenticated and state.effective_intent == Intent.ORDERS:
        llm_blocks = build_orders_minimal_context(blocks, settings.orders_context_char_budget)
    else:
        llm_blocks = append_policy_context(blocks, state.business_policy)
        deps.metrics.increment_policy_context_injected()

    challenge = detect_price_challenge(
        state.effective_text,
        resolution_input.flow_state.memory,
        resolution_input.now_ms,
        resolution_input.latest_bot_message,
        settings.price_challenge_max_age_seconds,
    )
    if challenge.should_revalidate:
        logger.info("price_challenge_detected", extra={"has_previous_answer": bool(challenge.original_answer)})
        deps.metrics.increment_price_challenge_detected()
        llm_blocks = append_price_challenge_block(llm_blocks)
    return llm_blocks


async def resolve_context_and_llm(
    resolution_input: ResolutionInput,
    state: ResolutionState,
    deps: ResolutionDependencies,
) -> Wf1Response:
    """Enriquece contexto e chama o LLM; falhas tipadas viram resposta mapeada."""

    try:
        state.tool_attempts += 1
        blocks = await deps.context_enrichment.enrich(
            state.effective_intent_result,
            state.effective_text,
            resolution_input.message.access_token,
            resolution_input.history,
        )
        state.context_blocks = list(blocks)

        memory_update = resolve_memory_update_from_context(
            blocks,
            state.effective_text,
            state.effective_intent_result.entities,
            resolution_input.now_ms,
        )
        if memory_update is not None:
            state.update_memory(
                memory_update.last_franchise,
                memory_update.last_type,
                memory_update.snapshot_timestamp,
                memory_update.snapshot_source,
                memory_update.snapshot_item_count,
            )

        disambiguation = build_disambiguation_from_context(blocks)
        if disambiguation is not None:
            state.set_recommendations_flow(
                disambiguation.next_state, disambiguation.franchise, disambiguation.category_hint
            )
            state.set_prompted_franchise(disambiguation.franchise)
            deps.metrics.increment_recommendations_disambiguation_triggered(disambiguation.reason)
            logger.info("recommendations_disambiguation_triggered", extra={"reason": disambiguation.reason})
            return disambiguation.response

        llm_blocks = _prepare_llm_blocks(resolution_input, state, deps, blocks)
        result = await call_llm_with_guided_retry(
            deps.llm,
            text=state.effective_text,
            intent=state.effective_intent,
            history=resolution_input.history,
            context_blocks=llm_blocks,
        )
        state.llm_attempts += result.attempts
        if result.retried:
            state.record_fallback("llm_guided_retry")
        state.llm_path = result.llm_path
        state.fallback_reason = result.fallback_reason
        state.context_blocks = llm_blocks
        state.catalog_snapshot = build_catalog_snapshot(blocks)

        return _success(resolution_input, result.reply.message, state.effective_intent)
    except Wf1Error as exc:
        logger.warning(
            "context_llm_stage_failed",
            extra={
                "error_type": type(exc).__name__,
                "status_code": getattr(exc, "status_code", None),
                "endpoint_group": getattr(exc, "endpoint_group", None),
            },
        )
        return map_error_to_response(exc)
