"""Estágio de fluxos: decide qual sub-conversa (se alguma) responde o turno.

Precedência (primeira que responde vence):
1. Resgate de intenção para pedidos (usuário autenticado)
2. Orientação de reautenticação (sem sessão dizendo que já logou)
3. Consulta de pedido sem sessão
4. Desambiguação de recomendações pendente (pode só reescrever o texto)
5. Escalonamento de pedido cancelado
6. Pedidos autenticados determinísticos

Os critérios de continuação são disjuntos, o que garante no máximo um fluxo
ativo por turno.
"""

from __future__ import annotations

from dataclasses import dataclass

from entelequia_wf1.application.flows.guest_order_lookup import (
    AnswerStrength,
    GuestOrderLookupFlow,
    is_short_isolated_ack,
    resolve_answer_strength,
    should_continue_guest_order_lookup_flow,
)
from entelequia_wf1.application.flows.order_lookup_request import (
    resolve_lookup_order_id,
    resolve_order_lookup_request,
)
from entelequia_wf1.application.flows.orders_authenticated import (
    AuthenticatedOrdersFlow,
    AuthenticatedOrdersOutcome,
    resolve_orders_detail_followup,
    resolve_orders_intent_rescue,
    should_guide_orders_reauthentication,
)
from entelequia_wf1.application.flows.orders_escalation import (
    handle_pending_orders_escalation_flow,
    should_continue_orders_escalation_flow,
)
from entelequia_wf1.application.flows.recommendations import (
    handle_pending_recommendations_flow,
    should_continue_recommendations_flow,
)
from entelequia_wf1.application.resolution_state import (
    ResolutionDependencies,
    ResolutionInput,
    ResolutionState,
)
from entelequia_wf1.application.responses.orders import build_orders_reauthentication_response
from entelequia_wf1.domain.enums import Intent
from entelequia_wf1.domain.models import Wf1Response
from entelequia_wf1.observability.logging import get_logger

logger = get_logger(__name__)


@dataclass(slots=True)
class FlowFlags:
    is_guest: bool
    handle_guest_order: bool
    continue_recommendations: bool
    continue_escalation: bool
    handle_authenticated_orders: bool


def compute_flow_flags(resolution_input: ResolutionInput, state: ResolutionState) -> FlowFlags:
    snapshot = resolution_input.flow_state
    text = state.effective_text
    entities = state.effective_intent_result.entities
    routed = state.effective_intent
    is_guest = not resolution_input.is_authenticated

    request = resolve_order_lookup_request(text, entities)
    strong_guest_signals = request.order_id is not None and (
        request.provided_factors > 0 or bool(request.invalid_factors)
    )
    continue_guest = should_continue_guest_order_lookup_flow(
        snapshot.guest_order, text, entities, routed
    )
    handle_guest = is_guest and (routed == Intent.ORDERS or continue_guest or strong_guest_signals)

    continue_recommendations = not handle_guest and should_continue_recommendations_flow(
        snapshot.recommendations.state, text, entities
    )
    continue_escalation = (
        not handle_guest
        and not continue_recommendations
        and should_continue_orders_escalation_flow(snapshot.orders_escalation, text, routed)
    )
    return FlowFlags(
        is_guest=is_guest,
        handle_guest_order=handle_guest,
        continue_recommendations=continue_recommendations,
        continue_escalation=continue_escalation,
        handle_authenticated_orders=not is_guest and routed == Intent.ORDERS,
    )


def apply_intent_rescue(
    resolution_input: ResolutionInput,
    state: ResolutionState,
    deps: ResolutionDependencies,
) -> None:
    reason = resolve_orders_intent_rescue(
        resolution_input.is_authenticated,
        state.effective_intent,
        state.effective_text,
        state.effective_intent_result.entities,
    )
    if reason is None:
        return
    logger.info(
        "intent_rescued",
        extra={"from_intent": state.effective_intent, "to_intent": Intent.ORDERS.value, "reason": reason},
    )
    state.intent_rescued_to = Intent.ORDERS.value
    state.intent_rescued_reason = reason
    state.rewrite(intent=Intent.ORDERS.value)
    deps.metrics.increment_intent_rescued(reason)


def reset_stale_flow_states(
    resolution_input: ResolutionInput,
    state: ResolutionState,
    flags: FlowFlags,
) -> None:
    """Fluxo ativo que não continua neste turno é encerrado com null explícito."""

    snapshot = resolution_input.flow_state
    if snapshot.guest_order is not None and not flags.handle_guest_order:
        state.set_guest_flow_state(None)
    if snapshot.orders_escalation is not None and not flags.continue_escalation:
        state.set_escalation_flow_state(None)
    if snapshot.recommendations.state is not None and not flags.continue_recommendations:
        state.set_recommendations_flow(None)


def observe_order_flow(
    resolution_input: ResolutionInput,
    state: ResolutionState,
    flags: FlowFlags,
    deps: ResolutionDependencies,
) -> None:
    if resolution_input.flow_state.guest_order is None:
        return

    text = state.effective_text
    if resolve_answer_strength(text) == AnswerStrength.WEAK_YES and not is_short_isolated_ack(text):
        deps.metrics.increment_order_flow_ambiguous_ack()

    if not flags.handle_guest_order and state.effective_intent != Intent.ORDERS:
        logger.info(
            "order_flow_hijack_prevented",
            extra={"guest_state": resolution_input.flow_state.guest_order, "intent": state.effective_intent},
        )
        deps.metrics.increment_order_flow_hijack_prevented()


async def _handle_guest_order(
    resolution_input: ResolutionInput,
    state: ResolutionState,
    deps: ResolutionDependencies,
) -> Wf1Response:
    message = resolution_input.message
    flow = GuestOrderLookupFlow(
        order_lookup=deps.order_lookup,
        rate_limiter=deps.rate_limiter,
        metrics=deps.metrics,
    )
    outcome = await flow.handle(
        request_id=resolution_input.request_id,
        conversation_id=message.conversation_id,
        user_id=message.user_id,
        text=state.effective_text,
        entities=state.effective_intent_result.entities,
        current_state=resolution_input.flow_state.guest_order,
        client_ip=message.client_ip,
    )
    state.set_guest_flow_state(outcome.next_state)
    if outcome.telemetry.attempted:
        state.guest_lookup_attempted = True
        state.guest_lookup_result_code = outcome.telemetry.result_code
        state.guest_lookup_status_code = outcome.telemetry.status_code
    return outcome.response


def _apply_orders_outcome(state: ResolutionState, outcome: AuthenticatedOrdersOutcome) -> None:
    state.orders_deterministic_reply = outcome.deterministic_reply
    if not outcome.deterministic_reply:
        return
    state.orders_data_source = outcome.data_source
    state.order_id_resolved = outcome.order_id_resolved
    state.order_state_raw = outcome.order_state_raw
    state.order_state_canonical = outcome.order_state_canonical
    state.orders_state_conflict = outcome.state_conflict
    state.offered_escalation = outcome.offered_escalation
    state.context_blocks = list(outcome.context_blocks)
    if outcome.list_unavailable:
        state.record_fallback("orders_list_unavailable_single_source")


async def _handle_authenticated_orders(
    resolution_input: ResolutionInput,
    state: ResolutionState,
    deps: ResolutionDependencies,
) -> Wf1Response | None:
    """Resposta determinística: detalhe com pedido explícito ou inferido, senão listagem.

    O LLM nunca redige a resposta de pedidos de usuário autenticado.
    """

    text = state.effective_text
    explicit = resolve_lookup_order_id(text, state.effective_intent_result.entities)
    followup = resolve_orders_detail_followup(
        text,
        resolution_input.history,
        str(explicit) if explicit is not None else None,
    )

    flow = AuthenticatedOrdersFlow(
        orders_data=deps.orders_data,
        items_max=deps.settings.order_items_render_max,
    )
    outcome = await flow.handle(
        access_token=str(resolution_input.message.access_token),
        conversation_id=resolution_input.message.conversation_id,
        requested_order_id=followup.resolved_order_id,
        include_items=followup.include_order_items,
    )
    _apply_orders_outcome(state, outcome)
    return outcome.response


async def resolve_flow_branches(
    resolution_input: ResolutionInput,
    state: ResolutionState,
    deps: ResolutionDependencies,
) -> Wf1Response | None:
    """Executa os fluxos em ordem; None significa seguir para os fallbacks."""

    apply_intent_rescue(resolution_input, state, deps)

    flags = compute_flow_flags(resolution_input, state)
    reset_stale_flow_states(resolution_input, state, flags)
    observe_order_flow(resolution_input, state, flags, deps)

    if should_guide_orders_reauthentication(resolution_input.is_authenticated, state.effective_text):
        state.record_fallback("orders_reauthentication_guidance")
        return build_orders_reauthentication_response()

    if flags.handle_guest_order:
        return await _handle_guest_order(resolution_input, state, deps)

    if flags.continue_recommendations:
        outcome = handle_pending_recommendations_flow(
            resolution_input.flow_state.recommendations,
            state.effective_text,
            state.effective_intent_result.entities,
        )
        state.set_recommendations_flow(
            outcome.next_state, outcome.next_franchise, outcome.next_category_hint
        )
        if outcome.resolved:
            deps.metrics.increment_recommendations_disambiguation_resolved()
        if outcome.response is not None:
            return outcome.response
        state.rewrite(
            text=outcome.rewritten_text,
            intent=Intent.RECOMMENDATIONS.value,
            entities=outcome.entities_override,
        )

    if flags.continue_escalation:
        escalation = handle_pending_orders_escalation_flow(state.effective_text, resolution_input.history)
        state.set_escalation_flow_state(escalation.next_state)
        return escalation.response

    if flags.handle_authenticated_orders:
        return await _handle_authenticated_orders(resolution_input, state, deps)

    return None
