"""Fluxo de escalonamento de pedido cancelado.

Estado único awaiting_cancelled_reason_confirmation, aberto quando a resposta
determinística de um pedido cancelado oferece escalonamento
(metadata offeredEscalation=true).
"""

from __future__ import annotations

from dataclasses import dataclass

from entelequia_wf1.application.flow_state import resolve_recent_cancelled_order_id
from entelequia_wf1.application.responses.orders import (
    build_cancelled_order_escalation_action_response,
    build_cancelled_order_escalation_declined_response,
    build_cancelled_order_escalation_unknown_answer_response,
)
from entelequia_wf1.domain.enums import HasDataAnswer, Intent, OrdersEscalationFlowState
from entelequia_wf1.domain.models import ConversationHistoryRow, Wf1Response
from entelequia_wf1.utils.text import contains_any_term, normalize_with_repeated_chars, word_count

STRONG_YES_TERMS = ("si", "sii", "yes", "de una", "obvio", "claro")
WEAK_YES_TERMS = (
    "dale",
    "ok",
    "okey",
    "listo",
    "joya",
    "perfecto",
    "por favor",
    "porfa",
    "si por favor",
    "si porfa",
)
STRONG_NO_TERMS = (
    "no",
    "noo",
    "nop",
    "no gracias",
    "no hace falta",
    "dejalo asi",
    "dejalo",
    "prefiero no",
)
MAX_SHORT_ACK_WORDS = 4

_ESCALATION_ROUTED_INTENTS = frozenset({Intent.ORDERS, Intent.TICKETS, Intent.GENERAL})
_ESCALATION_STEMS = ("consult", "escal", "deriv", "revis")


@dataclass(slots=True)
class OrdersEscalationOutcome:
    response: Wf1Response
    next_state: OrdersEscalationFlowState | None


def resolve_escalation_answer(text: str) -> HasDataAnswer:
    """Classifica a resposta à oferta de escalonamento (NÃO tem precedência)."""

    normalized = normalize_with_repeated_chars(text)
    if not normalized:
        return HasDataAnswer.UNKNOWN
    if contains_any_term(normalized, STRONG_NO_TERMS):
        return HasDataAnswer.NO
    if contains_any_term(normalized, STRONG_YES_TERMS):
        return HasDataAnswer.YES
    if contains_any_term(normalized, WEAK_YES_TERMS) and word_count(normalized) <= MAX_SHORT_ACK_WORDS:
        return HasDataAnswer.YES
    return HasDataAnswer.UNKNOWN


def should_continue_orders_escalation_flow(
    current_state: OrdersEscalationFlowState | None,
    text: str,
    routed_intent: str,
) -> bool:
    if current_state is None:
        return False
    if resolve_escalation_answer(text) != HasDataAnswer.UNKNOWN:
        return True
    if routed_intent not in _ESCALATION_ROUTED_INTENTS:
        return False
    normalized = normalize_with_repeated_chars(text)
    return any(stem in normalized for stem in _ESCALATION_STEMS)


def handle_pending_orders_escalation_flow(
    text: str,
    history: list[ConversationHistoryRow],
) -> OrdersEscalationOutcome:
    answer = resolve_escalation_answer(text)

    if answer == HasDataAnswer.YES:
        order_id = resolve_recent_cancelled_order_id(history)
        return OrdersEscalationOutcome(
            build_cancelled_order_escalation_action_response(order_id),
            None,
        )

    if answer == HasDataAnswer.NO:
        return OrdersEscalationOutcome(build_cancelled_order_escalation_declined_response(), None)

    # Re-pergunta sem avançar
    return OrdersEscalationOutcome(
        build_cancelled_order_escalation_unknown_answer_response(),
        OrdersEscalationFlowState.AWAITING_CANCELLED_REASON_CONFIRMATION,
    )
