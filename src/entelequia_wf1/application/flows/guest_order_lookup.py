"""Fluxo de consulta de pedido sem sessão (máquina de estados).

Estados: None → awaiting_has_data_answer → awaiting_lookup_payload → None.
A consulta só é executada com order id e pelo menos 2 fatores de identidade
válidos, sempre passando pelo rate limiter.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from entelequia_wf1.application.flows.order_lookup_request import (
    OrderLookupRequest,
    resolve_order_lookup_request,
)
from entelequia_wf1.application.responses.errors import backend_error_response
from entelequia_wf1.application.responses.orders import (
    build_guest_has_data_question_response,
    build_guest_invalid_payload_response,
    build_guest_lookup_success_message,
    build_guest_lookup_throttled_response,
    build_guest_lookup_unauthorized_response,
    build_guest_lookup_verification_failed_response,
    build_guest_missing_factors_response,
    build_guest_missing_order_id_response,
    build_guest_provide_data_response,
    build_guest_unknown_answer_response,
    build_orders_requires_auth_response,
)
from entelequia_wf1.domain.enums import (
    GuestLookupResultCode,
    GuestOrderFlowState,
    HasDataAnswer,
    Intent,
)
from entelequia_wf1.domain.models import Wf1Response, Wf1SuccessResponse
from entelequia_wf1.domain.protocols import (
    MetricsProtocol,
    OrderLookupProtocol,
    OrderLookupRateLimiterProtocol,
)
from entelequia_wf1.observability.logging import get_logger
from entelequia_wf1.utils.text import contains_any_whole_term, normalize_with_repeated_chars, word_count

logger = get_logger(__name__)

STRONG_YES_TERMS = ("si", "sii", "yes", "tengo", "los tengo", "cuento con", "dispongo", "claro", "de una")
WEAK_YES_TERMS = (
    "dale",
    "ok",
    "okey",
    "listo",
    "joya",
    "perfecto",
    "genial",
    "buenisimo",
    "buenisima",
)
STRONG_NO_TERMS = (
    "no",
    "noo",
    "nop",
    "negativo",
    "no tengo",
    "no cuento",
    "no dispongo",
    "todavia no",
    "aun no",
    "ni en pedo",
    "no estoy ni ahi",
    "ni ahi",
)
AMBIGUOUS_TERMS = ("no se", "nose", "quizas", "tal vez", "capaz", "puede ser", "puede que")
SHORT_ISOLATED_ACK_TERMS = frozenset({"si", "sii", "yes", "claro", "de una", *WEAK_YES_TERMS})
MAX_SHORT_ACK_WORDS = 3

# Código da consulta → (status HTTP de telemetria)
_RESULT_STATUS = {
    GuestLookupResultCode.NOT_FOUND_OR_MISMATCH: 404,
    GuestLookupResultCode.INVALID_PAYLOAD: 422,
    GuestLookupResultCode.UNAUTHORIZED: 401,
    GuestLookupResultCode.THROTTLED: 429,
}


class AnswerStrength(StrEnum):
    STRONG_YES = "strong_yes"
    WEAK_YES = "weak_yes"
    STRONG_NO = "strong_no"
    AMBIGUOUS = "ambiguous"
    UNKNOWN = "unknown"


@dataclass(slots=True)
class GuestLookupTelemetry:
    attempted: bool = False
    result_code: GuestLookupResultCode | None = None
    status_code: int | None = None


@dataclass(slots=True)
class GuestOrderLookupOutcome:
    response: Wf1Response
    next_state: GuestOrderFlowState | None
    telemetry: GuestLookupTelemetry = field(default_factory=GuestLookupTelemetry)


def resolve_answer_strength(text: str) -> str:
    normalized = normalize_with_repeated_chars(text)
    if not normalized:
        return AnswerStrength.UNKNOWN
    if contains_any_whole_term(normalized, AMBIGUOUS_TERMS):
        return AnswerStrength.AMBIGUOUS
    if contains_any_whole_term(normalized, STRONG_NO_TERMS):
        return AnswerStrength.STRONG_NO
    if contains_any_whole_term(normalized, STRONG_YES_TERMS):
        return AnswerStrength.STRONG_YES
    if contains_any_whole_term(normalized, WEAK_YES_TERMS):
        return AnswerStrength.WEAK_YES
    return AnswerStrength.UNKNOWN


def is_short_isolated_ack(text: str) -> bool:
    """Confirmação curta e isolada ("dale", "ok", "si")."""

    normalized = normalize_with_repeated_chars(text)
    if not normalized or word_count(normalized) > MAX_SHORT_ACK_WORDS:
        return False
    return normalized in SHORT_ISOLATED_ACK_TERMS


def resolve_has_data_answer(text: str) -> HasDataAnswer:
    strength = resolve_answer_strength(text)
    if strength == AnswerStrength.STRONG_NO:
        return HasDataAnswer.NO
    if strength == AnswerStrength.STRONG_YES:
        return HasDataAnswer.YES
    if strength == AnswerStrength.WEAK_YES and is_short_isolated_ack(text):
        return HasDataAnswer.YES
    return HasDataAnswer.UNKNOWN


def should_continue_guest_order_lookup_flow(
    current_state: GuestOrderFlowState | None,
    text: str,
    entities: list[str],
    routed_intent: str,
) -> bool:
    """Decide se a mensagem continua o fluxo ou é outra consulta."""

    if current_state is None:
        return False

    if resolve_order_lookup_request(text, entities).has_lookup_signals:
        return True

    answer = resolve_has_data_answer(text)
    if answer == HasDataAnswer.NO:
        return True

    is_orders = routed_intent == Intent.ORDERS
    if current_state == GuestOrderFlowState.AWAITING_LOOKUP_PAYLOAD:
        if answer == HasDataAnswer.YES:
            return is_orders and is_short_isolated_ack(text)
        return is_orders

    if answer == HasDataAnswer.YES:
        return is_orders or is_short_isolated_ack(text)
    return is_orders


def build_missing_data_response(request: OrderLookupRequest) -> Wf1Response:
    """Clarificação específica: id ausente, fator inválido ou fatores faltando."""

    if request.order_id is None:
        return build_guest_missing_order_id_response()
    if request.invalid_factors:
        return build_guest_invalid_payload_response(request.invalid_factors)
    return build_guest_missing_factors_response(request.provided_factors)


@dataclass(slots=True)
class GuestOrderLookupFlow:
    """Executa um passo do fluxo de consulta sem sessão."""

    order_lookup: OrderLookupProtocol
    rate_limiter: OrderLookupRateLimiterProtocol
    metrics: MetricsProtocol

    async def handle(
        self,
        *,
        request_id: str,
        conversation_id: str,
        user_id: str,
        text: str,
        entities: list[str],
        current_state: GuestOrderFlowState | None,
        client_ip: str | None = None,
    ) -> GuestOrderLookupOutcome:
        request = resolve_order_lookup_request(text, entities)

        if request.is_complete:
            return await self._consume_and_lookup(
                request_id=request_id,
                conversation_id=conversation_id,
                user_id=user_id,
                request=request,
                client_ip=client_ip,
            )

        awaiting_payload = GuestOrderFlowState.AWAITING_LOOKUP_PAYLOAD
        if current_state is None:
            if request.has_lookup_signals:
                return GuestOrderLookupOutcome(build_missing_data_response(request), awaiting_payload)
            return GuestOrderLookupOutcome(
                build_guest_has_data_question_response(),
                GuestOrderFlowState.AWAITING_HAS_DATA_ANSWER,
            )

        answer = resolve_has_data_answer(text)
        if answer == HasDataAnswer.NO:
            return GuestOrderLookupOutcome(build_orders_requires_auth_response(), None)

        if current_state == GuestOrderFlowState.AWAITING_HAS_DATA_ANSWER:
            if answer == HasDataAnswer.YES:
                return GuestOrderLookupOutcome(build_guest_provide_data_response(), awaiting_payload)
            if request.has_lookup_signals:
                return GuestOrderLookupOutcome(build_missing_data_response(request), awaiting_payload)
            return GuestOrderLookupOutcome(
                build_guest_unknown_answer_response(),
                GuestOrderFlowState.AWAITING_HAS_DATA_ANSWER,
            )

        if answer == HasDataAnswer.YES and not request.has_lookup_signals:
            return GuestOrderLookupOutcome(build_guest_provide_data_response(), awaiting_payload)
        return GuestOrderLookupOutcome(build_missing_data_response(request), awaiting_payload)

    async def _consume_and_lookup(
        self,
        *,
        request_id: str,
        conversation_id: str,
        user_id: str,
        request: OrderLookupRequest,
        client_ip: str | None,
    ) -> GuestOrderLookupOutcome:
        order_id = str(request.order_id)
        decision = await self.rate_limiter.consume(
            request_id=request_id,
            user_id=user_id,
            conversation_id=conversation_id,
            order_id=order_id,
            client_ip=client_ip,
        )
        if decision.degraded:
            self.metrics.increment_order_lookup_rate_limit_degraded()

        if not decision.allowed:
            self.metrics.increment_order_lookup_rate_limited(decision.blocked_by or "order")
            return GuestOrderLookupOutcome(
                build_guest_lookup_throttled_response(),
                GuestOrderFlowState.AWAITING_LOOKUP_PAYLOAD,
            )

        response, telemetry = await self._execute_lookup(conversation_id, order_id, request)
        next_state = None if response.ok else GuestOrderFlowState.AWAITING_LOOKUP_PAYLOAD
        return GuestOrderLookupOutcome(response, next_state, telemetry)

    async def _execute_lookup(
        self,
        conversation_id: str,
        order_id: str,
        request: OrderLookupRequest,
    ) -> tuple[Wf1Response, GuestLookupTelemetry]:
        try:
            result = await self.order_lookup.lookup(order_id, request.identity)
        except Exception as exc:
            logger.warning(
                "guest_order_lookup_failed",
                extra={"error_type": type(exc).__name__},
            )
            return backend_error_response(), GuestLookupTelemetry(
                attempted=True,
                result_code=GuestLookupResultCode.EXCEPTION,
            )

        if result.ok and result.order is not None:
            return (
                Wf1SuccessResponse(
                    message=build_guest_lookup_success_message(result.order),
                    conversation_id=conversation_id,
                    intent=Intent.ORDERS.value,
                ),
                GuestLookupTelemetry(
                    attempted=True,
                    result_code=GuestLookupResultCode.SUCCESS,
                    status_code=200,
                ),
            )

        code = result.code
        status_code = _RESULT_STATUS.get(code, result.status_code) if code else result.status_code
        telemetry = GuestLookupTelemetry(attempted=True, result_code=code, status_code=status_code)

        if code == GuestLookupResultCode.NOT_FOUND_OR_MISMATCH:
            self.metrics.increment_order_lookup_verification_failed()
            return build_guest_lookup_verification_failed_response(), telemetry
        if code == GuestLookupResultCode.INVALID_PAYLOAD:
            return build_guest_invalid_payload_response(request.invalid_factors), telemetry
        if code == GuestLookupResultCode.UNAUTHORIZED:
            return build_guest_lookup_unauthorized_response(), telemetry
        if code == GuestLookupResultCode.THROTTLED:
            self.metrics.increment_order_lookup_rate_limited("backend")
            return build_guest_lookup_throttled_response(), telemetry

        return backend_error_response(), GuestLookupTelemetry(
            attempted=True,
            result_code=GuestLookupResultCode.EXCEPTION,
        )
