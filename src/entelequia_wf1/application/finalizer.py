"""Finalização do turno: sanitização, persistência, auditoria e métricas.

O finalizador é o único caminho de escrita do estado de fluxos: o metadata
do turno de bot carrega um valor explícito (inclusive null) para toda família
de fluxo tocada pela resolução. Nenhum outro módulo escreve estado durável.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from entelequia_wf1.application.context_blocks import context_types
from entelequia_wf1.application.flow_state import (
    CATALOG_SNAPSHOT_KEY,
    ESCALATION_FLOW_STATE_KEY,
    GUEST_FLOW_STATE_KEY,
    OFFERED_ESCALATION_KEY,
    ORDER_ID_RESOLVED_KEY,
    ORDERS_DETERMINISTIC_REPLY_KEY,
    RECOMMENDATIONS_FLOW_CATEGORY_HINT_KEY,
    RECOMMENDATIONS_FLOW_FRANCHISE_KEY,
    RECOMMENDATIONS_FLOW_STATE_KEY,
)
from entelequia_wf1.application.output_safety import sanitize_output_message
from entelequia_wf1.application.resolution_state import ResolutionInput, ResolutionState
from entelequia_wf1.application.responses.errors import backend_error_response
from entelequia_wf1.domain.catalog import serialize_catalog_snapshot
from entelequia_wf1.domain.enums import AuditStatus, OrdersEscalationFlowState
from entelequia_wf1.domain.errors import IdempotencyError
from entelequia_wf1.domain.models import (
    AuditRecord,
    IncomingMessage,
    PersistTurnInput,
    Wf1RequiresAuthResponse,
    Wf1Response,
    Wf1SuccessResponse,
    audit_status_for,
    response_intent,
)
from entelequia_wf1.domain.protocols import (
    AuditStoreProtocol,
    ChatPersistenceProtocol,
    IdempotencyProtocol,
    MetricsProtocol,
)
from entelequia_wf1.observability.logging import get_logger
from entelequia_wf1.observability.timing import elapsed_ms_since

logger = get_logger(__name__)

NO_LLM_PATH = "none"


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


def resolve_persisted_intent(state: ResolutionState, response: Wf1Response) -> str:
    if isinstance(response, Wf1SuccessResponse) and response.intent:
        return response.intent
    return state.effective_intent


def _flow_state_metadata(state: ResolutionState) -> dict[str, Any]:
    """Chaves de fluxo: só famílias tocadas, sempre com valor explícito."""

    metadata: dict[str, Any] = {}

    if state.has_touched("guest_order"):
        metadata[GUEST_FLOW_STATE_KEY] = _enum_value(state.guest_flow_state)

    escalation_state = state.escalation_flow_state
    if state.offered_escalation:
        metadata[OFFERED_ESCALATION_KEY] = True
        if escalation_state is None:
            escalation_state = OrdersEscalationFlowState.AWAITING_CANCELLED_REASON_CONFIRMATION
    if state.has_touched("orders_escalation") or state.offered_escalation:
        metadata[ESCALATION_FLOW_STATE_KEY] = _enum_value(escalation_state)

    if state.has_touched("recommendations"):
        metadata[RECOMMENDATIONS_FLOW_STATE_KEY] = _enum_value(state.recommendations_flow_state)
        metadata[RECOMMENDATIONS_FLOW_FRANCHISE_KEY] = state.recommendations_flow_franchise
        metadata[RECOMMENDATIONS_FLOW_CATEGORY_HINT_KEY] = state.recommendations_flow_category_hint

    return metadata


def build_turn_metadata(
    resolution_input: ResolutionInput,
    state: ResolutionState,
    response: Wf1Response,
) -> dict[str, Any]:
    intent_result = resolution_input.intent_result
    metadata: dict[str, Any] = {
        "requestId": resolution_input.request_id,
        "externalEventId": resolution_input.message.external_event_id,
        "intent": resolve_persisted_intent(state, response),
        "predictedIntent": intent_result.intent,
        "predictedConfidence": intent_result.confidence,
        "predictedEntitiesCount": len(intent_result.entities),
        "sentiment": intent_result.sentiment,
        "llmPath": state.llm_path,
        "fallbackReason": state.fallback_reason,
        "contextTypes": context_types(state.context_blocks),
        "llmAttempts": state.llm_attempts,
        "toolAttempts": state.tool_attempts,
        "pipelineFallbackCount": state.pipeline_fallback_count,
        "pipelineFallbackReasons": list(state.pipeline_fallback_reasons),
        "authPresent": resolution_input.is_authenticated,
        "responseOk": response.ok,
        "requiresAuth": isinstance(response, Wf1RequiresAuthResponse),
    }

    optional = {
        "intentRescuedTo": state.intent_rescued_to,
        "intentRescuedReason": state.intent_rescued_reason,
        "ordersDataSource": _enum_value(state.orders_data_source),
        ORDER_ID_RESOLVED_KEY: state.order_id_resolved,
        "orderStateRaw": state.order_state_raw,
        "orderStateCanonical": _enum_value(state.order_state_canonical),
        "ordersStateConflict": state.orders_state_conflict,
        ORDERS_DETERMINISTIC_REPLY_KEY: state.orders_deterministic_reply,
        "ordersGuestLookupAttempted": state.guest_lookup_attempted,
        "ordersGuestLookupResultCode": _enum_value(state.guest_lookup_result_code),
        "ordersGuestLookupStatusCode": state.guest_lookup_status_code,
    }
    metadata.update({key: value for key, value in optional.items() if value is not None})

    metadata.update(_flow_state_metadata(state))
    metadata.update(state.memory_updates)
    if state.catalog_snapshot:
        metadata[CATALOG_SNAPSHOT_KEY] = serialize_catalog_snapshot(state.catalog_snapshot)
    return metadata


@dataclass(slots=True)
class TurnFinalizer:
    """Caminhos de saída do turno: sucesso, falha e duplicado."""

    chat_persistence: ChatPersistenceProtocol
    audit_store: AuditStoreProtocol
    idempotency: IdempotencyProtocol
    metrics: MetricsProtocol

    async def finalize_success(
        self,
        resolution_input: ResolutionInput,
        state: ResolutionState,
        started_at: float,
    ) -> Wf1Response:
        message = resolution_input.message
        response = state.response or backend_error_response()

        sanitized = sanitize_output_message(response.message, resolution_input.latest_bot_message)
        if sanitized.rewritten:
            self.metrics.increment_output_technical_terms_sanitized()
        response = response.model_copy(update={"message": sanitized.message})

        intent = resolve_persisted_intent(state, response)
        persisted = await self.chat_persistence.persist_turn(
            PersistTurnInput(
                conversation_id=message.conversation_id,
                user_id=message.user_id,
                source=message.source,
                external_event_id=message.external_event_id,
                user_message=message.text,
                bot_message=response.message,
                intent=intent,
                metadata=build_turn_metadata(resolution_input, state, response),
            )
        )
        if isinstance(response, Wf1SuccessResponse):
            response = response.model_copy(update={"response_id": persisted.bot_message_id})

        await self.idempotency.mark_processed(message.source, message.external_event_id)

        latency_ms = elapsed_ms_since(started_at)
        await self._write_audit(
            AuditRecord(
                request_id=resolution_input.request_id,
                user_id=message.user_id,
                conversation_id=message.conversation_id,
                source=message.source,
                intent=intent,
                status=audit_status_for(response),
                message=response.message,
                latency_ms=latency_ms,
                metadata={
                    "llmPath": state.llm_path,
                    "pipelineFallbackCount": state.pipeline_fallback_count,
                    "responseId": persisted.bot_message_id,
                },
            )
        )
        self.metrics.increment_message(message.source, intent, state.llm_path or NO_LLM_PATH)
        self.metrics.observe_response_latency(intent, latency_ms / 1000)

        logger.info(
            "turn_finalized",
            extra={
                "status": audit_status_for(response).value,
                "intent": intent,
                "latency_ms": latency_ms,
                "llm_attempts": state.llm_attempts,
            },
        )
        return response

    async def finalize_failure(
        self,
        message: IncomingMessage,
        request_id: str,
        error: BaseException,
        started_at: float,
        intent: str,
    ) -> Wf1Response:
        """Falha inesperada: resposta genérica, auditoria failure e evento liberado."""

        response = backend_error_response()
        error_name = type(error).__name__

        try:
            await self.idempotency.mark_failed(message.source, message.external_event_id, error_name)
        except IdempotencyError:
            logger.error("idempotency_release_failed", extra={"error_type": error_name})
        latency_ms = elapsed_ms_since(started_at)
        await self._write_audit(
            AuditRecord(
                request_id=request_id,
                user_id=message.user_id,
                conversation_id=message.conversation_id,
                source=message.source,
                intent=intent,
                status=AuditStatus.FAILURE,
                message=response.message,
                http_status=500,
                latency_ms=latency_ms,
                error_code=error_name,
            )
        )
        self.metrics.increment_fallback("pipeline_exception")
        self.metrics.observe_response_latency(intent, latency_ms / 1000)
        return response

    async def finalize_duplicate(
        self,
        message: IncomingMessage,
        request_id: str,
        response: Wf1Response,
        started_at: float,
    ) -> Wf1Response:
        response_id = response.response_id if isinstance(response, Wf1SuccessResponse) else None
        await self._write_audit(
            AuditRecord(
                request_id=request_id,
                user_id=message.user_id,
                conversation_id=message.conversation_id,
                source=message.source,
                intent=response_intent(response, "duplicate"),
                status=AuditStatus.DUPLICATE,
                message=response.message,
                latency_ms=elapsed_ms_since(started_at),
                metadata={
                    "responseId": response_id,
                    "requiresAuth": isinstance(response, Wf1RequiresAuthResponse),
                },
            )
        )
        return response

    async def _write_audit(self, record: AuditRecord) -> None:
        try:
            await self.audit_store.write_audit(record)
        except Exception as exc:
            # Auditoria não altera a resposta já decidida
            logger.error(
                "audit_write_failed",
                extra={"error_type": type(exc).__name__, "status": record.status.value},
            )
