"""Caso de uso principal: uma mensagem de entrada, exatamente uma resposta.

Fluxo:
1. Validação do texto (InvalidMessageError)
2. Gate de idempotência (duplicado devolve a resposta anterior)
3. Histórico recente + classificação de intenção (em paralelo)
4. Reconstrução do estado de fluxos
5. Resolução da resposta
6. Finalização (sanitização, persistência, auditoria, métricas)

Falhas inesperadas nos passos 3 a 6 viram a resposta genérica de erro,
auditoria failure e métrica de fallback. IdempotencyError propaga.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from entelequia_wf1.application.finalizer import TurnFinalizer
from entelequia_wf1.application.flow_state import latest_bot_message, reconstruct_flow_state
from entelequia_wf1.application.idempotency_gate import IdempotencyGate
from entelequia_wf1.application.resolution_state import ResolutionDependencies, ResolutionInput
from entelequia_wf1.application.resolve_response import resolve_response
from entelequia_wf1.domain.enums import Intent
from entelequia_wf1.domain.errors import IdempotencyError, InvalidMessageError
from entelequia_wf1.domain.models import IncomingMessage, Wf1Response
from entelequia_wf1.domain.protocols import ChatPersistenceProtocol, IntentClassifierProtocol
from entelequia_wf1.observability.context import turn_log_scope
from entelequia_wf1.observability.logging import get_logger, log_fallback
from entelequia_wf1.observability.timing import elapsed_ms_since, timed
from entelequia_wf1.utils.ids import new_request_id, short_hash

logger = get_logger(__name__)


def current_time_ms() -> int:
    return int(time.time() * 1000)


def validate_incoming_message(message: IncomingMessage, max_length: int) -> IncomingMessage:
    """Texto sem espaços nas pontas, não vazio e dentro do limite."""

    text = message.text.strip()
    if not text:
        raise InvalidMessageError("Message text is empty")
    if len(text) > max_length:
        raise InvalidMessageError(f"Message text exceeds {max_length} characters")
    return message.model_copy(update={"text": text})


@dataclass(slots=True)
class HandleIncomingMessage:
    intent_classifier: IntentClassifierProtocol
    chat_persistence: ChatPersistenceProtocol
    gate: IdempotencyGate
    finalizer: TurnFinalizer
    deps: ResolutionDependencies
    clock: Callable[[], int] = field(default=current_time_ms)

    async def execute(self, message: IncomingMessage) -> Wf1Response:
        request_id = new_request_id()
        started_at = time.perf_counter()

        with turn_log_scope(request_id, message.conversation_id, message.source):
            message = validate_incoming_message(message, self.deps.settings.max_message_length_chars)

            try:
                replay = await self.gate.check(message, request_id)
            except IdempotencyError:
                logger.error(
                    "idempotency_backend_failed",
                    extra={"event_hash": short_hash(message.external_event_id)},
                )
                raise
            if replay is not None:
                return await self.finalizer.finalize_duplicate(message, request_id, replay, started_at)

            intent = Intent.GENERAL.value
            try:
                with timed("prepare_turn"):
                    resolution_input = await self._prepare(message, request_id)
                intent = resolution_input.intent_result.intent

                with timed("resolve_response"):
                    state = await resolve_response(resolution_input, self.deps)

                with timed("finalize_turn"):
                    return await self.finalizer.finalize_success(resolution_input, state, started_at)
            except Exception as exc:
                logger.error(
                    "pipeline_failed",
                    extra={"error_type": type(exc).__name__, "intent": intent},
                )
                log_fallback(
                    logger,
                    "pipeline",
                    reason="pipeline_exception",
                    elapsed_ms=elapsed_ms_since(started_at),
                )
                return await self.finalizer.finalize_failure(message, request_id, exc, started_at, intent)

    async def _prepare(self, message: IncomingMessage, request_id: str) -> ResolutionInput:
        history, intent_result = await asyncio.gather(
            self.chat_persistence.get_recent_history(
                message.conversation_id, self.deps.settings.history_window_size
            ),
            self.intent_classifier.classify(message.text),
        )
        history = history[: self.deps.settings.history_window_size]
        return ResolutionInput(
            message=message,
            request_id=request_id,
            history=history,
            intent_result=intent_result,
            flow_state=reconstruct_flow_state(history),
            now_ms=self.clock(),
            latest_bot_message=latest_bot_message(history),
        )
