"""Gate de idempotência por (source, external_event_id).

Roda depois da validação do texto e antes de ler o histórico. Um evento
duplicado devolve a resposta do bot já persistida, sem passar pelo pipeline.
Falha do backend propaga IdempotencyError (fail-closed).
"""

from __future__ import annotations

from dataclasses import dataclass

from entelequia_wf1.domain.models import (
    IncomingMessage,
    PreviousBotTurn,
    Wf1FailureResponse,
    Wf1RequiresAuthResponse,
    Wf1Response,
    Wf1SuccessResponse,
)
from entelequia_wf1.domain.protocols import ChatPersistenceProtocol, IdempotencyProtocol
from entelequia_wf1.observability.logging import get_logger
from entelequia_wf1.utils.ids import short_hash

logger = get_logger(__name__)

DUPLICATE_FALLBACK_MESSAGE = "Este mensaje ya fue procesado."


@dataclass(slots=True)
class IdempotencyGate:
    idempotency: IdempotencyProtocol
    chat_persistence: ChatPersistenceProtocol

    async def check(self, message: IncomingMessage, request_id: str) -> Wf1Response | None:
        """None quando o evento é novo; resposta de replay quando duplicado."""

        is_duplicate = await self.idempotency.start_processing(
            message.source, message.external_event_id, request_id
        )
        if not is_duplicate:
            return None

        previous = await self.chat_persistence.get_last_bot_turn_by_external_event(
            message.source, message.external_event_id
        )
        logger.info(
            "duplicate_event_replayed",
            extra={
                "event_hash": short_hash(message.external_event_id),
                "has_previous_reply": previous is not None,
            },
        )
        if previous is None:
            return Wf1SuccessResponse(
                message=DUPLICATE_FALLBACK_MESSAGE,
                conversation_id=message.conversation_id,
            )

        return rebuild_replay_response(previous, message.conversation_id)


def rebuild_replay_response(previous: PreviousBotTurn, conversation_id: str) -> Wf1Response:
    """Reconstrói a variante original da resposta a partir do metadata persistido."""

    metadata = previous.metadata or {}
    if metadata.get("requiresAuth") is True:
        return Wf1RequiresAuthResponse(message=previous.message)
    if metadata.get("responseOk") is False:
        return Wf1FailureResponse(message=previous.message)

    intent = metadata.get("intent")
    return Wf1SuccessResponse(
        message=previous.message,
        conversation_id=conversation_id,
        intent=intent if isinstance(intent, str) else None,
        response_id=previous.message_id,
    )
