"""Implementação de ChatPersistence em memória (apenas dev/testes)."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime

from entelequia_wf1.domain.enums import Sender
from entelequia_wf1.domain.models import (
    ConversationHistoryRow,
    PersistedTurn,
    PersistTurnInput,
    PreviousBotTurn,
)
from entelequia_wf1.domain.protocols.chat_persistence import ChatPersistenceProtocol
from entelequia_wf1.observability.logging import get_logger
from entelequia_wf1.utils.ids import idempotency_key, short_hash

logger: logging.Logger = get_logger(__name__)


class InMemoryChatPersistence(ChatPersistenceProtocol):
    """Turnos por conversa em ordem de chegada (não usar em produção)."""

    def __init__(self) -> None:
        self._rows: dict[str, list[ConversationHistoryRow]] = {}
        self._by_event: dict[str, PersistedTurn] = {}

    async def get_recent_history(
        self, conversation_id: str, limit: int
    ) -> list[ConversationHistoryRow]:
        rows = self._rows.get(conversation_id, [])
        if limit <= 0:
            return []
        return list(reversed(rows[-limit:]))

    async def persist_turn(self, turn: PersistTurnInput) -> PersistedTurn:
        event_key = idempotency_key(turn.source, turn.external_event_id)
        existing = self._by_event.get(event_key)
        if existing is not None:
            logger.debug("turn_already_persisted", extra={"event_hash": short_hash(event_key)})
            return existing

        now = datetime.now(tz=UTC)
        persisted = PersistedTurn(
            user_message_id=str(uuid.uuid4()),
            bot_message_id=str(uuid.uuid4()),
        )
        rows = self._rows.setdefault(turn.conversation_id, [])
        rows.append(
            ConversationHistoryRow(
                id=persisted.user_message_id,
                sender=Sender.USER,
                content=turn.user_message,
                created_at=now,
            )
        )
        rows.append(
            ConversationHistoryRow(
                id=persisted.bot_message_id,
                sender=Sender.BOT,
                content=turn.bot_message,
                metadata=dict(turn.metadata),
                created_at=now,
            )
        )
        self._by_event[event_key] = persisted
        return persisted

    async def get_last_bot_turn_by_external_event(
        self, source: str, external_event_id: str
    ) -> PreviousBotTurn | None:
        persisted = self._by_event.get(idempotency_key(source, external_event_id))
        if persisted is None:
            return None
        for rows in self._rows.values():
            for row in rows:
                if row.id == persisted.bot_message_id:
                    return PreviousBotTurn(
                        message_id=persisted.bot_message_id,
                        message=row.content,
                        metadata=row.metadata,
                    )
        return None

    def seed(self, conversation_id: str, rows: list[ConversationHistoryRow]) -> None:
        """Carrega turnos prévios (ordem cronológica, mais antigo primeiro)."""

        self._rows.setdefault(conversation_id, []).extend(rows)
