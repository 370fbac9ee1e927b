"""Protocolo de persistência de turnos."""

from __future__ import annotations

from abc import ABC, abstractmethod

from entelequia_wf1.domain.models import (
    ConversationHistoryRow,
    PersistedTurn,
    PersistTurnInput,
    PreviousBotTurn,
)


class ChatPersistenceProtocol(ABC):
    """Contrato de persistência append-only, lido do mais novo ao mais antigo."""

    @abstractmethod
    async def get_recent_history(
        self, conversation_id: str, limit: int
    ) -> list[ConversationHistoryRow]:
        """Últimos `limit` turnos, mais novo primeiro."""

    @abstractmethod
    async def persist_turn(self, turn: PersistTurnInput) -> PersistedTurn:
        """Persiste usuário+bot; idempotente por (source, external_event_id)."""

    @abstractmethod
    async def get_last_bot_turn_by_external_event(
        self, source: str, external_event_id: str
    ) -> PreviousBotTurn | None:
        """Resposta do bot já persistida para o evento, se existir."""
