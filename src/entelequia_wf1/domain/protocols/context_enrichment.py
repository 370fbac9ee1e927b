"""Protocolo de enriquecimento de contexto (catálogo, pedidos, políticas)."""

from __future__ import annotations

from abc import ABC, abstractmethod

from entelequia_wf1.domain.models import ContextBlock, ConversationHistoryRow, IntentResult


class ContextEnrichmentProtocol(ABC):
    """Monta blocos de contexto para o LLM.

    Pode lançar ExternalServiceError (status + endpoint_group).
    """

    @abstractmethod
    async def enrich(
        self,
        intent_result: IntentResult,
        text: str,
        access_token: str | None,
        history: list[ConversationHistoryRow],
    ) -> list[ContextBlock]:
        """Retorna blocos de contexto ordenados."""
