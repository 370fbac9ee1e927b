"""Protocolo do adaptador de linguagem (construção de prompt fica fora daqui)."""

from __future__ import annotations

from abc import ABC, abstractmethod

from entelequia_wf1.domain.models import ContextBlock, ConversationHistoryRow, LlmReply


class LlmProtocol(ABC):
    @abstractmethod
    async def build_assistant_reply(
        self,
        text: str,
        intent: str,
        history: list[ConversationHistoryRow],
        context_blocks: list[ContextBlock],
    ) -> LlmReply:
        """Gera a resposta; metadata.llm_path com prefixo fallback_ sinaliza degradação."""
