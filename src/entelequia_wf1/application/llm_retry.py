"""Chamada ao LLM com retry guiado (no máximo 2 chamadas por turno).

O retry é uma única reinvocação condicional com um bloco extra de instrução;
não existe contador configurável.
"""

from __future__ import annotations

from dataclasses import dataclass

from entelequia_wf1.domain.models import ContextBlock, ConversationHistoryRow, LlmReply
from entelequia_wf1.domain.protocols import LlmProtocol
from entelequia_wf1.observability.logging import get_logger, log_fallback

logger = get_logger(__name__)

GUIDED_RETRY_HINT = (
    "Reintento guiado: evita respuesta generica. Responde accionable y especifico al pedido "
    "actual, sin reiniciar el flujo."
)

FALLBACK_PATH_PREFIX = "fallback_"


@dataclass(slots=True)
class GuidedLlmResult:
    reply: LlmReply
    attempts: int
    retried: bool

    @property
    def llm_path(self) -> str | None:
        return self.reply.metadata.llm_path if self.reply.metadata else None

    @property
    def fallback_reason(self) -> str | None:
        return self.reply.metadata.fallback_reason if self.reply.metadata else None


def needs_guided_retry(reply: LlmReply) -> bool:
    """Resposta vazia ou marcada como caminho degradado pelo metadata."""

    metadata = reply.metadata
    if metadata is not None:
        if (metadata.llm_path or "").startswith(FALLBACK_PATH_PREFIX):
            return True
        if (metadata.fallback_reason or "").strip():
            return True

    return not reply.message.strip()


def with_guided_retry_hint(blocks: list[ContextBlock]) -> list[ContextBlock]:
    return [
        *blocks,
        ContextBlock(context_type="general", context_payload={"hint": GUIDED_RETRY_HINT}),
    ]


async def call_llm_with_guided_retry(
    llm: LlmProtocol,
    *,
    text: str,
    intent: str,
    history: list[ConversationHistoryRow],
    context_blocks: list[ContextBlock],
) -> GuidedLlmResult:
    reply = await llm.build_assistant_reply(text, intent, history, context_blocks)
    if not needs_guided_retry(reply):
        return GuidedLlmResult(reply=reply, attempts=1, retried=False)

    log_fallback(logger, "llm_reply", reason="llm_guided_retry")
    retry_reply = await llm.build_assistant_reply(
        text, intent, history, with_guided_retry_hint(context_blocks)
    )
    # Segunda resposta vale mesmo se também for degradada
    return GuidedLlmResult(reply=retry_reply, attempts=2, retried=True)
