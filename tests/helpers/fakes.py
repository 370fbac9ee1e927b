"""Fakes de colaboradores externos e builders de turno para os testes.

Os fakes registram as chamadas recebidas para que os testes verifiquem
quantas vezes e com quais blocos cada porta foi acionada.
"""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

from entelequia_wf1.application.flow_state import latest_bot_message, reconstruct_flow_state
from entelequia_wf1.application.resolution_state import ResolutionDependencies, ResolutionInput
from entelequia_wf1.config.settings import Settings
from entelequia_wf1.domain.enums import Sender, Source
from entelequia_wf1.domain.models import (
    ContextBlock,
    ConversationHistoryRow,
    IncomingMessage,
    IntentResult,
    LlmReply,
    LlmReplyMetadata,
    OrderLookupIdentity,
    OrderLookupResult,
)
from entelequia_wf1.domain.protocols import (
    ContextEnrichmentProtocol,
    IntentClassifierProtocol,
    LlmProtocol,
    MetricsProtocol,
    OrderLookupProtocol,
    OrdersDataProtocol,
)
from entelequia_wf1.infra.rate_limiter import InMemoryOrderLookupRateLimiter

NOW_MS = 1_700_000_000_000


class FakeIntentClassifier(IntentClassifierProtocol):
    def __init__(self, result: IntentResult | None = None) -> None:
        self.result = result or IntentResult()
        self.calls: list[str] = []

    async def classify(self, text: str) -> IntentResult:
        self.calls.append(text)
        return self.result.model_copy(deep=True)


class FakeLlm(LlmProtocol):
    """Devolve respostas em ordem; a última se repete quando a fila acaba."""

    def __init__(self, *replies: LlmReply | str) -> None:
        self.replies = [
            reply if isinstance(reply, LlmReply) else make_llm_reply(reply) for reply in replies
        ] or [make_llm_reply("Respuesta del asistente.")]
        self.calls: list[dict[str, Any]] = []

    async def build_assistant_reply(
        self,
        text: str,
        intent: str,
        history: list[ConversationHistoryRow],
        context_blocks: list[ContextBlock],
    ) -> LlmReply:
        self.calls.append({"text": text, "intent": intent, "context_blocks": list(context_blocks)})
        index = min(len(self.calls) - 1, len(self.replies) - 1)
        return self.replies[index]


class FakeContextEnrichment(ContextEnrichmentProtocol):
    def __init__(
        self,
        blocks: list[ContextBlock] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.blocks = blocks or []
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def enrich(
        self,
        intent_result: IntentResult,
        text: str,
        access_token: str | None,
        history: list[ConversationHistoryRow],
    ) -> list[ContextBlock]:
        self.calls.append({"intent": intent_result.intent, "text": text, "entities": list(intent_result.entities)})
        if self.error is not None:
            raise self.error
        return list(self.blocks)


class FakeOrderLookup(OrderLookupProtocol):
    def __init__(self, result: OrderLookupResult | None = None, error: Exception | None = None) -> None:
        self.result = result or OrderLookupResult(ok=False)
        self.error = error
        self.calls: list[tuple[str, OrderLookupIdentity]] = []

    async def lookup(self, order_id: str, identity: OrderLookupIdentity) -> OrderLookupResult:
        self.calls.append((order_id, identity))
        if self.error is not None:
            raise self.error
        return self.result


class FakeOrdersData(OrdersDataProtocol):
    def __init__(
        self,
        detail: dict[str, Any] | Exception | None = None,
        orders: dict[str, Any] | Exception | None = None,
    ) -> None:
        self.detail = detail if detail is not None else {}
        self.orders = orders if orders is not None else {"data": []}
        self.detail_calls: list[str] = []
        self.list_calls = 0

    async def get_order_detail(self, access_token: str, order_id: str) -> dict[str, Any]:
        self.detail_calls.append(order_id)
        if isinstance(self.detail, Exception):
            raise self.detail
        return self.detail

    async def list_orders(self, access_token: str) -> dict[str, Any]:
        self.list_calls += 1
        if isinstance(self.orders, Exception):
            raise self.orders
        return self.orders


def make_llm_reply(
    message: str,
    llm_path: str | None = "primary",
    fallback_reason: str | None = None,
) -> LlmReply:
    return LlmReply(
        message=message,
        metadata=LlmReplyMetadata(llm_path=llm_path, fallback_reason=fallback_reason),
    )


def make_metrics() -> MagicMock:
    return MagicMock(spec=MetricsProtocol)


def make_settings(**overrides: Any) -> Settings:
    return Settings(**overrides)


def user_row(content: str) -> ConversationHistoryRow:
    return ConversationHistoryRow(sender=Sender.USER, content=content)


def bot_row(content: str = "ok", row_id: str | None = None, **metadata: Any) -> ConversationHistoryRow:
    return ConversationHistoryRow(id=row_id, sender=Sender.BOT, content=content, metadata=metadata)


def make_history(*rows: ConversationHistoryRow) -> list[ConversationHistoryRow]:
    """Histórico no contrato de leitura: mais novo primeiro."""

    return list(rows)


def make_message(
    text: str,
    *,
    access_token: str | None = None,
    external_event_id: str = "evt-1",
    conversation_id: str = "conv-1",
    source: Source = Source.WEB,
    client_ip: str | None = None,
) -> IncomingMessage:
    return IncomingMessage(
        source=source,
        conversation_id=conversation_id,
        user_id="user-1",
        external_event_id=external_event_id,
        text=text,
        access_token=access_token,
        client_ip=client_ip,
    )


def make_input(
    text: str,
    *,
    intent: str = "general",
    entities: list[str] | None = None,
    history: list[ConversationHistoryRow] | None = None,
    access_token: str | None = None,
    now_ms: int = NOW_MS,
) -> ResolutionInput:
    history = history or []
    return ResolutionInput(
        message=make_message(text, access_token=access_token),
        request_id="req-1",
        history=history,
        intent_result=IntentResult(intent=intent, entities=entities or [], confidence=0.9),
        flow_state=reconstruct_flow_state(history),
        now_ms=now_ms,
        latest_bot_message=latest_bot_message(history),
    )


def make_deps(
    *,
    llm: LlmProtocol | None = None,
    context_enrichment: ContextEnrichmentProtocol | None = None,
    order_lookup: OrderLookupProtocol | None = None,
    orders_data: OrdersDataProtocol | None = None,
    rate_limiter: Any | None = None,
    metrics: Any | None = None,
    settings: Settings | None = None,
) -> ResolutionDependencies:
    return ResolutionDependencies(
        context_enrichment=context_enrichment or FakeContextEnrichment(),
        llm=llm or FakeLlm(),
        order_lookup=order_lookup or FakeOrderLookup(),
        rate_limiter=rate_limiter or InMemoryOrderLookupRateLimiter(),
        orders_data=orders_data or FakeOrdersData(),
        metrics=metrics or make_metrics(),
        settings=settings or make_settings(),
    )
