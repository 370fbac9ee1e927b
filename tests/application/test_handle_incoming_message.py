"""Testes de ponta a ponta do caso de uso HandleIncomingMessage."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from entelequia_wf1.application.factories.pipeline_factory import build_handle_incoming_message
from entelequia_wf1.application.idempotency_gate import rebuild_replay_response
from entelequia_wf1.application.responses.errors import BACKEND_ERROR_MESSAGE, CATALOG_UNAVAILABLE_MESSAGE
from entelequia_wf1.application.responses.orders import LOOKUP_INSTRUCTIONS
from entelequia_wf1.domain.enums import AuditStatus, Sender
from entelequia_wf1.domain.errors import IdempotencyError, InvalidMessageError
from entelequia_wf1.domain.models import (
    GuestOrderView,
    IntentResult,
    Money,
    OrderLookupResult,
    PreviousBotTurn,
    Wf1FailureResponse,
    Wf1RequiresAuthResponse,
    Wf1SuccessResponse,
)
from entelequia_wf1.infra.audit_store import MemoryAuditStore
from entelequia_wf1.infra.chat_persistence_memory import InMemoryChatPersistence
from entelequia_wf1.infra.idempotency import InMemoryIdempotencyStore
from tests.helpers.fakes import (
    FakeContextEnrichment,
    FakeIntentClassifier,
    FakeLlm,
    FakeOrderLookup,
    FakeOrdersData,
    make_message,
    make_metrics,
    make_settings,
)


def _build(
    *,
    classifier: FakeIntentClassifier | None = None,
    llm: FakeLlm | None = None,
    order_lookup: FakeOrderLookup | None = None,
    chat_persistence: InMemoryChatPersistence | None = None,
    idempotency=None,
    audit_store: MemoryAuditStore | None = None,
    metrics=None,
):
    return build_handle_incoming_message(
        intent_classifier=classifier or FakeIntentClassifier(),
        context_enrichment=FakeContextEnrichment(),
        llm=llm or FakeLlm(),
        order_lookup=order_lookup or FakeOrderLookup(),
        orders_data=FakeOrdersData(),
        chat_persistence=chat_persistence or InMemoryChatPersistence(),
        idempotency=idempotency or InMemoryIdempotencyStore(),
        audit_store=audit_store or MemoryAuditStore(),
        metrics=metrics or make_metrics(),
        settings=make_settings(),
    )


class TestSuccessfulTurn:
    @pytest.mark.asyncio
    async def test_turn_is_persisted_and_audited(self) -> None:
        persistence = InMemoryChatPersistence()
        audit_store = MemoryAuditStore()
        llm = FakeLlm("Si, tenemos el tomo 3 de Naruto.")
        use_case = _build(
            classifier=FakeIntentClassifier(IntentResult(intent="products", entities=["naruto"])),
            llm=llm,
            chat_persistence=persistence,
            audit_store=audit_store,
        )

        response = await use_case.execute(make_message("  tenes el tomo 3 de naruto?  "))

        assert isinstance(response, Wf1SuccessResponse)
        assert response.message == "Si, tenemos el tomo 3 de Naruto."
        assert response.intent == "products"
        assert llm.calls[0]["text"] == "tenes el tomo 3 de naruto?"

        history = await persistence.get_recent_history("conv-1", 10)
        assert [row.sender for row in history] == [Sender.BOT, Sender.USER]
        assert history[0].id == response.response_id
        assert history[0].metadata["llmPath"] == "primary"
        assert history[0].metadata["externalEventId"] == "evt-1"

        assert len(audit_store.records) == 1
        record = audit_store.records[0]
        assert record.status == AuditStatus.SUCCESS
        assert record.request_id == history[0].metadata["requestId"]


class TestDuplicateEvent:
    @pytest.mark.asyncio
    async def test_duplicate_replays_previous_reply(self) -> None:
        audit_store = MemoryAuditStore()
        llm = FakeLlm("Si, tenemos el tomo 3 de Naruto.")
        use_case = _build(
            classifier=FakeIntentClassifier(IntentResult(intent="products")),
            llm=llm,
            audit_store=audit_store,
        )
        message = make_message("tenes el tomo 3 de naruto?")

        first = await use_case.execute(message)
        second = await use_case.execute(message)

        assert isinstance(second, Wf1SuccessResponse)
        assert second.message == first.message
        assert second.response_id == first.response_id
        assert second.intent == "products"
        assert len(llm.calls) == 1
        assert [record.status for record in audit_store.records] == [
            AuditStatus.SUCCESS,
            AuditStatus.DUPLICATE,
        ]

    @pytest.mark.asyncio
    async def test_duplicate_keeps_requires_auth_variant(self) -> None:
        """O replay devolve a mesma variante de resposta persistida, não só o texto."""
        persistence = InMemoryChatPersistence()
        audit_store = MemoryAuditStore()
        classifier = FakeIntentClassifier(IntentResult(intent="orders"))
        use_case = _build(classifier=classifier, chat_persistence=persistence, audit_store=audit_store)

        await use_case.execute(make_message("donde esta mi pedido", external_event_id="evt-1"))
        classifier.result = IntentResult(intent="general")
        message = make_message("no", external_event_id="evt-2")

        first = await use_case.execute(message)
        replay = await use_case.execute(message)

        assert isinstance(first, Wf1RequiresAuthResponse)
        assert isinstance(replay, Wf1RequiresAuthResponse)
        assert replay.message == first.message
        assert audit_store.records[-1].status == AuditStatus.DUPLICATE
        assert audit_store.records[-1].metadata["requiresAuth"] is True

    def test_failure_turn_is_replayed_as_failure(self) -> None:
        previous = PreviousBotTurn(
            message_id="msg-1",
            message=CATALOG_UNAVAILABLE_MESSAGE,
            metadata={"intent": "products", "responseOk": False, "requiresAuth": False},
        )

        replay = rebuild_replay_response(previous, "conv-1")

        assert isinstance(replay, Wf1FailureResponse)
        assert replay.message == CATALOG_UNAVAILABLE_MESSAGE


class TestValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   \n "])
    async def test_empty_text_is_rejected(self, text: str) -> None:
        classifier = FakeIntentClassifier()
        use_case = _build(classifier=classifier)

        with pytest.raises(InvalidMessageError):
            await use_case.execute(make_message(text))

        assert classifier.calls == []

    @pytest.mark.asyncio
    async def test_too_long_text_is_rejected(self) -> None:
        with pytest.raises(InvalidMessageError):
            await _build().execute(make_message("a" * 5000))


class TestFailures:
    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_backend_error(self) -> None:
        idempotency = InMemoryIdempotencyStore()
        audit_store = MemoryAuditStore()
        metrics = make_metrics()
        classifier = FakeIntentClassifier()
        classifier.classify = AsyncMock(side_effect=RuntimeError("classifier down"))
        use_case = _build(
            classifier=classifier, idempotency=idempotency, audit_store=audit_store, metrics=metrics
        )

        response = await use_case.execute(make_message("hola"))

        assert isinstance(response, Wf1FailureResponse)
        assert response.message == BACKEND_ERROR_MESSAGE
        record = audit_store.records[0]
        assert record.status == AuditStatus.FAILURE
        assert record.http_status == 500
        assert record.error_code == "RuntimeError"
        assert idempotency.status_of("web", "evt-1") is None
        metrics.increment_fallback.assert_called_once_with("pipeline_exception")

    @pytest.mark.asyncio
    async def test_released_event_can_be_retried(self) -> None:
        classifier = FakeIntentClassifier()
        classifier.classify = AsyncMock(side_effect=[RuntimeError("classifier down"), IntentResult()])
        use_case = _build(classifier=classifier)

        await use_case.execute(make_message("hola"))
        retried = await use_case.execute(make_message("hola"))

        assert retried.ok is True
        assert retried.message.startswith("Hola! Soy el asistente de Entelequia.")

    @pytest.mark.asyncio
    async def test_idempotency_backend_failure_propagates(self) -> None:
        idempotency = MagicMock()
        idempotency.start_processing = AsyncMock(side_effect=IdempotencyError("redis down"))
        audit_store = MemoryAuditStore()
        use_case = _build(idempotency=idempotency, audit_store=audit_store)

        with pytest.raises(IdempotencyError):
            await use_case.execute(make_message("hola"))

        assert audit_store.records == []


class TestGuestOrderConversation:
    @pytest.mark.asyncio
    async def test_flow_state_survives_between_turns(self) -> None:
        persistence = InMemoryChatPersistence()
        classifier = FakeIntentClassifier(IntentResult(intent="orders"))
        order_lookup = FakeOrderLookup(
            OrderLookupResult(
                ok=True,
                order=GuestOrderView(id="12345", state="Enviado", total=Money(amount=2500, currency="ARS")),
            )
        )
        use_case = _build(classifier=classifier, order_lookup=order_lookup, chat_persistence=persistence)

        first = await use_case.execute(make_message("donde esta mi pedido", external_event_id="evt-1"))
        assert "Responde SI o NO" in first.message

        classifier.result = IntentResult(intent="general")
        second = await use_case.execute(make_message("si", external_event_id="evt-2"))
        assert second.message == LOOKUP_INSTRUCTIONS

        third = await use_case.execute(
            make_message(
                "pedido 12345, dni 12345678, nombre Juan, apellido Perez", external_event_id="evt-3"
            )
        )
        assert isinstance(third, Wf1SuccessResponse)
        assert third.message.startswith("[PEDIDO #12345]")
        assert third.intent == "orders"

        history = await persistence.get_recent_history("conv-1", 10)
        bot_states = [row.metadata.get("ordersGuestFlowState") for row in history if row.sender == Sender.BOT]
        assert bot_states == [None, "awaiting_lookup_payload", "awaiting_has_data_answer"]
        assert "ordersGuestFlowState" in history[0].metadata
