"""Testes dos pedidos determinísticos para usuário autenticado."""

from __future__ import annotations

import pytest

from entelequia_wf1.application.flows.orders_authenticated import (
    CANCELLED_ESCALATION_OFFER_LINE,
    RESCUE_REASON_LOOKUP_PAYLOAD,
    RESCUE_REASON_SIGNAL,
    format_order_items_lines,
    resolve_orders_detail_followup,
    resolve_orders_intent_rescue,
)
from entelequia_wf1.application.resolution_state import ResolutionState
from entelequia_wf1.application.resolve_flows import resolve_flow_branches
from entelequia_wf1.application.resolve_response import resolve_response
from entelequia_wf1.application.responses.orders import SESSION_EXPIRED_TITLE
from entelequia_wf1.domain.enums import CanonicalOrderState, Intent, OrdersDataSource
from entelequia_wf1.domain.errors import ExternalServiceError
from entelequia_wf1.domain.models import Money, Wf1RequiresAuthResponse, Wf1SuccessResponse
from entelequia_wf1.domain.orders import OrderLineItem
from tests.helpers.fakes import FakeLlm, FakeOrdersData, bot_row, make_deps, make_history, make_input, make_metrics

TOKEN = "token-valido"


async def _resolve(resolution_input, deps):
    state = ResolutionState.from_input(resolution_input)
    response = await resolve_flow_branches(resolution_input, state, deps)
    return response, state


def _detail(state: str, order_id: int = 123, **extra) -> dict:
    return {"order": {"id": order_id, "state": state, **extra}}


def _listing(*orders: tuple[int, str]) -> dict:
    return {"data": [{"id": order_id, "state": state} for order_id, state in orders]}


class TestIntentRescue:
    def test_guest_is_never_rescued(self) -> None:
        assert resolve_orders_intent_rescue(False, "general", "mis pedidos", []) is None

    def test_orders_signal(self) -> None:
        assert resolve_orders_intent_rescue(True, "general", "quiero ver mis pedidos", []) == RESCUE_REASON_SIGNAL

    def test_lookup_payload(self) -> None:
        assert (
            resolve_orders_intent_rescue(True, "products", "dni 12345678", []) == RESCUE_REASON_LOOKUP_PAYLOAD
        )

    def test_loose_name_is_not_enough(self) -> None:
        assert resolve_orders_intent_rescue(True, "general", "Juan Perez", []) is None


class TestDetailFollowup:
    def test_explicit_id_wins(self) -> None:
        followup = resolve_orders_detail_followup("que tenia el pedido", [], "#555")
        assert followup.resolved_order_id == "555"
        assert followup.include_order_items is True

    def test_plural_asks_for_list(self) -> None:
        assert resolve_orders_detail_followup("mis pedidos", []).wants_list is True

    def test_singular_reuses_history(self) -> None:
        history = make_history(bot_row("x", intent="orders", orderIdResolved="4567"))

        followup = resolve_orders_detail_followup("y ese pedido?", history)

        assert followup.resolved_order_id == "4567"
        assert followup.resolved_from_history is True


class TestItemsFormatting:
    def test_hidden_items_are_summarized(self) -> None:
        items = [OrderLineItem(quantity=1, title=f"Tomo {n}") for n in range(1, 4)]

        lines = format_order_items_lines(items, items_max=2)

        assert lines == [
            "- Tomo 1 x1 - Precio no disponible",
            "- Tomo 2 x1 - Precio no disponible",
            "... y 1 mas.",
        ]

    def test_price_is_formatted(self) -> None:
        items = [OrderLineItem(quantity=2, title="Naruto 3", unit_price=Money(amount=2500, currency="ARS"))]
        assert format_order_items_lines(items, 5) == ["- Naruto 3 x2 - $2500 ARS"]


class TestAuthenticatedOrdersFlow:
    @pytest.mark.asyncio
    async def test_conflicting_states_are_both_reported(self) -> None:
        orders_data = FakeOrdersData(detail=_detail("Enviado"), orders=_listing((123, "Cancelado")))

        response, state = await _resolve(
            make_input("estado del pedido 123", intent="orders", access_token=TOKEN),
            make_deps(orders_data=orders_data),
        )

        assert isinstance(response, Wf1SuccessResponse)
        assert "Detecte una inconsistencia temporal en el estado del pedido #123." in response.message
        assert "Detalle de pedido: Enviado." in response.message
        assert "Listado de pedidos: Cancelado." in response.message
        assert state.orders_data_source == OrdersDataSource.CONFLICT
        assert state.orders_state_conflict is True
        assert state.order_id_resolved == "123"
        assert state.orders_deterministic_reply is True
        assert orders_data.detail_calls == ["123"]
        assert orders_data.list_calls == 1

    @pytest.mark.asyncio
    async def test_cancelled_order_offers_escalation(self) -> None:
        orders_data = FakeOrdersData(detail=_detail("Cancelado"), orders=_listing((123, "cancelado")))

        response, state = await _resolve(
            make_input("estado del pedido 123", intent="orders", access_token=TOKEN),
            make_deps(orders_data=orders_data),
        )

        assert response is not None
        assert response.message.startswith("Pedido #123: estado actual Cancelado.")
        assert CANCELLED_ESCALATION_OFFER_LINE in response.message
        assert state.offered_escalation is True
        assert state.order_state_canonical == CanonicalOrderState.CANCELLED
        assert state.orders_data_source == OrdersDataSource.DETAIL

    @pytest.mark.asyncio
    async def test_list_failure_answers_with_detail_only(self) -> None:
        orders_data = FakeOrdersData(
            detail=_detail("Enviado", shipTrackingCode="AR999"),
            orders=ExternalServiceError("listado caido", 503),
        )

        response, state = await _resolve(
            make_input("pedido 123", intent="orders", access_token=TOKEN),
            make_deps(orders_data=orders_data),
        )

        assert response is not None
        assert "Tracking informado: AR999." in response.message
        assert state.orders_data_source == OrdersDataSource.DETAIL
        assert "orders_list_unavailable_single_source" in state.pipeline_fallback_reasons
        assert [block.context_type for block in state.context_blocks] == ["order_detail"]

    @pytest.mark.asyncio
    async def test_expired_session_on_detail(self) -> None:
        orders_data = FakeOrdersData(detail=ExternalServiceError("expired", 401), orders=_listing())

        response, state = await _resolve(
            make_input("pedido 123", intent="orders", access_token=TOKEN),
            make_deps(orders_data=orders_data),
        )

        assert isinstance(response, Wf1RequiresAuthResponse)
        assert SESSION_EXPIRED_TITLE in response.message
        assert state.orders_deterministic_reply is False
        assert state.orders_data_source is None

    @pytest.mark.asyncio
    async def test_unauthenticated_payload_message(self) -> None:
        orders_data = FakeOrdersData(detail={"message": "Unauthenticated."}, orders=_listing())

        response, _ = await _resolve(
            make_input("pedido 123", intent="orders", access_token=TOKEN),
            make_deps(orders_data=orders_data),
        )

        assert isinstance(response, Wf1RequiresAuthResponse)

    @pytest.mark.asyncio
    async def test_orders_list(self) -> None:
        orders_data = FakeOrdersData(
            orders=_listing((10, "Enviado"), (9, "Entregado"), (8, "pendiente"), (7, "Cancelado"))
        )

        response, state = await _resolve(
            make_input("mis pedidos", intent="orders", access_token=TOKEN),
            make_deps(orders_data=orders_data),
        )

        assert response is not None
        lines = response.message.split("\n")
        assert lines[0] == "Estos son tus pedidos mas recientes:"
        assert lines[1:4] == ["- Pedido #10: Enviado", "- Pedido #9: Entregado", "- Pedido #8: pendiente"]
        assert state.orders_data_source == OrdersDataSource.LIST
        assert orders_data.detail_calls == []

    @pytest.mark.asyncio
    async def test_general_intent_is_rescued_to_orders(self) -> None:
        metrics = make_metrics()
        orders_data = FakeOrdersData(orders=_listing((10, "Enviado")))

        response, state = await _resolve(
            make_input("mis pedidos", intent="general", access_token=TOKEN),
            make_deps(orders_data=orders_data, metrics=metrics),
        )

        assert isinstance(response, Wf1SuccessResponse)
        assert response.intent == Intent.ORDERS
        assert state.intent_rescued_to == Intent.ORDERS
        assert state.intent_rescued_reason == RESCUE_REASON_SIGNAL
        metrics.increment_intent_rescued.assert_called_once_with(RESCUE_REASON_SIGNAL)

    @pytest.mark.asyncio
    async def test_items_followup_uses_order_from_history(self) -> None:
        orders_data = FakeOrdersData(
            detail=_detail(
                "Enviado",
                order_id=4567,
                orderItems=[{"quantity": 1, "productTitle": "One Piece 100", "productPrice": {"amount": 9000, "currency": "ARS"}}],
            ),
            orders=_listing((4567, "Enviado")),
        )
        history = make_history(bot_row("Pedido #4567: estado actual Enviado.", intent="orders", orderIdResolved="4567"))

        response, _ = await _resolve(
            make_input("que tenia ese pedido?", intent="orders", access_token=TOKEN, history=history),
            make_deps(orders_data=orders_data),
        )

        assert orders_data.detail_calls == ["4567"]
        assert response is not None
        assert "Productos del pedido:" in response.message
        assert "- One Piece 100 x1 - $9000 ARS" in response.message

    @pytest.mark.asyncio
    async def test_question_without_order_id_answers_with_list(self) -> None:
        """Sem id explícito nem no histórico, a resposta é a listagem (sem LLM)."""
        llm = FakeLlm()
        orders_data = FakeOrdersData(orders=_listing((321, "Enviado")))

        state = await resolve_response(
            make_input("como va mi pedido?", intent="orders", access_token=TOKEN),
            make_deps(llm=llm, orders_data=orders_data),
        )

        assert isinstance(state.response, Wf1SuccessResponse)
        assert state.response.message.split("\n")[:2] == [
            "Estos son tus pedidos mas recientes:",
            "- Pedido #321: Enviado",
        ]
        assert state.orders_deterministic_reply is True
        assert state.orders_data_source == OrdersDataSource.LIST
        assert orders_data.detail_calls == []
        assert orders_data.list_calls == 1
        assert llm.calls == []
