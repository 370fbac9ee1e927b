"""Fluxo determinístico de pedidos para usuário autenticado.

Sem chamada ao LLM: o order id é explícito ou reaproveitado do histórico,
detalhe e listagem são buscados em paralelo e reconciliados. Se o estado
canônico diverge entre as duas fontes, a resposta expõe os dois estados brutos
e marca ordersDataSource=conflict.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field
from typing import Any

from entelequia_wf1.application.flow_state import resolve_last_resolved_order_id
from entelequia_wf1.application.flows.order_lookup_request import resolve_order_lookup_request
from entelequia_wf1.application.responses.errors import map_error_to_response
from entelequia_wf1.domain.enums import CanonicalOrderState, Intent, OrdersDataSource
from entelequia_wf1.domain.errors import Wf1Error
from entelequia_wf1.domain.models import ContextBlock, ConversationHistoryRow, Wf1Response, Wf1SuccessResponse
from entelequia_wf1.domain.money import format_money
from entelequia_wf1.domain.orders import (
    CANONICAL_ORDER_STATE_LABELS,
    OrderLineItem,
    OrderSummary,
    extract_order_detail,
    extract_orders_list,
    find_order_by_id,
    normalize_order_id,
    raise_if_unauthenticated_payload,
    reconcile_orders_state,
)
from entelequia_wf1.domain.protocols import OrdersDataProtocol
from entelequia_wf1.observability.logging import get_logger
from entelequia_wf1.utils.text import normalize_text_for_search

logger = get_logger(__name__)

ORDER_QUERY_SIGNAL_PATTERNS = (
    re.compile(r"\bmis?\s+pedidos?\b", re.IGNORECASE),
    re.compile(r"\bestado\s+de\s+(mi|mis)\s+(pedido|pedidos|orden|ordenes)\b", re.IGNORECASE),
    re.compile(r"\b(ver|consultar|revisar)\s+(mi|mis)\s+(pedido|pedidos|orden|ordenes)\b", re.IGNORECASE),
    re.compile(r"\bque\s+(tenia|traia|trae|incluye)\s+(ese|este|el|mi)?\s*(pedido|orden)\b", re.IGNORECASE),
    re.compile(r"\bproductos?\s+del\s+(pedido|orden)\b", re.IGNORECASE),
    re.compile(r"\bdetalle\s+del\s+(pedido|orden)\b", re.IGNORECASE),
    re.compile(r"\bpedido\s*#?\s*\d{1,12}\b", re.IGNORECASE),
    re.compile(r"\borden\s*#?\s*\d{1,12}\b", re.IGNORECASE),
)

SESSION_SIGNAL_PATTERNS = (
    re.compile(r"\bya\s+me\s+log(?:ue|u[eé])\b", re.IGNORECASE),
    re.compile(r"\bya\s+ingres(?:e|é)\s+(?:a\s+)?mi\s+cuenta\b", re.IGNORECASE),
    re.compile(r"\bya\s+estoy\s+conectad[oa]\b", re.IGNORECASE),
)

ORDER_ITEMS_REQUEST_PATTERNS = (
    re.compile(r"\bque\s+(tenia|traia|trae|incluye)\b"),
    re.compile(r"\bque\s+productos?\s+tenia\b"),
    re.compile(r"\bproductos?\s+del\s+pedido\b"),
    re.compile(r"\bdetalle\s+del\s+pedido\b"),
)

PLURAL_ORDERS_PATTERNS = (
    re.compile(r"\bmis\s+pedidos\b"),
    re.compile(r"\btodos\s+mis\s+pedidos\b"),
    re.compile(r"\bultimos?\s+pedidos\b"),
    re.compile(r"\blistad[oa]\s+de\s+pedidos\b"),
    re.compile(r"\bpedidos\b"),
)

SINGULAR_ORDER_FOLLOWUP_PATTERNS = (
    re.compile(r"\b(ese|este|el|mi)\s+pedido\b"),
    re.compile(r"\bestado\s+de\s+(ese|este|el|mi)\s+pedido\b"),
    re.compile(r"\bpedido\b"),
)

ORDERS_LIST_RENDER_MAX = 3

DETAIL_UNAVAILABLE_MESSAGE = (
    "No pude obtener el detalle de ese pedido en este momento. Intenta nuevamente en unos minutos."
)
EMPTY_ORDERS_LIST_MESSAGE = "No encontramos pedidos en tu cuenta en este momento."
DETAIL_CLOSING_LINE = "Si queres, reviso otro pedido de tu cuenta."
CANCELLED_ESCALATION_OFFER_LINE = (
    "Tu pedido figura como cancelado. Si queres, te paso los canales de soporte "
    "para revisar el motivo. Responde SI o NO."
)
NO_STATE_TEXT = "sin estado reportado"

RESCUE_REASON_SIGNAL = "authenticated_orders_signal"
RESCUE_REASON_LOOKUP_PAYLOAD = "authenticated_orders_lookup_payload"


def _matches_any(text: str, patterns: tuple[re.Pattern[str], ...]) -> bool:
    return any(pattern.search(text) for pattern in patterns)


def has_orders_session_signal(text: str) -> bool:
    return _matches_any(text, SESSION_SIGNAL_PATTERNS)


def resolve_orders_intent_rescue(
    is_authenticated: bool,
    routed_intent: str,
    text: str,
    entities: list[str],
) -> str | None:
    """Motivo do resgate para intent orders, ou None quando não se aplica.

    Payload de consulta só conta com order id, dni, telefono ou fator inválido:
    nome solto é frequente em outras consultas.
    """

    if not is_authenticated or routed_intent == Intent.ORDERS:
        return None

    if _matches_any(text, ORDER_QUERY_SIGNAL_PATTERNS) or has_orders_session_signal(text):
        return RESCUE_REASON_SIGNAL

    request = resolve_order_lookup_request(text, entities)
    identity = request.identity
    if request.order_id is not None or identity.dni or identity.phone or request.invalid_factors:
        return RESCUE_REASON_LOOKUP_PAYLOAD
    return None


def should_guide_orders_reauthentication(is_authenticated: bool, text: str) -> bool:
    """Usuário sem sessão dizendo que já fez login."""

    return not is_authenticated and has_orders_session_signal(text)


@dataclass(slots=True)
class OrdersDetailFollowup:
    include_order_items: bool
    resolved_order_id: str | None
    resolved_from_history: bool = False
    wants_list: bool = False


def resolve_orders_detail_followup(
    text: str,
    history: list[ConversationHistoryRow],
    explicit_order_id: str | None = None,
) -> OrdersDetailFollowup:
    """Resolve qual pedido detalhar.

    Precedência: id explícito > frase no plural (listagem) > pergunta por
    itens ou referência no singular (reusa o último orderIdResolved).
    """

    normalized = normalize_text_for_search(text)
    include_items = _matches_any(normalized, ORDER_ITEMS_REQUEST_PATTERNS)
    explicit = normalize_order_id(explicit_order_id)

    if explicit:
        return OrdersDetailFollowup(include_items, explicit)

    if _matches_any(normalized, PLURAL_ORDERS_PATTERNS):
        return OrdersDetailFollowup(include_items, None, wants_list=True)

    if not include_items and not _matches_any(normalized, SINGULAR_ORDER_FOLLOWUP_PATTERNS):
        return OrdersDetailFollowup(include_items, None)

    from_history = resolve_last_resolved_order_id(history)
    return OrdersDetailFollowup(include_items, from_history, from_history is not None)


# Formatação determinística


def _state_text(order: OrderSummary | None) -> str:
    if order is None:
        return NO_STATE_TEXT
    if order.state_raw:
        return order.state_raw
    if order.state_canonical != CanonicalOrderState.UNKNOWN:
        return CANONICAL_ORDER_STATE_LABELS[order.state_canonical]
    return NO_STATE_TEXT


def format_order_items_lines(items: list[OrderLineItem], items_max: int) -> list[str]:
    if not items:
        return ["- Sin detalle de productos para este pedido."]

    visible = items[: max(1, items_max)]
    lines = []
    for index, item in enumerate(visible):
        title = item.title or f"Item {index + 1}"
        price = format_money(item.unit_price) if item.unit_price else "Precio no disponible"
        lines.append(f"- {title} x{item.quantity} - {price}")

    hidden = len(items) - len(visible)
    if hidden > 0:
        lines.append(f"... y {hidden} mas.")
    return lines


def format_order_detail_message(
    order: OrderSummary | None,
    fallback_order_id: str | None,
    include_items: bool,
    items_max: int,
) -> str:
    if order is None and not fallback_order_id:
        return DETAIL_UNAVAILABLE_MESSAGE

    order_id = order.id if order else fallback_order_id
    lines = [f"Pedido #{order_id}: estado actual {_state_text(order)}."]

    if order and order.ship_tracking_code:
        lines.append(f"Tracking informado: {order.ship_tracking_code}.")
    if order and order.ship_method:
        lines.append(f"Metodo de envio: {order.ship_method}.")

    if include_items:
        lines.append("Productos del pedido:")
        lines.extend(format_order_items_lines(order.order_items if order else [], items_max))

    if order and order.state_canonical == CanonicalOrderState.CANCELLED:
        lines.append(CANCELLED_ESCALATION_OFFER_LINE)
    else:
        lines.append(DETAIL_CLOSING_LINE)
    return "\n".join(lines)


def format_orders_conflict_message(
    order_id: str | None,
    detail_state_raw: str | None,
    list_state_raw: str | None,
    order: OrderSummary | None,
    include_items: bool,
    items_max: int,
) -> str:
    label = f"#{order_id}" if order_id else "solicitado"
    lines = [
        f"Detecte una inconsistencia temporal en el estado del pedido {label}.",
        f"Detalle de pedido: {detail_state_raw or 'sin dato'}.",
        f"Listado de pedidos: {list_state_raw or 'sin dato'}.",
        "Para evitar informarte un estado incorrecto, te sugiero revalidarlo en unos minutos "
        "o pedir soporte humano.",
    ]
    if include_items:
        lines.append("Segun el detalle actual del pedido, los productos son:")
        lines.extend(format_order_items_lines(order.order_items if order else [], items_max))
    return "\n".join(lines)


def format_orders_list_message(orders: list[OrderSummary]) -> str:
    if not orders:
        return EMPTY_ORDERS_LIST_MESSAGE

    lines = ["Estos son tus pedidos mas recientes:"]
    lines.extend(f"- Pedido #{order.id}: {_state_text(order)}" for order in orders[:ORDERS_LIST_RENDER_MAX])
    lines.append("Si queres el detalle de uno, decime el numero de pedido.")
    return "\n".join(lines)


@dataclass(slots=True)
class AuthenticatedOrdersOutcome:
    """Resposta e telemetria persistida no metadata do turno."""

    response: Wf1Response
    deterministic_reply: bool
    data_source: OrdersDataSource | None = None
    order_id_resolved: str | None = None
    order_state_raw: str | None = None
    order_state_canonical: CanonicalOrderState | None = None
    state_conflict: bool | None = None
    offered_escalation: bool = False
    list_unavailable: bool = False
    context_blocks: list[ContextBlock] = field(default_factory=list)


@dataclass(slots=True)
class AuthenticatedOrdersFlow:
    orders_data: OrdersDataProtocol
    items_max: int = 5

    async def handle(
        self,
        *,
        access_token: str,
        conversation_id: str,
        requested_order_id: str | None,
        include_items: bool = False,
    ) -> AuthenticatedOrdersOutcome:
        try:
            if requested_order_id:
                return await self._detail(access_token, conversation_id, requested_order_id, include_items)
            return await self._list(access_token, conversation_id)
        except Wf1Error as exc:
            logger.warning(
                "authenticated_orders_failed",
                extra={"error_type": type(exc).__name__, "has_order_id": bool(requested_order_id)},
            )
            return AuthenticatedOrdersOutcome(response=map_error_to_response(exc), deterministic_reply=False)

    async def _list(self, access_token: str, conversation_id: str) -> AuthenticatedOrdersOutcome:
        payload = await self.orders_data.list_orders(access_token)
        raise_if_unauthenticated_payload(payload)
        orders = extract_orders_list(payload)
        return AuthenticatedOrdersOutcome(
            response=self._success(conversation_id, format_orders_list_message(orders)),
            deterministic_reply=True,
            data_source=OrdersDataSource.LIST,
            state_conflict=False,
            context_blocks=[ContextBlock(context_type="orders", context_payload=_as_payload(payload))],
        )

    async def _detail(
        self,
        access_token: str,
        conversation_id: str,
        order_id: str,
        include_items: bool,
    ) -> AuthenticatedOrdersOutcome:
        detail_result, list_result = await asyncio.gather(
            self.orders_data.get_order_detail(access_token, order_id),
            self.orders_data.list_orders(access_token),
            return_exceptions=True,
        )
        if isinstance(detail_result, BaseException):
            raise detail_result
        raise_if_unauthenticated_payload(detail_result)

        blocks = [ContextBlock(context_type="order_detail", context_payload=detail_result)]
        detail = extract_order_detail(detail_result)
        listed: OrderSummary | None = None
        list_unavailable = isinstance(list_result, BaseException)

        if list_unavailable:
            # Sem listagem não há reconciliação; responde só com o detalhe
            logger.warning(
                "orders_list_unavailable",
                extra={"error_type": type(list_result).__name__},
            )
        else:
            raise_if_unauthenticated_payload(list_result)
            blocks.append(ContextBlock(context_type="orders", context_payload=_as_payload(list_result)))
            listed = find_order_by_id(extract_orders_list(list_result), order_id)

        resolved_id = detail.id if detail else normalize_order_id(order_id)
        reconciliation = reconcile_orders_state(detail, listed)

        if reconciliation.conflict:
            logger.info("orders_state_conflict_detected", extra={"order_id_present": True})
            message = format_orders_conflict_message(
                resolved_id,
                reconciliation.detail_state_raw,
                reconciliation.list_state_raw,
                detail,
                include_items,
                self.items_max,
            )
            return AuthenticatedOrdersOutcome(
                response=self._success(conversation_id, message),
                deterministic_reply=True,
                data_source=OrdersDataSource.CONFLICT,
                order_id_resolved=resolved_id,
                order_state_raw=reconciliation.detail_state_raw,
                order_state_canonical=reconciliation.detail_state_canonical,
                state_conflict=True,
                list_unavailable=list_unavailable,
                context_blocks=blocks,
            )

        message = format_order_detail_message(detail, resolved_id, include_items, self.items_max)
        return AuthenticatedOrdersOutcome(
            response=self._success(conversation_id, message),
            deterministic_reply=True,
            data_source=OrdersDataSource.DETAIL,
            order_id_resolved=resolved_id,
            order_state_raw=reconciliation.detail_state_raw,
            order_state_canonical=reconciliation.detail_state_canonical,
            state_conflict=False,
            offered_escalation=reconciliation.detail_state_canonical == CanonicalOrderState.CANCELLED,
            list_unavailable=list_unavailable,
            context_blocks=blocks,
        )

    @staticmethod
    def _success(conversation_id: str, message: str) -> Wf1SuccessResponse:
        return Wf1SuccessResponse(
            message=message,
            conversation_id=conversation_id,
            intent=Intent.ORDERS.value,
        )


def _as_payload(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        return value
    return {"data": value}
