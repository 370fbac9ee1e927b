"""Parsing de payloads de pedidos e reconciliação de estado.

Regras:
- Estado bruto lido do primeiro campo presente: state, status, order_status, shipping_status
- Estado canônico só é atribuído quando exatamente um grupo de termos casa
- Conflito só existe quando detalhe e listagem têm canônicos não nulos e diferentes
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

from entelequia_wf1.domain.enums import CanonicalOrderState
from entelequia_wf1.domain.errors import ExternalServiceError
from entelequia_wf1.domain.money import parse_money
from entelequia_wf1.domain.models import Money
from entelequia_wf1.utils.text import strip_accents

ORDER_STATE_FIELDS: tuple[str, ...] = ("state", "status", "order_status", "shipping_status")

ORDER_STATE_CANONICAL_TERMS: tuple[tuple[CanonicalOrderState, tuple[str, ...]], ...] = (
    (
        CanonicalOrderState.PENDING,
        (
            "pending",
            "pendiente",
            "en espera",
            "awaiting payment",
            "pago pendiente",
            "payment pending",
        ),
    ),
    (
        CanonicalOrderState.PROCESSING,
        ("processing", "en preparacion", "preparando", "packing", "armado"),
    ),
    (
        CanonicalOrderState.SHIPPED,
        ("shipped", "enviado", "despachado", "en transito", "in transit"),
    ),
    (
        CanonicalOrderState.DELIVERED,
        ("delivered", "entregado", "completado", "finalizado"),
    ),
    (
        CanonicalOrderState.CANCELLED,
        ("cancelled", "canceled", "cancelado", "anulado", "rechazado"),
    ),
)

CANONICAL_ORDER_STATE_LABELS: dict[CanonicalOrderState, str] = {
    CanonicalOrderState.PENDING: "Pendiente",
    CanonicalOrderState.PROCESSING: "En preparacion",
    CanonicalOrderState.SHIPPED: "Enviado",
    CanonicalOrderState.DELIVERED: "Entregado",
    CanonicalOrderState.CANCELLED: "Cancelado",
    CanonicalOrderState.UNKNOWN: "Sin estado",
}

_UNAUTHENTICATED_MARKERS = (
    "unauthenticated",
    "unauthorized",
    "invalid token",
    "token expired",
    "jwt expired",
    "session expired",
)


@dataclass(slots=True)
class OrderLineItem:
    quantity: int
    title: str | None = None
    unit_price: Money | None = None


@dataclass(slots=True)
class OrderSummary:
    """Pedido normalizado (detalhe ou item da listagem)."""

    id: str
    state_raw: str | None = None
    state_canonical: CanonicalOrderState = CanonicalOrderState.UNKNOWN
    created_at: str | None = None
    total: Money | None = None
    ship_method: str | None = None
    ship_tracking_code: str | None = None
    order_items: list[OrderLineItem] = field(default_factory=list)
    payment_method: str | None = None
    payment_status: str | None = None


@dataclass(slots=True)
class OrdersStateReconciliation:
    detail_state_raw: str | None
    detail_state_canonical: CanonicalOrderState | None
    list_state_raw: str | None
    list_state_canonical: CanonicalOrderState | None
    conflict: bool


def _read_string(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    return trimmed or None


def normalize_order_id(value: Any) -> str | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float) and math.isfinite(value):
        return str(int(value)) if value.is_integer() else str(value)
    text = _read_string(value)
    if text is None:
        return None
    return text.lstrip("#").strip() or None


def _normalize_state(value: str) -> str:
    text = strip_accents(value).replace("_", " ").replace("-", " ").lower().strip()
    return f" {' '.join(text.split())} "


def _has_state_term(normalized_state: str, term: str) -> bool:
    normalized_term = _normalize_state(term).strip()
    if not normalized_term:
        return False
    if normalized_state.strip() == normalized_term:
        return True
    return f" {normalized_term} " in normalized_state


def canonicalize_order_state(raw_state: str | None) -> CanonicalOrderState:
    """Mapeia o estado bruto para o conjunto canônico (ambíguo → unknown)."""

    if not raw_state:
        return CanonicalOrderState.UNKNOWN
    normalized = _normalize_state(raw_state)
    if not normalized.strip():
        return CanonicalOrderState.UNKNOWN

    matches = {
        canonical
        for canonical, terms in ORDER_STATE_CANONICAL_TERMS
        if any(_has_state_term(normalized, term) for term in terms)
    }
    if len(matches) != 1:
        return CanonicalOrderState.UNKNOWN
    return next(iter(matches))


def read_canonical(value: Any) -> CanonicalOrderState | None:
    """Aceita apenas valores canônicos explícitos; qualquer outro vira None."""

    if not isinstance(value, str):
        return None
    try:
        return CanonicalOrderState(value.strip().lower())
    except ValueError:
        return None


def _parse_quantity(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float) and math.isfinite(value) and value > 0:
        return int(value)
    if isinstance(value, str) and value.strip():
        try:
            parsed = float(value)
        except ValueError:
            return None
        if math.isfinite(parsed) and parsed > 0:
            return int(parsed)
    return None


def _parse_items(value: Any) -> list[OrderLineItem]:
    if not isinstance(value, list):
        return []
    items: list[OrderLineItem] = []
    for raw in value:
        if not isinstance(raw, dict):
            continue
        quantity = _parse_quantity(raw.get("quantity"))
        if quantity is None:
            continue
        items.append(
            OrderLineItem(
                quantity=quantity,
                title=_read_string(raw.get("productTitle")) or _read_string(raw.get("title")),
                unit_price=parse_money(raw.get("productPrice")) or parse_money(raw.get("price")),
            )
        )
    return items


def parse_order(raw: Any) -> OrderSummary | None:
    if not isinstance(raw, dict):
        return None
    order_id = normalize_order_id(raw.get("id"))
    if order_id is None:
        return None

    state_raw = None
    for field_name in ORDER_STATE_FIELDS:
        state_raw = _read_string(raw.get(field_name))
        if state_raw:
            break

    payment = raw.get("payment") if isinstance(raw.get("payment"), dict) else {}
    return OrderSummary(
        id=order_id,
        state_raw=state_raw,
        state_canonical=canonicalize_order_state(state_raw),
        created_at=_read_string(raw.get("created_at")),
        total=parse_money(raw.get("total")),
        ship_method=_read_string(raw.get("shipMethod")),
        ship_tracking_code=_read_string(raw.get("shipTrackingCode")),
        order_items=_parse_items(raw.get("orderItems")),
        payment_method=_read_string(payment.get("payment_method"))
        or _read_string(payment.get("paymentMethod")),
        payment_status=_read_string(payment.get("status"))
        or _read_string(payment.get("payment_status")),
    )


def extract_order_detail(payload: dict[str, Any]) -> OrderSummary | None:
    """Detalhe pode vir aninhado em `order` ou `data`."""

    for key in ("order", "data"):
        nested = payload.get(key)
        if isinstance(nested, dict):
            return parse_order(nested)
    return parse_order(payload)


def extract_orders_list(payload: dict[str, Any] | list[Any]) -> list[OrderSummary]:
    raw_list: Any = payload if isinstance(payload, list) else payload.get("data")
    if not isinstance(raw_list, list):
        return []
    return [order for order in (parse_order(raw) for raw in raw_list) if order is not None]


def find_order_by_id(orders: list[OrderSummary], order_id: str | None) -> OrderSummary | None:
    normalized = normalize_order_id(order_id)
    if normalized is None:
        return None
    return next((order for order in orders if order.id == normalized), None)


def raise_if_unauthenticated_payload(payload: Any) -> None:
    """Payload com mensagem de sessão inválida vira ExternalServiceError 401."""

    if not isinstance(payload, dict):
        return
    for candidate in (payload.get("message"), payload.get("error")):
        if not isinstance(candidate, str):
            continue
        normalized = candidate.strip().lower()
        if any(marker in normalized for marker in _UNAUTHENTICATED_MARKERS):
            raise ExternalServiceError("Entelequia unauthorized response", 401)


def reconcile_orders_state(
    detail: OrderSummary | None,
    listed: OrderSummary | None,
) -> OrdersStateReconciliation:
    """Compara estado canônico do detalhe e da listagem para o mesmo pedido.

    unknown não é confiável para conflito; é tratado como ausente.
    """

    def _trusted(order: OrderSummary | None) -> CanonicalOrderState | None:
        if order is None or order.state_canonical == CanonicalOrderState.UNKNOWN:
            return None
        return order.state_canonical

    detail_canonical = _trusted(detail)
    list_canonical = _trusted(listed)
    return OrdersStateReconciliation(
        detail_state_raw=detail.state_raw if detail else None,
        detail_state_canonical=detail_canonical,
        list_state_raw=listed.state_raw if listed else None,
        list_state_canonical=list_canonical,
        conflict=(
            detail_canonical is not None
            and list_canonical is not None
            and detail_canonical != list_canonical
        ),
    )
