"""Testes para parsing de pedidos e reconciliação de estado."""

from __future__ import annotations

import pytest

from entelequia_wf1.domain.enums import CanonicalOrderState, ExternalServiceErrorKind
from entelequia_wf1.domain.errors import ExternalServiceError
from entelequia_wf1.domain.orders import (
    canonicalize_order_state,
    extract_order_detail,
    extract_orders_list,
    find_order_by_id,
    normalize_order_id,
    parse_order,
    raise_if_unauthenticated_payload,
    read_canonical,
    reconcile_orders_state,
)


class TestCanonicalizeOrderState:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("Enviado", CanonicalOrderState.SHIPPED),
            ("en_transito", CanonicalOrderState.SHIPPED),
            ("pending_payment", CanonicalOrderState.PENDING),
            ("En preparación", CanonicalOrderState.PROCESSING),
            ("ENTREGADO", CanonicalOrderState.DELIVERED),
            ("anulado", CanonicalOrderState.CANCELLED),
        ],
    )
    def test_known_states(self, raw: str, expected: CanonicalOrderState) -> None:
        assert canonicalize_order_state(raw) == expected

    def test_ambiguous_state_is_unknown(self) -> None:
        """Dois grupos casando ao mesmo tempo não geram estado confiável."""
        assert canonicalize_order_state("cancelado - entregado") == CanonicalOrderState.UNKNOWN

    def test_missing_state_is_unknown(self) -> None:
        assert canonicalize_order_state(None) == CanonicalOrderState.UNKNOWN
        assert canonicalize_order_state("   ") == CanonicalOrderState.UNKNOWN
        assert canonicalize_order_state("procesando envio raro") == CanonicalOrderState.UNKNOWN

    def test_read_canonical_only_accepts_canonical_values(self) -> None:
        assert read_canonical(" Shipped ") == CanonicalOrderState.SHIPPED
        assert read_canonical("enviado") is None
        assert read_canonical(3) is None


class TestNormalizeOrderId:
    def test_variants(self) -> None:
        assert normalize_order_id("#123") == "123"
        assert normalize_order_id(12.0) == "12"
        assert normalize_order_id(456) == "456"

    def test_invalid(self) -> None:
        assert normalize_order_id(True) is None
        assert normalize_order_id("  ") is None
        assert normalize_order_id(None) is None


class TestParseOrder:
    def test_state_fields_precedence(self) -> None:
        order = parse_order({"id": 10, "state": "", "status": "shipped", "order_status": "cancelado"})
        assert order is not None
        assert order.state_raw == "shipped"
        assert order.state_canonical == CanonicalOrderState.SHIPPED

    def test_full_payload(self) -> None:
        order = parse_order(
            {
                "id": "77",
                "state": "Pendiente",
                "created_at": "2024-01-10",
                "total": {"amount": "2500", "currency": "ARS"},
                "shipMethod": "Correo",
                "shipTrackingCode": "AB123",
                "orderItems": [
                    {"quantity": 2, "productTitle": "Naruto 1", "productPrice": {"amount": 1000, "currency": "ARS"}},
                    {"quantity": 0, "title": "Invalido"},
                ],
                "payment": {"payment_method": "Tarjeta", "status": "approved"},
            }
        )

        assert order is not None
        assert order.total is not None and order.total.amount == 2500
        assert len(order.order_items) == 1
        assert order.order_items[0].title == "Naruto 1"
        assert order.payment_method == "Tarjeta"
        assert order.payment_status == "approved"

    def test_missing_id(self) -> None:
        assert parse_order({"state": "enviado"}) is None

    def test_detail_nested_in_order_key(self) -> None:
        detail = extract_order_detail({"order": {"id": 5, "state": "Entregado"}})
        assert detail is not None
        assert detail.id == "5"
        assert detail.state_canonical == CanonicalOrderState.DELIVERED

    def test_list_and_find(self) -> None:
        orders = extract_orders_list({"data": [{"id": 1}, {"foo": "bar"}, {"id": "#2", "state": "enviado"}]})
        assert [order.id for order in orders] == ["1", "2"]
        assert find_order_by_id(orders, "#2") is orders[1]
        assert find_order_by_id(orders, None) is None

    def test_list_without_data(self) -> None:
        assert extract_orders_list({"items": []}) == []


class TestReconcile:
    def test_conflict_between_detail_and_list(self) -> None:
        detail = parse_order({"id": 1, "state": "Enviado"})
        listed = parse_order({"id": 1, "state": "Cancelado"})

        result = reconcile_orders_state(detail, listed)

        assert result.conflict is True
        assert result.detail_state_canonical == CanonicalOrderState.SHIPPED
        assert result.list_state_canonical == CanonicalOrderState.CANCELLED

    def test_unknown_never_conflicts(self) -> None:
        detail = parse_order({"id": 1, "state": "estado raro"})
        listed = parse_order({"id": 1, "state": "Cancelado"})

        result = reconcile_orders_state(detail, listed)

        assert result.conflict is False
        assert result.detail_state_canonical is None

    def test_missing_list_entry(self) -> None:
        detail = parse_order({"id": 1, "state": "Enviado"})
        result = reconcile_orders_state(detail, None)
        assert result.conflict is False
        assert result.list_state_raw is None


class TestUnauthenticatedPayload:
    def test_raises_unauthorized(self) -> None:
        with pytest.raises(ExternalServiceError) as exc_info:
            raise_if_unauthenticated_payload({"message": "Unauthenticated."})

        assert exc_info.value.status_code == 401
        assert exc_info.value.kind == ExternalServiceErrorKind.UNAUTHORIZED

    def test_error_field_is_checked(self) -> None:
        with pytest.raises(ExternalServiceError):
            raise_if_unauthenticated_payload({"error": "JWT expired"})

    def test_regular_payload_passes(self) -> None:
        raise_if_unauthenticated_payload({"message": "ok", "data": []})
        raise_if_unauthenticated_payload(["not", "a", "dict"])
