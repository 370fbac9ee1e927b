"""Testes para extração de order id e identidade na consulta sem sessão."""

from __future__ import annotations

from entelequia_wf1.application.flows.order_lookup_request import (
    resolve_lookup_order_id,
    resolve_order_lookup_request,
)


class TestOrderId:
    def test_labeled_order_id(self) -> None:
        assert resolve_lookup_order_id("mi pedido: 4567", []) == 4567

    def test_hash_order_id(self) -> None:
        assert resolve_lookup_order_id("es el #889", []) == 889

    def test_bare_number(self) -> None:
        assert resolve_lookup_order_id(" 12345 ", []) == 12345

    def test_from_entities(self) -> None:
        assert resolve_lookup_order_id("no se", ["pedido 777"]) == 777

    def test_zero_is_not_an_order(self) -> None:
        assert resolve_lookup_order_id("0", []) is None


class TestLabeledPayload:
    def test_complete_labeled_payload(self) -> None:
        request = resolve_order_lookup_request(
            "pedido 12345, dni 12345678, nombre Juan, apellido Perez"
        )

        assert request.order_id == 12345
        assert request.identity.dni == "12345678"
        assert request.identity.name == "Juan"
        assert request.identity.last_name == "Perez"
        assert request.provided_factors == 3
        assert request.invalid_factors == []
        assert request.is_complete is True

    def test_dni_with_dots(self) -> None:
        request = resolve_order_lookup_request("pedido 10, dni 12.345.678")
        assert request.identity.dni == "12345678"

    def test_invalid_phone_is_reported(self) -> None:
        request = resolve_order_lookup_request("pedido 999, telefono 12")

        assert request.order_id == 999
        assert request.invalid_factors == ["phone"]
        assert request.provided_factors == 0
        assert request.has_lookup_signals is True
        assert request.is_complete is False


class TestUnlabeledPayload:
    def test_segments_without_labels(self) -> None:
        """DNI e nome+sobrenome em segmentos soltos contam como fatores."""
        request = resolve_order_lookup_request("pedido #4567, 12345678, Juan Perez")

        assert request.order_id == 4567
        assert request.identity.dni == "12345678"
        assert request.identity.name == "Juan"
        assert request.identity.last_name == "Perez"
        assert request.is_complete is True

    def test_phone_segment(self) -> None:
        request = resolve_order_lookup_request("pedido 55, +5491161898533, Ana Gomez")

        assert request.identity.phone == "+5491161898533"
        assert request.provided_factors == 3

    def test_stop_words_are_not_names(self) -> None:
        request = resolve_order_lookup_request("quiero saber")
        assert request.identity.name is None
        assert request.has_lookup_signals is False


class TestNoSignals:
    def test_plain_confirmation(self) -> None:
        assert resolve_order_lookup_request("si").has_lookup_signals is False

    def test_question_without_data(self) -> None:
        request = resolve_order_lookup_request("donde esta mi pedido")
        assert request.order_id is None
        assert request.has_lookup_signals is False
