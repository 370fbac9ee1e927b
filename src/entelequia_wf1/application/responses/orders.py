"""Respostas fixas do domínio de pedidos.

Inclui autenticação, consulta sem sessão e escalonamento de pedido cancelado.
Todas as mensagens ao usuário em espanhol rioplatense sem acentos.
"""

from __future__ import annotations

from entelequia_wf1.domain.models import (
    GuestOrderView,
    Wf1FailureResponse,
    Wf1RequiresAuthResponse,
)
from entelequia_wf1.domain.money import format_money

LOGIN_REQUIRED_TITLE = "NECESITAS INICIAR SESION"
SESSION_EXPIRED_TITLE = "TU SESION EXPIRO O ES INVALIDA"

_SHARED_GUIDANCE_LINES = (
    "Para consultar el estado de tus pedidos, necesitas estar autenticado.",
    "",
    "Opciones:",
    "1. Inicia sesion en entelequia.com.ar",
    "2. Luego vuelve al chat (tu sesion se sincronizara)",
    "3. Tambien puedes consultar por email a info@entelequia.com.ar",
    "",
    "Si tienes numero de pedido (#12345), tambien puedes consultar por WhatsApp o email "
    "sin iniciar sesion.",
    "",
    "No compartas credenciales en el chat.",
)

_REAUTHENTICATION_LINES = (
    "[NO DETECTO TU SESION EN ESTE CHAT]",
    "",
    "Para consultar pedidos ahora, hace esta re-autenticacion rapida:",
    "1. Inicia sesion nuevamente en entelequia.com.ar",
    "2. Volve a este chat y escribi: mis pedidos",
    "",
    "No compartas credenciales ni codigos en el chat.",
)

LOOKUP_INSTRUCTIONS = "\n".join(
    (
        "Para consultar tu pedido sin iniciar sesion, enviame todo en un solo mensaje:",
        "- Numero de pedido (order_id)",
        "- Al menos 2 datos entre: dni, nombre, apellido, telefono",
        "",
        "Ejemplo: pedido 12345, dni 12345678, nombre Juan, apellido Perez",
    )
)

LOOKUP_VERIFICATION_FAILED_MESSAGE = (
    "No pudimos validar los datos del pedido. Verifica el numero de pedido y tus datos, "
    "e intenta nuevamente."
)
LOOKUP_UNAUTHORIZED_MESSAGE = (
    "No pude validar la consulta en este momento. Intenta nuevamente en unos segundos."
)
LOOKUP_THROTTLED_MESSAGE = (
    "Hay alta demanda para consultas de pedidos. Intenta nuevamente en unos segundos."
)
LOOKUP_INVALID_PAYLOAD_SUFFIX = "No pude validar el formato enviado."

_FACTOR_LABELS = {
    "dni": "dni",
    "name": "nombre",
    "last_name": "apellido",
    "phone": "telefono",
}

SUPPORT_WHATSAPP = "+54 9 11 6189-8533"
SUPPORT_EMAIL = "info@entelequia.com.ar"


def _auth_message(title: str) -> str:
    return "\n".join((f"[{title}]", "", *_SHARED_GUIDANCE_LINES))


def build_orders_requires_auth_response() -> Wf1RequiresAuthResponse:
    return Wf1RequiresAuthResponse(message=_auth_message(LOGIN_REQUIRED_TITLE))


def build_orders_session_expired_response() -> Wf1RequiresAuthResponse:
    return Wf1RequiresAuthResponse(message=_auth_message(SESSION_EXPIRED_TITLE))


def build_orders_reauthentication_response() -> Wf1RequiresAuthResponse:
    return Wf1RequiresAuthResponse(message="\n".join(_REAUTHENTICATION_LINES))


# Consulta de pedido sem sessão


def _with_instructions(suffix: str) -> Wf1FailureResponse:
    return Wf1FailureResponse(message=f"{LOOKUP_INSTRUCTIONS}\n\n{suffix}")


def build_guest_has_data_question_response() -> Wf1FailureResponse:
    return Wf1FailureResponse(
        message=(
            "Puedo ayudarte a consultar tu pedido sin iniciar sesion. "
            "Tenes a mano el numero de pedido y al menos 2 datos de identidad "
            "(dni, nombre, apellido o telefono)? Responde SI o NO."
        )
    )


def build_guest_provide_data_response() -> Wf1FailureResponse:
    return Wf1FailureResponse(message=LOOKUP_INSTRUCTIONS)


def build_guest_unknown_answer_response() -> Wf1FailureResponse:
    return Wf1FailureResponse(
        message=(
            "No llegue a entender tu respuesta. Si tenes el numero de pedido y tus datos, "
            "responde SI. Si no los tenes, responde NO y te explico como seguir."
        )
    )


def build_guest_missing_order_id_response() -> Wf1FailureResponse:
    return _with_instructions("No encontre el numero de pedido en tu mensaje.")


def build_guest_invalid_payload_response(invalid_factors: list[str] | None = None) -> Wf1FailureResponse:
    suffix = LOOKUP_INVALID_PAYLOAD_SUFFIX
    labels = [_FACTOR_LABELS.get(factor, factor) for factor in invalid_factors or []]
    if labels:
        suffix = f"{suffix} Revisa: {', '.join(labels)}."
    return _with_instructions(suffix)


def build_guest_missing_factors_response(provided_factors: int) -> Wf1FailureResponse:
    missing = max(0, 2 - provided_factors)
    return _with_instructions(
        f"Recibi {provided_factors} dato(s) de identidad. Necesito {missing} dato(s) mas."
    )


def build_guest_lookup_success_message(order: GuestOrderView) -> str:
    return "\n".join(
        (
            f"[PEDIDO #{order.id}]",
            "",
            f"- Estado: {order.state or 'Sin estado'}",
            f"- Total: {format_money(order.total) if order.total else 'No disponible'}",
            f"- Envio: {order.ship_method or 'No disponible'}",
            f"- Tracking: {order.tracking_code or 'Pendiente'}",
            f"- Pago: {order.payment_method or 'No disponible'}",
        )
    )


def build_guest_lookup_verification_failed_response() -> Wf1FailureResponse:
    return Wf1FailureResponse(message=LOOKUP_VERIFICATION_FAILED_MESSAGE)


def build_guest_lookup_unauthorized_response() -> Wf1FailureResponse:
    return Wf1FailureResponse(message=LOOKUP_UNAUTHORIZED_MESSAGE)


def build_guest_lookup_throttled_response() -> Wf1FailureResponse:
    return Wf1FailureResponse(message=LOOKUP_THROTTLED_MESSAGE)


# Escalonamento de pedido cancelado


def build_cancelled_order_escalation_action_response(order_id: str | None) -> Wf1FailureResponse:
    order_hint = f"pedido #{order_id}" if order_id else "pedido"
    return Wf1FailureResponse(
        message="\n".join(
            (
                f"No tengo el motivo exacto de cancelacion de tu {order_hint} desde este canal.",
                "Para resolverlo rapido, escribinos por uno de estos canales:",
                f"- WhatsApp: {SUPPORT_WHATSAPP}",
                f"- Email: {SUPPORT_EMAIL}",
                "",
                f"Inclui el numero de {order_hint}, nombre completo y un telefono de contacto.",
            )
        )
    )


def build_cancelled_order_escalation_declined_response() -> Wf1FailureResponse:
    return Wf1FailureResponse(
        message=(
            "Perfecto. Si despues queres que te pase los canales de soporte para revisarlo, "
            "avisame y te ayudo."
        )
    )


def build_cancelled_order_escalation_unknown_answer_response() -> Wf1FailureResponse:
    return Wf1FailureResponse(
        message=(
            "Si queres que te pase los canales para revisarlo, responde SI. "
            "Si preferis seguir con otra consulta, responde NO."
        )
    )
