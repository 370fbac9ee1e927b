"""Mensagens de erro ao usuário e mapeamento único erro → resposta."""

from __future__ import annotations

from entelequia_wf1.application.responses.orders import (
    build_orders_requires_auth_response,
    build_orders_session_expired_response,
)
from entelequia_wf1.domain.enums import ExternalServiceErrorKind
from entelequia_wf1.domain.errors import ExternalServiceError, MissingAuthForOrdersError
from entelequia_wf1.domain.models import Wf1FailureResponse, Wf1Response

BACKEND_ERROR_MESSAGE = (
    "Tuvimos un inconveniente momentaneo. Si queres, te ayudo con otra consulta "
    "o lo intentamos de nuevo en un momento."
)
FORBIDDEN_MESSAGE = "No tenes permisos para acceder a esa informacion."
ORDER_NOT_FOUND_MESSAGE = "No encontramos ese pedido en tu cuenta."
INFO_NOT_FOUND_MESSAGE = "No encontramos la informacion solicitada."
CATALOG_UNAVAILABLE_MESSAGE = (
    "Ahora mismo no puedo consultar el catalogo. Intenta nuevamente en unos minutos "
    "o si queres te muestro categorias disponibles."
)

_UNAVAILABLE_KINDS = frozenset(
    {
        ExternalServiceErrorKind.SERVER_ERROR,
        ExternalServiceErrorKind.TIMEOUT,
        ExternalServiceErrorKind.NETWORK,
    }
)


def backend_error_response() -> Wf1FailureResponse:
    return Wf1FailureResponse(message=BACKEND_ERROR_MESSAGE)


def map_error_to_response(error: BaseException) -> Wf1Response:
    """Converte uma falha de colaborador na resposta ao usuário.

    Único ponto de mapeamento: nenhum outro módulo inspeciona tipos de erro
    para decidir o texto da resposta.
    """

    if isinstance(error, MissingAuthForOrdersError):
        return build_orders_requires_auth_response()

    if not isinstance(error, ExternalServiceError):
        return backend_error_response()

    if error.kind == ExternalServiceErrorKind.UNAUTHORIZED:
        return build_orders_session_expired_response()
    if error.kind == ExternalServiceErrorKind.FORBIDDEN:
        return Wf1FailureResponse(message=FORBIDDEN_MESSAGE)
    if error.kind == ExternalServiceErrorKind.ORDER_NOT_FOUND:
        return Wf1FailureResponse(message=ORDER_NOT_FOUND_MESSAGE)
    if error.kind == ExternalServiceErrorKind.NOT_FOUND:
        return Wf1FailureResponse(message=INFO_NOT_FOUND_MESSAGE)
    if error.kind in _UNAVAILABLE_KINDS and error.is_catalog:
        return Wf1FailureResponse(message=CATALOG_UNAVAILABLE_MESSAGE)
    return backend_error_response()
