"""Erros de domínio tipados.

A conversão de erro para resposta ao usuário acontece em um único ponto
(application.responses.errors.map_error_to_response).
"""

from __future__ import annotations

from entelequia_wf1.domain.enums import ExternalServiceErrorKind


class Wf1Error(Exception):
    """Base para erros do orquestrador."""


class InvalidMessageError(Wf1Error):
    """Texto de entrada vazio ou acima do limite."""


class MissingAuthForOrdersError(Wf1Error):
    """Consulta de pedidos autenticada sem access token."""


class IdempotencyError(Wf1Error):
    """Falha no backend de idempotência.

    Fail-closed: a mensagem NÃO deve ser processada.
    """


def kind_from_status(status_code: int) -> ExternalServiceErrorKind:
    """Deriva a categoria fechada a partir do status HTTP."""

    if status_code == 0:
        return ExternalServiceErrorKind.NETWORK
    if status_code == 401:
        return ExternalServiceErrorKind.UNAUTHORIZED
    if status_code == 403:
        return ExternalServiceErrorKind.FORBIDDEN
    if status_code == 404:
        return ExternalServiceErrorKind.NOT_FOUND
    if status_code == 442:
        return ExternalServiceErrorKind.ORDER_NOT_FOUND
    if status_code in (408, 504):
        return ExternalServiceErrorKind.TIMEOUT
    if status_code >= 500:
        return ExternalServiceErrorKind.SERVER_ERROR
    return ExternalServiceErrorKind.OTHER


class ExternalServiceError(Wf1Error):
    """Falha de colaborador externo com status e grupo de endpoint opcional."""

    def __init__(
        self,
        message: str,
        status_code: int,
        kind: ExternalServiceErrorKind | None = None,
        endpoint_group: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.kind = kind or kind_from_status(status_code)
        self.endpoint_group = endpoint_group

    @property
    def is_catalog(self) -> bool:
        return self.endpoint_group == "catalog"
