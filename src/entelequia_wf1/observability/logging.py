"""Logging estruturado (JSON) do orquestrador.

Cada linha carrega os identificadores do turno (`correlation_id` = request_id,
`conversation_id`, `source`) e o serviço/ambiente. Campos que podem conter
texto do usuário ou fatores de identidade do lookup de pedido são mascarados
no próprio filtro, mesmo quando algum chamador os passa em `extra`.
"""

from __future__ import annotations

import logging
import sys

from pythonjsonlogger.json import JsonFormatter

from entelequia_wf1.observability.context import get_turn_log_context

TURN_FIELDS = ("correlation_id", "conversation_id", "source")

REDACTED = "[redacted]"
REDACTED_FIELDS = frozenset(
    {
        "text",
        "message_text",
        "access_token",
        "dni",
        "first_name",
        "last_name",
        "phone",
        "email",
    }
)

# Bibliotecas de backend logam por requisição em INFO
QUIET_LOGGERS = ("google.api_core", "google.auth", "urllib3", "redis")

_LOG_FORMAT = " ".join(
    f"%({field})s"
    for field in ("asctime", "levelname", "name", "message", *TURN_FIELDS, "service", "environment")
)


class TurnContextFilter(logging.Filter):
    """Completa o record com o contexto do turno e mascara campos sensíveis."""

    def __init__(self, service_name: str, environment: str = "development") -> None:
        super().__init__()
        self._service_name = service_name
        self._environment = environment

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        context = get_turn_log_context()
        for field in TURN_FIELDS:
            # Valor explícito em `extra` vence o contexto
            if not getattr(record, field, None):
                setattr(record, field, getattr(context, field))
        record.service = self._service_name
        record.environment = self._environment

        for field in REDACTED_FIELDS.intersection(record.__dict__):
            if record.__dict__[field]:
                record.__dict__[field] = REDACTED
        return True


class _TurnJsonHandler(logging.StreamHandler):
    """Handler instalado por `configure_logging`; reconfigurar substitui só ele."""


def configure_logging(level: str, service_name: str, environment: str = "development") -> None:
    """Instala o handler JSON no root logger.

    Chamadas repetidas trocam o handler anterior deste módulo sem remover
    handlers de terceiros (ex.: captura de logs do pytest).
    """

    formatter = JsonFormatter(
        _LOG_FORMAT,
        rename_fields={"levelname": "level", "name": "logger", "correlation_id": "request_id"},
    )

    handler = _TurnJsonHandler(sys.stdout)
    handler.setLevel(level.upper())
    handler.setFormatter(formatter)
    handler.addFilter(TurnContextFilter(service_name, environment))

    root = logging.getLogger()
    root.setLevel(level.upper())
    root.handlers = [h for h in root.handlers if not isinstance(h, _TurnJsonHandler)]
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_fallback(
    logger: logging.Logger,
    stage: str,
    reason: str,
    elapsed_ms: float | None = None,
) -> None:
    """Registra que um estágio respondeu por caminho de fallback.

    Args:
        logger: logger do módulo chamador
        stage: estágio do turno (ex: "llm_reply", "domain_scope", "pipeline")
        reason: mesmo rótulo gravado em `pipelineFallbackReasons`
        elapsed_ms: tempo do turno até aqui, quando conhecido
    """
    extra: dict[str, object] = {"fallback_used": True, "stage": stage, "reason": reason}
    if elapsed_ms is not None:
        extra["elapsed_ms"] = round(elapsed_ms, 2)
    logger.info("fallback_applied", extra=extra)
