"""Contexto de log por turno (request_id, conversa e canal)."""

from __future__ import annotations

import contextlib
from collections.abc import Generator
from contextvars import ContextVar
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class TurnLogContext:
    correlation_id: str = ""
    conversation_id: str = ""
    source: str = ""


_turn_context: ContextVar[TurnLogContext] = ContextVar("turn_log_context", default=TurnLogContext())


def get_turn_log_context() -> TurnLogContext:
    return _turn_context.get()


def get_correlation_id() -> str:
    """Retorna o request_id do turno corrente (ou vazio fora de um turno)."""

    return _turn_context.get().correlation_id


@contextlib.contextmanager
def turn_log_scope(
    request_id: str,
    conversation_id: str = "",
    source: str = "",
) -> Generator[TurnLogContext, None, None]:
    """Vincula os identificadores do turno a todos os logs emitidos dentro do bloco."""

    context = TurnLogContext(
        correlation_id=request_id,
        conversation_id=conversation_id,
        source=str(source),
    )
    token = _turn_context.set(context)
    try:
        yield context
    finally:
        _turn_context.reset(token)
