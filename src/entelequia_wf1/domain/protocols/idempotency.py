"""Protocolo do gate de idempotência por evento externo."""

from __future__ import annotations

from abc import ABC, abstractmethod


class IdempotencyProtocol(ABC):
    """Contrato mínimo.

    start_processing é atômico (verifica+marca) e lança IdempotencyError
    quando o backend falha (fail-closed).
    """

    @abstractmethod
    async def start_processing(self, source: str, external_event_id: str, request_id: str) -> bool:
        """Retorna True se o evento já foi visto (duplicado)."""

    @abstractmethod
    async def mark_processed(self, source: str, external_event_id: str) -> None:
        """Marca o evento como concluído."""

    @abstractmethod
    async def mark_failed(self, source: str, external_event_id: str, error_message: str) -> None:
        """Libera o evento para nova tentativa após falha."""
