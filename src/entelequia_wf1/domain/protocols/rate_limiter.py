"""Protocolo do rate limiter da consulta de pedidos."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(slots=True)
class RateLimitDecision:
    """Decisão do limiter.

    degraded=True indica backend indisponível: a chamada segue permitida,
    mas o evento é contabilizado.
    """

    allowed: bool
    degraded: bool = False
    blocked_by: str | None = None


class OrderLookupRateLimiterProtocol(ABC):
    @abstractmethod
    async def consume(
        self,
        request_id: str,
        user_id: str,
        conversation_id: str,
        order_id: str,
        client_ip: str | None = None,
    ) -> RateLimitDecision:
        """Consome uma unidade de cada escopo (conversa, pedido, ip)."""
