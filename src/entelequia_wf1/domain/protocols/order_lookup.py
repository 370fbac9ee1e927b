"""Protocolo de consulta verificada de pedido sem sessão."""

from __future__ import annotations

from abc import ABC, abstractmethod

from entelequia_wf1.domain.models import OrderLookupIdentity, OrderLookupResult


class OrderLookupProtocol(ABC):
    @abstractmethod
    async def lookup(self, order_id: str, identity: OrderLookupIdentity) -> OrderLookupResult:
        """Executa a consulta; falhas tipadas vêm em OrderLookupResult.code."""
