"""Protocolo de dados de pedidos autenticados (payloads brutos do storefront)."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class OrdersDataProtocol(ABC):
    """Acesso a detalhe e listagem de pedidos da conta autenticada."""

    @abstractmethod
    async def get_order_detail(self, access_token: str, order_id: str) -> dict[str, Any]:
        """Payload bruto do detalhe do pedido."""

    @abstractmethod
    async def list_orders(self, access_token: str) -> dict[str, Any]:
        """Payload bruto da listagem de pedidos."""
