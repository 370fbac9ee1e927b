"""Rate limiter da consulta de pedidos sem sessão.

Janela fixa por escopo: conversa, pedido e ip (ip só quando informado).
Cada chamada consome uma unidade de todos os escopos; o primeiro escopo
acima do limite vira `blocked_by`.

- InMemoryOrderLookupRateLimiter: dev/testes
- RedisOrderLookupRateLimiter: produção (INCR + EXPIRE no primeiro hit)

Falha do Redis é fail-open: permitido com degraded=True.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from entelequia_wf1.domain.protocols.rate_limiter import (
    OrderLookupRateLimiterProtocol,
    RateLimitDecision,
)
from entelequia_wf1.observability.logging import get_logger
from entelequia_wf1.utils.ids import short_hash

if TYPE_CHECKING:
    from entelequia_wf1.config.settings import Settings

logger: logging.Logger = get_logger(__name__)

SCOPE_CONVERSATION = "conversation"
SCOPE_ORDER = "order"
SCOPE_IP = "ip"


@dataclass(frozen=True, slots=True)
class RateLimitPolicy:
    per_conversation: int = 5
    per_order: int = 5
    per_ip: int = 20
    window_seconds: int = 300

    def limit_for(self, scope: str) -> int:
        if scope == SCOPE_CONVERSATION:
            return self.per_conversation
        if scope == SCOPE_ORDER:
            return self.per_order
        return self.per_ip


def _scope_keys(
    conversation_id: str, order_id: str, client_ip: str | None
) -> list[tuple[str, str]]:
    keys = [
        (SCOPE_CONVERSATION, conversation_id),
        (SCOPE_ORDER, order_id),
    ]
    if client_ip:
        keys.append((SCOPE_IP, client_ip))
    return keys


def _first_exceeded(counts: list[tuple[str, int]], policy: RateLimitPolicy) -> str | None:
    for scope, count in counts:
        if count > policy.limit_for(scope):
            return scope
    return None


@dataclass(slots=True)
class InMemoryOrderLookupRateLimiter(OrderLookupRateLimiterProtocol):
    """Contadores em memória por janela.

    ATENÇÃO: não usar com múltiplas instâncias (estado local ao processo).
    """

    policy: RateLimitPolicy = field(default_factory=RateLimitPolicy)
    clock: Callable[[], float] = time.time
    _windows: dict[str, tuple[int, float]] = field(default_factory=dict)

    async def consume(
        self,
        request_id: str,
        user_id: str,
        conversation_id: str,
        order_id: str,
        client_ip: str | None = None,
    ) -> RateLimitDecision:
        now = self.clock()
        counts: list[tuple[str, int]] = []
        for scope, value in _scope_keys(conversation_id, order_id, client_ip):
            key = f"{scope}:{value}"
            count, started_at = self._windows.get(key, (0, now))
            if now - started_at >= self.policy.window_seconds:
                count, started_at = 0, now
            count += 1
            self._windows[key] = (count, started_at)
            counts.append((scope, count))

        blocked_by = _first_exceeded(counts, self.policy)
        if blocked_by:
            logger.info(
                "order_lookup_rate_limited",
                extra={"blocked_by": blocked_by, "request_id": request_id},
            )
        return RateLimitDecision(allowed=blocked_by is None, blocked_by=blocked_by)


class RedisOrderLookupRateLimiter(OrderLookupRateLimiterProtocol):
    """Contadores de janela fixa no Redis."""

    def __init__(
        self,
        redis_url: str | None = None,
        policy: RateLimitPolicy | None = None,
        key_prefix: str = "wf1:order_lookup:",
        client: Any | None = None,
    ) -> None:
        self._redis_url = redis_url
        self._policy = policy or RateLimitPolicy()
        self._key_prefix = key_prefix
        self._client = client  # Lazy loading quando None

    def _get_client(self) -> Any:
        if self._client is None:
            if not self._redis_url:
                raise RuntimeError("REDIS_URL não configurado para rate limiter")
            # pylint: disable=import-outside-toplevel
            import redis.asyncio as redis_asyncio

            self._client = redis_asyncio.from_url(
                self._redis_url,
                decode_responses=True,
                socket_timeout=2.0,
                socket_connect_timeout=2.0,
            )
            logger.info(
                "Conexão Redis configurada (rate limiter)",
                extra={"url": self._redis_url.split("@")[-1]},  # Sem credenciais
            )
        return self._client

    def _make_key(self, scope: str, value: str) -> str:
        return f"{self._key_prefix}{scope}:{short_hash(value)}"

    async def consume(
        self,
        request_id: str,
        user_id: str,
        conversation_id: str,
        order_id: str,
        client_ip: str | None = None,
    ) -> RateLimitDecision:
        counts: list[tuple[str, int]] = []
        try:
            client = self._get_client()
            for scope, value in _scope_keys(conversation_id, order_id, client_ip):
                key = self._make_key(scope, value)
                count = int(await client.incr(key))
                if count == 1:
                    await client.expire(key, self._policy.window_seconds)
                counts.append((scope, count))
        except Exception as e:
            logger.warning(
                "order_lookup_rate_limiter_degraded",
                extra={"error_type": type(e).__name__, "request_id": request_id},
            )
            return RateLimitDecision(allowed=True, degraded=True)

        blocked_by = _first_exceeded(counts, self._policy)
        if blocked_by:
            logger.info(
                "order_lookup_rate_limited",
                extra={"blocked_by": blocked_by, "request_id": request_id},
            )
        return RateLimitDecision(allowed=blocked_by is None, blocked_by=blocked_by)


def create_order_lookup_rate_limiter(
    settings: Settings | None = None,
) -> OrderLookupRateLimiterProtocol:
    """Factory baseada em settings.order_lookup_rate_limiter_backend."""

    if settings is None:
        from entelequia_wf1.config.settings import get_settings

        settings = get_settings()

    policy = RateLimitPolicy(
        per_conversation=settings.order_lookup_limit_per_conversation,
        per_order=settings.order_lookup_limit_per_order,
        per_ip=settings.order_lookup_limit_per_ip,
        window_seconds=settings.order_lookup_window_seconds,
    )
    backend = settings.order_lookup_rate_limiter_backend.lower()

    if backend == "memory":
        logger.info("Usando InMemoryOrderLookupRateLimiter (apenas dev/testes)")
        return InMemoryOrderLookupRateLimiter(policy=policy)

    if backend == "redis":
        if not settings.redis_url:
            raise ValueError(
                "REDIS_URL é obrigatório quando order_lookup_rate_limiter_backend=redis"
            )
        logger.info(
            "Usando RedisOrderLookupRateLimiter",
            extra={"window_seconds": policy.window_seconds},
        )
        return RedisOrderLookupRateLimiter(redis_url=settings.redis_url, policy=policy)

    raise ValueError(f"Backend de rate limiter não reconhecido: {backend}")
