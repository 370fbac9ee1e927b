"""Stores de idempotência por evento externo.

Chave: {source}:{external_event_id}. Estados: processing → processed; falha
libera a chave para que uma nova entrega reprocesse o evento.

- InMemoryIdempotencyStore: dev/testes (TTL simulado, uma instância)
- RedisIdempotencyStore: produção (SET NX EX, fail-closed)
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from entelequia_wf1.domain.errors import IdempotencyError
from entelequia_wf1.domain.protocols.idempotency import IdempotencyProtocol
from entelequia_wf1.observability.logging import get_logger
from entelequia_wf1.utils.ids import idempotency_key, short_hash

if TYPE_CHECKING:
    from entelequia_wf1.config.settings import Settings

logger: logging.Logger = get_logger(__name__)

STATUS_PROCESSING = "processing"
STATUS_PROCESSED = "processed"


@dataclass(slots=True)
class InMemoryIdempotencyStore(IdempotencyProtocol):
    """Idempotência em memória.

    ATENÇÃO: não usar com múltiplas instâncias (estado local ao processo).
    """

    ttl_seconds: int = 604800  # 7 dias
    clock: Callable[[], float] = time.time
    _entries: dict[str, tuple[str, float]] = field(default_factory=dict)

    async def start_processing(self, source: str, external_event_id: str, request_id: str) -> bool:
        self._cleanup_expired()
        key = idempotency_key(source, external_event_id)
        if key in self._entries:
            logger.debug("idempotency_hit", extra={"key_hash": short_hash(key)})
            return True
        self._entries[key] = (STATUS_PROCESSING, self.clock())
        return False

    async def mark_processed(self, source: str, external_event_id: str) -> None:
        key = idempotency_key(source, external_event_id)
        self._entries[key] = (STATUS_PROCESSED, self.clock())

    async def mark_failed(self, source: str, external_event_id: str, error_message: str) -> None:
        self._entries.pop(idempotency_key(source, external_event_id), None)

    def status_of(self, source: str, external_event_id: str) -> str | None:
        entry = self._entries.get(idempotency_key(source, external_event_id))
        return entry[0] if entry else None

    def _cleanup_expired(self) -> None:
        """Remove chaves expiradas (TTL simulado)."""
        now = self.clock()
        expired = [key for key, (_, ts) in self._entries.items() if now - ts > self.ttl_seconds]
        for key in expired:
            del self._entries[key]


class RedisIdempotencyStore(IdempotencyProtocol):
    """Idempotência via Redis com TTL nativo.

    Fail-closed: qualquer erro do backend vira IdempotencyError e a mensagem
    não é processada.
    """

    def __init__(
        self,
        redis_url: str | None = None,
        ttl_seconds: int = 604800,
        key_prefix: str = "wf1:idempotency:",
        client: Any | None = None,
    ) -> None:
        self._redis_url = redis_url
        self._ttl_seconds = ttl_seconds
        self._key_prefix = key_prefix
        self._client = client  # Lazy loading quando None

    def _get_client(self) -> Any:
        if self._client is None:
            if not self._redis_url:
                raise IdempotencyError("REDIS_URL não configurado para idempotência")
            # pylint: disable=import-outside-toplevel
            import redis.asyncio as redis_asyncio

            self._client = redis_asyncio.from_url(
                self._redis_url,
                decode_responses=True,
                socket_timeout=5.0,
                socket_connect_timeout=5.0,
            )
            logger.info(
                "Conexão Redis configurada (idempotência)",
                extra={"url": self._redis_url.split("@")[-1]},  # Sem credenciais
            )
        return self._client

    def _make_key(self, source: str, external_event_id: str) -> str:
        return f"{self._key_prefix}{idempotency_key(source, external_event_id)}"

    async def start_processing(self, source: str, external_event_id: str, request_id: str) -> bool:
        redis_key = self._make_key(source, external_event_id)
        try:
            was_set = await self._get_client().set(
                redis_key,
                f"{STATUS_PROCESSING}:{request_id}",
                nx=True,
                ex=self._ttl_seconds,
            )
        except IdempotencyError:
            raise
        except Exception as e:
            logger.error(
                "Erro em operação Redis",
                extra={"operation": "start_processing", "error_type": type(e).__name__},
            )
            raise IdempotencyError(f"Falha ao verificar idempotência: {e}") from e

        is_duplicate = not bool(was_set)
        logger.debug(
            "idempotency_check_redis",
            extra={"key_hash": short_hash(redis_key), "is_duplicate": is_duplicate},
        )
        return is_duplicate

    async def mark_processed(self, source: str, external_event_id: str) -> None:
        redis_key = self._make_key(source, external_event_id)
        try:
            await self._get_client().set(redis_key, STATUS_PROCESSED, ex=self._ttl_seconds)
        except Exception as e:
            logger.error(
                "Erro em operação Redis",
                extra={"operation": "mark_processed", "error_type": type(e).__name__},
            )
            raise IdempotencyError(f"Falha ao marcar evento processado: {e}") from e

    async def mark_failed(self, source: str, external_event_id: str, error_message: str) -> None:
        redis_key = self._make_key(source, external_event_id)
        try:
            await self._get_client().delete(redis_key)
        except Exception as e:
            logger.error(
                "Erro em operação Redis",
                extra={"operation": "mark_failed", "error_type": type(e).__name__},
            )
            raise IdempotencyError(f"Falha ao liberar evento: {e}") from e
        logger.info(
            "idempotency_released_after_failure",
            extra={"key_hash": short_hash(redis_key), "error": error_message[:64]},
        )


def create_idempotency_store(settings: Settings | None = None) -> IdempotencyProtocol:
    """Factory baseada em settings.idempotency_backend (memory | redis)."""

    if settings is None:
        from entelequia_wf1.config.settings import get_settings

        settings = get_settings()

    backend = settings.idempotency_backend.lower()
    if backend == "memory":
        logger.info(
            "Usando InMemoryIdempotencyStore (apenas dev/testes)",
            extra={"ttl_seconds": settings.idempotency_ttl_seconds},
        )
        return InMemoryIdempotencyStore(ttl_seconds=settings.idempotency_ttl_seconds)

    if backend == "redis":
        if not settings.redis_url:
            raise ValueError("REDIS_URL é obrigatório quando idempotency_backend=redis")
        logger.info(
            "Usando RedisIdempotencyStore",
            extra={"ttl_seconds": settings.idempotency_ttl_seconds},
        )
        return RedisIdempotencyStore(
            redis_url=settings.redis_url,
            ttl_seconds=settings.idempotency_ttl_seconds,
        )

    raise ValueError(f"Backend de idempotência não reconhecido: {backend}")
