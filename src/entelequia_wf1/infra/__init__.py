"""Camada de infraestrutura: adapters para serviços externos.

Este módulo exporta as factories principais para criação de
componentes de infraestrutura:

- Idempotência: InMemoryIdempotencyStore, RedisIdempotencyStore
- Rate limit: InMemoryOrderLookupRateLimiter, RedisOrderLookupRateLimiter
- Auditoria: MemoryAuditStore, FirestoreAuditStore
- Persistência: InMemoryChatPersistence (dev/testes)

Uso típico:
    from entelequia_wf1.infra import create_idempotency_store, create_audit_store

Infraestrutura não decide regra de negócio; logs estruturados sem PII.
"""

from entelequia_wf1.infra.audit_store import (
    FirestoreAuditStore,
    MemoryAuditStore,
    create_audit_store,
)
from entelequia_wf1.infra.chat_persistence_memory import InMemoryChatPersistence
from entelequia_wf1.infra.idempotency import (
    InMemoryIdempotencyStore,
    RedisIdempotencyStore,
    create_idempotency_store,
)
from entelequia_wf1.infra.rate_limiter import (
    InMemoryOrderLookupRateLimiter,
    RateLimitPolicy,
    RedisOrderLookupRateLimiter,
    create_order_lookup_rate_limiter,
)

__all__ = [
    "FirestoreAuditStore",
    "InMemoryChatPersistence",
    "InMemoryIdempotencyStore",
    "InMemoryOrderLookupRateLimiter",
    "MemoryAuditStore",
    "RateLimitPolicy",
    "RedisIdempotencyStore",
    "RedisOrderLookupRateLimiter",
    "create_audit_store",
    "create_idempotency_store",
    "create_order_lookup_rate_limiter",
]
