"""Re-exports dos Protocolos de domínio para uso por Application."""

from __future__ import annotations

from entelequia_wf1.domain.protocols.audit_store import AuditStoreProtocol
from entelequia_wf1.domain.protocols.chat_persistence import ChatPersistenceProtocol
from entelequia_wf1.domain.protocols.context_enrichment import ContextEnrichmentProtocol
from entelequia_wf1.domain.protocols.idempotency import IdempotencyProtocol
from entelequia_wf1.domain.protocols.intent_classifier import IntentClassifierProtocol
from entelequia_wf1.domain.protocols.llm import LlmProtocol
from entelequia_wf1.domain.protocols.metrics import MetricsProtocol
from entelequia_wf1.domain.protocols.order_lookup import OrderLookupProtocol
from entelequia_wf1.domain.protocols.orders_data import OrdersDataProtocol
from entelequia_wf1.domain.protocols.rate_limiter import (
    OrderLookupRateLimiterProtocol,
    RateLimitDecision,
)

__all__ = [
    "AuditStoreProtocol",
    "ChatPersistenceProtocol",
    "ContextEnrichmentProtocol",
    "IdempotencyProtocol",
    "IntentClassifierProtocol",
    "LlmProtocol",
    "MetricsProtocol",
    "OrderLookupProtocol",
    "OrdersDataProtocol",
    "OrderLookupRateLimiterProtocol",
    "RateLimitDecision",
]
