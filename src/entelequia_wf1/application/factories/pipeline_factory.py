"""Factory para construção do caso de uso HandleIncomingMessage.

Responsabilidades:
- Conhecer infra e settings
- Montar gate de idempotência, finalizador e dependências da resolução
- Retornar uma instância de `HandleIncomingMessage`

Não conter lógica de negócio. Colaboradores externos (classificador,
LLM, enriquecimento, pedidos) são sempre injetados pelo chamador.
"""

from __future__ import annotations

from entelequia_wf1.application.finalizer import TurnFinalizer
from entelequia_wf1.application.idempotency_gate import IdempotencyGate
from entelequia_wf1.application.pipeline import HandleIncomingMessage
from entelequia_wf1.application.resolution_state import ResolutionDependencies
from entelequia_wf1.config.settings import Settings, get_settings
from entelequia_wf1.domain.protocols import (
    AuditStoreProtocol,
    ChatPersistenceProtocol,
    ContextEnrichmentProtocol,
    IdempotencyProtocol,
    IntentClassifierProtocol,
    LlmProtocol,
    MetricsProtocol,
    OrderLookupProtocol,
    OrderLookupRateLimiterProtocol,
    OrdersDataProtocol,
)
from entelequia_wf1.observability.logging import get_logger

logger = get_logger(__name__)


def build_handle_incoming_message(
    *,
    intent_classifier: IntentClassifierProtocol,
    context_enrichment: ContextEnrichmentProtocol,
    llm: LlmProtocol,
    order_lookup: OrderLookupProtocol,
    orders_data: OrdersDataProtocol,
    chat_persistence: ChatPersistenceProtocol | None = None,
    idempotency: IdempotencyProtocol | None = None,
    rate_limiter: OrderLookupRateLimiterProtocol | None = None,
    audit_store: AuditStoreProtocol | None = None,
    metrics: MetricsProtocol | None = None,
    settings: Settings | None = None,
) -> HandleIncomingMessage:
    """Constrói `HandleIncomingMessage` usando infra/settings.

    Parâmetros explícitos têm prioridade; quando ausentes, os backends são
    resolvidos pelas factories de infra a partir de `get_settings()`.
    """
    settings = settings or get_settings()

    errors = settings.validate_all()
    if errors:
        raise ValueError("; ".join(errors))

    # Import infra factories apenas aqui
    from entelequia_wf1.infra import (
        InMemoryChatPersistence,
        create_audit_store,
        create_idempotency_store,
        create_order_lookup_rate_limiter,
    )
    from entelequia_wf1.observability.metrics import create_metrics

    if chat_persistence is None:
        if settings.is_production or settings.is_staging:
            raise ValueError("chat_persistence é obrigatório em staging/production")
        chat_persistence = InMemoryChatPersistence()
        logger.debug("factory: created InMemoryChatPersistence")

    if idempotency is None:
        idempotency = create_idempotency_store(settings)
        logger.debug("factory: created idempotency store via infra create_idempotency_store")

    if rate_limiter is None:
        rate_limiter = create_order_lookup_rate_limiter(settings)

    if audit_store is None:
        audit_store = create_audit_store(settings)

    if metrics is None:
        metrics = create_metrics(settings)

    deps = ResolutionDependencies(
        context_enrichment=context_enrichment,
        llm=llm,
        order_lookup=order_lookup,
        rate_limiter=rate_limiter,
        orders_data=orders_data,
        metrics=metrics,
        settings=settings,
    )

    return HandleIncomingMessage(
        intent_classifier=intent_classifier,
        chat_persistence=chat_persistence,
        gate=IdempotencyGate(idempotency=idempotency, chat_persistence=chat_persistence),
        finalizer=TurnFinalizer(
            chat_persistence=chat_persistence,
            audit_store=audit_store,
            idempotency=idempotency,
            metrics=metrics,
        ),
        deps=deps,
    )
