"""Métricas Prometheus do orquestrador.

Cada instância de PrometheusMetrics usa seu próprio CollectorRegistry,
o que permite múltiplas instâncias em testes sem colisão de nomes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from prometheus_client import CollectorRegistry, Counter, Histogram

from entelequia_wf1.domain.protocols.metrics import MetricsProtocol
from entelequia_wf1.observability.logging import get_logger

if TYPE_CHECKING:
    from entelequia_wf1.config.settings import Settings

logger = get_logger(__name__)

_PREFIX = "wf1"


class PrometheusMetrics(MetricsProtocol):
    """Adapter Prometheus para MetricsProtocol."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()
        r = self.registry

        self.messages = Counter(
            f"{_PREFIX}_messages_total",
            "Mensagens respondidas",
            labelnames=["source", "intent", "llm_path"],
            registry=r,
        )
        self.response_latency = Histogram(
            f"{_PREFIX}_response_latency_seconds",
            "Latência de resposta por turno",
            labelnames=["intent"],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0),
            registry=r,
        )
        self.fallbacks = Counter(
            f"{_PREFIX}_fallback_total",
            "Fallbacks aplicados",
            labelnames=["reason"],
            registry=r,
        )
        self.scope_redirects = Counter(
            f"{_PREFIX}_scope_redirect_total",
            "Redirecionamentos por escopo",
            labelnames=["reason"],
            registry=r,
        )
        self.business_policy = Counter(
            f"{_PREFIX}_business_policy_detected_total",
            "Políticas comerciais detectadas",
            labelnames=["policy"],
            registry=r,
        )
        self.disambiguation_triggered = Counter(
            f"{_PREFIX}_recommendations_disambiguation_triggered_total",
            "Desambiguações de recomendação iniciadas",
            labelnames=["reason"],
            registry=r,
        )
        self.disambiguation_resolved = Counter(
            f"{_PREFIX}_recommendations_disambiguation_resolved_total",
            "Desambiguações de recomendação resolvidas",
            registry=r,
        )
        self.lookup_rate_limited = Counter(
            f"{_PREFIX}_order_lookup_rate_limited_total",
            "Consultas de pedido bloqueadas por rate limit",
            labelnames=["scope"],
            registry=r,
        )
        self.lookup_rate_limit_degraded = Counter(
            f"{_PREFIX}_order_lookup_rate_limit_degraded_total",
            "Decisões do rate limiter em modo degradado",
            registry=r,
        )
        self.lookup_verification_failed = Counter(
            f"{_PREFIX}_order_lookup_verification_failed_total",
            "Consultas de pedido com dados não verificados",
            registry=r,
        )
        self.order_flow_ambiguous_ack = Counter(
            f"{_PREFIX}_order_flow_ambiguous_ack_total",
            "Confirmações ambíguas dentro do fluxo de pedido",
            registry=r,
        )
        self.order_flow_hijack_prevented = Counter(
            f"{_PREFIX}_order_flow_hijack_prevented_total",
            "Mensagens fora do fluxo de pedido que não o continuaram",
            registry=r,
        )
        self.output_sanitized = Counter(
            f"{_PREFIX}_output_technical_terms_sanitized_total",
            "Respostas com termos técnicos reescritos",
            registry=r,
        )
        self.policy_context_injected = Counter(
            f"{_PREFIX}_policy_context_injected_total",
            "Turnos com contexto de políticas injetado",
            registry=r,
        )
        self.price_challenge = Counter(
            f"{_PREFIX}_price_challenge_detected_total",
            "Questionamentos de preço detectados",
            registry=r,
        )
        self.intent_rescued = Counter(
            f"{_PREFIX}_intent_rescued_total",
            "Intenções reclassificadas para pedidos",
            labelnames=["reason"],
            registry=r,
        )

    def increment_message(self, source: str, intent: str, llm_path: str) -> None:
        self.messages.labels(source=source, intent=intent, llm_path=llm_path).inc()

    def observe_response_latency(self, intent: str, seconds: float) -> None:
        self.response_latency.labels(intent=intent).observe(seconds)

    def increment_fallback(self, reason: str) -> None:
        self.fallbacks.labels(reason=reason).inc()

    def increment_scope_redirect(self, reason: str) -> None:
        self.scope_redirects.labels(reason=reason).inc()

    def increment_business_policy_detected(self, policy: str) -> None:
        self.business_policy.labels(policy=policy).inc()

    def increment_recommendations_disambiguation_triggered(self, reason: str) -> None:
        self.disambiguation_triggered.labels(reason=reason).inc()

    def increment_recommendations_disambiguation_resolved(self) -> None:
        self.disambiguation_resolved.inc()

    def increment_order_lookup_rate_limited(self, scope: str) -> None:
        self.lookup_rate_limited.labels(scope=scope).inc()

    def increment_order_lookup_rate_limit_degraded(self) -> None:
        self.lookup_rate_limit_degraded.inc()

    def increment_order_lookup_verification_failed(self) -> None:
        self.lookup_verification_failed.inc()

    def increment_order_flow_ambiguous_ack(self) -> None:
        self.order_flow_ambiguous_ack.inc()

    def increment_order_flow_hijack_prevented(self) -> None:
        self.order_flow_hijack_prevented.inc()

    def increment_output_technical_terms_sanitized(self) -> None:
        self.output_sanitized.inc()

    def increment_policy_context_injected(self) -> None:
        self.policy_context_injected.inc()

    def increment_price_challenge_detected(self) -> None:
        self.price_challenge.inc()

    def increment_intent_rescued(self, reason: str) -> None:
        self.intent_rescued.labels(reason=reason).inc()


class NoopMetrics(MetricsProtocol):
    """Métricas desabilitadas (METRICS_ENABLED=false)."""

    def increment_message(self, source: str, intent: str, llm_path: str) -> None:
        return None

    def observe_response_latency(self, intent: str, seconds: float) -> None:
        return None

    def increment_fallback(self, reason: str) -> None:
        return None

    def increment_scope_redirect(self, reason: str) -> None:
        return None

    def increment_business_policy_detected(self, policy: str) -> None:
        return None

    def increment_recommendations_disambiguation_triggered(self, reason: str) -> None:
        return None

    def increment_recommendations_disambiguation_resolved(self) -> None:
        return None

    def increment_order_lookup_rate_limited(self, scope: str) -> None:
        return None

    def increment_order_lookup_rate_limit_degraded(self) -> None:
        return None

    def increment_order_lookup_verification_failed(self) -> None:
        return None

    def increment_order_flow_ambiguous_ack(self) -> None:
        return None

    def increment_order_flow_hijack_prevented(self) -> None:
        return None

    def increment_output_technical_terms_sanitized(self) -> None:
        return None

    def increment_policy_context_injected(self) -> None:
        return None

    def increment_price_challenge_detected(self) -> None:
        return None

    def increment_intent_rescued(self, reason: str) -> None:
        return None


def create_metrics(settings: Settings, registry: CollectorRegistry | None = None) -> MetricsProtocol:
    """Factory baseada em settings.metrics_enabled."""

    if not settings.metrics_enabled:
        logger.info("Metrics disabled: using no-op adapter")
        return NoopMetrics()
    return PrometheusMetrics(registry=registry)
