"""Protocolo de métricas (contadores fire-and-forget)."""

from __future__ import annotations

from abc import ABC, abstractmethod


class MetricsProtocol(ABC):
    """Contadores e histogramas emitidos pelo orquestrador."""

    @abstractmethod
    def increment_message(self, source: str, intent: str, llm_path: str) -> None: ...

    @abstractmethod
    def observe_response_latency(self, intent: str, seconds: float) -> None: ...

    @abstractmethod
    def increment_fallback(self, reason: str) -> None: ...

    @abstractmethod
    def increment_scope_redirect(self, reason: str) -> None: ...

    @abstractmethod
    def increment_business_policy_detected(self, policy: str) -> None: ...

    @abstractmethod
    def increment_recommendations_disambiguation_triggered(self, reason: str) -> None: ...

    @abstractmethod
    def increment_recommendations_disambiguation_resolved(self) -> None: ...

    @abstractmethod
    def increment_order_lookup_rate_limited(self, scope: str) -> None: ...

    @abstractmethod
    def increment_order_lookup_rate_limit_degraded(self) -> None: ...

    @abstractmethod
    def increment_order_lookup_verification_failed(self) -> None: ...

    @abstractmethod
    def increment_order_flow_ambiguous_ack(self) -> None: ...

    @abstractmethod
    def increment_order_flow_hijack_prevented(self) -> None: ...

    @abstractmethod
    def increment_output_technical_terms_sanitized(self) -> None: ...

    @abstractmethod
    def increment_policy_context_injected(self) -> None: ...

    @abstractmethod
    def increment_price_challenge_detected(self) -> None: ...

    @abstractmethod
    def increment_intent_rescued(self, reason: str) -> None: ...
