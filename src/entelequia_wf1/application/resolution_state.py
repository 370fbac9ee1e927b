"""Estado mutável do turno e dependências da resolução de resposta.

ResolutionState é criado por turno a partir do histórico, mutado pelos
estágios da resolução e consumido uma única vez pelo finalizador.
Apenas campos selecionados são persistidos no metadata do bot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from entelequia_wf1.application.flow_state import (
    LAST_FRANCHISE_KEY,
    LAST_TYPE_KEY,
    PROMPTED_FRANCHISE_KEY,
    SNAPSHOT_ITEM_COUNT_KEY,
    SNAPSHOT_SOURCE_KEY,
    SNAPSHOT_TIMESTAMP_KEY,
    FlowStateSnapshot,
)
from entelequia_wf1.config.settings import Settings
from entelequia_wf1.domain.enums import (
    BusinessPolicyType,
    CanonicalOrderState,
    GuestLookupResultCode,
    GuestOrderFlowState,
    OrdersDataSource,
    OrdersEscalationFlowState,
    RecommendationFlowState,
)
from entelequia_wf1.domain.models import (
    CatalogSnapshotItem,
    ContextBlock,
    ConversationHistoryRow,
    IncomingMessage,
    IntentResult,
    Wf1Response,
)
from entelequia_wf1.domain.protocols import (
    ContextEnrichmentProtocol,
    LlmProtocol,
    MetricsProtocol,
    OrderLookupProtocol,
    OrderLookupRateLimiterProtocol,
    OrdersDataProtocol,
)


@dataclass(slots=True)
class ResolutionDependencies:
    """Colaboradores usados pelos estágios de resolução."""

    context_enrichment: ContextEnrichmentProtocol
    llm: LlmProtocol
    order_lookup: OrderLookupProtocol
    rate_limiter: OrderLookupRateLimiterProtocol
    orders_data: OrdersDataProtocol
    metrics: MetricsProtocol
    settings: Settings


@dataclass(slots=True)
class ResolutionInput:
    """Entrada imutável do turno (já validada e com histórico lido)."""

    message: IncomingMessage
    request_id: str
    history: list[ConversationHistoryRow]
    intent_result: IntentResult
    flow_state: FlowStateSnapshot
    now_ms: int
    latest_bot_message: str | None = None

    @property
    def is_authenticated(self) -> bool:
        token = self.message.access_token
        return bool(token and token.strip())


@dataclass(slots=True)
class ResolutionState:
    effective_text: str
    effective_intent: str
    effective_intent_result: IntentResult

    response: Wf1Response | None = None

    # Fluxos: só famílias tocadas são persistidas (com null explícito)
    touched_flows: set[str] = field(default_factory=set)
    guest_flow_state: GuestOrderFlowState | None = None
    escalation_flow_state: OrdersEscalationFlowState | None = None
    recommendations_flow_state: RecommendationFlowState | None = None
    recommendations_flow_franchise: str | None = None
    recommendations_flow_category_hint: str | None = None
    memory_updates: dict[str, Any] = field(default_factory=dict)

    # Telemetria do pipeline
    llm_attempts: int = 0
    tool_attempts: int = 0
    pipeline_fallback_count: int = 0
    pipeline_fallback_reasons: list[str] = field(default_factory=list)
    llm_path: str | None = None
    fallback_reason: str | None = None
    context_blocks: list[ContextBlock] = field(default_factory=list)
    catalog_snapshot: list[CatalogSnapshotItem] = field(default_factory=list)
    intent_rescued_to: str | None = None
    intent_rescued_reason: str | None = None
    business_policy: BusinessPolicyType | None = None

    # Pedidos
    orders_data_source: OrdersDataSource | None = None
    order_id_resolved: str | None = None
    order_state_raw: str | None = None
    order_state_canonical: CanonicalOrderState | None = None
    orders_state_conflict: bool | None = None
    orders_deterministic_reply: bool | None = None
    offered_escalation: bool | None = None
    guest_lookup_attempted: bool | None = None
    guest_lookup_result_code: GuestLookupResultCode | None = None
    guest_lookup_status_code: int | None = None

    @classmethod
    def from_input(cls, resolution_input: ResolutionInput) -> ResolutionState:
        intent_result = resolution_input.intent_result.model_copy(deep=True)
        return cls(
            effective_text=resolution_input.message.text,
            effective_intent=intent_result.intent,
            effective_intent_result=intent_result,
        )

    def set_guest_flow_state(self, value: GuestOrderFlowState | None) -> None:
        self.touched_flows.add("guest_order")
        self.guest_flow_state = value

    def set_escalation_flow_state(self, value: OrdersEscalationFlowState | None) -> None:
        self.touched_flows.add("orders_escalation")
        self.escalation_flow_state = value

    def set_recommendations_flow(
        self,
        value: RecommendationFlowState | None,
        franchise: str | None = None,
        category_hint: str | None = None,
    ) -> None:
        self.touched_flows.add("recommendations")
        self.recommendations_flow_state = value
        self.recommendations_flow_franchise = franchise if value else None
        self.recommendations_flow_category_hint = category_hint if value else None

    def has_touched(self, family: str) -> bool:
        return family in self.touched_flows

    def set_prompted_franchise(self, franchise: str | None) -> None:
        self.memory_updates[PROMPTED_FRANCHISE_KEY] = franchise

    def update_memory(
        self,
        last_franchise: str | None,
        last_type: str | None,
        snapshot_timestamp: int,
        snapshot_source: str,
        snapshot_item_count: int,
    ) -> None:
        self.memory_updates.update(
            {
                LAST_FRANCHISE_KEY: last_franchise,
                LAST_TYPE_KEY: last_type,
                SNAPSHOT_TIMESTAMP_KEY: snapshot_timestamp,
                SNAPSHOT_SOURCE_KEY: snapshot_source,
                SNAPSHOT_ITEM_COUNT_KEY: snapshot_item_count,
            }
        )

    def record_fallback(self, reason: str) -> None:
        self.pipeline_fallback_count += 1
        self.pipeline_fallback_reasons.append(reason)

    def rewrite(self, text: str | None = None, intent: str | None = None, entities: list[str] | None = None) -> None:
        """Reescreve texto/intenção/entidades efetivos para os estágios seguintes."""

        if text is not None:
            self.effective_text = text
        if intent is not None:
            self.effective_intent = intent
            self.effective_intent_result.intent = intent
        if entities is not None:
            self.effective_intent_result.entities = list(entities)
