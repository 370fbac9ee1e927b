"""Modelos de domínio (contratos principais do turno)."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from entelequia_wf1.domain.enums import (
    AuditStatus,
    GuestLookupResultCode,
    Intent,
    Sender,
    Source,
)


class IncomingMessage(BaseModel):
    """Mensagem de entrada já validada pela camada de transporte."""

    source: Source
    conversation_id: str
    user_id: str
    external_event_id: str
    text: str
    access_token: str | None = None
    client_ip: str | None = None


class ConversationHistoryRow(BaseModel):
    """Um turno persistido (usuário ou bot).

    O metadata do bot é o único canal de estado entre turnos.
    """

    id: str | None = None
    sender: Sender
    content: str = ""
    metadata: dict[str, Any] | None = None
    created_at: datetime | None = None


class ContextBlock(BaseModel):
    context_type: str
    context_payload: dict[str, Any] = Field(default_factory=dict)


class IntentResult(BaseModel):
    """Saída do classificador de intenção."""

    intent: str = Intent.GENERAL.value
    entities: list[str] = Field(default_factory=list)
    confidence: float = 0.0
    sentiment: Literal["negative", "neutral", "positive"] = "neutral"


class LlmReplyMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    llm_path: str | None = None
    fallback_reason: str | None = None


class LlmReply(BaseModel):
    message: str
    metadata: LlmReplyMetadata | None = None


class Money(BaseModel):
    amount: float
    currency: str


class CatalogSnapshotItem(BaseModel):
    """Card de catálogo exibido ao usuário (persistido em camelCase)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    title: str
    product_url: str
    thumbnail_url: str = "https://entelequia.com.ar/favicon.ico"
    currency: str
    amount: float


class OrderLookupIdentity(BaseModel):
    dni: str | None = None
    name: str | None = None
    last_name: str | None = None
    phone: str | None = None


class GuestOrderView(BaseModel):
    """Pedido devolvido pela consulta verificada sem sessão."""

    id: str
    state: str | None = None
    total: Money | None = None
    ship_method: str | None = None
    tracking_code: str | None = None
    payment_method: str | None = None


class OrderLookupResult(BaseModel):
    ok: bool
    code: GuestLookupResultCode | None = None
    status_code: int | None = None
    order: GuestOrderView | None = None


class PersistTurnInput(BaseModel):
    conversation_id: str
    user_id: str
    source: Source
    external_event_id: str
    user_message: str
    bot_message: str
    intent: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class PersistedTurn(BaseModel):
    user_message_id: str
    bot_message_id: str


class PreviousBotTurn(BaseModel):
    message_id: str
    message: str
    metadata: dict[str, Any] | None = None


class AuditRecord(BaseModel):
    """Registro de auditoria por request_id."""

    request_id: str
    user_id: str
    conversation_id: str
    source: Source
    intent: str
    status: AuditStatus
    message: str
    http_status: int = 200
    latency_ms: int = 0
    error_code: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class Wf1SuccessResponse(BaseModel):
    ok: Literal[True] = True
    message: str
    conversation_id: str
    intent: str | None = None
    response_id: str | None = None


class Wf1RequiresAuthResponse(BaseModel):
    ok: Literal[False] = False
    requires_auth: Literal[True] = True
    message: str


class Wf1FailureResponse(BaseModel):
    ok: Literal[False] = False
    message: str


Wf1Response = Wf1SuccessResponse | Wf1RequiresAuthResponse | Wf1FailureResponse


def audit_status_for(response: Wf1Response) -> AuditStatus:
    """Status de auditoria derivado da variante da resposta."""

    if isinstance(response, Wf1RequiresAuthResponse):
        return AuditStatus.REQUIRES_AUTH
    if isinstance(response, Wf1SuccessResponse):
        return AuditStatus.SUCCESS
    return AuditStatus.FAILURE


def response_intent(response: Wf1Response, default: str = Intent.GENERAL.value) -> str:
    if isinstance(response, Wf1SuccessResponse):
        return response.intent or default
    return "error"
