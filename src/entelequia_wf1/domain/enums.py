"""Enums de domínio: intenções, estados de fluxo e códigos de resultado."""

from __future__ import annotations

from enum import StrEnum


class Source(StrEnum):
    """Canal de origem da mensagem."""

    WEB = "web"
    WHATSAPP = "whatsapp"


class Sender(StrEnum):
    USER = "user"
    BOT = "bot"


class Intent(StrEnum):
    """Intenções roteadas pelo classificador externo."""

    PRODUCTS = "products"
    ORDERS = "orders"
    TICKETS = "tickets"
    STORE_INFO = "store_info"
    PAYMENT_SHIPPING = "payment_shipping"
    RECOMMENDATIONS = "recommendations"
    GENERAL = "general"


class GuestOrderFlowState(StrEnum):
    """Estados do fluxo de consulta de pedido sem sessão (None = inativo)."""

    AWAITING_HAS_DATA_ANSWER = "awaiting_has_data_answer"
    AWAITING_LOOKUP_PAYLOAD = "awaiting_lookup_payload"


class OrdersEscalationFlowState(StrEnum):
    AWAITING_CANCELLED_REASON_CONFIRMATION = "awaiting_cancelled_reason_confirmation"


class RecommendationFlowState(StrEnum):
    """Estados de desambiguação de recomendações (None = inativo)."""

    AWAITING_CATEGORY_OR_VOLUME = "awaiting_category_or_volume"
    AWAITING_VOLUME_DETAIL = "awaiting_volume_detail"


class CanonicalOrderState(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


class OrdersDataSource(StrEnum):
    LIST = "list"
    DETAIL = "detail"
    CONFLICT = "conflict"


class GuestLookupResultCode(StrEnum):
    """Códigos de telemetria da consulta de pedido como convidado."""

    SUCCESS = "success"
    NOT_FOUND_OR_MISMATCH = "not_found_or_mismatch"
    INVALID_PAYLOAD = "invalid_payload"
    UNAUTHORIZED = "unauthorized"
    THROTTLED = "throttled"
    EXCEPTION = "exception"


class HasDataAnswer(StrEnum):
    YES = "yes"
    NO = "no"
    UNKNOWN = "unknown"


class DomainScope(StrEnum):
    IN_SCOPE = "in_scope"
    OUT_OF_SCOPE = "out_of_scope"
    SMALLTALK = "smalltalk"
    HOSTILE = "hostile"


class SmalltalkKind(StrEnum):
    GREETING = "greeting"
    THANKS = "thanks"
    FAREWELL = "farewell"
    CONFIRMATION = "confirmation"


class PriceComparisonIntent(StrEnum):
    CHEAPEST = "cheapest"
    MOST_EXPENSIVE = "most_expensive"
    NONE = "none"


class BusinessPolicyType(StrEnum):
    """Tipos de política comercial detectados (apenas métricas)."""

    RETURNS = "returns"
    RESERVATIONS = "reservations"
    IMPORTS = "imports"
    EDITORIALS = "editorials"
    INTERNATIONAL_SHIPPING = "international_shipping"
    PROMOTIONS = "promotions"
    SHIPPING_COST = "shipping_cost"
    PICKUP_STORE = "pickup_store"
    STORE_HOURS = "store_hours"
    PAYMENT_METHODS = "payment_methods"


class AuditStatus(StrEnum):
    SUCCESS = "success"
    FAILURE = "failure"
    REQUIRES_AUTH = "requires_auth"
    DUPLICATE = "duplicate"


class ExternalServiceErrorKind(StrEnum):
    """Categorias fechadas de falha de serviço externo (mapeadas uma única vez)."""

    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    ORDER_NOT_FOUND = "order_not_found"
    SERVER_ERROR = "server_error"
    TIMEOUT = "timeout"
    NETWORK = "network"
    OTHER = "other"
