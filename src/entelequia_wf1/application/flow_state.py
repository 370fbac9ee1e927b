"""Reconstrução do estado de fluxos a partir do histórico recente.

O metadata do último turno de bot que define uma chave é a única fonte de
estado entre turnos. Regras de leitura (histórico do mais novo ao mais antigo):
- Linha de bot sem a chave: continua a busca
- Linha de bot com a chave e valor inválido ou null: fluxo inativo
- Chaves desconhecidas são ignoradas

Após a leitura, no máximo uma família de fluxo fica ativa (ver
normalize_single_active_flow).
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from entelequia_wf1.domain.enums import (
    GuestOrderFlowState,
    OrdersEscalationFlowState,
    RecommendationFlowState,
    Sender,
)
from entelequia_wf1.domain.models import CatalogSnapshotItem, ConversationHistoryRow
from entelequia_wf1.observability.logging import get_logger

logger = get_logger(__name__)

# Chaves de metadata do turno de bot
GUEST_FLOW_STATE_KEY = "ordersGuestFlowState"
ESCALATION_FLOW_STATE_KEY = "ordersEscalationFlowState"
OFFERED_ESCALATION_KEY = "offeredEscalation"
RECOMMENDATIONS_FLOW_STATE_KEY = "recommendationsFlowState"
RECOMMENDATIONS_FLOW_FRANCHISE_KEY = "recommendationsFlowFranchise"
RECOMMENDATIONS_FLOW_CATEGORY_HINT_KEY = "recommendationsFlowCategoryHint"
LAST_FRANCHISE_KEY = "recommendationsLastFranchise"
LAST_TYPE_KEY = "recommendationsLastType"
SNAPSHOT_TIMESTAMP_KEY = "recommendationsSnapshotTimestamp"
SNAPSHOT_SOURCE_KEY = "recommendationsSnapshotSource"
SNAPSHOT_ITEM_COUNT_KEY = "recommendationsSnapshotItemCount"
PROMPTED_FRANCHISE_KEY = "recommendationsPromptedFranchise"
CATALOG_SNAPSHOT_KEY = "catalogSnapshot"
ORDER_ID_RESOLVED_KEY = "orderIdResolved"
ORDERS_DETERMINISTIC_REPLY_KEY = "ordersDeterministicReply"

_CANCELLED_PATTERN = re.compile(r"\bcancelad[oa]\b", re.IGNORECASE)
_CANCELLED_ORDER_ID_PATTERN = re.compile(r"\bpedido\s*#?\s*(\d{4,12})\b", re.IGNORECASE)

_MISSING = object()


@dataclass(slots=True)
class RecommendationsFlowSnapshot:
    state: RecommendationFlowState | None = None
    franchise: str | None = None
    category_hint: str | None = None


@dataclass(slots=True)
class RecommendationsMemorySnapshot:
    """Memória de recomendações (último conteúdo exibido e franquia perguntada).

    snapshot_timestamp em epoch milissegundos.
    """

    last_franchise: str | None = None
    last_type: str | None = None
    prompted_franchise: str | None = None
    snapshot_timestamp: int | None = None
    snapshot_source: str | None = None
    snapshot_item_count: int | None = None


@dataclass(slots=True)
class FlowStateSnapshot:
    """Estado reconstruído no início do turno."""

    guest_order: GuestOrderFlowState | None = None
    orders_escalation: OrdersEscalationFlowState | None = None
    recommendations: RecommendationsFlowSnapshot = field(
        default_factory=RecommendationsFlowSnapshot
    )
    memory: RecommendationsMemorySnapshot = field(default_factory=RecommendationsMemorySnapshot)


def _bot_metadata(history: list[ConversationHistoryRow]) -> Iterator[tuple[int, dict[str, Any]]]:
    """Itera (índice, metadata) das linhas de bot com metadata dict, mais novo primeiro."""

    for index, row in enumerate(history):
        if row.sender != Sender.BOT or not isinstance(row.metadata, dict):
            continue
        yield index, row.metadata


def _string_or_none(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    return trimmed or None


def _int_or_none(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    return int(value)


def _parse_enum(enum_cls: type, value: Any) -> Any:
    if not isinstance(value, str):
        return None
    try:
        return enum_cls(value)
    except ValueError:
        return None


def _scan_key(history: list[ConversationHistoryRow], key: str) -> tuple[int | None, Any]:
    """Primeira linha de bot que define a chave: (índice, valor bruto)."""

    for index, metadata in _bot_metadata(history):
        if key in metadata:
            return index, metadata[key]
    return None, _MISSING


def resolve_guest_order_flow_state(
    history: list[ConversationHistoryRow],
) -> GuestOrderFlowState | None:
    _, value = _scan_key(history, GUEST_FLOW_STATE_KEY)
    return _parse_enum(GuestOrderFlowState, value)


def resolve_orders_escalation_flow_state(
    history: list[ConversationHistoryRow],
) -> OrdersEscalationFlowState | None:
    _, value = _scan_key(history, ESCALATION_FLOW_STATE_KEY)
    return _parse_enum(OrdersEscalationFlowState, value)


def resolve_recommendations_flow_state(
    history: list[ConversationHistoryRow],
) -> RecommendationsFlowSnapshot:
    """Estado, franquia e dica de categoria vêm da mesma linha de bot."""

    for _, metadata in _bot_metadata(history):
        if RECOMMENDATIONS_FLOW_STATE_KEY not in metadata:
            continue
        return RecommendationsFlowSnapshot(
            state=_parse_enum(RecommendationFlowState, metadata[RECOMMENDATIONS_FLOW_STATE_KEY]),
            franchise=_string_or_none(metadata.get(RECOMMENDATIONS_FLOW_FRANCHISE_KEY)),
            category_hint=_string_or_none(metadata.get(RECOMMENDATIONS_FLOW_CATEGORY_HINT_KEY)),
        )
    return RecommendationsFlowSnapshot()


def resolve_recommendations_memory(
    history: list[ConversationHistoryRow],
) -> RecommendationsMemorySnapshot:
    """Primeiro valor de cada chave de memória, do mais novo ao mais antigo."""

    readers = {
        LAST_FRANCHISE_KEY: ("last_franchise", _string_or_none),
        LAST_TYPE_KEY: ("last_type", _string_or_none),
        PROMPTED_FRANCHISE_KEY: ("prompted_franchise", _string_or_none),
        SNAPSHOT_TIMESTAMP_KEY: ("snapshot_timestamp", _int_or_none),
        SNAPSHOT_SOURCE_KEY: ("snapshot_source", _string_or_none),
        SNAPSHOT_ITEM_COUNT_KEY: ("snapshot_item_count", _int_or_none),
    }
    memory = RecommendationsMemorySnapshot()
    seen: set[str] = set()

    for _, metadata in _bot_metadata(history):
        for key, (attribute, reader) in readers.items():
            if key in seen or key not in metadata:
                continue
            seen.add(key)
            setattr(memory, attribute, reader(metadata[key]))
        if len(seen) == len(readers):
            break

    return memory


def is_snapshot_fresh(
    memory: RecommendationsMemorySnapshot,
    now_ms: int,
    max_age_seconds: int = 300,
) -> bool:
    if memory.snapshot_timestamp is None:
        return False
    return now_ms - memory.snapshot_timestamp <= max_age_seconds * 1000


def _active_flow_rows(history: list[ConversationHistoryRow]) -> dict[str, int]:
    """Índice da linha que escreveu cada família com valor não nulo."""

    rows: dict[str, int] = {}
    for family, key, enum_cls in (
        ("guest_order", GUEST_FLOW_STATE_KEY, GuestOrderFlowState),
        ("recommendations", RECOMMENDATIONS_FLOW_STATE_KEY, RecommendationFlowState),
        ("orders_escalation", ESCALATION_FLOW_STATE_KEY, OrdersEscalationFlowState),
    ):
        index, value = _scan_key(history, key)
        if index is not None and _parse_enum(enum_cls, value) is not None:
            rows[family] = index
    return rows


def normalize_single_active_flow(
    snapshot: FlowStateSnapshot,
    history: list[ConversationHistoryRow],
) -> FlowStateSnapshot:
    """Mantém apenas a família escrita pela linha de bot mais recente.

    Empate (mesma linha): guest_order > recommendations > orders_escalation.
    """

    rows = _active_flow_rows(history)
    if len(rows) <= 1:
        return snapshot

    # dict preserva a ordem de prioridade em caso de empate
    winner = min(rows, key=lambda family: rows[family])
    logger.warning(
        "flow_state_conflict_normalized",
        extra={"active_families": sorted(rows), "kept_family": winner},
    )
    if winner != "guest_order":
        snapshot.guest_order = None
    if winner != "orders_escalation":
        snapshot.orders_escalation = None
    if winner != "recommendations":
        snapshot.recommendations = RecommendationsFlowSnapshot()
    return snapshot


def reconstruct_flow_state(history: list[ConversationHistoryRow]) -> FlowStateSnapshot:
    """Reconstrói todas as famílias de fluxo e a memória de recomendações."""

    snapshot = FlowStateSnapshot(
        guest_order=resolve_guest_order_flow_state(history),
        orders_escalation=resolve_orders_escalation_flow_state(history),
        recommendations=resolve_recommendations_flow_state(history),
        memory=resolve_recommendations_memory(history),
    )
    return normalize_single_active_flow(snapshot, history)


def latest_bot_message(history: list[ConversationHistoryRow]) -> str | None:
    for row in history:
        if row.sender == Sender.BOT:
            return _string_or_none(row.content)
    return None


def resolve_recent_cancelled_order_id(history: list[ConversationHistoryRow]) -> str | None:
    """Order id do último turno de bot que mencionou um pedido cancelado."""

    for row in history:
        if row.sender != Sender.BOT or not row.content:
            continue
        if not _CANCELLED_PATTERN.search(row.content):
            continue
        match = _CANCELLED_ORDER_ID_PATTERN.search(row.content)
        if match:
            return match.group(1)
    return None


def resolve_last_resolved_order_id(history: list[ConversationHistoryRow]) -> str | None:
    """Último orderIdResolved escrito por um turno de pedidos."""

    for _, metadata in _bot_metadata(history):
        is_orders_turn = (
            metadata.get(ORDERS_DETERMINISTIC_REPLY_KEY) is True
            or metadata.get("intent") == "orders"
            or metadata.get("predictedIntent") == "orders"
        )
        if not is_orders_turn:
            continue
        order_id = metadata.get(ORDER_ID_RESOLVED_KEY)
        if isinstance(order_id, int) and not isinstance(order_id, bool):
            return str(order_id)
        resolved = _string_or_none(order_id)
        if resolved:
            return resolved
    return None


def _parse_snapshot_items(value: Any) -> list[CatalogSnapshotItem]:
    if not isinstance(value, list):
        return []
    items: list[CatalogSnapshotItem] = []
    for entry in value:
        if not isinstance(entry, dict):
            continue
        amount = entry.get("amount")
        if isinstance(amount, bool) or not isinstance(amount, int | float):
            continue
        item_id = _string_or_none(entry.get("id"))
        title = _string_or_none(entry.get("title"))
        product_url = _string_or_none(entry.get("productUrl"))
        currency = _string_or_none(entry.get("currency"))
        if not (item_id and title and product_url and currency):
            continue
        if not product_url.startswith(("http://", "https://")):
            continue
        thumbnail = _string_or_none(entry.get("thumbnailUrl"))
        items.append(
            CatalogSnapshotItem(
                id=item_id,
                title=title,
                product_url=product_url,
                currency=currency,
                amount=float(amount),
                **({"thumbnail_url": thumbnail} if thumbnail else {}),
            )
        )
    return items


def resolve_latest_catalog_snapshot(
    history: list[ConversationHistoryRow],
) -> list[CatalogSnapshotItem]:
    """Cards do último turno de bot com snapshot de catálogo não vazio."""

    for _, metadata in _bot_metadata(history):
        items = _parse_snapshot_items(metadata.get(CATALOG_SNAPSHOT_KEY))
        if items:
            return items
    return []
