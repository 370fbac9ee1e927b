"""Snapshot dos cards de catálogo exibidos no turno.

O snapshot é persistido no metadata do bot e relido em turnos seguintes
para comparar preços sem nova consulta ao catálogo.
"""

from __future__ import annotations

from typing import Any

from entelequia_wf1.domain.models import CatalogSnapshotItem, ContextBlock
from entelequia_wf1.domain.money import parse_money

CATALOG_SNAPSHOT_MAX_ITEMS = 6

# (context_type, chave da lista no payload), em ordem de preferência
_CATALOG_SOURCES: tuple[tuple[str, str], ...] = (
    ("products", "items"),
    ("recommendations", "products"),
)


def _string(value: Any) -> str | None:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    if not isinstance(value, str):
        return None
    return value.strip() or None


def _http_url(value: Any) -> str | None:
    url = _string(value)
    if url and url.startswith(("http://", "https://")):
        return url
    return None


def _to_snapshot_item(record: dict[str, Any]) -> CatalogSnapshotItem | None:
    title = _string(record.get("title"))
    product_url = _http_url(record.get("url"))
    price = parse_money(record.get("priceWithDiscount")) or parse_money(record.get("price"))
    if not title or not product_url or price is None:
        return None

    item_id = _string(record.get("id")) or _string(record.get("slug")) or product_url
    thumbnail = _http_url(record.get("imageUrl")) or _http_url(record.get("thumbnailUrl"))
    item = CatalogSnapshotItem(
        id=item_id,
        title=title,
        product_url=product_url,
        currency=price.currency,
        amount=price.amount,
    )
    if thumbnail and thumbnail.startswith("https://"):
        item.thumbnail_url = thumbnail
    return item


def build_catalog_snapshot(blocks: list[ContextBlock]) -> list[CatalogSnapshotItem]:
    """Cards do primeiro bloco de catálogo com itens válidos."""

    for context_type, list_key in _CATALOG_SOURCES:
        block = next((entry for entry in blocks if entry.context_type == context_type), None)
        if block is None:
            continue
        raw_items = block.context_payload.get(list_key)
        if not isinstance(raw_items, list):
            continue
        items = [
            item
            for item in (_to_snapshot_item(raw) for raw in raw_items if isinstance(raw, dict))
            if item is not None
        ]
        if items:
            return items[:CATALOG_SNAPSHOT_MAX_ITEMS]
    return []


def serialize_catalog_snapshot(items: list[CatalogSnapshotItem]) -> list[dict[str, Any]]:
    return [item.model_dump(by_alias=True) for item in items]
