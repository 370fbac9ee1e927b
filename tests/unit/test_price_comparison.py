"""Testes para comparação de preços e detecção de contestação."""

from __future__ import annotations

from entelequia_wf1.application.flow_state import RecommendationsMemorySnapshot
from entelequia_wf1.application.flows.pricing import (
    PRICE_CHALLENGE_CONTEXT_TYPE,
    append_price_challenge_block,
    build_price_comparison_message,
    build_price_requery_text,
    detect_price_challenge,
    resolve_price_comparison_intent,
    select_price_comparison_item,
)
from entelequia_wf1.domain.enums import PriceComparisonIntent
from entelequia_wf1.domain.models import CatalogSnapshotItem, ContextBlock
from tests.helpers.fakes import NOW_MS


def _item(item_id: str, amount: float) -> CatalogSnapshotItem:
    return CatalogSnapshotItem(
        id=item_id,
        title=f"Manga {item_id}",
        product_url=f"https://entelequia.com.ar/producto/{item_id}",
        currency="ARS",
        amount=amount,
    )


class TestPriceComparisonIntent:
    def test_cheapest(self) -> None:
        assert resolve_price_comparison_intent("Cual es el más barato?") == PriceComparisonIntent.CHEAPEST

    def test_most_expensive(self) -> None:
        assert resolve_price_comparison_intent("y el mas caro") == PriceComparisonIntent.MOST_EXPENSIVE

    def test_none(self) -> None:
        assert resolve_price_comparison_intent("hola") == PriceComparisonIntent.NONE
        assert resolve_price_comparison_intent("") == PriceComparisonIntent.NONE


class TestSelectItem:
    def test_cheapest_and_most_expensive(self) -> None:
        items = [_item("a", 5000), _item("b", 4000), _item("c", 6000)]

        cheapest = select_price_comparison_item(PriceComparisonIntent.CHEAPEST, items)
        most_expensive = select_price_comparison_item(PriceComparisonIntent.MOST_EXPENSIVE, items)

        assert cheapest is not None and cheapest.id == "b"
        assert most_expensive is not None and most_expensive.id == "c"

    def test_tie_keeps_first_seen(self) -> None:
        items = [_item("a", 4000), _item("b", 4000)]
        selected = select_price_comparison_item(PriceComparisonIntent.CHEAPEST, items)
        assert selected is not None and selected.id == "a"

    def test_empty_items(self) -> None:
        assert select_price_comparison_item(PriceComparisonIntent.CHEAPEST, []) is None

    def test_none_intent(self) -> None:
        assert select_price_comparison_item(PriceComparisonIntent.NONE, [_item("a", 1)]) is None


class TestMessages:
    def test_comparison_message_format(self) -> None:
        message = build_price_comparison_message(PriceComparisonIntent.CHEAPEST, _item("b", 4000), 3)
        assert message == 'De los 3 productos que te mostre, el mas barato es "Manga b" por $4000 ARS.'

    def test_requery_text_uses_readable_franchise(self) -> None:
        assert build_price_requery_text("one_piece") == (
            "mostrame opciones de one piece ordenadas por precio de menor a mayor"
        )


class TestPriceChallenge:
    def test_fresh_snapshot_requests_revalidation(self) -> None:
        memory = RecommendationsMemorySnapshot(snapshot_timestamp=NOW_MS - 60_000)
        challenge = detect_price_challenge("estas seguro?", memory, NOW_MS, last_bot_message="sale $4000")

        assert challenge.is_challenge is True
        assert challenge.should_revalidate is True
        assert challenge.original_answer == "sale $4000"

    def test_stale_snapshot_does_not_revalidate(self) -> None:
        memory = RecommendationsMemorySnapshot(snapshot_timestamp=NOW_MS - 600_000)
        challenge = detect_price_challenge("estas seguro?", memory, NOW_MS)

        assert challenge.is_challenge is True
        assert challenge.should_revalidate is False

    def test_plain_text_is_not_challenge(self) -> None:
        challenge = detect_price_challenge("gracias", RecommendationsMemorySnapshot(), NOW_MS)
        assert challenge.is_challenge is False

    def test_challenge_block_replaces_previous(self) -> None:
        blocks = [
            ContextBlock(context_type="products", context_payload={"items": []}),
            ContextBlock(context_type=PRICE_CHALLENGE_CONTEXT_TYPE, context_payload={"hint": "old"}),
        ]
        result = append_price_challenge_block(blocks)

        types = [block.context_type for block in result]
        assert types == ["products", PRICE_CHALLENGE_CONTEXT_TYPE]
        assert result[-1].context_payload["hint"] != "old"
