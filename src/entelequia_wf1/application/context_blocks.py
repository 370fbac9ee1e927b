"""Montagem final dos blocos de contexto enviados ao LLM.

Duas estratégias:
- Resposta de pedidos autenticada: só blocos de pedido, cada um truncado ao
  orçamento compartilhado (orçamento // quantidade de blocos).
- Demais respostas: blocos de política fixos anexados ao final, substituindo
  qualquer bloco do mesmo tipo vindo do enriquecimento.
"""

from __future__ import annotations

import json

from entelequia_wf1.application.flows.policy import (
    CRITICAL_POLICY_CONTEXT,
    STATIC_CONTEXT,
    build_policy_facts_context,
)
from entelequia_wf1.domain.enums import BusinessPolicyType
from entelequia_wf1.domain.models import ContextBlock

ORDER_CONTEXT_TYPES = frozenset({"orders", "order_detail"})
POLICY_CONTEXT_TYPES = ("static_context", "policy_facts", "critical_policy")
TRUNCATION_SUFFIX = "..."


def _truncate(value: str, limit: int) -> str:
    if len(value) <= limit:
        return value
    keep = max(1, limit - len(TRUNCATION_SUFFIX))
    return value[:keep] + TRUNCATION_SUFFIX


def _serialize_payload(block: ContextBlock) -> str:
    ai_context = block.context_payload.get("aiContext")
    if isinstance(ai_context, str):
        return ai_context
    return json.dumps(block.context_payload, ensure_ascii=False, default=str)


def build_orders_minimal_context(blocks: list[ContextBlock], char_budget: int) -> list[ContextBlock]:
    """Mantém só blocos de pedido, com aiContext truncado ao orçamento por bloco."""

    order_blocks = [block for block in blocks if block.context_type in ORDER_CONTEXT_TYPES]
    if not order_blocks:
        return []

    per_block = max(1, char_budget // len(order_blocks))
    minimal: list[ContextBlock] = []
    for block in order_blocks:
        truncated = _truncate(_serialize_payload(block), per_block)
        minimal.append(
            ContextBlock(context_type=block.context_type, context_payload={"aiContext": truncated})
        )
    return minimal


def append_policy_context(
    blocks: list[ContextBlock],
    detected_policy: BusinessPolicyType | None = None,
) -> list[ContextBlock]:
    kept = [block for block in blocks if block.context_type not in POLICY_CONTEXT_TYPES]
    policy_texts = {
        "static_context": STATIC_CONTEXT,
        "policy_facts": build_policy_facts_context(detected_policy),
        "critical_policy": CRITICAL_POLICY_CONTEXT,
    }
    return [
        *kept,
        *(
            ContextBlock(context_type=context_type, context_payload={"context": policy_texts[context_type]})
            for context_type in POLICY_CONTEXT_TYPES
        ),
    ]


def context_types(blocks: list[ContextBlock]) -> list[str]:
    return [block.context_type for block in blocks]
