"""Resolução da resposta do turno (fluxos → fallbacks → contexto + LLM).

Cada estágio recebe (entrada, estado) e devolve a resposta ou None; o
primeiro que responde encerra a resolução. O estado resultante é consumido
uma única vez pelo finalizador.
"""

from __future__ import annotations

from entelequia_wf1.application.resolution_state import (
    ResolutionDependencies,
    ResolutionInput,
    ResolutionState,
)
from entelequia_wf1.application.resolve_fallback import (
    resolve_context_and_llm,
    resolve_fallback_cascade,
)
from entelequia_wf1.application.resolve_flows import resolve_flow_branches
from entelequia_wf1.observability.logging import get_logger

logger = get_logger(__name__)


async def resolve_response(
    resolution_input: ResolutionInput,
    deps: ResolutionDependencies,
) -> ResolutionState:
    state = ResolutionState.from_input(resolution_input)

    response = await resolve_flow_branches(resolution_input, state, deps)
    stage = "flows"

    if response is None:
        response = resolve_fallback_cascade(resolution_input, state, deps)
        stage = "fallback"

    if response is None:
        response = await resolve_context_and_llm(resolution_input, state, deps)
        stage = "context_llm"

    state.response = response
    logger.info(
        "response_resolved",
        extra={
            "stage": stage,
            "intent": state.effective_intent,
            "ok": response.ok,
            "touched_flows": sorted(state.touched_flows),
            "pipeline_fallback_count": state.pipeline_fallback_count,
        },
    )
    return state
