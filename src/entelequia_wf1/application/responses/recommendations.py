"""Prompts de desambiguação de recomendações."""

from __future__ import annotations

from entelequia_wf1.domain.enums import RecommendationFlowState
from entelequia_wf1.domain.models import Wf1FailureResponse
from entelequia_wf1.domain.recommendations import DEFAULT_TYPE_OPTIONS, format_category_label


def _suggested_options(suggested_types: list[str]) -> list[str]:
    labels = list(dict.fromkeys(format_category_label(type_key) for type_key in suggested_types))
    return labels or list(DEFAULT_TYPE_OPTIONS)


def build_franchise_disambiguation_response(
    franchise_label: str,
    suggested_types: list[str] | None = None,
    total_candidates: int | None = None,
) -> Wf1FailureResponse:
    """Pede o tipo de produto quando a franquia tem resultados demais."""

    if total_candidates is not None and total_candidates >= 0:
        header = f"Encontre {total_candidates} producto(s) de {franchise_label}."
    else:
        header = f"Tengo opciones de {franchise_label}."

    lines = [
        header,
        "Para recomendarte mejor, decime que tipo te interesa:",
        *(f"- {option}" for option in _suggested_options(suggested_types or [])),
        "",
        "Si ya sabes que tomo/numero buscas, decimelo en el mismo mensaje.",
    ]
    return Wf1FailureResponse(message="\n".join(lines))


def build_volume_disambiguation_response(
    franchise_label: str,
    category_label: str,
) -> Wf1FailureResponse:
    lines = [
        f"Perfecto, vamos con {category_label} de {franchise_label}.",
        "Para afinar la recomendacion, decime una opcion:",
        "- tomo/numero especifico (ej: tomo 3)",
        "- desde el inicio",
        "- ultimos lanzamientos",
    ]
    return Wf1FailureResponse(message="\n".join(lines))


def build_unknown_followup_response(
    franchise_label: str,
    state: RecommendationFlowState,
    category_label: str | None = None,
) -> Wf1FailureResponse:
    if state == RecommendationFlowState.AWAITING_VOLUME_DETAIL:
        return build_volume_disambiguation_response(
            franchise_label, category_label or "mangas/comics"
        )
    return build_franchise_disambiguation_response(franchise_label)
