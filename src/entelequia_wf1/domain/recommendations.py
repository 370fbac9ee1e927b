"""Helpers determinísticos de recomendações (franquia, tipo, sinais de tomo).

Tudo aqui é puro: nenhuma consulta ao catálogo, apenas matching de termos
sobre texto normalizado.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from entelequia_wf1.utils.text import normalize_for_token, normalize_text_for_search

RECOMMENDATION_FRANCHISE_ALIASES: dict[str, tuple[str, ...]] = {
    "dragon_ball": ("dragon ball", "dragonball", "dbz", "dragon ball z", "dragon ball super", "goku"),
    "naruto": ("naruto", "naruto shippuden", "konoha", "uzumaki", "sasuke"),
    "one_piece": ("one piece", "onepiece", "luffy", "straw hat"),
    "pokemon": ("pokemon", "pikachu", "charizard"),
    "attack_on_titan": ("attack on titan", "aot", "shingeki no kyojin", "eren"),
    "demon_slayer": ("demon slayer", "kimetsu no yaiba", "tanjiro", "hashira"),
    "jujutsu_kaisen": ("jujutsu kaisen", "jjk", "gojo", "sukuna"),
    "my_hero_academia": ("my hero academia", "mha", "boku no hero", "deku", "all might"),
    "hunter_x_hunter": ("hunter x hunter", "hxh", "killua"),
    "bleach": ("bleach", "ichigo", "zanpakuto"),
    "fairy_tail": ("fairy tail", "natsu"),
    "chainsaw_man": ("chainsaw man", "denji", "makima"),
    "solo_leveling": ("solo leveling", "sung jinwoo"),
    "blue_lock": ("blue lock", "isagi"),
    "tokyo_ghoul": ("tokyo ghoul", "kaneki"),
    "jojo": ("jojo", "jojo bizarre adventure", "jotaro"),
    "batman": ("batman", "dark knight", "bruce wayne"),
    "spiderman": ("spider man", "spiderman", "spidey", "peter parker"),
    "evangelion": ("evangelion", "neon genesis evangelion", "shinji"),
    "death_note": ("death note", "light yagami", "ryuk"),
    "spy_x_family": ("spy x family", "spy family", "anya"),
    "sailor_moon": ("sailor moon", "usagi"),
    "berserk": ("berserk", "griffith"),
    "star_wars": ("star wars", "darth vader", "jedi"),
    "harry_potter": ("harry potter", "hogwarts", "voldemort"),
}

RECOMMENDATION_TYPE_TERMS: dict[str, tuple[str, ...]] = {
    "mangas": (
        "manga",
        "mangas",
        "tomo",
        "tomos",
        "volumen",
        "volumenes",
        "shonen",
        "seinen",
        "shojo",
        "josei",
        "manhwa",
    ),
    "comics": ("comic", "comics", "grapa", "tpb", "marvel", "dc comics"),
    "libros": ("libro", "libros", "novela", "novelas", "artbook"),
    "tarot_y_magia": ("tarot", "oraculo", "grimorio"),
    "juego_tcg_magic": ("magic", "mtg", "magic the gathering"),
    "juego_tcg_yugioh": ("yu gi oh", "yugioh", "ygo"),
    "juego_tcg_pokemon": ("pokemon cartas", "pokemon tcg", "pokemon booster"),
    "juego_tcg_digimon": ("digimon",),
    "juego_tcg_accesorios": ("playmat", "sleeve", "sleeves", "folio", "deck box", "binder"),
    "juego_tcg_generico": ("tcg", "carta", "cartas", "booster", "juego de cartas"),
    "juego_mesa": ("juego de mesa", "juegos de mesa", "boardgame", "puzzle"),
    "juego_rol": ("juego de rol", "juegos de rol", "rpg", "dnd"),
    "juego": ("juego", "juegos"),
    "merch_funko": ("funko", "funko pop", "funkos"),
    "merch_peluches": ("peluche", "peluches", "plush"),
    "merch_ropa_remeras": ("remera", "remeras", "camiseta"),
    "merch_ropa_buzos": ("buzo", "buzos", "hoodie"),
    "merch_ropa_gorras": ("gorra", "gorras", "gorro"),
    "merch_ropa_generico": ("ropa", "prenda", "accesorios"),
    "merch_figuras": ("figura", "figuras", "estatua", "coleccionables", "coleccionable"),
    "merch": ("merch", "merchandising"),
}

RECOMMENDATION_TYPE_PRIORITY: tuple[str, ...] = (
    "juego_tcg_magic",
    "juego_tcg_yugioh",
    "juego_tcg_pokemon",
    "juego_tcg_digimon",
    "juego_tcg_accesorios",
    "juego_tcg_generico",
    "juego_mesa",
    "juego_rol",
    "merch_funko",
    "merch_peluches",
    "merch_ropa_remeras",
    "merch_ropa_buzos",
    "merch_ropa_gorras",
    "merch_figuras",
    "merch_ropa_generico",
    "mangas",
    "comics",
    "libros",
    "tarot_y_magia",
    "juego",
    "merch",
)

VOLUME_SIGNAL_PATTERN = re.compile(r"\b(?:tomo|tomos|vol|volumen|volumenes|nro|numero|num|#)\s*(\d{1,3})\b")
LATEST_SIGNAL_PATTERN = re.compile(r"\b(?:ultim[oa]s?|recientes|nuev[oa]s?|lanzamientos?)\b")
START_SIGNAL_PATTERN = re.compile(
    r"\b(?:desde\s+el\s+inicio|arrancar|empezar|principio|primer\s+tomo|tomo\s*1)\b"
)

POLITE_CLOSING_PATTERN = re.compile(
    r"^(?:gracias(?:\s+por\s+la\s+ayuda)?|muchas\s+gracias|ok\s+gracias|genial\s+gracias"
    r"|perfecto\s+gracias|dale\s+gracias)\s*$",
    re.IGNORECASE,
)

DEFAULT_TYPE_OPTIONS: tuple[str, ...] = (
    "mangas/comics",
    "figuras y coleccionables",
    "ropa/accesorios",
)

_FIGURE_TYPES = frozenset({"merch_figuras", "merch_funko", "merch_peluches"})


@dataclass(slots=True)
class VolumeSignals:
    has_volume_signal: bool
    volume_number: int | None
    wants_latest: bool
    wants_start: bool


@dataclass(slots=True)
class RecommendationFollowup:
    """Sinais extraídos de uma resposta curta durante a desambiguação."""

    has_signals: bool
    requested_type: str | None
    volume_number: int | None
    wants_latest: bool
    wants_start: bool
    mentioned_franchise: str | None


def _contains_term(normalized_text: str, term: str) -> bool:
    if not term:
        return False
    return re.search(rf"(^|\s){re.escape(term)}(\s|$)", normalized_text) is not None


def _candidates(text: str, entities: list[str] | None) -> list[str]:
    values = [text, *(entities or [])]
    return [
        normalize_text_for_search(value)
        for value in values
        if isinstance(value, str) and value.strip()
    ]


def resolve_franchise_keywords(text: str, entities: list[str] | None = None) -> list[str]:
    """Franquias mencionadas, ordenadas por número de aliases casados."""

    candidates = _candidates(text, entities)
    if not candidates:
        return []

    scored: list[tuple[str, int]] = []
    for key, aliases in RECOMMENDATION_FRANCHISE_ALIASES.items():
        score = sum(
            1 for candidate in candidates for alias in aliases if _contains_term(candidate, alias)
        )
        if score > 0:
            scored.append((key, score))

    scored.sort(key=lambda entry: (-entry[1], entry[0]))
    return [key for key, _ in scored]


def detect_recommendation_type(text: str) -> str | None:
    normalized = normalize_text_for_search(text)
    if not normalized:
        return None
    for type_key in RECOMMENDATION_TYPE_PRIORITY:
        if any(_contains_term(normalized, term) for term in RECOMMENDATION_TYPE_TERMS[type_key]):
            return type_key
    return None


def detect_recommendation_types(text: str, entities: list[str] | None = None) -> list[str]:
    found = {
        detected
        for candidate in [text, *(entities or [])]
        if isinstance(candidate, str) and candidate.strip()
        for detected in [detect_recommendation_type(candidate)]
        if detected
    }
    return [type_key for type_key in RECOMMENDATION_TYPE_PRIORITY if type_key in found]


def resolve_volume_signals(text: str) -> VolumeSignals:
    normalized = normalize_for_token(text)
    volume_match = VOLUME_SIGNAL_PATTERN.search(normalized)
    wants_latest = LATEST_SIGNAL_PATTERN.search(normalized) is not None
    wants_start = START_SIGNAL_PATTERN.search(normalized) is not None
    volume_number = int(volume_match.group(1)) if volume_match else None
    return VolumeSignals(
        has_volume_signal=volume_match is not None or wants_latest or wants_start,
        volume_number=volume_number,
        wants_latest=wants_latest,
        wants_start=wants_start,
    )


def resolve_followup(text: str, entities: list[str] | None = None) -> RecommendationFollowup:
    types = detect_recommendation_types(text, entities)
    franchises = resolve_franchise_keywords(text, entities)
    volume = resolve_volume_signals(text)
    requested_type = types[0] if types else None
    mentioned_franchise = franchises[0] if franchises else None
    return RecommendationFollowup(
        has_signals=bool(requested_type) or volume.has_volume_signal or bool(mentioned_franchise),
        requested_type=requested_type,
        volume_number=volume.volume_number,
        wants_latest=volume.wants_latest,
        wants_start=volume.wants_start,
        mentioned_franchise=mentioned_franchise,
    )


def is_polite_closing(text: str) -> bool:
    return POLITE_CLOSING_PATTERN.match(" ".join(text.split())) is not None


def format_category_label(type_key: str | None) -> str:
    if type_key in ("mangas", "comics", "libros"):
        return type_key
    if type_key in _FIGURE_TYPES:
        return "figuras y coleccionables"
    if type_key and type_key.startswith("merch_ropa_"):
        return "ropa y accesorios"
    if type_key and type_key.startswith("juego"):
        return "juegos"
    return "productos"


def format_franchise_label(franchise: str) -> str:
    return franchise.replace("_", " ")


def build_recommendations_rewrite_text(
    franchise: str,
    category_hint: str | None,
    volume_number: int | None = None,
    wants_latest: bool = False,
    wants_start: bool = False,
) -> str:
    """Reescreve a resposta curta em uma consulta completa para o enriquecimento."""

    base = f"recomendame {format_category_label(category_hint)} de {format_franchise_label(franchise)}"
    if volume_number:
        return f"{base} tomo {volume_number}"
    if wants_start:
        return f"{base} desde el inicio"
    if wants_latest:
        return f"{base} ultimos lanzamientos"
    return base
