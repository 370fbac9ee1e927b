"""Extração de order id e fatores de identidade para consulta sem sessão.

Aceita campos rotulados (``dni: 12345678``) e segmentos sem rótulo separados
por vírgula, ponto e vírgula ou quebra de linha. Fatores informados mas
inválidos são reportados separadamente dos ausentes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from entelequia_wf1.domain.models import OrderLookupIdentity

_ORDER_KEY = r"(?:order[_\s-]?id|pedido|orden|order)"
_PHONE_KEY = r"(?:telefono|tel[eé]fono|celular|whatsapp|phone)"

ORDER_ID_BY_KEY_PATTERN = re.compile(rf"\b{_ORDER_KEY}\s*[:=#-]?\s*(\d{{1,12}})\b", re.IGNORECASE)
ORDER_ID_BY_HASH_PATTERN = re.compile(r"#\s*(\d{1,12})\b")
DNI_PATTERN = re.compile(r"\b(?:dni|documento)\s*[:=#-]?\s*([0-9.\-\s]{1,20})\b", re.IGNORECASE)
PHONE_PATTERN = re.compile(rf"\b{_PHONE_KEY}\s*[:=#-]?\s*([+0-9()\-.\s]{{1,30}})\b", re.IGNORECASE)
NAME_PATTERN = re.compile(r"\b(?:nombre|name)\s*[:=#-]?\s*([^,;\n]+)", re.IGNORECASE)
LAST_NAME_PATTERN = re.compile(r"\b(?:apellido|last[_\s-]?name)\s*[:=#-]?\s*([^,;\n]+)", re.IGNORECASE)
NAME_VALUE_PATTERN = re.compile(r"^[a-zA-ZáéíóúÁÉÍÓÚñÑ'\-\s]{1,50}$")
PHONE_VALUE_PATTERN = re.compile(r"^\+?\d{8,20}$")
DNI_VALUE_PATTERN = re.compile(r"^\d{7,8}$")

_LABELED_SEGMENT_PATTERN = re.compile(
    rf"\b(?:{_ORDER_KEY}|dni|documento|{_PHONE_KEY}|nombre|name|apellido|last[_\s-]?name)\b",
    re.IGNORECASE,
)
_LABEL_STRIP_PATTERNS = (
    re.compile(rf"\b{_ORDER_KEY}\s*[:=#-]?\s*#?\s*\d{{1,12}}\b", re.IGNORECASE),
    re.compile(r"\b(?:dni|documento)\s*[:=#-]?\s*[0-9.\-\s]{1,20}\b", re.IGNORECASE),
    re.compile(rf"\b{_PHONE_KEY}\s*[:=#-]?\s*[+0-9()\-.\s]{{1,30}}\b", re.IGNORECASE),
    re.compile(r"\b(?:nombre|name|apellido|last[_\s-]?name)\s*[:=#-]?\s*", re.IGNORECASE),
)

NAME_STOP_WORDS = frozenset(
    {
        "quiero",
        "saber",
        "estado",
        "pedido",
        "orden",
        "donde",
        "esta",
        "tenes",
        "tienes",
        "gracias",
        "ayuda",
        "consultar",
        "consulta",
        "favor",
        "dale",
        "nro",
        "numero",
        "tomo",
        "manga",
        "comic",
        "producto",
        "necesito",
        "mi",
    }
)

IDENTITY_FACTORS = ("dni", "name", "last_name", "phone")


@dataclass(slots=True)
class OrderLookupRequest:
    """Resultado da extração: id do pedido, identidade e fatores inválidos."""

    order_id: int | None = None
    identity: OrderLookupIdentity = field(default_factory=OrderLookupIdentity)
    provided_factors: int = 0
    invalid_factors: list[str] = field(default_factory=list)

    @property
    def has_lookup_signals(self) -> bool:
        """Qualquer sinal de consulta: order id, fator válido ou fator inválido."""

        return (
            self.order_id is not None
            or self.provided_factors > 0
            or len(self.invalid_factors) > 0
        )

    @property
    def is_complete(self) -> bool:
        return self.order_id is not None and self.provided_factors >= 2


@dataclass(slots=True)
class _FactorValue:
    value: str | None = None
    invalid: bool = False


def _to_positive_int(value: str | None, max_digits: int = 12) -> int | None:
    if value is None:
        return None
    normalized = value.strip()
    if not normalized.isdigit() or len(normalized) > max_digits:
        return None
    parsed = int(normalized)
    return parsed if parsed > 0 else None


def _order_id_from(text: str) -> int | None:
    for pattern in (ORDER_ID_BY_KEY_PATTERN, ORDER_ID_BY_HASH_PATTERN):
        match = pattern.search(text)
        parsed = _to_positive_int(match.group(1)) if match else None
        if parsed:
            return parsed
    return None


def resolve_lookup_order_id(text: str, entities: list[str]) -> int | None:
    parsed = _order_id_from(text)
    if parsed:
        return parsed

    trimmed = text.strip()
    if re.fullmatch(r"\d{1,12}", trimmed):
        return _to_positive_int(trimmed)

    for entity in entities:
        if isinstance(entity, str):
            parsed = _order_id_from(entity)
            if parsed:
                return parsed
    return None


def _extract_value(text: str, pattern: re.Pattern[str]) -> str | None:
    match = pattern.search(text)
    if not match or not match.group(1):
        return None
    trimmed = match.group(1).strip()
    return trimmed or None


def _normalize_phone_candidate(value: str) -> str:
    return re.sub(r"[().\-\s]", "", value).strip()


def _resolve_dni(value: str | None) -> _FactorValue:
    if not value:
        return _FactorValue()
    digits = re.sub(r"\D+", "", value)
    if DNI_VALUE_PATTERN.match(digits):
        return _FactorValue(value=digits)
    return _FactorValue(invalid=True)


def _resolve_name(value: str | None) -> _FactorValue:
    if not value:
        return _FactorValue()
    normalized = " ".join(value.split())
    if NAME_VALUE_PATTERN.match(normalized):
        return _FactorValue(value=normalized)
    return _FactorValue(invalid=True)


def _resolve_phone(value: str | None) -> _FactorValue:
    if not value:
        return _FactorValue()
    normalized = _normalize_phone_candidate(value)
    if PHONE_VALUE_PATTERN.match(normalized):
        return _FactorValue(value=normalized)
    return _FactorValue(invalid=True)


def _split_segments(text: str) -> list[str]:
    segments = [segment.strip() for segment in re.split(r"[,;\n]+", text)]
    segments = [segment for segment in segments if segment]
    if len(segments) > 1:
        return segments
    trimmed = text.strip()
    return [trimmed] if trimmed else []


def _name_parts_from_segment(value: str) -> tuple[str | None, str | None]:
    """Segmento com exatamente duas palavras válidas vira (nome, sobrenome)."""

    normalized = " ".join(value.split())
    if not NAME_VALUE_PATTERN.match(normalized):
        return None, None

    words = normalized.split(" ")
    if len(words) != 2:
        return None, None

    first_name, last_name = words
    if first_name.lower() in NAME_STOP_WORDS or last_name.lower() in NAME_STOP_WORDS:
        return None, None

    return (
        first_name if NAME_VALUE_PATTERN.match(first_name) else None,
        last_name if NAME_VALUE_PATTERN.match(last_name) else None,
    )


def _name_parts_from_labeled_segment(value: str) -> tuple[str | None, str | None]:
    stripped = value
    for pattern in _LABEL_STRIP_PATTERNS:
        stripped = pattern.sub(" ", stripped)
    return _name_parts_from_segment(stripped)


def _resolve_unlabeled_identity(
    text: str,
    order_id: int | None,
    existing: dict[str, str | None],
) -> dict[str, str | None]:
    resolved = dict(existing)
    order_id_value = str(order_id) if order_id is not None else None

    for segment in _split_segments(text):
        if _LABELED_SEGMENT_PATTERN.search(segment):
            if not resolved["name"] or not resolved["last_name"]:
                name, last_name = _name_parts_from_labeled_segment(segment)
                resolved["name"] = resolved["name"] or name
                resolved["last_name"] = resolved["last_name"] or last_name
            continue

        digits = re.sub(r"\D+", "", segment)
        if digits:
            if order_id_value and digits == order_id_value:
                continue
            if not resolved["dni"] and DNI_VALUE_PATTERN.match(digits):
                resolved["dni"] = digits
                continue
            if not resolved["phone"]:
                phone_candidate = _normalize_phone_candidate(segment)
                if phone_candidate and PHONE_VALUE_PATTERN.match(phone_candidate):
                    resolved["phone"] = phone_candidate
                    continue

        if not resolved["name"] or not resolved["last_name"]:
            name, last_name = _name_parts_from_segment(segment)
            resolved["name"] = resolved["name"] or name
            resolved["last_name"] = resolved["last_name"] or last_name

    return resolved


def resolve_order_lookup_request(text: str, entities: list[str] | None = None) -> OrderLookupRequest:
    """Extrai order id, identidade e fatores inválidos do texto do usuário."""

    order_id = resolve_lookup_order_id(text, entities or [])
    labeled = {
        "dni": _resolve_dni(_extract_value(text, DNI_PATTERN)),
        "name": _resolve_name(_extract_value(text, NAME_PATTERN)),
        "last_name": _resolve_name(_extract_value(text, LAST_NAME_PATTERN)),
        "phone": _resolve_phone(_extract_value(text, PHONE_PATTERN)),
    }

    resolved = _resolve_unlabeled_identity(
        text,
        order_id,
        {factor: labeled[factor].value for factor in IDENTITY_FACTORS},
    )
    identity = OrderLookupIdentity(**resolved)

    return OrderLookupRequest(
        order_id=order_id,
        identity=identity,
        provided_factors=sum(1 for factor in IDENTITY_FACTORS if resolved[factor]),
        invalid_factors=[factor for factor in IDENTITY_FACTORS if labeled[factor].invalid],
    )
