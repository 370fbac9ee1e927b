"""Classificação de escopo do domínio (sem consultar catálogo).

Ordem: hostil > intenção roteada específica (in_scope) > smalltalk curto >
termos do negócio (in_scope) > tema claramente alheio (out_of_scope).
Na dúvida, in_scope: o LLM decide.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from entelequia_wf1.domain.enums import DomainScope, Intent, SmalltalkKind
from entelequia_wf1.utils.text import normalize_text_strict

HOSTILE_PATTERNS = (
    re.compile(r"\binutil\b"),
    re.compile(r"\bpelotud[oa]\b"),
    re.compile(r"\bimbecil\b"),
    re.compile(r"\bestupid[oa]\b"),
    re.compile(r"\bbolud[oa]\b"),
    re.compile(r"\bidiota\b"),
    re.compile(r"\bmierda\b"),
    re.compile(r"\bcarajo\b"),
    re.compile(r"ignora\s+(las\s+)?instrucciones"),
    re.compile(r"actua\s+como\s+(admin|root|system)"),
    re.compile(r"dame\s+(acceso|permisos|todos\s+los\s+datos)"),
    re.compile(r"sos\s+un\s+(bot|robot|chatbot|desastre)"),
    re.compile(r"no\s+servis\s+para\s+nada"),
    re.compile(r"\b(viagra|casino|crypto|bitcoin)\b"),
)

OUT_OF_SCOPE_PATTERNS = (
    re.compile(r"\b(receta|cocina|comida|restaurante)\b"),
    re.compile(r"\b(clima|tiempo|temperatura|lluvia)\b"),
    re.compile(r"\b(politica|elecciones|gobierno)\b"),
    re.compile(r"\b(futbol|deportes|partido)\b"),
    re.compile(r"\b(medicina|medico|enfermedad|sintoma)\b"),
)

ENTELEQUIA_SCOPE_TERMS = (
    "entelequia",
    "producto",
    "catalogo",
    "manga",
    "comic",
    "figura",
    "merch",
    "funko",
    "poster",
    "stock",
    "precio",
    "promocion",
    "promociones",
    "oferta",
    "ofertas",
    "reserva",
    "reservar",
    "articulo",
    "articulos",
    "editorial",
    "editoriales",
    "importado",
    "importados",
    "exterior",
    "consultar",
    "evangelion",
    "naruto",
    "one piece",
    "chainsaw man",
    "demon slayer",
    "attack on titan",
    "shingeki",
    "boku no hero",
    "dragon ball",
    "jujutsu kaisen",
    "spy family",
    "kimetsu",
    "bleach",
    "hunter",
    "mercadolibre",
    "mercado libre",
    "pedido",
    "orden",
    "compra",
    "carrito",
    "checkout",
    "envio",
    "dhl",
    "correo",
    "andreani",
    "oca",
    "devolucion",
    "devolver",
    "cambio",
    "reintegro",
    "reembolso",
    "cancelacion",
    "cancelar",
    "pago",
    "cuota",
    "tarjeta",
    "transferencia",
    "mercado pago",
    "factura",
    "credito",
    "debito",
    "efectivo",
    "local",
    "sucursal",
    "direccion",
    "horario",
    "ubicacion",
    "whatsapp",
    "soporte",
    "reclamo",
    "ticket",
    "ayuda",
)

# Mensagem inteira, não trecho
SMALLTALK_PATTERNS: tuple[tuple[SmalltalkKind, re.Pattern[str]], ...] = (
    (
        SmalltalkKind.GREETING,
        re.compile(
            r"^(hola|holis|buenas|buen dia|buenos dias|buenas tardes|buenas noches|hey|que tal)"
            r"( (hola|buenas|que tal|como va|como estas|todo bien))*$"
        ),
    ),
    (
        SmalltalkKind.THANKS,
        re.compile(
            r"^((ok|dale|genial|perfecto|buenisimo) )?(muchas |mil )?gracias"
            r"( (por todo|por la ayuda|mil|crack))?$"
        ),
    ),
    (
        SmalltalkKind.FAREWELL,
        re.compile(r"^(chau|chao|adios|hasta luego|hasta pronto|nos vemos|saludos)( (gracias|chau))?$"),
    ),
    (
        SmalltalkKind.CONFIRMATION,
        re.compile(r"^(ok|oka|okey|dale|listo|joya|perfecto|genial|buenisimo|entendido|de acuerdo)$"),
    ),
)

HOSTILE_MESSAGE = (
    "Entiendo que puede haber frustracion. Si tenes una consulta especifica sobre productos, "
    "pedidos o envios, estoy para ayudarte."
)
OUT_OF_SCOPE_MESSAGE = (
    "Te ayudo con consultas de Entelequia (productos, pedidos, envios, pagos, locales y "
    "soporte). Si queres, arrancamos por ahi."
)
SMALLTALK_MESSAGES: dict[SmalltalkKind, str] = {
    SmalltalkKind.GREETING: (
        "Hola! Soy el asistente de Entelequia. Te ayudo con productos, pedidos, envios, pagos "
        "y locales. Que estas buscando?"
    ),
    SmalltalkKind.THANKS: "De nada! Si necesitas algo mas de Entelequia, escribime.",
    SmalltalkKind.FAREWELL: "Gracias por escribirnos. Cuando quieras, seguimos por aca.",
    SmalltalkKind.CONFIRMATION: (
        "Perfecto. Contame en que te puedo ayudar: productos, pedidos, envios o pagos."
    ),
}


@dataclass(slots=True)
class DomainScopeResolution:
    scope: DomainScope
    message: str | None = None
    smalltalk_kind: SmalltalkKind | None = None

    @property
    def is_in_scope(self) -> bool:
        return self.scope == DomainScope.IN_SCOPE


def _has_scope_signal(normalized: str) -> bool:
    return any(term in normalized for term in ENTELEQUIA_SCOPE_TERMS)


def resolve_smalltalk_kind(normalized: str) -> SmalltalkKind | None:
    for kind, pattern in SMALLTALK_PATTERNS:
        if pattern.match(normalized):
            return kind
    return None


def resolve_domain_scope(text: str, routed_intent: str) -> DomainScopeResolution:
    normalized = normalize_text_strict(text)

    if any(pattern.search(normalized) for pattern in HOSTILE_PATTERNS):
        return DomainScopeResolution(DomainScope.HOSTILE, HOSTILE_MESSAGE)

    if routed_intent != Intent.GENERAL:
        return DomainScopeResolution(DomainScope.IN_SCOPE)

    smalltalk = resolve_smalltalk_kind(normalized)
    if smalltalk is not None:
        return DomainScopeResolution(DomainScope.SMALLTALK, SMALLTALK_MESSAGES[smalltalk], smalltalk)

    if _has_scope_signal(normalized):
        return DomainScopeResolution(DomainScope.IN_SCOPE)

    if any(pattern.search(normalized) for pattern in OUT_OF_SCOPE_PATTERNS):
        return DomainScopeResolution(DomainScope.OUT_OF_SCOPE, OUT_OF_SCOPE_MESSAGE)

    return DomainScopeResolution(DomainScope.IN_SCOPE)
