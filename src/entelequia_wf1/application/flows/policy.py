"""Detecção de perguntas de política comercial e textos de política para o LLM.

A detecção é apenas observável (métrica + log): a resposta sempre passa pelo
LLM com os blocos de política injetados no contexto.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from entelequia_wf1.domain.enums import BusinessPolicyType, Intent
from entelequia_wf1.utils.text import normalize_text_strict

POLICY_FACTS: dict[BusinessPolicyType, str] = {
    BusinessPolicyType.RETURNS: (
        "Para cambios o devoluciones tenes 30 dias corridos desde la compra. El producto tiene "
        "que estar sin uso, con embalaje original y comprobante + numero de pedido. Una vez "
        "aprobado, el cambio o reintegro demora entre 7 y 10 dias habiles. Si llego danado por "
        "envio, hace el reclamo dentro de 48 horas con fotos."
    ),
    BusinessPolicyType.RESERVATIONS: (
        "Se pueden reservar productos por 48 horas con una sena del 30%. Las reservas puntuales "
        "se gestionan por WhatsApp (+54 9 11 6189-8533) o email."
    ),
    BusinessPolicyType.IMPORTS: (
        "Se pueden traer productos importados o bajo pedido especial. La demora estimada es de "
        "30 a 60 dias segun origen y se requiere una sena del 50%."
    ),
    BusinessPolicyType.EDITORIALS: (
        "Trabajamos con editoriales como Ivrea, Panini y Editorial Mil Suenos, ademas de "
        "material importado (segun disponibilidad)."
    ),
    BusinessPolicyType.INTERNATIONAL_SHIPPING: "Hacemos envios internacionales con DHL.",
    BusinessPolicyType.PROMOTIONS: (
        "Las promociones varian por vigencia, banco y medio de pago. Lo mas actualizado esta "
        "en la web y en el checkout."
    ),
    BusinessPolicyType.SHIPPING_COST: "El costo exacto de envio se calcula en checkout segun destino.",
    BusinessPolicyType.PICKUP_STORE: "Se puede retirar en sucursal y no tiene costo de envio.",
    BusinessPolicyType.STORE_HOURS: (
        "Horarios: Lunes a viernes 10:00 a 19:00 hs, Sabados 10:00 a 17:00 hs y Domingos "
        "cerrado. En feriados el horario puede variar."
    ),
    BusinessPolicyType.PAYMENT_METHODS: (
        "Medios de pago. En local: efectivo, credito, debito. Online: todas las tarjetas y "
        "transferencia."
    ),
}

STATIC_CONTEXT = (
    "Entelequia es una tienda argentina de mangas, comics, figuras, merchandising y juegos. "
    "Atiende por la web entelequia.com.ar, locales fisicos, WhatsApp (+54 9 11 6189-8533) y "
    "email info@entelequia.com.ar."
)

CRITICAL_POLICY_CONTEXT = (
    "No inventes precios, stock ni plazos. Si un dato no esta en la informacion disponible, "
    "decilo y ofrece los canales de soporte. Nunca pidas contrasenas ni codigos de acceso."
)

_POLICY_INTENTS: dict[BusinessPolicyType, Intent] = {
    BusinessPolicyType.RETURNS: Intent.TICKETS,
    BusinessPolicyType.RESERVATIONS: Intent.PRODUCTS,
    BusinessPolicyType.IMPORTS: Intent.PRODUCTS,
    BusinessPolicyType.EDITORIALS: Intent.PRODUCTS,
    BusinessPolicyType.INTERNATIONAL_SHIPPING: Intent.PAYMENT_SHIPPING,
    BusinessPolicyType.PROMOTIONS: Intent.PAYMENT_SHIPPING,
    BusinessPolicyType.SHIPPING_COST: Intent.PAYMENT_SHIPPING,
    BusinessPolicyType.PICKUP_STORE: Intent.PAYMENT_SHIPPING,
    BusinessPolicyType.STORE_HOURS: Intent.STORE_INFO,
    BusinessPolicyType.PAYMENT_METHODS: Intent.STORE_INFO,
}

RETURNS_TERMS = (
    "devolucion",
    "devolver",
    "cambio",
    "cambiar",
    "reintegro",
    "reembolso",
    "cancelacion",
    "cancelar",
)
RETURNS_DETAIL_TERMS = (
    "cuanto tiempo",
    "plazo",
    "dias",
    "condiciones",
    "politica",
    "como funciona",
    "se puede",
)
RETURNS_CASE_MANAGEMENT_TERMS = (
    "mi pedido",
    "este pedido",
    "quiero devolver",
    "quiero cambiar",
    "quiero cancelar",
    "tramitar",
    "gestionar",
    "iniciar",
    "reclamo",
)
RETURNS_TYPO_VARIANTS = ("devuelta", "devoluvion", "canvio", "canbio")
RESERVATION_TERMS = ("reservar", "reserva", "reservas")
IMPORT_TERMS = ("importado", "importados", "importar", "bajo pedido", "exterior", "de espana")
EDITORIAL_TERMS = ("editorial", "editoriales", "ivrea", "panini", "mil suenos")
INTERNATIONAL_SHIPPING_TERMS = (
    "envio internacional",
    "envios internacionales",
    "al exterior",
    "otro pais",
    "extranjero",
    "afuera del pais",
    "dhl",
)
SHIPPING_COST_TERMS = ("cuanto cuesta", "cuanto sale", "precio envio", "costo envio", "precio", "costo")
SHIPPING_CONTEXT_TERMS = ("envio", "enviar", "mandar")
PICKUP_STORE_TERMS = ("retirar", "retiro", "sucursal", "local", "tienda", "pick up")
STORE_HOURS_TERMS = ("horario", "hora", "atienden", "abierto", "cerrado", "abren", "cierran")
PAYMENT_METHODS_TERMS = (
    "medio de pago",
    "metodo de pago",
    "forma de pago",
    "como pago",
    "puedo pagar",
    "aceptan",
)
PROMOTIONS_TERMS = (
    "promocion",
    "promociones",
    "oferta",
    "ofertas",
    "descuento",
    "descuentos",
    "cyber",
    "black friday",
    "rebaja",
)

_ORDER_ID_LIKE_PATTERN = re.compile(r"\bpedido\s*(nro|numero|n)?\s*#?\s*\d{3,}\b")


@dataclass(slots=True)
class BusinessPolicyMatch:
    policy_type: BusinessPolicyType
    intent: Intent

    @property
    def facts(self) -> str:
        return POLICY_FACTS[self.policy_type]


def _contains_any(normalized: str, terms: tuple[str, ...]) -> bool:
    return any(term in normalized for term in terms)


def _match(policy_type: BusinessPolicyType) -> BusinessPolicyMatch:
    return BusinessPolicyMatch(policy_type, _POLICY_INTENTS[policy_type])


def detect_business_policy(text: str) -> BusinessPolicyMatch | None:
    """Primeira política que casa, na ordem de precedência fixa."""

    normalized = normalize_text_strict(text, keep="#")
    if not normalized:
        return None

    has_returns_signal = _contains_any(normalized, RETURNS_TERMS) or _contains_any(
        normalized, RETURNS_TYPO_VARIANTS
    )
    if (
        has_returns_signal
        and _contains_any(normalized, RETURNS_DETAIL_TERMS)
        and not _contains_any(normalized, RETURNS_CASE_MANAGEMENT_TERMS)
        and not _ORDER_ID_LIKE_PATTERN.search(normalized)
    ):
        return _match(BusinessPolicyType.RETURNS)

    if _contains_any(normalized, RESERVATION_TERMS):
        return _match(BusinessPolicyType.RESERVATIONS)
    if _contains_any(normalized, SHIPPING_COST_TERMS) and _contains_any(normalized, SHIPPING_CONTEXT_TERMS):
        return _match(BusinessPolicyType.SHIPPING_COST)
    if _contains_any(normalized, PAYMENT_METHODS_TERMS):
        return _match(BusinessPolicyType.PAYMENT_METHODS)
    if _contains_any(normalized, PICKUP_STORE_TERMS):
        return _match(BusinessPolicyType.PICKUP_STORE)
    if _contains_any(normalized, STORE_HOURS_TERMS):
        return _match(BusinessPolicyType.STORE_HOURS)
    if _contains_any(normalized, INTERNATIONAL_SHIPPING_TERMS):
        return _match(BusinessPolicyType.INTERNATIONAL_SHIPPING)
    if _contains_any(normalized, IMPORT_TERMS):
        return _match(BusinessPolicyType.IMPORTS)
    if _contains_any(normalized, EDITORIAL_TERMS):
        return _match(BusinessPolicyType.EDITORIALS)
    if _contains_any(normalized, PROMOTIONS_TERMS):
        return _match(BusinessPolicyType.PROMOTIONS)
    return None


def build_policy_facts_context(detected: BusinessPolicyType | None = None) -> str:
    """Fatos de política: o detectado primeiro, depois os demais."""

    ordered = list(POLICY_FACTS)
    if detected is not None:
        ordered.remove(detected)
        ordered.insert(0, detected)
    return "\n".join(f"- {POLICY_FACTS[policy]}" for policy in ordered)
