"""Sanitização da mensagem final antes de persistir e responder.

Reescreve jargão técnico, remove bullets vazios e evita repetir a saudação
quando o turno anterior do bot já começou com "Hola".
"""

from __future__ import annotations

import re
from dataclasses import dataclass

GENERIC_PROCESSING_ERROR_REWRITE = (
    "Se complico esta consulta. Si queres, la intento de nuevo o te ayudo por otro camino."
)

# Ordem importa: frases específicas antes das palavras soltas
_JARGON_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\bno pudimos procesar tu mensaje\b\.?", re.IGNORECASE), GENERIC_PROCESSING_ERROR_REWRITE),
    (
        re.compile(r"\bno pude procesar (?:tu mensaje|esta consulta|eso)\b\.?", re.IGNORECASE),
        GENERIC_PROCESSING_ERROR_REWRITE,
    ),
    (re.compile(r"\ben el contexto\b", re.IGNORECASE), "ahora"),
    (re.compile(r"\bsin contexto adicional\b", re.IGNORECASE), "con los datos disponibles por ahora"),
    (re.compile(r"\bcontexto\b", re.IGNORECASE), "informacion disponible"),
    (re.compile(r"\bprompts?\b", re.IGNORECASE), "instrucciones internas"),
    (re.compile(r"\bapis?\b", re.IGNORECASE), "servicio"),
    (re.compile(r"\bendpoints?\b", re.IGNORECASE), "servicio"),
    (re.compile(r"\bjson\b", re.IGNORECASE), "datos"),
    (re.compile(r"\btokens?\b", re.IGNORECASE), "credenciales"),
    (re.compile(r"\bfallback\b", re.IGNORECASE), "alternativa"),
    (re.compile(r"\btimeout\b", re.IGNORECASE), "demora"),
    (re.compile(r"\blatencia\b", re.IGNORECASE), "demora"),
    (re.compile(r"\bmodelo (?:de ia|llm|del sistema)\b", re.IGNORECASE), "asistente"),
)

_EMPTY_BULLET_PATTERN = re.compile(r"^\s*[-*]\s+[^:\n]+:\s*$", re.MULTILINE)
_GREETING_PATTERN = re.compile(r"^hola\b", re.IGNORECASE)
_LEADING_GREETING_PATTERN = re.compile(
    r"^hola(?:\s+(?:buenas|que tal|como va))?[\s,:.!-]*",
    re.IGNORECASE,
)
_INLINE_SPACES_PATTERN = re.compile(r"[ \t]+")
_EXTRA_BLANK_LINES_PATTERN = re.compile(r"\n{3,}")


@dataclass(slots=True)
class SanitizedMessage:
    message: str
    rewritten: bool


def _normalize_whitespace(text: str) -> str:
    lines = [_INLINE_SPACES_PATTERN.sub(" ", line).strip() for line in text.split("\n")]
    return _EXTRA_BLANK_LINES_PATTERN.sub("\n\n", "\n".join(lines)).strip()


def _rewrite_jargon(text: str) -> str:
    result = text
    for pattern, replacement in _JARGON_RULES:
        result = pattern.sub(replacement, result)
    return result


def _dedupe_greeting(text: str, previous_bot_message: str | None) -> str:
    if not previous_bot_message:
        return text
    if not (_GREETING_PATTERN.match(text) and _GREETING_PATTERN.match(previous_bot_message.strip())):
        return text

    stripped = _LEADING_GREETING_PATTERN.sub("", text, count=1).strip()
    if not stripped:
        return text
    return stripped[0].upper() + stripped[1:]


def sanitize_output_message(message: str, previous_bot_message: str | None = None) -> SanitizedMessage:
    """Retorna a mensagem sanitizada e se houve reescrita de jargão."""

    normalized = _normalize_whitespace(message)
    rewritten_jargon = _rewrite_jargon(normalized)
    rewritten = rewritten_jargon != normalized

    cleaned = _EMPTY_BULLET_PATTERN.sub("", rewritten_jargon)
    cleaned = _normalize_whitespace(cleaned)
    cleaned = _dedupe_greeting(cleaned, previous_bot_message)

    if not cleaned:
        # Nunca responde vazio por causa da limpeza
        return SanitizedMessage(message=normalized, rewritten=False)
    return SanitizedMessage(message=cleaned, rewritten=rewritten)
