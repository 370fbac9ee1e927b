"""Geradores de identificadores."""

from __future__ import annotations

import hashlib
import uuid


def new_request_id() -> str:
    """Gera um request_id único por turno."""

    return str(uuid.uuid4())


def idempotency_key(source: str, external_event_id: str) -> str:
    """Chave namespaced de idempotência: {source}:{external_event_id}."""

    return f"{source}:{external_event_id}"


def short_hash(value: str, length: int = 12) -> str:
    """Hash curto e estável para logar identificadores sem expor o valor bruto."""

    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:length]
