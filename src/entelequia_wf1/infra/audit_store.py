"""Persistência de auditoria por request_id."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from entelequia_wf1.domain.models import AuditRecord
from entelequia_wf1.domain.protocols.audit_store import AuditStoreProtocol
from entelequia_wf1.observability.logging import get_logger

if TYPE_CHECKING:
    from entelequia_wf1.config.settings import Settings

logger = get_logger(__name__)


class MemoryAuditStore(AuditStoreProtocol):
    """Store em memória (apenas dev/testes)."""

    def __init__(self) -> None:
        self.records: list[AuditRecord] = []

    async def write_audit(self, record: AuditRecord) -> None:
        self.records.append(record)

    def by_request_id(self, request_id: str) -> AuditRecord | None:
        for record in reversed(self.records):
            if record.request_id == request_id:
                return record
        return None


class FirestoreAuditStore(AuditStoreProtocol):
    """Store em Firestore (documento = request_id)."""

    def __init__(self, firestore_client: Any, collection: str = "wf1_audit") -> None:
        self._client = firestore_client
        self._collection = collection

    async def write_audit(self, record: AuditRecord) -> None:
        document = {**record.model_dump(mode="json"), "created_at": datetime.now(tz=UTC)}
        await self._client.collection(self._collection).document(record.request_id).set(document)
        logger.debug(
            "audit_written",
            extra={"status": record.status.value, "collection": self._collection},
        )


def create_audit_store(
    settings: Settings | None = None, firestore_client: Any | None = None
) -> AuditStoreProtocol:
    """Factory simples baseada em settings.audit_backend (memory | firestore)."""

    if settings is None:
        from entelequia_wf1.config.settings import get_settings

        settings = get_settings()

    backend = settings.audit_backend.lower()

    if backend == "memory":
        return MemoryAuditStore()

    if backend == "firestore":
        if firestore_client is None:
            from google.cloud import firestore

            firestore_client = firestore.AsyncClient(
                project=settings.firestore_project_id,
                database=settings.firestore_database_id,
            )
        return FirestoreAuditStore(firestore_client, collection=settings.audit_collection)

    raise ValueError(f"AUDIT_BACKEND inválido: {backend}")
