"""Protocolo de auditoria por request_id."""

from __future__ import annotations

from abc import ABC, abstractmethod

from entelequia_wf1.domain.models import AuditRecord


class AuditStoreProtocol(ABC):
    @abstractmethod
    async def write_audit(self, record: AuditRecord) -> None:
        """Append de registro de auditoria."""
