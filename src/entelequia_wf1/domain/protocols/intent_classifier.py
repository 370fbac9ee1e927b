"""Protocolo do classificador de intenção (colaborador externo)."""

from __future__ import annotations

from abc import ABC, abstractmethod

from entelequia_wf1.domain.models import IntentResult


class IntentClassifierProtocol(ABC):
    @abstractmethod
    async def classify(self, text: str) -> IntentResult:
        """Classifica o texto em {intent, entities, confidence, sentiment}."""
