from __future__ import annotations

import pytest

from entelequia_wf1.config.settings import get_settings
from entelequia_wf1.infra.audit_store import MemoryAuditStore
from entelequia_wf1.infra.chat_persistence_memory import InMemoryChatPersistence
from entelequia_wf1.infra.idempotency import InMemoryIdempotencyStore
from tests.helpers.fakes import (
    FakeContextEnrichment,
    FakeLlm,
    FakeOrderLookup,
    FakeOrdersData,
    make_metrics,
    make_settings,
)


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def settings():
    return make_settings()


@pytest.fixture()
def metrics():
    return make_metrics()


@pytest.fixture()
def llm():
    return FakeLlm()


@pytest.fixture()
def context_enrichment():
    return FakeContextEnrichment()


@pytest.fixture()
def order_lookup():
    return FakeOrderLookup()


@pytest.fixture()
def orders_data():
    return FakeOrdersData()


@pytest.fixture()
def chat_persistence():
    return InMemoryChatPersistence()


@pytest.fixture()
def idempotency():
    return InMemoryIdempotencyStore()


@pytest.fixture()
def audit_store():
    return MemoryAuditStore()
