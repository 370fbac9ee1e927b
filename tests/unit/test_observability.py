"""Testes para logging estruturado, contexto do turno e métricas."""

from __future__ import annotations

import json
import logging
import sys
from unittest.mock import MagicMock

from prometheus_client import CollectorRegistry

from entelequia_wf1.observability.context import (
    get_correlation_id,
    get_turn_log_context,
    turn_log_scope,
)
from entelequia_wf1.observability.logging import (
    REDACTED,
    TurnContextFilter,
    configure_logging,
    log_fallback,
)
from entelequia_wf1.observability.metrics import NoopMetrics, PrometheusMetrics, create_metrics
from tests.helpers.fakes import make_settings


def _record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord("entelequia_wf1.test", logging.INFO, __file__, 1, "msg", None, None)
    record.__dict__.update(extra)
    return record


class TestTurnLogContext:
    def test_scope_sets_and_resets(self) -> None:
        assert get_correlation_id() == ""
        with turn_log_scope("req-1", "conv-1", "web") as context:
            assert get_correlation_id() == "req-1"
            assert get_turn_log_context() is context
            assert context.conversation_id == "conv-1"
        assert get_turn_log_context().conversation_id == ""

    def test_filter_injects_turn_fields(self) -> None:
        log_filter = TurnContextFilter("entelequia_wf1", "staging")
        record = _record()

        with turn_log_scope("req-42", "conv-7", "whatsapp"):
            assert log_filter.filter(record) is True

        assert record.correlation_id == "req-42"
        assert record.conversation_id == "conv-7"
        assert record.source == "whatsapp"
        assert record.service == "entelequia_wf1"
        assert record.environment == "staging"

    def test_explicit_extra_wins_over_context(self) -> None:
        log_filter = TurnContextFilter("svc")
        record = _record(correlation_id="explicit")

        with turn_log_scope("req-1"):
            log_filter.filter(record)

        assert record.correlation_id == "explicit"

    def test_identity_factors_are_masked(self) -> None:
        """Fatores do lookup de pedido nunca chegam ao handler em claro."""
        log_filter = TurnContextFilter("svc")
        record = _record(dni="12345678", phone="1122334455", text="mi dni es 12345678", order_id="123")

        log_filter.filter(record)

        assert record.dni == REDACTED
        assert record.phone == REDACTED
        assert record.text == REDACTED
        assert record.order_id == "123"
        assert record.name == "entelequia_wf1.test"


class TestConfigureLogging:
    def test_json_line_carries_turn_fields(self, capsys) -> None:
        root = logging.getLogger()
        previous_handlers, previous_level = list(root.handlers), root.level
        try:
            configure_logging("info", "entelequia_wf1", "production")
            configure_logging("info", "entelequia_wf1", "production")
            installed = [h for h in root.handlers if h not in previous_handlers]
            assert len(installed) == 1
            installed[0].stream = sys.stdout

            with turn_log_scope("req-9", "conv-9", "web"):
                logging.getLogger("entelequia_wf1.pipeline").info(
                    "turn_finalized", extra={"dni": "30111222"}
                )
        finally:
            root.handlers = previous_handlers
            root.setLevel(previous_level)

        line = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert line["message"] == "turn_finalized"
        assert line["level"] == "INFO"
        assert line["request_id"] == "req-9"
        assert line["conversation_id"] == "conv-9"
        assert line["environment"] == "production"
        assert line["dni"] == REDACTED


class TestLogFallback:
    def test_extra_fields(self) -> None:
        logger = MagicMock()

        log_fallback(logger, "domain_scope", reason="scope_hostile", elapsed_ms=3.5)

        logger.info.assert_called_once_with(
            "fallback_applied",
            extra={
                "fallback_used": True,
                "stage": "domain_scope",
                "reason": "scope_hostile",
                "elapsed_ms": 3.5,
            },
        )


class TestMetrics:
    def test_disabled_metrics_use_noop(self) -> None:
        assert isinstance(create_metrics(make_settings(metrics_enabled=False)), NoopMetrics)

    def test_prometheus_counters(self) -> None:
        registry = CollectorRegistry()
        metrics = create_metrics(make_settings(), registry=registry)
        assert isinstance(metrics, PrometheusMetrics)

        metrics.increment_fallback("pipeline_exception")
        metrics.increment_fallback("pipeline_exception")
        metrics.increment_message("web", "products", "primary")

        assert registry.get_sample_value("wf1_fallback_total", {"reason": "pipeline_exception"}) == 2.0
        assert (
            registry.get_sample_value(
                "wf1_messages_total", {"source": "web", "intent": "products", "llm_path": "primary"}
            )
            == 1.0
        )

    def test_instances_do_not_collide(self) -> None:
        first = PrometheusMetrics()
        second = PrometheusMetrics()
        first.increment_order_lookup_verification_failed()
        assert first.registry is not second.registry
