"""Testes para Settings e validação de backends por ambiente."""

from __future__ import annotations

import pytest

from entelequia_wf1.config.settings import Settings, get_settings
from tests.helpers.fakes import make_settings


class TestEnvironmentFlags:
    @pytest.mark.parametrize(
        ("environment", "production", "staging", "development"),
        [
            ("production", True, False, False),
            ("prod", True, False, False),
            ("staging", False, True, False),
            ("local", False, False, True),
        ],
    )
    def test_flags(self, environment: str, production: bool, staging: bool, development: bool) -> None:
        settings = make_settings(environment=environment)
        assert settings.is_production is production
        assert settings.is_staging is staging
        assert settings.is_development is development


class TestDefaults:
    def test_turn_defaults(self) -> None:
        settings = make_settings()
        assert settings.history_window_size == 10
        assert settings.recommendations_snapshot_max_age_seconds == 300
        assert settings.price_challenge_max_age_seconds == 120
        assert settings.order_lookup_limit_per_conversation == 5

    def test_env_vars_are_read(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HISTORY_WINDOW_SIZE", "4")
        monkeypatch.setenv("ENVIRONMENT", "staging")
        settings = Settings()
        assert settings.history_window_size == 4
        assert settings.is_staging is True

    def test_get_settings_is_cached(self) -> None:
        assert get_settings() is get_settings()


class TestBackendValidation:
    def test_development_defaults_are_valid(self) -> None:
        assert make_settings().validate_all() == []

    def test_memory_idempotency_forbidden_in_staging(self) -> None:
        errors = make_settings(environment="staging").validate_idempotency_backend()
        assert any("não é permitido" in error for error in errors)

    def test_redis_requires_url(self) -> None:
        errors = make_settings(idempotency_backend="redis", redis_url=None).validate_idempotency_backend()
        assert errors == ["IDEMPOTENCY_BACKEND=redis requer REDIS_URL"]

    def test_invalid_rate_limiter_backend(self) -> None:
        errors = make_settings(order_lookup_rate_limiter_backend="etcd").validate_rate_limiter_backend()
        assert errors == ["ORDER_LOOKUP_RATE_LIMITER_BACKEND inválido: etcd"]

    def test_memory_audit_allowed_in_staging_but_not_production(self) -> None:
        assert make_settings(environment="staging").validate_audit_backend() == []
        assert make_settings(environment="production").validate_audit_backend() != []

    def test_production_ready_configuration(self) -> None:
        settings = make_settings(
            environment="production",
            idempotency_backend="redis",
            order_lookup_rate_limiter_backend="redis",
            redis_url="redis://cache:6379/0",
            audit_backend="firestore",
        )
        assert settings.validate_all() == []
