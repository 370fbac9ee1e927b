"""Configurações da aplicação via variáveis de ambiente.

Todas as configurações são carregadas de env vars.
Nunca hardcode secrets ou valores sensíveis.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configurações lidas do ambiente."""

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
    )

    # Aplicação
    service_name: str = "entelequia_wf1"
    version: str = "0.1.0"
    environment: str = "development"
    log_level: str = "INFO"

    # Turno
    history_window_size: int = 10  # Linhas lidas do histórico (mais novo primeiro)
    max_message_length_chars: int = 4096

    # Recomendações / preços
    recommendations_snapshot_max_age_seconds: int = 300  # Frescor da memória (5 min)
    price_challenge_max_age_seconds: int = 120  # Revalidação de preço (2 min)

    # Pedidos
    order_items_render_max: int = 5
    orders_context_char_budget: int = 2400  # Dividido entre blocos de pedido

    # Idempotência
    idempotency_backend: str = "memory"  # memory | redis
    idempotency_ttl_seconds: int = 604800  # 7 dias
    redis_url: str | None = None

    # Rate limit da consulta de pedidos sem sessão
    order_lookup_rate_limiter_backend: str = "memory"  # memory | redis
    order_lookup_limit_per_conversation: int = 5
    order_lookup_limit_per_order: int = 5
    order_lookup_limit_per_ip: int = 20
    order_lookup_window_seconds: int = 300

    # Auditoria
    audit_backend: str = "memory"  # memory | firestore
    firestore_project_id: str | None = None
    firestore_database_id: str = "(default)"
    audit_collection: str = "wf1_audit"

    # Observabilidade
    metrics_enabled: bool = True

    @property
    def is_production(self) -> bool:
        """Retorna True se ambiente é produção."""
        return self.environment.lower() in ("production", "prod")

    @property
    def is_staging(self) -> bool:
        """Retorna True se ambiente é staging."""
        return self.environment.lower() in ("staging", "stg")

    @property
    def is_development(self) -> bool:
        """Retorna True se ambiente é desenvolvimento."""
        return self.environment.lower() in ("development", "dev", "local")

    def validate_idempotency_backend(self) -> list[str]:
        """Valida backend de idempotência por ambiente.

        Em staging/prod, memory é proibido (múltiplas instâncias).
        """
        errors: list[str] = []
        backend = self.idempotency_backend.lower()
        if backend not in ("memory", "redis"):
            errors.append(f"IDEMPOTENCY_BACKEND inválido: {backend}")
        if backend == "memory" and (self.is_staging or self.is_production):
            errors.append("IDEMPOTENCY_BACKEND=memory não é permitido em staging/production")
        if backend == "redis" and not self.redis_url:
            errors.append("IDEMPOTENCY_BACKEND=redis requer REDIS_URL")
        return errors

    def validate_rate_limiter_backend(self) -> list[str]:
        """Valida backend do rate limiter da consulta de pedidos."""
        errors: list[str] = []
        backend = self.order_lookup_rate_limiter_backend.lower()
        if backend not in ("memory", "redis"):
            errors.append(f"ORDER_LOOKUP_RATE_LIMITER_BACKEND inválido: {backend}")
        if backend == "memory" and (self.is_staging or self.is_production):
            errors.append(
                "ORDER_LOOKUP_RATE_LIMITER_BACKEND=memory não é permitido em staging/production"
            )
        if backend == "redis" and not self.redis_url:
            errors.append("ORDER_LOOKUP_RATE_LIMITER_BACKEND=redis requer REDIS_URL")
        return errors

    def validate_audit_backend(self) -> list[str]:
        """Valida backend de auditoria."""
        errors: list[str] = []
        backend = self.audit_backend.lower()
        if backend not in ("memory", "firestore"):
            errors.append(f"AUDIT_BACKEND inválido: {backend}")
        if backend == "memory" and self.is_production:
            errors.append("AUDIT_BACKEND=memory não é permitido em production")
        return errors

    def validate_all(self) -> list[str]:
        return [
            *self.validate_idempotency_backend(),
            *self.validate_rate_limiter_backend(),
            *self.validate_audit_backend(),
        ]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Retorna uma instância cacheada de Settings.

    A cache garante que mesmo múltiplas injeções não criam novos objetos.
    """
    return Settings()
