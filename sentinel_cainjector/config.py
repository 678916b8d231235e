"""Runtime configuration for the trust bundle injector."""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Injector settings, read from ``INJECTOR_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="INJECTOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Kubernetes Settings
    kubeconfig_path: Optional[str] = Field(
        default=None,
        description="Path to kubeconfig file; in-cluster config when unset",
    )
    kubeconfig_data: Optional[str] = Field(
        default=None,
        description="Base64 encoded kubeconfig, takes precedence over the path",
    )
    kube_context: Optional[str] = None

    # Dispatch Settings
    max_concurrent_reconciles: int = Field(default=4, ge=1)
    reconcile_timeout_seconds: float = Field(default=60.0, gt=0)
    resync_interval_seconds: int = Field(default=600, ge=1)
    requeue_base_delay_seconds: float = Field(default=0.005, ge=0)
    requeue_max_delay_seconds: float = Field(default=300.0, ge=0)

    # Watch Settings
    watch_timeout_seconds: int = Field(
        default=60,
        ge=1,
        description="Server-side timeout of one watch request; the watch resumes after it",
    )
    watch_max_backoff_seconds: float = Field(default=30.0, ge=0)

    # Conflict Retry Settings
    retry_max_attempts: int = Field(default=6, ge=1)
    retry_initial_delay_seconds: float = Field(default=0.01, ge=0)
    retry_backoff_factor: float = Field(default=5.0, ge=1)
    retry_max_delay_seconds: float = Field(default=1.0, ge=0)
    retry_max_elapsed_seconds: float = Field(default=5.0, gt=0)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
