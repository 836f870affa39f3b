"""
Configuration management for the GitHub SCM adapter.

Adapter options are validated with pydantic models. Process settings are
loaded from a YAML file, with environment variables taking precedence.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONFIG_PATH = "/etc/scm-github/config.yaml"


def yaml_config_settings_source() -> dict[str, Any]:
    """Load configuration from YAML file."""
    config_path = Path(DEFAULT_CONFIG_PATH)
    if config_path.exists():
        with open(config_path) as f:
            return yaml.safe_load(f) or {}
    return {}


# --- Fault tolerance ---


class RetryConfig(BaseModel):
    """Bounded retry with exponential backoff for GitHub calls."""

    retries: int = Field(default=5, ge=0, description="Retries after the first attempt")
    factor: float = Field(default=2.0, ge=1.0, description="Backoff multiplier")
    min_timeout: float = Field(default=1.0, gt=0, description="First backoff delay in seconds")
    max_timeout: float = Field(default=30.0, gt=0, description="Backoff delay cap in seconds")
    randomize: bool = Field(default=False, description="Multiply delays by a random 1-2x factor")


class BreakerConfig(BaseModel):
    """Circuit breaker settings, modelled on a rolling bucketed window."""

    window_duration: float = Field(
        default=10.0, gt=0, description="Rolling window length in seconds"
    )
    num_buckets: int = Field(default=10, ge=1, description="Buckets in the rolling window")
    timeout_duration: float = Field(
        default=10.0, gt=0, description="Per-call timeout in seconds"
    )
    error_threshold: float = Field(
        default=50.0,
        ge=0,
        le=100,
        description="Error percentage above which the breaker opens",
    )
    volume_threshold: int = Field(
        default=5,
        ge=0,
        description="Calls in the window that must be exceeded before the breaker may open",
    )
    reset_timeout: float | None = Field(
        default=None,
        description="Cool-down before a trial call in seconds (defaults to window_duration)",
    )


class FuseboxConfig(BaseModel):
    """Retry and breaker configuration applied to every GitHub call."""

    retry: RetryConfig = Field(default_factory=RetryConfig)
    breaker: BreakerConfig = Field(default_factory=BreakerConfig)


# --- Adapter ---


class GithubScmConfig(BaseModel):
    """Options for one GithubScm instance.

    The adapter serves exactly one host: github.com, or ``ghe_host`` when a
    GitHub Enterprise instance is configured.
    """

    ghe_protocol: str = Field(default="https", description="Protocol of the GHE instance")
    ghe_host: str | None = Field(default=None, description="GitHub Enterprise host")
    https: bool = Field(default=False, description="Is the orchestrator API served over HTTPS")
    oauth_client_id: str = Field(min_length=1, description="OAuth client id of the GitHub app")
    oauth_client_secret: str = Field(
        min_length=1, description="OAuth client secret of the GitHub app"
    )
    secret: str = Field(min_length=1, description="Shared secret for webhook signatures")
    private_repo: bool = Field(default=False, description="Request the private repo scope")
    fusebox: FuseboxConfig = Field(default_factory=FuseboxConfig)

    @property
    def host(self) -> str:
        return self.ghe_host or "github.com"

    @property
    def api_url(self) -> str:
        if self.ghe_host:
            return f"{self.ghe_protocol}://{self.ghe_host}/api/v3"
        return "https://api.github.com"


# --- Main Settings ---


class GitHubSettings(BaseModel):
    """GitHub connection settings used when the adapter runs as a service."""

    ghe_protocol: str = Field(default="https")
    ghe_host: str | None = Field(default=None)
    https: bool = Field(default=False)
    oauth_client_id: str = Field(default="")
    oauth_client_secret: str = Field(default="")
    secret: str = Field(default="", description="Webhook secret (from env)")
    private_repo: bool = Field(default=False)
    fusebox: FuseboxConfig = Field(default_factory=FuseboxConfig)


class Settings(BaseSettings):
    """Process settings."""

    model_config = SettingsConfigDict(
        env_prefix="SCM_GITHUB_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    app_name: str = Field(default="scm-github")
    log_level: str = Field(default="INFO")
    json_logs: bool = Field(default=True, description="JSON logging in production")

    github: GitHubSettings = Field(default_factory=GitHubSettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: Any,
        env_settings: Any,
        dotenv_settings: Any,
        file_secret_settings: Any,
    ) -> tuple[Any, ...]:
        """Customize settings sources: env vars override YAML config."""
        return (
            init_settings,
            env_settings,
            yaml_config_settings_source,
            dotenv_settings,
            file_secret_settings,
        )


# Global settings instance
settings = Settings()
