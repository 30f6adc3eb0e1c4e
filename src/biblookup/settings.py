"""Configuration helpers for biblookup."""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from biblookup.errors import ConfigurationError

DEFAULT_DATA_ROOT = Path.home() / "biblookup-data"
DEFAULT_PRIORITY = 100
DEFAULT_TIMEOUT = 10.0
ENV_PREFIX = "BIBLOOKUP_"


class ServiceConfig(BaseModel):
    """Static settings for one remote provider."""

    enabled: bool = True
    priority: int = DEFAULT_PRIORITY
    timeout: float = DEFAULT_TIMEOUT
    types: list[str] = Field(default_factory=list)
    base_url: str
    api_key: str | None = None


DEFAULT_SERVICES: dict[str, ServiceConfig] = {
    "crossref": ServiceConfig(
        priority=1,
        types=["doi", "isbn", "issn"],
        base_url="https://api.crossref.org",
    ),
    "world_cat": ServiceConfig(
        priority=2,
        types=["isbn", "issn", "oclc", "lccn"],
        base_url="https://www.worldcat.org/webservices",
    ),
    "google_books": ServiceConfig(
        priority=3,
        types=["isbn", "oclc", "lccn"],
        base_url="https://www.googleapis.com/books/v1",
    ),
    "ia_download": ServiceConfig(
        priority=DEFAULT_PRIORITY,
        timeout=30.0,
        base_url="https://archive.org/download",
    ),
    "aws_s3": ServiceConfig(
        priority=DEFAULT_PRIORITY,
        timeout=60.0,
        base_url="https://s3.amazonaws.com",
    ),
}


class Settings(BaseModel):
    """Runtime configuration loaded from env vars with sensible defaults."""

    data_dir: Path = Field(default_factory=lambda: DEFAULT_DATA_ROOT)
    log_level: str = "INFO"
    default_priority: int = DEFAULT_PRIORITY
    default_timeout: float = DEFAULT_TIMEOUT
    lookup_timeout: float = 2 * DEFAULT_TIMEOUT
    crossref_mailto: str | None = None
    ia_access: str | None = None
    ia_secret: str | None = None
    ia_user_cookie: str | None = None
    ia_sig_cookie: str | None = None
    s3_bucket: str | None = None
    s3_region: str | None = None
    services: dict[str, ServiceConfig] = Field(
        default_factory=lambda: {name: cfg.model_copy() for name, cfg in DEFAULT_SERVICES.items()}
    )

    def service(self, name: str) -> ServiceConfig:
        """Return the configuration entry for a provider or fail fast."""
        try:
            return self.services[name]
        except KeyError as exc:
            raise ConfigurationError(f"no configuration for service {name!r}") from exc

    def ensure_directories(self) -> None:
        """Create data directories if they are missing."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def load(cls) -> "Settings":
        load_dotenv()
        default_priority = int(_env("DEFAULT_PRIORITY", DEFAULT_PRIORITY))
        default_timeout = float(_env("DEFAULT_TIMEOUT", DEFAULT_TIMEOUT))
        return cls(
            data_dir=Path(_env("DATA_DIR", DEFAULT_DATA_ROOT)),
            log_level=_env("LOG_LEVEL", "INFO"),
            default_priority=default_priority,
            default_timeout=default_timeout,
            lookup_timeout=float(_env("LOOKUP_TIMEOUT", 2 * default_timeout)),
            crossref_mailto=_env("CROSSREF_MAILTO"),
            ia_access=_env("IA_ACCESS"),
            ia_secret=_env("IA_SECRET"),
            ia_user_cookie=_env("IA_USER_COOKIE"),
            ia_sig_cookie=_env("IA_SIG_COOKIE"),
            s3_bucket=_env("S3_BUCKET"),
            s3_region=_env("S3_REGION"),
            services={
                name: _load_service(name, cfg, default_priority, default_timeout)
                for name, cfg in DEFAULT_SERVICES.items()
            },
        )


def _env(key: str, default=None):
    return os.environ.get(f"{ENV_PREFIX}{key}", default)


def _load_service(
    name: str, defaults: ServiceConfig, default_priority: int, default_timeout: float
) -> ServiceConfig:
    prefix = name.upper()
    priority = defaults.priority if defaults.priority != DEFAULT_PRIORITY else default_priority
    timeout = defaults.timeout if defaults.timeout != DEFAULT_TIMEOUT else default_timeout
    types = _env(f"{prefix}_TYPES")
    return ServiceConfig(
        enabled=_env(f"{prefix}_ENABLED", str(defaults.enabled)).lower() in {"1", "true", "yes", "on"},
        priority=int(_env(f"{prefix}_PRIORITY", priority)),
        timeout=float(_env(f"{prefix}_TIMEOUT", timeout)),
        types=[t.strip().lower() for t in types.split(",") if t.strip()] if types else list(defaults.types),
        base_url=_env(f"{prefix}_BASE_URL", defaults.base_url),
        api_key=_env(f"{prefix}_API_KEY", defaults.api_key),
    )


def get_settings() -> Settings:
    """Convenience accessor for lazy modules."""
    settings = Settings.load()
    settings.ensure_directories()
    return settings
