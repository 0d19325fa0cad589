"""Application settings loaded from environment variables and .env."""

from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseModel):
    """Database connection settings."""

    url: str = "sqlite+aiosqlite:///./labelcatalog.db"
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 3600
    pool_pre_ping: bool = True


# Hey future me, client_id/client_secret default to EMPTY on purpose. The app must boot
# without credentials (read API, classification) - the Spotify client raises
# ConfigurationError at call time, which aborts an import run with status=failed.
class SpotifySettings(BaseModel):
    """Spotify Web API settings (client-credentials flow)."""

    client_id: str = ""
    client_secret: str = ""
    token_url: str = "https://accounts.spotify.com/api/token"
    api_base_url: str = "https://api.spotify.com/v1"
    request_timeout: float = 30.0
    max_retries: int = 3

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id.strip() and self.client_secret.strip())


class ImporterSettings(BaseModel):
    """CatalogImporter paging and enrichment settings."""

    page_size: int = 50
    page_delay_seconds: float = 1.0
    max_offset: int = 500
    fetch_artist_details: bool = True
    fetch_audio_features: bool = False

    # Spotify search caps limit at 50, so anything else is clamped rather than rejected.
    @field_validator("page_size")
    @classmethod
    def clamp_page_size(cls, value: int) -> int:
        return max(1, min(50, value))

    @field_validator("page_delay_seconds")
    @classmethod
    def non_negative_delay(cls, value: float) -> float:
        return max(0.0, value)


class ClassificationSettings(BaseModel):
    """Classification rule table location (None = built-in defaults)."""

    rules_path: Path | None = None


class CacheSettings(BaseModel):
    label_ttl_seconds: int = 300


class ObservabilitySettings(BaseModel):
    """Logging settings."""

    log_level: str = "INFO"
    log_json_format: bool = False


class Settings(BaseSettings):
    """Root settings.

    Nested sections use a double underscore, e.g. ``SPOTIFY__CLIENT_ID`` or
    ``IMPORTER__PAGE_DELAY_SECONDS``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    app_name: str = "labelcatalog"
    debug: bool = False

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    spotify: SpotifySettings = Field(default_factory=SpotifySettings)
    importer: ImporterSettings = Field(default_factory=ImporterSettings)
    classification: ClassificationSettings = Field(default_factory=ClassificationSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @property
    def log_level(self) -> str:
        return self.observability.log_level


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings instance."""
    return Settings()
