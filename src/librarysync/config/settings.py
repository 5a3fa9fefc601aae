"""Application settings loaded from environment variables and .env."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseModel):
    """Where provider state is persisted.

    One provider is created per entry in ``stores``. With the file backend each
    store lives in ``<state_dir>/<store>.json``; with the database backend each
    store is one row keyed by its name.
    """

    backend: Literal["file", "database"] = "file"
    state_dir: Path = Path("./data/sync")
    stores: list[str] = Field(default_factory=lambda: ["default"])

    @field_validator("stores")
    @classmethod
    def _stores_not_empty(cls, value: list[str]) -> list[str]:
        cleaned = [s.strip() for s in value if s and s.strip()]
        if not cleaned:
            raise ValueError("at least one store name is required")
        if len(set(cleaned)) != len(cleaned):
            raise ValueError("store names must be unique")
        return cleaned


class DatabaseSettings(BaseModel):
    """Database backend configuration (SQLAlchemy async URL)."""

    url: str = "sqlite+aiosqlite:///./data/librarysync.db"
    echo: bool = False


class RoutingSettings(BaseModel):
    """Namespaces the router recognizes before installed extensions."""

    builtin_providers: list[str] = Field(default_factory=lambda: ["youtube", "spotify"])
    playlist_suffix: str = "-playlist"


class ObservabilitySettings(BaseModel):
    """Logging output options."""

    log_json_format: bool = False


class Settings(BaseSettings):
    """Top-level settings.

    Environment variables use the ``LIBRARYSYNC_`` prefix and ``__`` for
    nesting, e.g. ``LIBRARYSYNC_STORAGE__BACKEND=database``.
    """

    model_config = SettingsConfigDict(
        env_prefix="LIBRARYSYNC_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    app_name: str = "librarysync"
    log_level: str = "INFO"
    # Namespace the host prepends to entities this extension adds to the library.
    package_namespace: str = "librarysync"

    storage: StorageSettings = Field(default_factory=StorageSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    routing: RoutingSettings = Field(default_factory=RoutingSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    def ensure_directories(self) -> None:
        """Create the state directory for the file backend."""
        if self.storage.backend == "file":
            self.storage.state_dir.mkdir(parents=True, exist_ok=True)

    def store_path(self, store: str) -> Path:
        """JSON file holding one store's state."""
        return self.storage.state_dir / f"{store}.json"

    def _get_sqlite_db_path(self) -> Path | None:
        """Filesystem path of a SQLite database URL, None for other databases."""
        url = self.database.url
        if not url.startswith("sqlite"):
            return None
        _, _, path = url.partition(":///")
        if not path or path == ":memory:":
            return None
        return Path(path)


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance for the running process."""
    return Settings()
