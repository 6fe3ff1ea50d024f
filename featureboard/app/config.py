"""Application configuration with environment variable support.

All settings can be overridden via environment variables prefixed with ``FEATUREBOARD_``,
or via a ``.env`` file in the project root.

Examples::

    FEATUREBOARD_PORT=9000 featureboard start
    FEATUREBOARD_DATABASE_URL_OVERRIDE=sqlite+aiosqlite:////var/data/boards.db featureboard start
    FEATUREBOARD_LOG_LEVEL=DEBUG featureboard start
"""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Project root: two levels up from this file (featureboard/app/config.py -> repo root)
_BASE_DIR = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """Featureboard configuration — all values overridable via env vars."""

    model_config = SettingsConfigDict(
        env_prefix="FEATUREBOARD_",
        env_file=str(_BASE_DIR / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list[str] = ["http://localhost:3000"]

    # Paths
    data_dir: Path = _BASE_DIR / "data"

    # Storage. Empty means the SQLite file under data_dir.
    database_url_override: str | None = None

    # Logging
    log_level: str = "INFO"

    # Response cache
    cache_ttl_seconds: int = 300
    cache_max_entries: int = 1000

    # Headers set by the upstream identity proxy: <prefix>-Id, -Email, -Name, -Image
    identity_header_prefix: str = "X-Auth-User"

    @property
    def db_path(self) -> Path:
        return self.data_dir / "featureboard.db"

    @property
    def database_url(self) -> str:
        if self.database_url_override:
            return self.database_url_override
        return f"sqlite+aiosqlite:///{self.db_path}"


# Default instance; create_app() accepts an explicit one
settings = Settings()
