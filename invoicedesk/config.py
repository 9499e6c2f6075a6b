import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE_VAR = "INVOICEDESK_ENV_FILE"


def find_env_file(start: Path | None = None) -> str | None:
    """Explicit INVOICEDESK_ENV_FILE, else the nearest .env up to the project root."""
    explicit = os.environ.get(ENV_FILE_VAR)
    if explicit:
        return explicit
    cur = (start or Path(__file__)).resolve()
    for parent in [cur if cur.is_dir() else cur.parent, *cur.parents]:
        candidate = parent / ".env"
        if candidate.is_file():
            return str(candidate)
        # never read a .env belonging to whatever contains the checkout
        if (parent / "pyproject.toml").is_file():
            break
    return None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=find_env_file() or ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # invoice / auth API
    API_BASE_URL: str = "http://localhost:8000"
    HTTP_TIMEOUT_SEC: float = 8.0

    # token store: memory | file | redis
    TOKEN_STORE: str = "file"
    TOKEN_FILE: str = ".invoicedesk/tokens.json"
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_KEY_PREFIX: str = "invoicedesk:"

    # session / pages
    LOGIN_PATH: str = "/login"
    COALESCE_REFRESH: int = 0
    INVOICES_STALE_SEC: int = 300
    INVOICES_FETCH_RETRIES: int = 2

    LOG_LEVEL: str = "INFO"


settings = Settings()
