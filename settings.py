from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # `.env.prod` takes priority over `.env`
        env_file=(".env", ".env.prod"),
        extra="ignore",
    )

    # Which storage backend serves the process: relational or local key-value
    storage_backend: Literal["database", "local"] = "database"

    # Relational backend (falls back to DB_* vars, then a local SQLite file)
    database_url: Optional[str] = None

    # Local backend: JSON file path; unset keeps everything in memory (demo mode)
    local_storage_path: Optional[str] = None

    # Caller identity. With auth disabled every request acts as `local_user_id`.
    auth_enabled: bool = False
    local_user_id: str = "local-user"

    # Session history paging
    default_page_size: int = 20
    max_page_size: int = 100

    log_format: str = "json"
    log_level: str = "INFO"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
