"""Configuration management using Pydantic Settings"""

from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Paths
    PROJECT_ROOT: Path = Path(__file__).parent.parent.parent
    DB_PATH: Path = PROJECT_ROOT / "data" / "operation_log.db"
    LOC_DB_PATH: Path = PROJECT_ROOT / "data" / "locs.db"

    # Write lane batching
    WRITE_BATCH_SIZE: int = 500
    WRITE_FLUSH_INTERVAL_SECONDS: float = 0.05

    # Bounded poll for records that may still be flushing
    RECORD_POLL_INTERVAL_SECONDS: float = 0.25
    RECORD_MAX_WAIT_SECONDS: float = 2.0

    # Traversal
    RESOLVER_TIMEOUT_SECONDS: float = 5.0
    MAX_TRAVERSAL_STEPS: int = 10_000

    # Logging
    LOG_LEVEL: str = "INFO"


settings = Settings()
