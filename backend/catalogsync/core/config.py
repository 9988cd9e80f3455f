"""Configuration settings for the catalog sync service.

All values are read from the environment (or a local ``.env`` file) once at import time.
"""

from typing import Annotated, List, Optional

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Catalog sync settings.

    Groups:
    - database connection
    - logging
    - scheduling and monitoring of sync runs
    - reconciliation engine knobs
    - one block per vendor source (Vali, Asbis, Tekra)
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    PROJECT_NAME: str = "catalogsync"
    LOCAL_DEVELOPMENT: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "catalogsync"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "catalogsync"
    DATABASE_URL: Optional[str] = None
    SQLALCHEMY_ASYNC_DATABASE_URI: Optional[str] = None
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    # Scheduling and monitoring
    SYNC_ENABLED: bool = True
    SYNC_CRON: str = "0 3 * * *"
    SYNC_PLATFORMS: Annotated[List[str], NoDecode] = ["vali", "asbis", "tekra"]
    SYNC_MONITOR_INTERVAL_SECONDS: int = 300
    SYNC_STUCK_THRESHOLD_HOURS: int = 2

    # Reconciliation engine
    SYNC_BATCH_SIZE: int = 30
    SYNC_OPTION_BATCH_SIZE: int = 20
    SYNC_DOCUMENT_BATCH_SIZE: int = 20
    SYNC_FLUSH_EVERY: int = 20
    SYNC_MAX_BATCH_DURATION_MINUTES: int = 5
    SYNC_BATCH_PAUSE_MS: int = 150
    SYNC_ERROR_STATUS_POLICY: str = "success_with_errors"
    SLUG_MAX_ATTEMPTS: int = 1000

    # Pricing
    PRODUCT_DEFAULT_MARKUP_PERCENTAGE: float = 20.0

    # Vali (JSON REST, bearer token)
    VALI_API_ENABLED: bool = True
    VALI_API_BASE_URL: str = "https://api.vali.bg/api/v1"
    VALI_API_TOKEN: str = ""
    VALI_API_TIMEOUT_SECONDS: float = 120.0
    VALI_API_RETRY_ATTEMPTS: int = 3
    VALI_EXCLUDED_CATEGORY_IDS: Annotated[List[str], NoDecode] = []

    # Asbis (XML feed, credentials in the query string)
    ASBIS_API_ENABLED: bool = False
    ASBIS_API_BASE_URL: str = "https://services.it4profit.com/product/bg/714"
    ASBIS_API_USERNAME: str = ""
    ASBIS_API_PASSWORD: str = ""
    ASBIS_API_TIMEOUT_SECONDS: float = 300.0
    ASBIS_API_RETRY_ATTEMPTS: int = 3
    ASBIS_CACHE_TTL_SECONDS: int = 300

    # Tekra (JSON, API key header)
    TEKRA_API_ENABLED: bool = False
    TEKRA_API_BASE_URL: str = "https://api.tekra.bg/v1"
    TEKRA_API_KEY: str = ""
    TEKRA_API_TIMEOUT_SECONDS: float = 120.0
    TEKRA_API_RETRY_ATTEMPTS: int = 3
    TEKRA_CACHE_TTL_SECONDS: int = 300

    @field_validator("VALI_EXCLUDED_CATEGORY_IDS", "SYNC_PLATFORMS", mode="before")
    @classmethod
    def split_comma_separated(cls, value):
        """Accept ``"1,2,3"`` as well as a JSON list from the environment."""
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @model_validator(mode="after")
    def assemble_db_connection(self) -> "Settings":
        """Build the async database URI unless one was given explicitly."""
        if self.SQLALCHEMY_ASYNC_DATABASE_URI:
            return self
        if self.DATABASE_URL:
            self.SQLALCHEMY_ASYNC_DATABASE_URI = self.DATABASE_URL
            return self
        self.SQLALCHEMY_ASYNC_DATABASE_URI = (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )
        return self


settings = Settings()
