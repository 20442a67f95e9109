from typing import Optional, List, Union
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False
    )

    # ===========================
    # Service Customization
    # ===========================
    ADDON_NAME: Optional[str] = "KamiStream"
    VERSION: str = "1.0.0"

    # ===========================
    # Server Configuration
    # ===========================
    PORT: Optional[int] = 7000

    # ===========================
    # Provider Configuration
    # ===========================
    CONSUMET_API_URL: Optional[str] = None
    DEFAULT_PROVIDER: str = "zoro"
    DEFAULT_AUDIO: str = "sub"
    PROVIDER_PRIORITY: Union[List[str], str] = ["animepahe", "zoro", "anilist_meta"]
    SERIES_TYPE: str = "TV"

    # ===========================
    # Metadata Configuration
    # ===========================
    ANILIST_GRAPHQL_URL: str = "https://graphql.anilist.co"
    ANILIST_TOKEN: Optional[str] = None
    USE_CANONICAL_COUNT: bool = False

    # ===========================
    # Database Configuration
    # ===========================
    DATABASE_VERSION: str = "1.0"
    DATABASE_TYPE: Optional[str] = "sqlite"
    DATABASE_PATH: Optional[str] = "/app/data/kamistream.db"
    DATABASE_URL: Optional[str] = ""

    # ===========================
    # Cache Configuration
    # ===========================
    EPISODE_CACHE_STALE_AFTER: int = 86400

    # ===========================
    # Display Configuration
    # ===========================
    RANGE_PAGE_SIZE: int = 24

    # ===========================
    # HTTP Timeout Configuration
    # ===========================
    HTTP_TIMEOUT: Optional[int] = 15
    METADATA_TIMEOUT: Optional[int] = 10
    HTTP_MAX_CONNECTIONS: int = 20

    # ===========================
    # Retry Configuration
    # ===========================
    FETCH_MAX_ATTEMPTS: int = 3
    FETCH_BASE_DELAY: float = 1.0

    # ===========================
    # Proxy Configuration
    # ===========================
    PROXY_URL: Optional[str] = None

    # ===========================
    # Logging Configuration
    # ===========================
    LOG_LEVEL: Optional[str] = "DEBUG"
    LOG_FILE: Optional[str] = None

    # ===========================
    # Field Validators
    # ===========================
    @field_validator("CONSUMET_API_URL", "ANILIST_GRAPHQL_URL", "PROXY_URL")
    @classmethod
    def normalize_urls(cls, v):
        if isinstance(v, str):
            return v.rstrip("/")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator("DEFAULT_PROVIDER", "DEFAULT_AUDIO")
    @classmethod
    def normalize_names(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("PROVIDER_PRIORITY", mode="before")
    @classmethod
    def split_provider_priority(cls, v):
        if isinstance(v, str):
            return [name.strip().lower() for name in v.split(",") if name.strip()]
        return v

    @field_validator("FETCH_MAX_ATTEMPTS", "RANGE_PAGE_SIZE", "HTTP_MAX_CONNECTIONS")
    @classmethod
    def at_least_one(cls, v):
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    def get_database_url(self) -> str:
        if self.DATABASE_TYPE == "sqlite":
            return f"sqlite:///{self.DATABASE_PATH}"
        return f"postgresql://{self.DATABASE_URL}"


# ===========================
# Settings Instance
# ===========================
settings = Settings()
