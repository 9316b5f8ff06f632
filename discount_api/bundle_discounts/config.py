from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
import os


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env"), env_file_encoding="utf-8", extra="ignore")

    database_url: str = Field(default="sqlite:///./bundles.db", alias="DATABASE_URL")
    app_env: str = Field(default="development", alias="APP_ENV")
    app_debug: bool = Field(default=True, alias="APP_DEBUG")
    cors_origins: str = Field(default="*", alias="CORS_ORIGINS")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # DB tuning
    db_connect_timeout: int = Field(default=10, alias="DB_CONNECT_TIMEOUT")

    # Commerce platform (coupon creation, variant lookup)
    platform_api_base_url: str = Field(default="https://api.salla.dev", alias="PLATFORM_API_BASE_URL")
    platform_api_timeout: float = Field(default=15.0, alias="PLATFORM_API_TIMEOUT")

    # Coupon issuance
    coupon_code_prefix: str = Field(default="BNDL", alias="COUPON_CODE_PREFIX")
    coupon_ttl_hours: int = Field(default=24, alias="COUPON_TTL_HOURS")

    # Variant snapshot cache
    variant_cache_ttl_seconds: int = Field(default=300, alias="VARIANT_CACHE_TTL_SECONDS")
    variant_cache_max_entries: int = Field(default=5000, alias="VARIANT_CACHE_MAX_ENTRIES")

    evaluation_log_enabled: bool = Field(default=True, alias="EVALUATION_LOG_ENABLED")


settings = Settings()
