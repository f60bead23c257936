from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    database_url: str = ""
    environment: str = "dev"
    app_title: str = "School Gradebook"
    # Comma separated list of allowed origins
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
    # Threshold profile cache
    threshold_cache_size: int = 512
    threshold_cache_ttl: int = 300  # 5 minutes
    # Rank write-back: extra attempts after a stale row version
    rank_recompute_retries: int = 1
    # Largest batch accepted by a single score ingestion request
    batch_max_size: int = 2000

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


class LoggingSettings(BaseSettings):
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"  # "text" or "json"
    ENV: str = "dev"  # dev | staging | prod

    class Config:
        env_prefix = "APP_"


logging_settings = LoggingSettings()

settings = Settings()  # type: ignore
