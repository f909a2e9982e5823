from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    APP_ENV: str = "local"
    APP_NAME: str = "crudkit"

    DATABASE_URL: str
    DB_POOL_SIZE: int = 60
    DB_MAX_OVERFLOW: int = 60
    DB_POOL_RECYCLE_SECONDS: int = 7200
    DB_POOL_TIMEOUT_SECONDS: int = 30

    REDIS_URL: str = ""

    JWT_SECRET: str = ""
    JWT_ISSUER: str = "crudkit"
    JWT_TTL_MINUTES: int = 240

    LOG_DIR: str = "logs"
    LOG_LEVEL: str = "INFO"
    LOG_RETENTION_DAYS: int = 7
    LOG_TO_FILES: bool = True


settings = Settings()
