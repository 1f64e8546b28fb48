from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

class Settings(BaseSettings):
    APP_NAME: str = "Catchpac"
    LOG_LEVEL: str = "INFO"
    DB_ECHO_LOG: bool = False

    # Database settings
    DB_USER: str = "user"
    DB_PASSWORD: str = "password"
    DB_HOST: str = "postgres"
    DB_PORT: int = 5432
    DB_NAME: str = "catchpac_db"

    # Full SQLAlchemy URL; takes precedence over the DB_* parts (e.g. sqlite+aiosqlite:// for tests)
    DB_URL: Optional[str] = None

    @property
    def DATABASE_URL(self) -> str:
        if self.DB_URL:
            return self.DB_URL
        return f"postgresql+asyncpg://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    # Identity provider (Google Identity Toolkit REST API)
    IDENTITY_BASE_URL: str = "https://identitytoolkit.googleapis.com/v1"
    IDENTITY_API_KEY: Optional[str] = None
    IDENTITY_TIMEOUT_SECONDS: float = 10.0

    # Sessions opened on sign-in, dropped on sign-out or expiry
    SESSION_TTL_HOURS: int = 8

    # Aggregate pricing windows
    PRICE_RECENT_WINDOW_DAYS: int = 7
    PRICE_PRIOR_WINDOW_DAYS: int = 14

    model_config = SettingsConfigDict(env_file=".env", extra='ignore', env_file_encoding='utf-8')

settings = Settings()
