import logging

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_SECRET_KEY = "change-me"


class Settings(BaseSettings):
    # Application settings
    app_name: str = "Portal Authorization Engine"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"

    # Database settings
    database_url: str = "sqlite+aiosqlite:///./portal_authz.db"

    # Identity (bearer tokens are issued elsewhere, only verified here)
    secret_key: str = DEFAULT_SECRET_KEY
    jwt_algorithm: str = "HS256"

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Permission cache, disabled unless a Redis URL is configured
    redis_url: str | None = None
    permission_cache_ttl: int = 300

    # Management operations are open to any authenticated caller unless set
    require_super_admin_for_management: bool = False

    # CORS settings
    allowed_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()

if settings.secret_key == DEFAULT_SECRET_KEY:
    logger.warning("Using default SECRET_KEY. This is insecure and should be changed in production!")
