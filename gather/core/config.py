import logging
from urllib.parse import urlparse

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional

DEV_TOKEN_SECRET = "gather-dev-secret-change-me"


class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # HTTP server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Document store
    DATABASE_URL: str = "sqlite://"

    # Bearer tokens
    TOKEN_SECRET: str = DEV_TOKEN_SECRET
    TOKEN_ALGORITHM: str = "HS256"
    TOKEN_TTL_HOURS: int = 0  # 0 = tokens never expire

    # Discovery
    DEFAULT_DISCOVERY_RADIUS_KM: float = 10.0
    MAX_DISCOVERY_RADIUS_KM: float = 100.0

    # Plans
    UNTIMED_PLAN_TTL_HOURS: int = 4
    DESCRIPTION_MAX_LENGTH: int = 2000
    COMMENT_MAX_LENGTH: int = 1000

    # Pending members may not comment unless this is False
    COMMENT_REQUIRES_APPROVAL: bool = True

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
settings = Settings()


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate required configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    Secrets are not logged, only the names of offending keys.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("gather")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    problems = []
    parsed = urlparse(cfg.DATABASE_URL or "")
    if not parsed.scheme:
        problems.append("DATABASE_URL must be a valid SQLAlchemy URL")
    if cfg.ENV.lower() == "production" and cfg.TOKEN_SECRET == DEV_TOKEN_SECRET:
        problems.append("TOKEN_SECRET must be overridden in production")
    if cfg.MAX_DISCOVERY_RADIUS_KM <= 0:
        problems.append("MAX_DISCOVERY_RADIUS_KM must be positive")

    if problems:
        message = f"Invalid configuration: {'; '.join(problems)}"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    return True
