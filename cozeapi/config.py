import logging
import sys
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

API_URL = "https://api.coze.com"


def setup_logging(level: Optional[int] = None):
    """Configure application logging. DEBUG when COZE_DEBUG is set."""
    if level is None:
        level = logging.DEBUG if settings.debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # Set third-party loggers to WARNING to reduce noise
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


class Settings(BaseSettings):
    # API endpoint
    base_url: str = API_URL

    # Personal access token; ignored when a TokenService is injected
    api_token: Optional[str] = None

    # Timeout settings (seconds)
    timeout: int = 60

    # Chat polling (seconds)
    poll_interval: float = 1.0
    poll_timeout: float = 60.0

    # SSE safety cap
    max_sse_events: int = 500

    # Token cache: refresh this many seconds before nominal expiry
    token_refresh_margin: int = 30

    # JWT OAuth exchange
    jwt_duration_seconds: int = 900

    debug: bool = False

    model_config = SettingsConfigDict(
        env_prefix="COZE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
