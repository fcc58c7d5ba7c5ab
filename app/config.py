import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigurationError

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DEFAULT_EMAIL_HOST = "smtp.gmail.com"
DEFAULT_EMAIL_PORT = 587
DEFAULT_FRONTEND_URL = "http://localhost:5173"
DEFAULT_SERVICE_NAME = "velocity-email-service"


def _parse_port(raw: Optional[str]) -> int:
    if not raw:
        return DEFAULT_EMAIL_PORT
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"EMAIL_PORT must be an integer, got {raw!r}") from e


@dataclass(frozen=True)
class Settings:
    """Process configuration, built once and injected into the gate, transport and routes"""

    email_host: str = DEFAULT_EMAIL_HOST
    email_port: int = DEFAULT_EMAIL_PORT
    email_user: Optional[str] = None
    email_pass: Optional[str] = None
    email_api_key: Optional[str] = None
    frontend_url: str = DEFAULT_FRONTEND_URL
    service_name: str = DEFAULT_SERVICE_NAME
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            email_host=os.getenv("EMAIL_HOST") or DEFAULT_EMAIL_HOST,
            email_port=_parse_port(os.getenv("EMAIL_PORT")),
            email_user=os.getenv("EMAIL_USER"),
            email_pass=os.getenv("EMAIL_PASS"),
            email_api_key=os.getenv("EMAIL_API_KEY"),
            # Frontend base URL for links inside emails
            frontend_url=os.getenv("FRONTEND_URL") or DEFAULT_FRONTEND_URL,
            service_name=os.getenv("SERVICE_NAME") or DEFAULT_SERVICE_NAME,
            log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
        )


@lru_cache
def get_settings() -> Settings:
    """FastAPI dependency returning the process-wide settings"""
    return Settings.from_env()
