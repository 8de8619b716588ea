from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

# Load .env if present
load_dotenv()


@dataclass(frozen=True)
class Settings:
    couch_url: str = os.getenv("COUCH_URL", "http://localhost:5984")
    couch_username: str = os.getenv("COUCH_USERNAME", "")
    couch_password: str = os.getenv("COUCH_PASSWORD", "")
    couch_session: str = os.getenv("COUCH_SESSION", "")
    http_timeout: float = float(os.getenv("HTTP_TIMEOUT", "45"))
    auth_retries: int = int(os.getenv("AUTH_RETRIES", "1"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
