# backend/usmle_prep/core/config.py

import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

from .errors import ConfigurationError

load_dotenv()

GEMINI_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"


def _split(value: str) -> List[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


@dataclass(frozen=True)
class Settings:
    gemini_api_key: str = ""
    gemini_model: str = "gemini-1.5-flash"
    gemini_base_url: str = GEMINI_OPENAI_BASE_URL
    database_url: str = ""
    database_name: str = "usmle_prep"
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> "Settings":
        """Read settings from the process environment (and .env, if present)."""
        return cls(
            gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
            gemini_model=os.getenv("GEMINI_MODEL", "gemini-1.5-flash"),
            gemini_base_url=os.getenv("GEMINI_BASE_URL", GEMINI_OPENAI_BASE_URL),
            database_url=os.getenv("DATABASE_URL", ""),
            database_name=os.getenv("DATABASE_NAME", "usmle_prep"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            cors_origins=_split(os.getenv("CORS_ORIGINS", "*")) or ["*"],
        )

    def require(self, name: str) -> str:
        value = getattr(self, name)
        if not value:
            raise ConfigurationError(f"{name.upper()} missing. Add it to the environment or .env.")
        return value
