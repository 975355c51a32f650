"""
Runtime configuration for the PropertyHub client.

Values come from the environment (a local ``.env`` is loaded first):

    BACKEND            rest | supabase | memory   (default: rest)
    API_BASE_URL       REST API root               (default: http://localhost:3000/api)
    SUPABASE_URL       project URL, required when BACKEND=supabase
    SUPABASE_ANON_KEY  anon key, required when BACKEND=supabase
    PAGE_SIZE          listings per page           (default: 12)
    DEBOUNCE_SECONDS   filter quiescence window    (default: 0.5)
    REQUEST_TIMEOUT    seconds per HTTP request    (default: 30)
    SESSION_FILE       where the signed-in session is kept
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

BACKENDS = ("rest", "supabase", "memory")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass
class Settings:
    backend: str = "rest"
    api_base_url: str = "http://localhost:3000/api"
    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    page_size: int = 12
    debounce_seconds: float = 0.5
    request_timeout: float = 30.0
    session_file: str = field(default_factory=lambda: os.path.expanduser("~/.propertyhub/session.json"))

    def __post_init__(self) -> None:
        self.backend = (self.backend or "rest").strip().lower()
        if self.backend not in BACKENDS:
            raise ValueError(f"Unsupported backend {self.backend!r}; expected one of {', '.join(BACKENDS)}")
        if self.page_size < 1:
            raise ValueError("PAGE_SIZE must be at least 1")


def load_settings(**overrides) -> Settings:
    """Build settings from the environment, letting keyword overrides win."""
    load_dotenv()
    values = {
        "backend": os.getenv("BACKEND", "rest"),
        "api_base_url": os.getenv("API_BASE_URL", "http://localhost:3000/api"),
        "supabase_url": os.getenv("SUPABASE_URL"),
        "supabase_anon_key": os.getenv("SUPABASE_ANON_KEY"),
        "page_size": _env_int("PAGE_SIZE", 12),
        "debounce_seconds": _env_float("DEBOUNCE_SECONDS", 0.5),
        "request_timeout": _env_float("REQUEST_TIMEOUT", 30.0),
    }
    session_file = os.getenv("SESSION_FILE")
    if session_file:
        values["session_file"] = os.path.expanduser(session_file)
    values.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**values)
