"""Runtime configuration loaded from environment variables."""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _is_true(name: str, default: str = "true") -> bool:
    return os.getenv(name, default).strip().lower() == "true"


def _csv_list(name: str, default: str) -> list[str]:
    raw = os.getenv(name, default)
    return [part.strip() for part in raw.split(",") if part.strip()]


def resolve_path(path_value: str) -> Path:
    """Resolve a config file path against the cwd first, then the repo root."""
    path = Path(path_value).expanduser()
    if path.is_absolute():
        return path

    cwd_path = Path.cwd() / path
    if cwd_path.exists():
        return cwd_path

    repo_root = Path(__file__).resolve().parents[1]
    return repo_root / path


class Settings:
    API_HOST = os.getenv("API_HOST", "127.0.0.1")
    API_PORT = int(os.getenv("API_PORT", os.getenv("PORT", "3000")))
    CORS_ALLOW_ORIGINS = _csv_list("CORS_ALLOW_ORIGINS", "*")

    RECORDS_CSV = os.getenv("RECORDS_CSV", "institutions.csv").strip()

    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "").strip()
    GEMINI_BASE_URL = os.getenv(
        "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
    ).rstrip("/")
    MODEL_ROUTES = os.getenv(
        "MODEL_ROUTES",
        "gemini-2.0-flash=gemini-2.0-flash-001,"
        "gemini-1.5-flash=gemini-1.5-flash-latest,"
        "gemini-pro=gemini-1.0-pro",
    ).strip()
    MODEL_ROUTES_FILE = os.getenv("MODEL_ROUTES_FILE", "").strip()
    MODEL_TIMEOUT_SEC = float(os.getenv("MODEL_TIMEOUT_SEC", "20"))
    MODEL_TEMPERATURE = float(os.getenv("MODEL_TEMPERATURE", "0.3"))
    MODEL_MAX_OUTPUT_TOKENS = int(os.getenv("MODEL_MAX_OUTPUT_TOKENS", "1024"))
    HTTP_RETRIES = int(os.getenv("HTTP_RETRIES", "2"))
    HTTP_RETRY_BACKOFF_SEC = float(os.getenv("HTTP_RETRY_BACKOFF_SEC", "0.5"))

    FALLBACK_MAX_MATCHES = int(os.getenv("FALLBACK_MAX_MATCHES", "5"))
    ENABLE_PROMPT_SCREEN = _is_true("ENABLE_PROMPT_SCREEN", "false")
    SCREEN_RULES_FILE = os.getenv("SCREEN_RULES_FILE", "").strip()

    EVENT_LOG_DIR = os.getenv("EVENT_LOG_DIR", "data/runs").strip()


settings = Settings()
