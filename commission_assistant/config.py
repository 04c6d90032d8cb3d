"""
Runtime configuration for the Commission Assistant.

Everything is read from environment variables on each call so tests can
override values with monkeypatch.
"""

import os
from typing import Any, Dict

DEFAULT_LLM_API_URL = "https://api.groq.com/openai/v1/chat/completions"
DEFAULT_LLM_MODEL = "llama3-8b-8192"
DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./commission_assistant.db"


def get_config() -> Dict[str, Any]:
    return {
        "llm_api_key": os.getenv("GROQ_API_KEY", ""),
        "llm_model": os.getenv("GROQ_MODEL", DEFAULT_LLM_MODEL),
        "llm_api_url": os.getenv("GROQ_API_URL", DEFAULT_LLM_API_URL),
        "llm_timeout": float(os.getenv("GROQ_TIMEOUT", "45")),
        "llm_retry_delay": float(os.getenv("GROQ_RETRY_DELAY", "0.2")),
        "timezone": os.getenv("APP_TIMEZONE", "UTC"),
        "app_url": os.getenv("APP_URL", "http://localhost:8000").rstrip("/"),
        "database_url": os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
        "debug": os.getenv("APP_DEBUG", "false").lower() == "true",
        "host": os.getenv("APP_HOST", "0.0.0.0"),
        "port": int(os.getenv("APP_PORT", "8000")),
        "log_level": os.getenv("LOG_LEVEL", "INFO").upper(),
    }
