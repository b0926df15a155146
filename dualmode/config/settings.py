from __future__ import annotations

import os
from functools import lru_cache

from dotenv import load_dotenv


load_dotenv()


class Settings:
    """Runtime settings loaded from environment variables.

    Every component takes explicit constructor arguments and falls back to
    these values, so tests can build isolated instances without touching
    the environment.
    """

    app_env: str = os.getenv("APP_ENV", "development")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_format: str = os.getenv("LOG_FORMAT", "json")
    service_name: str = os.getenv("SERVICE_NAME", "dualmode-agent")

    # Conversation memory
    window_size: int = int(os.getenv("WINDOW_SIZE", "20"))
    fingerprint_prefix_messages: int = int(os.getenv("FINGERPRINT_PREFIX_MESSAGES", "5"))
    fingerprint_content_chars: int = int(os.getenv("FINGERPRINT_CONTENT_CHARS", "500"))
    fingerprint_length: int = int(os.getenv("FINGERPRINT_LENGTH", "16"))
    cache_ttl_seconds: int = int(os.getenv("CACHE_TTL_SECONDS", "3600"))

    # Context rendering
    max_context_tokens: int = int(os.getenv("MAX_CONTEXT_TOKENS", "30000"))
    summary_word_limit: int = int(os.getenv("SUMMARY_WORD_LIMIT", "80"))
    tokens_per_char: float = float(os.getenv("TOKENS_PER_CHAR", "0.25"))

    # Tools
    min_pending_request_chars: int = int(os.getenv("MIN_PENDING_REQUEST_CHARS", "3"))

    # Transport gateway
    ws_host: str = os.getenv("WS_HOST", "0.0.0.0")
    ws_port: int = int(os.getenv("WS_PORT", "8000"))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
