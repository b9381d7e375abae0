"""Configuration management for API keys and settings."""

import os
from typing import Optional
from pathlib import Path

from dotenv import load_dotenv

# config.py is in kazilens/, .env is in project root
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(env_path, override=True)


def _optional_device(value: Optional[str]):
    """Device selector from env: index if numeric, name otherwise, None for default."""
    value = (value or "").strip()
    if not value:
        return None
    return int(value) if value.isdigit() else value


class Config:
    """Application configuration from environment variables."""

    # Gemini settings
    GEMINI_API_KEY: Optional[str] = os.getenv("GEMINI_API_KEY")
    GEMINI_BASE_URL: str = os.getenv("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com")
    GEMINI_ANALYSIS_MODEL: str = os.getenv("GEMINI_ANALYSIS_MODEL", "gemini-3-pro-preview")
    GEMINI_FAST_MODEL: str = os.getenv("GEMINI_FAST_MODEL", "gemini-3-flash-preview")
    GEMINI_MAPS_MODEL: str = os.getenv("GEMINI_MAPS_MODEL", "gemini-2.5-flash")
    GEMINI_COACH_MODEL: str = os.getenv("GEMINI_COACH_MODEL", "gemini-3-pro-preview")
    GEMINI_TIMEOUT_SECONDS: float = float(os.getenv("GEMINI_TIMEOUT_SECONDS", "90"))

    # Live interview session
    LIVE_MODEL: str = os.getenv("LIVE_MODEL", "gemini-2.5-flash-native-audio-preview-12-2025")
    LIVE_VOICE: str = os.getenv("LIVE_VOICE", "Puck")
    LIVE_INPUT_SAMPLE_RATE: int = int(os.getenv("LIVE_INPUT_SAMPLE_RATE", "16000"))
    LIVE_OUTPUT_SAMPLE_RATE: int = int(os.getenv("LIVE_OUTPUT_SAMPLE_RATE", "24000"))
    LIVE_CAPTURE_BLOCKSIZE: int = int(os.getenv("LIVE_CAPTURE_BLOCKSIZE", "4096"))  # ~256ms @ 16k
    LIVE_SEND_QUEUE_MAXSIZE: int = int(os.getenv("LIVE_SEND_QUEUE_MAXSIZE", "32"))
    LIVE_INPUT_DEVICE = _optional_device(os.getenv("LIVE_INPUT_DEVICE"))
    LIVE_OUTPUT_DEVICE = _optional_device(os.getenv("LIVE_OUTPUT_DEVICE"))
    TRANSCRIPT_WINDOW: int = int(os.getenv("TRANSCRIPT_WINDOW", "5"))

    # Batch call retry (429 / quota)
    RETRY_ATTEMPTS: int = int(os.getenv("RETRY_ATTEMPTS", "3"))
    RETRY_BASE_DELAY_MS: int = int(os.getenv("RETRY_BASE_DELAY_MS", "1000"))

    # Server
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    HOST: str = os.getenv("HOST", "127.0.0.1")
    PORT: int = int(os.getenv("PORT", "8010"))

    @classmethod
    def validate(cls) -> list[str]:
        """Validate configuration and return list of missing required settings."""
        missing = []

        if not cls.GEMINI_API_KEY:
            missing.append("GEMINI_API_KEY")

        if cls.LIVE_CAPTURE_BLOCKSIZE <= 0:
            missing.append("LIVE_CAPTURE_BLOCKSIZE (must be positive)")

        return missing

    @classmethod
    def get_gemini_key(cls) -> Optional[str]:
        """Get Gemini API key, re-reading the environment if it was set after import."""
        if cls.GEMINI_API_KEY:
            return cls.GEMINI_API_KEY
        key = os.getenv("GEMINI_API_KEY", "").strip()
        return key or None
