import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from config/.env
BASE_DIR = Path(__file__).resolve().parent
load_dotenv(BASE_DIR / ".env")


def _optional_float(name: str) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return float(raw)


class Settings:
    GEMINI_API_KEY: Optional[str] = os.getenv("GEMINI_API_KEY")
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash-image")
    # None keeps the SDK's default endpoint
    GEMINI_API_BASE: Optional[str] = os.getenv("GEMINI_API_BASE") or None

    # None means the edit request waits until the model answers
    REQUEST_TIMEOUT: Optional[float] = _optional_float("REQUEST_TIMEOUT")

    MAX_UPLOAD_BYTES: int = 4 * 1024 * 1024

    # Idle sessions are dropped after this many seconds; MAX_SESSIONS caps the store
    SESSION_TTL_SECONDS: float = float(os.getenv("SESSION_TTL_SECONDS", "3600"))
    MAX_SESSIONS: int = int(os.getenv("MAX_SESSIONS", "100"))

    # Every model-produced image is tagged with this encoding
    OUTPUT_MIME_TYPE: str = "image/png"
    ASPECT_RATIO: str = "1:1"
    EDIT_DIRECTIVE: str = "Edit this image."

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # When set, outbound request bodies are dumped here (image data elided)
    DEBUG_PAYLOAD_DIR: Optional[str] = os.getenv("DEBUG_PAYLOAD_DIR") or None

settings = Settings()
