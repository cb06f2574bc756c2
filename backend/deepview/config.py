import logging
import sys

from pydantic_settings import BaseSettings
from typing import Dict, List, Optional


def setup_logging():
    """Configure application logging."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # Set third-party loggers to WARNING to reduce noise
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# Initialize logging on import
setup_logging()

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    # API Keys (server-side only)
    gateway_api_key: Optional[str] = None
    replicate_api_key: Optional[str] = None
    runway_api_key: Optional[str] = None
    luma_api_key: Optional[str] = None

    # LLM gateway (OpenAI-compatible chat completions)
    gateway_base_url: str = "https://ai.gateway.lovable.dev/v1"
    chat_model: str = "google/gemini-2.5-flash"
    analysis_model: str = "google/gemini-2.5-pro"
    image_model: str = "google/gemini-2.5-flash-image-preview"

    # Video generation
    video_cooldown_seconds: int = 600  # circuit breaker window after a permanent failure
    video_poll_interval: float = 3.0
    video_max_poll_attempts: int = 120  # 6 minutes at the default interval
    video_duration_seconds: int = 5
    default_aspect_ratio: str = "16:9"
    # Provider-specific values accepted for ratio and duration
    runway_ratios: Dict[str, str] = {"16:9": "1280:768", "9:16": "768:1280"}
    runway_durations: List[int] = [5, 10]
    luma_durations: List[str] = ["5s", "9s"]

    # Intent keywords (bilingual, matched case-insensitively as substrings)
    generation_verbs: List[str] = ["genera", "crea", "generate", "create"]
    image_generation_verbs: List[str] = ["genera", "crea", "dibuja", "generate", "create", "draw"]
    video_nouns: List[str] = ["video", "vídeo", "animación", "animation"]
    image_nouns: List[str] = ["imagen", "image", "foto", "picture"]

    # Message validation
    max_message_chars: int = 10000
    max_images: int = 10
    max_videos: int = 5
    max_title_chars: int = 200

    # Client streaming
    chat_url: str = "http://localhost:8000/api/chat"
    stream_flush_interval: float = 0.15  # seconds between coalesced text flushes

    # Server configuration
    debug: bool = False
    database_url: Optional[str] = None

    # Timeout settings (seconds)
    provider_timeout: int = 60

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


def warn_missing_gateway_key():
    """Log a warning when the LLM gateway key is absent. Chat requests will fail with 500."""
    if not settings.gateway_api_key:
        logger.warning("=" * 60)
        logger.warning("GATEWAY_API_KEY is not configured!")
        logger.warning("Chat requests will be rejected until it is set in .env:")
        logger.warning("    GATEWAY_API_KEY=your_gateway_key_here")
        logger.warning("=" * 60)


settings = Settings()
