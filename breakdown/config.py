from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings validated via Pydantic.

    Values are loaded from environment variables and/or a .env file.
    """

    # API Keys
    sieve_api_key: str = ""
    openai_api_key: str = ""
    anthropic_api_key: str = ""

    # Transcription job service
    sieve_push_url: str = "https://mango.sievedata.com/v2/push"
    sieve_jobs_url: str = "https://mango.sievedata.com/v2/jobs"
    sieve_function: str = "sieve/youtube-downloader"
    subtitle_languages: list[str] = ["en"]
    http_timeout: float = 30.0
    poll_interval: float = 1.0
    max_poll_attempts: int = 120  # 2 minutes at 1s intervals
    max_retries: int = 2
    retry_backoff: float = 2.0

    # Learning pipeline
    chunk_duration_ms: int = 45000
    prefetch_window: int = 3
    prefetch_stagger: float = 1.0
    playback_poll_interval: float = 0.5
    video_poll_interval: float = 2.0

    # Explanation generation
    llm_provider: str = "openai"  # "openai" or "anthropic"
    explanation_model: str = "gpt-3.5-turbo"
    explanation_max_tokens: int = 200
    explanation_temperature: float = 0.7

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Gracefully handles missing .env files (e.g. in CI/testing) by falling
    back to environment variables and defaults.
    """
    try:
        return Settings()
    except Exception:
        # If .env is missing or unreadable, build settings from env vars only.
        return Settings(_env_file=None)  # type: ignore[call-arg]


settings = get_settings()
