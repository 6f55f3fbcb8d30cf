"""Application configuration loaded from environment variables."""

from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # LLM API Keys
    openai_api_key: str = ""
    anthropic_api_key: str = ""

    # Template generation
    template_provider: str = "anthropic"  # "anthropic" | "openai"
    creative_model: str = "claude-sonnet-4-5-20250929"
    reasoning_model: str = "gpt-4o"
    template_temperature: float = 0.9
    min_shots: int = 8
    max_shots: int = 12
    min_total_sec: float = 12.0
    max_total_sec: float = 18.0

    # Staged progress timing (seconds per step)
    analysis_step_delay: float = 0.5
    export_step_delay: float = 0.7

    # Playback
    playback_autoadvance: bool = False

    # Export gate: every shot filled, or at least one shot filled
    export_requires_complete: bool = True

    # Output
    output_base_dir: str = "./output"
    preview_url_prefix: str = "/files/media"

    # CORS (comma-separated)
    allowed_origins: str = ""


settings = Settings()


def get_media_dir() -> Path:
    """Directory that backs file-based preview handles."""
    return Path(settings.output_base_dir).resolve() / "media"
