import os
from typing import Optional
from pydantic import BaseModel, Field

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in _TRUE_VALUES


class Settings(BaseModel):
    # Backend
    backend: str = Field(default="mock", description="Backend gateway: 'mock' or 'gemini'")
    gemini_api_key: Optional[str] = Field(default=None)
    image_model: str = Field(default="gemini-2.5-flash-image", description="Multimodal image model")
    video_model: str = Field(default="veo-2.0-generate-001", description="Image-to-video model")
    background_model: str = Field(default="imagen-4.0-generate-001", description="Text-to-image model")

    # Workflow timing
    video_poll_interval: float = Field(default=10.0, description="Seconds between video operation polls")
    retry_max_attempts: int = Field(default=3, description="Attempts per backend call, first try included")
    retry_base_delay: float = Field(default=2.0, description="First backoff delay in seconds")
    retry_backoff: float = Field(default=2.0, description="Backoff multiplier between attempts")
    rate_limit_window: float = Field(default=60.0, description="Rolling request window in seconds")

    # Defaults
    default_number_of_images: int = Field(default=1, description="Images per pass when unset")

    # Paths
    blob_dir: str = Field(default="video_blobs", description="Directory for downloaded video blobs")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    # API
    api_host: str = Field(default="0.0.0.0", description="API Host")
    api_port: int = Field(default=8000, description="API Port")
    api_key: str = Field(default="dev-secret-key", description="API Key for mutating endpoints")
    api_reload: bool = Field(default=False, description="Auto-reload the API server on code changes")

    @staticmethod
    def load() -> "Settings":
        """
        Load settings from environment variables or defaults.
        Unparseable values keep the default.
        """
        overrides = {}

        env_map = {
            "PHOTOSHOOT_BACKEND": ("backend", str),
            "GEMINI_API_KEY": ("gemini_api_key", str),
            "PHOTOSHOOT_IMAGE_MODEL": ("image_model", str),
            "PHOTOSHOOT_VIDEO_MODEL": ("video_model", str),
            "PHOTOSHOOT_BACKGROUND_MODEL": ("background_model", str),
            "PHOTOSHOOT_VIDEO_POLL_INTERVAL": ("video_poll_interval", float),
            "PHOTOSHOOT_RETRY_MAX_ATTEMPTS": ("retry_max_attempts", int),
            "PHOTOSHOOT_RETRY_BASE_DELAY": ("retry_base_delay", float),
            "PHOTOSHOOT_RETRY_BACKOFF": ("retry_backoff", float),
            "PHOTOSHOOT_RATE_LIMIT_WINDOW": ("rate_limit_window", float),
            "PHOTOSHOOT_DEFAULT_NUMBER_OF_IMAGES": ("default_number_of_images", int),
            "PHOTOSHOOT_BLOB_DIR": ("blob_dir", str),
            "PHOTOSHOOT_LOG_LEVEL": ("log_level", str),
            "PHOTOSHOOT_API_HOST": ("api_host", str),
            "PHOTOSHOOT_API_PORT": ("api_port", int),
            "PHOTOSHOOT_API_KEY": ("api_key", str),
            "PHOTOSHOOT_API_RELOAD": ("api_reload", bool),
        }

        for env_var, (field, type_) in env_map.items():
            val = os.getenv(env_var)
            if val is not None:
                try:
                    overrides[field] = _parse_bool(val) if type_ is bool else type_(val)
                except ValueError:
                    pass  # Keep default if parse fails

        return Settings(**overrides)


# Global settings instance
settings = Settings.load()
