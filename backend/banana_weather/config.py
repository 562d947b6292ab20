"""
Application configuration and settings.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings

# Built-in prompt templates shipped with the package
BUILTIN_PROMPTS_DIR = Path(__file__).resolve().parent / "prompts"


class ConfigError(Exception):
    """Raised at startup when required configuration is missing or invalid."""

    def __init__(self, message: str, missing: list[str] | None = None):
        self.message = message
        self.missing = missing or []
        super().__init__(message)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Google Cloud
    google_cloud_project: str = Field(
        default="",
        validation_alias=AliasChoices("GOOGLE_CLOUD_PROJECT", "PROJECT_ID"),
    )
    google_cloud_location: str = "us-central1"  # Veo region
    image_location: str = "global"  # Gemini image models are served from "global"
    genmedia_bucket: str = ""
    google_access_token: str = ""  # e.g. `gcloud auth print-access-token`
    public_storage_base_url: str = "https://storage.googleapis.com"

    # Geocoding
    google_maps_api_key: str = ""
    geocoding_url: str = "https://maps.googleapis.com/maps/api/geocode/json"

    # Models
    image_model: str = "gemini-3-pro-image-preview"
    video_model: str = "veo-3.1-fast-generate-preview"
    request_timeout: float = 120.0

    # Pipeline
    cache_ttl_hours: float = 3.0
    video_poll_interval: float = 5.0
    video_poll_timeout: float = 600.0
    default_city: str = "San Francisco"

    # Paths
    data_dir: Path = Path("data")
    prompts_dir: Path | None = None  # External prompts directory (overrides built-in)

    # Server
    port: int = 8080

    # Logging
    log_level: str = "INFO"
    log_format: str = "structured"  # "simple" or "structured"

    # Per-module log levels (optional overrides)
    log_level_pipeline: str | None = None
    log_level_clients: str | None = None
    log_level_storage: str | None = None

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }

    def require(self, *fields: str) -> "Settings":
        """
        Validate that the given settings are non-empty.

        Args:
            *fields: Setting attribute names that must be set

        Returns:
            The same settings instance (for chaining)

        Raises:
            ConfigError: If any of the fields is empty
        """
        missing = [name for name in fields if not getattr(self, name, None)]
        if missing:
            env_names = ", ".join(name.upper() for name in missing)
            raise ConfigError(f"Missing required configuration: {env_names}", missing)
        return self

    def require_server(self) -> "Settings":
        """Validate the settings needed to serve the weather API."""
        return self.require(
            "google_cloud_project",
            "genmedia_bucket",
            "google_maps_api_key",
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def load_prompt(
    stage: str,
    component: str,
    settings: Settings | None = None,
) -> str:
    """
    Load a prompt template with external folder priority.

    Lookup order (first found wins):
    1. prompts_dir/{stage}/{component}.md (external)
    2. <package>/prompts/{stage}/{component}.md (built-in)

    Args:
        stage: Prompt group ("image", "video")
        component: Prompt name within the group ("landmark", "drink", ...)
        settings: Optional settings instance

    Returns:
        Prompt template content (surrounding whitespace stripped)

    Raises:
        FileNotFoundError: If no matching prompt file is found
    """
    if settings is None:
        settings = get_settings()

    paths_to_check: list[Path] = []

    if settings.prompts_dir and settings.prompts_dir.exists():
        paths_to_check.append(settings.prompts_dir / stage / f"{component}.md")

    paths_to_check.append(BUILTIN_PROMPTS_DIR / stage / f"{component}.md")

    for path in paths_to_check:
        if path.exists():
            return path.read_text(encoding="utf-8").strip()

    raise FileNotFoundError(
        f"Prompt not found: stage={stage}, component={component}. "
        f"Checked paths: {[str(p) for p in paths_to_check]}"
    )
