"""Configuration management using pydantic-settings."""
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Gemini credentials: either an API key, or Vertex AI with a project id
    google_api_key: str = ""
    use_vertexai: bool = False
    gcp_project_id: str = ""
    vertex_ai_location: str = "global"

    # Image model settings
    image_model: str = "gemini-2.5-flash-image"
    max_image_count: int = Field(4, ge=1, le=4)

    # Keep the user's message visible after a failed edit unless enabled
    rollback_failed_edit: bool = False

    # Application settings
    app_name: str = "portrait-studio"

    # Server settings
    backend_host: str = "localhost"
    backend_port: int = 8000
    frontend_port: int = 3000

    @property
    def has_credentials(self) -> bool:
        """True when either the API key or the Vertex AI project is configured."""
        if self.use_vertexai:
            return bool(self.gcp_project_id)
        return bool(self.google_api_key)


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
