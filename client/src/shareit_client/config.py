"""Configuration for the ShareIt client."""

from pathlib import Path

from pydantic import BaseModel, Field


class Config(BaseModel):
    """Static Firebase project configuration, read once at start."""

    project_id: str
    app_id: str
    api_key: str
    storage_bucket: str
    firebase_credentials_path: Path
    notification_duration_ms: int = Field(default=3000, ge=0)
    cache_dir: Path | None = None


def load_config(path: Path) -> Config:
    """Load configuration from a JSON file."""
    return Config.model_validate_json(path.read_text())
