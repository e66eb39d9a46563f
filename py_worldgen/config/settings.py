"""Runtime settings."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings pulled from ``WORLDGEN_*`` environment variables or ``.env``."""

    model_config = SettingsConfigDict(env_prefix="WORLDGEN_", env_file=".env", extra="ignore")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["console", "json"] = Field(default="console", description="Logging format")

    # Map Generation Configuration
    default_map_width: int = Field(default=1000, gt=0, description="Default map width")
    default_map_height: int = Field(default=800, gt=0, description="Default map height")
    default_min_spacing: float = Field(default=10.0, gt=0, description="Default minimum site spacing")
    default_seed: int = Field(default=42, description="Default generation seed")
