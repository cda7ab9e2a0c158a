"""
Runtime configuration for the Image Filter Advisor.

Values are read from ``FILTER_ADVISOR_*`` environment variables so the
Streamlit deployment can be tuned without code changes.
"""
import logging
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class AdvisorConfig(BaseSettings):
    """Configuration for the advisor core and the Streamlit app."""
    metrics_mode: Literal["opencv", "synthetic"] = "opencv"
    synthetic_seed: Optional[int] = None
    analysis_delay: float = Field(1.5, ge=0)  # seconds the suggestion step takes
    max_file_size: int = Field(50 * 1024 * 1024, gt=0)  # 50MB in bytes
    max_processing_size: int = Field(1024, gt=0)
    log_level: str = "INFO"

    model_config = {"env_prefix": "FILTER_ADVISOR_", "frozen": True}

    @field_validator("metrics_mode", mode="before")
    @classmethod
    def _lower_mode(cls, value):
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"must be one of {', '.join(LOG_LEVELS)}")
        return level


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the application."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    logging.getLogger().setLevel(level.upper())
