"""Project configuration and paths.

Loads settings from config/settings.yaml and environment variables.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

# === Paths ===
PROJECT_ROOT = Path(__file__).parent.parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"

# Load .env from project root
load_dotenv(PROJECT_ROOT / ".env")


class PipelineSettings(BaseModel):
    """Settings for the image fetch/upload pipeline."""
    concurrency: int = Field(default=3, ge=1)
    fetch_timeout_seconds: float = 30.0
    upload_timeout_seconds: float = 60.0
    job_cache_ttl_seconds: float = 600.0
    dom_paste_timeout_ms: int = 30_000
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/131.0.0.0 Safari/537.36"
    )
    neutral_referrer: str = "https://www.google.com/"


class SerializerSettings(BaseModel):
    """Default serializer profile applied when a platform declares none."""
    math_mode: Literal["latex", "image", "html"] = "latex"
    complex_table_mode: Literal["html", "simplify", "image"] = "html"
    bullet_marker: Literal["-", "*", "+"] = "-"
    emphasis_marker: Literal["_", "*"] = "_"


class Settings(BaseModel):
    """Top-level application settings."""
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    serializer: SerializerSettings = Field(default_factory=SerializerSettings)

    @classmethod
    def load(cls, settings_path: Path | None = None) -> Settings:
        """Load settings from config/settings.yaml, falling back to defaults.

        Environment variables override file values:
        PIPELINE_CONCURRENCY, FETCH_TIMEOUT_SECONDS, JOB_CACHE_TTL_SECONDS.
        """
        settings_path = settings_path or CONFIG_DIR / "settings.yaml"
        data: dict = {}
        if settings_path.exists():
            with open(settings_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}

        pipeline = dict(data.get("pipeline") or {})
        if concurrency := os.getenv("PIPELINE_CONCURRENCY"):
            pipeline["concurrency"] = int(concurrency)
        if timeout := os.getenv("FETCH_TIMEOUT_SECONDS"):
            pipeline["fetch_timeout_seconds"] = float(timeout)
        if ttl := os.getenv("JOB_CACHE_TTL_SECONDS"):
            pipeline["job_cache_ttl_seconds"] = float(ttl)
        data["pipeline"] = pipeline

        return cls(**data)


# Singleton settings instance
settings = Settings.load()
