"""
App config from environment with defaults.
Uses pydantic-settings so all env vars are validated and documented in one model.
Infrastructure names (queue URL, bucket, table, region) stay in
resource_media_aws_adapters.env_config.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TranscodeWorkerSettings(BaseSettings):
    """
    All environment variables used by the transcode worker.
    Env vars are read from os.environ (UPPER_SNAKE_CASE by default).
    """

    model_config = SettingsConfigDict(
        env_file=None,  # .env is loaded by bootstrap_env() before settings are read
        extra="ignore",
        populate_by_name=True,
    )

    # ffmpeg / ffprobe: empty means look up on PATH
    ffmpeg_path: str = ""
    ffprobe_path: str = ""
    ffmpeg_timeout_sec: int = Field(1800, gt=0)
    ffprobe_timeout_sec: int = Field(60, gt=0)

    # Derived artifacts
    preview_max_seconds: float = Field(30.0, gt=0)
    preview_max_width: int = Field(1280, gt=0)
    thumbnail_width: int = Field(1280, gt=0)

    # Catalog: PostgREST-style HTTP API (the web app's database) or a DynamoDB table
    catalog_backend: Literal["postgrest", "dynamodb"] = "postgrest"
    catalog_api_url: str = Field(
        "",
        validation_alias=AliasChoices("CATALOG_API_URL", "SUPABASE_URL"),
    )
    catalog_api_key: str = Field(
        "",
        validation_alias=AliasChoices("CATALOG_API_KEY", "SUPABASE_SERVICE_ROLE_KEY"),
    )
    catalog_resource_table: str = "resources"
    catalog_timeout_sec: int = Field(30, gt=0)

    # Queue: heartbeat extends visibility every N seconds while a job runs (0 disables)
    visibility_heartbeat_sec: int = Field(60, ge=0)
    poll_interval_sec: float = Field(1.0, ge=0)

    # Local scratch files; empty means the system temp dir
    scratch_dir: str = ""

    # Delete artifacts uploaded by an attempt that later aborts
    rollback_on_failure: bool = True
    # Source object gone: the job already finished (or never can), so drop the message
    ack_when_source_missing: bool = True

    # Log encoder progress (ffmpeg -progress) every 10%
    log_progress: bool = True

    log_level: str = "INFO"


def get_settings() -> TranscodeWorkerSettings:
    """Return validated settings from current environment."""
    return TranscodeWorkerSettings()


def bootstrap_env() -> None:
    """
    Load .env from path in TRANSCODE_WORKER_ENV_FILE if set, else ./.env when present.
    Call once at startup before get_settings() so vars from the file are in os.environ.
    Variables already set in the environment win over the file.
    """
    import dotenv

    path = os.environ.get("TRANSCODE_WORKER_ENV_FILE")
    if path:
        dotenv.load_dotenv(Path(path).resolve())
        return
    local = Path.cwd() / ".env"
    if local.is_file():
        dotenv.load_dotenv(local)
