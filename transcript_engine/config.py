# transcript_engine/config.py
"""
Engine configuration loaded from the environment.

Credentials, per-provider base URLs and default timeouts. A `.env` file in
the working directory is read first; variables already set in the process
environment win.
"""

from __future__ import annotations

import os
from typing import Mapping, Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from transcript_engine.extraction.schema import DEFAULT_BUDGET_MS, EXTENDED_BUDGET_MS

# field name -> environment variable
ENV_VARS = {
    "youtube_api_key": "YOUTUBE_API_KEY",
    "supadata_api_key": "SUPADATA_API_KEY",
    "openai_api_key": "OPENAI_API_KEY",
    "youtube_base_url": "YOUTUBE_BASE_URL",
    "youtube_data_api_url": "YOUTUBE_DATA_API_URL",
    "oembed_url": "OEMBED_URL",
    "supadata_base_url": "SUPADATA_BASE_URL",
    "openai_base_url": "OPENAI_BASE_URL",
    "attempt_timeout_ms": "ATTEMPT_TIMEOUT_MS",
    "extended_timeout_ms": "EXTENDED_TIMEOUT_MS",
    "metadata_timeout_ms": "METADATA_TIMEOUT_MS",
    "metadata_cache_size": "METADATA_CACHE_SIZE",
    "metadata_cache_ttl_seconds": "METADATA_CACHE_TTL_SECONDS",
    "backoff_base_delay": "BACKOFF_BASE_DELAY",
    "backoff_max_delay": "BACKOFF_MAX_DELAY",
    "whisper_model": "WHISPER_MODEL",
    "enable_local_whisper": "ENABLE_LOCAL_WHISPER",
    "openai_stt_model": "OPENAI_STT_MODEL",
    "log_level": "LOG_LEVEL",
}


class EngineSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    youtube_api_key: Optional[str] = Field(None, repr=False)
    supadata_api_key: Optional[str] = Field(None, repr=False)
    openai_api_key: Optional[str] = Field(None, repr=False)

    youtube_base_url: str = "https://www.youtube.com"
    youtube_data_api_url: str = "https://www.googleapis.com/youtube/v3"
    oembed_url: str = "https://www.youtube.com/oembed"
    supadata_base_url: str = "https://api.supadata.ai/v1"
    openai_base_url: Optional[str] = None

    attempt_timeout_ms: int = Field(DEFAULT_BUDGET_MS, gt=0)
    extended_timeout_ms: int = Field(EXTENDED_BUDGET_MS, gt=0)
    metadata_timeout_ms: int = Field(10_000, gt=0)
    metadata_cache_size: int = Field(30, ge=1)
    metadata_cache_ttl_seconds: float = Field(45.0, gt=0)

    backoff_base_delay: float = Field(1.0, ge=0)
    backoff_max_delay: float = Field(8.0, ge=0)

    whisper_model: str = "base"
    enable_local_whisper: bool = True
    openai_stt_model: str = "whisper-1"

    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, dotenv: bool = True) -> "EngineSettings":
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read instead of os.environ (tests).
            dotenv: Load `.env` into os.environ first (ignored when environ is given).
        """
        if environ is None:
            if dotenv:
                load_dotenv(find_dotenv(usecwd=True), override=False)
            environ = os.environ

        values = {}
        for field, variable in ENV_VARS.items():
            raw = environ.get(variable)
            if raw is not None and raw.strip() != "":
                values[field] = raw.strip()
        # pydantic coerces "false"/"0"/"no" and numeric strings
        return cls(**values)

    @property
    def attempt_timeout_seconds(self) -> float:
        return self.attempt_timeout_ms / 1000.0

    @property
    def metadata_timeout_seconds(self) -> float:
        return self.metadata_timeout_ms / 1000.0
