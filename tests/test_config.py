"""Tests for environment-driven settings."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from transcript_engine.config import EngineSettings


class TestEngineSettings:
    def test_defaults(self):
        settings = EngineSettings.from_env(environ={})

        assert settings.youtube_api_key is None
        assert settings.youtube_base_url == "https://www.youtube.com"
        assert settings.metadata_cache_size == 30
        assert settings.metadata_cache_ttl_seconds == 45.0
        assert settings.attempt_timeout_seconds == 45.0
        assert settings.metadata_timeout_seconds == 10.0
        assert settings.enable_local_whisper is True

    def test_values_are_coerced(self):
        settings = EngineSettings.from_env(
            environ={
                "SUPADATA_API_KEY": " sk-supa ",
                "ATTEMPT_TIMEOUT_MS": "20000",
                "METADATA_CACHE_TTL_SECONDS": "12.5",
                "ENABLE_LOCAL_WHISPER": "false",
                "WHISPER_MODEL": "small",
                "SUPADATA_BASE_URL": "http://localhost:9000/v1",
            }
        )

        assert settings.supadata_api_key == "sk-supa"
        assert settings.attempt_timeout_ms == 20000
        assert settings.metadata_cache_ttl_seconds == 12.5
        assert settings.enable_local_whisper is False
        assert settings.whisper_model == "small"
        assert settings.supadata_base_url == "http://localhost:9000/v1"

    def test_blank_values_fall_back_to_defaults(self):
        settings = EngineSettings.from_env(environ={"OPENAI_API_KEY": "   ", "LOG_LEVEL": ""})

        assert settings.openai_api_key is None
        assert settings.log_level == "INFO"

    def test_invalid_number(self):
        with pytest.raises(ValidationError):
            EngineSettings.from_env(environ={"METADATA_CACHE_SIZE": "0"})

    def test_keys_hidden_from_repr(self):
        settings = EngineSettings(openai_api_key="sk-secret", youtube_api_key="yt-secret")

        assert "secret" not in repr(settings)

    def test_dotenv_file_does_not_override_process_env(self, tmp_path, monkeypatch):
        (tmp_path / ".env").write_text("SUPADATA_API_KEY=from-file\nOPENAI_STT_MODEL=from-file\n", encoding="utf-8")
        monkeypatch.chdir(tmp_path)
        # register both so monkeypatch removes whatever load_dotenv sets
        monkeypatch.setenv("SUPADATA_API_KEY", "placeholder")
        monkeypatch.delenv("SUPADATA_API_KEY")
        monkeypatch.setenv("OPENAI_STT_MODEL", "from-process")

        settings = EngineSettings.from_env()

        assert settings.supadata_api_key == "from-file"
        assert settings.openai_stt_model == "from-process"
