"""Tests for settings and the sources file."""

from pathlib import Path

import pytest
import structlog

from codegen_daemon.config.exceptions import ConfigurationError
from codegen_daemon.config.logging import (
    _drop_performance_metrics,
    sanitize_log_data,
)
from codegen_daemon.config.settings import (
    SearchConfig,
    Settings,
    UsageConfig,
    load_sources_file,
)


class TestSettings:
    """Test settings defaults and environment overrides."""

    def test_defaults(self):
        settings = Settings()

        assert settings.server.host == "127.0.0.1"
        assert settings.search.alpha == 0.75
        assert settings.search.half_life_hours == 24.0
        assert settings.search.intent_alpha.path == 0.95
        assert settings.search.method_intent_fallback is False
        assert settings.sync.timeout_seconds == 300.0
        assert settings.get_specs_dir() == Path(".codegen") / "specs"

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("SEARCH_ALPHA", "0.5")
        monkeypatch.setenv("SEARCH_FUZZY", "0")

        config = SearchConfig()

        assert config.alpha == 0.5
        assert config.fuzzy == 0.0

    def test_out_of_range_rejected(self):
        with pytest.raises(ValueError):
            SearchConfig(alpha=2.0)

    def test_usage_root_defaults_to_cwd(self, tmp_path):
        assert UsageConfig().get_root_dir() == Path.cwd()
        assert UsageConfig(root_dir=str(tmp_path)).get_root_dir() == tmp_path


class TestSourcesFile:
    """Test parsing of sources.yaml."""

    def test_missing_file_means_no_sources(self, tmp_path):
        assert load_sources_file(tmp_path / "sources.yaml") == []

    def test_both_key_spellings(self, tmp_path):
        path = tmp_path / "sources.yaml"
        path.write_text(
            "sources:\n"
            "  - id: petstore\n"
            "    specUrl: https://example.com/petstore.json\n"
            "  - id: local\n"
            "    spec_url: ./specs/local.yaml\n"
        )

        sources = load_sources_file(path)

        assert [s.id for s in sources] == ["petstore", "local"]
        assert sources[1].spec_url == "./specs/local.yaml"

    def test_settings_load_sources(self, tmp_path):
        path = tmp_path / "sources.yaml"
        path.write_text("sources:\n  - id: a\n    specUrl: a.json\n")

        assert Settings(sources_file=str(path)).load_sources()[0].id == "a"

    @pytest.mark.parametrize(
        "content",
        [
            "sources: [unclosed",
            "sources: not-a-list",
            "- just\n- a list\n",
            "sources:\n  - id: a\n",
            "sources:\n  - id: a\n    specUrl: x\n  - id: a\n    specUrl: y\n",
        ],
    )
    def test_invalid_files(self, tmp_path, content):
        path = tmp_path / "sources.yaml"
        path.write_text(content)

        with pytest.raises(ConfigurationError):
            load_sources_file(path)

    def test_error_message_includes_details(self):
        error = ConfigurationError("Bad file", {"line": 3})

        assert str(error) == "Bad file (Details: {'line': 3})"


class TestLoggingHelpers:
    """Test logging helpers."""

    def test_sanitize_masks_secrets(self):
        data = {"url": "https://x", "api_key": "abc", "nested": {"token": "t"}}

        sanitized = sanitize_log_data(data)

        assert sanitized["url"] == "https://x"
        assert sanitized["api_key"] == "[REDACTED]"
        assert sanitized["nested"]["token"] == "[REDACTED]"

    def test_performance_events_can_be_dropped(self):
        with pytest.raises(structlog.DropEvent):
            _drop_performance_metrics(None, "info", {"metric_type": "performance"})

        event = {"event": "hello"}
        assert _drop_performance_metrics(None, "info", event) is event
