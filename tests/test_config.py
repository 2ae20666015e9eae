"""Unit tests for configuration parsing."""

import pytest
from pydantic import ValidationError

from dataspace_broker.config import Settings, parse_csv


class TestParseCsv:
    def test_parses_single_entry(self):
        assert parse_csv("https://a") == ["https://a"]

    def test_parses_multiple_entries(self):
        assert parse_csv("https://a,https://b") == ["https://a", "https://b"]

    def test_strips_whitespace(self):
        assert parse_csv("  a , b  ") == ["a", "b"]

    def test_filters_empty_entries(self):
        assert parse_csv("a,,b") == ["a", "b"]

    def test_empty_string_returns_empty_list(self):
        assert parse_csv("") == []

    def test_whitespace_only_returns_empty_list(self):
        assert parse_csv("   ") == []


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.usage_control_framework == "internal"
        assert settings.data_removal_interval_seconds == 60
        assert settings.http_timeout_seconds == 30.0

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("USAGE_CONTROL_FRAMEWORK", "external")
        monkeypatch.setenv("ALLOWED_CONNECTORS", "https://a,https://b")

        settings = Settings(_env_file=None)

        assert settings.usage_control_framework == "external"
        assert settings.allowed_connector_list == ["https://a", "https://b"]

    def test_rejects_unknown_framework(self):
        with pytest.raises(ValidationError):
            Settings(usage_control_framework="remote")

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValidationError):
            Settings(data_removal_interval_seconds=0)
