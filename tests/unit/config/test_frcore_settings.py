"""Test bridge settings loaded from the environment."""

import pytest
from pydantic import ValidationError

from frcore_bridge.config import Settings, get_settings


class TestSettings:
    """Test settings configuration."""

    def test_defaults(self, monkeypatch):
        """Test default values."""
        monkeypatch.delenv("FRCORE_CATALOG_PATH", raising=False)
        settings = Settings(_env_file=None)
        assert settings.log_format == "console"
        assert settings.utc_offset == "+02:00"
        assert settings.catalog_path is None
        assert settings.event_uri_base == "https://hl7.fr/ig/fhir/core"

    def test_environment_overrides(self, monkeypatch):
        """Test FRCORE_ prefixed variables."""
        monkeypatch.setenv("FRCORE_LOG_FORMAT", "json")
        monkeypatch.setenv("FRCORE_UTC_OFFSET", "+01:00")
        monkeypatch.setenv("FRCORE_CATALOG_PATH", "/etc/frcore/catalog.json")
        settings = Settings(_env_file=None)
        assert settings.log_format == "json"
        assert settings.utc_offset == "+01:00"
        assert settings.catalog_path == "/etc/frcore/catalog.json"

    @pytest.mark.parametrize(
        "offset", ["0200", "+2:00", "UTC", "+02-00", "+25:00", "-24:00", "+02:75", "+a2:00"]
    )
    def test_invalid_offset(self, offset):
        """Test offset validation."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, utc_offset=offset)

    @pytest.mark.parametrize("offset", ["+00:00", "-05:30", "+23:59"])
    def test_valid_offset(self, offset):
        """Test offsets a fixed timezone accepts."""
        assert Settings(_env_file=None, utc_offset=offset).utc_offset == offset

    def test_invalid_log_format(self):
        """Test renderer validation."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_format="xml")

    def test_settings_are_cached(self):
        """Test the shared instance."""
        assert get_settings() is get_settings()

    def test_offset_flows_into_conversion(self, monkeypatch, adt_a01_raw):
        """Test that the configured offset is used by convert."""
        from frcore_bridge import convert

        monkeypatch.setenv("FRCORE_UTC_OFFSET", "+01:00")
        bundle = convert(adt_a01_raw)
        assert bundle.message_header.timestamp == "2025-06-18T12:00:00+01:00"
        assert bundle.timestamp.endswith("+01:00")
