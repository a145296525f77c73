"""Unit tests for engine settings."""

import pytest
from pydantic import ValidationError

from labformula.core.config import Settings, get_settings


class TestSettings:
    """Tests for Settings class."""

    def test_defaults(self, monkeypatch):
        """Test default values."""
        monkeypatch.delenv("LABFORMULA_ROW_ID_BASE", raising=False)
        settings = Settings(_env_file=None)
        assert settings.comparison_epsilon == 1e-10
        assert settings.fuzzy_token_threshold == 0.6
        assert settings.variable_column == "Variable"
        assert settings.row_id_prefix == "row-"
        assert settings.row_id_base == 1
        assert settings.error_highlight_color == "#ff6b6b"
        assert "LOQ" in settings.excluded_columns
        assert settings.loq_column == "LOQ"
        assert settings.log_level == "INFO"

    def test_environment_override(self, monkeypatch):
        """Test values are read from prefixed environment variables."""
        monkeypatch.setenv("LABFORMULA_ROW_ID_BASE", "0")
        monkeypatch.setenv("LABFORMULA_EXCLUDED_COLUMNS", "id, Variable ,Unit")
        settings = Settings(_env_file=None)
        assert settings.row_id_base == 0
        assert settings.excluded_columns == ["id", "Variable", "Unit"]

    def test_comma_separated_excluded_columns(self):
        """Test a comma-separated string is split."""
        settings = Settings(_env_file=None, excluded_columns="id,Method")
        assert settings.excluded_columns == ["id", "Method"]

    def test_invalid_epsilon(self):
        """Test epsilon must be positive."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, comparison_epsilon=0)

    def test_invalid_threshold(self):
        """Test the fuzzy threshold range."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, fuzzy_token_threshold=1.5)

    def test_log_level(self):
        """Test the log level is upper-cased and checked."""
        assert Settings(_env_file=None, log_level="warning").log_level == "WARNING"
        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_level="verbose")

    def test_invalid_row_id_base(self):
        """Test only 0 and 1 are accepted as row id base."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, row_id_base=2)

    def test_get_settings_cached(self):
        """Test get_settings returns one instance."""
        assert get_settings() is get_settings()
