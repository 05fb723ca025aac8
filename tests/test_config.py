"""Tests for configuration module."""

import os
from unittest.mock import patch

import pytest

from core.config import (
    AppConfig,
    ConfigurationError,
    PurchasingConfig,
    SheetsConfig,
    SlackConfig,
    _mask_secret,
    load_config_from_env,
    load_local_settings,
)
from core.secrets import ENV_VARS, SecretsResolver, get_secret, mask_secret, missing_secrets


class TestMaskSecret:
    """Tests for secret masking utility."""

    def test_mask_normal_secret(self):
        """Test masking of normal length secret."""
        assert _mask_secret("abcdefghij") == "abcd******"

    def test_mask_short_secret(self):
        assert _mask_secret("abc") == "***"

    def test_mask_empty_secret(self):
        assert _mask_secret("") == "<empty>"

    def test_mask_for_display(self):
        """Test the display mask keeps both ends of long secrets."""
        assert mask_secret("https://hooks.slack.test/abcd") == "http****abcd"
        assert mask_secret("short") == "****"


class TestValidation:
    """Tests for AppConfig validation."""

    def test_defaults_valid_without_sheets(self):
        """Test the default config is valid when no spreadsheet is needed."""
        AppConfig().validate(require_sheets=False)

    def test_missing_spreadsheet_id(self):
        """Test a missing spreadsheet id is reported."""
        with pytest.raises(ConfigurationError) as exc_info:
            AppConfig().validate()
        assert "SHEETS_SPREADSHEET_ID is required" in str(exc_info.value)

    def test_all_errors_reported(self):
        """Test errors from every section are collected together."""
        config = AppConfig(
            sheets=SheetsConfig(spreadsheet_id="abc"),
            slack=SlackConfig(timeout=0),
            purchasing=PurchasingConfig(num_header_rows=-1),
        )

        with pytest.raises(ConfigurationError) as exc_info:
            config.validate()

        message = str(exc_info.value)
        assert "SLACK_TIMEOUT must be positive" in message
        assert "PURCHASING_NUM_HEADER_ROWS cannot be negative" in message

    def test_repr_masks_spreadsheet_id(self):
        config = SheetsConfig(spreadsheet_id="1234567890abcdef")
        assert "1234567890abcdef" not in repr(config)


class TestLoadConfigFromEnv:
    """Tests for loading config from environment."""

    @patch("dotenv.load_dotenv")
    def test_load_values(self, mock_load_dotenv):
        env = {
            "SHEETS_SPREADSHEET_ID": "sheet-123",
            "SLACK_ATTACHMENT_MAX_CHARS": "500",
            "PURCHASING_NUM_HEADER_ROWS": "3",
            "LOG_LEVEL": "debug",
        }
        with patch.dict(os.environ, env, clear=True):
            config = load_config_from_env()

        assert config.sheets.spreadsheet_id == "sheet-123"
        assert config.slack.attachment_max_chars == 500
        assert config.purchasing.num_header_rows == 3
        assert config.purchasing.default_category == "Uncategorized"
        assert config.log_level == "DEBUG"
        assert config.acting_user_email is None

    @patch("dotenv.load_dotenv")
    def test_invalid_integer(self, mock_load_dotenv):
        """Test a non-numeric integer setting is a configuration error."""
        with patch.dict(os.environ, {"SLACK_TIMEOUT": "soon"}, clear=True):
            with pytest.raises(ConfigurationError):
                load_config_from_env()


class TestLocalSettings:
    """Tests for the optional local settings file."""

    def test_missing_file(self, tmp_path):
        assert load_local_settings(tmp_path / "missing.json") == {}

    def test_not_an_object(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("[1, 2]")

        with pytest.raises(ConfigurationError):
            load_local_settings(path)


class TestSecrets:
    """Tests for secret lookup."""

    def test_environment_first(self):
        with patch.dict(os.environ, {"SLACK_WEBHOOK_DEV": "https://env"}):
            assert get_secret("SLACK_WEBHOOK_DEV", "slack.webhooks.dev") == "https://env"

    @patch("core.secrets.load_local_settings")
    def test_settings_fallback(self, mock_settings):
        """Test the settings file is used when the variable is unset."""
        mock_settings.return_value = {"slack": {"webhooks": {"purchasing": "https://file"}}}

        with patch.dict(os.environ, {}, clear=True):
            assert SecretsResolver().webhook_url("purchasing") == "https://file"

    @patch("core.secrets.load_local_settings", return_value={})
    def test_unset(self, mock_settings):
        with patch.dict(os.environ, {}, clear=True):
            assert SecretsResolver().webhook_url("dev") == ""

    @patch("core.secrets.load_local_settings")
    def test_missing_secrets(self, mock_settings):
        """Test secrets set in either the environment or the settings file count as configured."""
        mock_settings.return_value = {"purchasing": {"admin_email": "admin@example.com"}}
        env = {"SLACK_WEBHOOK_PURCHASING": "https://env", "SLACK_SIGNING_SECRET": "s3cret"}

        with patch.dict(os.environ, env, clear=True):
            missing = missing_secrets()

        assert list(missing) == ["SLACK_WEBHOOK_DEV"]
        assert missing["SLACK_WEBHOOK_DEV"] == ENV_VARS["SLACK_WEBHOOK_DEV"][1]
