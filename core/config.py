"""Centralized configuration management with validation."""
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List, Dict, Any


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""
    pass


LOCAL_SETTINGS_PATH = Path("config/local_settings.json")


def _mask_secret(value: str, visible_chars: int = 4) -> str:
    """Mask a secret value for logging, showing only first few chars."""
    if not value:
        return "<empty>"
    if len(value) <= visible_chars:
        return "*" * len(value)
    return value[:visible_chars] + "*" * (len(value) - visible_chars)


@dataclass
class SheetsConfig:
    """Google Sheets connection configuration."""
    spreadsheet_id: str = ""
    credentials_file: str = "credentials.json"
    token_file: str = "token.json"

    def validate(self) -> List[str]:
        """Validate sheets configuration, return list of errors."""
        errors = []
        if not self.spreadsheet_id:
            errors.append("SHEETS_SPREADSHEET_ID is required")
        if not self.credentials_file:
            errors.append("SHEETS_CREDENTIALS_FILE is required")
        return errors

    def __repr__(self) -> str:
        return (f"SheetsConfig(spreadsheet_id={_mask_secret(self.spreadsheet_id, 8)}, "
                f"credentials_file={self.credentials_file})")


@dataclass
class SlackConfig:
    """Slack notification configuration (webhook URLs live in secrets)."""
    broadcast_tag: str = "<!channel>"
    icon_url: str = ""
    attachment_max_chars: int = 2000
    timeout: int = 10
    status_slash_command: str = "/budgetstatus"
    item_list_action_legacy: str = "listItems"
    item_list_action: str = "showItemList"

    def validate(self) -> List[str]:
        """Validate Slack configuration, return list of errors."""
        errors = []
        if self.attachment_max_chars <= 0:
            errors.append("SLACK_ATTACHMENT_MAX_CHARS must be positive")
        if self.timeout <= 0:
            errors.append("SLACK_TIMEOUT must be positive")
        return errors


@dataclass
class NamedRanges:
    """Named ranges in the purchasing spreadsheet."""
    approved_officers: str = "ApprovedOfficers"
    notify_approved_officers: str = "NotifyApprovedOfficers"
    project_sheets: str = "ProjectSheets"
    project_names_to_sheets: str = "ProjectNamesToSheets"
    accounts: str = "Accounts"


@dataclass
class PurchasingConfig:
    """Purchasing sheet layout and default values."""
    num_header_rows: int = 2
    default_category: str = "Uncategorized"
    users_sheet: str = "Users"
    dashboard_suffix: str = " Dashboard"
    date_format: str = "%m/%d/%Y %H:%M:%S"
    named_ranges: NamedRanges = field(default_factory=NamedRanges)

    def validate(self) -> List[str]:
        """Validate purchasing configuration, return list of errors."""
        errors = []
        if self.num_header_rows < 0:
            errors.append("PURCHASING_NUM_HEADER_ROWS cannot be negative")
        if not self.default_category:
            errors.append("PURCHASING_DEFAULT_CATEGORY cannot be empty")
        if not self.users_sheet:
            errors.append("PURCHASING_USERS_SHEET cannot be empty")
        return errors


@dataclass
class AppConfig:
    """Main application configuration."""
    sheets: SheetsConfig = field(default_factory=SheetsConfig)
    slack: SlackConfig = field(default_factory=SlackConfig)
    purchasing: PurchasingConfig = field(default_factory=PurchasingConfig)

    # Runtime settings
    acting_user_email: Optional[str] = None
    log_level: str = "INFO"
    log_format: str = "text"  # "json" or "text"

    def validate(self, require_sheets: bool = True) -> None:
        """Validate all configuration, raise ConfigurationError if invalid."""
        errors = []

        if require_sheets:
            errors.extend(self.sheets.validate())
        errors.extend(self.slack.validate())
        errors.extend(self.purchasing.validate())

        if errors:
            raise ConfigurationError("Configuration errors:\n  - " + "\n  - ".join(errors))

    def __repr__(self) -> str:
        return (f"AppConfig(\n  sheets={self.sheets},\n  slack={self.slack},\n  "
                f"purchasing={self.purchasing},\n  log_level={self.log_level}\n)")


def load_local_settings(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load the optional local settings JSON file."""
    settings_path = path or LOCAL_SETTINGS_PATH
    if not settings_path.exists():
        return {}
    with open(settings_path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ConfigurationError(f"{settings_path} must contain a JSON object")
    return data


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, str(default))
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer (got {raw!r})")


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables."""
    from dotenv import load_dotenv

    load_dotenv()

    config = AppConfig(
        sheets=SheetsConfig(
            spreadsheet_id=os.getenv("SHEETS_SPREADSHEET_ID", ""),
            credentials_file=os.getenv("SHEETS_CREDENTIALS_FILE", "credentials.json"),
            token_file=os.getenv("SHEETS_TOKEN_FILE", "token.json"),
        ),
        slack=SlackConfig(
            icon_url=os.getenv("SLACK_ICON_URL", ""),
            attachment_max_chars=_int_env("SLACK_ATTACHMENT_MAX_CHARS", 2000),
            timeout=_int_env("SLACK_TIMEOUT", 10),
        ),
        purchasing=PurchasingConfig(
            num_header_rows=_int_env("PURCHASING_NUM_HEADER_ROWS", 2),
            default_category=os.getenv("PURCHASING_DEFAULT_CATEGORY", "Uncategorized"),
            users_sheet=os.getenv("PURCHASING_USERS_SHEET", "Users"),
            date_format=os.getenv("PURCHASING_DATE_FORMAT", "%m/%d/%Y %H:%M:%S"),
        ),
        acting_user_email=os.getenv("ACTING_USER_EMAIL") or None,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_format=os.getenv("LOG_FORMAT", "text"),
    )

    return config


# Singleton config instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = load_config_from_env()
    return _config


def reset_config() -> None:
    """Reset the global configuration (for testing)."""
    global _config
    _config = None
