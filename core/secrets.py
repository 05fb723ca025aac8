"""
Secrets Management Module

Provides secret retrieval from environment variables with fallback to local settings.
In production, all secrets should be provided via environment variables.

The status graph only names Slack channels ("purchasing", "dev"); the webhook URLs
for those channels are resolved here, at the moment a message is sent.

Environment Variable Mapping:
- SLACK_WEBHOOK_<CHANNEL>: Incoming webhook URL for a channel (e.g. SLACK_WEBHOOK_PURCHASING)
- SLACK_SIGNING_SECRET: Signing secret for verifying inbound Slack requests
- PURCHASING_ADMIN_EMAIL: Email address of the spreadsheet admin
"""

import logging
import os
from typing import Any, Callable, Dict, Optional

from core.config import load_local_settings

logger = logging.getLogger(__name__)


def _get_env(key: str) -> Optional[str]:
    """Get environment variable value."""
    return os.getenv(key)


def _get_from_settings(key_path: str, settings: Optional[Dict[str, Any]] = None) -> Optional[str]:
    """Get value from local settings file.

    key_path is dot-separated, e.g., "slack.webhooks.purchasing"
    """
    value: Any = settings if settings is not None else load_local_settings()
    for part in key_path.split("."):
        if isinstance(value, dict):
            value = value.get(part)
        else:
            return None
    return value if isinstance(value, str) else None


def get_secret(name: str, settings_path: Optional[str] = None) -> str:
    """Get a secret value.

    Priority:
    1. Environment variable
    2. Local settings file (if settings_path provided)
    3. Empty string
    """
    value = _get_env(name)
    if value:
        logger.debug(f"Secret {name} loaded from environment")
        return value

    if settings_path:
        value = _get_from_settings(settings_path)
        if value:
            logger.debug(f"Secret {name} loaded from settings ({settings_path})")
            return value

    return ""


def has_secret(name: str, settings_path: Optional[str] = None) -> bool:
    """Check if a secret is configured (without revealing its value)."""
    return bool(get_secret(name, settings_path))


def mask_secret(value: str) -> str:
    """Mask a secret value for display.

    Shows first 4 and last 4 characters for long secrets,
    or **** for short secrets.
    """
    if not value:
        return ""
    if len(value) <= 8:
        return "****"
    return value[:4] + "****" + value[-4:]


class SecretsResolver:
    """Resolves environment-specific secrets for the purchasing app.

    `lookup` defaults to `get_secret`; tests inject a dict-backed function.
    """

    def __init__(self, lookup: Optional[Callable[[str, Optional[str]], str]] = None):
        self._lookup = lookup or get_secret

    def webhook_url(self, channel: str) -> str:
        """Webhook URL for a logical Slack channel, or "" if not configured."""
        env_name = f"SLACK_WEBHOOK_{channel.upper()}"
        return self._lookup(env_name, f"slack.webhooks.{channel.lower()}")

    def admin_email(self) -> str:
        return self._lookup("PURCHASING_ADMIN_EMAIL", "purchasing.admin_email")

    def slack_signing_secret(self) -> str:
        return self._lookup("SLACK_SIGNING_SECRET", "slack.signing_secret")


# Environment variable documentation: name -> (local settings path, description)
ENV_VARS = {
    "SLACK_WEBHOOK_PURCHASING": ("slack.webhooks.purchasing", "Incoming webhook for the purchasing channel"),
    "SLACK_WEBHOOK_DEV": ("slack.webhooks.dev", "Incoming webhook for the development/test channel"),
    "SLACK_SIGNING_SECRET": ("slack.signing_secret", "Slack signing secret for inbound command verification"),
    "PURCHASING_ADMIN_EMAIL": ("purchasing.admin_email", "Email address allowed to run admin commands"),
}


def missing_secrets() -> Dict[str, str]:
    """Documented secrets that are not configured, with their descriptions."""
    return {
        name: description
        for name, (settings_path, description) in ENV_VARS.items()
        if not has_secret(name, settings_path)
    }
