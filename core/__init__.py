"""Core modules for configuration, secrets and logging."""

from core.config import (
    AppConfig,
    ConfigurationError,
    NamedRanges,
    PurchasingConfig,
    SheetsConfig,
    SlackConfig,
    get_config,
    load_config_from_env,
    load_local_settings,
    reset_config,
)
from core.logging_config import (
    LogContext,
    clear_context,
    generate_run_id,
    get_logger,
    set_context,
    setup_logging,
)
from core.secrets import SecretsResolver, get_secret, mask_secret

__all__ = [
    "AppConfig",
    "SheetsConfig",
    "SlackConfig",
    "PurchasingConfig",
    "NamedRanges",
    "ConfigurationError",
    "load_config_from_env",
    "load_local_settings",
    "get_config",
    "reset_config",
    "setup_logging",
    "get_logger",
    "LogContext",
    "generate_run_id",
    "set_context",
    "clear_context",
    "SecretsResolver",
    "get_secret",
    "mask_secret",
]
