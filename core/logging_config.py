"""Structured logging configuration with correlation fields.

Every transition runs inside a `LogContext` carrying the run id, the project
sheet, the acting user and the target status; both formatters attach those
fields to each record logged while the context is active.
"""
import logging
import json
import sys
import uuid
from datetime import datetime
from typing import Optional, Dict, Any
from contextvars import ContextVar

# Context variables for log correlation
current_run_id: ContextVar[str] = ContextVar("run_id", default="")
current_sheet: ContextVar[str] = ContextVar("sheet", default="")
current_actor: ContextVar[str] = ContextVar("actor", default="")
current_status: ContextVar[str] = ContextVar("status", default="")

_CONTEXT_VARS: Dict[str, ContextVar] = {
    "run_id": current_run_id,
    "sheet": current_sheet,
    "actor": current_actor,
    "status": current_status,
}


def generate_run_id() -> str:
    """Generate a unique run ID for log correlation."""
    return f"run_{datetime.utcnow().strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:8]}"


def set_context(**values: Optional[str]) -> None:
    """Set logging context variables by name (run_id, sheet, actor, status)."""
    for name, value in values.items():
        if name not in _CONTEXT_VARS:
            raise KeyError(f"Unknown log context field: {name}")
        if value is not None:
            _CONTEXT_VARS[name].set(value)


def clear_context() -> None:
    """Clear all logging context variables."""
    for var in _CONTEXT_VARS.values():
        var.set("")


def context_fields() -> Dict[str, str]:
    """The non-empty correlation fields of the current context."""
    return {name: var.get() for name, var in _CONTEXT_VARS.items() if var.get()}


class JSONFormatter(logging.Formatter):
    """One JSON object per record, correlation fields at top level."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log_data.update(context_fields())

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Human-readable text formatter with correlation fields."""

    # Short labels used in text output
    LABELS = {"run_id": "run", "sheet": "sheet", "actor": "actor", "status": "status"}

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.utcnow().strftime("%Y-%m-%d %H:%M:%S")

        fields = context_fields()
        if "run_id" in fields:
            fields["run_id"] = fields["run_id"][:24]
        ctx = ", ".join(f"{self.LABELS[name]}={value}" for name, value in fields.items())
        ctx_str = f" [{ctx}]" if ctx else ""

        msg = f"{timestamp} {record.levelname:8s} {record.name}{ctx_str}: {record.getMessage()}"

        if record.exc_info:
            msg += "\n" + self.formatException(record.exc_info)

        return msg


def setup_logging(level: str = "INFO", format_type: str = "text") -> logging.Logger:
    """Configure the root logger for the CLI and the Slack server.

    `format_type` is "json" for structured logs or "text" for humans.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(numeric_level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    handler.setFormatter(JSONFormatter() if format_type.lower() == "json" else TextFormatter())
    root.addHandler(handler)

    # googleapiclient logs every discovery fetch at INFO
    logging.getLogger("googleapiclient.discovery_cache").setLevel(logging.ERROR)

    return root


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name."""
    return logging.getLogger(name)


class LogContext:
    """Sets correlation fields for the duration of a `with` block.

    Nested contexts override only the fields they set; leaving the block
    restores the outer values.
    """

    def __init__(
        self,
        run_id: Optional[str] = None,
        sheet: Optional[str] = None,
        actor: Optional[str] = None,
        status: Optional[str] = None,
    ):
        self.values = {"run_id": run_id, "sheet": sheet, "actor": actor, "status": status}
        self._tokens = {}

    def __enter__(self):
        for name, value in self.values.items():
            if value:
                self._tokens[name] = _CONTEXT_VARS[name].set(value)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        for name, token in self._tokens.items():
            _CONTEXT_VARS[name].reset(token)
        self._tokens = {}
        return False
