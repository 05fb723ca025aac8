"""Health check endpoints."""
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from core.config import ConfigurationError, get_config
from core.secrets import SecretsResolver
from schemas.statuses import SlackChannel

router = APIRouter()

APP_VERSION = "1.0.0"
STARTED_AT = datetime.now(timezone.utc).isoformat()


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    started_at: str
    checks: Dict[str, Any]


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint.

    Reports:
    - Configuration validity
    - Presence of Sheets credentials
    - Which Slack channels have a webhook configured (never the URLs)
    """
    checks: Dict[str, Any] = {}
    overall_status = "healthy"

    config = get_config()
    try:
        config.validate()
        checks["config"] = {"status": "ok"}
    except ConfigurationError as e:
        checks["config"] = {"status": "error", "error": str(e)}
        overall_status = "unhealthy"

    checks["sheets_credentials"] = {
        "exists": Path(config.sheets.credentials_file).exists(),
        "token_exists": Path(config.sheets.token_file).exists(),
    }

    secrets = SecretsResolver()
    checks["slack_webhooks"] = {
        channel.value: bool(secrets.webhook_url(channel.value)) for channel in SlackChannel
    }
    checks["slack_signing_secret"] = {"configured": bool(secrets.slack_signing_secret())}
    checks["admin_email"] = {"configured": bool(secrets.admin_email())}

    return HealthResponse(
        status=overall_status,
        version=APP_VERSION,
        started_at=STARTED_AT,
        checks=checks,
    )


@router.get("/ready")
async def readiness_check():
    """Ready once the spreadsheet configuration is valid."""
    try:
        get_config().validate()
    except ConfigurationError:
        return JSONResponse(status_code=503, content={"ready": False})
    return {"ready": True}


@router.get("/live")
async def liveness_check():
    """Simple liveness probe for k8s/docker."""
    return {"alive": True}
