"""
Slack Inbound Endpoint

Single webhook Slack posts to (form-encoded):
- Slash command `/budgetstatus <project>`: budget status message for a project
- Interactive message `payload`: the "List Items" button of a transition
  notification. The legacy action echoes its value as text; the current action
  carries the whole reply message as JSON in its value.

If a Slack signing secret is configured, request signatures are verified.
"""

import hashlib
import hmac
import json
import logging
import time
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ValidationError

from core.config import get_config
from services.wiring import PurchasingServices, build_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/slack", tags=["Slack"])

# Reject signed requests older than this many seconds
MAX_REQUEST_AGE = 60 * 5


# =============================================================================
# MODELS
# =============================================================================


class InteractiveAction(BaseModel):
    """One action (button) in an interactive message callback."""

    name: str = ""
    value: str = ""


class InteractivePayload(BaseModel):
    """Interactive message callback sent when a user clicks a message button."""

    type: str = ""
    callback_id: Optional[str] = None
    actions: List[InteractiveAction] = []


# =============================================================================
# DEPENDENCIES
# =============================================================================

_services: Optional[PurchasingServices] = None


def get_services() -> PurchasingServices:
    """Process-wide service graph, built on first request."""
    global _services
    if _services is None:
        _services = build_services(get_config())
    return _services


def verify_slack_signature(secret: str, timestamp: str, body: bytes, signature: str, now: Optional[float] = None) -> bool:
    """Check a Slack `v0` request signature."""
    try:
        age = abs((now or time.time()) - int(timestamp))
    except (TypeError, ValueError):
        return False
    if age > MAX_REQUEST_AGE:
        return False

    base = b"v0:" + timestamp.encode() + b":" + body
    expected = "v0=" + hmac.new(secret.encode(), base, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature or "")


def _ephemeral(text: str) -> dict:
    return {"response_type": "ephemeral", "replace_original": False, "text": text}


# =============================================================================
# ENDPOINTS
# =============================================================================


@router.post("/command")
async def slack_command(
    request: Request,
    x_slack_signature: Optional[str] = Header(None, alias="X-Slack-Signature"),
    x_slack_request_timestamp: Optional[str] = Header(None, alias="X-Slack-Request-Timestamp"),
    services: PurchasingServices = Depends(get_services),
):
    """Handle a slash command or interactive message from Slack."""
    body = await request.body()

    secret = services.secrets.slack_signing_secret()
    if secret and not verify_slack_signature(secret, x_slack_request_timestamp, body, x_slack_signature):
        logger.warning("Rejected Slack request with invalid signature")
        raise HTTPException(status_code=401, detail="Invalid Slack signature")

    form = await request.form()
    slack = services.config.slack

    command = form.get("command")
    if command == slack.status_slash_command:
        text = (form.get("text") or "").strip()
        if not text:
            return PlainTextResponse("Error: Invalid project name.")
        logger.info(f"Budget status requested for {text!r}")
        return JSONResponse(services.projects.build_project_status_message(text))

    raw_payload = form.get("payload")
    if raw_payload:
        try:
            payload = InteractivePayload.model_validate(json.loads(raw_payload))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Malformed interactive payload: {e}")
            raise HTTPException(status_code=400, detail="Malformed payload")

        if payload.type == "interactive_message" and payload.actions:
            action = payload.actions[0]
            if action.name == slack.item_list_action_legacy:
                return JSONResponse(_ephemeral(action.value))
            try:
                return JSONResponse(json.loads(action.value))
            except json.JSONDecodeError:
                logger.warning(f"Action {action.name!r} carried a non-JSON value")
                raise HTTPException(status_code=400, detail="Malformed action value")

    return JSONResponse(_ephemeral("Error: command not found."))
