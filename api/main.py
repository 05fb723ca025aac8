"""FastAPI app receiving Slack requests for the purchasing tracker.

Run with: uvicorn api.main:app --port 8000

Endpoints:
- /api/slack/command - Slack slash command and interactive message callbacks
- /api/health, /api/ready, /api/live - Health checks
"""
import logging
import sys
import uuid
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from core.logging_config import LogContext
from services.sheets import SheetsError

from api.routes import health, slack

logger = logging.getLogger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Runs each request under a log context keyed by its request id.

    The id comes from the client's X-Request-ID header or is generated, and is
    echoed back on the response.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
        request.state.request_id = request_id

        with LogContext(run_id=request_id):
            response = await call_next(request)

        response.headers["X-Request-ID"] = request_id
        return response


app = FastAPI(
    title="Purchasing Tracker",
    description="Slack integration for the purchasing request spreadsheet",
    version="1.0.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

app.add_middleware(RequestIDMiddleware)


@app.exception_handler(SheetsError)
async def sheets_error_handler(request: Request, exc: SheetsError):
    """The spreadsheet could not be reached; answer Slack with an ephemeral error."""
    logger.error(f"Spreadsheet unavailable while handling {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content={
            "response_type": "ephemeral",
            "text": "The purchasing spreadsheet is unavailable right now. Please try again later.",
        },
    )


app.include_router(health.router, prefix="/api", tags=["Health"])
app.include_router(slack.router, prefix="/api")
