"""Tests for health check endpoints."""

import os
from unittest.mock import patch

import pytest

from core.config import reset_config


@pytest.fixture
def env(request):
    """Isolated environment and a freshly loaded config."""
    reset_config()
    with patch("dotenv.load_dotenv"), patch.dict(os.environ, request.param, clear=True):
        yield
    reset_config()


class TestHealth:

    def test_live(self, client):
        assert client.get("/api/live").json() == {"alive": True}

    @pytest.mark.parametrize("env", [{"SHEETS_SPREADSHEET_ID": "sheet-123"}], indirect=True)
    def test_ready(self, client, env):
        assert client.get("/api/ready").json() == {"ready": True}

    @pytest.mark.parametrize("env", [{}], indirect=True)
    def test_not_ready_without_spreadsheet(self, client, env):
        response = client.get("/api/ready")

        assert response.status_code == 503
        assert response.json() == {"ready": False}

    @pytest.mark.parametrize("env", [{"SLACK_WEBHOOK_PURCHASING": "https://hooks.slack.test/secret"}], indirect=True)
    def test_health_hides_webhook_urls(self, client, env):
        """Test webhook presence is reported without leaking the URLs."""
        response = client.get("/api/health")

        body = response.json()
        assert body["status"] == "unhealthy"
        assert body["checks"]["slack_webhooks"] == {"purchasing": True, "dev": False}
        assert "hooks.slack.test" not in response.text
