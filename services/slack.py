"""Slack incoming-webhook transport."""
import logging
from typing import Any, Dict, List, Tuple

import requests

logger = logging.getLogger(__name__)


class SlackDeliveryError(Exception):
    """Raised when one or more Slack messages could not be delivered.

    `failures` holds (channel, reason) pairs.
    """

    def __init__(self, failures: List[Tuple[str, str]]):
        self.failures = list(failures)
        details = "; ".join(f"{channel}: {reason}" for channel, reason in self.failures)
        super().__init__(f"Slack delivery failed ({details})")


class SlackWebhookClient:
    """POSTs JSON messages to Slack webhook URLs. No retries: delivery is at most once."""

    def __init__(self, timeout: int = 10):
        self.timeout = timeout
        self._session = requests.Session()
        self._session.headers.update({"Content-Type": "application/json"})

    def send(self, message: Dict[str, Any], webhook_url: str) -> None:
        """Send one message; raises `requests.RequestException` on transport or HTTP failure."""
        response = self._session.post(webhook_url, json=message, timeout=self.timeout)
        if response.status_code >= 400:
            raise requests.HTTPError(
                f"Slack webhook returned {response.status_code}: {response.text[:200]}",
                response=response,
            )
        logger.debug(f"Slack message delivered ({len(message.get('text', ''))} chars)")
