"""Pyrus task comment notifier.

Delivery is advisory: a single attempt, failures are logged and reported to
the caller as False, never raised.
"""

from __future__ import annotations

import logging

import httpx

from pipeline_dispatch.config import DispatchSettings
from pipeline_dispatch.models import NotificationMessage

logger = logging.getLogger(__name__)


class PyrusNotifier:
    """Posts plain-text comments onto Pyrus tasks with a per-task bearer token."""

    def __init__(self, api_base: str = "https://api.pyrus.com/v4", timeout: float = 15.0) -> None:
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: DispatchSettings) -> PyrusNotifier:
        return cls(api_base=settings.pyrus_api_base, timeout=settings.timeout_seconds)

    async def send(self, message: NotificationMessage) -> bool:
        url = f"{self._api_base}/tasks/{message.task_id}/comments"
        headers = {
            "Authorization": f"Bearer {message.access_token.get_secret_value()}",
            "Content-Type": "application/json",
        }
        logger.info("sending comment to Pyrus task=%s", message.task_id)
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json={"text": message.text}, headers=headers)
        except httpx.HTTPError as exc:
            logger.error(
                "comment delivery failed task=%s: %s", message.task_id, type(exc).__name__,
            )
            return False
        except UnicodeEncodeError:
            # httpx encodes header values as ASCII
            logger.error("comment not sent task=%s: token is not ASCII", message.task_id)
            return False

        if not 200 <= resp.status_code < 300:
            logger.error(
                "comment rejected task=%s status=%s", message.task_id, resp.status_code,
            )
            return False
        logger.info("comment sent task=%s status=%s", message.task_id, resp.status_code)
        return True
