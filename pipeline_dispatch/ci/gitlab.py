"""GitLab pipeline client: status query and schedule trigger.

Both calls are attempted exactly once and bounded by the configured timeout.
The status query fails safe: any uncertainty reports an active pipeline so
that no duplicate run is started.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from pipeline_dispatch.config import DispatchSettings
from pipeline_dispatch.models import PipelineRecord

logger = logging.getLogger(__name__)


def _is_success(status_code: int) -> bool:
    return 200 <= status_code < 300


class GitLabClient:
    """Talks to the GitLab REST API v4 with a private token."""

    def __init__(
        self,
        api_base: str,
        token: str,
        project_id: str,
        schedule_id: str,
        ref: str,
        timeout: float = 15.0,
    ) -> None:
        self._api_base = api_base.rstrip("/")
        self._token = token
        self._project_id = project_id
        self._schedule_id = schedule_id
        self._ref = ref
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: DispatchSettings) -> GitLabClient:
        return cls(
            api_base=settings.gitlab_api_base,
            token=settings.gitlab_token.get_secret_value(),
            project_id=settings.gitlab_project_id,
            schedule_id=settings.gitlab_schedule_id,
            ref=settings.gitlab_ref,
            timeout=settings.timeout_seconds,
        )

    @property
    def schedule_id(self) -> str:
        return self._schedule_id

    def _headers(self) -> dict[str, str]:
        return {
            "PRIVATE-TOKEN": self._token,
            "Content-Type": "application/json",
        }

    async def latest_pipeline(self) -> PipelineRecord | None:
        """Fetch the newest pipeline on the tracked ref.

        Returns None when the ref has no pipelines yet. Raises httpx.HTTPError
        on transport failures and non-2xx responses, ValueError on a body
        that is not a list of pipelines.
        """
        url = f"{self._api_base}/projects/{self._project_id}/pipelines"
        params = {
            "ref": self._ref,
            "per_page": "1",
            "order_by": "id",
            "sort": "desc",
        }
        logger.info("GitLab call: GET %s ref=%s", url, self._ref)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            resp = await client.get(url, params=params, headers=self._headers())
        if not _is_success(resp.status_code):
            raise httpx.HTTPStatusError(
                f"GitLab /pipelines returned {resp.status_code}",
                request=resp.request,
                response=resp,
            )
        payload: Any = resp.json()
        if not isinstance(payload, list):
            raise ValueError("GitLab /pipelines did not return a list")
        if not payload:
            return None
        return PipelineRecord.model_validate(payload[0])

    async def has_active_pipeline(self) -> bool:
        """Return True if a pipeline is running or pending, or if unsure."""
        try:
            last = await self.latest_pipeline()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "GitLab /pipelines failed: status=%s", exc.response.status_code,
            )
            return True
        except httpx.HTTPError as exc:
            logger.error("GitLab /pipelines unreachable: %s", type(exc).__name__)
            return True
        except ValueError as exc:
            logger.error("GitLab /pipelines returned an unexpected body: %s", exc)
            return True

        if last is None:
            logger.info("no pipelines yet for ref=%s", self._ref)
            return False
        logger.info("last pipeline id=%s status=%s", last.id, last.status)
        return last.is_active

    async def play_schedule(self) -> bool:
        """Ask GitLab to run the tracked pipeline schedule now."""
        url = (
            f"{self._api_base}/projects/{self._project_id}"
            f"/pipeline_schedules/{self._schedule_id}/play"
        )
        logger.info("GitLab call: POST %s", url)
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, headers=self._headers())
        except httpx.HTTPError as exc:
            logger.error("play schedule failed: %s", type(exc).__name__)
            return False
        logger.info("play schedule result: status=%s", resp.status_code)
        return _is_success(resp.status_code)
