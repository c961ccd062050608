"""Data models for the webhook dispatch pipeline."""

from __future__ import annotations

from dataclasses import dataclass

from pipeline_dispatch.models import DispatchOutcome


@dataclass
class DispatchResult:
    """What the dispatch pipeline decided for one webhook delivery."""

    status_code: int
    outcome: DispatchOutcome
    request_id: str
    task_id: int | None = None
    notified: bool | None = None  # None when no notification was attempted
