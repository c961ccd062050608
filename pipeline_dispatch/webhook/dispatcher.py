"""Webhook dispatch pipeline.

Pipeline stages, in order, for one Pyrus webhook delivery:
1. Empty body check (400)
2. Signature check over the raw bytes (403)
3. Payload parse into InboundWebhook (400)
4. Dedup gate: GitLab status query, skip with a comment if a pipeline is active
5. Play the pipeline schedule and comment the result
6. Audit log

Every request that passes stage 3 answers 200, whatever happened in GitLab;
the comment on the task carries the outcome. There is no local lock around
stages 4-5, so two deliveries landing together can both trigger.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError

from pipeline_dispatch.log_context import new_request_id
from pipeline_dispatch.models import (
    AuditEvent,
    AuditEventType,
    DispatchOutcome,
    InboundWebhook,
    NotificationMessage,
    RiskLevel,
)
from pipeline_dispatch.webhook.models import DispatchResult

if TYPE_CHECKING:
    from pipeline_dispatch.audit.trail import AuditTrail
    from pipeline_dispatch.ci.gitlab import GitLabClient
    from pipeline_dispatch.notify.pyrus import PyrusNotifier
    from pipeline_dispatch.webhook.signature import SignatureVerifier

logger = logging.getLogger(__name__)

ALREADY_RUNNING_TEMPLATE = (
    "The pipeline is already running or queued. "
    "Check the result in {wait} min."
)
TRIGGERED_TEMPLATE = (
    "Started pipeline schedule #{schedule}. Check the result in {wait} min."
)
TRIGGER_FAILED_TEXT = (
    "Could not start the pipeline: GitLab returned an error. "
    "Please ask a developer to look into it."
)


class DispatchHandler:
    """Verifies a webhook and starts at most one pipeline for it."""

    def __init__(
        self,
        verifier: SignatureVerifier,
        gitlab: GitLabClient,
        notifier: PyrusNotifier,
        wait_minutes: int,
        audit_trail: AuditTrail | None = None,
    ) -> None:
        self._verifier = verifier
        self._gitlab = gitlab
        self._notifier = notifier
        self._wait_minutes = wait_minutes
        self._audit = audit_trail

    def already_running_text(self) -> str:
        return ALREADY_RUNNING_TEMPLATE.format(wait=self._wait_minutes)

    def triggered_text(self) -> str:
        return TRIGGERED_TEMPLATE.format(
            schedule=self._gitlab.schedule_id, wait=self._wait_minutes,
        )

    async def handle(self, raw_body: bytes, signature_header: str | None) -> DispatchResult:
        """Run the full dispatch pipeline for one delivery."""
        request_id = new_request_id()

        # Stage 1: nothing to verify or parse
        if not raw_body:
            logger.error("empty body")
            return DispatchResult(400, DispatchOutcome.REJECTED_EMPTY_BODY, request_id)

        # Stage 2: signature over the untouched bytes
        if not self._verifier.verify(raw_body, signature_header):
            logger.warning("invalid signature, rejecting with 403")
            self._record(AuditEvent(
                event_type=AuditEventType.SIGNATURE_REJECTED,
                request_id=request_id,
                action="verify_signature",
                result="rejected",
                risk_level=RiskLevel.HIGH,
                details={"header_present": bool(signature_header)},
            ))
            return DispatchResult(403, DispatchOutcome.REJECTED_BAD_SIGNATURE, request_id)

        # Stage 3: payload
        try:
            webhook = InboundWebhook.model_validate_json(raw_body)
        except ValidationError as exc:
            logger.error("malformed payload: %d error(s)", exc.error_count())
            self._record(AuditEvent(
                event_type=AuditEventType.PAYLOAD_REJECTED,
                request_id=request_id,
                action="parse_payload",
                result="rejected",
                risk_level=RiskLevel.MEDIUM,
                details={"errors": [".".join(map(str, e["loc"])) for e in exc.errors()]},
            ))
            return DispatchResult(400, DispatchOutcome.REJECTED_BAD_PAYLOAD, request_id)

        task_id = webhook.task.id
        logger.info("processing task=%s", task_id)

        # Stage 4: dedup gate
        if await self._gitlab.has_active_pipeline():
            outcome = DispatchOutcome.SKIPPED
            text = self.already_running_text()
        # Stage 5: trigger
        elif await self._gitlab.play_schedule():
            outcome = DispatchOutcome.TRIGGERED
            text = self.triggered_text()
        else:
            outcome = DispatchOutcome.TRIGGER_FAILED
            text = TRIGGER_FAILED_TEXT

        notified = await self._notifier.send(NotificationMessage(
            task_id=task_id, access_token=webhook.access_token, text=text,
        ))

        # Stage 6: audit
        self._record_outcome(request_id, task_id, outcome)
        if not notified:
            self._record(AuditEvent(
                event_type=AuditEventType.NOTIFICATION_FAILED,
                request_id=request_id,
                task_id=task_id,
                action="notify",
                result="failure",
                risk_level=RiskLevel.LOW,
                details={"outcome": outcome.value},
            ))

        logger.info("task=%s outcome=%s notified=%s", task_id, outcome.value, notified)
        return DispatchResult(200, outcome, request_id, task_id=task_id, notified=notified)

    def _record_outcome(self, request_id: str, task_id: int, outcome: DispatchOutcome) -> None:
        event_type, result, risk = {
            DispatchOutcome.SKIPPED: (AuditEventType.PIPELINE_SKIPPED, "skipped", RiskLevel.INFO),
            DispatchOutcome.TRIGGERED: (
                AuditEventType.PIPELINE_TRIGGERED, "success", RiskLevel.INFO,
            ),
            DispatchOutcome.TRIGGER_FAILED: (
                AuditEventType.TRIGGER_FAILED, "failure", RiskLevel.MEDIUM,
            ),
        }[outcome]
        self._record(AuditEvent(
            event_type=event_type,
            request_id=request_id,
            task_id=task_id,
            action="dispatch",
            result=result,
            risk_level=risk,
            details={"schedule_id": self._gitlab.schedule_id},
        ))

    def _record(self, event: AuditEvent) -> None:
        if self._audit:
            self._audit.record(event)
