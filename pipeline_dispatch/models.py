"""Shared Pydantic data models for pipeline-dispatch."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

# --- Enums ---


class DispatchOutcome(str, Enum):
    REJECTED_EMPTY_BODY = "rejected_empty_body"
    REJECTED_BAD_SIGNATURE = "rejected_bad_signature"
    REJECTED_BAD_PAYLOAD = "rejected_bad_payload"
    SKIPPED = "skipped"
    TRIGGERED = "triggered"
    TRIGGER_FAILED = "trigger_failed"


class AuditEventType(str, Enum):
    SIGNATURE_REJECTED = "signature_rejected"
    PAYLOAD_REJECTED = "payload_rejected"
    PIPELINE_SKIPPED = "pipeline_skipped"
    PIPELINE_TRIGGERED = "pipeline_triggered"
    TRIGGER_FAILED = "trigger_failed"
    NOTIFICATION_FAILED = "notification_failed"


class RiskLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


# --- Inbound webhook ---


class TaskRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int = Field(strict=True)


class InboundWebhook(BaseModel):
    """The subset of the Pyrus task webhook body that dispatching relies on."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    task: TaskRef
    access_token: SecretStr

    @field_validator("access_token")
    @classmethod
    def _token_usable(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value():
            raise ValueError("access_token must not be empty")
        if not value.get_secret_value().isascii():
            raise ValueError("access_token must be ASCII")
        return value


# --- CI models ---

ACTIVE_PIPELINE_STATUSES = frozenset({"running", "pending"})


class PipelineRecord(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: int
    status: str
    ref: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_PIPELINE_STATUSES


# --- Notification models ---


class NotificationMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    task_id: int
    access_token: SecretStr
    text: str


# --- Audit Models ---


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class AuditEvent(BaseModel):
    timestamp: str = Field(default_factory=_now_iso)
    event_type: AuditEventType
    request_id: str | None = None
    task_id: int | None = None
    action: str
    result: str  # "success" | "failure" | "rejected" | "skipped"
    risk_level: RiskLevel
    details: dict[str, object] | None = None
