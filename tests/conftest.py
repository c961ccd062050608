"""Shared test fixtures for pipeline-dispatch."""

from __future__ import annotations

import hashlib
import hmac
import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from pipeline_dispatch.audit.trail import AuditTrail
from pipeline_dispatch.config import DispatchSettings
from pipeline_dispatch.models import AuditEvent, AuditEventType, RiskLevel

TEST_SECRET = "pyrus-secret"
TEST_GITLAB_TOKEN = "glpat-test"
TEST_GITLAB_BASE = "https://gitlab.test/api/v4"
TEST_PYRUS_BASE = "https://pyrus.test/v4"


def make_settings(**kwargs: Any) -> DispatchSettings:
    """Factory for DispatchSettings with sensible defaults."""
    defaults: dict[str, Any] = {
        "webhook_secret": TEST_SECRET,
        "gitlab_token": TEST_GITLAB_TOKEN,
        "gitlab_api_base": TEST_GITLAB_BASE,
        "gitlab_project_id": "1",
        "gitlab_schedule_id": "6",
        "gitlab_ref": "master",
        "pyrus_api_base": TEST_PYRUS_BASE,
        "wait_minutes": 30,
        "timeout_seconds": 5.0,
    }
    defaults.update(kwargs)
    return DispatchSettings(**defaults)


def sign_body(body: bytes, secret: str = TEST_SECRET) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha1).hexdigest()


def make_webhook_body(task_id: int = 42, access_token: str = "tok", **extra: Any) -> bytes:
    payload: dict[str, Any] = {"task": {"id": task_id}, "access_token": access_token}
    payload.update(extra)
    return json.dumps(payload).encode()


def make_response(status_code: int = 200, json_body: Any = None) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = json_body
    return resp


def make_async_client(**methods: Any) -> AsyncMock:
    """AsyncMock usable as ``async with httpx.AsyncClient(...) as client``.

    Keyword arguments set ``return_value`` (or ``side_effect`` for callables,
    exceptions and lists) on the named client methods.
    """
    client = AsyncMock()
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    for name, value in methods.items():
        method = getattr(client, name)
        is_function = callable(value) and not isinstance(value, MagicMock)
        if is_function or isinstance(value, (list, BaseException)):
            method.side_effect = value
        else:
            method.return_value = value
    return client


def make_audit_event(**kwargs: Any) -> AuditEvent:
    """Factory for AuditEvent with sensible defaults."""
    defaults: dict[str, Any] = {
        "event_type": AuditEventType.PIPELINE_TRIGGERED,
        "action": "dispatch",
        "result": "success",
        "risk_level": RiskLevel.INFO,
    }
    defaults.update(kwargs)
    return AuditEvent(**defaults)


@pytest.fixture
def settings() -> DispatchSettings:
    return make_settings()


@pytest.fixture
def mock_audit_trail() -> MagicMock:
    return MagicMock(spec=AuditTrail)
