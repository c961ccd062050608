"""Process-wide dispatch settings, built once at startup and passed explicitly."""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class DispatchSettings(BaseModel):
    """Immutable configuration for the dispatcher and its HTTP collaborators.

    Both secrets are mandatory: an empty webhook secret would reject every
    request and an empty GitLab token would fail every CI call, so startup
    refuses them instead.
    """

    model_config = ConfigDict(frozen=True)

    # Webhook sender
    webhook_secret: SecretStr
    signature_header: str = "x-pyrus-sig"
    signature_digest: str = "sha1"

    # GitLab
    gitlab_token: SecretStr
    gitlab_api_base: str = "https://gitlab.example.com/api/v4"
    gitlab_project_id: str = "1"
    gitlab_schedule_id: str = "6"
    gitlab_ref: str = "master"

    # Pyrus comments
    pyrus_api_base: str = "https://api.pyrus.com/v4"

    wait_minutes: int = Field(default=30, ge=0)
    timeout_seconds: float = Field(default=15.0, gt=0)

    # Process
    host: str = "0.0.0.0"  # noqa: S104
    port: int = Field(default=5000, gt=0, lt=65536)
    audit_log_path: str | None = None
    log_level: str = "INFO"

    @field_validator("webhook_secret", "gitlab_token")
    @classmethod
    def _secret_not_empty(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().strip():
            raise ValueError("must not be empty")
        return value

    @field_validator("gitlab_api_base", "pyrus_api_base")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("signature_header")
    @classmethod
    def _lower_header(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("log_level")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"must be one of {', '.join(LOG_LEVELS)}")
        return level

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> DispatchSettings:
        """Create settings from environment variables.

        Raises ValueError (pydantic ValidationError) on missing secrets or
        malformed numbers.
        """
        env = os.environ if environ is None else environ
        values: dict[str, object] = {
            "webhook_secret": env.get("PYRUS_SECRET", ""),
            "gitlab_token": env.get("GITLAB_TOKEN", ""),
        }
        optional = {
            "signature_header": "SIGNATURE_HEADER",
            "gitlab_api_base": "GITLAB_API_BASE",
            "gitlab_project_id": "GITLAB_PROJECT_ID",
            "gitlab_schedule_id": "GITLAB_SCHEDULE_ID",
            "gitlab_ref": "GITLAB_REF",
            "pyrus_api_base": "PYRUS_API_BASE",
            "wait_minutes": "WAIT_MIN",
            "timeout_seconds": "DISPATCH_TIMEOUT_SECONDS",
            "host": "HOST",
            "port": "PORT",
            "audit_log_path": "AUDIT_LOG_PATH",
            "log_level": "LOG_LEVEL",
        }
        for field_name, var in optional.items():
            raw = env.get(var)
            if raw is not None and raw != "":
                values[field_name] = raw
        return cls(**values)  # type: ignore[arg-type]
