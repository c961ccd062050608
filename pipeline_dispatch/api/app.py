"""FastAPI webhook receiver application."""

from __future__ import annotations

from fastapi import FastAPI, Request, Response

from pipeline_dispatch.audit.trail import AuditTrail
from pipeline_dispatch.ci.gitlab import GitLabClient
from pipeline_dispatch.config import DispatchSettings
from pipeline_dispatch.notify.pyrus import PyrusNotifier
from pipeline_dispatch.webhook.dispatcher import DispatchHandler
from pipeline_dispatch.webhook.signature import SignatureVerifier


def create_app_from_env() -> FastAPI:
    """Factory for uvicorn --factory: reads config from environment variables."""
    return create_app(DispatchSettings.from_env())


def build_handler(settings: DispatchSettings) -> DispatchHandler:
    audit_trail = AuditTrail(settings.audit_log_path) if settings.audit_log_path else None
    return DispatchHandler(
        verifier=SignatureVerifier(
            settings.webhook_secret.get_secret_value(), settings.signature_digest,
        ),
        gitlab=GitLabClient.from_settings(settings),
        notifier=PyrusNotifier.from_settings(settings),
        wait_minutes=settings.wait_minutes,
        audit_trail=audit_trail,
    )


def create_app(
    settings: DispatchSettings,
    handler: DispatchHandler | None = None,
) -> FastAPI:
    """Create the webhook receiver app with a single POST / route."""
    app = FastAPI(docs_url=None, redoc_url=None)
    dispatch = handler or build_handler(settings)
    app.state.settings = settings
    app.state.dispatch = dispatch

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/")
    async def receive_webhook(request: Request) -> Response:
        # Raw bytes, before any decoding, so the signature covers what was sent
        body = await request.body()
        result = await dispatch.handle(body, request.headers.get(settings.signature_header))
        return Response(status_code=result.status_code)

    return app
