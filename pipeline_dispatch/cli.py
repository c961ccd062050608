"""Click CLI: run the webhook receiver and helper commands."""

from __future__ import annotations

import sys
from pathlib import Path

import click
import uvicorn

from pipeline_dispatch.audit.trail import validate_audit_chain
from pipeline_dispatch.config import DispatchSettings
from pipeline_dispatch.log_context import configure_logging
from pipeline_dispatch.webhook.signature import SignatureVerifier


@click.group()
def cli() -> None:
    """Pyrus webhook to GitLab pipeline schedule dispatcher."""


@cli.command()
@click.option("--host", default=None, help="Bind address (default: HOST or 0.0.0.0).")
@click.option("--port", type=int, default=None, help="Listen port (default: PORT or 5000).")
def serve(host: str | None, port: int | None) -> None:
    """Start the webhook receiver."""
    try:
        settings = DispatchSettings.from_env()
    except ValueError as exc:
        raise click.ClickException(f"invalid configuration: {exc}") from exc
    configure_logging(settings.log_level)
    uvicorn.run(
        "pipeline_dispatch.api.app:create_app_from_env",
        factory=True,
        host=host or settings.host,
        port=port or settings.port,
        log_config=None,
    )


@cli.command()
@click.argument("body_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--secret", envvar="PYRUS_SECRET", required=True, help="Shared webhook secret.",
)
@click.option("--digest", default="sha1", show_default=True, help="HMAC digest name.")
def sign(body_file: Path, secret: str, digest: str) -> None:
    """Print the signature header value for a webhook body file."""
    click.echo(SignatureVerifier(secret, digest).sign(body_file.read_bytes()))


@cli.command("verify-audit")
@click.argument("log_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def verify_audit(log_path: Path) -> None:
    """Validate the hash chain of an audit trail file."""
    result = validate_audit_chain(log_path)
    if result.valid:
        click.echo("audit chain OK")
        return
    click.echo(f"audit chain broken at line {result.broken_at_line}", err=True)
    sys.exit(1)


if __name__ == "__main__":
    cli()
