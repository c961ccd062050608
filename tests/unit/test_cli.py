"""Tests for the dispatcher CLI."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

from click.testing import CliRunner

from pipeline_dispatch.audit.trail import AuditTrail
from pipeline_dispatch.cli import cli
from tests.conftest import make_audit_event, make_webhook_body, sign_body


def _write_body(tmp_path: Path) -> Path:
    body_file = tmp_path / "body.json"
    body_file.write_bytes(make_webhook_body())
    return body_file


def test_sign_prints_signature(tmp_path: Path) -> None:
    body_file = _write_body(tmp_path)
    runner = CliRunner()
    result = runner.invoke(cli, ["sign", str(body_file), "--secret", "abc"])
    assert result.exit_code == 0
    assert result.output.strip() == sign_body(body_file.read_bytes(), secret="abc")


def test_sign_reads_secret_from_env(tmp_path: Path) -> None:
    body_file = _write_body(tmp_path)
    runner = CliRunner()
    result = runner.invoke(cli, ["sign", str(body_file)], env={"PYRUS_SECRET": "xyz"})
    assert result.exit_code == 0
    assert result.output.strip() == sign_body(body_file.read_bytes(), secret="xyz")


def test_verify_audit_ok(tmp_path: Path) -> None:
    log_file = tmp_path / "audit.jsonl"
    trail = AuditTrail(str(log_file))
    trail.record(make_audit_event())
    trail.record(make_audit_event())
    runner = CliRunner()
    result = runner.invoke(cli, ["verify-audit", str(log_file)])
    assert result.exit_code == 0
    assert "OK" in result.output


def test_verify_audit_broken_exits_1(tmp_path: Path) -> None:
    log_file = tmp_path / "audit.jsonl"
    trail = AuditTrail(str(log_file))
    for _ in range(3):
        trail.record(make_audit_event())
    lines = log_file.read_text().splitlines()
    log_file.write_text("\n".join([lines[0], lines[2]]) + "\n")
    runner = CliRunner()
    result = runner.invoke(cli, ["verify-audit", str(log_file)])
    assert result.exit_code == 1


def test_serve_refuses_missing_secrets() -> None:
    runner = CliRunner()
    with patch("pipeline_dispatch.cli.uvicorn.run") as mock_run:
        result = runner.invoke(cli, ["serve"], env={"PYRUS_SECRET": "", "GITLAB_TOKEN": ""})
    assert result.exit_code != 0
    assert "invalid configuration" in result.output
    mock_run.assert_not_called()


def test_serve_runs_uvicorn_factory() -> None:
    runner = CliRunner()
    env = {"PYRUS_SECRET": "s", "GITLAB_TOKEN": "t", "PORT": "5001"}
    with patch("pipeline_dispatch.cli.uvicorn.run") as mock_run, \
         patch("pipeline_dispatch.cli.configure_logging"):
        result = runner.invoke(cli, ["serve", "--host", "127.0.0.1"], env=env)
    assert result.exit_code == 0, result.output
    mock_run.assert_called_once()
    args, kwargs = mock_run.call_args
    assert args[0] == "pipeline_dispatch.api.app:create_app_from_env"
    assert kwargs["factory"] is True
    assert kwargs["host"] == "127.0.0.1"
    assert kwargs["port"] == 5001


def test_serve_refuses_unknown_log_level() -> None:
    runner = CliRunner()
    env = {"PYRUS_SECRET": "s", "GITLAB_TOKEN": "t", "LOG_LEVEL": "verbose"}
    with patch("pipeline_dispatch.cli.uvicorn.run") as mock_run:
        result = runner.invoke(cli, ["serve"], env=env)
    assert result.exit_code != 0
    assert "invalid configuration" in result.output
    assert not isinstance(result.exception, ValueError)
    mock_run.assert_not_called()


def test_verify_audit_non_object_line_exits_1(tmp_path: Path) -> None:
    log_file = tmp_path / "audit.jsonl"
    log_file.write_text('{"prev_hash":null}\n[1]\n')
    runner = CliRunner()
    result = runner.invoke(cli, ["verify-audit", str(log_file)])
    assert result.exit_code == 1
    assert not isinstance(result.exception, AttributeError)
