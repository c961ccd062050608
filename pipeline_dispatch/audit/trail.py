"""Dispatch audit trail: append-only JSON Lines with size rotation and a hash chain.

Each line carries ``prev_hash``, the SHA-256 of the line written before it
(``null`` for the first line of a fresh trail), so edits or deletions inside a
file are detectable with :func:`validate_audit_chain`.
"""

from __future__ import annotations

import fcntl
import hashlib
import json
from dataclasses import dataclass
from pathlib import Path

from pipeline_dispatch.models import AuditEvent


def _line_hash(line: str) -> str:
    return hashlib.sha256(line.encode()).hexdigest()


@dataclass
class ChainValidationResult:
    valid: bool
    broken_at_line: int | None = None


def validate_audit_chain(log_path: Path) -> ChainValidationResult:
    """Check that every line links to its predecessor. Lines are 1-based.

    Without a rotated backup beside it the first line must open the chain with
    a null ``prev_hash``. Once rotated, the first line links to the last line
    of the ``.1`` backup, which is not read here.
    """
    rotated = log_path.with_name(f"{log_path.name}.1").exists()
    previous: str | None = None
    with log_path.open() as fh:
        for lineno, raw in enumerate(fh, start=1):
            line = raw.rstrip("\n")
            if not line:
                continue
            try:
                entry = json.loads(line)
            except json.JSONDecodeError:
                return ChainValidationResult(valid=False, broken_at_line=lineno)
            if not isinstance(entry, dict):
                return ChainValidationResult(valid=False, broken_at_line=lineno)
            prev_hash = entry.get("prev_hash")
            if previous is None:
                if not rotated and prev_hash is not None:
                    return ChainValidationResult(valid=False, broken_at_line=lineno)
            elif prev_hash != _line_hash(previous):
                return ChainValidationResult(valid=False, broken_at_line=lineno)
            previous = line
    return ChainValidationResult(valid=True)


class AuditTrail:
    """Records dispatch decisions to a rotating, hash-chained JSONL file."""

    def __init__(
        self,
        log_path: str,
        max_bytes: int = 10_485_760,
        backup_count: int = 5,
    ) -> None:
        self.log_path = Path(log_path)
        self._max_bytes = max_bytes
        self._backup_count = backup_count
        self._last_line = self._read_last_line()

    def _read_last_line(self) -> str | None:
        if not self.log_path.exists():
            return None
        lines = [ln for ln in self.log_path.read_text().splitlines() if ln]
        return lines[-1] if lines else None

    def _backup(self, index: int) -> Path:
        return self.log_path.with_name(f"{self.log_path.name}.{index}")

    def _rotate_if_needed(self) -> None:
        if not self.log_path.exists() or self.log_path.stat().st_size < self._max_bytes:
            return
        self._backup(self._backup_count).unlink(missing_ok=True)
        for index in range(self._backup_count - 1, 0, -1):
            if self._backup(index).exists():
                self._backup(index).rename(self._backup(index + 1))
        self.log_path.rename(self._backup(1))

    def record(self, event: AuditEvent) -> None:
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

        entry = event.model_dump(mode="json")
        entry["prev_hash"] = None if self._last_line is None else _line_hash(self._last_line)
        line = json.dumps(entry, separators=(",", ":"))

        lock_path = self.log_path.with_name(f".{self.log_path.name}.lock")
        with lock_path.open("w") as lock:
            fcntl.flock(lock, fcntl.LOCK_EX)
            try:
                self._rotate_if_needed()
                with self.log_path.open("a") as fh:
                    fh.write(line + "\n")
            finally:
                fcntl.flock(lock, fcntl.LOCK_UN)

        self._last_line = line
