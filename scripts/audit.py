"""Tamper-evident audit trail of the changes casdoorctl makes in Casdoor.

One JSON object per line. Every event carries ``prev``, the SHA-256 of the
line before it (64 zeros for the first line), so editing or deleting a line
breaks the chain even when no signing key is configured. With a key
(``CASDOOR_AUDIT_SIGNING_KEY`` or /run/secrets/casdoor_audit_signing_key)
each event is also signed with HMAC-SHA256, which protects against a
rewrite of the whole file.

Usage:
    python scripts/audit.py            # verify .casdoor/audit/resource-events.jsonl
"""
from __future__ import annotations
import datetime
import hashlib
import hmac
import json
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from casdoor_provider.config.settings import _load_secret_from_file
from casdoor_provider.core.engine import ApplyResult, PlannedChange
from casdoor_provider.core.errors import ProviderError

AUDIT_LOG_FILE = Path(os.environ.get("CASDOOR_AUDIT_LOG", ".casdoor/audit/resource-events.jsonl"))
GENESIS = "0" * 64


def _signing_key() -> bytes:
    key = _load_secret_from_file("casdoor_audit_signing_key", "CASDOOR_AUDIT_SIGNING_KEY")
    return key.encode("utf-8") if key else b""


def _canonical(event: dict[str, Any]) -> bytes:
    return json.dumps(event, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _line_hash(line: str) -> str:
    return hashlib.sha256(line.encode("utf-8")).hexdigest()


def _last_line_hash(path: Path) -> str:
    last = ""
    if path.exists():
        with path.open("r", encoding="utf-8") as f:
            for raw in f:
                if raw.strip():
                    last = raw.rstrip("\n")
    return _line_hash(last) if last else GENESIS


def append_event(event: dict[str, Any]) -> dict[str, Any]:
    """Chain, sign and append one event; returns the event as written.

    The directory is created 0700 and the log file 0600.

    Raises:
        OSError: If the log cannot be written
    """
    path = AUDIT_LOG_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    path.parent.chmod(0o700)

    event = {
        **event,
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        "prev": _last_line_hash(path),
    }
    key = _signing_key()
    if key:
        event["signature"] = hmac.new(key, _canonical(event), hashlib.sha256).hexdigest()

    fd = os.open(path, os.O_WRONLY | os.O_APPEND | os.O_CREAT, 0o600)
    with os.fdopen(fd, "a", encoding="utf-8") as f:
        f.write(json.dumps(event, sort_keys=True, ensure_ascii=False) + "\n")
    return event


def _safe_append(event: dict[str, Any]) -> bool:
    try:
        append_event(event)
        return True
    except OSError as e:
        print(f"[audit] Warning: could not record {event.get('action')} of {event.get('address')}: {e}", file=sys.stderr)
        return False


# ─────────────────────────────────────────────────────────────────────────────
# Events
# ─────────────────────────────────────────────────────────────────────────────

def change_event(
    change: PlannedChange,
    *,
    operator: str,
    organization: str,
    error: Optional[ProviderError] = None,
) -> dict[str, Any]:
    """Describe one executed plan step.

    ``outcome`` is "applied" or "failed"; a failure carries the diagnostic.
    """
    event: dict[str, Any] = {
        "action": change.action.value,
        "address": change.address,
        "type": change.type_name,
        "changed": list(change.changed),
        "operator": operator,
        "organization": organization,
        "outcome": "failed" if error is not None else "applied",
    }
    if error is not None:
        event["error"] = error.to_dict()
    return event


def record_result(result: ApplyResult, *, operator: str, organization: str) -> int:
    """Record every applied and failed change of an apply or destroy.

    Audit write failures are reported on stderr and never abort the run.

    Returns:
        Number of events written
    """
    written = 0
    for change in result.applied:
        written += _safe_append(change_event(change, operator=operator, organization=organization))
    for change, exc in result.failures:
        written += _safe_append(change_event(change, operator=operator, organization=organization, error=exc))
    return written


def record_import(
    address: str,
    raw_id: str,
    *,
    operator: str,
    organization: str,
    error: Optional[ProviderError] = None,
) -> bool:
    event: dict[str, Any] = {
        "action": "import",
        "address": address,
        "import_id": raw_id,
        "operator": operator,
        "organization": organization,
        "outcome": "failed" if error is not None else "applied",
    }
    if error is not None:
        event["error"] = error.to_dict()
    return _safe_append(event)


def record_removed(address: str, *, operator: str, organization: str) -> bool:
    """Record a resource dropped from state because Casdoor no longer has it."""
    return _safe_append({
        "action": "forget",
        "address": address,
        "operator": operator,
        "organization": organization,
        "outcome": "applied",
    })


# ─────────────────────────────────────────────────────────────────────────────
# Verification
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class VerifyReport:
    """Result of checking an audit log.

    Attributes:
        total: Events in the log
        signed: Events carrying a signature
        valid_signatures: Signatures that match the configured key
        broken_at: First line number where the chain or a signature fails
    """
    total: int = 0
    signed: int = 0
    valid_signatures: int = 0
    broken_at: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.broken_at is None


def verify_audit_log(path: Optional[Path] = None) -> VerifyReport:
    """Check the hash chain and, when a key is configured, every signature.

    Signatures cannot be checked without the key; they are counted but do
    not fail verification.
    """
    path = path or AUDIT_LOG_FILE
    report = VerifyReport()
    if not path.exists():
        return report

    key = _signing_key()
    expected_prev = GENESIS
    with path.open("r", encoding="utf-8") as f:
        for lineno, raw in enumerate(f, start=1):
            line = raw.rstrip("\n")
            if not line.strip():
                continue
            report.total += 1
            try:
                event = json.loads(line)
            except json.JSONDecodeError:
                event = None
            intact = isinstance(event, dict) and event.get("prev") == expected_prev

            if intact:
                signature = event.pop("signature", "")
                if signature:
                    report.signed += 1
                    if key:
                        computed = hmac.new(key, _canonical(event), hashlib.sha256).hexdigest()
                        if hmac.compare_digest(signature, computed):
                            report.valid_signatures += 1
                        else:
                            intact = False

            if not intact and report.broken_at is None:
                report.broken_at = lineno
            expected_prev = _line_hash(line)
    return report


def main() -> None:
    report = verify_audit_log()
    print(
        f"Audit log: {report.total} events, {report.signed} signed, "
        f"{report.valid_signatures} valid signatures"
    )
    if not report.ok:
        print(f"[audit] Integrity check failed at line {report.broken_at}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
