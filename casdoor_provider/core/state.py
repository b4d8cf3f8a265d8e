"""JSON state file holding the last known attributes of managed resources."""
from __future__ import annotations
import json
import logging
import os
import tempfile
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

STATE_VERSION = 1

MANAGED = "managed"
UNCONFIRMED = "unconfirmed"


class StateError(Exception):
    """State file is unreadable or has an unexpected shape."""
    pass


@dataclass
class ResourceRecord:
    """One managed resource instance.

    ``status`` is UNCONFIRMED while a created object has not been read back;
    the next refresh either confirms it or drops it.
    """
    address: str
    type_name: str
    attributes: dict[str, Any] = field(default_factory=dict)
    status: str = MANAGED


class StateStore:
    """Load and atomically save resource records."""

    def __init__(self, path: str | os.PathLike):
        self.path = Path(path)

    def load(self) -> dict[str, ResourceRecord]:
        """Return records keyed by address (empty if no state file yet).

        Raises:
            StateError: If the file exists but cannot be parsed
        """
        if not self.path.exists():
            return {}
        try:
            document = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise StateError(f"Cannot read state file {self.path}: {exc}") from exc

        if not isinstance(document, dict) or document.get("version") != STATE_VERSION:
            raise StateError(f"Unsupported state file format in {self.path}")

        records: dict[str, ResourceRecord] = {}
        for raw in document.get("resources", []):
            try:
                record = ResourceRecord(
                    address=raw["address"],
                    type_name=raw["type"],
                    attributes=dict(raw.get("attributes") or {}),
                    status=raw.get("status", MANAGED),
                )
            except (KeyError, TypeError) as exc:
                raise StateError(f"Malformed resource entry in {self.path}: {raw!r}") from exc
            records[record.address] = record
        return records

    def save(self, records: dict[str, ResourceRecord]) -> None:
        """Write records atomically; the file is created with mode 0600."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        document = {
            "version": STATE_VERSION,
            "resources": [
                {
                    "address": rec.address,
                    "type": rec.type_name,
                    "status": rec.status,
                    "attributes": rec.attributes,
                }
                for rec in records.values()
            ],
        }
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".state-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, sort_keys=False)
                f.write("\n")
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug(f"[state] Saved {len(records)} resource(s) to {self.path}")


def record_to_dict(record: ResourceRecord) -> dict[str, Any]:
    return asdict(record)
