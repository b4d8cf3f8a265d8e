"""Plan/apply orchestration over declarative resource configuration.

Architecture:
    config.yaml ──> validators ──> Engine.plan ──> Engine.apply ──> ResourceAdapter ──> Casdoor
                                        ^                 │
                                        └── StateStore <──┘

Changes run one at a time. State is saved after every change so an
interrupted apply never loses track of objects it already created.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

import yaml

from .adapter import ResourceAdapter, ResourceDescriptor
from .casdoor import CasdoorClient
from .errors import ConfigurationError, OperationRejectedError, ProviderError, UnconfirmedWriteError
from .reconcile import DEFAULT_MASK_SENTINEL, diff
from .resources import RESOURCE_TYPES
from .state import MANAGED, UNCONFIRMED, ResourceRecord, StateStore
from .validators import parse_address, validate_document

logger = logging.getLogger(__name__)


class ChangeAction(str, Enum):
    NOOP = "no-op"
    CREATE = "create"
    UPDATE = "update"
    REPLACE = "replace"
    DELETE = "delete"


@dataclass
class PlannedChange:
    """One step of a plan.

    Attributes:
        address: Resource address (``<type>.<label>``)
        type_name: Resource type
        action: What apply will do
        changed: Attributes that differ from state
        config: Configured attributes (empty for deletes)
    """
    address: str
    type_name: str
    action: ChangeAction
    changed: list[str] = field(default_factory=list)
    config: dict[str, Any] = field(default_factory=dict)


@dataclass
class ApplyResult:
    """Outcome of apply or destroy."""
    applied: list[PlannedChange] = field(default_factory=list)
    failures: list[tuple[PlannedChange, ProviderError]] = field(default_factory=list)

    @property
    def errors(self) -> dict[str, ProviderError]:
        return {change.address: exc for change, exc in self.failures}

    @property
    def ok(self) -> bool:
        return not self.failures


def load_configuration(path: str | Path, registry: Mapping[str, ResourceDescriptor] = RESOURCE_TYPES) -> dict[str, dict[str, Any]]:
    """Read and validate a YAML configuration file.

    Raises:
        ConfigurationError: If the file cannot be read, parsed or validated
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError("Cannot Read Configuration", f"{path}: {exc}") from exc
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigurationError("Invalid Configuration", f"{path}: {exc}") from exc
    return validate_document(document, registry)


class Engine:
    """Reconciles configuration, state and Casdoor.

    The client is injected once and shared by one adapter per resource type.

    Usage:
        engine = Engine(client, StateStore(".casdoor/state.json"))
        result = engine.apply(load_configuration("casdoor.yaml"))
    """

    def __init__(
        self,
        client: CasdoorClient,
        store: StateStore,
        *,
        mask_sentinel: str = DEFAULT_MASK_SENTINEL,
        registry: Mapping[str, ResourceDescriptor] = RESOURCE_TYPES,
    ):
        self.client = client
        self.store = store
        self.registry = registry
        self._adapters = {
            name: ResourceAdapter(client, descriptor, mask_sentinel=mask_sentinel)
            for name, descriptor in registry.items()
        }

    def adapter(self, type_name: str) -> ResourceAdapter:
        try:
            return self._adapters[type_name]
        except KeyError:
            raise ConfigurationError("Unknown Resource Type", f"Resource type {type_name!r} is not supported") from None

    # ─────────────────────────────────────────────────────────────────────────
    # Refresh / plan
    # ─────────────────────────────────────────────────────────────────────────

    def refresh(self, records: Mapping[str, ResourceRecord]) -> dict[str, ResourceRecord]:
        """Re-read every record; objects gone from Casdoor drop out of state.

        Raises:
            RemoteCallError: If a read cannot complete
        """
        refreshed: dict[str, ResourceRecord] = {}
        for address, record in records.items():
            attrs = self.adapter(record.type_name).read(record.attributes)
            if attrs is None:
                logger.warning(f"[engine] {address} no longer exists in Casdoor, removed from state")
                continue
            if record.status == UNCONFIRMED:
                logger.info(f"[engine] {address} confirmed by read")
            refreshed[address] = ResourceRecord(address, record.type_name, attrs, MANAGED)
        return refreshed

    def refresh_state(self) -> dict[str, ResourceRecord]:
        """Load, refresh and save state."""
        records = self.refresh(self.store.load())
        self.store.save(records)
        return records

    def plan(self, config: Mapping[str, Mapping[str, Any]], records: Mapping[str, ResourceRecord]) -> list[PlannedChange]:
        """Compute the changes that bring Casdoor in line with ``config``.

        Creates, updates and replaces follow configuration order; deletes
        come last, newest state entry first.
        """
        changes: list[PlannedChange] = []
        for address, cfg in config.items():
            type_name, _ = parse_address(address)
            descriptor = self.adapter(type_name).descriptor
            record = records.get(address)
            if record is None:
                changes.append(PlannedChange(address, type_name, ChangeAction.CREATE, sorted(cfg), dict(cfg)))
                continue

            changed = diff(descriptor.fields, cfg, record.attributes)
            if not changed:
                action = ChangeAction.NOOP
            elif any(descriptor.field(name).force_new for name in changed):
                action = ChangeAction.REPLACE
            else:
                action = ChangeAction.UPDATE
            changes.append(PlannedChange(address, type_name, action, changed, dict(cfg)))

        for address in reversed(list(records)):
            if address not in config:
                changes.append(PlannedChange(address, records[address].type_name, ChangeAction.DELETE))
        return changes

    # ─────────────────────────────────────────────────────────────────────────
    # Apply
    # ─────────────────────────────────────────────────────────────────────────

    def apply(self, config: Mapping[str, Mapping[str, Any]]) -> ApplyResult:
        """Refresh, plan and execute every change.

        A failing resource does not stop the others; its error is reported in
        the result. Writes that could not be confirmed stay in state as
        unconfirmed so the next run reads them instead of creating again.
        """
        records = self.refresh_state()
        result = ApplyResult()
        for change in self.plan(config, records):
            if change.action is ChangeAction.NOOP:
                continue
            try:
                self._execute(change, records)
            except UnconfirmedWriteError as exc:
                logger.error(f"[engine] {change.address}: {exc.summary}")
                records[change.address] = ResourceRecord(change.address, change.type_name, exc.state, UNCONFIRMED)
                result.failures.append((change, exc))
            except ProviderError as exc:
                logger.error(f"[engine] {change.address}: {exc.summary}")
                result.failures.append((change, exc))
            else:
                result.applied.append(change)
            finally:
                self.store.save(records)
        return result

    def _execute(self, change: PlannedChange, records: dict[str, ResourceRecord]) -> None:
        adapter = self.adapter(change.type_name)
        address = change.address

        if change.action in (ChangeAction.DELETE, ChangeAction.REPLACE):
            adapter.delete(records[address].attributes)
            records.pop(address)
            if change.action is ChangeAction.DELETE:
                return

        if change.action is ChangeAction.UPDATE:
            attrs = adapter.update(change.config, records[address].attributes)
        else:
            attrs = adapter.create(change.config)
        records[address] = ResourceRecord(address, change.type_name, attrs, MANAGED)

    def import_resource(self, address: str, raw_id: str) -> ResourceRecord:
        """Bring an existing Casdoor object under management.

        Raises:
            ConfigurationError: Bad address, or address already in state
            InvalidImportIdError: Import string does not match the id style
            OperationRejectedError: No such object in Casdoor
        """
        try:
            type_name, _ = parse_address(address)
        except ValueError as exc:
            raise ConfigurationError("Invalid Resource Address", str(exc)) from exc
        adapter = self.adapter(type_name)

        records = self.store.load()
        if address in records:
            raise ConfigurationError("Resource Already Managed", f"{address} is already in state")

        partial = adapter.import_state(raw_id)
        attrs = adapter.read(partial)
        if attrs is None:
            raise OperationRejectedError(
                "Cannot Import Non-Existent Remote Object",
                f"{adapter.descriptor.kind} {raw_id!r} was not found in Casdoor",
            )
        record = ResourceRecord(address, type_name, attrs, MANAGED)
        records[address] = record
        self.store.save(records)
        logger.info(f"[engine] Imported {raw_id} as {address}")
        return record

    def destroy(self, targets: Optional[Iterable[str]] = None) -> ApplyResult:
        """Delete managed objects, newest first (all, or only ``targets``)."""
        wanted = set(targets) if targets else None
        records = self.store.load()
        result = ApplyResult()
        for address in reversed(list(records)):
            if wanted is not None and address not in wanted:
                continue
            change = PlannedChange(address, records[address].type_name, ChangeAction.DELETE)
            try:
                self._execute(change, records)
            except ProviderError as exc:
                logger.error(f"[engine] {address}: {exc.summary}")
                result.failures.append((change, exc))
            else:
                result.applied.append(change)
            finally:
                self.store.save(records)
        return result
