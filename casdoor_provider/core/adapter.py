"""Generic create/read/update/delete/import for every Casdoor resource kind.

A resource kind is described by a ``ResourceDescriptor`` (attribute schema,
identifier style, default owner, read-back behaviour); ``ResourceAdapter``
runs the same operation sequence for all of them against an injected client.
"""
from __future__ import annotations
import datetime
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .casdoor import CasdoorClient, CasdoorError
from .errors import (
    CreatedButUnconfirmedError,
    InvalidImportIdError,
    OperationRejectedError,
    RemoteCallError,
    UpdatedButUnconfirmedError,
)
from .identifier import IdentifierStyle, InvalidIdentifier, format_id, import_attributes
from .reconcile import (
    DEFAULT_MASK_SENTINEL,
    FieldKind,
    FieldSpec,
    build_payload,
    merge_after_write,
    plan_attributes,
    state_from_remote,
)

logger = logging.getLogger(__name__)

# Default owner marker: the organization the client is configured for
ORGANIZATION = "<organization>"


def utc_now() -> str:
    """Current UTC time as RFC 3339, the format Casdoor stores timestamps in."""
    return datetime.datetime.now(datetime.timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class ResourceDescriptor:
    """Per-kind description consumed by ResourceAdapter.

    Attributes:
        type_name: Resource type name (e.g. "casdoor_role")
        kind: Casdoor API object kind used in get-/add-/update-/delete- actions
        title: Human readable kind used in diagnostics
        fields: Attribute schema
        id_style: How the object is keyed and imported
        key_field: Attribute that holds the object's key
        default_owner: Owner used when state carries none (literal or ORGANIZATION)
        refresh_after_update: Re-fetch after update to pick up server changes
        preserve_on_update: Remote-only JSON keys copied from the current object
            into every update body (Casdoor rejects changes to them)
    """
    type_name: str
    kind: str
    title: str
    fields: tuple[FieldSpec, ...]
    id_style: IdentifierStyle = IdentifierStyle.OWNER_NAME
    key_field: str = "name"
    default_owner: Optional[str] = None
    refresh_after_update: bool = False
    preserve_on_update: tuple[str, ...] = ()

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    def field(self, name: str) -> FieldSpec:
        for spec in self.fields:
            if spec.name == name:
                return spec
        raise KeyError(f"{self.type_name} has no attribute {name!r}")

    def has_field(self, name: str) -> bool:
        return any(spec.name == name for spec in self.fields)

    @property
    def server_fields(self) -> list[str]:
        return [f.name for f in self.fields if f.kind is FieldKind.SERVER]

    @property
    def masked_fields(self) -> list[str]:
        return [f.name for f in self.fields if f.kind is FieldKind.MASKED]

    @property
    def read_back(self) -> bool:
        """Whether create must re-fetch to learn values only the server knows."""
        return any(f.kind in (FieldKind.SERVER, FieldKind.MASKED) for f in self.fields)


class ResourceAdapter:
    """Runs the CRUD sequence for one resource kind.

    Usage:
        adapter = ResourceAdapter(client, get_descriptor("casdoor_role"))
        state = adapter.create({"owner": "built-in", "name": "r1"})
        state = adapter.read(state)      # None once the role is gone
    """

    def __init__(self, client: CasdoorClient, descriptor: ResourceDescriptor, *, mask_sentinel: str = DEFAULT_MASK_SENTINEL):
        self.client = client
        self.descriptor = descriptor
        self.mask_sentinel = mask_sentinel

    # ─────────────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────────────

    def _default_owner(self) -> str:
        if self.descriptor.default_owner == ORGANIZATION:
            return self.client.organization_name
        return self.descriptor.default_owner or ""

    def locate(self, attrs: Mapping[str, Any]) -> tuple[str, str]:
        """Return the (owner, key) pair addressing the remote object."""
        owner = attrs.get("owner") or self._default_owner()
        key = attrs.get(self.descriptor.key_field) or ""
        return owner, key

    def _label(self, key: str) -> str:
        return f'{self.descriptor.kind} "{key}"'

    def _complete(self, attrs: dict[str, Any]) -> dict[str, Any]:
        if self.descriptor.has_field("owner") and not attrs.get("owner"):
            attrs["owner"] = self._default_owner()
        if self.descriptor.id_style is IdentifierStyle.OWNER_NAME:
            attrs["id"] = format_id(attrs.get("owner") or "", attrs.get("name") or "")
        return attrs

    def _fetch_after_write(self, owner: str, key: str, attrs: dict[str, Any], error_cls) -> dict[str, Any]:
        d = self.descriptor
        label = self._label(key)
        try:
            fetched = self.client.get_object(d.kind, owner, key)
        except CasdoorError as exc:
            raise error_cls(d.title, label, attrs, str(exc)) from exc
        if fetched is None:
            raise error_cls(d.title, label, attrs, "object not found")
        try:
            merged = merge_after_write(d.fields, attrs, fetched, self.mask_sentinel)
        except (TypeError, ValueError) as exc:
            raise error_cls(d.title, label, attrs, f"malformed response: {exc}") from exc
        return self._complete(merged)

    def _preserved(self, owner: str, key: str) -> dict[str, Any]:
        d = self.descriptor
        try:
            existing = self.client.get_object(d.kind, owner, key)
        except CasdoorError as exc:
            raise RemoteCallError(
                f"Error Reading {d.title} Before Update",
                f"Could not read {self._label(key)} before update: {exc}",
            ) from exc
        if existing is None:
            return {}
        return {name: existing[name] for name in d.preserve_on_update if name in existing}

    # ─────────────────────────────────────────────────────────────────────────
    # Operations
    # ─────────────────────────────────────────────────────────────────────────

    def create(self, config: Mapping[str, Any]) -> dict[str, Any]:
        """Create the remote object and return the state to persist.

        Raises:
            RemoteCallError: Add call could not complete
            OperationRejectedError: Casdoor did not report the object affected
            CreatedButUnconfirmedError: Object created but read-back failed
        """
        d = self.descriptor
        attrs = self._complete(plan_attributes(d.fields, config))
        if d.has_field("created_time") and not attrs.get("created_time"):
            attrs["created_time"] = utc_now()

        owner, key = self.locate(attrs)
        label = self._label(key)
        try:
            ok = self.client.add_object(d.kind, owner, key, build_payload(d.fields, attrs))
        except CasdoorError as exc:
            raise RemoteCallError(f"Error Creating {d.title}", f"Could not create {label}: {exc}") from exc
        if not ok:
            raise OperationRejectedError(f"Error Creating {d.title}", f"Casdoor returned failure when creating {label}")

        logger.info(f"[{d.type_name}] Created {format_id(owner, key)}")
        if not d.read_back:
            return attrs
        return self._fetch_after_write(owner, key, attrs, CreatedButUnconfirmedError)

    def read(self, state: Mapping[str, Any]) -> Optional[dict[str, Any]]:
        """Refresh state from Casdoor.

        Returns:
            New state, or None when the remote object no longer exists

        Raises:
            RemoteCallError: Get call could not complete
        """
        d = self.descriptor
        owner, key = self.locate(state)
        try:
            remote = self.client.get_object(d.kind, owner, key)
        except CasdoorError as exc:
            raise RemoteCallError(f"Error Reading {d.title}", f"Could not read {self._label(key)}: {exc}") from exc
        if remote is None:
            logger.warning(f"[{d.type_name}] {format_id(owner, key)} not found, removing from state")
            return None
        try:
            refreshed = state_from_remote(d.fields, remote, prior=state, sentinel=self.mask_sentinel)
        except (TypeError, ValueError) as exc:
            raise RemoteCallError(
                f"Error Reading {d.title}",
                f"Could not read {self._label(key)}: malformed response: {exc}",
            ) from exc
        return self._complete(refreshed)

    def update(self, config: Mapping[str, Any], prior: Mapping[str, Any]) -> dict[str, Any]:
        """Update the remote object in place.

        Raises:
            RemoteCallError: Update call could not complete
            OperationRejectedError: Casdoor did not report the object affected
            UpdatedButUnconfirmedError: Object updated but read-back failed
        """
        d = self.descriptor
        attrs = self._complete(plan_attributes(d.fields, config, prior=prior))
        owner, key = self.locate(attrs)
        label = self._label(key)
        payload = build_payload(d.fields, attrs)
        if d.preserve_on_update:
            payload.update(self._preserved(owner, key))
        try:
            ok = self.client.update_object(d.kind, owner, key, payload)
        except CasdoorError as exc:
            raise RemoteCallError(f"Error Updating {d.title}", f"Could not update {label}: {exc}") from exc
        if not ok:
            raise OperationRejectedError(f"Error Updating {d.title}", f"Casdoor returned failure when updating {label}")

        logger.info(f"[{d.type_name}] Updated {format_id(owner, key)}")
        if not d.refresh_after_update:
            return attrs
        return self._fetch_after_write(owner, key, attrs, UpdatedButUnconfirmedError)

    def delete(self, state: Mapping[str, Any]) -> None:
        """Delete the remote object.

        Raises:
            RemoteCallError: Delete call could not complete
            OperationRejectedError: Casdoor did not report the object affected
        """
        d = self.descriptor
        owner, key = self.locate(state)
        label = self._label(key)
        try:
            ok = self.client.delete_object(d.kind, owner, key, build_payload(d.fields, state))
        except CasdoorError as exc:
            raise RemoteCallError(f"Error Deleting {d.title}", f"Could not delete {label}: {exc}") from exc
        if not ok:
            raise OperationRejectedError(f"Error Deleting {d.title}", f"Casdoor returned failure when deleting {label}")
        logger.info(f"[{d.type_name}] Deleted {format_id(owner, key)}")

    def import_state(self, raw_id: str) -> dict[str, Any]:
        """Partial state for an import string; the caller reads the rest.

        Raises:
            InvalidImportIdError: If the string does not match the id style
        """
        try:
            return import_attributes(self.descriptor.id_style, raw_id, self.descriptor.key_field)
        except InvalidIdentifier as exc:
            raise InvalidImportIdError(str(exc)) from exc
