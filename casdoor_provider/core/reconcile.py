"""State reconciliation between planned attributes and remote Casdoor objects.

Every resource attribute is described by a ``FieldSpec``. Its ``FieldKind``
decides who owns the value once a write has gone through:

- USER: the configuration; written back unchanged
- SERVER: the remote side; overwritten from a fresh fetch
- MASKED: the remote side, except that a masking sentinel never replaces a
  value we already hold
- WRITE_ONLY: the configuration; never read back at all

List and map attributes are normalized so that "empty" and "unset" compare
equal across applies (both are stored as ``None``).
"""
from __future__ import annotations
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional

DEFAULT_MASK_SENTINEL = "***"

_MISSING = object()


class FieldKind(str, Enum):
    USER = "user"
    SERVER = "server"
    MASKED = "masked"
    WRITE_ONLY = "write_only"


class FieldType(str, Enum):
    STRING = "string"
    INT = "int"
    FLOAT = "float"
    BOOL = "bool"
    LIST = "list"
    MAP = "map"


_ZERO_VALUES: dict[FieldType, Any] = {
    FieldType.STRING: "",
    FieldType.INT: 0,
    FieldType.FLOAT: 0.0,
    FieldType.BOOL: False,
}


def camelize(name: str) -> str:
    """Convert a snake_case attribute name to Casdoor's lowerCamelCase JSON key."""
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


@dataclass(frozen=True)
class FieldSpec:
    """Schema entry for one resource attribute.

    Attributes:
        name: Attribute name in configuration and state (snake_case)
        type: Value shape
        kind: Ownership class used during reconciliation
        api_name: JSON key override when camelCase of ``name`` is wrong
        default: Value used when the configuration leaves the attribute unset
        required: Configuration must set the attribute
        force_new: Changing the attribute replaces the remote object
        computed: Server fills the attribute in when configuration omits it
        sensitive: Value is hidden from plan and show output
    """
    name: str
    type: FieldType = FieldType.STRING
    kind: FieldKind = FieldKind.USER
    api_name: Optional[str] = None
    default: Any = None
    required: bool = False
    force_new: bool = False
    computed: bool = False
    sensitive: bool = False

    @property
    def remote_key(self) -> str:
        return self.api_name or camelize(self.name)

    @property
    def is_collection(self) -> bool:
        return self.type in (FieldType.LIST, FieldType.MAP)

    @property
    def is_computed(self) -> bool:
        return self.computed or self.kind is FieldKind.SERVER


# ─────────────────────────────────────────────────────────────────────────────
# Value helpers
# ─────────────────────────────────────────────────────────────────────────────

def resolve_masked(fetched: Any, prior: Any, sentinel: str = DEFAULT_MASK_SENTINEL) -> Any:
    """Pick the value to store for a masked attribute.

    A fetched sentinel means "value exists but is withheld", so the value we
    already hold wins. With nothing held (first import) the result is "".
    """
    if fetched == sentinel:
        return prior if prior is not None else ""
    return fetched


def normalize_collection(value: Any) -> Any:
    """Return ``None`` for absent or empty lists/maps, otherwise a shallow copy."""
    if value is None:
        return None
    if isinstance(value, Mapping):
        return dict(value) if value else None
    if isinstance(value, (list, tuple)):
        return list(value) if value else None
    raise TypeError(f"Expected a list or map, got {type(value).__name__}")


def initial_value(field: FieldSpec) -> Any:
    """Value an attribute takes when nothing sets it."""
    if field.default is not None:
        return field.default
    if field.is_collection:
        return None
    return _ZERO_VALUES[field.type]


def coerce(field: FieldSpec, value: Any) -> Any:
    """Convert a configuration or JSON value to the attribute's Python type.

    JSON null becomes the type's zero value; collections are normalized.

    Raises:
        ValueError: If the value cannot be represented as the attribute type
    """
    if field.is_collection:
        if field.type is FieldType.MAP and value is not None and not isinstance(value, Mapping):
            raise ValueError(f"Attribute {field.name!r} expects a map, got {value!r}")
        if field.type is FieldType.LIST and value is not None and not isinstance(value, (list, tuple)):
            raise ValueError(f"Attribute {field.name!r} expects a list, got {value!r}")
        return normalize_collection(value)

    if value is None:
        return _ZERO_VALUES[field.type]

    try:
        if field.type is FieldType.BOOL:
            if isinstance(value, str):
                if value.lower() not in {"true", "false"}:
                    raise ValueError(value)
                return value.lower() == "true"
            return bool(value)
        if field.type is FieldType.INT:
            if isinstance(value, bool):
                raise ValueError(value)
            return int(value)
        if field.type is FieldType.FLOAT:
            if isinstance(value, bool):
                raise ValueError(value)
            return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Attribute {field.name!r} expects {field.type.value}, got {value!r}") from exc

    if isinstance(value, (dict, list)):
        raise ValueError(f"Attribute {field.name!r} expects {field.type.value}, got {value!r}")
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _remote_value(field: FieldSpec, remote: Mapping[str, Any]) -> Any:
    if field.remote_key not in remote:
        return _MISSING
    return coerce(field, remote[field.remote_key])


# ─────────────────────────────────────────────────────────────────────────────
# Reconciliation
# ─────────────────────────────────────────────────────────────────────────────

def plan_attributes(
    fields: Iterable[FieldSpec],
    config: Mapping[str, Any],
    prior: Optional[Mapping[str, Any]] = None,
) -> dict[str, Any]:
    """Build the attribute set a create or update will send.

    Unset computed attributes carry the prior state value, or ``None`` when
    the server has not assigned one yet.
    """
    prior = prior or {}
    attrs: dict[str, Any] = {}
    for field in fields:
        value = config.get(field.name)
        if value is not None:
            attrs[field.name] = coerce(field, value)
        elif field.is_computed:
            attrs[field.name] = prior.get(field.name)
        else:
            attrs[field.name] = initial_value(field)
    return attrs


def build_payload(fields: Iterable[FieldSpec], attrs: Mapping[str, Any]) -> dict[str, Any]:
    """Render attributes as a Casdoor JSON object.

    Null collections go out as ``[]``/``{}``; unknown scalars as zero values.
    """
    payload: dict[str, Any] = {}
    for field in fields:
        value = attrs.get(field.name)
        if value is None:
            if field.type is FieldType.LIST:
                value = []
            elif field.type is FieldType.MAP:
                value = {}
            else:
                value = _ZERO_VALUES[field.type]
        payload[field.remote_key] = value
    return payload


def merge_after_write(
    fields: Iterable[FieldSpec],
    planned: Mapping[str, Any],
    fetched: Mapping[str, Any],
    sentinel: str = DEFAULT_MASK_SENTINEL,
) -> dict[str, Any]:
    """Merge a post-write fetch into the planned attributes.

    Server-generated attributes come from ``fetched``, masked ones resolve
    against the planned value, everything else stays as planned.
    """
    merged = dict(planned)
    for field in fields:
        if field.kind is FieldKind.SERVER:
            value = _remote_value(field, fetched)
            if value is not _MISSING:
                merged[field.name] = value
        elif field.kind is FieldKind.MASKED:
            value = _remote_value(field, fetched)
            if value is not _MISSING:
                merged[field.name] = resolve_masked(value, planned.get(field.name), sentinel)
        elif field.is_collection:
            merged[field.name] = normalize_collection(planned.get(field.name))
    return merged


def state_from_remote(
    fields: Iterable[FieldSpec],
    remote: Mapping[str, Any],
    prior: Optional[Mapping[str, Any]] = None,
    sentinel: str = DEFAULT_MASK_SENTINEL,
) -> dict[str, Any]:
    """Build state from a fetched object (read and import path)."""
    prior = prior or {}
    state: dict[str, Any] = {}
    for field in fields:
        held = prior.get(field.name, initial_value(field))
        if field.kind is FieldKind.WRITE_ONLY:
            state[field.name] = held
            continue
        value = _remote_value(field, remote)
        if value is _MISSING:
            state[field.name] = held
        elif field.kind is FieldKind.MASKED:
            state[field.name] = resolve_masked(value, prior.get(field.name), sentinel)
        else:
            state[field.name] = value
    return state


def diff(
    fields: Iterable[FieldSpec],
    config: Mapping[str, Any],
    current: Mapping[str, Any],
) -> list[str]:
    """Names of attributes whose configured value differs from state.

    Computed attributes are only compared when the configuration sets them.
    """
    changed: list[str] = []
    for field in fields:
        configured = config.get(field.name)
        if configured is None and field.is_computed:
            continue
        want = coerce(field, configured) if configured is not None else initial_value(field)
        have = current.get(field.name, initial_value(field))
        if field.is_collection:
            have = normalize_collection(have)
        if want != have:
            changed.append(field.name)
    return changed


def redact(fields: Iterable[FieldSpec], attrs: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of ``attrs`` with sensitive values replaced for display."""
    hidden = {field.name for field in fields if field.sensitive}
    return {
        key: ("(sensitive)" if key in hidden and value not in (None, "") else value)
        for key, value in attrs.items()
    }
