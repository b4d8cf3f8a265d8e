"""Input validation helpers for declarative configuration documents."""
from __future__ import annotations
import re
from typing import Any, Mapping

from .adapter import ResourceDescriptor
from .errors import ConfigurationError
from .reconcile import coerce

ADDRESS_PATTERN = re.compile(r"^(?P<type>casdoor_[a-z_]+)\.(?P<label>[A-Za-z_][A-Za-z0-9_-]*)$")
LABEL_MAX_LENGTH = 64


def parse_address(address: str) -> tuple[str, str]:
    """Split a resource address such as ``casdoor_role.admins``.

    Args:
        address: Resource address

    Returns:
        Tuple of (type_name, label)

    Raises:
        ValueError: If the address is malformed
    """
    match = ADDRESS_PATTERN.match(address.strip())
    if not match:
        raise ValueError(f"Invalid resource address {address!r}, expected '<type>.<label>'")
    if len(match.group("label")) > LABEL_MAX_LENGTH:
        raise ValueError(f"Resource label in {address!r} exceeds {LABEL_MAX_LENGTH} characters")
    return match.group("type"), match.group("label")


def validate_attributes(descriptor: ResourceDescriptor, attrs: Mapping[str, Any]) -> list[str]:
    """Check one resource block against its schema.

    Returns:
        Problems found (empty when the block is valid)
    """
    problems: list[str] = []
    known = set(descriptor.field_names)
    for name in attrs:
        if name not in known:
            problems.append(f"unsupported attribute {name!r}")
    for field in descriptor.fields:
        value = attrs.get(field.name)
        if value is None:
            if field.required:
                problems.append(f"missing required attribute {field.name!r}")
            continue
        try:
            coerce(field, value)
        except (TypeError, ValueError) as exc:
            problems.append(str(exc))
    return problems


def validate_document(document: Any, registry: Mapping[str, ResourceDescriptor]) -> dict[str, dict[str, Any]]:
    """Validate a parsed configuration document.

    The document maps ``resources`` to ``{address: {attribute: value}}``.
    Every problem is collected before raising.

    Returns:
        Resource blocks keyed by address, in document order

    Raises:
        ConfigurationError: If any block is invalid
    """
    if document is None:
        return {}
    if not isinstance(document, Mapping):
        raise ConfigurationError("Invalid Configuration", "Top level of the configuration must be a mapping")
    resources = document.get("resources") or {}
    if not isinstance(resources, Mapping):
        raise ConfigurationError("Invalid Configuration", "'resources' must map addresses to attribute blocks")

    problems: list[str] = []
    blocks: dict[str, dict[str, Any]] = {}
    for address, attrs in resources.items():
        address = str(address)
        try:
            type_name, _ = parse_address(address)
        except ValueError as exc:
            problems.append(str(exc))
            continue
        descriptor = registry.get(type_name)
        if descriptor is None:
            problems.append(f"{address}: unknown resource type {type_name!r}")
            continue
        if attrs is None:
            attrs = {}
        if not isinstance(attrs, Mapping):
            problems.append(f"{address}: attribute block must be a mapping")
            continue
        problems.extend(f"{address}: {p}" for p in validate_attributes(descriptor, attrs))
        blocks[address] = dict(attrs)

    if problems:
        raise ConfigurationError(
            "Invalid Configuration",
            f"{len(problems)} problem(s) found:\n  - " + "\n  - ".join(problems),
            problems,
        )
    return blocks
