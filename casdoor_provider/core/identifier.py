"""Composite ``owner/name`` identifiers.

Casdoor scopes most objects by an owning organization, so resources are keyed
by two strings. Terraform-style state and import strings only carry one, which
is the ``owner/name`` form produced and consumed here.
"""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum

SEPARATOR = "/"


class InvalidIdentifier(ValueError):
    """Raised when a string cannot be read as a resource identifier.

    Attributes:
        raw: The string that was received
        expected: Human readable format that was expected
    """

    def __init__(self, raw: str, expected: str = "owner/name"):
        self.raw = raw
        self.expected = expected
        super().__init__(f"Expected import ID in the format '{expected}', got: {raw!r}")


class IdentifierStyle(str, Enum):
    """How a resource kind is keyed on the remote side."""
    OWNER_NAME = "owner/name"
    NAME = "name"
    ID = "id"


@dataclass(frozen=True)
class ResourceIdentifier:
    """Owner-scoped name of a remote object."""
    owner: str
    name: str

    def __str__(self) -> str:
        return format_id(self.owner, self.name)

    @classmethod
    def parse(cls, raw: str) -> "ResourceIdentifier":
        owner, name = parse_id(raw)
        return cls(owner, name)


def format_id(owner: str, name: str) -> str:
    """Join owner and name into the composite form (no validation)."""
    return f"{owner}{SEPARATOR}{name}"


def parse_id(raw: str) -> tuple[str, str]:
    """Split a composite identifier on its first separator.

    Args:
        raw: Identifier such as ``"built-in/admin"``

    Returns:
        Tuple of (owner, name)

    Raises:
        InvalidIdentifier: If the separator is missing or a part is empty
    """
    owner, sep, name = raw.partition(SEPARATOR)
    if not sep or not owner or not name:
        raise InvalidIdentifier(raw)
    return owner, name


def import_attributes(style: IdentifierStyle, raw: str, key_field: str = "name") -> dict[str, str]:
    """Translate an import string into the attributes it determines.

    Owner-scoped resources get ``owner``, ``name`` and ``id``. Singly keyed
    resources pass the string through unchanged as their key attribute.

    Raises:
        InvalidIdentifier: If the string is malformed for the given style
    """
    if style is IdentifierStyle.OWNER_NAME:
        owner, name = parse_id(raw)
        return {"owner": owner, "name": name, "id": format_id(owner, name)}

    if not raw:
        raise InvalidIdentifier(raw, expected=key_field)
    attrs = {key_field: raw}
    if style is IdentifierStyle.ID:
        attrs["id"] = raw
    return attrs
