"""Diagnostics raised by resource operations.

Each error carries a short ``summary`` and a longer ``detail``, the pair a
plan/apply front end prints to the operator.
"""
from __future__ import annotations
from typing import Any, Optional


class ProviderError(Exception):
    """Base class for user-facing resource operation failures."""

    def __init__(self, summary: str, detail: str):
        self.summary = summary
        self.detail = detail
        super().__init__(f"{summary}: {detail}")

    def to_dict(self) -> dict:
        """Convert to a diagnostic mapping (``severity``/``summary``/``detail``)."""
        return {"severity": "error", "summary": self.summary, "detail": self.detail}


class RemoteCallError(ProviderError):
    """The remote call itself could not complete (network or protocol failure)."""
    pass


class OperationRejectedError(ProviderError):
    """Casdoor completed the call but reported failure or returned no object."""
    pass


class ConfigurationError(ProviderError):
    """Provider settings or a configuration document are invalid.

    Attributes:
        problems: Individual problems when several were found at once
    """

    def __init__(self, summary: str, detail: str, problems: Optional[list[str]] = None):
        self.problems = problems or []
        super().__init__(summary, detail)


class InvalidImportIdError(ProviderError):
    """Import string does not match the resource's identifier format."""

    def __init__(self, detail: str):
        super().__init__("Invalid Import ID", detail)


class UnconfirmedWriteError(ProviderError):
    """A write succeeded but the follow-up read did not.

    The remote object is mutated; only local state is stale. Retrying the
    write would duplicate it, so callers keep ``state`` and re-read later.

    Attributes:
        state: Attributes known after the successful write
    """

    operation = "write"

    def __init__(self, title: str, label: str, state: dict[str, Any], cause: Optional[str] = None):
        self.state = state
        self.label = label
        detail = f"Could not read {label} after {self.operation}"
        if cause:
            detail = f"{detail}: {cause}"
        super().__init__(f"Error Reading {title} After {self.operation.capitalize()}", detail)


class CreatedButUnconfirmedError(UnconfirmedWriteError):
    """Create succeeded, read-back failed."""
    operation = "create"


class UpdatedButUnconfirmedError(UnconfirmedWriteError):
    """Update succeeded, read-back failed."""
    operation = "update"
