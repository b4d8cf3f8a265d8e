"""Casdoor REST API client library.

Architecture:
- client.py: HTTP client, response envelope handling, login flow
- exceptions.py: Typed exceptions for error handling

Usage:
    from casdoor_provider.core.casdoor import CasdoorClient

    client = CasdoorClient("https://door.example.com", "client-id", "client-secret",
                           organization_name="built-in")
    user = client.get_object("user", "built-in", "alice")
    client.update_object("user", "built-in", "alice", {**user, "displayName": "Alice"})
"""
from .client import (
    CasdoorClient,
    AppCredentials,
    fetch_credentials_via_login,
    create_client_from_config,
    REQUEST_TIMEOUT,
    AFFECTED,
)
from .exceptions import (
    CasdoorError,
    CasdoorAPIError,
    CasdoorConnectionError,
    AuthenticationError,
)

__all__ = [
    "CasdoorClient",
    "AppCredentials",
    "fetch_credentials_via_login",
    "create_client_from_config",
    "REQUEST_TIMEOUT",
    "AFFECTED",
    "CasdoorError",
    "CasdoorAPIError",
    "CasdoorConnectionError",
    "AuthenticationError",
]
