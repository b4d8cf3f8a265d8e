"""Low-level HTTP client for the Casdoor REST API.

Handles authentication, the ``{"status", "msg", "data"}`` response envelope,
and the four verb-shaped operations every resource kind exposes.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import requests

from ..identifier import format_id
from .exceptions import AuthenticationError, CasdoorAPIError, CasdoorConnectionError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30
AFFECTED = "Affected"
BUILT_IN_CERT = "cert-built-in"
APPLICATION_OWNER = "admin"


@dataclass
class AppCredentials:
    """Application credentials resolved through username/password login."""
    client_id: str
    client_secret: str
    certificate: str


def _parse_envelope(resp: requests.Response, endpoint: str) -> Dict[str, Any]:
    """Validate a Casdoor response and return its decoded envelope.

    Raises:
        CasdoorAPIError: On HTTP error, non-JSON body or ``status != "ok"``
    """
    if resp.status_code >= 400:
        raise CasdoorAPIError(resp.status_code, resp.text, endpoint)
    try:
        envelope = resp.json()
    except ValueError as exc:
        raise CasdoorAPIError(resp.status_code, "response is not valid JSON", endpoint) from exc
    if not isinstance(envelope, dict):
        raise CasdoorAPIError(resp.status_code, "unexpected response shape", endpoint)
    if envelope.get("status") != "ok":
        raise CasdoorAPIError(resp.status_code, envelope.get("msg") or "unknown error", endpoint)
    return envelope


class CasdoorClient:
    """HTTP client for the Casdoor API, authenticated with application credentials.

    The client is configured once and never mutated afterwards, so a single
    instance can be shared by every resource adapter.

    Usage:
        client = CasdoorClient("https://door.example.com", "id", "secret",
                               organization_name="built-in")
        role = client.get_object("role", "built-in", "admin")
    """

    def __init__(
        self,
        endpoint: str,
        client_id: str,
        client_secret: str,
        certificate: str = "",
        organization_name: str = "",
        application_name: str = "",
        *,
        timeout: int = REQUEST_TIMEOUT,
    ):
        """Initialize Casdoor client.

        Args:
            endpoint: Casdoor base URL
            client_id: Application client ID (basic auth user)
            client_secret: Application client secret (basic auth password)
            certificate: Application certificate PEM
            organization_name: Organization the provider manages
            application_name: Application the credentials belong to
            timeout: Per-request timeout in seconds
        """
        self.endpoint = endpoint.rstrip("/")
        self.client_id = client_id
        self.client_secret = client_secret
        self.certificate = certificate
        self.organization_name = organization_name
        self.application_name = application_name
        self.timeout = timeout

    @property
    def _auth(self) -> tuple[str, str]:
        return (self.client_id, self.client_secret)

    def get_url(self, action: str, query: Optional[Dict[str, str]] = None) -> str:
        """Build ``{endpoint}/api/{action}?{query}``."""
        url = f"{self.endpoint}/api/{action}"
        if query:
            url = f"{url}?{urlencode(query)}"
        return url

    def do_get(self, action: str, query: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """Execute GET request and return the response envelope.

        Raises:
            CasdoorConnectionError: On network failure
            CasdoorAPIError: On error response
        """
        url = self.get_url(action, query)
        logger.debug(f"[casdoor] GET {url}")
        try:
            resp = requests.get(url, auth=self._auth, timeout=self.timeout)
        except requests.RequestException as exc:
            raise CasdoorConnectionError(f"GET {url}: {exc}") from exc
        return _parse_envelope(resp, f"/api/{action}")

    def do_post(self, action: str, query: Optional[Dict[str, str]], body: Dict[str, Any]) -> Dict[str, Any]:
        """Execute POST request with JSON body and return the response envelope.

        Raises:
            CasdoorConnectionError: On network failure
            CasdoorAPIError: On error response
        """
        url = self.get_url(action, query)
        logger.debug(f"[casdoor] POST {url}")
        try:
            resp = requests.post(url, json=body, auth=self._auth, timeout=self.timeout)
        except requests.RequestException as exc:
            raise CasdoorConnectionError(f"POST {url}: {exc}") from exc
        return _parse_envelope(resp, f"/api/{action}")

    # ─────────────────────────────────────────────────────────────────────────
    # Generic CRUD
    # ─────────────────────────────────────────────────────────────────────────

    def get_object(self, kind: str, owner: str, name: str) -> Optional[Dict[str, Any]]:
        """Fetch one object by composite id.

        Args:
            kind: API object kind (e.g. "role", "user")
            owner: Owning organization
            name: Object name

        Returns:
            Decoded object, or None if Casdoor has no such object
        """
        envelope = self.do_get(f"get-{kind}", {"id": format_id(owner, name)})
        data = envelope.get("data")
        if data is None:
            return None
        if not isinstance(data, dict):
            raise CasdoorAPIError(200, f"expected an object, got {type(data).__name__}", f"/api/get-{kind}")
        return data

    def add_object(self, kind: str, owner: str, name: str, obj: Dict[str, Any]) -> bool:
        """Create an object. Returns True when Casdoor reports it affected."""
        return self._modify(f"add-{kind}", owner, name, obj)

    def update_object(self, kind: str, owner: str, name: str, obj: Dict[str, Any]) -> bool:
        """Update the object currently stored as ``owner/name``."""
        return self._modify(f"update-{kind}", owner, name, obj)

    def delete_object(self, kind: str, owner: str, name: str, obj: Dict[str, Any]) -> bool:
        """Delete an object. Returns True when Casdoor reports it affected."""
        return self._modify(f"delete-{kind}", owner, name, obj)

    def _modify(self, action: str, owner: str, name: str, obj: Dict[str, Any]) -> bool:
        envelope = self.do_post(action, {"id": format_id(owner, name)}, obj)
        affected = envelope.get("data") == AFFECTED
        if not affected:
            logger.warning(f"[casdoor] {action} {format_id(owner, name)} returned data={envelope.get('data')!r}")
        return affected


# ─────────────────────────────────────────────────────────────────────────────
# Client construction
# ─────────────────────────────────────────────────────────────────────────────

def fetch_credentials_via_login(
    endpoint: str,
    organization: str,
    application: str,
    username: str,
    password: str,
    *,
    timeout: int = REQUEST_TIMEOUT,
) -> AppCredentials:
    """Log in as a user and read the application's credentials and certificate.

    Args:
        endpoint: Casdoor base URL
        organization: Organization of the user
        application: Application to fetch credentials for
        username: Login name
        password: Login password
        timeout: Per-request timeout in seconds

    Returns:
        AppCredentials with client ID, client secret and certificate PEM

    Raises:
        AuthenticationError: If any step of the login flow fails
    """
    base = endpoint.rstrip("/")
    session = requests.Session()
    try:
        resp = session.post(
            f"{base}/api/login",
            json={
                "application": application,
                "organization": organization,
                "username": username,
                "password": password,
                "type": "login",
                "autoSignin": True,
            },
            timeout=timeout,
        )
        _parse_envelope(resp, "/api/login")

        resp = session.get(
            f"{base}/api/get-application",
            params={"id": format_id(APPLICATION_OWNER, application)},
            timeout=timeout,
        )
        app = _parse_envelope(resp, "/api/get-application").get("data") or {}

        cert_name = app.get("cert") or BUILT_IN_CERT
        resp = session.get(
            f"{base}/api/get-cert",
            params={"id": format_id(APPLICATION_OWNER, cert_name)},
            timeout=timeout,
        )
        cert = _parse_envelope(resp, "/api/get-cert").get("data") or {}
    except requests.RequestException as exc:
        raise AuthenticationError(f"Login request to {base} failed: {exc}") from exc
    except CasdoorAPIError as exc:
        raise AuthenticationError(f"Login as {username!r} failed: {exc}") from exc
    finally:
        session.close()

    client_id = app.get("clientId") or ""
    client_secret = app.get("clientSecret") or ""
    if not client_id or not client_secret:
        raise AuthenticationError(f"Application {application!r} has no client credentials")
    certificate = cert.get("certificate") or ""
    if not certificate:
        raise AuthenticationError(f"Certificate {cert_name!r} is empty")

    logger.info(f"[casdoor] Fetched credentials for application {application!r} via login")
    return AppCredentials(client_id=client_id, client_secret=client_secret, certificate=certificate)


def create_client_from_config(config) -> CasdoorClient:
    """Build the shared client from validated ProviderConfig.

    Uses the login flow when a username is configured, OAuth client
    credentials otherwise.
    """
    config.validate()
    client_id = config.client_id
    client_secret = config.client_secret
    certificate = config.certificate
    if config.use_login_auth:
        creds = fetch_credentials_via_login(
            config.endpoint,
            config.organization_name,
            config.application_name,
            config.username,
            config.password,
            timeout=config.request_timeout,
        )
        client_id, client_secret, certificate = creds.client_id, creds.client_secret, creds.certificate

    return CasdoorClient(
        config.endpoint,
        client_id,
        client_secret,
        certificate,
        config.organization_name,
        config.application_name,
        timeout=config.request_timeout,
    )
