import json
from types import SimpleNamespace

import pytest
import requests

from casdoor_provider.config import ProviderConfig
from casdoor_provider.core.casdoor import client as client_module
from casdoor_provider.core.casdoor import (
    AppCredentials,
    AuthenticationError,
    CasdoorAPIError,
    CasdoorClient,
    CasdoorConnectionError,
    create_client_from_config,
    fetch_credentials_via_login,
)


class _StubResponse:
    def __init__(self, payload, status_code: int = 200):
        self._payload = payload
        self.status_code = status_code
        self.text = payload if isinstance(payload, str) else json.dumps(payload)

    def json(self):
        if isinstance(self._payload, str):
            raise ValueError("not json")
        return self._payload


@pytest.fixture()
def recorder(monkeypatch):
    """Install requests.get/post stubs that record calls and replay responses."""
    state = SimpleNamespace(calls=[], responses=[])

    def _record(method):
        def _handler(url, **kwargs):
            state.calls.append(SimpleNamespace(method=method, url=url, **kwargs))
            response = state.responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response
        return _handler

    monkeypatch.setattr(requests, "get", _record("GET"))
    monkeypatch.setattr(requests, "post", _record("POST"))
    return state


@pytest.fixture()
def client():
    return CasdoorClient("https://door.example.com/", "cid", "csecret", organization_name="built-in", timeout=7)


def test_get_url_strips_trailing_slash_and_encodes_query(client):
    assert client.get_url("get-role", {"id": "built-in/r1"}) == "https://door.example.com/api/get-role?id=built-in%2Fr1"
    assert client.get_url("get-account") == "https://door.example.com/api/get-account"


def test_get_object_returns_data_with_basic_auth(client, recorder):
    recorder.responses.append(_StubResponse({"status": "ok", "msg": "", "data": {"owner": "built-in", "name": "r1"}}))

    obj = client.get_object("role", "built-in", "r1")

    assert obj == {"owner": "built-in", "name": "r1"}
    call = recorder.calls[0]
    assert call.method == "GET"
    assert call.url.endswith("/api/get-role?id=built-in%2Fr1")
    assert call.auth == ("cid", "csecret")
    assert call.timeout == 7


def test_get_object_null_data_means_missing(client, recorder):
    recorder.responses.append(_StubResponse({"status": "ok", "msg": "", "data": None}))
    assert client.get_object("role", "built-in", "gone") is None


def test_error_envelope_raises_api_error(client, recorder):
    recorder.responses.append(_StubResponse({"status": "error", "msg": "Unauthorized operation", "data": None}))
    with pytest.raises(CasdoorAPIError) as exc_info:
        client.get_object("role", "built-in", "r1")
    assert exc_info.value.message == "Unauthorized operation"
    assert exc_info.value.endpoint == "/api/get-role"


def test_http_error_status_raises_api_error(client, recorder):
    recorder.responses.append(_StubResponse("bad gateway", status_code=502))
    with pytest.raises(CasdoorAPIError) as exc_info:
        client.get_object("role", "built-in", "r1")
    assert exc_info.value.status_code == 502


def test_non_json_body_raises_api_error(client, recorder):
    recorder.responses.append(_StubResponse("<html>login</html>"))
    with pytest.raises(CasdoorAPIError, match="not valid JSON"):
        client.get_object("role", "built-in", "r1")


def test_network_failure_raises_connection_error(client, recorder):
    recorder.responses.append(requests.ConnectionError("connection refused"))
    with pytest.raises(CasdoorConnectionError, match="connection refused"):
        client.get_object("role", "built-in", "r1")


def test_add_object_posts_json_and_reports_affected(client, recorder):
    recorder.responses.append(_StubResponse({"status": "ok", "msg": "", "data": "Affected"}))

    assert client.add_object("role", "built-in", "r1", {"owner": "built-in", "name": "r1"}) is True
    call = recorder.calls[0]
    assert call.method == "POST"
    assert call.url.endswith("/api/add-role?id=built-in%2Fr1")
    assert call.json == {"owner": "built-in", "name": "r1"}


@pytest.mark.parametrize("method", ["add_object", "update_object", "delete_object"])
def test_unaffected_mutation_returns_false(client, recorder, method):
    recorder.responses.append(_StubResponse({"status": "ok", "msg": "", "data": "Unaffected"}))
    assert getattr(client, method)("role", "built-in", "r1", {}) is False


def test_update_targets_existing_id(client, recorder):
    recorder.responses.append(_StubResponse({"status": "ok", "msg": "", "data": "Affected"}))
    client.update_object("user", "built-in", "alice", {"displayName": "Alice"})
    assert "/api/update-user?id=built-in%2Falice" in recorder.calls[0].url


# ─────────────────────────────────────────────────────────────────────────────
# Login flow
# ─────────────────────────────────────────────────────────────────────────────

class _FakeSession:
    instances: list["_FakeSession"] = []
    responses: list[_StubResponse] = []

    def __init__(self):
        self.calls = []
        self.closed = False
        _FakeSession.instances.append(self)

    def post(self, url, **kwargs):
        self.calls.append(("POST", url, kwargs))
        return _FakeSession.responses.pop(0)

    def get(self, url, **kwargs):
        self.calls.append(("GET", url, kwargs))
        return _FakeSession.responses.pop(0)

    def close(self):
        self.closed = True


@pytest.fixture()
def fake_session(monkeypatch):
    _FakeSession.instances = []
    _FakeSession.responses = []
    monkeypatch.setattr(requests, "Session", _FakeSession)
    return _FakeSession


def _ok(data):
    return _StubResponse({"status": "ok", "msg": "", "data": data})


def test_login_flow_fetches_application_credentials(fake_session):
    fake_session.responses += [
        _ok("user-session"),
        _ok({"clientId": "cid", "clientSecret": "csecret", "cert": "cert-app"}),
        _ok({"certificate": "-----BEGIN CERTIFICATE-----..."}),
    ]

    creds = fetch_credentials_via_login("https://door.example.com", "built-in", "app-built-in", "admin", "123")

    assert creds == AppCredentials("cid", "csecret", "-----BEGIN CERTIFICATE-----...")
    session = fake_session.instances[0]
    login, get_app, get_cert = session.calls
    assert login[1] == "https://door.example.com/api/login"
    assert login[2]["json"]["type"] == "login"
    assert login[2]["json"]["organization"] == "built-in"
    assert get_app[2]["params"] == {"id": "admin/app-built-in"}
    assert get_cert[2]["params"] == {"id": "admin/cert-app"}
    assert login[2]["timeout"] == 30
    assert session.closed


def test_login_flow_defaults_to_built_in_cert(fake_session):
    fake_session.responses += [
        _ok(None),
        _ok({"clientId": "cid", "clientSecret": "csecret", "cert": ""}),
        _ok({"certificate": "pem"}),
    ]
    fetch_credentials_via_login("https://door.example.com", "built-in", "app-built-in", "admin", "123")
    assert fake_session.instances[0].calls[2][2]["params"] == {"id": "admin/cert-built-in"}


def test_login_rejected_raises_authentication_error(fake_session):
    fake_session.responses.append(_StubResponse({"status": "error", "msg": "password incorrect", "data": None}))
    with pytest.raises(AuthenticationError, match="password incorrect"):
        fetch_credentials_via_login("https://door.example.com", "built-in", "app-built-in", "admin", "wrong")


def test_login_empty_certificate_is_an_error(fake_session):
    fake_session.responses += [
        _ok(None),
        _ok({"clientId": "cid", "clientSecret": "csecret", "cert": "cert-built-in"}),
        _ok({"certificate": ""}),
    ]
    with pytest.raises(AuthenticationError, match="empty"):
        fetch_credentials_via_login("https://door.example.com", "built-in", "app-built-in", "admin", "123")


def test_create_client_from_config_uses_login_when_username_set(monkeypatch):
    captured = {}

    def fake_login(endpoint, organization, application, username, password, *, timeout):
        captured.update(endpoint=endpoint, username=username, timeout=timeout)
        return AppCredentials("login-cid", "login-secret", "login-pem")

    monkeypatch.setattr(client_module, "fetch_credentials_via_login", fake_login)
    config = ProviderConfig(
        endpoint="https://door.example.com",
        organization_name="built-in",
        application_name="app-built-in",
        username="admin",
        password="123",
        request_timeout=12,
    )

    client = create_client_from_config(config)

    assert (client.client_id, client.client_secret, client.certificate) == ("login-cid", "login-secret", "login-pem")
    assert client.organization_name == "built-in"
    assert client.timeout == 12
    assert captured == {"endpoint": "https://door.example.com", "username": "admin", "timeout": 12}


def test_create_client_from_config_uses_client_credentials(certificate_pem):
    config = ProviderConfig(
        endpoint="https://door.example.com",
        organization_name="built-in",
        application_name="app-built-in",
        client_id="cid",
        client_secret="csecret",
        certificate=certificate_pem,
    )
    client = create_client_from_config(config)
    assert client.client_id == "cid"
    assert client.certificate == certificate_pem
