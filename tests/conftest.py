"""Pytest shared fixtures for provider tests."""
import copy
import datetime
import pathlib
import sys

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
import requests
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: test talks to a live Casdoor instance")


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _block_network(monkeypatch, request):
    """
    Prevent unit tests from reaching a real Casdoor server.

    Tests that exercise the HTTP client install their own stubs on top of
    these; integration tests are marked and skip the guard.
    """
    if request.node.get_closest_marker("integration"):
        return

    def _unexpected(method):
        def _fail(url, *args, **kwargs):
            raise RuntimeError(f"Unexpected HTTP {method} in unit test: {url}")
        return _fail

    class _GuardSession:
        get = staticmethod(_unexpected("GET"))
        post = staticmethod(_unexpected("POST"))

        def close(self):
            pass

    monkeypatch.setattr(requests, "get", _unexpected("GET"))
    monkeypatch.setattr(requests, "post", _unexpected("POST"))
    monkeypatch.setattr(requests, "Session", _GuardSession)


# ─────────────────────────────────────────────────────────────────────────────
# In-memory Casdoor
# ─────────────────────────────────────────────────────────────────────────────
class FakeCasdoorClient:
    """Stands in for CasdoorClient with an in-memory object store.

    Knobs:
        get_errors: exceptions raised (in order) by the next get_object calls
        rejected: actions ("add-role", "delete-user", ...) answered with False
        generated: per kind, JSON keys the server fills in on add
        masked: per kind, JSON keys returned as "***" when non-empty
    """

    def __init__(self, organization_name: str = "built-in"):
        self.organization_name = organization_name
        self.objects: dict[tuple[str, str, str], dict] = {}
        self.calls: list[tuple[str, str, str, str]] = []
        self.payloads: list[dict] = []
        self.get_errors: list[Exception] = []
        self.rejected: set[str] = set()
        self.generated: dict[str, dict] = {}
        self.masked: dict[str, list[str]] = {}

    def count(self, verb: str, kind: str | None = None) -> int:
        return sum(1 for call in self.calls if call[0] == verb and (kind is None or call[1] == kind))

    def put(self, kind: str, owner: str, name: str, obj: dict) -> None:
        self.objects[(kind, owner, name)] = copy.deepcopy(obj)

    def get_object(self, kind, owner, name):
        self.calls.append(("get", kind, owner, name))
        if self.get_errors:
            raise self.get_errors.pop(0)
        obj = self.objects.get((kind, owner, name))
        if obj is None:
            return None
        result = copy.deepcopy(obj)
        for key in self.masked.get(kind, []):
            if result.get(key):
                result[key] = "***"
        return result

    def add_object(self, kind, owner, name, obj):
        self.calls.append(("add", kind, owner, name))
        self.payloads.append(copy.deepcopy(obj))
        if f"add-{kind}" in self.rejected or (kind, owner, name) in self.objects:
            return False
        stored = copy.deepcopy(obj)
        stored.update(self.generated.get(kind, {}))
        self.objects[(kind, owner, name)] = stored
        return True

    def update_object(self, kind, owner, name, obj):
        self.calls.append(("update", kind, owner, name))
        self.payloads.append(copy.deepcopy(obj))
        if f"update-{kind}" in self.rejected or (kind, owner, name) not in self.objects:
            return False
        self.objects[(kind, owner, name)].update(copy.deepcopy(obj))
        return True

    def delete_object(self, kind, owner, name, obj):
        self.calls.append(("delete", kind, owner, name))
        if f"delete-{kind}" in self.rejected:
            return False
        return self.objects.pop((kind, owner, name), None) is not None


@pytest.fixture()
def fake_client():
    return FakeCasdoorClient()


# ─────────────────────────────────────────────────────────────────────────────
# Certificates
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(scope="session")
def certificate_pem() -> str:
    """Self-signed X.509 certificate like the one Casdoor issues per application."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    subject = x509.Name([
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Casdoor Organization"),
        x509.NameAttribute(NameOID.COMMON_NAME, "Casdoor Cert"),
    ])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=365))
        .sign(private_key, hashes.SHA256())
    )
    return cert.public_bytes(serialization.Encoding.PEM).decode("utf-8")
