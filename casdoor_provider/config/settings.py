"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from cryptography import x509

from casdoor_provider.core.errors import ConfigurationError
from casdoor_provider.core.reconcile import DEFAULT_MASK_SENTINEL

logger = logging.getLogger(__name__)

SECRETS_DIR = Path("/run/secrets")
DEFAULT_REQUEST_TIMEOUT = 30
DEFAULT_STATE_PATH = ".casdoor/terraform.tfstate.json"


def _load_secret_from_file(secret_name: str, env_var: str | None = None, environ: Optional[Mapping[str, str]] = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Secret value or None if not found
    """
    environ = os.environ if environ is None else environ
    secret_file = SECRETS_DIR / secret_name

    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                logger.info(f"[settings] Loaded {secret_name} from {SECRETS_DIR}")
                return secret_value
        except OSError as e:
            logger.warning(f"[settings] Failed to read {secret_file}: {e}")

    if env_var:
        secret_value = environ.get(env_var)
        if secret_value:
            logger.debug(f"[settings] Loaded {env_var} from environment")
            return secret_value

    return None


def validate_certificate(pem: str) -> x509.Certificate:
    """Parse a PEM encoded X.509 certificate.

    Raises:
        ConfigurationError: If the PEM is not a certificate
    """
    try:
        return x509.load_pem_x509_certificate(pem.encode("utf-8"))
    except ValueError as exc:
        raise ConfigurationError(
            "Invalid Certificate",
            f"The provider certificate is not a valid PEM encoded X.509 certificate: {exc}",
        ) from exc


@dataclass
class ProviderConfig:
    """Provider configuration container."""
    # Casdoor
    endpoint: str = ""
    organization_name: str = ""
    application_name: str = ""

    # OAuth application credentials
    client_id: str = ""
    client_secret: str = ""
    certificate: str = ""

    # Username/password login (replaces the OAuth credentials when set)
    username: str = ""
    password: str = ""

    # Behaviour
    mask_sentinel: str = DEFAULT_MASK_SENTINEL
    request_timeout: int = DEFAULT_REQUEST_TIMEOUT
    state_path: str = DEFAULT_STATE_PATH

    @property
    def use_login_auth(self) -> bool:
        return bool(self.username)

    def validate(self) -> None:
        """Check that one complete authentication method is configured.

        Raises:
            ConfigurationError: Naming the first missing or invalid setting
        """
        required = [
            ("endpoint", "Missing Endpoint", "CASDOOR_ENDPOINT"),
            ("organization_name", "Missing Organization Name", "CASDOOR_ORGANIZATION_NAME"),
            ("application_name", "Missing Application Name", "CASDOOR_APPLICATION_NAME"),
        ]
        if self.use_login_auth:
            required.append(("password", "Missing Password", "CASDOOR_PASSWORD"))
        else:
            required += [
                ("client_id", "Missing Client ID", "CASDOOR_CLIENT_ID"),
                ("client_secret", "Missing Client Secret", "CASDOOR_CLIENT_SECRET"),
                ("certificate", "Missing Certificate", "CASDOOR_CERTIFICATE"),
            ]
        for attr, summary, env_var in required:
            if not getattr(self, attr):
                raise ConfigurationError(summary, f"Set {attr} in the provider configuration or the {env_var} environment variable.")

        if not self.mask_sentinel:
            raise ConfigurationError("Invalid Mask Sentinel", "The masking sentinel must not be empty.")
        if self.request_timeout <= 0:
            raise ConfigurationError("Invalid Request Timeout", f"Request timeout must be positive, got {self.request_timeout}.")
        if not self.use_login_auth:
            validate_certificate(self.certificate)


def _read_certificate(environ: Mapping[str, str]) -> str:
    cert_file = environ.get("CASDOOR_CERTIFICATE_FILE")
    if cert_file:
        try:
            return Path(cert_file).read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError("Invalid Certificate", f"Cannot read {cert_file}: {exc}") from exc
    return _load_secret_from_file("casdoor_certificate", "CASDOOR_CERTIFICATE", environ) or ""


def _get_int(environ: Mapping[str, str], var_name: str, default: int) -> int:
    raw = environ.get(var_name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError("Invalid Configuration", f"{var_name} must be an integer, got {raw!r}") from exc


def load_settings(environ: Optional[Mapping[str, str]] = None) -> ProviderConfig:
    """Load provider settings from environment and /run/secrets.

    Does not validate; call ``ProviderConfig.validate()`` (or build a client
    with ``create_client_from_config``) to check the result.
    """
    environ = os.environ if environ is None else environ

    config = ProviderConfig(
        endpoint=environ.get("CASDOOR_ENDPOINT", ""),
        organization_name=environ.get("CASDOOR_ORGANIZATION_NAME", ""),
        application_name=environ.get("CASDOOR_APPLICATION_NAME", ""),
        client_id=environ.get("CASDOOR_CLIENT_ID", ""),
        client_secret=_load_secret_from_file("casdoor_client_secret", "CASDOOR_CLIENT_SECRET", environ) or "",
        certificate=_read_certificate(environ),
        username=environ.get("CASDOOR_USERNAME", ""),
        password=_load_secret_from_file("casdoor_password", "CASDOOR_PASSWORD", environ) or "",
        mask_sentinel=environ.get("CASDOOR_MASK_SENTINEL", DEFAULT_MASK_SENTINEL),
        request_timeout=_get_int(environ, "CASDOOR_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
        state_path=environ.get("CASDOOR_STATE_PATH", DEFAULT_STATE_PATH),
    )
    auth = "login" if config.use_login_auth else "client credentials"
    logger.info(f"[settings] endpoint={config.endpoint or 'UNSET'} organization={config.organization_name or 'UNSET'} auth={auth}")
    return config
