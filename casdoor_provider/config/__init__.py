"""Configuration module for the Casdoor provider."""
from casdoor_provider.core.errors import ConfigurationError

from .settings import ProviderConfig, load_settings, validate_certificate

__all__ = ["ConfigurationError", "ProviderConfig", "load_settings", "validate_certificate"]
