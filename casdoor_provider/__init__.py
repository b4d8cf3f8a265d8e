"""Casdoor provider package.

To manage resources from Python:
    from casdoor_provider.config import load_settings
    from casdoor_provider.core.casdoor import create_client_from_config
    from casdoor_provider.core.engine import Engine, load_configuration

To use the CLI:
    python scripts/casdoorctl.py plan -f casdoor.yaml
"""

__version__ = "0.1.0"
