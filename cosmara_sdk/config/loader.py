"""
Configuration management and loading.

Handles client settings from YAML files and environment variables.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from ..core.license import Edition
from ..core.types import APIProvider

# Environment variables checked, in order, when no key is configured
API_KEY_ENV_VARS: Dict[APIProvider, tuple] = {
    APIProvider.OPENAI: ("OPENAI_API_KEY",),
    APIProvider.ANTHROPIC: ("ANTHROPIC_API_KEY",),
    APIProvider.GOOGLE: ("GOOGLE_API_KEY", "GEMINI_API_KEY"),
}


@dataclass(frozen=True)
class CommunityConfig:
    """Client configuration.

    Keys are not validated here; a missing key surfaces as AUTH_ERROR
    only when that provider is actually invoked.
    """
    default_provider: APIProvider = APIProvider.OPENAI
    api_keys: Mapping[APIProvider, str] = field(default_factory=dict)
    edition: Edition = Edition.COMMUNITY
    license_key: Optional[str] = None
    timeout: float = 60.0

    def __post_init__(self):
        """Normalize enum fields and validate timeout."""
        object.__setattr__(self, "default_provider", APIProvider(self.default_provider))
        object.__setattr__(
            self, "api_keys", {APIProvider(p): k for p, k in dict(self.api_keys).items()}
        )
        if self.timeout <= 0:
            raise ValueError("timeout must be > 0")

    def api_key_for(self, provider: APIProvider) -> Optional[str]:
        """Configured key for a provider, falling back to the environment."""
        provider = APIProvider(provider)
        key = self.api_keys.get(provider)
        if key:
            return key
        for env_var in API_KEY_ENV_VARS[provider]:
            value = os.environ.get(env_var)
            if value:
                return value
        return None


def load_config(path: str) -> CommunityConfig:
    """Load and validate client configuration from a YAML file.

    Strict validation ensures no silent misconfigurations.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated CommunityConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    allowed_top_keys = {'default_provider', 'api_keys', 'edition', 'license_key', 'timeout'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    default_provider = _parse_provider(raw_config.get('default_provider', 'openai'), 'default_provider')

    api_keys_data = raw_config.get('api_keys') or {}
    if not isinstance(api_keys_data, dict):
        raise ValueError("'api_keys' must be a dictionary")

    api_keys = {}
    for name, key in api_keys_data.items():
        provider = _parse_provider(name, f"api_keys.{name}")
        if key is None:
            continue
        if not isinstance(key, str):
            raise ValueError(f"'api_keys.{name}' must be a string")
        api_keys[provider] = key

    edition_str = raw_config.get('edition', 'community')
    if not isinstance(edition_str, str):
        raise ValueError("'edition' must be a string")
    try:
        edition = Edition(edition_str.lower())
    except ValueError:
        valid_editions = [e.value for e in Edition]
        raise ValueError(f"'edition' must be one of: {valid_editions}")

    license_key = raw_config.get('license_key')
    if license_key is not None and not isinstance(license_key, str):
        raise ValueError("'license_key' must be a string")

    timeout = raw_config.get('timeout', 60.0)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ValueError("'timeout' must be > 0")

    return CommunityConfig(
        default_provider=default_provider,
        api_keys=api_keys,
        edition=edition,
        license_key=license_key,
        timeout=float(timeout),
    )


def _parse_provider(value, path: str) -> APIProvider:
    """Parse a provider name.

    Raises:
        ValueError: If the provider is unknown
    """
    if not isinstance(value, str):
        raise ValueError(f"'{path}' must be a string")
    try:
        return APIProvider(value.lower())
    except ValueError:
        valid_providers = [p.value for p in APIProvider]
        raise ValueError(f"'{path}' must be one of: {valid_providers}")
