"""Configuration helpers for provider selection and credentials."""
from __future__ import annotations

import copy
import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

import keyring  # type: ignore[import-untyped]
import yaml  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

PROVIDER_NAMES: Dict[str, str] = {
    "openai": "OpenAI",
    "gemini": "Gemini",
    "claude": "Claude",
    "ollama": "Ollama",
}

# Field inside providers.<name> that holds the provider's single credential.
CREDENTIAL_FIELDS: Dict[str, str] = {
    "openai": "api_key",
    "gemini": "api_key",
    "claude": "api_key",
    "ollama": "host",
}

KEYRING_SERVICE = "askexcel"

_DEFAULT_CONFIG: Dict[str, Any] = {
    "provider": "openai",
    "providers": {
        "openai": {"api_key": ""},
        "gemini": {"api_key": ""},
        "claude": {"api_key": ""},
        "ollama": {"host": "http://127.0.0.1:11434"},
    },
}

_CONFIG_ENV = "ASKEXCEL_CONFIG"
# Path-style overrides: ASKEXCEL_CFG__PROVIDERS__OLLAMA__HOST=http://gpu-box:11434
_PATH_ENV_PREFIXES = ("ASKEXCEL_CFG__", "ASKEXCEL_SECRET__")
# Whole-document overrides, JSON (or YAML) mappings.
_DOCUMENT_ENVS = ("ASKEXCEL_CONFIG_OVERRIDES", "ASKEXCEL_SECRET_OVERRIDES")


@dataclass(frozen=True)
class Settings:
    """Resolved provider selection handed to the AI client and orchestrator."""

    provider: str = "openai"
    credentials: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.provider not in PROVIDER_NAMES:
            raise ValueError(f"Unknown AI provider: {self.provider}")
        object.__setattr__(self, "credentials", MappingProxyType(dict(self.credentials)))

    @property
    def provider_label(self) -> str:
        return PROVIDER_NAMES[self.provider]

    def credential(self, provider: Optional[str] = None) -> str:
        return str(self.credentials.get(provider or self.provider) or "").strip()

    def with_provider(self, provider: str) -> "Settings":
        return Settings(provider=provider, credentials=dict(self.credentials))


def config_path() -> Path:
    """Return the resolved configuration file path without loading."""
    env = os.environ.get(_CONFIG_ENV)
    if env:
        return Path(env).expanduser().resolve()
    return Path.home() / ".askexcel" / "config.yaml"


def _merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(value, Mapping) and isinstance(current, dict):
            merged[key] = _merge(current, value)
        else:
            merged[key] = value
    return merged


def _override_leaves(data: Mapping[str, Any], prefix: Tuple[str, ...] = ()) -> Iterator[Tuple[Tuple[str, ...], Any]]:
    for key, value in data.items():
        path = prefix + (str(key),)
        if isinstance(value, Mapping):
            yield from _override_leaves(value, path)
        else:
            yield path, value


def runtime_overrides() -> Dict[str, Any]:
    """Collect configuration supplied through the environment."""
    overrides: Dict[str, Any] = {}
    for name, raw in os.environ.items():
        prefix = next((item for item in _PATH_ENV_PREFIXES if name.startswith(item)), None)
        if prefix is None:
            continue
        keys = [part.strip().lower() for part in name[len(prefix):].split("__") if part.strip()]
        if not keys:
            continue
        try:
            value: Any = yaml.safe_load(raw) if raw.strip() else ""
        except yaml.YAMLError:
            value = raw
        nested: Dict[str, Any] = {keys[-1]: value}
        for key in reversed(keys[:-1]):
            nested = {key: nested}
        overrides = _merge(overrides, nested)

    for name in _DOCUMENT_ENVS:
        raw = os.environ.get(name, "").strip()
        if not raw:
            continue
        try:
            document = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            logger.warning("Ignoring %s: %s", name, exc)
            continue
        if isinstance(document, Mapping):
            overrides = _merge(overrides, document)
    return overrides


@lru_cache(maxsize=4)
def _load_config(resolved_path: str) -> Dict[str, Any]:
    path = Path(resolved_path)
    if not path.exists():
        return copy.deepcopy(_DEFAULT_CONFIG)
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, Mapping):
        raise ValueError(f"{path} must contain a mapping at the top level")
    return _merge(_DEFAULT_CONFIG, data)


def get_config(*, include_runtime_overrides: bool = True) -> Dict[str, Any]:
    """Return a copy of the merged configuration.

    Raises ``yaml.YAMLError`` when the file cannot be parsed.
    """
    config = copy.deepcopy(_load_config(str(config_path())))
    if include_runtime_overrides:
        config = _merge(config, runtime_overrides())
    return config


def _write_config(data: Mapping[str, Any]) -> None:
    path = config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(dict(data), handle, sort_keys=False)
    try:
        os.chmod(path, 0o600)
    except OSError:
        logger.debug("Could not restrict permissions on %s", path)
    _load_config.cache_clear()


def save_config(config: Mapping[str, Any]) -> None:
    """Persist ``config``, leaving out values that only came from the environment."""
    to_write = copy.deepcopy(dict(config))
    for path, value in _override_leaves(runtime_overrides()):
        parent: Any = to_write
        for key in path[:-1]:
            parent = parent.get(key) if isinstance(parent, dict) else None
        if isinstance(parent, dict) and parent.get(path[-1]) == value:
            del parent[path[-1]]
    _write_config(to_write)


def _keyring_credential(provider: str) -> str:
    try:
        return keyring.get_password(KEYRING_SERVICE, f"{provider}_api_key") or ""
    except Exception as exc:  # keyring backends raise their own error types
        logger.debug("Keyring lookup for %s failed: %s", provider, exc)
        return ""


def store_credential(provider: str, secret: str) -> None:
    """Save a provider credential in the OS keyring."""
    if provider not in PROVIDER_NAMES:
        raise ValueError(f"Unknown AI provider: {provider}")
    keyring.set_password(KEYRING_SERVICE, f"{provider}_api_key", secret)


def settings_from_config(config: Mapping[str, Any], *, use_keyring: bool = True) -> Settings:
    provider = str(config.get("provider") or "openai").strip().lower()
    providers = config.get("providers") or {}
    credentials: Dict[str, str] = {}
    for name, field_name in CREDENTIAL_FIELDS.items():
        section = providers.get(name) if isinstance(providers, Mapping) else None
        value = ""
        if isinstance(section, Mapping):
            value = str(section.get(field_name) or "").strip()
        if not value and use_keyring and field_name == "api_key":
            value = _keyring_credential(name).strip()
        credentials[name] = value
    return Settings(provider=provider, credentials=credentials)


def load_settings(*, use_keyring: bool = True) -> Settings:
    """Load the configuration and resolve it into an immutable ``Settings`` value."""
    return settings_from_config(get_config(), use_keyring=use_keyring)


def set_provider(provider: str) -> Dict[str, Any]:
    """Persist the active provider selection."""
    provider = provider.strip().lower()
    if provider not in PROVIDER_NAMES:
        raise KeyError(f"Unknown AI provider: {provider}")
    config = get_config(include_runtime_overrides=False)
    config["provider"] = provider
    _write_config(config)
    return config


__all__ = [
    "CREDENTIAL_FIELDS",
    "PROVIDER_NAMES",
    "Settings",
    "config_path",
    "get_config",
    "load_settings",
    "runtime_overrides",
    "save_config",
    "set_provider",
    "settings_from_config",
    "store_credential",
]
