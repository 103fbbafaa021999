# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/komodoctl/config/loader.py

import logging
import os
import re
import yaml
from pathlib import Path
from .models import KomodoConfig

log = logging.getLogger("komodoctl")

_UNRESOLVED = re.compile(r"\$\{?[A-Za-z_][A-Za-z0-9_]*\}?")

# env var -> (section, key)
_ENV_OVERRIDES = {
    "KOMODO_ENDPOINT": ("control_plane", "endpoint"),
    "KOMODO_API_KEY": ("control_plane", "api_key"),
    "KOMODO_API_SECRET": ("control_plane", "api_secret"),
    "GITHUB_TOKEN": ("source_control", "token"),
    "GITHUB_ORG": ("source_control", "org"),
}


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Recursively merge *override* into *base* (mutates base).
    Only overwrites when the override value is non-empty.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            _deep_merge(base[key], value)
        else:
            if value not in (None, ""):
                base[key] = value
    return base


def _find_secrets_file(config_path: Path) -> Path | None:
    """
    Locate secrets.yaml using this priority:

    1. KOMODOCTL_SECRETS_FILE environment variable (explicit override)
    2. cloud-config/secrets.yaml relative to workspace root
    3. secrets.yaml in the same directory as the config
    """
    env = os.environ.get("KOMODOCTL_SECRETS_FILE")
    if env:
        p = Path(env)
        if p.is_file():
            return p
        log.warning("KOMODOCTL_SECRETS_FILE=%s does not exist, skipping", env)
        return None

    workspace = os.environ.get("WORKSPACE_ROOT")
    if workspace:
        p = Path(workspace) / "cloud-config" / "secrets.yaml"
        if p.is_file():
            return p

    p = config_path.parent / "secrets.yaml"
    if p.is_file():
        return p

    return None


def _load_yaml(path: Path) -> dict:
    """Load a YAML file, expanding ${ENV_VAR} references."""
    raw = path.read_text()
    expanded = os.path.expandvars(raw)
    return _drop_unresolved(yaml.safe_load(expanded) or {})


def _drop_unresolved(data: dict) -> dict:
    """An unset ${VAR} survives expandvars literally; treat it as missing."""
    for key, value in data.items():
        if isinstance(value, dict):
            _drop_unresolved(value)
        elif isinstance(value, str) and _UNRESOLVED.fullmatch(value.strip()):
            data[key] = None
    return data


def _apply_env_overrides(data: dict) -> None:
    for env_name, (section, key) in _ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            data.setdefault(section, {})
            if data[section] is None:
                data[section] = {}
            if not data[section].get(key):
                data[section][key] = value


def load_config(path: str | Path) -> KomodoConfig:
    """
    Load and validate a komodoctl YAML config.

    Secrets can come from three places (later ones only fill gaps):

    **secrets.yaml**
        Same structure as the main config, deep-merged before validation.
        Discovery order:
          1. ``KOMODOCTL_SECRETS_FILE`` env var -> explicit path
          2. ``$WORKSPACE_ROOT/cloud-config/secrets.yaml``
          3. ``secrets.yaml`` next to the config file

    **${ENV_VAR} placeholders**
        Resolved with ``os.path.expandvars`` at load time.

    **Well-known environment variables**
        ``KOMODO_ENDPOINT``, ``KOMODO_API_KEY``, ``KOMODO_API_SECRET``,
        ``GITHUB_TOKEN``, ``GITHUB_ORG`` fill keys that are still empty.
    """
    path = Path(path)
    data = _load_yaml(path)

    secrets_path = _find_secrets_file(path)
    if secrets_path:
        log.debug("Merging secrets from %s", secrets_path)
        secrets = _load_yaml(secrets_path)
        _deep_merge(data, secrets)
    else:
        log.debug("No secrets.yaml found, proceeding without secrets merge")

    _apply_env_overrides(data)
    return KomodoConfig.model_validate(data)
