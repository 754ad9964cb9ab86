"""
Config Loader — Load mirror-sync.yaml and apply environment overrides.

Values come from three layers, later layers winning:
1. Defaults in config/models.py
2. The YAML file (--config, MIRROR_SYNC_CONFIG, or ./mirror-sync.yaml)
3. MIRROR_SYNC_* environment variables

Registry credentials never live in the file. Each registry names the env
var that holds its token (``password_env``); extra registries can be given
entirely through the environment:

    BUILD_REGISTRY_1_URL=ghcr.io
    BUILD_REGISTRY_1_IMAGE=owner/app
    BUILD_REGISTRY_1_USERNAME=owner
    BUILD_REGISTRY_1_PASSWORD=ghp_xxxxx

## Usage

    from mirrorsync.config.loader import load_config

    config = load_config(Path("mirror-sync.yaml"))
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import SecretStr
from pydantic import ValidationError as PydanticValidationError

from ..validation import ConfigurationError
from .models import RegistryConfig, SyncConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "mirror-sync.yaml"

# env var -> (config key, is_list)
ENV_OVERRIDES = {
    "MIRROR_SYNC_UPSTREAM_URL": ("upstream_url", False),
    "MIRROR_SYNC_DEFAULT_BRANCH": ("default_branch", False),
    "MIRROR_SYNC_TAG_PATTERNS": ("tag_patterns", True),
    "MIRROR_SYNC_EXCLUDED_REFS": ("excluded_refs", True),
    "MIRROR_SYNC_RESERVED_PATHS": ("reserved_paths", True),
    "MIRROR_SYNC_WORKSPACE": ("workspace_dir", False),
    "MIRROR_SYNC_UPSTREAM_DIR": ("upstream_dir", False),
    "MIRROR_SYNC_MIRROR_URL": ("mirror_url", False),
}

MAX_ENV_REGISTRIES = 10


def load_yaml(path: Path) -> Dict[str, Any]:
    """Load a YAML file and return its contents (empty dict for empty files)."""
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path}: top level must be a mapping")
    return data


def _split_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def apply_env_overrides(data: Dict[str, Any], env: Mapping[str, str]) -> Dict[str, Any]:
    """Return a copy of ``data`` with MIRROR_SYNC_* overrides applied."""
    merged = dict(data)
    for var, (key, is_list) in ENV_OVERRIDES.items():
        value = env.get(var)
        if value is None or value == "":
            continue
        merged[key] = _split_list(value) if is_list else value
        logger.debug(f"Config override from {var}")
    return merged


def registries_from_env(env: Mapping[str, str]) -> List[RegistryConfig]:
    """Scan BUILD_REGISTRY_<N>_* variables (N = 1..10)."""
    registries: List[RegistryConfig] = []

    for i in range(1, MAX_ENV_REGISTRIES + 1):
        prefix = f"BUILD_REGISTRY_{i}_"
        image = env.get(f"{prefix}IMAGE")
        url = env.get(f"{prefix}URL")

        if not image and not url:
            continue  # No config for this slot

        if not image:
            logger.warning(f"BUILD_REGISTRY_{i}: Missing {prefix}IMAGE, skipping")
            continue

        password = env.get(f"{prefix}PASSWORD")
        registry = RegistryConfig(
            url=url or "docker.io",
            image=image,
            username=env.get(f"{prefix}USERNAME"),
            password=SecretStr(password) if password else None,
        )
        registries.append(registry)
        logger.info(f"Loaded registry from environment: {registry.repository}")

    return registries


def resolve_credentials(config: SyncConfig, env: Mapping[str, str]) -> None:
    """Fill registry passwords from the env vars they name."""
    for registry in config.build.registries:
        if registry.password is not None or not registry.password_env:
            continue
        value = env.get(registry.password_env)
        if value:
            registry.password = SecretStr(value)
        else:
            logger.warning(
                f"{registry.repository}: {registry.password_env} is not set, "
                f"pushes to this registry will not be authenticated"
            )


def find_config_file(explicit: Optional[Path], env: Mapping[str, str]) -> Optional[Path]:
    """Pick the config file: explicit path, MIRROR_SYNC_CONFIG, or the default."""
    if explicit is not None:
        if not explicit.exists():
            raise ConfigurationError(f"Config file not found: {explicit}")
        return explicit

    from_env = env.get("MIRROR_SYNC_CONFIG")
    if from_env:
        path = Path(from_env)
        if not path.exists():
            raise ConfigurationError(f"MIRROR_SYNC_CONFIG points to a missing file: {path}")
        return path

    default = Path(DEFAULT_CONFIG_FILE)
    return default if default.exists() else None


def load_config(
    path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> SyncConfig:
    """
    Load the sync configuration.

    Args:
        path: Explicit config file (optional)
        env: Environment mapping (defaults to os.environ)

    Returns:
        Validated SyncConfig

    Raises:
        ConfigurationError: If the file is unreadable or values are invalid
    """
    env = os.environ if env is None else env

    config_file = find_config_file(path, env)
    data: Dict[str, Any] = {}
    if config_file is not None:
        try:
            data = load_yaml(config_file)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_file}: {e}") from e
        logger.debug(f"Loaded config file {config_file}")

    data = apply_env_overrides(data, env)

    try:
        config = SyncConfig(**data)
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e

    config.build.registries.extend(registries_from_env(env))
    resolve_credentials(config, env)

    return config


def resolve_paths(config: SyncConfig, base: Optional[Path] = None) -> Dict[str, Path]:
    """
    Resolve the workspace and upstream directories.

    The upstream clone defaults to a sibling of the workspace
    (``<workspace>_upstream``) so reconciliation never sees it.
    """
    base = base or Path.cwd()
    workspace = (base / config.workspace_dir).resolve()
    if config.upstream_dir:
        upstream = (base / config.upstream_dir).resolve()
    else:
        upstream = workspace.parent / f"{workspace.name}_upstream"
    return {"workspace": workspace, "upstream": upstream}
