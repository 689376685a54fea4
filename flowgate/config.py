#!/usr/bin/env python3

import os
import json
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple

import logging
import sys

import yaml

from .exit_codes import ConfigError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s: %(message)s",
    handlers=[
        logging.StreamHandler(sys.stderr) # Default to stderr
    ]
)
logger = logging.getLogger("flowgate")


def get_config_path(explicit: Optional[str] = None) -> Path:
    """Get the path to the configuration file.

    Checks in order:
    1. Explicit path argument (``--config``)
    2. FLOWGATE_CONFIG environment variable
    3. ~/.flowgate/ directory
    """
    if explicit:
        return Path(explicit).expanduser()

    # Check for environment variable override
    if 'FLOWGATE_CONFIG' in os.environ:
        path = Path(os.environ['FLOWGATE_CONFIG']).expanduser()
        if path.exists():
            return path

    flowgate_dir = Path.home() / '.flowgate'
    for filename in ['config.json', 'config.toml', 'config.yaml', 'config.yml']:
        path = flowgate_dir / filename
        if path.exists():
            return path

    # If no file exists, return default path for saving
    return flowgate_dir / 'config.json'


def load_config(config_path: Optional[str] = None) -> dict:
    """Load configuration from file, defaults and environment."""
    path = get_config_path(config_path)

    # Start with default config
    config = get_default_config()

    if path.exists():
        try:
            if path.suffix.lower() in ['.toml']:
                with open(path, 'rb') as f:
                    file_config = tomllib.load(f)
            elif path.suffix.lower() in ['.yaml', '.yml']:
                with open(path, 'r') as f:
                    file_config = yaml.safe_load(f) or {}
            else:
                # Default to JSON format
                with open(path, 'r') as f:
                    file_config = json.load(f)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigError(f"Error loading config from {path}: {e}") from e

        if not isinstance(file_config, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")

        # Merge file config with defaults
        config = merge_configs(config, file_config)
        logger.debug(f"Loaded config from {path}")
    elif config_path:
        raise ConfigError(f"Config file not found: {path}")

    # Apply environment variable overrides
    return apply_env_overrides(config)


def get_default_config() -> dict:
    """Get default configuration."""
    return {
        "branches": {
            "main": "main",
            "develop": "develop",
            "prefixes": {
                "feature": ["feature/"],
                "release": ["release/"],
                "maintenance": ["hotfix/", "maintenance/"],
            },
        },
        "flow": {
            "versiontag_prefix": "",
            "tag_from_branch_name": True,
            "keep_branch": False,
            "allow_concurrent_releases": False,
            "fetch_before_merge": False,
            "push_after_finish": False,
            "remote": "origin",
        },
        "backend": {
            "timeout_seconds": 30,
            "git_user_name": "",
            "git_user_email": "",
        },
        "logging": {
            "level": "INFO",
            "format": "%(levelname)s: %(message)s",
        },
    }


def merge_configs(base_config, override_config):
    """
    Recursively merge two configuration dictionaries.

    Args:
        base_config (dict): Base configuration
        override_config (dict): Configuration to merge/override with

    Returns:
        dict: Merged configuration
    """
    merged = base_config.copy()

    for key, value in override_config.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            # Recursively merge nested dictionaries
            merged[key] = merge_configs(merged[key], value)
        else:
            # Override or add new key
            merged[key] = value

    return merged


def apply_env_overrides(config):
    """
    Apply environment variable overrides to configuration.
    Environment variables follow the pattern: FLOWGATE_SECTION_KEY
    For example: FLOWGATE_FLOW_KEEP_BRANCH=true
    """
    env_prefix = "FLOWGATE_"

    for env_key, value in os.environ.items():
        if not env_key.startswith(env_prefix) or env_key == "FLOWGATE_CONFIG":
            continue

        key_parts = env_key[len(env_prefix):].lower().split('_')

        # Convert value
        if value.lower() in ('true', 'yes', 'on'):
            typed_value = True
        elif value.lower() in ('false', 'no', 'off'):
            typed_value = False
        elif value.isdigit():
            typed_value = int(value)
        else:
            typed_value = value

        current_level = config
        i = 0
        while i < len(key_parts):
            # Find the longest key in current_level that is a prefix of the remaining key_parts
            best_match_len = 0
            matched_key = None

            for config_key in current_level.keys():
                config_key_parts_from_key = config_key.split('_')
                if key_parts[i : i + len(config_key_parts_from_key)] == config_key_parts_from_key:
                    if len(config_key_parts_from_key) > best_match_len:
                        best_match_len = len(config_key_parts_from_key)
                        matched_key = config_key

            if not matched_key:
                break

            # If we are at the end of the env var, we have found the key to set
            if i + best_match_len == len(key_parts):
                current_level[matched_key] = typed_value
                break

            # Otherwise, we descend into the dictionary
            if not isinstance(current_level[matched_key], dict):
                break
            current_level = current_level[matched_key]
            i += best_match_len

    return config


def configure_logging(config: dict, verbose: bool = False) -> None:
    """Apply the configured log level and format to the flowgate logger."""
    log_config = config.get("logging", {})
    level_name = "DEBUG" if verbose else str(log_config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        raise ConfigError(f"Unknown log level: {level_name}")

    logger.setLevel(level)
    fmt = log_config.get("format")
    if fmt:
        for handler in logging.getLogger().handlers:
            handler.setFormatter(logging.Formatter(fmt))


def _as_tuple(value) -> Tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    return tuple(value or ())


@dataclass(frozen=True)
class FlowSettings:
    """Typed view of the configuration consumed by the flow services."""
    main_branch: str = "main"
    develop_branch: str = "develop"
    prefixes: Dict[str, Tuple[str, ...]] = field(default_factory=lambda: {
        "feature": ("feature/",),
        "release": ("release/",),
        "maintenance": ("hotfix/", "maintenance/"),
    })
    versiontag_prefix: str = ""
    tag_from_branch_name: bool = True
    keep_branch: bool = False
    allow_concurrent_releases: bool = False
    fetch_before_merge: bool = False
    push_after_finish: bool = False
    remote: str = "origin"
    timeout_seconds: int = 30
    git_user_name: str = ""
    git_user_email: str = ""

    @classmethod
    def from_config(cls, config: Optional[dict] = None) -> 'FlowSettings':
        """Build settings from a config dict (defaults filled in)."""
        config = merge_configs(get_default_config(), config or {})
        branches = config["branches"]
        flow = config["flow"]
        backend = config["backend"]

        if branches["main"] == branches["develop"]:
            raise ConfigError("Main and develop branch names must differ")

        return cls(
            main_branch=branches["main"],
            develop_branch=branches["develop"],
            prefixes={role: _as_tuple(p) for role, p in branches.get("prefixes", {}).items()},
            versiontag_prefix=flow.get("versiontag_prefix") or "",
            tag_from_branch_name=bool(flow.get("tag_from_branch_name", True)),
            keep_branch=bool(flow.get("keep_branch", False)),
            allow_concurrent_releases=bool(flow.get("allow_concurrent_releases", False)),
            fetch_before_merge=bool(flow.get("fetch_before_merge", False)),
            push_after_finish=bool(flow.get("push_after_finish", False)),
            remote=flow.get("remote") or "origin",
            timeout_seconds=int(backend.get("timeout_seconds", 30)),
            git_user_name=backend.get("git_user_name") or "",
            git_user_email=backend.get("git_user_email") or "",
        )
