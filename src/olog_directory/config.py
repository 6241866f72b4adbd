"""Configuration loading for the log directory service.

Supports three tiers:
1. Simple config via .toml or .json - most deployments
2. Python config via .py - deployments that need hooks
3. Constructing DirectoryConfig directly - tests and embedding
"""

from __future__ import annotations

import importlib.util
import json
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

from .merge import MergePolicy

# Python 3.11+ has tomllib in stdlib; fall back to tomli for older versions
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib


@dataclass
class DirectoryConfig:
    """Configuration for one directory service instance."""

    service_name: str = "olog"
    project_root: Path = field(default_factory=Path.cwd)

    # Storage (relative to project_root)
    data_dir: str = "data"
    database: str = "olog.db"
    lock_timeout: float = 10.0

    # Same-name associations during an entry update
    merge_policy: MergePolicy = MergePolicy.SKIP

    # Authorization
    user: Optional[str] = None              # None = OS login name
    groups: Optional[list[str]] = None      # None = ask the OS on every check
    admin_groups: list[str] = field(default_factory=list)
    tag_owner_group: Optional[str] = None   # None = resolve tags through logbooks

    # Hooks (populated from Python config)
    hooks: dict[str, Callable] = field(default_factory=dict)

    def get_data_path(self) -> Path:
        return self.project_root / self.data_dir

    def get_database_path(self) -> Path:
        return self.get_data_path() / self.database


def load_toml_config(path: Path) -> dict[str, Any]:
    """Load configuration from TOML file."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def load_json_config(path: Path) -> dict[str, Any]:
    """Load configuration from JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_python_config(path: Path) -> tuple[dict[str, Any], dict[str, Callable]]:
    """Load configuration from Python file.

    Returns:
        Tuple of (config_dict, hooks_dict)

    Convention:
        - CONFIG dict or config dict for static configuration
        - Functions named hook_* become hooks (hook_post_write -> "post_write")
    """
    spec = importlib.util.spec_from_file_location("olog_config", path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot load Python config from {path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules["olog_config"] = module
    spec.loader.exec_module(module)

    config_dict = {}
    if hasattr(module, "CONFIG"):
        config_dict = module.CONFIG
    elif hasattr(module, "config"):
        config_dict = module.config

    hooks = {}
    for name in dir(module):
        if name.startswith("hook_"):
            hooks[name[5:]] = getattr(module, name)

    return config_dict, hooks


def parse_merge_policy(value: str) -> MergePolicy:
    """Parse a merge policy name, raising ValueError for unknown names."""
    try:
        return MergePolicy(value.lower())
    except ValueError:
        valid = [p.value for p in MergePolicy]
        raise ValueError(f"Unknown merge policy '{value}', expected one of {valid}")


def dict_to_config(data: dict[str, Any], project_root: Path) -> DirectoryConfig:
    """Convert dictionary to DirectoryConfig."""
    config = DirectoryConfig(project_root=project_root)

    if "service" in data:
        service = data["service"]
        if "name" in service:
            config.service_name = service["name"]

    if "storage" in data:
        storage = data["storage"]
        if "data_dir" in storage:
            config.data_dir = storage["data_dir"]
        if "database" in storage:
            config.database = storage["database"]
        if "lock_timeout" in storage:
            config.lock_timeout = float(storage["lock_timeout"])

    if "merge" in data:
        merge = data["merge"]
        if "same_name" in merge:
            config.merge_policy = parse_merge_policy(merge["same_name"])

    if "authorization" in data:
        auth = data["authorization"]
        if "user" in auth:
            config.user = auth["user"]
        if "groups" in auth:
            config.groups = list(auth["groups"])
        if "admin_groups" in auth:
            config.admin_groups = list(auth["admin_groups"])
        if "tag_owner_group" in auth:
            config.tag_owner_group = auth["tag_owner_group"] or None

    return config


def find_config_file(project_root: Path) -> Optional[Path]:
    """Find configuration file in project root.

    Search order:
    1. olog_config.py (most flexible)
    2. olog_config.toml
    3. olog_config.json
    4. .olog.toml
    5. .olog.json
    """
    candidates = [
        "olog_config.py",
        "olog_config.toml",
        "olog_config.json",
        ".olog.toml",
        ".olog.json",
    ]

    for name in candidates:
        path = project_root / name
        if path.exists():
            return path

    return None


def load_config(project_root: Path, config_path: Optional[Path] = None) -> DirectoryConfig:
    """Load service configuration.

    Args:
        project_root: Root directory holding the config and data directory
        config_path: Optional explicit path to config file

    Returns:
        DirectoryConfig instance
    """
    if config_path is None:
        config_path = find_config_file(project_root)

    if config_path is None:
        return DirectoryConfig(project_root=project_root)

    suffix = config_path.suffix.lower()

    if suffix == ".py":
        config_dict, hooks = load_python_config(config_path)
        config = dict_to_config(config_dict, project_root)
        config.hooks = hooks
        return config

    elif suffix == ".toml":
        return dict_to_config(load_toml_config(config_path), project_root)

    elif suffix == ".json":
        return dict_to_config(load_json_config(config_path), project_root)

    else:
        raise ValueError(f"Unsupported config file type: {suffix}")
