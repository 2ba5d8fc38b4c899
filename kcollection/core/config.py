"""
Configuration system for kcollection.

Loads YAML configuration files and provides typed access to settings.
Uses Pydantic v2 for validation and immutable config objects.

Configuration Hierarchy (highest priority first):
1. Explicit overrides (passed to load_config)
2. Environment variables (KCOLLECTION_*)
3. YAML configuration file
4. Pydantic field defaults
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field


class AuditConfig(BaseModel):
    """Configuration for the JSONL audit trail."""

    model_config = ConfigDict(frozen=True)

    log_path: Optional[Path] = Field(default=None, description="Audit log file; None disables auditing")
    retention_days: int = Field(default=30, ge=0, description="Days to retain entries (0 = forever)")


class CollectionConfig(BaseModel):
    """Defaults applied to every collection created against a store."""

    model_config = ConfigDict(frozen=True)

    instance_all_records: bool = Field(
        default=False,
        description="Materialize records as soon as they are added instead of lazily",
    )
    preserve_records: bool = Field(
        default=False,
        description="Detach instead of destroying owned records when a collection is destroyed",
    )
    report_instance_adds: bool = Field(
        default=False,
        description="Report indices of model instances (not only raw data) in add events",
    )
    default_source: str = Field(default="file", description="Source used by fetch() when none is given")
    default_strategy: Literal["add", "merge"] = Field(
        default="add",
        description="How fetched data is applied to the collection",
    )
    audit: AuditConfig = Field(default_factory=AuditConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> "CollectionConfig":
        """Load configuration from YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data, base_path=path.parent)

    @classmethod
    def from_dict(cls, data: dict, base_path: Optional[Path] = None) -> "CollectionConfig":
        """Create from dictionary, resolving the audit log path against ``base_path``."""
        base_path = base_path or Path(".")
        data = dict(data)
        audit = dict(data.get("audit") or {})
        if audit.get("log_path"):
            log_path = Path(audit["log_path"])
            audit["log_path"] = log_path if log_path.is_absolute() else base_path / log_path
        data["audit"] = audit
        return cls.model_validate(data)


def load_config(
    path: Optional[Path] = None,
    env_prefix: str = "KCOLLECTION_",
    overrides: Optional[Dict[str, Any]] = None,
    use_env: bool = True,
) -> CollectionConfig:
    """Load configuration with hierarchy: defaults → YAML → env vars → overrides.

    Args:
        path: Optional explicit path to YAML config file
        env_prefix: Prefix for environment variables (default: "KCOLLECTION_")
        overrides: Optional dictionary of overrides (e.g. from CLI options)
        use_env: Whether to load environment variables (default: True)

    Returns:
        Merged CollectionConfig

    Examples:
        # Basic usage
        config = load_config()

        # Environment variable: KCOLLECTION_DEFAULT_STRATEGY=merge
        config = load_config()  # default_strategy will be "merge"

        # Explicit overrides win over everything else
        config = load_config(overrides={"audit": {"retention_days": 7}})
    """
    yaml_path = _find_config_file(path)
    base_path = yaml_path.parent if yaml_path else Path(".")

    if yaml_path:
        with open(yaml_path) as f:
            config_dict = yaml.safe_load(f) or {}
    else:
        config_dict = {}

    if use_env:
        _deep_merge(config_dict, _extract_env_config(env_prefix))

    if overrides:
        _deep_merge(config_dict, overrides)

    if not config_dict:
        return CollectionConfig()

    return CollectionConfig.from_dict(config_dict, base_path=base_path)


def _find_config_file(path: Optional[Path] = None) -> Optional[Path]:
    """Find configuration file.

    Searches in this order:
    1. Provided path
    2. ./kcollection.yaml

    Returns:
        Path to config file or None if not found
    """
    if path and Path(path).exists():
        return Path(path)

    config_path = Path("kcollection.yaml")
    if config_path.exists():
        return config_path

    return None


def _extract_env_config(prefix: str = "KCOLLECTION_") -> Dict[str, Any]:
    """Extract configuration from environment variables.

    Environment variables are mapped to config paths:
    - KCOLLECTION_DEFAULT_STRATEGY=merge → {"default_strategy": "merge"}
    - KCOLLECTION_AUDIT_LOG_PATH=audit.jsonl → {"audit": {"log_path": "audit.jsonl"}}

    Args:
        prefix: Environment variable prefix (default: "KCOLLECTION_")

    Returns:
        Dictionary of extracted configuration
    """
    config: Dict[str, Any] = {}
    sections = {"audit"}

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        config_key = key[len(prefix):].lower()
        if not config_key:
            continue

        converted_value = _convert_env_value(value)

        parts = config_key.split("_")
        if parts[0] in sections and len(parts) > 1:
            config.setdefault(parts[0], {})["_".join(parts[1:])] = converted_value
        else:
            config[config_key] = converted_value

    return config


def _convert_env_value(value: str) -> Union[str, int, float, bool, List[str]]:
    """Convert environment variable string to appropriate type.

    Args:
        value: Raw string value from environment

    Returns:
        Converted value (int, float, bool, list, or string)
    """
    if not value:
        return value

    if value.lower() in ("true", "yes", "on"):
        return True
    if value.lower() in ("false", "no", "off"):
        return False

    if "," in value:
        return [v.strip() for v in value.split(",") if v.strip()]

    try:
        return int(value)
    except ValueError:
        pass

    try:
        return float(value)
    except ValueError:
        pass

    return value


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    """Deep merge override into base dictionary (mutates base).

    Recursively merges nested dictionaries. For non-dict values,
    override completely replaces base.
    """
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
