"""
Configuration management and loading.

Handles retention settings, data source selection and environment variables.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from release_retention.core.retention import DeploymentAggregate

API_KEY_ENV_VAR = "RELEASE_RETENTION_API_KEY"
DEFAULT_SPACE_ID = "spaces-1"
DEFAULT_TIMEOUT_SECONDS = 30


class ConfigError(ValueError):
    """Raised when retention configuration is missing or invalid."""


@dataclass(frozen=True)
class DataFileConfig:
    """Locations of the local JSON data files."""
    projects: str
    environments: str
    releases: str
    deployments: str

    def paths(self) -> Dict[str, str]:
        """Return the data file paths keyed by collection name."""
        return {
            "projects": self.projects,
            "environments": self.environments,
            "releases": self.releases,
            "deployments": self.deployments,
        }

    def missing_files(self) -> Dict[str, str]:
        """Return the configured paths that do not exist on disk."""
        return {
            name: path for name, path in self.paths().items()
            if not Path(path).is_file()
        }


@dataclass(frozen=True)
class DevOpsDeployConfig:
    """Connection settings for the DevOps Deploy API."""
    api_base_url: str
    api_key_header: Optional[str] = None
    api_key: Optional[str] = None
    space_id: str = DEFAULT_SPACE_ID
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS

    def __post_init__(self):
        """Validate connection values."""
        if not self.api_base_url:
            raise ConfigError("api_base_url is required when use_local_data is false")
        if not self.space_id:
            raise ConfigError("space_id cannot be empty")
        if self.timeout_seconds <= 0:
            raise ConfigError("timeout_seconds must be > 0")


@dataclass(frozen=True)
class RetentionConfig:
    """Complete retention configuration."""
    keep_count: int
    use_local_data: bool
    aggregate: DeploymentAggregate = DeploymentAggregate.EARLIEST
    data_files: Optional[DataFileConfig] = None
    devops_deploy: Optional[DevOpsDeployConfig] = None

    def __post_init__(self):
        """Validate the data source matches use_local_data."""
        if self.keep_count <= 0:
            raise ConfigError("keep_count must be > 0")
        if self.use_local_data and self.data_files is None:
            raise ConfigError("'data_files' is required when use_local_data is true")
        if not self.use_local_data and self.devops_deploy is None:
            raise ConfigError("'devops_deploy' is required when use_local_data is false")

    @property
    def data_source_name(self) -> str:
        return "Local Files" if self.use_local_data else "DevOps Deploy API"


def load_retention_config(path: str) -> RetentionConfig:
    """Load and validate retention configuration from a YAML file.

    Strict validation ensures no silent misconfiguration, such as a typo
    in a key that would otherwise fall back to a default.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated RetentionConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ConfigError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Retention config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ConfigError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ConfigError("Configuration must be a dictionary")

    allowed_top_keys = {'keep_count', 'use_local_data', 'aggregate', 'data_files', 'devops_deploy'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ConfigError(f"Unknown configuration keys: {unknown_keys}")

    if 'keep_count' not in raw_config:
        raise ConfigError("Missing required 'keep_count'")
    keep_count = raw_config['keep_count']
    if isinstance(keep_count, bool) or not isinstance(keep_count, int) or keep_count <= 0:
        raise ConfigError("'keep_count' must be a positive integer")

    if 'use_local_data' not in raw_config:
        raise ConfigError("Missing required 'use_local_data'")
    use_local_data = raw_config['use_local_data']
    if not isinstance(use_local_data, bool):
        raise ConfigError("'use_local_data' must be true or false")

    aggregate = parse_aggregate(raw_config.get('aggregate', DeploymentAggregate.EARLIEST.value))

    data_files = None
    if raw_config.get('data_files') is not None:
        data_files = _parse_data_files(raw_config['data_files'], config_path.parent)
    elif use_local_data:
        raise ConfigError("Missing required 'data_files' section when use_local_data is true")

    devops_deploy = None
    if raw_config.get('devops_deploy') is not None:
        devops_deploy = _parse_devops_deploy(raw_config['devops_deploy'])
    elif not use_local_data:
        raise ConfigError("Missing required 'devops_deploy' section when use_local_data is false")

    return RetentionConfig(
        keep_count=keep_count,
        use_local_data=use_local_data,
        aggregate=aggregate,
        data_files=data_files,
        devops_deploy=devops_deploy
    )


def parse_aggregate(value: Any) -> DeploymentAggregate:
    """Parse the deployment aggregate setting.

    Raises:
        ConfigError: If the value is not a known aggregate
    """
    if isinstance(value, DeploymentAggregate):
        return value
    valid_values = [aggregate.value for aggregate in DeploymentAggregate]
    if not isinstance(value, str):
        raise ConfigError(f"'aggregate' must be one of: {valid_values}")
    try:
        return DeploymentAggregate(value.lower())
    except ValueError:
        raise ConfigError(f"'aggregate' must be one of: {valid_values}")


def _parse_data_files(data: Any, base_dir: Path) -> DataFileConfig:
    """Parse data file locations, resolving relative paths against base_dir.

    Raises:
        ConfigError: If a location is missing or not a string
    """
    if not isinstance(data, dict):
        raise ConfigError("'data_files' must be a dictionary")

    allowed_keys = {'projects', 'environments', 'releases', 'deployments'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ConfigError(f"Unknown keys in data_files: {unknown_keys}")

    resolved = {}
    for key in sorted(allowed_keys):
        if key not in data:
            raise ConfigError(f"Missing required '{key}' in data_files")
        value = data[key]
        if not isinstance(value, str) or not value.strip():
            raise ConfigError(f"'{key}' in data_files must be a non-empty string")
        file_path = Path(value).expanduser()
        if not file_path.is_absolute():
            file_path = base_dir / file_path
        resolved[key] = str(file_path.resolve())

    return DataFileConfig(**resolved)


def _parse_devops_deploy(data: Any) -> DevOpsDeployConfig:
    """Parse DevOps Deploy API settings.

    The API key falls back to the RELEASE_RETENTION_API_KEY environment
    variable so it does not have to live in the file.

    Raises:
        ConfigError: If settings are missing or invalid
    """
    if not isinstance(data, dict):
        raise ConfigError("'devops_deploy' must be a dictionary")

    allowed_keys = {'api_base_url', 'api_key_header', 'api_key', 'space_id', 'timeout_seconds'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ConfigError(f"Unknown keys in devops_deploy: {unknown_keys}")

    api_base_url = data.get('api_base_url')
    if not isinstance(api_base_url, str) or not api_base_url.strip():
        raise ConfigError("Missing required 'api_base_url' in devops_deploy")

    timeout = data.get('timeout_seconds', DEFAULT_TIMEOUT_SECONDS)
    if isinstance(timeout, bool) or not isinstance(timeout, int) or timeout <= 0:
        raise ConfigError("'timeout_seconds' in devops_deploy must be a positive integer")

    for key in ('api_key_header', 'api_key', 'space_id'):
        if data.get(key) is not None and not isinstance(data[key], str):
            raise ConfigError(f"'{key}' in devops_deploy must be a string")

    return DevOpsDeployConfig(
        api_base_url=api_base_url.strip(),
        api_key_header=data.get('api_key_header'),
        api_key=data.get('api_key') or os.environ.get(API_KEY_ENV_VAR),
        space_id=data.get('space_id') or DEFAULT_SPACE_ID,
        timeout_seconds=timeout
    )
