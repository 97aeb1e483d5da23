"""
Data providers for deployment records.

Supplies projects, environments, releases and deployments either from
local JSON files or from a DevOps Deploy HTTP API. Providers only fetch
and decode; all validation happens in the retention engine.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, List, Optional, TypeVar

import httpx

from release_retention.config.loader import (
    ConfigError,
    DataFileConfig,
    DevOpsDeployConfig,
    RetentionConfig,
)
from .models import Deployment, Environment, Project, Release

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DataProvider(ABC):
    """Source of the four raw record collections."""

    @abstractmethod
    def get_projects(self) -> List[Optional[Project]]:
        """Fetch all projects."""

    @abstractmethod
    def get_environments(self) -> List[Optional[Environment]]:
        """Fetch all environments."""

    @abstractmethod
    def get_releases(self) -> List[Optional[Release]]:
        """Fetch all releases."""

    @abstractmethod
    def get_deployments(self) -> List[Optional[Deployment]]:
        """Fetch all deployments."""

    def close(self) -> None:
        """Release any resources held by the provider."""


class JsonFileDataProvider(DataProvider):
    """Reads records from four local JSON files.

    Each file must contain a JSON array of objects. Missing files raise
    FileNotFoundError and malformed content raises ValueError.
    """

    def __init__(self, data_files: DataFileConfig):
        self.data_files = data_files

    def get_projects(self) -> List[Optional[Project]]:
        return self._read(self.data_files.projects, Project.from_dict)

    def get_environments(self) -> List[Optional[Environment]]:
        return self._read(self.data_files.environments, Environment.from_dict)

    def get_releases(self) -> List[Optional[Release]]:
        return self._read(self.data_files.releases, Release.from_dict)

    def get_deployments(self) -> List[Optional[Deployment]]:
        return self._read(self.data_files.deployments, Deployment.from_dict)

    def _read(self, path: str, factory: Callable[[Any], T]) -> List[Optional[T]]:
        file_path = Path(path)
        logger.debug("Reading records from %s", file_path)
        with open(file_path, "r", encoding="utf-8") as f:
            payload = json.load(f)
        return decode_records(payload, factory, str(file_path))


class DevOpsDeployClient(DataProvider):
    """Fetches records from the DevOps Deploy API.

    Every collection is read with ``GET api/{space_id}/{collection}``
    relative to the configured base URL. Failures are logged and re-raised
    unchanged.
    """

    def __init__(
        self,
        config: DevOpsDeployConfig,
        transport: Optional[httpx.BaseTransport] = None
    ):
        """Initialize the API client.

        Args:
            config: Connection settings for the API
            transport: Optional httpx transport, used to stub the API in tests
        """
        headers = {"Accept": "application/json"}
        if config.api_key_header and config.api_key:
            headers[config.api_key_header] = config.api_key

        self.config = config
        self.client = httpx.Client(
            base_url=config.api_base_url,
            headers=headers,
            timeout=config.timeout_seconds,
            transport=transport
        )

    def get_projects(self) -> List[Optional[Project]]:
        return self._get("projects", Project.from_dict)

    def get_environments(self) -> List[Optional[Environment]]:
        return self._get("environments", Environment.from_dict)

    def get_releases(self) -> List[Optional[Release]]:
        return self._get("releases", Release.from_dict)

    def get_deployments(self) -> List[Optional[Deployment]]:
        return self._get("deployments", Deployment.from_dict)

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "DevOpsDeployClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _get(self, collection: str, factory: Callable[[Any], T]) -> List[Optional[T]]:
        url = f"api/{self.config.space_id}/{collection}"
        logger.info("Fetching %s from DevOps Deploy API", collection)
        try:
            response = self.client.get(url)
            response.raise_for_status()
            return decode_records(response.json(), factory, url)
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Failed to fetch %s from DevOps Deploy API: %s", collection, e)
            raise


def decode_records(
    payload: Any,
    factory: Callable[[Any], T],
    source: str
) -> List[Optional[T]]:
    """Convert a decoded JSON array into records.

    ``null`` entries are kept as None so the validator can report them.

    Raises:
        ValueError: If the payload is not an array of objects
    """
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise ValueError(f"Expected a JSON array in {source}")

    records: List[Optional[T]] = []
    for index, entry in enumerate(payload):
        if entry is None:
            records.append(None)
        elif isinstance(entry, dict):
            records.append(factory(entry))
        else:
            raise ValueError(f"Entry {index} in {source} must be an object")
    return records


def get_data_provider(
    config: RetentionConfig,
    transport: Optional[httpx.BaseTransport] = None
) -> DataProvider:
    """Create the data provider selected by configuration.

    Args:
        config: Validated retention configuration
        transport: Optional httpx transport passed to the API client

    Returns:
        JsonFileDataProvider when use_local_data is set, else DevOpsDeployClient

    Raises:
        ConfigError: If the selected provider is not fully configured
    """
    if config.use_local_data:
        if config.data_files is None:
            raise ConfigError("'data_files' is required when use_local_data is true")
        logger.info("Creating local file data provider")
        return JsonFileDataProvider(config.data_files)

    if config.devops_deploy is None:
        raise ConfigError("'devops_deploy' is required when use_local_data is false")

    try:
        base_url = httpx.URL(config.devops_deploy.api_base_url)
    except httpx.InvalidURL as e:
        raise ConfigError(f"Invalid API base URL: {config.devops_deploy.api_base_url}") from e
    if not base_url.scheme or not base_url.host:
        raise ConfigError(f"Invalid API base URL: {config.devops_deploy.api_base_url}")

    logger.info("Creating DevOps API data provider")
    return DevOpsDeployClient(config.devops_deploy, transport=transport)
