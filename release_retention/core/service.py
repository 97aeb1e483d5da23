"""
Release retention service.

Fetches records from a data provider and runs the retention engine on them.
"""

import logging
from typing import Callable, List, Optional, TypeVar

import httpx

from .errors import DataFetchError
from .retention import DeploymentAggregate, check_keep_count, compute_retention
from release_retention.storage.models import RetentionResult
from release_retention.storage.providers import DataProvider

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Failures a provider may raise while fetching or decoding records
FETCH_ERRORS = (OSError, ValueError, httpx.HTTPError)


class RetentionService:
    """Applies the retention rule to data from a single provider.

    Each call fetches every collection again and recomputes from scratch;
    nothing is cached between calls.
    """

    def __init__(self, provider: DataProvider):
        self.provider = provider

    def get_releases_to_keep(
        self,
        keep_count: int,
        aggregate: DeploymentAggregate = DeploymentAggregate.EARLIEST
    ) -> List[RetentionResult]:
        """For each project/environment, keep the keep_count most recently deployed releases.

        Args:
            keep_count: How many releases to keep per project/environment
            aggregate: Which deployment time to rank a release by

        Returns:
            The releases to keep

        Raises:
            InvalidKeepCountError: If keep_count is not positive (checked before fetching)
            DataFetchError: If the provider fails to deliver any collection
            NoDataError: If any collection is empty
        """
        check_keep_count(keep_count)

        projects = _fetch("projects", self.provider.get_projects)
        environments = _fetch("environments", self.provider.get_environments)
        releases = _fetch("releases", self.provider.get_releases)
        deployments = _fetch("deployments", self.provider.get_deployments)

        return compute_retention(
            projects, environments, releases, deployments, keep_count, aggregate
        )


def _fetch(collection: str, fetch: Callable[[], List[Optional[T]]]) -> List[Optional[T]]:
    try:
        return fetch()
    except FETCH_ERRORS as e:
        logger.error("An error occurred while fetching %s for release retention: %s", collection, e)
        raise DataFetchError(collection, str(e)) from e
