"""
Release retention selection.

Decides, for every project/environment combination, which releases to
keep under the rule "keep the N most recently deployed releases".

Selection mirrors the way releases are ranked for display:
1. Deployments are grouped by (project, environment)
2. Each release in a group gets an aggregate deployment time and a count
3. Releases are ranked by aggregate time, newest first, then by creation time
4. The top keep_count releases are kept, the rest are reported as dropped

The engine is advisory only and never deletes anything.
"""

import logging
from collections import defaultdict
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from .errors import InvalidKeepCountError
from .validation import validate_and_prepare
from release_retention.storage.models import (
    Deployment,
    Environment,
    Project,
    Release,
    ReleaseDeploymentStat,
    RetentionResult,
    ValidationResult,
)

logger = logging.getLogger(__name__)


class DeploymentAggregate(Enum):
    """Which deployment time represents a release within a group.

    EARLIEST reproduces the established ranking behaviour: the first time a
    release reached the environment. LATEST uses its most recent deployment.
    """
    EARLIEST = "earliest"
    LATEST = "latest"


def check_keep_count(keep_count: int) -> None:
    """Reject anything that is not a positive integer.

    Raises:
        InvalidKeepCountError: If keep_count <= 0 or not an int
    """
    if isinstance(keep_count, bool) or not isinstance(keep_count, int) or keep_count <= 0:
        raise InvalidKeepCountError(keep_count)


def rank_releases(
    deployments: Sequence[Deployment],
    release_by_id: Dict[str, Release],
    aggregate: DeploymentAggregate = DeploymentAggregate.EARLIEST
) -> List[ReleaseDeploymentStat]:
    """Rank the releases deployed within one project/environment group.

    Args:
        deployments: Valid deployments belonging to a single group
        release_by_id: Lookup of valid releases
        aggregate: Which deployment time to rank a release by

    Returns:
        One stat per distinct release, best ranked first
    """
    by_release: Dict[str, List[Deployment]] = defaultdict(list)
    for deployment in deployments:
        by_release[deployment.release_id].append(deployment)

    pick = min if aggregate == DeploymentAggregate.EARLIEST else max
    stats = [
        ReleaseDeploymentStat(
            release_id=release_id,
            release=release_by_id[release_id],
            last_deployed=pick(d.deployed_at for d in release_deployments),
            deployment_count=len(release_deployments)
        )
        for release_id, release_deployments in by_release.items()
    ]

    return sorted(
        stats,
        key=lambda s: (s.last_deployed, s.release.created_at),
        reverse=True
    )


def select_releases_to_keep(
    validation: ValidationResult,
    keep_count: int,
    aggregate: DeploymentAggregate = DeploymentAggregate.EARLIEST
) -> List[RetentionResult]:
    """Select the releases to keep for every project/environment group.

    Within a group results follow rank order. Order across groups is not
    guaranteed; use sort_for_display when a stable order is needed.

    Args:
        validation: Lookups produced by validate_and_prepare
        keep_count: Maximum releases kept per group
        aggregate: Which deployment time to rank a release by

    Returns:
        List of RetentionResult for every kept release

    Raises:
        InvalidKeepCountError: If keep_count is not a positive integer
    """
    check_keep_count(keep_count)

    release_to_project = {
        release_id: release.project_id
        for release_id, release in validation.release_by_id.items()
    }

    groups: Dict[Tuple[str, str], List[Deployment]] = defaultdict(list)
    for deployment in validation.deployment_by_id.values():
        key = (release_to_project[deployment.release_id], deployment.environment_id)
        groups[key].append(deployment)

    results: List[RetentionResult] = []
    for (project_id, environment_id), group_deployments in groups.items():
        project = validation.project_by_id[project_id]
        environment = validation.environment_by_id[environment_id]
        project_name = _display_name(project, project_id)
        environment_name = _display_name(environment, environment_id)

        ranked = rank_releases(group_deployments, validation.release_by_id, aggregate)
        total = len(ranked)

        logger.info(
            "Processing retention for Project '%s' in Environment '%s': Found %d releases",
            project_name, environment_name, total
        )

        for rank, stat in enumerate(ranked, start=1):
            if rank <= keep_count:
                results.append(RetentionResult(
                    release_id=stat.release_id,
                    project_id=project_id,
                    project_name=project_name,
                    environment_id=environment_id,
                    environment_name=environment_name,
                    version=stat.release.version,
                    last_deployed_at=stat.last_deployed
                ))
                logger.info(
                    "Keeping Release %s (Version: %s) for Project '%s' in Environment '%s' - "
                    "Rank: %d/%d, Last deployed: %s, Deployment count: %d, "
                    "Reason: Within top %d most recently deployed releases",
                    stat.release_id, stat.release.version, project_name, environment_name,
                    rank, total, stat.last_deployed.isoformat(), stat.deployment_count,
                    keep_count
                )
            else:
                logger.info(
                    "Not keeping Release %s (Version: %s) for Project '%s' in Environment '%s' - "
                    "Rank: %d/%d, Last deployed: %s, Deployment count: %d, "
                    "Reason: Outside top %d most recently deployed releases",
                    stat.release_id, stat.release.version, project_name, environment_name,
                    rank, total, stat.last_deployed.isoformat(), stat.deployment_count,
                    keep_count
                )

        logger.info(
            "Completed retention processing for Project '%s' in Environment '%s': "
            "Kept %d of %d releases",
            project_name, environment_name, min(keep_count, total), total
        )

    logger.info(
        "Release retention processing completed. Found %d releases to keep across "
        "%d projects and %d environments.",
        len(results), len(validation.project_by_id), len(validation.environment_by_id)
    )

    return results


def compute_retention(
    projects: Sequence[Optional[Project]],
    environments: Sequence[Optional[Environment]],
    releases: Sequence[Optional[Release]],
    deployments: Sequence[Optional[Deployment]],
    keep_count: int,
    aggregate: DeploymentAggregate = DeploymentAggregate.EARLIEST
) -> List[RetentionResult]:
    """Compute which releases to keep from raw, possibly dirty records.

    keep_count is checked before any record is looked at, so an invalid
    argument never produces partial output.

    Raises:
        InvalidKeepCountError: If keep_count is not a positive integer
        NoDataError: If any raw collection is empty
    """
    check_keep_count(keep_count)
    validation = validate_and_prepare(projects, environments, releases, deployments)
    return select_releases_to_keep(validation, keep_count, aggregate)


def sort_for_display(results: Sequence[RetentionResult]) -> List[RetentionResult]:
    """Order results by project then environment, keeping rank order within a group."""
    return sorted(results, key=lambda r: (r.project_id, r.environment_id))


def _display_name(entity, fallback: str) -> str:
    name = getattr(entity, "name", None)
    return name if name else fallback
