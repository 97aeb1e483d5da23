"""
Validation and preparation of raw deployment records.

Turns the four raw record collections into deduplicated lookups whose
references are guaranteed to resolve. Record-level defects never raise:
the offending record is dropped, a warning is logged and a
ValidationIssue is collected instead.

Preparation Order:
1. Every raw collection must be non-empty (the only fatal check)
2. Projects and environments are deduplicated by id
3. Releases are checked against projects and SemVer, then deduplicated
4. Deployments are checked against valid releases and environments, then deduplicated
"""

import logging
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence, TypeVar

from .errors import NoDataError
from .semver import is_valid_version
from release_retention.storage.models import (
    Deployment,
    Environment,
    Project,
    Release,
    ValidationIssue,
    ValidationResult,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def require_non_empty(
    projects: Sequence[Optional[Project]],
    environments: Sequence[Optional[Environment]],
    releases: Sequence[Optional[Release]],
    deployments: Sequence[Optional[Deployment]]
) -> None:
    """Ensure every raw collection has at least one entry.

    Raises:
        NoDataError: Naming the first empty collection
    """
    required = (
        (projects, "projects"),
        (environments, "environments"),
        (releases, "releases"),
        (deployments, "deployments"),
    )
    for collection, name in required:
        if not collection:
            raise NoDataError(name)


def build_lookup(
    items: Iterable[Optional[T]],
    id_selector: Callable[[T], Optional[str]],
    item_type: str,
    issues: Optional[List[ValidationIssue]] = None
) -> Dict[str, T]:
    """Build an id lookup keeping the first occurrence of each id.

    Items that are None or whose id is blank are skipped silently.
    Every id seen more than once produces one duplicate warning.

    Args:
        items: Records in input order
        id_selector: Returns the id of a record
        item_type: Entity name used in diagnostics
        issues: Optional list collecting diagnostics

    Returns:
        Dictionary from id to the first record carrying that id
    """
    lookup: Dict[str, T] = {}
    counts: Dict[str, int] = {}
    for item in items:
        if item is None:
            continue
        item_id = id_selector(item)
        if item_id is None or not item_id.strip():
            continue
        counts[item_id] = counts.get(item_id, 0) + 1
        if item_id not in lookup:
            lookup[item_id] = item

    for item_id, count in counts.items():
        if count > 1:
            _report(
                issues, item_type, item_id,
                f"Found {count} duplicate {item_type} entries with Id '{item_id}'. "
                "Using the first occurrence."
            )

    return lookup


def is_valid_release(
    release: Release,
    project_by_id: Dict[str, Project],
    issues: Optional[List[ValidationIssue]] = None
) -> bool:
    """Check that a release belongs to a known project and has a valid version.

    A creation time at ``datetime.max`` is suspicious but not rejected.
    """
    if _is_blank(release.project_id):
        _report(
            issues, "Release", release.id,
            f"Skipping Release {release.id} due to missing or empty ProjectId."
        )
        return False

    if release.project_id not in project_by_id:
        _report(
            issues, "Release", release.id,
            f"Skipping Release {release.id} because its ProjectId "
            f"'{release.project_id}' does not exist."
        )
        return False

    if not is_valid_version(release.version):
        _report(
            issues, "Release", release.id,
            f"Skipping Release {release.id} due to invalid version format: "
            f"'{release.version if release.version is not None else 'null'}'"
        )
        return False

    if release.created_at == datetime.max:
        _report(
            issues, "Release", release.id,
            f"Release {release.id} has an invalid Created date (max value): "
            f"{release.created_at.isoformat()}"
        )

    return True


def is_valid_deployment(
    deployment: Deployment,
    release_by_id: Dict[str, Release],
    environment_by_id: Dict[str, Environment],
    issues: Optional[List[ValidationIssue]] = None
) -> bool:
    """Check that a deployment references a valid release and a known environment.

    Both references are always checked so that a deployment with two bad
    references reports both problems.
    """
    valid = True
    deployed_at = deployment.deployed_at.isoformat()

    if _is_blank(deployment.release_id):
        _report(
            issues, "Deployment", deployment.id,
            f"Skipping Deployment {deployment.id} (ReleaseId: null, EnvironmentId: "
            f"{deployment.environment_id}, DeployedAt: {deployed_at}) due to missing "
            "or empty ReleaseId."
        )
        valid = False
    elif deployment.release_id not in release_by_id:
        _report(
            issues, "Deployment", deployment.id,
            f"Skipping Deployment {deployment.id} (ReleaseId: {deployment.release_id}, "
            f"EnvironmentId: {deployment.environment_id}, DeployedAt: {deployed_at}) "
            "because its ReleaseId does not exist."
        )
        valid = False

    if _is_blank(deployment.environment_id):
        _report(
            issues, "Deployment", deployment.id,
            f"Skipping Deployment {deployment.id} (ReleaseId: {deployment.release_id}, "
            f"EnvironmentId: null, DeployedAt: {deployed_at}) due to missing or "
            "empty EnvironmentId."
        )
        valid = False
    elif deployment.environment_id not in environment_by_id:
        _report(
            issues, "Deployment", deployment.id,
            f"Skipping Deployment {deployment.id} (ReleaseId: {deployment.release_id}, "
            f"EnvironmentId: {deployment.environment_id}, DeployedAt: {deployed_at}) "
            "because its EnvironmentId does not exist."
        )
        valid = False

    if deployment.deployed_at == datetime.max:
        _report(
            issues, "Deployment", deployment.id,
            f"Deployment {deployment.id} (ReleaseId: {deployment.release_id}, "
            f"EnvironmentId: {deployment.environment_id}) has an invalid DeployedAt "
            f"date (max value): {deployed_at}"
        )

    return valid


def validate_and_prepare(
    projects: Sequence[Optional[Project]],
    environments: Sequence[Optional[Environment]],
    releases: Sequence[Optional[Release]],
    deployments: Sequence[Optional[Deployment]]
) -> ValidationResult:
    """Validate raw records and build the lookups used for retention.

    Args:
        projects: Raw project records
        environments: Raw environment records
        releases: Raw release records
        deployments: Raw deployment records

    Returns:
        ValidationResult containing only valid, deduplicated records

    Raises:
        NoDataError: If any raw collection is empty
    """
    require_non_empty(projects, environments, releases, deployments)

    issues: List[ValidationIssue] = []

    project_by_id = build_lookup(projects, lambda p: p.id, "Project", issues)
    environment_by_id = build_lookup(environments, lambda e: e.id, "Environment", issues)

    valid_releases = [
        r for r in releases
        if r is not None and not _is_blank(r.id)
        and is_valid_release(r, project_by_id, issues)
    ]
    release_by_id = build_lookup(valid_releases, lambda r: r.id, "Release", issues)

    valid_deployments = [
        d for d in deployments
        if d is not None and not _is_blank(d.id)
        and is_valid_deployment(d, release_by_id, environment_by_id, issues)
    ]
    deployment_by_id = build_lookup(valid_deployments, lambda d: d.id, "Deployment", issues)

    _report_incomplete_records(releases, deployments, issues)

    logger.info(
        "Validated %d/%d projects, %d/%d environments, %d/%d releases, %d/%d deployments",
        len(project_by_id), len(projects),
        len(environment_by_id), len(environments),
        len(release_by_id), len(releases),
        len(deployment_by_id), len(deployments)
    )

    return ValidationResult(
        project_by_id=project_by_id,
        environment_by_id=environment_by_id,
        release_by_id=release_by_id,
        deployment_by_id=deployment_by_id,
        issues=issues
    )


def _report_incomplete_records(
    releases: Sequence[Optional[Release]],
    deployments: Sequence[Optional[Deployment]],
    issues: List[ValidationIssue]
) -> None:
    """Summarise null entries and blank ids that were dropped silently."""
    null_releases = sum(1 for r in releases if r is None)
    if null_releases:
        _report(issues, "Release", None, f"Found {null_releases} null Release entries.")

    blank_releases = sum(1 for r in releases if r is not None and _is_blank(r.id))
    if blank_releases:
        _report(
            issues, "Release", None,
            f"Found {blank_releases} Release entries with missing or empty Id."
        )

    null_deployments = sum(1 for d in deployments if d is None)
    if null_deployments:
        _report(issues, "Deployment", None, f"Found {null_deployments} null Deployment entries.")

    blank_checks = (
        ("Id", lambda d: d.id),
        ("ReleaseId", lambda d: d.release_id),
        ("EnvironmentId", lambda d: d.environment_id),
    )
    for field_name, selector in blank_checks:
        count = sum(1 for d in deployments if d is not None and _is_blank(selector(d)))
        if count:
            _report(
                issues, "Deployment", None,
                f"Found {count} Deployment entries with missing or empty {field_name}."
            )


def _report(
    issues: Optional[List[ValidationIssue]],
    entity: str,
    record_id: Optional[str],
    message: str
) -> None:
    logger.warning(message)
    if issues is not None:
        issues.append(ValidationIssue(entity=entity, record_id=record_id, message=message))


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()
