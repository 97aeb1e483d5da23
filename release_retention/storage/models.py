"""
Data models for the retention engine.

Defines the deployment records supplied by a data source and the
structures derived from them during a single retention run.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

# Fractional seconds, which .NET style timestamps write with 7 digits
_FRACTION_PATTERN = re.compile(r"(?<=:\d\d)\.(\d+)")


@dataclass(frozen=True)
class Project:
    """A project that owns releases."""
    id: Optional[str]
    name: Optional[str]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Project":
        return cls(
            id=_optional_str(_field(data, "Id")),
            name=_optional_str(_field(data, "Name"))
        )


@dataclass(frozen=True)
class Environment:
    """A deployment target such as Staging or Production."""
    id: Optional[str]
    name: Optional[str]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Environment":
        return cls(
            id=_optional_str(_field(data, "Id")),
            name=_optional_str(_field(data, "Name"))
        )


@dataclass(frozen=True)
class Release:
    """A versioned release belonging to exactly one project."""
    id: Optional[str]
    project_id: Optional[str]
    created_at: datetime
    version: Optional[str]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Release":
        return cls(
            id=_optional_str(_field(data, "Id")),
            project_id=_optional_str(_field(data, "ProjectId")),
            created_at=parse_timestamp(_field(data, "Created", "CreatedAt")),
            version=_optional_str(_field(data, "Version"))
        )


@dataclass(frozen=True)
class Deployment:
    """A release deployed to an environment at a point in time."""
    id: Optional[str]
    release_id: Optional[str]
    environment_id: Optional[str]
    deployed_at: datetime

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Deployment":
        return cls(
            id=_optional_str(_field(data, "Id")),
            release_id=_optional_str(_field(data, "ReleaseId")),
            environment_id=_optional_str(_field(data, "EnvironmentId")),
            deployed_at=parse_timestamp(_field(data, "DeployedAt"))
        )


@dataclass(frozen=True)
class ValidationIssue:
    """A non-fatal data quality problem found while validating records."""
    entity: str
    record_id: Optional[str]
    message: str


@dataclass(frozen=True)
class ValidationResult:
    """Referentially consistent lookups built from raw records.

    Only releases whose project exists and whose version is valid are kept,
    and only deployments pointing at those releases and at known
    environments are kept.
    """
    project_by_id: Dict[str, Project]
    environment_by_id: Dict[str, Environment]
    release_by_id: Dict[str, Release]
    deployment_by_id: Dict[str, Deployment]
    issues: List[ValidationIssue] = field(default_factory=list)


@dataclass(frozen=True)
class ReleaseDeploymentStat:
    """Deployment statistics for one release within a project/environment."""
    release_id: str
    release: Release
    last_deployed: datetime
    deployment_count: int


@dataclass(frozen=True)
class RetentionResult:
    """A release that should be kept, enriched with display names."""
    release_id: str
    project_id: str
    project_name: str
    environment_id: str
    environment_name: str
    version: str
    last_deployed_at: datetime


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp into a naive UTC datetime.

    Missing values map to ``datetime.min``, mirroring a record whose
    timestamp was never set.

    Raises:
        ValueError: If the value is not a valid timestamp
    """
    if value is None:
        return datetime.min
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        text = _FRACTION_PATTERN.sub(_normalize_fraction, text)
        parsed = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Invalid timestamp: {value!r}")

    if parsed.tzinfo is not None:
        try:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        except OverflowError as e:
            # Offset pushes the value outside the datetime range
            raise ValueError(f"Invalid timestamp: {value!r}") from e
    return parsed


def _normalize_fraction(match: "re.Match") -> str:
    return "." + match.group(1)[:6].ljust(6, "0")


def _field(data: Mapping[str, Any], *names: str) -> Any:
    """Look up the first matching key, ignoring case."""
    lowered = {str(key).lower(): value for key, value in data.items()}
    for name in names:
        if name.lower() in lowered:
            return lowered[name.lower()]
    return None


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)
