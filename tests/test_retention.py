"""
Unit tests for release ranking and retention selection.
"""
import logging
from datetime import datetime, timedelta

import pytest

from release_retention.core.errors import ErrorKind, InvalidKeepCountError, NoDataError
from release_retention.core.retention import (
    DeploymentAggregate,
    check_keep_count,
    compute_retention,
    rank_releases,
    sort_for_display,
)
from release_retention.storage.models import Deployment, Environment, Project, Release

P1 = Project("Project-1", "Project One")
P2 = Project("Project-2", "Project Two")
E1 = Environment("Environment-1", "Staging")
E2 = Environment("Environment-2", "Production")


def release(release_id, created, version="1.0.0", project_id="Project-1"):
    return Release(release_id, project_id, created, version)


def deployment(deployment_id, release_id, deployed, environment_id="Environment-1"):
    return Deployment(deployment_id, release_id, environment_id, deployed)


class TestCheckKeepCount:
    """Test keep_count argument checks."""

    @pytest.mark.parametrize("keep_count", [1, 2, 100])
    def test_positive_values_pass(self, keep_count):
        check_keep_count(keep_count)

    @pytest.mark.parametrize("keep_count", [0, -1, -100, True, 1.5, "1", None])
    def test_invalid_values_raise(self, keep_count):
        """Test anything but a positive int is an invalid argument."""
        with pytest.raises(InvalidKeepCountError) as excinfo:
            check_keep_count(keep_count)

        assert excinfo.value.kind == ErrorKind.INVALID_ARGUMENT
        assert excinfo.value.param_name == "keep_count"
        assert "keep_count must be a positive number" in excinfo.value.message


class TestRankReleases:
    """Test ranking within a single project/environment group."""

    def setup_method(self):
        self.releases = {
            "Release-1": release("Release-1", datetime(2000, 1, 1, 8)),
            "Release-2": release("Release-2", datetime(2000, 1, 1, 9), "1.0.1"),
        }
        self.deployments = [
            deployment("Deployment-1", "Release-1", datetime(2000, 1, 1, 10)),
            deployment("Deployment-2", "Release-2", datetime(2000, 1, 1, 11)),
            deployment("Deployment-3", "Release-1", datetime(2000, 1, 1, 12)),
        ]

    def test_earliest_deployment_ranks_by_default(self):
        """Test each release is represented by its first deployment."""
        ranked = rank_releases(self.deployments, self.releases)

        assert [s.release_id for s in ranked] == ["Release-2", "Release-1"]
        assert ranked[1].last_deployed == datetime(2000, 1, 1, 10)
        assert ranked[1].deployment_count == 2

    def test_latest_deployment_ranking(self):
        """Test the latest aggregate uses the most recent deployment."""
        ranked = rank_releases(self.deployments, self.releases, DeploymentAggregate.LATEST)

        assert [s.release_id for s in ranked] == ["Release-1", "Release-2"]
        assert ranked[0].last_deployed == datetime(2000, 1, 1, 12)

    def test_tie_broken_by_creation_time(self):
        """Test equal deployment times prefer the later created release."""
        deployments = [
            deployment("Deployment-1", "Release-1", datetime(2000, 1, 1, 10)),
            deployment("Deployment-2", "Release-2", datetime(2000, 1, 1, 10)),
        ]

        ranked = rank_releases(deployments, self.releases)

        assert [s.release_id for s in ranked] == ["Release-2", "Release-1"]


class TestComputeRetention:
    """Test the full retention computation on raw records."""

    def test_single_release_is_kept(self):
        """Test one deployed release yields one fully populated result."""
        results = compute_retention(
            projects=[P1],
            environments=[E1],
            releases=[release("Release-1", datetime(2000, 1, 1, 8))],
            deployments=[deployment("Deployment-1", "Release-1", datetime(2000, 1, 1, 10))],
            keep_count=1
        )

        assert len(results) == 1
        result = results[0]
        assert result.release_id == "Release-1"
        assert result.project_id == "Project-1"
        assert result.project_name == "Project One"
        assert result.environment_id == "Environment-1"
        assert result.environment_name == "Staging"
        assert result.version == "1.0.0"
        assert result.last_deployed_at == datetime(2000, 1, 1, 10)

    def test_identical_deployment_times_keep_newer_release(self):
        """Test the later created release wins a deployment time tie."""
        results = compute_retention(
            projects=[P1],
            environments=[E1],
            releases=[
                release("Release-1", datetime(2000, 1, 1, 8)),
                release("Release-2", datetime(2000, 1, 1, 9), "1.0.1"),
            ],
            deployments=[
                deployment("Deployment-1", "Release-1", datetime(2000, 1, 1, 10)),
                deployment("Deployment-2", "Release-2", datetime(2000, 1, 1, 10)),
            ],
            keep_count=1
        )

        assert [r.release_id for r in results] == ["Release-2"]

    def test_dropped_release_is_logged_with_rank_and_cutoff(self, caplog):
        """Test every release outside the cutoff gets a diagnostic."""
        with caplog.at_level(logging.INFO, logger="release_retention.core.retention"):
            compute_retention(
                projects=[P1],
                environments=[E1],
                releases=[
                    release("Release-1", datetime(2000, 1, 1, 8)),
                    release("Release-2", datetime(2000, 1, 1, 9), "1.0.1"),
                ],
                deployments=[
                    deployment("Deployment-1", "Release-1", datetime(2000, 1, 1, 10)),
                    deployment("Deployment-2", "Release-2", datetime(2000, 1, 1, 11)),
                ],
                keep_count=1
            )

        dropped = [m for m in caplog.messages if m.startswith("Not keeping")]
        assert len(dropped) == 1
        assert "Not keeping Release Release-1" in dropped[0]
        assert "Rank: 2/2" in dropped[0]
        assert "Outside top 1" in dropped[0]
        assert any(
            m.startswith("Keeping Release Release-2") and "Rank: 1/2" in m
            for m in caplog.messages
        )

    def test_invalid_version_release_is_excluded(self):
        """Test a release with a bad version never forms a group."""
        results = compute_retention(
            projects=[P1],
            environments=[E1, E2],
            releases=[
                release("Release-1", datetime(2000, 1, 1, 8)),
                release("Release-3", datetime(2000, 1, 1, 9), "not-semver"),
            ],
            deployments=[
                deployment("Deployment-1", "Release-1", datetime(2000, 1, 1, 10)),
                deployment("Deployment-2", "Release-3", datetime(2000, 1, 1, 11), "Environment-2"),
            ],
            keep_count=5
        )

        assert [(r.release_id, r.environment_id) for r in results] == [
            ("Release-1", "Environment-1")
        ]

    def test_duplicate_release_reports_first_version(self):
        """Test results for a duplicated release id use the first record."""
        results = compute_retention(
            projects=[P1],
            environments=[E1],
            releases=[
                release("Release-1", datetime(2000, 1, 1, 8), "1.0.0"),
                release("Release-1", datetime(2000, 1, 1, 9), "1.0.1"),
            ],
            deployments=[deployment("Deployment-1", "Release-1", datetime(2000, 1, 1, 10))],
            keep_count=1
        )

        assert len(results) == 1
        assert results[0].version == "1.0.0"

    def test_deployment_of_unknown_release_is_dropped(self):
        """Test a deployment without a valid release affects no group."""
        results = compute_retention(
            projects=[P1],
            environments=[E1],
            releases=[release("Release-1", datetime(2000, 1, 1, 8))],
            deployments=[
                deployment("Deployment-1", "Release-1", datetime(2000, 1, 1, 10)),
                deployment("Deployment-2", "Release-9", datetime(2000, 1, 1, 11)),
            ],
            keep_count=5
        )

        assert [r.release_id for r in results] == ["Release-1"]

    def test_empty_projects_fails_without_output(self):
        """Test an empty collection aborts the whole computation."""
        with pytest.raises(NoDataError, match="No projects found"):
            compute_retention(
                projects=[],
                environments=[E1],
                releases=[release("Release-1", datetime(2000, 1, 1, 8))],
                deployments=[deployment("Deployment-1", "Release-1", datetime(2000, 1, 1, 10))],
                keep_count=1
            )

    @pytest.mark.parametrize("keep_count", [0, -1])
    def test_invalid_keep_count_checked_before_data(self, keep_count):
        """Test keep_count is rejected even when every collection is empty."""
        with pytest.raises(InvalidKeepCountError):
            compute_retention([], [], [], [], keep_count=keep_count)

    def test_release_without_deployments_is_not_kept(self):
        """Test retention only considers deployed releases."""
        results = compute_retention(
            projects=[P1],
            environments=[E1],
            releases=[
                release("Release-1", datetime(2000, 1, 1, 8)),
                release("Release-2", datetime(2000, 1, 1, 9), "1.0.1"),
            ],
            deployments=[deployment("Deployment-1", "Release-1", datetime(2000, 1, 1, 10))],
            keep_count=2
        )

        assert [r.release_id for r in results] == ["Release-1"]

    def test_keep_count_applies_per_environment(self):
        """Test one release deployed to two environments is kept in both."""
        results = compute_retention(
            projects=[P1],
            environments=[E1, E2],
            releases=[
                release("Release-1", datetime(2000, 1, 1, 8)),
                release("Release-2", datetime(2000, 1, 1, 9), "1.0.1"),
            ],
            deployments=[
                deployment("Deployment-1", "Release-2", datetime(2000, 1, 1, 10)),
                deployment("Deployment-2", "Release-1", datetime(2000, 1, 1, 11), "Environment-2"),
                deployment("Deployment-3", "Release-2", datetime(2000, 1, 1, 12), "Environment-2"),
            ],
            keep_count=1
        )

        kept = {(r.environment_id, r.release_id) for r in results}
        assert kept == {("Environment-1", "Release-2"), ("Environment-2", "Release-2")}

    def test_multiple_projects_and_environments(self):
        """Test each group keeps min(keep_count, releases) in rank order."""
        base = datetime(2024, 1, 10, 12)
        projects = [P1, P2]
        environments = [E1, E2]
        releases = [
            release("Release-1", base - timedelta(days=9)),
            release("Release-2", base - timedelta(days=8), "1.0.1"),
            release("Release-3", base - timedelta(days=7), "1.0.2"),
            release("Release-4", base - timedelta(days=9), "2.0.0", "Project-2"),
            release("Release-5", base - timedelta(days=8), "2.0.1", "Project-2"),
        ]
        deployments = [
            deployment("Deployment-1", "Release-1", base - timedelta(days=6)),
            deployment("Deployment-2", "Release-2", base - timedelta(days=5)),
            deployment("Deployment-3", "Release-3", base - timedelta(days=4)),
            deployment("Deployment-4", "Release-1", base - timedelta(days=3), "Environment-2"),
            deployment("Deployment-5", "Release-4", base - timedelta(days=6)),
            deployment("Deployment-6", "Release-5", base - timedelta(days=5)),
            deployment("Deployment-7", "Release-5", base - timedelta(days=2), "Environment-2"),
        ]

        results = sort_for_display(compute_retention(
            projects, environments, releases, deployments, keep_count=2
        ))

        assert [(r.project_id, r.environment_id, r.release_id) for r in results] == [
            ("Project-1", "Environment-1", "Release-3"),
            ("Project-1", "Environment-1", "Release-2"),
            ("Project-1", "Environment-2", "Release-1"),
            ("Project-2", "Environment-1", "Release-5"),
            ("Project-2", "Environment-1", "Release-4"),
            ("Project-2", "Environment-2", "Release-5"),
        ]

    def test_missing_deployment_time_ranks_last(self):
        """Test a deployment without a timestamp sorts below dated ones."""
        results = compute_retention(
            projects=[P1],
            environments=[E1],
            releases=[
                release("Release-1", datetime(2000, 1, 2, 8)),
                release("Release-2", datetime(2000, 1, 1, 8), "1.0.1"),
            ],
            deployments=[
                deployment("Deployment-1", "Release-1", datetime.min),
                deployment("Deployment-2", "Release-2", datetime(2000, 1, 1, 10)),
            ],
            keep_count=2
        )

        assert [r.release_id for r in results] == ["Release-2", "Release-1"]
        assert results[1].last_deployed_at == datetime.min

    def test_latest_aggregate_changes_ranking(self):
        """Test the aggregate toggle changes which release is kept."""
        records = dict(
            projects=[P1],
            environments=[E1],
            releases=[
                release("Release-1", datetime(2000, 1, 1, 8)),
                release("Release-2", datetime(2000, 1, 1, 9), "1.0.1"),
            ],
            deployments=[
                deployment("Deployment-1", "Release-1", datetime(2000, 1, 1, 10)),
                deployment("Deployment-2", "Release-2", datetime(2000, 1, 1, 11)),
                deployment("Deployment-3", "Release-1", datetime(2000, 1, 1, 12)),
            ],
            keep_count=1
        )

        earliest = compute_retention(**records)
        latest = compute_retention(**records, aggregate=DeploymentAggregate.LATEST)

        assert [r.release_id for r in earliest] == ["Release-2"]
        assert [r.release_id for r in latest] == ["Release-1"]
        assert latest[0].last_deployed_at == datetime(2000, 1, 1, 12)

    def test_missing_names_fall_back_to_ids(self):
        """Test display names default to the entity id."""
        results = compute_retention(
            projects=[Project("Project-1", None)],
            environments=[Environment("Environment-1", "")],
            releases=[release("Release-1", datetime(2000, 1, 1, 8))],
            deployments=[deployment("Deployment-1", "Release-1", datetime(2000, 1, 1, 10))],
            keep_count=1
        )

        assert results[0].project_name == "Project-1"
        assert results[0].environment_name == "Environment-1"

    def test_results_are_deterministic(self):
        """Test identical inputs give identical results."""
        records = dict(
            projects=[P1, P2],
            environments=[E1, E2],
            releases=[
                release("Release-1", datetime(2000, 1, 1, 8)),
                release("Release-2", datetime(2000, 1, 1, 9), "2.0.0", "Project-2"),
            ],
            deployments=[
                deployment("Deployment-1", "Release-1", datetime(2000, 1, 1, 10)),
                deployment("Deployment-2", "Release-2", datetime(2000, 1, 1, 10), "Environment-2"),
            ],
            keep_count=1
        )

        first = sort_for_display(compute_retention(**records))
        second = sort_for_display(compute_retention(**records))

        assert first == second
