# release_retention/demo/seed_demo_data.py

import json
import sys
from pathlib import Path

import yaml

PROJECTS = [
    {"Id": "Project-1", "Name": "Random Quotes"},
    {"Id": "Project-2", "Name": "Pet Shop"},
]

ENVIRONMENTS = [
    {"Id": "Environment-1", "Name": "Staging"},
    {"Id": "Environment-2", "Name": "Production"},
]

RELEASES = [
    {"Id": "Release-1", "ProjectId": "Project-1", "Version": "1.0.0", "Created": "2000-01-01T09:00:00"},
    {"Id": "Release-2", "ProjectId": "Project-1", "Version": "1.0.1", "Created": "2000-01-02T09:00:00"},
    {"Id": "Release-3", "ProjectId": "Project-1", "Version": "1.0.2-beta.1", "Created": "2000-01-02T13:00:00"},
    {"Id": "Release-4", "ProjectId": "Project-2", "Version": "1.0.0", "Created": "2000-01-01T09:00:00"},
    {"Id": "Release-5", "ProjectId": "Project-2", "Version": "1.0.1-ci.4+build.42", "Created": "2000-01-01T10:00:00"},
    {"Id": "Release-6", "ProjectId": "Project-2", "Version": "1.0.2", "Created": "2000-01-02T09:00:00"},
    {"Id": "Release-7", "ProjectId": "Project-2", "Version": "latest", "Created": "2000-01-02T12:00:00"},  # invalid
    {"Id": "Release-8", "ProjectId": "Project-3", "Version": "2.0.0", "Created": "2000-01-01T09:00:00"},  # dangling
]

DEPLOYMENTS = [
    {"Id": "Deployment-1", "ReleaseId": "Release-1", "EnvironmentId": "Environment-1", "DeployedAt": "2000-01-01T10:00:00"},
    {"Id": "Deployment-2", "ReleaseId": "Release-2", "EnvironmentId": "Environment-1", "DeployedAt": "2000-01-02T10:00:00"},
    {"Id": "Deployment-3", "ReleaseId": "Release-2", "EnvironmentId": "Environment-2", "DeployedAt": "2000-01-02T11:00:00"},
    {"Id": "Deployment-4", "ReleaseId": "Release-2", "EnvironmentId": "Environment-1", "DeployedAt": "2000-01-02T12:00:00"},
    {"Id": "Deployment-5", "ReleaseId": "Release-5", "EnvironmentId": "Environment-1", "DeployedAt": "2000-01-01T11:00:00"},
    {"Id": "Deployment-6", "ReleaseId": "Release-6", "EnvironmentId": "Environment-2", "DeployedAt": "2000-01-02T10:00:00"},
    {"Id": "Deployment-7", "ReleaseId": "Release-6", "EnvironmentId": "Environment-1", "DeployedAt": "2000-01-02T11:00:00"},
    {"Id": "Deployment-8", "ReleaseId": "Release-7", "EnvironmentId": "Environment-1", "DeployedAt": "2000-01-02T13:00:00"},
    {"Id": "Deployment-9", "ReleaseId": "Release-1", "EnvironmentId": "Environment-3", "DeployedAt": "2000-01-02T13:00:00"},
]

DATA_FILES = {
    "projects": ("Projects.json", PROJECTS),
    "environments": ("Environments.json", ENVIRONMENTS),
    "releases": ("Releases.json", RELEASES),
    "deployments": ("Deployments.json", DEPLOYMENTS),
}


def write_demo_data(directory: str, keep_count: int = 1) -> Path:
    """Write demo data files and a matching config into directory.

    Returns:
        Path of the written retention.yaml
    """
    target = Path(directory)
    data_dir = target / "data"
    data_dir.mkdir(parents=True, exist_ok=True)

    data_files = {}
    for key, (file_name, records) in DATA_FILES.items():
        with open(data_dir / file_name, 'w', encoding='utf-8') as f:
            json.dump(records, f, indent=2)
        data_files[key] = f"data/{file_name}"

    config_path = target / "retention.yaml"
    with open(config_path, 'w', encoding='utf-8') as f:
        yaml.safe_dump(
            {
                "keep_count": keep_count,
                "use_local_data": True,
                "aggregate": "earliest",
                "data_files": data_files,
            },
            f,
            sort_keys=False
        )
    return config_path


if __name__ == "__main__":
    path = write_demo_data(sys.argv[1] if len(sys.argv) > 1 else ".")
    print(f"Demo retention data written to {path}")
