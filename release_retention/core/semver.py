"""
Semantic version checks.

Validates version strings against Semantic Versioning 2.0.0.
"""

import re
from typing import Optional

# MAJOR.MINOR.PATCH, optional -pre.release and +build.metadata
SEMVER_PATTERN = re.compile(
    r"^(0|[1-9][0-9]*)\.(0|[1-9][0-9]*)\.(0|[1-9][0-9]*)"
    r"(?:-([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)


def is_valid_version(version: Optional[str]) -> bool:
    """Return True if version is a syntactically valid semantic version.

    Args:
        version: Version text such as ``1.0.0`` or ``2.1.0-beta.1+build.5``

    Returns:
        False for None, empty strings and anything not matching SemVer 2.0.0
    """
    if not version:
        return False
    return SEMVER_PATTERN.fullmatch(version) is not None
