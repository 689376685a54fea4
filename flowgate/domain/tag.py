"""
Release tag domain object for flowgate.

Tags are immutable aliases for commits on Main. Their names are a
configurable prefix followed by a version string ("v1.2.0" or "1.2.0").
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from packaging.version import Version, InvalidVersion


def parse_version(version: str) -> Optional[Version]:
    """Parse a version string, returning None if it is not a valid version."""
    try:
        return Version(version)
    except InvalidVersion:
        return None


def version_from_tag_name(name: str, prefix: str = "") -> Optional[str]:
    """
    Extract the version part of a tag name.

    Returns None if the name does not carry the prefix or the remainder
    is not a valid version.
    """
    if prefix:
        if not name.startswith(prefix):
            return None
        name = name[len(prefix):]
    if parse_version(name) is None:
        return None
    return name


@dataclass(frozen=True)
class ReleaseTag:
    """
    A version tag on Main.

    Attributes:
        name: Full tag name including any prefix (e.g. "v1.2.0")
        version: Version string without prefix (e.g. "1.2.0")
        commit: Commit id the tag points at
        created_at: When the tag was created
    """

    name: str
    version: str
    commit: str
    created_at: Optional[datetime] = None

    @property
    def parsed_version(self) -> Version:
        return Version(self.version)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'name': self.name,
            'version': self.version,
            'commit': self.commit,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __str__(self) -> str:
        return self.name
