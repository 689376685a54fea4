"""
Release tagging for flowgate.

Tags commits that landed on Main with strictly increasing versions.
Re-tagging the same commit with the same version is a no-op. The version
check and the tag creation are tied together by the backend latest-release
pointer, so two concurrent releases cannot land out of order.
"""

import logging
from typing import List, Optional

from ..domain.tag import ReleaseTag, parse_version
from ..errors import (
    InvalidVersionError,
    NonMonotonicVersion,
    StaleRefError,
    TagExistsError,
    UnreachableCommit,
)
from .context import RepositoryContext

logger = logging.getLogger(__name__)


class ReleaseTagger:
    """
    Creates version tags on Main.

    Example:
        tagger = ReleaseTagger(context)
        tag = tagger.tag(main_head, "1.0.0")
        tagger.tag(main_head, "1.0.0")   # same tag again, no error
    """

    def __init__(self, context: RepositoryContext):
        self.context = context

    @property
    def prefix(self) -> str:
        return self.context.settings.versiontag_prefix

    def tag_name(self, version: str) -> str:
        return f"{self.prefix}{version}"

    def list(self) -> List[ReleaseTag]:
        """Version tags in ascending version order."""
        return self.context.release_tags()

    def latest(self) -> Optional[ReleaseTag]:
        tags = self.list()
        return tags[-1] if tags else None

    def check(self, proposed_version: str) -> None:
        """
        Validate a version before anything is merged.

        A version whose tag already exists passes; ``tag`` then decides
        between a no-op and TagExistsError.
        """
        version = parse_version(proposed_version)
        if version is None:
            raise InvalidVersionError(f"Invalid version: {proposed_version}")

        tags = self.list()
        if any(existing.name == self.tag_name(proposed_version) for existing in tags):
            return
        if tags and version <= tags[-1].parsed_version:
            raise NonMonotonicVersion(proposed_version, tags[-1].version)

    def tag(self, commit: str, proposed_version: str) -> ReleaseTag:
        """
        Tag ``commit`` with ``proposed_version``.

        Raises:
            InvalidVersionError: The version does not parse
            TagExistsError: The tag name exists on a different commit
            NonMonotonicVersion: The version is not above the latest tag
            UnreachableCommit: The commit is not on Main
        """
        version = parse_version(proposed_version)
        if version is None:
            raise InvalidVersionError(f"Invalid version: {proposed_version}")

        name = self.tag_name(proposed_version)
        backend = self.context.backend
        expected_latest = backend.latest_release_tag()
        tags = self.list()

        for existing in tags:
            if existing.name == name:
                if existing.commit == commit:
                    logger.debug(f"Tag {name} already points at {commit[:10]}")
                    return existing
                raise TagExistsError(
                    f"Tag '{name}' already exists on {existing.commit[:10]}"
                )

        if tags and version <= tags[-1].parsed_version:
            raise NonMonotonicVersion(proposed_version, tags[-1].version)

        main_head = backend.get_head(self.context.settings.main_branch)
        if not backend.is_ancestor(commit, main_head):
            raise UnreachableCommit(f"Commit {commit[:10]} is not reachable from main")

        try:
            record = backend.create_tag(name, commit, expected_latest=expected_latest)
        except StaleRefError as e:
            logger.info(f"Release tag {e.actual} was created concurrently, re-checking {name}")
            return self.tag(commit, proposed_version)
        logger.info(f"Tagged {commit[:10]} as {name}")
        return ReleaseTag(
            name=record.name,
            version=proposed_version,
            commit=record.commit,
            created_at=record.created_at,
        )
