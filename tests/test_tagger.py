"""Tests for ReleaseTagger."""

import threading
from unittest.mock import patch

import pytest

from flowgate.api import Flow
from flowgate.errors import (
    InvalidVersionError,
    NonMonotonicVersion,
    StaleRefError,
    TagExistsError,
    UnreachableCommit,
)
from flowgate.services import check_invariants


class TestReleaseTagger:
    """Tests for tagging commits on main."""

    def test_tag_main_head(self, flow, backend):
        head = backend.get_head("main")
        tag = flow.tagger.tag(head, "1.0.0")
        assert tag.name == "1.0.0"
        assert tag.commit == head
        assert tag.created_at is not None
        assert [t.name for t in flow.tags()] == ["1.0.0"]

    def test_same_tag_twice_is_noop(self, flow, backend):
        head = backend.get_head("main")
        first = flow.tagger.tag(head, "1.0.0")
        second = flow.tagger.tag(head, "1.0.0")
        assert second.name == first.name
        assert len(backend.list_tags()) == 1

    def test_same_name_on_other_commit_rejected(self, flow, backend):
        flow.tagger.tag(backend.get_head("main"), "1.0.0")
        other = backend.commit("main", "Fix", paths=["fix.py"])
        with pytest.raises(TagExistsError):
            flow.tagger.tag(other, "1.0.0")

    def test_versions_must_increase(self, flow, backend):
        flow.tagger.tag(backend.get_head("main"), "1.0.0")
        newer = backend.commit("main", "Fix", paths=["fix.py"])
        with pytest.raises(NonMonotonicVersion) as exc_info:
            flow.tagger.tag(newer, "0.9.0")
        assert exc_info.value.latest == "1.0.0"
        assert exc_info.value.exit_code == 8

    def test_equal_version_with_other_spelling_rejected(self, flow, backend):
        flow.tagger.tag(backend.get_head("main"), "1.0.0")
        newer = backend.commit("main", "Fix", paths=["fix.py"])
        with pytest.raises(NonMonotonicVersion):
            flow.tagger.tag(newer, "1.0")

    def test_check_before_merge(self, flow, backend):
        flow.tagger.tag(backend.get_head("main"), "1.0.0")
        flow.tagger.check("1.0.1")
        flow.tagger.check("1.0.0")  # existing tag, decided when tagging
        with pytest.raises(NonMonotonicVersion):
            flow.tagger.check("0.1.0")

    def test_invalid_version(self, flow, backend):
        with pytest.raises(InvalidVersionError):
            flow.tagger.tag(backend.get_head("main"), "next")
        with pytest.raises(InvalidVersionError):
            flow.tagger.check("next")

    def test_commit_must_be_on_main(self, flow, backend):
        off_main = backend.commit("develop", "Work", paths=["work.py"])
        with pytest.raises(UnreachableCommit):
            flow.tagger.tag(off_main, "1.0.0")
        assert backend.list_tags() == []

    def test_older_main_commit_can_be_tagged(self, flow, backend):
        older = backend.get_head("main")
        backend.commit("main", "Fix", paths=["fix.py"])
        assert flow.tagger.tag(older, "1.0.0").commit == older

    def test_list_in_version_order(self, flow, backend):
        flow.tagger.tag(backend.get_head("main"), "1.2.0")
        flow.tagger.tag(backend.commit("main", "Fix", paths=["fix.py"]), "1.10.0")
        assert [t.version for t in flow.tagger.list()] == ["1.2.0", "1.10.0"]
        assert flow.tagger.latest().version == "1.10.0"

    def test_latest_without_tags(self, flow):
        assert flow.tagger.latest() is None


class TestTagPrefix:
    """Tests for the version tag prefix."""

    def test_prefixed_tags(self, backend):
        flow = Flow(backend=backend, config={'flow': {'versiontag_prefix': 'v'}})
        tag = flow.tagger.tag(backend.get_head("main"), "1.0.0")
        assert tag.name == "v1.0.0"
        assert tag.version == "1.0.0"

    def test_tags_without_prefix_are_ignored(self, backend):
        backend.create_tag("2.0.0", backend.get_head("main"))
        backend.create_tag("nightly", backend.get_head("main"), expected_latest="2.0.0")
        flow = Flow(backend=backend, config={'flow': {'versiontag_prefix': 'v'}})
        assert flow.tags() == []
        flow.tagger.tag(backend.get_head("main"), "1.0.0")
        assert [t.name for t in flow.tags()] == ["v1.0.0"]


class TestLatestReleasePointer:
    """Tests for the backend pointer that orders release tags."""

    def test_pointer_follows_tags(self, flow, backend):
        assert backend.latest_release_tag() is None
        flow.tagger.tag(backend.get_head("main"), "1.0.0")
        assert backend.latest_release_tag() == "1.0.0"

    def test_create_tag_with_stale_pointer(self, backend):
        head = backend.get_head("main")
        backend.create_tag("1.0.0", head)
        with pytest.raises(StaleRefError) as exc_info:
            backend.create_tag("1.0.1", head, expected_latest=None)
        assert exc_info.value.actual == "1.0.0"
        assert [t.name for t in backend.list_tags()] == ["1.0.0"]

    def test_lower_version_loses_race(self, flow, backend):
        """Two releases pass the version check; only the higher one is tagged."""
        head = backend.get_head("main")
        create_tag = backend.create_tag
        lower_checked = threading.Event()
        higher_created = threading.Event()

        def ordered_create_tag(name, commit, expected_latest=None):
            if name == "1.0.1":
                lower_checked.set()
                higher_created.wait(timeout=5)
                return create_tag(name, commit, expected_latest)
            lower_checked.wait(timeout=5)
            record = create_tag(name, commit, expected_latest)
            higher_created.set()
            return record

        errors = {}

        def release(version):
            try:
                flow.tagger.tag(head, version)
            except NonMonotonicVersion as e:
                errors[version] = e

        with patch.object(backend, "create_tag", side_effect=ordered_create_tag):
            threads = [threading.Thread(target=release, args=(v,)) for v in ("1.0.1", "1.0.2")]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join(timeout=10)

        assert [t.name for t in backend.list_tags()] == ["1.0.2"]
        assert list(errors) == ["1.0.1"]
        assert errors["1.0.1"].latest == "1.0.2"
        assert backend.latest_release_tag() == "1.0.2"
        assert check_invariants(flow.context) == []
