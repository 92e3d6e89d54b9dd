"""Tests for VersionControl: history, diffs, branches and merges."""

import pytest

from componentos.core.components.exceptions import (
    BranchExistsError,
    BranchNotFoundError,
    VersionNotFoundError,
)
from componentos.core.components.version_control import VersionControl, diff_source
from componentos.core.events import EventBus, EventType


class TestVersionHistory:
    """Append-only, newest-first history."""

    def setup_method(self):
        self.vc = VersionControl()

    def test_two_versions_newest_first(self):
        self.vc.create_version("c1", "code-v1", "init")
        self.vc.create_version("c1", "code-v2", "edit")

        history = self.vc.get_version_history("c1")
        assert len(history) == 2
        assert history[0].source_code == "code-v2"
        assert history[1].source_code == "code-v1"

    def test_create_version_preserves_prior_versions(self):
        first = self.vc.create_version("c1", "a", "one")
        second = self.vc.create_version("c1", "b", "two")
        before = self.vc.get_version_history("c1")

        third = self.vc.create_version("c1", "c", "three")
        after = self.vc.get_version_history("c1")

        assert after[0] == third
        assert after[1:] == before
        assert [v.id for v in after] == [third.id, second.id, first.id]

    def test_timestamps_are_non_decreasing(self):
        for i in range(5):
            self.vc.create_version("c1", f"code-{i}", f"v{i}")

        timestamps = [v.timestamp for v in reversed(self.vc.get_version_history("c1"))]
        assert timestamps == sorted(timestamps)

    def test_version_ids_are_unique(self):
        ids = {self.vc.create_version("c1", "same", "again").id for _ in range(10)}
        assert len(ids) == 10

    def test_parent_defaults_to_previous_head(self):
        first = self.vc.create_version("c1", "a", "one")
        second = self.vc.create_version("c1", "b", "two")

        assert first.parent_version_id is None
        assert second.parent_version_id == first.id

    def test_lookups_on_unknown_ids(self):
        assert self.vc.get_version_history("ghost") == []
        assert self.vc.get_version("ghost", "v") is None
        assert self.vc.get_latest_version("ghost") is None
        assert self.vc.compare_versions("ghost", "a", "b") is None

    def test_returned_history_is_a_copy(self):
        self.vc.create_version("c1", "a", "one")
        history = self.vc.get_version_history("c1")
        history.clear()

        assert len(self.vc.get_version_history("c1")) == 1

    def test_record_revert_appends(self):
        first = self.vc.create_version("c1", "a", "one")
        self.vc.create_version("c1", "b", "two")

        reverted = self.vc.record_revert("c1", first.id)

        history = self.vc.get_version_history("c1")
        assert len(history) == 3
        assert history[0] == reverted
        assert reverted.source_code == "a"
        assert reverted.description.startswith(f"Reverted to version {first.id}")

    def test_record_revert_unknown_version(self):
        self.vc.create_version("c1", "a", "one")
        with pytest.raises(VersionNotFoundError):
            self.vc.record_revert("c1", "missing")

    def test_summary(self):
        first = self.vc.create_version("c1", "a", "one")
        last = self.vc.create_version("c1", "b", "two")

        summary = self.vc.get_version_summary("c1")
        assert summary.total_versions == 2
        assert summary.branches == 1
        assert summary.first_version == first
        assert summary.latest_version == last

    def test_purge_history(self):
        self.vc.create_version("c1", "a", "one")
        self.vc.create_version("c1", "b", "two")

        assert self.vc.purge_history("c1") == 2
        assert self.vc.get_version_history("c1") == []
        assert self.vc.get_branches("c1") == []


class TestDiffs:
    """compare_versions and diff_source."""

    def setup_method(self):
        self.vc = VersionControl()

    def test_compare_counts_markers(self):
        v1 = self.vc.create_version("c1", "line1\nline2\nline3", "one")
        v2 = self.vc.create_version("c1", "line1\nline2 changed\nline3\nline4", "two")

        diff = self.vc.compare_versions("c1", v1.id, v2.id)

        assert diff.changed_lines == 1
        assert diff.added_lines == 1
        assert diff.removed_lines == 0
        assert v1.id in diff.diff and v2.id in diff.diff

    def test_compare_is_deterministic(self):
        v1 = self.vc.create_version("c1", "a\nb", "one")
        v2 = self.vc.create_version("c1", "a\nc", "two")

        assert self.vc.compare_versions("c1", v1.id, v2.id) == self.vc.compare_versions("c1", v1.id, v2.id)

    def test_compare_identical_sources(self):
        v1 = self.vc.create_version("c1", "same", "one")
        v2 = self.vc.create_version("c1", "same", "two")

        diff = self.vc.compare_versions("c1", v1.id, v2.id)
        assert diff.diff == f"No differences found between versions {v1.id} and {v2.id}"
        assert (diff.added_lines, diff.removed_lines, diff.changed_lines) == (0, 0, 0)

    def test_compare_missing_version(self):
        v1 = self.vc.create_version("c1", "a", "one")
        assert self.vc.compare_versions("c1", v1.id, "missing") is None

    def test_diff_source_removed_lines(self):
        text, added, removed, changed = diff_source("a\nb\nc", "a\nc")
        assert (added, removed, changed) == (0, 1, 0)
        assert "- b" in text

    def test_diff_source_counts_changed_line_once(self):
        text, added, removed, changed = diff_source("a\nb\nc", "a\nB\nc")
        assert (added, removed, changed) == (0, 0, 1)
        assert "! b" in text and "! B" in text

    def test_diff_source_identical(self):
        assert diff_source("x", "x") == ("", 0, 0, 0)


class TestBranches:
    """Branch creation, growth and merging."""

    def setup_method(self):
        self.vc = VersionControl()
        self.v1 = self.vc.create_version("c1", "code-v1", "init")

    def test_first_version_creates_main_branch(self):
        main = self.vc.get_main_branch("c1")
        assert main.name == "main"
        assert main.version_ids == [self.v1.id]
        assert main.root_version_id == self.v1.id

    def test_create_branch_starts_at_version(self):
        branch_id = self.vc.create_branch("c1", self.v1.id, "feature")

        branch = self.vc.get_branch("c1", branch_id)
        assert branch.name == "feature"
        assert branch.version_ids == [self.v1.id]
        assert self.vc.get_branch("c1", "feature").id == branch_id

    def test_create_branch_unknown_version(self):
        with pytest.raises(VersionNotFoundError):
            self.vc.create_branch("c1", "missing", "feature")

    def test_create_branch_duplicate_name(self):
        self.vc.create_branch("c1", self.v1.id, "feature")
        with pytest.raises(BranchExistsError):
            self.vc.create_branch("c1", self.v1.id, "feature")

    def test_create_branch_empty_name(self):
        with pytest.raises(ValueError):
            self.vc.create_branch("c1", self.v1.id, "  ")

    def test_versions_on_named_branch(self):
        branch_id = self.vc.create_branch("c1", self.v1.id, "feature")
        v2 = self.vc.create_version("c1", "code-v2", "feature work", branch_id=branch_id)

        assert self.vc.get_branch("c1", branch_id).version_ids == [self.v1.id, v2.id]
        assert self.vc.get_main_branch("c1").version_ids == [self.v1.id]
        assert v2.parent_version_id == self.v1.id

    def test_create_version_on_unknown_branch(self):
        with pytest.raises(BranchNotFoundError):
            self.vc.create_version("c1", "x", "y", branch_id="missing")

    def test_add_version_to_branch(self):
        branch_id = self.vc.create_branch("c1", self.v1.id, "feature")
        v2 = self.vc.create_version("c1", "code-v2", "main work")

        self.vc.add_version_to_branch(branch_id, v2.id)
        self.vc.add_version_to_branch(branch_id, v2.id)

        assert self.vc.get_branch("c1", branch_id).version_ids == [self.v1.id, v2.id]

    def test_add_version_to_unknown_branch(self):
        with pytest.raises(BranchNotFoundError):
            self.vc.add_version_to_branch("missing", self.v1.id)

    def test_merge_takes_source_snapshot(self):
        branch_id = self.vc.create_branch("c1", self.v1.id, "feature")
        feature_head = self.vc.create_version("c1", "code-feature", "feature work", branch_id=branch_id)
        main_head = self.vc.create_version("c1", "code-main", "main work")
        before = len(self.vc.get_version_history("c1"))

        merged_id = self.vc.merge_branches("c1", "feature", "main", "msg")

        history = self.vc.get_version_history("c1")
        assert len(history) == before + 1
        merged = history[0]
        assert merged.id == merged_id
        assert merged.source_code == feature_head.source_code
        assert merged.parent_version_id == main_head.id
        assert "source snapshot taken as-is" in merged.description
        assert merged.description.endswith(": msg")
        assert self.vc.get_main_branch("c1").head_version_id == merged_id

    def test_merge_unknown_branch(self):
        with pytest.raises(BranchNotFoundError):
            self.vc.merge_branches("c1", "nope", "main", "msg")

    def test_branches_are_scoped_per_component(self):
        other = self.vc.create_version("c2", "other", "init")
        self.vc.create_branch("c2", other.id, "feature")

        assert self.vc.get_branch("c1", "feature") is None
        with pytest.raises(BranchNotFoundError):
            self.vc.merge_branches("c1", "feature", "main", "msg")

    def test_branch_lists_are_copies(self):
        branch = self.vc.get_main_branch("c1")
        branch.version_ids.append("tampered")

        assert self.vc.get_main_branch("c1").version_ids == [self.v1.id]


class TestVersionEvents:
    """Events emitted by version control."""

    def test_events_in_order(self):
        bus = EventBus()
        received = []
        bus.subscribe(lambda event: received.append(event.type))
        vc = VersionControl(event_bus=bus)

        v1 = vc.create_version("c1", "a", "one")
        vc.create_branch("c1", v1.id, "feature")
        vc.merge_branches("c1", "feature", "main", "msg")

        assert received == [
            EventType.BRANCH_CREATED,
            EventType.VERSION_CREATED,
            EventType.BRANCH_CREATED,
            EventType.VERSION_CREATED,
            EventType.MERGE_COMPLETED,
        ]

    def test_custom_main_branch_name(self):
        vc = VersionControl(main_branch_name="trunk")
        vc.create_version("c1", "a", "one")

        assert vc.get_main_branch("c1").name == "trunk"
        assert vc.get_branch("c1", "trunk") is not None
