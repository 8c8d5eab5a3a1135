"""Unit tests for sync.diff_engine module."""

from confluence_mirror.models import ChangeType, PageState
from confluence_mirror.sync.diff_engine import compute_diff, full_resync
from tests.fixtures.remote_fixtures import make_page


class TestComputeDiff:
    """Test cases for compute_diff."""

    def test_unrecorded_page_is_added(self):
        changes = compute_diff([make_page("1", "New")], {}, {})

        assert [c.page_id for c in changes.added] == ["1"]
        assert changes.added[0].change_type is ChangeType.ADDED
        assert changes.modified == [] and changes.deleted == []

    def test_newer_remote_version_is_modified(self):
        changes = compute_diff(
            [make_page("1", "Doc", version=5)],
            {"1": "doc.md"},
            {"1": PageState("1", "Doc", version=4)},
        )

        assert [c.page_id for c in changes.modified] == ["1"]
        assert changes.modified[0].local_path == "doc.md"

    def test_equal_version_is_unchanged(self):
        changes = compute_diff(
            [make_page("1", "Doc", version=4)],
            {"1": "doc.md"},
            {"1": PageState("1", "Doc", version=4)},
        )

        assert changes.is_empty()

    def test_missing_page_state_counts_as_version_zero(self):
        """A recorded page whose file could not be read is re-downloaded."""
        changes = compute_diff([make_page("1", "Doc", version=1)], {"1": "doc.md"}, {})

        assert [c.page_id for c in changes.modified] == ["1"]

    def test_forced_page_is_modified_at_equal_version(self):
        changes = compute_diff(
            [make_page("1", "Doc", version=4)],
            {"1": "doc.md"},
            {"1": PageState("1", "Doc", version=4)},
            force_ids=["1"],
        )

        assert [c.page_id for c in changes.modified] == ["1"]

    def test_record_missing_remotely_is_deleted(self):
        changes = compute_diff(
            [],
            {"7": "old.md"},
            {"7": PageState("7", "Old Page", version=2)},
        )

        assert len(changes.deleted) == 1
        assert changes.deleted[0].local_path == "old.md"
        assert changes.deleted[0].title == "Old Page"

    def test_deleted_without_state_uses_path_as_title(self):
        changes = compute_diff([], {"7": "old.md"}, {})

        assert changes.deleted[0].title == "old.md"

    def test_buckets_are_disjoint_and_ordered(self):
        """Every page lands in at most one bucket, in remote-list order."""
        remote = [
            make_page("3", "C", version=2),
            make_page("1", "A", version=1),
            make_page("2", "B", version=9),
            make_page("1", "A duplicate", version=1),
        ]
        records = {"2": "b.md", "3": "c.md", "4": "d.md"}
        states = {"2": PageState("2", version=1), "3": PageState("3", version=2)}

        changes = compute_diff(remote, records, states)

        assert [c.page_id for c in changes.added] == ["1"]
        assert [c.page_id for c in changes.modified] == ["2"]
        assert [c.page_id for c in changes.deleted] == ["4"]
        ids = [c.page_id for c in changes.added + changes.modified + changes.deleted]
        assert len(ids) == len(set(ids))


class TestFullResync:
    """Test cases for full_resync."""

    def test_every_page_is_added_once(self):
        changes = full_resync([make_page("1", "A"), make_page("2", "B"), make_page("1", "A")])

        assert [c.page_id for c in changes.added] == ["1", "2"]
        assert changes.modified == [] and changes.deleted == []
