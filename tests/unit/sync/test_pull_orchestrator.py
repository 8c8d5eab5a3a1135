"""Unit tests for sync.pull_orchestrator module.

The orchestrator runs against tmp_path with an in-memory remote space.
"""

import os
from dataclasses import replace

import pytest

from confluence_mirror.confluence_client.errors import APIUnreachableError, APIAccessError
from confluence_mirror.file_mapper.file_scanner import detect_push_candidates
from confluence_mirror.file_mapper.frontmatter_handler import FrontmatterHandler
from confluence_mirror.file_mapper.mirror_state import MirrorStateStore
from confluence_mirror.sync.cancellation import CancellationToken
from confluence_mirror.sync.errors import NotConfiguredError
from confluence_mirror.sync.pull_orchestrator import PullOrchestrator
from tests.fixtures.remote_fixtures import (
    FakeConverter,
    FakeRemoteClient,
    make_page,
    make_state,
    read_file,
    write_markdown,
)


@pytest.fixture
def remote():
    return FakeRemoteClient([
        make_page("1", "Home"),
        make_page("2", "Guides", parent_id="1", body="<p>[Install](installation.md)</p>"),
        make_page("3", "Installation", parent_id="2"),
        make_page("4", "FAQ", parent_id="1"),
    ])


@pytest.fixture
def store(tmp_path):
    store = MirrorStateStore(str(tmp_path))
    store.save(make_state())
    return store


def _orchestrator(remote, store, tmp_path, **kwargs):
    return PullOrchestrator(remote, FakeConverter(), store, str(tmp_path), **kwargs)


def _bump(remote, page_id, **changes):
    page = remote.pages[page_id]
    remote.pages[page_id] = replace(page, version=page.version + 1, **changes)


class TestInitialPull:
    """Test cases for pulling into an empty mirror."""

    def test_writes_tree_layout(self, remote, store, tmp_path):
        result = _orchestrator(remote, store, tmp_path).run()

        assert result.success
        assert len(result.changes.added) == 4
        assert store.load().pages == {
            "1": "README.md",
            "2": "guides/README.md",
            "3": "guides/installation.md",
            "4": "faq.md",
        }
        assert (tmp_path / "guides" / "installation.md").exists()

    def test_files_carry_frontmatter(self, remote, store, tmp_path):
        _orchestrator(remote, store, tmp_path).run()

        frontmatter, body = FrontmatterHandler.parse(read_file(tmp_path, "guides/installation.md"))

        assert frontmatter['page_id'] == "3"
        assert frontmatter['version'] == 1
        assert frontmatter['space_key'] == "TEAM"
        assert frontmatter['parent_title'] == "Guides"
        assert frontmatter['synced_at']
        assert body == "Content of Installation\n"

    def test_stamps_last_sync(self, remote, store, tmp_path):
        _orchestrator(remote, store, tmp_path).run()

        assert store.load().last_sync is not None

    def test_pulled_files_are_not_push_candidates(self, remote, store, tmp_path):
        _orchestrator(remote, store, tmp_path).run()

        assert detect_push_candidates(str(tmp_path)) == []

    def test_not_configured(self, remote, tmp_path):
        with pytest.raises(NotConfiguredError):
            _orchestrator(remote, MirrorStateStore(str(tmp_path)), tmp_path).run()

    def test_listing_failure_aborts_before_writing(self, remote, store, tmp_path):
        remote.unreachable = True

        with pytest.raises(APIUnreachableError):
            _orchestrator(remote, store, tmp_path).run()

        assert store.load().pages == {}
        assert not (tmp_path / "README.md").exists()


class TestIncrementalPull:
    """Test cases for pulls against an existing mirror."""

    def test_second_pull_is_idempotent(self, remote, store, tmp_path):
        _orchestrator(remote, store, tmp_path).run()
        remote.fetched.clear()

        result = _orchestrator(remote, store, tmp_path).run()

        assert result.changes.is_empty()
        assert remote.fetched == []

    def test_newer_version_is_rewritten(self, remote, store, tmp_path):
        _orchestrator(remote, store, tmp_path).run()
        _bump(remote, "4", body="<p>Updated answers</p>")

        result = _orchestrator(remote, store, tmp_path).run()

        assert [c.page_id for c in result.changes.modified] == ["4"]
        frontmatter, body = FrontmatterHandler.parse(read_file(tmp_path, "faq.md"))
        assert frontmatter['version'] == 2
        assert body == "Updated answers\n"

    def test_user_fields_survive_update(self, remote, store, tmp_path):
        _orchestrator(remote, store, tmp_path).run()
        content = read_file(tmp_path, "faq.md").replace("page_id:", "owner: docs\npage_id:", 1)
        write_markdown(tmp_path, "faq.md", content)
        _bump(remote, "4")

        _orchestrator(remote, store, tmp_path).run()

        frontmatter, _ = FrontmatterHandler.parse(read_file(tmp_path, "faq.md"))
        assert frontmatter['owner'] == "docs"
        assert frontmatter['version'] == 2

    def test_title_change_renames_and_repairs_links(self, remote, store, tmp_path):
        _orchestrator(remote, store, tmp_path).run()
        _bump(remote, "3", title="Setup")

        result = _orchestrator(remote, store, tmp_path).run()

        assert not (tmp_path / "guides" / "installation.md").exists()
        assert (tmp_path / "guides" / "setup.md").exists()
        assert store.load().pages["3"] == "guides/setup.md"
        assert "[Install](setup.md)" in read_file(tmp_path, "guides/README.md")
        assert any("Updated 1 link(s)" in w for w in result.warnings)

    def test_leaf_gaining_children_moves_to_directory(self, remote, store, tmp_path):
        _orchestrator(remote, store, tmp_path).run()
        remote.pages["5"] = make_page("5", "Billing", parent_id="4")
        _bump(remote, "4")

        result = _orchestrator(remote, store, tmp_path).run()

        assert result.success
        assert not (tmp_path / "faq.md").exists()
        assert (tmp_path / "faq" / "README.md").exists()
        assert (tmp_path / "faq" / "billing.md").exists()
        assert store.load().pages["4"] == "faq/README.md"

    def test_failed_leaf_removal_keeps_leaf(self, remote, store, tmp_path, mocker):
        _orchestrator(remote, store, tmp_path).run()
        remote.pages["5"] = make_page("5", "Billing", parent_id="4")
        _bump(remote, "4")
        real_unlink = os.unlink

        def unlink(path):
            if path.endswith("faq.md"):
                raise PermissionError(13, "Permission denied", path)
            real_unlink(path)

        mocker.patch("confluence_mirror.sync.pull_orchestrator.os.unlink", side_effect=unlink)

        result = _orchestrator(remote, store, tmp_path).run()

        assert len(result.errors) == 1
        assert "FAQ (4)" in result.errors[0]
        assert (tmp_path / "faq.md").exists()
        assert not (tmp_path / "faq" / "README.md").exists()
        assert store.load().pages["4"] == "faq.md"

    def test_converter_sees_recorded_pages(self, remote, store, tmp_path):
        _orchestrator(remote, store, tmp_path).run()
        _bump(remote, "2")
        converter = FakeConverter()

        PullOrchestrator(remote, converter, store, str(tmp_path)).run()

        [(source_path, lookup)] = converter.lookups
        assert source_path == "guides/README.md"
        assert lookup.relative_path("Installation", source_path) == "installation.md"
        assert lookup.relative_path("FAQ", source_path) == "../faq.md"

    def test_remote_deletion_removes_file_and_record(self, remote, store, tmp_path):
        _orchestrator(remote, store, tmp_path).run()
        del remote.pages["3"]

        result = _orchestrator(remote, store, tmp_path).run()

        assert [c.page_id for c in result.changes.deleted] == ["3"]
        assert not (tmp_path / "guides" / "installation.md").exists()
        assert "3" not in store.load().pages

    def test_missing_local_file_is_downloaded_again(self, remote, store, tmp_path):
        _orchestrator(remote, store, tmp_path).run()
        (tmp_path / "faq.md").unlink()

        result = _orchestrator(remote, store, tmp_path).run()

        assert [c.page_id for c in result.changes.modified] == ["4"]
        assert (tmp_path / "faq.md").exists()

    def test_non_utf8_local_file_is_downloaded_again(self, remote, store, tmp_path):
        _orchestrator(remote, store, tmp_path).run()
        (tmp_path / "faq.md").write_bytes(b"---\npage_id: '4'\nversion: 1\n---\n\xff\xfe broken\n")

        result = _orchestrator(remote, store, tmp_path).run()

        assert result.success
        assert [c.page_id for c in result.changes.modified] == ["4"]
        assert "Content of FAQ" in read_file(tmp_path, "faq.md")

    def test_page_refs_force_download(self, remote, store, tmp_path):
        _orchestrator(remote, store, tmp_path).run()

        result = _orchestrator(remote, store, tmp_path).run(page_refs=["faq.md", "missing.md"])

        assert [c.page_id for c in result.changes.modified] == ["4"]
        assert "Could not find page for: missing.md" in result.warnings

    def test_dry_run_writes_nothing(self, remote, store, tmp_path):
        result = _orchestrator(remote, store, tmp_path).run(dry_run=True)

        assert result.dry_run
        assert result.changes.total == 4
        assert store.load().pages == {}
        assert not (tmp_path / "README.md").exists()


class TestFailuresAndCancellation:
    """Test cases for per-page failures and cancellation."""

    def test_page_failure_is_collected(self, remote, store, tmp_path):
        remote.fail_on_fetch["4"] = APIAccessError("boom")

        result = _orchestrator(remote, store, tmp_path).run()

        assert not result.success
        assert len(result.errors) == 1
        assert "FAQ (4)" in result.errors[0]
        assert set(store.load().pages) == {"1", "2", "3"}

    def test_failed_page_is_retried_next_time(self, remote, store, tmp_path):
        remote.fail_on_fetch["4"] = APIAccessError("boom")
        _orchestrator(remote, store, tmp_path).run()
        del remote.fail_on_fetch["4"]

        result = _orchestrator(remote, store, tmp_path).run()

        assert [c.page_id for c in result.changes.added] == ["4"]

    def test_cancel_before_start_applies_nothing(self, remote, store, tmp_path):
        token = CancellationToken()
        token.cancel()

        result = _orchestrator(remote, store, tmp_path, cancel_token=token).run()

        assert result.cancelled
        assert not result.success
        assert result.applied == 0
        assert store.load().last_sync is None

    def test_cancel_stops_at_page_boundary(self, remote, store, tmp_path):
        token = CancellationToken()

        def cancel_after_first(done, total, change):
            token.cancel()

        result = _orchestrator(
            remote, store, tmp_path, cancel_token=token, on_progress=cancel_after_first
        ).run()

        assert result.cancelled
        assert result.applied == 1
        assert list(store.load().pages) == ["1"]


class TestForcedResync:
    """Test cases for pull --force."""

    def test_redownloads_everything_and_removes_stale_files(self, remote, store, tmp_path):
        _orchestrator(remote, store, tmp_path).run()
        store.save(store.load().with_page("99", "orphan.md"))
        write_markdown(tmp_path, "orphan.md", "old\n", page_id="99")
        remote.fetched.clear()

        result = _orchestrator(remote, store, tmp_path).run(force=True)

        assert result.success
        assert sorted(remote.fetched) == ["1", "2", "3", "4"]
        assert not (tmp_path / "orphan.md").exists()
        assert (tmp_path / "faq.md").exists()
        assert "99" not in store.load().pages

    def test_cancelled_resync_keeps_old_files(self, remote, store, tmp_path):
        _orchestrator(remote, store, tmp_path).run()
        token = CancellationToken()
        token.cancel()

        _orchestrator(remote, store, tmp_path, cancel_token=token).run(force=True)

        assert (tmp_path / "faq.md").exists()
