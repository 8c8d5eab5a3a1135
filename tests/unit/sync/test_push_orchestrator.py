"""Unit tests for sync.push_orchestrator module."""

import pytest

from confluence_mirror.confluence_client.errors import PageNotFoundError, VersionConflictError
from confluence_mirror.file_mapper.file_scanner import detect_push_candidates
from confluence_mirror.file_mapper.frontmatter_handler import FrontmatterHandler
from confluence_mirror.file_mapper.mirror_state import MirrorStateStore
from confluence_mirror.sync.cancellation import CancellationToken
from confluence_mirror.sync.errors import (
    ContentTooLargeError,
    InvalidPushTargetError,
    NotConfiguredError,
)
from confluence_mirror.sync.push_orchestrator import MAX_PAGE_SIZE, PushOrchestrator
from tests.fixtures.remote_fixtures import (
    FakeConverter,
    FakeRemoteClient,
    make_page,
    make_state,
    read_file,
    write_markdown,
)

SYNCED_AT = "2024-01-15T10:30:00+00:00"


@pytest.fixture
def remote():
    return FakeRemoteClient([make_page("1", "Home"), make_page("4", "FAQ", parent_id="1", version=2)])


@pytest.fixture
def store(tmp_path):
    store = MirrorStateStore(str(tmp_path))
    store.save(make_state({"4": "faq.md"}))
    return store


@pytest.fixture
def orchestrator(remote, store, tmp_path):
    return PushOrchestrator(remote, FakeConverter(), store, str(tmp_path))


def _write_synced_faq(tmp_path, version=2):
    write_markdown(
        tmp_path, "faq.md", "Edited answers\n",
        page_id="4", title="FAQ", version=version, synced_at=SYNCED_AT,
    )


def _frontmatter(tmp_path, rel_path):
    frontmatter, _ = FrontmatterHandler.parse(read_file(tmp_path, rel_path))
    return frontmatter


class TestPushFile:
    """Test cases for push_file."""

    def test_new_file_creates_page(self, orchestrator, remote, store, tmp_path):
        write_markdown(tmp_path, "release-notes.md", "# Release Notes\n\nShipped.\n")

        outcome = orchestrator.push_file("release-notes.md", store.load())

        assert outcome.page.created is True
        assert remote.created == [("Release Notes", None)]
        assert remote.pages[outcome.page.page_id].body == "<p>Shipped.</p>"
        frontmatter = _frontmatter(tmp_path, "release-notes.md")
        assert frontmatter['page_id'] == outcome.page.page_id
        assert frontmatter['version'] == 1
        assert outcome.state.pages[outcome.page.page_id] == "release-notes.md"
        assert store.load().pages == outcome.state.pages

    def test_body_keeps_h1_locally(self, orchestrator, store, tmp_path):
        write_markdown(tmp_path, "notes.md", "# Notes\n\nText\n")

        orchestrator.push_file("notes.md", store.load())

        assert "# Notes" in read_file(tmp_path, "notes.md")

    def test_new_file_is_renamed_to_title(self, orchestrator, store, tmp_path):
        write_markdown(tmp_path, "draft.md", "Body\n", title="Release Notes")

        outcome = orchestrator.push_file("draft.md", store.load())

        assert outcome.page.path == "release-notes.md"
        assert not (tmp_path / "draft.md").exists()
        assert (tmp_path / "release-notes.md").exists()

    def test_new_file_in_directory_creates_folders(self, orchestrator, remote, store, tmp_path):
        write_markdown(tmp_path, "guides/setup/install.md", "Steps\n", title="Install")

        outcome = orchestrator.push_file("guides/setup/install.md", store.load())

        assert [title for title, _ in remote.created_folders] == ["guides", "setup"]
        setup = outcome.state.folder_by_path("guides/setup")
        assert remote.created == [("Install", setup.folder_id)]

    def test_declared_parent_must_exist(self, orchestrator, store, tmp_path):
        write_markdown(tmp_path, "child.md", "x\n", title="Child", parent_id="404")

        with pytest.raises(PageNotFoundError) as exc_info:
            orchestrator.push_file("child.md", store.load())

        assert exc_info.value.page_id == "404"

    def test_declared_parent_is_used(self, orchestrator, remote, store, tmp_path):
        write_markdown(tmp_path, "child.md", "x\n", title="Child", parent_id="1")

        orchestrator.push_file("child.md", store.load())

        assert remote.created == [("Child", "1")]

    def test_existing_page_updates_next_version(self, orchestrator, remote, store, tmp_path):
        _write_synced_faq(tmp_path)

        outcome = orchestrator.push_file("faq.md", store.load())

        assert remote.updated == [("4", 3)]
        assert outcome.page.created is False
        assert _frontmatter(tmp_path, "faq.md")['version'] == 3
        assert detect_push_candidates(str(tmp_path)) == []

    def test_stale_local_version_conflicts(self, orchestrator, remote, store, tmp_path):
        """Local version 2 against remote version 3 is refused."""
        _write_synced_faq(tmp_path, version=2)
        remote.pages["4"].version = 3

        with pytest.raises(VersionConflictError) as exc_info:
            orchestrator.push_file("faq.md", store.load())

        assert exc_info.value.local_version == 2
        assert exc_info.value.remote_version == 3
        assert remote.updated == []
        assert _frontmatter(tmp_path, "faq.md")['version'] == 2

    def test_force_overwrites_newer_remote(self, orchestrator, remote, store, tmp_path):
        _write_synced_faq(tmp_path, version=2)
        remote.pages["4"].version = 3

        orchestrator.push_file("faq.md", store.load(), force=True)

        assert remote.updated == [("4", 4)]

    def test_deleted_remote_page_is_not_found(self, orchestrator, remote, store, tmp_path):
        _write_synced_faq(tmp_path)
        del remote.pages["4"]

        with pytest.raises(PageNotFoundError):
            orchestrator.push_file("faq.md", store.load())

    def test_dry_run_changes_nothing(self, orchestrator, remote, store, tmp_path):
        _write_synced_faq(tmp_path)
        before = read_file(tmp_path, "faq.md")

        outcome = orchestrator.push_file("faq.md", store.load(), dry_run=True)

        assert outcome.page is None
        assert remote.updated == []
        assert read_file(tmp_path, "faq.md") == before

    def test_content_too_large(self, orchestrator, store, tmp_path):
        write_markdown(tmp_path, "big.md", "x" * (MAX_PAGE_SIZE + 1), title="Big")

        with pytest.raises(ContentTooLargeError) as exc_info:
            orchestrator.push_file("big.md", store.load())

        assert exc_info.value.limit == MAX_PAGE_SIZE

    @pytest.mark.parametrize("path,reason", [
        ("notes.txt", "not a Markdown file"),
        ("missing.md", "file not found"),
    ])
    def test_invalid_targets(self, orchestrator, store, tmp_path, path, reason):
        (tmp_path / "notes.txt").write_text("x")

        with pytest.raises(InvalidPushTargetError) as exc_info:
            orchestrator.push_file(path, store.load())

        assert exc_info.value.reason == reason

    def test_non_utf8_file_is_invalid_target(self, orchestrator, store, tmp_path):
        (tmp_path / "latin.md").write_bytes(b"caf\xe9\n")

        with pytest.raises(InvalidPushTargetError) as exc_info:
            orchestrator.push_file("latin.md", store.load())

        assert exc_info.value.reason == "file is not valid UTF-8"

    def test_body_code_comment_is_sent_unchanged(self, orchestrator, remote, store, tmp_path):
        write_markdown(tmp_path, "setup.md", "Intro\n\n```bash\n# install deps\n```\n", title="Setup")

        outcome = orchestrator.push_file("setup.md", store.load())

        assert "# install deps" in remote.pages[outcome.page.page_id].body

    def test_link_to_recorded_page_becomes_page_link(self, orchestrator, remote, store, tmp_path):
        _write_synced_faq(tmp_path)
        write_markdown(tmp_path, "notes.md", "See [answers](faq.md#billing)\n", title="Notes")

        outcome = orchestrator.push_file("notes.md", store.load())

        assert 'ri:content-title="FAQ"' in remote.pages[outcome.page.page_id].body

    def test_link_to_unrecorded_file_is_left_alone(self, orchestrator, remote, store, tmp_path):
        write_markdown(tmp_path, "draft.md", "x\n", title="Draft")
        write_markdown(tmp_path, "notes.md", "See [draft](draft.md)\n", title="Notes")

        outcome = orchestrator.push_file("notes.md", store.load())

        assert "[draft](draft.md)" in remote.pages[outcome.page.page_id].body

    def test_changed_parent_moves_page(self, orchestrator, remote, store, tmp_path):
        remote.pages["9"] = make_page("9", "Archive")
        write_markdown(
            tmp_path, "faq.md", "Edited answers\n",
            page_id="4", title="FAQ", version=2, parent_id="9", synced_at=SYNCED_AT,
        )

        orchestrator.push_file("faq.md", store.load())

        assert remote.moved == [("4", "9")]
        assert remote.updated == [("4", 3)]
        assert remote.pages["4"].parent_id == "9"
        assert _frontmatter(tmp_path, "faq.md")['parent_id'] == "9"

    def test_unchanged_parent_does_not_move(self, orchestrator, remote, store, tmp_path):
        write_markdown(
            tmp_path, "faq.md", "Edited answers\n",
            page_id="4", title="FAQ", version=2, parent_id="1", synced_at=SYNCED_AT,
        )

        orchestrator.push_file("faq.md", store.load())

        assert remote.moved == []
        assert remote.updated == [("4", 3)]

    def test_missing_move_target_leaves_page_untouched(self, orchestrator, remote, store, tmp_path):
        write_markdown(
            tmp_path, "faq.md", "Edited answers\n",
            page_id="4", title="FAQ", version=2, parent_id="404", synced_at=SYNCED_AT,
        )

        with pytest.raises(PageNotFoundError):
            orchestrator.push_file("faq.md", store.load())

        assert remote.updated == []
        assert _frontmatter(tmp_path, "faq.md")['version'] == 2

    def test_dry_run_does_not_move(self, orchestrator, remote, store, tmp_path):
        remote.pages["9"] = make_page("9", "Archive")
        write_markdown(
            tmp_path, "faq.md", "x\n", page_id="4", title="FAQ", version=2, parent_id="9",
        )

        orchestrator.push_file("faq.md", store.load(), dry_run=True)

        assert remote.moved == []


class TestPushBatch:
    """Test cases for push_batch."""

    def test_not_configured(self, remote, tmp_path):
        orchestrator = PushOrchestrator(remote, FakeConverter(), MirrorStateStore(str(tmp_path)), str(tmp_path))

        with pytest.raises(NotConfiguredError):
            orchestrator.push_batch()

    def test_link_targets_are_pushed_first(self, orchestrator, remote, tmp_path):
        write_markdown(tmp_path, "a.md", "[b](b.md)\n", title="Alpha")
        write_markdown(tmp_path, "b.md", "[c](c.md)\n", title="Beta")
        write_markdown(tmp_path, "c.md", "leaf\n", title="Gamma")

        result = orchestrator.push_batch()

        assert [title for title, _ in remote.created] == ["Gamma", "Beta", "Alpha"]
        assert result.pushed == 3
        assert result.failed == 0

    def test_rename_repairs_links_before_linking_file_is_pushed(self, orchestrator, remote, tmp_path):
        write_markdown(tmp_path, "index.md", "[notes](draft.md)\n", title="Index")
        write_markdown(tmp_path, "draft.md", "Body\n", title="Release Notes")

        orchestrator.push_batch()

        assert "[notes](release-notes.md)" in read_file(tmp_path, "index.md")
        index_page = next(p for p in remote.pages.values() if p.title == "Index")
        assert 'ri:content-title="Release Notes"' in index_page.body

    def test_dry_run_reports_order_only(self, orchestrator, remote, tmp_path):
        write_markdown(tmp_path, "a.md", "[b](b.md)\n", title="Alpha")
        write_markdown(tmp_path, "b.md", "[a](a.md)\n", title="Beta")

        result = orchestrator.push_batch(dry_run=True)

        assert result.dry_run
        assert [c.path for c in result.sorted] == ["a.md", "b.md"]
        assert result.cycles == [["a.md", "b.md"]]
        assert remote.created == []

    def test_failures_are_collected_and_batch_continues(self, orchestrator, remote, tmp_path):
        _write_synced_faq(tmp_path, version=2)
        remote.pages["4"].version = 3
        write_markdown(tmp_path, "new.md", "x\n", title="New")

        result = orchestrator.push_batch()

        assert result.pushed == 1
        assert [path for path, _ in result.failed_files] == ["faq.md"]
        assert "Version conflict on page 4" in result.failed_files[0][1]
        assert [p.title for p in result.pushed_pages] == ["New"]

    def test_state_is_folded_through_batch(self, orchestrator, store, tmp_path):
        write_markdown(tmp_path, "one.md", "x\n", title="One")
        write_markdown(tmp_path, "two.md", "y\n", title="Two")

        result = orchestrator.push_batch()

        assert sorted(result.state.pages.values()) == ["faq.md", "one.md", "two.md"]
        assert store.load().pages == result.state.pages

    def test_progress_callback(self, orchestrator, tmp_path):
        write_markdown(tmp_path, "one.md", "x\n", title="One")
        calls = []

        orchestrator.push_batch(on_progress=lambda done, total, c: calls.append((done, total, c.path)))

        assert calls == [(1, 1, "one.md")]

    def test_pages_pushed_earlier_resolve_as_link_targets(self, orchestrator, remote, tmp_path):
        write_markdown(tmp_path, "a.md", "[b](b.md)\n", title="Alpha")
        write_markdown(tmp_path, "b.md", "[c](c.md)\n", title="Beta")
        write_markdown(tmp_path, "c.md", "leaf\n", title="Gamma")

        orchestrator.push_batch()

        bodies = {page.title: page.body for page in remote.pages.values()}
        assert 'ri:content-title="Gamma"' in bodies["Beta"]
        assert 'ri:content-title="Beta"' in bodies["Alpha"]

    def test_conflicts_are_counted_separately(self, orchestrator, remote, tmp_path):
        _write_synced_faq(tmp_path, version=2)
        remote.pages["4"].version = 3
        write_markdown(tmp_path, "child.md", "x\n", title="Child", parent_id="404")

        result = orchestrator.push_batch()

        assert result.failed == 2
        assert result.conflicts == 1

    def test_cancel_stops_between_files(self, orchestrator, remote, store, tmp_path):
        write_markdown(tmp_path, "one.md", "x\n", title="One")
        write_markdown(tmp_path, "two.md", "y\n", title="Two")
        token = CancellationToken()

        result = orchestrator.push_batch(
            on_progress=lambda done, total, c: token.cancel(), cancel_token=token
        )

        assert result.cancelled
        assert result.pushed == 1
        assert [title for title, _ in remote.created] == ["One"]
        assert sorted(store.load().pages.values()) == ["faq.md", "one.md"]

    def test_cancelled_before_start_pushes_nothing(self, orchestrator, remote, tmp_path):
        write_markdown(tmp_path, "one.md", "x\n", title="One")
        token = CancellationToken()
        token.cancel()

        result = orchestrator.push_batch(cancel_token=token)

        assert result.cancelled
        assert result.pushed == 0
        assert remote.created == []

    def test_non_utf8_file_does_not_stop_batch(self, orchestrator, remote, tmp_path):
        (tmp_path / "latin.md").write_bytes(b"caf\xe9 [one](one.md)\n")
        write_markdown(tmp_path, "one.md", "x\n", title="One")

        result = orchestrator.push_batch()

        assert result.pushed == 1
        assert result.failed == 0
