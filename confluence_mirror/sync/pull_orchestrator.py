"""Pull orchestration: bring the local mirror up to date with the remote space.

One pull runs strictly sequentially:

    1. load the mirror state (NotConfiguredError if there is none)
    2. list remote pages and the folders above them
    3. resolve --page references into forced page ids
    4. diff the remote listing against frontmatter versions
    5. apply added, modified and deleted pages one at a time, saving the
       mirror state after each page
    6. stamp last_sync

A failure on one page is recorded and the batch moves on; a failure while
listing the space aborts before anything is written.
"""

import logging
import os
import posixpath
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set

from confluence_mirror.confluence_client.errors import SyncError
from confluence_mirror.confluence_client.remote_client import RemoteClient
from confluence_mirror.content_converter import MarkdownConverter, PageLink, PageLookup
from confluence_mirror.file_mapper.errors import FileMapperError, FilesystemError
from confluence_mirror.file_mapper.frontmatter_handler import FrontmatterHandler, utc_now
from confluence_mirror.file_mapper.mirror_state import MirrorState
from confluence_mirror.file_mapper.page_state_reader import read_page_states
from confluence_mirror.file_mapper.path_generator import PathGenerator
from confluence_mirror.file_mapper.path_safety import remove_empty_parents, resolve_within
from confluence_mirror.models import ChangeSet, FolderRecord, RemoteNode, SyncChange

from .cancellation import CancellationToken
from .diff_engine import compute_diff, full_resync
from .errors import NotConfiguredError
from .page_resolver import resolve_page_refs
from .reference_updater import update_references
from .rename_handler import INDEX_FILES, RenameHandler

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, SyncChange], None]


@dataclass
class PullResult:
    """Outcome of one pull.

    Attributes:
        changes: Change set computed for the run
        warnings: Non-fatal notes (unresolved refs, conversion loss, link repair)
        errors: One message per page that failed to apply
        cancelled: True if the run stopped early on request
        dry_run: True if nothing was written
        applied: Number of changes applied successfully
    """
    changes: ChangeSet
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    cancelled: bool = False
    dry_run: bool = False
    applied: int = 0

    @property
    def success(self) -> bool:
        return not self.errors and not self.cancelled


class PullOrchestrator:
    """Applies remote changes to the local mirror.

    Example:
        >>> orchestrator = PullOrchestrator(remote, MarkdownConverter(), store, "./docs")
        >>> result = orchestrator.run()
        >>> result.changes.total
        3
    """

    def __init__(
        self,
        remote_client: RemoteClient,
        converter: MarkdownConverter,
        store,
        root: str,
        cancel_token: Optional[CancellationToken] = None,
        on_progress: Optional[ProgressCallback] = None,
    ):
        """Initialize the orchestrator.

        Args:
            remote_client: Client bound to the mirrored space
            converter: Storage/Markdown converter
            store: MirrorStateStore (or an in-memory stand-in)
            root: Mirror root directory
            cancel_token: Token checked before each page (optional)
            on_progress: Called with (done, total, change) after each page (optional)
        """
        self._remote = remote_client
        self._converter = converter
        self._store = store
        self.root = root
        self._renamer = RenameHandler(root)
        self._cancel_token = cancel_token or CancellationToken()
        self._on_progress = on_progress

    def run(
        self,
        force: bool = False,
        dry_run: bool = False,
        page_refs: Optional[List[str]] = None,
    ) -> PullResult:
        """Execute a pull.

        Args:
            force: Discard recorded state and download every page again
            dry_run: Compute and return the change set without writing
            page_refs: Page ids or local paths to re-download regardless of version

        Returns:
            PullResult describing what happened

        Raises:
            NotConfiguredError: If the root has no mirror state
            ConfluenceError: If the remote space cannot be listed
        """
        state = self._store.load()
        if state is None:
            raise NotConfiguredError(self.root)

        logger.info(f"Listing pages in space {state.space_key}")
        pages = self._remote.list_pages(state.space_id)
        folders = self._remote.list_folders(pages)
        logger.info(f"Found {len(pages)} page(s) and {len(folders)} folder(s)")

        homepage_id = next((p.id for p in pages if not p.parent_id), None)
        generator = PathGenerator(pages + folders, homepage_id=homepage_id)
        listed: Dict[str, RemoteNode] = {}
        for node in pages + folders:
            listed.setdefault(node.id, node)

        warnings: List[str] = []
        force_ids: List[str] = []
        if page_refs:
            force_ids, ref_warnings = resolve_page_refs(page_refs, {p.id for p in pages}, state)
            warnings.extend(ref_warnings)

        if force:
            changes = full_resync(pages)
        else:
            page_states, state_warnings = read_page_states(self.root, state.pages)
            warnings.extend(state_warnings)
            changes = compute_diff(pages, state.pages, page_states, force_ids)

        result = PullResult(changes=changes, warnings=warnings, dry_run=dry_run)
        logger.info(
            f"Changes: {len(changes.added)} added, {len(changes.modified)} modified, "
            f"{len(changes.deleted)} deleted"
        )
        if dry_run:
            return result

        previous_pages: Dict[str, str] = {}
        if force:
            previous_pages = dict(state.pages)
            state = state.cleared_pages()
            self._store.save(state)

        state = self._record_folders(state, folders, generator)
        assigned: Set[str] = set(state.pages.values())
        failed_ids: Set[str] = set()

        units = (
            [(change, self._apply_added) for change in changes.added]
            + [(change, self._apply_modified) for change in changes.modified]
            + [(change, self._apply_deleted) for change in changes.deleted]
        )
        for done, (change, apply) in enumerate(units, start=1):
            if self._cancel_token.cancelled:
                logger.warning("Pull cancelled, remaining changes were not applied")
                result.cancelled = True
                break

            try:
                state = apply(change, state, generator, listed, assigned, result)
                self._store.save(state)
                result.applied += 1
            except (SyncError, OSError, UnicodeDecodeError) as e:
                logger.error(f"  ✗ {change.title} ({change.page_id}): {e}")
                result.errors.append(f"{change.title} ({change.page_id}): {e}")
                failed_ids.add(change.page_id)

            if self._on_progress:
                self._on_progress(done, len(units), change)

        if force and not result.cancelled:
            self._remove_stale_files(previous_pages, state, failed_ids)

        if not result.cancelled:
            state = state.with_last_sync(utc_now())
            self._store.save(state)

        return result

    def _record_folders(
        self, state: MirrorState, folders: List[RemoteNode], generator: PathGenerator
    ) -> MirrorState:
        for folder in folders:
            state = state.with_folder(FolderRecord(
                folder_id=folder.id,
                title=folder.title,
                parent_id=folder.parent_id,
                local_path=generator.folder_path(folder),
            ))
        if folders:
            self._store.save(state)
        return state

    def _render(self, page: RemoteNode, markdown: str, space_key: str,
                listed: Dict[str, RemoteNode], existing: Optional[Dict] = None) -> str:
        parent = listed.get(page.parent_id) if page.parent_id else None
        managed = FrontmatterHandler.from_remote(
            page,
            space_key,
            parent_title=parent.title if parent else None,
            synced_at=utc_now(),
        )
        frontmatter = FrontmatterHandler.merge(existing or {}, managed)
        return FrontmatterHandler.serialize(frontmatter, markdown)

    def _convert(self, page: RemoteNode, path: str, state: MirrorState,
                 listed: Dict[str, RemoteNode], result: PullResult) -> str:
        """Convert a fetched page body for writing at path.

        Page links resolve against the pages already recorded in state.
        """
        lookup = PageLookup(
            PageLink(page_id=page_id, local_path=local_path, title=listed[page_id].title)
            for page_id, local_path in state.pages.items()
            if page_id in listed
        )
        markdown, conversion_warnings = self._converter.to_local_format(
            page.body or '', source_path=path, lookup=lookup
        )
        for warning in conversion_warnings:
            result.warnings.append(f"{page.title}: {warning}")
        return markdown

    def _existing_frontmatter(self, rel_path: str, page_id: str) -> Dict:
        """User fields of the file at rel_path, if it belongs to page_id."""
        try:
            full_path = resolve_within(self.root, rel_path)
            with open(full_path, 'r', encoding='utf-8') as f:
                frontmatter, _ = FrontmatterHandler.parse(f.read(), rel_path)
        except (OSError, UnicodeDecodeError, FileMapperError):
            return {}
        if str(frontmatter.get('page_id')) != page_id:
            return {}
        return frontmatter

    def _apply_added(self, change, state, generator, listed, assigned, result) -> MirrorState:
        page = self._remote.get_page(change.page_id)
        path = generator.generate(listed.get(page.id, page), assigned)
        resolve_within(self.root, path)
        markdown = self._convert(page, path, state, listed, result)

        existing = self._existing_frontmatter(path, page.id)
        content = self._render(page, markdown, state.space_key, listed, existing)
        self._renamer.write_atomic(path, content)

        logger.info(f"  ↓ {page.title} -> {path}")
        return state.with_page(page.id, path)

    def _apply_modified(self, change, state, generator, listed, assigned, result) -> MirrorState:
        old_path = change.local_path or state.pages[change.page_id]
        page = self._remote.get_page(change.page_id)

        assigned.discard(old_path)
        new_path = generator.generate(listed.get(page.id, page), assigned)
        resolve_within(self.root, new_path)
        markdown = self._convert(page, new_path, state, listed, result)

        existing = self._existing_frontmatter(old_path, page.id)
        content = self._render(page, markdown, state.space_key, listed, existing)

        if new_path == old_path:
            self._renamer.write_atomic(old_path, content)
            final_path = old_path
        elif _is_index(old_path) or _is_index(new_path):
            self._renamer.write_atomic(new_path, content)
            old_full = resolve_within(self.root, old_path)
            if os.path.exists(old_full):
                try:
                    os.unlink(old_full)
                except OSError as e:
                    new_full = resolve_within(self.root, new_path)
                    os.unlink(new_full)
                    remove_empty_parents(self.root, new_full)
                    raise FilesystemError(old_path, 'remove', str(e)) from e
                remove_empty_parents(self.root, old_full)
            logger.info(f"  ↻ Moved {old_path} -> {new_path}")
            final_path = new_path
        else:
            rename = self._renamer.rename(old_path, new_path, content)
            final_path = rename.final_path
            if final_path != new_path:
                assigned.discard(new_path)
                assigned.add(final_path)

        if final_path != old_path:
            references = update_references(self.root, old_path, final_path)
            if references.link_count:
                result.warnings.append(
                    f"Updated {references.link_count} link(s) to {final_path} "
                    f"in {len(references.updated_files)} file(s)"
                )
            if references.failed_count:
                result.warnings.append(
                    f"Could not repair links to {final_path} in {references.failed_count} file(s)"
                )

        logger.info(f"  ↓ {page.title} (v{page.version}) -> {final_path}")
        return state.with_page(page.id, final_path)

    def _apply_deleted(self, change, state, generator, listed, assigned, result) -> MirrorState:
        path = change.local_path or state.pages.get(change.page_id)
        if path:
            full_path = resolve_within(self.root, path)
            if os.path.exists(full_path):
                os.unlink(full_path)
                remove_empty_parents(self.root, full_path)
            assigned.discard(path)
        logger.info(f"  ✗ Deleted {change.title} ({path})")
        return state.without_page(change.page_id)

    def _remove_stale_files(
        self, previous_pages: Dict[str, str], state: MirrorState, failed_ids: Set[str]
    ) -> None:
        """Delete files left behind by a full resync.

        A previously recorded file is kept when its path was reused or when
        its page failed to download again in this run.
        """
        reused = set(state.pages.values())
        for page_id, path in previous_pages.items():
            if path in reused or page_id in failed_ids:
                continue
            try:
                full_path = resolve_within(self.root, path)
            except FileMapperError as e:
                logger.warning(f"Skipping stale file cleanup for {path}: {e}")
                continue
            if os.path.exists(full_path):
                try:
                    os.unlink(full_path)
                except OSError as e:
                    logger.warning(f"Could not remove stale file {path}: {e}")
                    continue
                remove_empty_parents(self.root, full_path)
                logger.info(f"  ✗ Removed stale file {path}")


def _is_index(path: str) -> bool:
    return posixpath.basename(path) in INDEX_FILES
