"""Push orchestration: publish new and modified local files to the remote space."""

import logging
import os
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Tuple

from confluence_mirror.confluence_client.errors import (
    PageNotFoundError,
    SyncError,
    VersionConflictError,
)
from confluence_mirror.confluence_client.remote_client import RemoteClient
from confluence_mirror.content_converter import MarkdownConverter, PageLink, PageLookup
from confluence_mirror.file_mapper.errors import FileMapperError
from confluence_mirror.file_mapper.file_scanner import detect_push_candidates
from confluence_mirror.file_mapper.frontmatter_handler import FrontmatterHandler, utc_now
from confluence_mirror.file_mapper.mirror_state import MirrorState
from confluence_mirror.file_mapper.page_state_reader import as_version
from confluence_mirror.file_mapper.path_safety import resolve_within
from confluence_mirror.models import Conflict, NotFound, Ok, PushCandidate, RemoteNode, TransportError

from .cancellation import CancellationToken
from .dependency_sorter import extract_local_links, sort_by_dependencies
from .errors import ContentTooLargeError, InvalidPushTargetError, NotConfiguredError
from .folder_hierarchy import ensure_folder_hierarchy
from .reference_updater import update_references
from .rename_handler import RenameHandler
from .version_guard import VersionConflictGuard

logger = logging.getLogger(__name__)

# Confluence rejects storage bodies larger than this
MAX_PAGE_SIZE = 65000

PushProgressCallback = Callable[[int, int, PushCandidate], None]


@dataclass
class PushedPage:
    """A page created or updated by a push."""
    path: str
    page_id: str
    title: str
    version: int
    created: bool


@dataclass
class PushFileResult:
    """State after pushing one file; page is None for a dry run."""
    state: MirrorState
    page: Optional[PushedPage] = None


@dataclass
class PushBatchResult:
    """Outcome of pushing every candidate in the mirror.

    Attributes:
        sorted: Candidates in push order
        cycles: Circular link chains found among the candidates
        pushed: Number of files pushed successfully
        skipped: Number of files skipped (always 0 for a batch push)
        failed_files: (path, error message) for each failed file
        conflicts: How many of the failures were version conflicts
        pushed_pages: Pages created or updated
        state: Mirror state after the batch
        dry_run: True if nothing was pushed
        cancelled: True if the batch stopped early on request
    """
    sorted: List[PushCandidate] = field(default_factory=list)
    cycles: List[List[str]] = field(default_factory=list)
    pushed: int = 0
    skipped: int = 0
    failed_files: List[Tuple[str, str]] = field(default_factory=list)
    conflicts: int = 0
    pushed_pages: List[PushedPage] = field(default_factory=list)
    state: Optional[MirrorState] = None
    dry_run: bool = False
    cancelled: bool = False

    @property
    def failed(self) -> int:
        return len(self.failed_files)


class PushOrchestrator:
    """Pushes local Markdown files to Confluence.

    Existing pages pass the version-conflict guard first, so a push never
    silently overwrites a newer remote version unless forced. After a
    successful push the file's frontmatter is refreshed from the remote
    response and the file is renamed to match its title.

    Links to other mirrored files are sent as Confluence page links. The
    pages known for that are the ones in the state handed to push_file, so
    within a batch each push sees the pages pushed before it.
    """

    def __init__(
        self,
        remote_client: RemoteClient,
        converter: MarkdownConverter,
        store,
        root: str,
    ):
        self._remote = remote_client
        self._converter = converter
        self._store = store
        self.root = root
        self._renamer = RenameHandler(root)
        self._guard = VersionConflictGuard(remote_client)

    def load_state(self) -> MirrorState:
        """Load the mirror state or raise NotConfiguredError."""
        state = self._store.load()
        if state is None:
            raise NotConfiguredError(self.root)
        return state

    def push_file(
        self,
        rel_path: str,
        state: MirrorState,
        force: bool = False,
        dry_run: bool = False,
    ) -> PushFileResult:
        """Create or update the remote page for one local file.

        Args:
            rel_path: Mirror-relative path of the Markdown file
            state: Current mirror state
            force: Push over a newer remote version
            dry_run: Validate and check versions without writing anything

        Returns:
            PushFileResult holding the new state and the pushed page

        Raises:
            InvalidPushTargetError: If the file is missing, not Markdown or not UTF-8
            ContentTooLargeError: If the converted body exceeds MAX_PAGE_SIZE
            VersionConflictError: If the remote page has moved on
            PageNotFoundError: If the page or its declared parent is gone
            FolderHierarchyError: If the parent folders cannot be ensured
        """
        if rel_path.startswith('./'):
            rel_path = rel_path[2:]
        if not rel_path.endswith('.md'):
            raise InvalidPushTargetError(rel_path, "not a Markdown file")

        full_path = resolve_within(self.root, rel_path)
        if not os.path.isfile(full_path):
            raise InvalidPushTargetError(rel_path, "file not found")

        try:
            with open(full_path, 'r', encoding='utf-8') as f:
                content = f.read()
        except UnicodeDecodeError:
            raise InvalidPushTargetError(rel_path, "file is not valid UTF-8")
        frontmatter, body = FrontmatterHandler.parse(content, rel_path)
        title = FrontmatterHandler.derive_title(frontmatter, body, rel_path)

        storage, warnings = self._converter.to_remote_format(
            FrontmatterHandler.strip_h1_title(body),
            source_path=rel_path,
            lookup=self._page_lookup(rel_path, body, state),
        )
        for warning in warnings:
            logger.warning(f"{rel_path}: {warning}")
        if len(storage) > MAX_PAGE_SIZE:
            raise ContentTooLargeError(rel_path, len(storage), MAX_PAGE_SIZE)

        page_id = frontmatter.get('page_id')
        if page_id:
            node = self._update_existing(str(page_id), frontmatter, title, storage, force, dry_run)
            created = False
        else:
            node, state = self._create_new(rel_path, frontmatter, title, storage, state, dry_run)
            created = True

        if node is None:
            return PushFileResult(state=state)

        managed = FrontmatterHandler.from_remote(node, state.space_key, synced_at=utc_now())
        managed = {key: value for key, value in managed.items() if value is not None}
        updated = FrontmatterHandler.serialize(FrontmatterHandler.merge(frontmatter, managed), body)

        rename = self._renamer.rename_to_title(rel_path, node.title, updated)
        if rename.was_renamed and rename.final_path != rel_path:
            references = update_references(self.root, rel_path, rename.final_path)
            if references.link_count:
                logger.info(
                    f"Updated {references.link_count} link(s) to {rename.final_path}"
                )

        state = state.with_page(node.id, rename.final_path)
        self._store.save(state)

        arrow = "+" if created else "↑"
        logger.info(f"  {arrow} {rename.final_path} -> {node.title} (v{node.version})")
        return PushFileResult(
            state=state,
            page=PushedPage(
                path=rename.final_path,
                page_id=node.id,
                title=node.title,
                version=node.version,
                created=created,
            ),
        )

    def _create_new(
        self,
        rel_path: str,
        frontmatter: Dict[str, Any],
        title: str,
        storage: str,
        state: MirrorState,
        dry_run: bool,
    ) -> Tuple[Optional[RemoteNode], MirrorState]:
        declared_parent = frontmatter.get('parent_id')
        if declared_parent:
            parent_id: Optional[str] = str(declared_parent)
            lookup = self._remote.find_page(parent_id)
            if isinstance(lookup, NotFound):
                raise PageNotFoundError(parent_id)
            if isinstance(lookup, TransportError):
                raise lookup.error
        else:
            hierarchy = ensure_folder_hierarchy(
                self._remote, state, self._store, rel_path, dry_run=dry_run
            )
            state = hierarchy.state
            parent_id = hierarchy.parent_id

        if dry_run:
            logger.info(f"Would create page '{title}' from {rel_path}")
            return None, state

        return self._remote.create_page(title, storage, parent_id=parent_id), state

    def _update_existing(
        self,
        page_id: str,
        frontmatter: Dict[str, Any],
        title: str,
        storage: str,
        force: bool,
        dry_run: bool,
    ) -> Optional[RemoteNode]:
        lookup = self._remote.find_page(page_id)
        if isinstance(lookup, NotFound):
            raise PageNotFoundError(page_id)
        if isinstance(lookup, TransportError):
            raise lookup.error
        remote = lookup.value

        local_version = as_version(frontmatter.get('version'))
        verdict = self._guard.check(remote, local_version, force)
        if isinstance(verdict, Conflict):
            raise VersionConflictError(page_id, verdict.local_version, verdict.remote_version)
        if not isinstance(verdict, Ok):
            raise SyncError(f"Unexpected version check result for page {page_id}: {verdict}")

        # A parent_id edited in the frontmatter moves the page
        declared_parent = frontmatter.get('parent_id')
        move_to = None
        if declared_parent and str(declared_parent) != remote.parent_id:
            move_to = str(declared_parent)

        if dry_run:
            if move_to:
                logger.info(f"Would move page {page_id} under {move_to}")
            logger.info(f"Would update page {page_id} to version {verdict.value}")
            return None

        if move_to:
            logger.info(f"Moving page {page_id} from {remote.parent_id} to {move_to}")
            self._remote.move_page(page_id, move_to)

        node = self._remote.update_page(page_id, title, storage, verdict.value)
        if move_to:
            node = replace(node, parent_id=move_to)
        return node

    def _page_lookup(self, rel_path: str, body: str, state: MirrorState) -> PageLookup:
        """Pages in state that body links to, titled from their frontmatter."""
        ids_by_path = {path: page_id for page_id, path in state.pages.items()}
        links: List[PageLink] = []
        for target in extract_local_links(body, rel_path):
            page_id = ids_by_path.get(target)
            if page_id is None:
                continue
            title = self._recorded_title(target)
            if title:
                links.append(PageLink(page_id=page_id, local_path=target, title=title))
        return PageLookup(links)

    def _recorded_title(self, rel_path: str) -> Optional[str]:
        try:
            full_path = resolve_within(self.root, rel_path)
            with open(full_path, 'r', encoding='utf-8') as f:
                frontmatter, _ = FrontmatterHandler.parse(f.read(), rel_path)
        except (OSError, UnicodeDecodeError, FileMapperError) as e:
            logger.debug(f"No title for link target {rel_path}: {e}")
            return None
        title = frontmatter.get('title')
        return str(title) if title else None

    def push_batch(
        self,
        force: bool = False,
        dry_run: bool = False,
        on_progress: Optional[PushProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> PushBatchResult:
        """Push every new or modified file, link targets first.

        The state returned by each push is handed to the next one, so a
        page created early in the batch is a known link target for the
        files after it.

        Args:
            force: Push over newer remote versions
            dry_run: Return the push order without pushing
            on_progress: Called with (done, total, candidate) after each file
            cancel_token: Checked before each file; a cancelled batch stops there

        Returns:
            PushBatchResult with order, cycles, counts and the final state

        Raises:
            NotConfiguredError: If the root has no mirror state
        """
        state = self.load_state()
        cancel_token = cancel_token or CancellationToken()

        candidates = detect_push_candidates(self.root)
        ordering = sort_by_dependencies(candidates, root=self.root)
        result = PushBatchResult(
            sorted=ordering.sorted,
            cycles=ordering.cycles,
            state=state,
            dry_run=dry_run,
        )
        logger.info(f"Found {len(candidates)} file(s) to push")

        if dry_run:
            return result

        total = len(ordering.sorted)
        for done, candidate in enumerate(ordering.sorted, start=1):
            if cancel_token.cancelled:
                logger.warning("Push cancelled, remaining files were not pushed")
                result.cancelled = True
                break

            try:
                outcome = self.push_file(candidate.path, state, force=force)
                state = outcome.state
                result.pushed += 1
                if outcome.page:
                    result.pushed_pages.append(outcome.page)
            except (SyncError, OSError) as e:
                logger.error(f"  ✗ {candidate.path}: {e}")
                result.failed_files.append((candidate.path, str(e)))
                if isinstance(e, VersionConflictError):
                    result.conflicts += 1

            if on_progress:
                on_progress(done, total, candidate)

        result.state = state
        return result
