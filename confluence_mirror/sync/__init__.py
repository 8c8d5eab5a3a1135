"""Sync engine: diffing, pull and push orchestration, renames and link repair."""

from .cancellation import CancellationToken, install_sigint_handler
from .dependency_sorter import SortResult, extract_local_links, sort_by_dependencies
from .diff_engine import compute_diff, full_resync
from .errors import (
    ContentTooLargeError,
    EngineError,
    FolderHierarchyError,
    InvalidPushTargetError,
    NotConfiguredError,
    RenameError,
)
from .folder_hierarchy import FolderHierarchyResult, ensure_folder_hierarchy
from .page_resolver import resolve_page_refs
from .pull_orchestrator import PullOrchestrator, PullResult
from .push_orchestrator import (
    MAX_PAGE_SIZE,
    PushBatchResult,
    PushedPage,
    PushFileResult,
    PushOrchestrator,
)
from .reference_updater import ReferenceUpdateResult, rewrite_links, update_references
from .rename_handler import RenameHandler, RenameResult
from .version_guard import VersionConflictGuard, check_version

__all__ = [
    'CancellationToken',
    'install_sigint_handler',
    'SortResult',
    'extract_local_links',
    'sort_by_dependencies',
    'compute_diff',
    'full_resync',
    'ContentTooLargeError',
    'EngineError',
    'FolderHierarchyError',
    'InvalidPushTargetError',
    'NotConfiguredError',
    'RenameError',
    'FolderHierarchyResult',
    'ensure_folder_hierarchy',
    'resolve_page_refs',
    'PullOrchestrator',
    'PullResult',
    'MAX_PAGE_SIZE',
    'PushBatchResult',
    'PushedPage',
    'PushFileResult',
    'PushOrchestrator',
    'ReferenceUpdateResult',
    'rewrite_links',
    'update_references',
    'RenameHandler',
    'RenameResult',
    'VersionConflictGuard',
    'check_version',
]
