"""Atomic file writes and renames with backup rollback.

Renames keep the on-disk filename aligned with the remote page title. The
procedure never leaves the mirror without the document:

    1. write the new content into a private scratch directory
    2. if the target belongs to a different page, keep the old filename
    3. move the old file to <old>.bak
    4. move the scratch file onto the target
    5. delete the .bak
    6. if step 4 fails, move the .bak back and raise

The scratch directory lives inside the mirror root so every move is a
same-filesystem os.replace, and it is removed on every exit path.
"""

import logging
import os
import posixpath
import shutil
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

from confluence_mirror.file_mapper.errors import FileMapperError
from confluence_mirror.file_mapper.frontmatter_handler import FrontmatterHandler
from confluence_mirror.file_mapper.path_safety import remove_empty_parents, resolve_within
from confluence_mirror.file_mapper.slugify import slugify

from .errors import RenameError

logger = logging.getLogger(__name__)

INDEX_FILES = ('README.md', 'index.md')
SCRATCH_PREFIX = '.rename-'


@dataclass
class RenameResult:
    """Outcome of a write or rename.

    Attributes:
        final_path: Mirror-relative path now holding the content
        was_renamed: True if the content moved to a new path
    """
    final_path: str
    was_renamed: bool


class RenameHandler:
    """Writes and renames documents inside one mirror root."""

    def __init__(self, root: str):
        self.root = os.path.realpath(root)

    @contextmanager
    def _scratch_file(self, content: str) -> Iterator[str]:
        scratch_dir = tempfile.mkdtemp(prefix=SCRATCH_PREFIX, dir=self.root)
        try:
            temp_file = os.path.join(scratch_dir, 'content.md')
            with open(temp_file, 'w', encoding='utf-8') as f:
                f.write(content)
            yield temp_file
        finally:
            shutil.rmtree(scratch_dir, ignore_errors=True)

    def write_atomic(self, rel_path: str, content: str) -> RenameResult:
        """Replace (or create) a file in one os.replace step.

        Raises:
            FilesystemError: If the path resolves outside the mirror root
        """
        full_path = resolve_within(self.root, rel_path)
        with self._scratch_file(content) as temp_file:
            os.makedirs(os.path.dirname(full_path), exist_ok=True)
            os.replace(temp_file, full_path)
        return RenameResult(final_path=rel_path, was_renamed=False)

    def rename(self, old_rel: str, new_rel: str, content: str) -> RenameResult:
        """Write content to new_rel and retire old_rel atomically.

        Args:
            old_rel: Current mirror-relative path
            new_rel: Desired mirror-relative path
            content: Full new file content (frontmatter included)

        Returns:
            RenameResult with the path that now holds the content

        Raises:
            FilesystemError: If either path resolves outside the mirror root
            RenameError: If the move failed; the old file has been restored
        """
        if old_rel == new_rel:
            return self.write_atomic(old_rel, content)

        old_full = resolve_within(self.root, old_rel)
        new_full = resolve_within(self.root, new_rel)

        with self._scratch_file(content) as temp_file:
            if not os.path.exists(old_full):
                os.makedirs(os.path.dirname(new_full), exist_ok=True)
                os.replace(temp_file, new_full)
                return RenameResult(final_path=new_rel, was_renamed=True)

            if os.path.exists(new_full) and self._belongs_to_other_page(new_full, content):
                logger.warning(
                    f"Keeping filename {old_rel}: {new_rel} already exists for another page"
                )
                os.replace(temp_file, old_full)
                return RenameResult(final_path=old_rel, was_renamed=False)

            backup_path = f"{old_full}.bak"
            os.replace(old_full, backup_path)
            try:
                os.makedirs(os.path.dirname(new_full), exist_ok=True)
                os.replace(temp_file, new_full)
            except OSError as e:
                try:
                    os.replace(backup_path, old_full)
                except OSError as restore_error:
                    logger.error(
                        f"Failed to restore {old_rel}, backup left at {backup_path}: {restore_error}"
                    )
                raise RenameError(old_rel, new_rel, str(e)) from e

            try:
                os.unlink(backup_path)
            except OSError as e:
                logger.warning(f"Could not remove backup {backup_path}: {e}")

        remove_empty_parents(self.root, old_full)
        logger.info(f"  ↻ Renamed {old_rel} -> {new_rel}")
        return RenameResult(final_path=new_rel, was_renamed=True)

    def rename_to_title(self, rel_path: str, title: str, content: str) -> RenameResult:
        """Write content, renaming the file to match title where allowed.

        Index files keep their name, as do files whose title slugs to an
        empty string.
        """
        directory, filename = posixpath.split(rel_path)
        expected_slug = slugify(title)
        expected_filename = f"{expected_slug}.md"

        if filename in INDEX_FILES or not expected_slug or expected_filename == filename:
            return self.write_atomic(rel_path, content)

        new_rel = posixpath.join(directory, expected_filename) if directory else expected_filename
        return self.rename(rel_path, new_rel, content)

    @staticmethod
    def _belongs_to_other_page(target_path: str, content: str) -> bool:
        """True unless the target file carries the same page_id as content."""
        try:
            incoming, _ = FrontmatterHandler.parse(content)
            with open(target_path, 'r', encoding='utf-8') as f:
                existing, _ = FrontmatterHandler.parse(f.read(), target_path)
        except (OSError, UnicodeDecodeError, FileMapperError):
            return True

        incoming_id: Optional[object] = incoming.get('page_id')
        existing_id: Optional[object] = existing.get('page_id')
        if incoming_id is None or existing_id is None:
            return True
        return str(incoming_id) != str(existing_id)
