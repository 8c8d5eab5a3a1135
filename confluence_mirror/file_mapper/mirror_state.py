"""Mirror state model and its persistence.

The mirror state is the only durable bookkeeping besides the Markdown files
themselves: which space the directory mirrors, when it was last pulled,
and where each remote page and folder lives locally. It is stored as JSON
in `.confluence.json` at the mirror root:

    {
      "spaceKey": "TEAM",
      "spaceId": "98765",
      "spaceName": "Team Space",
      "lastSync": "2024-01-15T10:30:00+00:00",
      "pages": {"123": "getting-started.md"},
      "folders": {"456": {"folderId": "456", "title": "Guides",
                          "parentId": null, "localPath": "guides"}}
    }

MirrorState is treated as a value: the with_* helpers return updated copies
so each apply step hands an explicit new state to the store.
"""

import json
import logging
import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from confluence_mirror.models import FolderRecord, LocalRecord

from .errors import ConfigError, FilesystemError

logger = logging.getLogger(__name__)

STATE_FILE_NAME = '.confluence.json'


@dataclass
class MirrorState:
    """Space identity plus page and folder records for one mirror.

    Attributes:
        space_key: Confluence space key (e.g., "TEAM")
        space_id: Numeric space id used by the v2 API
        space_name: Human readable space name
        last_sync: ISO 8601 timestamp of the last completed pull
        pages: Map of page id to slash-separated local path
        folders: Map of folder id to FolderRecord
    """
    space_key: str
    space_id: str
    space_name: str = ""
    last_sync: Optional[str] = None
    pages: Dict[str, str] = field(default_factory=dict)
    folders: Dict[str, FolderRecord] = field(default_factory=dict)

    def with_page(self, page_id: str, local_path: str) -> 'MirrorState':
        pages = dict(self.pages)
        pages[page_id] = local_path
        return replace(self, pages=pages)

    def without_page(self, page_id: str) -> 'MirrorState':
        pages = {pid: path for pid, path in self.pages.items() if pid != page_id}
        return replace(self, pages=pages)

    def with_folder(self, record: FolderRecord) -> 'MirrorState':
        folders = dict(self.folders)
        folders[record.folder_id] = record
        return replace(self, folders=folders)

    def with_last_sync(self, timestamp: str) -> 'MirrorState':
        return replace(self, last_sync=timestamp)

    def cleared_pages(self) -> 'MirrorState':
        return replace(self, pages={})

    def folder_by_path(self, local_path: str) -> Optional[FolderRecord]:
        for record in self.folders.values():
            if record.local_path == local_path:
                return record
        return None

    def page_id_for_path(self, local_path: str) -> Optional[str]:
        for page_id, path in self.pages.items():
            if path == local_path:
                return page_id
        return None

    def records(self) -> List[LocalRecord]:
        return [LocalRecord(page_id=pid, local_path=path) for pid, path in self.pages.items()]


class MirrorStateStore:
    """Loads and saves MirrorState as `.confluence.json` under a mirror root.

    A missing file means the directory is not configured. A file that cannot
    be parsed or validated is logged and treated the same way, so a corrupt
    state never aborts with a stack trace; `init` can recreate it.
    """

    def __init__(self, root: str):
        self.root = root
        self.path = os.path.join(root, STATE_FILE_NAME)

    def exists(self) -> bool:
        return os.path.isfile(self.path)

    def load(self) -> Optional[MirrorState]:
        """Read the state file.

        Returns:
            MirrorState, or None if the file is missing or invalid

        Raises:
            FilesystemError: If the file exists but cannot be read
        """
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                content = f.read()
        except FileNotFoundError:
            return None
        except PermissionError:
            raise FilesystemError(self.path, 'read', 'Permission denied')
        except OSError as e:
            raise FilesystemError(self.path, 'read', str(e))
        except UnicodeDecodeError as e:
            logger.warning(f"Ignoring invalid mirror state {self.path}: {e}")
            return None

        try:
            data = json.loads(content)
            return self._parse_state(data)
        except (json.JSONDecodeError, ConfigError) as e:
            logger.warning(f"Ignoring invalid mirror state {self.path}: {e}")
            return None

    def save(self, state: MirrorState) -> None:
        """Write the state atomically (temp sibling, then os.replace).

        Raises:
            FilesystemError: If the file cannot be written
        """
        payload = {
            'spaceKey': state.space_key,
            'spaceId': state.space_id,
            'spaceName': state.space_name,
            'lastSync': state.last_sync,
            'pages': dict(state.pages),
            'folders': {
                folder_id: {
                    'folderId': record.folder_id,
                    'title': record.title,
                    'parentId': record.parent_id,
                    'localPath': record.local_path,
                }
                for folder_id, record in state.folders.items()
            },
        }

        temp_path = f"{self.path}.tmp"
        try:
            os.makedirs(self.root, exist_ok=True)
            with open(temp_path, 'w', encoding='utf-8') as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
                f.write('\n')
            os.replace(temp_path, self.path)
        except PermissionError:
            raise FilesystemError(self.path, 'write', 'Permission denied')
        except OSError as e:
            raise FilesystemError(self.path, 'write', str(e))
        finally:
            if os.path.exists(temp_path):
                os.unlink(temp_path)

    @classmethod
    def _parse_state(cls, data: Any) -> MirrorState:
        """Validate the decoded JSON document.

        Raises:
            ConfigError: If a required field is missing or mistyped
        """
        if not isinstance(data, dict):
            raise ConfigError(f"State must be a JSON object, got {type(data).__name__}")

        for key in ('spaceKey', 'spaceId'):
            if not isinstance(data.get(key), str) or not data[key]:
                raise ConfigError("Field is required and must be a non-empty string", key)

        pages = data.get('pages') or {}
        if not isinstance(pages, dict):
            raise ConfigError("Field must be an object", 'pages')
        for page_id, path in pages.items():
            if not isinstance(path, str):
                raise ConfigError(f"Path for page {page_id} must be a string", 'pages')

        folders: Dict[str, FolderRecord] = {}
        raw_folders = data.get('folders') or {}
        if not isinstance(raw_folders, dict):
            raise ConfigError("Field must be an object", 'folders')
        for folder_id, raw in raw_folders.items():
            if not isinstance(raw, dict) or not isinstance(raw.get('localPath'), str):
                raise ConfigError(f"Folder {folder_id} is malformed", 'folders')
            folders[folder_id] = FolderRecord(
                folder_id=str(raw.get('folderId', folder_id)),
                title=str(raw.get('title', '')),
                parent_id=raw.get('parentId'),
                local_path=raw['localPath'],
            )

        last_sync = data.get('lastSync')
        return MirrorState(
            space_key=data['spaceKey'],
            space_id=data['spaceId'],
            space_name=str(data.get('spaceName') or ''),
            last_sync=last_sync if isinstance(last_sync, str) else None,
            pages={str(pid): path for pid, path in pages.items()},
            folders=folders,
        )


class InMemoryStateStore:
    """MirrorStateStore stand-in that keeps state in memory.

    Every saved snapshot is kept in `saves` so tests can assert on
    incremental persistence.
    """

    def __init__(self, state: Optional[MirrorState] = None):
        self.state = state
        self.saves: List[MirrorState] = []

    def exists(self) -> bool:
        return self.state is not None

    def load(self) -> Optional[MirrorState]:
        return self.state

    def save(self, state: MirrorState) -> None:
        self.state = state
        self.saves.append(state)
