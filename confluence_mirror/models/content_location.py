"""Content-location data model.

Identity and placement of remote pages and folders, the durable mapping from
remote ids to local paths, and the request-scoped collections (ChangeSet,
PushCandidate) built by the engine on each invocation.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class NodeKind(Enum):
    """Kind of node in the remote content tree."""
    PAGE = "page"
    FOLDER = "folder"


@dataclass
class RemoteNode:
    """A page or folder in the remote tree.

    Parents are referenced by id, never by object, so a malformed response
    cannot create reference cycles in memory.

    Attributes:
        id: Remote-assigned stable identifier
        title: Node title
        parent_id: Parent node id (None for the space root)
        kind: Page or folder
        version: Version number (0 for folders)
        body: Storage-format body, only present when fetched with content
        space_id: Id of the owning space
        created_at: Creation timestamp (ISO 8601)
        updated_at: Timestamp of the current version (ISO 8601)
        author_id: Account id of the creator
        labels: Label names attached to the page
        url: Browser URL of the page
    """
    id: str
    title: str
    parent_id: Optional[str] = None
    kind: NodeKind = NodeKind.PAGE
    version: int = 0
    body: Optional[str] = None
    space_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    author_id: Optional[str] = None
    labels: List[str] = field(default_factory=list)
    url: Optional[str] = None

    @property
    def is_folder(self) -> bool:
        return self.kind is NodeKind.FOLDER


@dataclass
class LocalRecord:
    """Persisted mapping of one synced page to its local file."""
    page_id: str
    local_path: str


@dataclass
class FolderRecord:
    """Persisted mapping of one remote folder to its local directory."""
    folder_id: str
    title: str
    parent_id: Optional[str]
    local_path: str


@dataclass
class PageState:
    """Per-page state read from a local file's frontmatter at diff time.

    Frontmatter is authoritative for "what version does the user have
    locally"; an unreadable file yields no PageState and is treated as
    version 0 by the diff.
    """
    page_id: str
    title: Optional[str] = None
    version: int = 0
    updated_at: Optional[str] = None
    synced_at: Optional[str] = None


class ChangeType(Enum):
    """Classification of a remote page relative to the local mirror."""
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"


@dataclass
class SyncChange:
    """One entry of a ChangeSet."""
    change_type: ChangeType
    page_id: str
    title: str
    local_path: Optional[str] = None


@dataclass
class ChangeSet:
    """Added, modified and deleted pages computed for one pull."""
    added: List[SyncChange] = field(default_factory=list)
    modified: List[SyncChange] = field(default_factory=list)
    deleted: List[SyncChange] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.added) + len(self.modified) + len(self.deleted)

    def is_empty(self) -> bool:
        return self.total == 0


class CandidateType(Enum):
    """Whether a push candidate creates or updates a remote page."""
    NEW = "new"
    MODIFIED = "modified"


@dataclass
class PushCandidate:
    """A local file awaiting push.

    Attributes:
        path: Slash-separated path relative to the mirror root
        candidate_type: NEW (no page_id yet) or MODIFIED
        title: Title from frontmatter or filename
        page_id: Remote page id for MODIFIED candidates
    """
    path: str
    candidate_type: CandidateType
    title: str
    page_id: Optional[str] = None

    @property
    def is_new(self) -> bool:
        return self.candidate_type is CandidateType.NEW
