"""Data models for remote nodes, local records and sync collections."""

from confluence_mirror.models.content_location import (
    CandidateType,
    ChangeSet,
    ChangeType,
    FolderRecord,
    LocalRecord,
    NodeKind,
    PageState,
    PushCandidate,
    RemoteNode,
    SyncChange,
)
from confluence_mirror.models.results import Conflict, NotFound, Ok, Result, TransportError

__all__ = [
    'CandidateType',
    'ChangeSet',
    'ChangeType',
    'FolderRecord',
    'LocalRecord',
    'NodeKind',
    'PageState',
    'PushCandidate',
    'RemoteNode',
    'SyncChange',
    'Conflict',
    'NotFound',
    'Ok',
    'Result',
    'TransportError',
]
