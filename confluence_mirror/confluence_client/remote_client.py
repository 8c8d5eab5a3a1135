"""Remote API client in terms of RemoteNode.

RemoteClient adapts the raw dicts returned by APIWrapper (v1 and v2 shapes)
into RemoteNode objects and exposes the narrow contract the sync engine
consumes: list pages and folders, fetch a page with its body, create,
update and move pages.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from confluence_mirror.models import NodeKind, NotFound, Ok, RemoteNode, Result, TransportError

from .api_wrapper import APIWrapper
from .errors import ConfluenceError, PageNotFoundError

logger = logging.getLogger(__name__)


class RemoteClient:
    """Confluence access for one space, returning RemoteNode objects.

    Example:
        >>> client = RemoteClient(APIWrapper(Authenticator()), space_key="TEAM")
        >>> pages = client.list_pages(space_id="98765")
    """

    def __init__(self, api: APIWrapper, space_key: str):
        self._api = api
        self.space_key = space_key

    @property
    def base_url(self) -> str:
        return self._api.base_url

    def get_space(self) -> Dict[str, Any]:
        """Return the raw space dict (id, key, name, homepage)."""
        return self._api.get_space(self.space_key)

    def list_pages(self, space_id: str) -> List[RemoteNode]:
        """List all pages in the space, in the order the API returns them."""
        raw_pages = self._api.get_all_pages_in_space(space_id)
        return [self._node_from_v2(item, NodeKind.PAGE) for item in raw_pages]

    def list_folders(self, pages: Iterable[RemoteNode]) -> List[RemoteNode]:
        """Fetch every folder reachable as an ancestor of the given pages.

        Folders have no listing endpoint, so they are discovered through the
        parent chains of pages. Each folder is fetched once; the walk up a
        folder chain stops at an id it has already seen.
        """
        page_ids = set()
        pending: List[str] = []
        for page in pages:
            page_ids.add(page.id)
            if page.parent_id:
                pending.append(page.parent_id)

        folders: Dict[str, RemoteNode] = {}
        visited = set()
        while pending:
            candidate_id = pending.pop(0)
            if candidate_id in visited or candidate_id in page_ids:
                continue
            visited.add(candidate_id)

            try:
                folder = self.get_folder(candidate_id)
            except PageNotFoundError:
                logger.warning(f"Parent {candidate_id} is neither a page nor a folder, ignoring")
                continue

            folders[folder.id] = folder
            if folder.parent_id:
                pending.append(folder.parent_id)

        return list(folders.values())

    def get_page(self, page_id: str) -> RemoteNode:
        """Fetch a page including its storage body, labels and version."""
        raw = self._api.get_page_by_id(page_id)
        return self._node_from_v1(raw)

    def find_page(self, page_id: str) -> Result:
        """Look up a page without raising for expected outcomes.

        Returns:
            Ok(RemoteNode), NotFound(page_id) or TransportError(error)
        """
        try:
            return Ok(self.get_page(page_id))
        except PageNotFoundError:
            return NotFound(page_id)
        except ConfluenceError as e:
            return TransportError(e)

    def create_page(self, title: str, body: str, parent_id: Optional[str] = None) -> RemoteNode:
        raw = self._api.create_page(self.space_key, title, body, parent_id=parent_id)
        return self._node_from_v1(raw)

    def update_page(self, page_id: str, title: str, body: str, version: int) -> RemoteNode:
        """Update a page to an explicit new version number.

        Raises:
            VersionConflictError: If the remote version moved in the meantime
        """
        raw = self._api.update_page(page_id, title, body, version)
        return self._node_from_v1(raw)

    def move_page(self, page_id: str, target_parent_id: str) -> None:
        self._api.move_page(self.space_key, page_id, target_parent_id)

    def get_folder(self, folder_id: str) -> RemoteNode:
        raw = self._api.get_folder(folder_id)
        return self._node_from_v2(raw, NodeKind.FOLDER)

    def create_folder(self, space_id: str, title: str, parent_id: Optional[str] = None) -> RemoteNode:
        raw = self._api.create_folder(space_id, title, parent_id=parent_id)
        return self._node_from_v2(raw, NodeKind.FOLDER)

    def _web_url(self, raw: Dict[str, Any]) -> Optional[str]:
        webui = (raw.get("_links") or {}).get("webui")
        if not webui:
            return None
        return f"{self.base_url}{webui}"

    def _node_from_v2(self, raw: Dict[str, Any], kind: NodeKind) -> RemoteNode:
        version_info = raw.get("version") or {}
        parent_id = raw.get("parentId")
        return RemoteNode(
            id=str(raw["id"]),
            title=raw.get("title", ""),
            parent_id=str(parent_id) if parent_id else None,
            kind=kind,
            version=int(version_info.get("number", 0)) if kind is NodeKind.PAGE else 0,
            space_id=str(raw["spaceId"]) if raw.get("spaceId") else None,
            created_at=_as_text(raw.get("createdAt")),
            updated_at=_as_text(version_info.get("createdAt")),
            author_id=raw.get("authorId"),
            url=self._web_url(raw),
        )

    def _node_from_v1(self, raw: Dict[str, Any]) -> RemoteNode:
        ancestors = raw.get("ancestors") or []
        version_info = raw.get("version") or {}
        history = raw.get("history") or {}
        labels = ((raw.get("metadata") or {}).get("labels") or {}).get("results") or []
        body = ((raw.get("body") or {}).get("storage") or {}).get("value")
        space = raw.get("space") or {}

        return RemoteNode(
            id=str(raw["id"]),
            title=raw.get("title", ""),
            parent_id=str(ancestors[-1]["id"]) if ancestors else None,
            kind=NodeKind.PAGE,
            version=int(version_info.get("number", 1)),
            body=body,
            space_id=str(space["id"]) if space.get("id") else None,
            created_at=history.get("createdDate"),
            updated_at=version_info.get("when"),
            author_id=(history.get("createdBy") or {}).get("accountId"),
            labels=[label["name"] for label in labels if label.get("name")],
            url=self._web_url(raw),
        )


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)
