"""Optimistic-concurrency check performed before every push of an existing page.

The version recorded in the local frontmatter must equal the remote version
at push time. A mismatch is reported as Conflict(local, remote) unless the
push is forced; the guard itself never merges or overwrites anything.
"""

import logging

from confluence_mirror.confluence_client.remote_client import RemoteClient
from confluence_mirror.models import Conflict, Ok, RemoteNode, Result


logger = logging.getLogger(__name__)


def check_version(local_version: int, remote_version: int, force: bool = False) -> Result:
    """Compare versions and compute the version number to push.

    Args:
        local_version: Version from the local frontmatter
        remote_version: Current remote version
        force: Push over a newer remote version

    Returns:
        Ok(next_version) or Conflict(local_version, remote_version)

    Example:
        >>> check_version(2, 3)
        Conflict(local_version=2, remote_version=3)
        >>> check_version(2, 3, force=True)
        Ok(value=4)
    """
    if local_version != remote_version and not force:
        return Conflict(local_version=local_version, remote_version=remote_version)

    base = remote_version if force else local_version
    return Ok(base + 1)


class VersionConflictGuard:
    """Fetches the remote version of a page and checks it against the local one."""

    def __init__(self, remote_client: RemoteClient):
        self._remote = remote_client

    def verify(self, page_id: str, local_version: int, force: bool = False) -> Result:
        """Check a page's remote version immediately before pushing.

        Returns:
            Ok(next_version), Conflict(local, remote), NotFound(page_id) or
            TransportError(error)
        """
        lookup = self._remote.find_page(page_id)
        if not isinstance(lookup, Ok):
            return lookup
        return self.check(lookup.value, local_version, force)

    def check(self, page: RemoteNode, local_version: int, force: bool = False) -> Result:
        """Check an already fetched page; returns Ok(next_version) or Conflict."""
        remote_version = page.version
        result = check_version(local_version, remote_version, force)
        if isinstance(result, Conflict):
            logger.warning(
                f"Version conflict on page {page.id}: local {local_version}, remote {remote_version}"
            )
        elif force and local_version != remote_version:
            logger.info(f"Forcing push of page {page.id} over remote version {remote_version}")
        return result
