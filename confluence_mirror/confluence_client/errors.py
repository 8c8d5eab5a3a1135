"""Exceptions raised by the mirror's Confluence client.

SyncError is the root of every application error (file mapper, sync engine
and CLI errors derive from it too). ConfluenceError and its subclasses cover
the remote side: credentials, missing pages, network failures, version
conflicts and content conversion. Each keeps its context as attributes.
"""


class SyncError(Exception):
    """Root of all confluence-mirror errors."""
    pass


class ConfluenceError(SyncError):
    """A failure talking to Confluence or converting its content."""
    pass


class InvalidCredentialsError(ConfluenceError):
    """Credentials are missing or were rejected with 401."""

    def __init__(self, user: str, endpoint: str):
        super().__init__(
            f"Credentials rejected or missing (user: {user}, endpoint: {endpoint}). "
            f"Check CONFLUENCE_URL, CONFLUENCE_USER and CONFLUENCE_API_TOKEN."
        )
        self.user = user
        self.endpoint = endpoint


class PageNotFoundError(ConfluenceError):
    """A page, folder or space id does not exist remotely."""

    def __init__(self, page_id: str):
        super().__init__(f"Page {page_id} not found")
        self.page_id = page_id


class APIUnreachableError(ConfluenceError):
    """The Confluence site could not be reached (timeout, DNS, refused)."""

    def __init__(self, endpoint: str):
        super().__init__(f"Confluence is unreachable at {endpoint}")
        self.endpoint = endpoint


class APIAccessError(ConfluenceError):
    """Any other API failure, including rate limits that outlast the retries."""

    def __init__(self, message: str = "Confluence API failure (after 3 retries)"):
        super().__init__(message)


class VersionConflictError(ConfluenceError):
    """Raised when the remote version no longer matches the local one.

    Carries both version numbers so callers can suggest a re-pull or a
    forced push. Never resolved automatically.
    """

    def __init__(self, page_id: str, local_version: int, remote_version: int):
        super().__init__(
            f"Version conflict on page {page_id}: local version {local_version}, "
            f"remote version {remote_version}. Re-pull the page or push with --force."
        )
        self.page_id = page_id
        self.local_version = local_version
        self.remote_version = remote_version


class ConversionError(ConfluenceError):
    """Markdown and storage XHTML could not be converted into each other."""

    def __init__(self, message: str):
        super().__init__(message)
