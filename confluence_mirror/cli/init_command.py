"""InitCommand: bind a local directory to a Confluence space."""

import logging
import os
from typing import Optional

from confluence_mirror.confluence_client.api_wrapper import APIWrapper
from confluence_mirror.confluence_client.auth import Authenticator
from confluence_mirror.confluence_client.remote_client import RemoteClient
from confluence_mirror.file_mapper.mirror_state import MirrorState, MirrorStateStore

from .errors import InitError

logger = logging.getLogger(__name__)


class InitCommand:
    """Creates `.confluence.json` for a space after checking the space exists.

    Example:
        >>> init = InitCommand(root="./docs")
        >>> state = init.run("TEAM")
        >>> state.space_id
        '98765'
    """

    def __init__(
        self,
        root: str = ".",
        remote_client: Optional[RemoteClient] = None,
        store: Optional[MirrorStateStore] = None,
    ):
        """Initialize the init command.

        Args:
            root: Mirror root directory (created if missing)
            remote_client: Client for the space (built from the environment if omitted)
            store: State store (defaults to `.confluence.json` under root)
        """
        self.root = root
        self.remote_client = remote_client
        self.store = store or MirrorStateStore(root)

    def run(self, space_key: str, force: bool = False) -> MirrorState:
        """Look up the space and write the mirror state.

        Args:
            space_key: Confluence space key
            force: Overwrite an existing configuration

        Returns:
            The newly saved MirrorState

        Raises:
            InitError: If the key is empty or a configuration already exists
            PageNotFoundError: If the space does not exist
            InvalidCredentialsError: If credentials are missing or rejected
        """
        space_key = space_key.strip()
        if not space_key:
            raise InitError("Space key cannot be empty")

        if self.store.exists() and not force:
            raise InitError(
                f"{self.store.path} already exists. Use --force to reinitialize."
            )

        remote = self.remote_client or RemoteClient(APIWrapper(Authenticator()), space_key)
        space = remote.get_space()
        if not space.get('id'):
            raise InitError(f"Space '{space_key}' returned no id")

        os.makedirs(self.root, exist_ok=True)
        state = MirrorState(
            space_key=space.get('key', space_key),
            space_id=str(space['id']),
            space_name=space.get('name', ''),
        )
        self.store.save(state)
        logger.info(f"Initialized mirror of {state.space_key} ({state.space_name}) in {self.root}")
        return state
