"""PullCommand: run a pull for the CLI and translate the outcome to an exit code."""

import logging
from typing import List, Optional

from confluence_mirror.confluence_client.api_wrapper import APIWrapper
from confluence_mirror.confluence_client.auth import Authenticator
from confluence_mirror.confluence_client.errors import SyncError
from confluence_mirror.confluence_client.remote_client import RemoteClient
from confluence_mirror.content_converter import MarkdownConverter
from confluence_mirror.file_mapper.mirror_state import MirrorStateStore
from confluence_mirror.sync.cancellation import CancellationToken
from confluence_mirror.sync.errors import NotConfiguredError
from confluence_mirror.sync.pull_orchestrator import PullOrchestrator

from .errors import exit_code_for
from .models import ExitCode
from .output import OutputHandler

logger = logging.getLogger(__name__)


class PullCommand:
    """Wires a PullOrchestrator to real (or injected) dependencies.

    All dependencies are optional so tests can pass fakes; in production
    the remote client is built from environment credentials and the space
    key recorded in the mirror state.
    """

    def __init__(
        self,
        root: str = ".",
        output_handler: Optional[OutputHandler] = None,
        remote_client: Optional[RemoteClient] = None,
        converter: Optional[MarkdownConverter] = None,
        store: Optional[MirrorStateStore] = None,
        cancel_token: Optional[CancellationToken] = None,
    ):
        self.root = root
        self.output = output_handler or OutputHandler()
        self.remote_client = remote_client
        self.converter = converter or MarkdownConverter()
        self.store = store or MirrorStateStore(root)
        self.cancel_token = cancel_token or CancellationToken()

    def run(
        self,
        force: bool = False,
        dry_run: bool = False,
        page_refs: Optional[List[str]] = None,
    ) -> ExitCode:
        """Execute the pull.

        Args:
            force: Re-download every page
            dry_run: Only report what would change
            page_refs: Page ids or local paths to re-download

        Returns:
            ExitCode for the process
        """
        try:
            state = self.store.load()
            if state is None:
                raise NotConfiguredError(self.root)

            remote = self.remote_client or RemoteClient(
                APIWrapper(Authenticator()), state.space_key
            )

            with self.output.progress_bar("Pulling") as progress:
                task_ids = []

                def _advance(done, total, change):
                    if not task_ids:
                        task_ids.append(progress.add_task("Pulling", total=total))
                    progress.update(task_ids[0], completed=done, description=change.title)

                orchestrator = PullOrchestrator(
                    remote,
                    self.converter,
                    self.store,
                    self.root,
                    cancel_token=self.cancel_token,
                    on_progress=_advance,
                )
                result = orchestrator.run(force=force, dry_run=dry_run, page_refs=page_refs)

        except SyncError as e:
            logger.error(f"Pull failed: {e}")
            self.output.error(f"Pull failed: {e}")
            return exit_code_for(e)

        except Exception as e:
            logger.exception("Unexpected error during pull")
            self.output.error(f"Unexpected error: {e}")
            return ExitCode.GENERAL_ERROR

        self.output.print_pull_summary(result)

        if result.cancelled:
            return ExitCode.CANCELLED
        if result.errors:
            return ExitCode.GENERAL_ERROR
        if not dry_run:
            self.output.success(f"Pulled {result.applied} change(s)")
        return ExitCode.SUCCESS
