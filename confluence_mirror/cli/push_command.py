"""PushCommand: push one file or every changed file, and map the outcome to an exit code."""

import logging
import os
from typing import Optional

from confluence_mirror.confluence_client.api_wrapper import APIWrapper
from confluence_mirror.confluence_client.auth import Authenticator
from confluence_mirror.confluence_client.errors import SyncError
from confluence_mirror.confluence_client.remote_client import RemoteClient
from confluence_mirror.content_converter import MarkdownConverter
from confluence_mirror.file_mapper.mirror_state import MirrorStateStore
from confluence_mirror.file_mapper.path_safety import to_relative
from confluence_mirror.sync.cancellation import CancellationToken
from confluence_mirror.sync.errors import InvalidPushTargetError, NotConfiguredError
from confluence_mirror.sync.push_orchestrator import PushOrchestrator

from .errors import exit_code_for
from .models import ExitCode
from .output import OutputHandler

logger = logging.getLogger(__name__)


def mirror_relative_path(root: str, file: str) -> str:
    """Turn a CLI file argument into a mirror-relative path.

    An argument naming an existing file (relative to the working directory
    or absolute) is expressed relative to the root; anything else is taken
    as already mirror-relative.

    Raises:
        InvalidPushTargetError: If the file lies outside the mirror root
    """
    candidate = os.path.abspath(file)
    if not os.path.exists(candidate):
        return file.replace(os.sep, '/')

    relative = to_relative(root, candidate)
    if relative == '..' or relative.startswith('../'):
        raise InvalidPushTargetError(file, "file is outside the mirror directory")
    return relative


class PushCommand:
    """Wires a PushOrchestrator to real (or injected) dependencies."""

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

    def _orchestrator(self) -> PushOrchestrator:
        state = self.store.load()
        if state is None:
            raise NotConfiguredError(self.root)
        remote = self.remote_client or RemoteClient(APIWrapper(Authenticator()), state.space_key)
        return PushOrchestrator(remote, self.converter, self.store, self.root)

    def run(self, file: Optional[str] = None, force: bool = False, dry_run: bool = False) -> ExitCode:
        """Execute the push.

        Args:
            file: Single file to push; every changed file when omitted
            force: Push over newer remote versions
            dry_run: Check and report without pushing

        Returns:
            ExitCode for the process
        """
        try:
            orchestrator = self._orchestrator()
            if file:
                return self._push_single(orchestrator, file, force, dry_run)
            return self._push_all(orchestrator, force, dry_run)

        except SyncError as e:
            logger.error(f"Push failed: {e}")
            self.output.error(f"Push failed: {e}")
            return exit_code_for(e)

        except Exception as e:
            logger.exception("Unexpected error during push")
            self.output.error(f"Unexpected error: {e}")
            return ExitCode.GENERAL_ERROR

    def _push_single(
        self, orchestrator: PushOrchestrator, file: str, force: bool, dry_run: bool
    ) -> ExitCode:
        rel_path = mirror_relative_path(self.root, file)
        state = orchestrator.load_state()

        with self.output.spinner(f"Pushing {rel_path}..."):
            outcome = orchestrator.push_file(rel_path, state, force=force, dry_run=dry_run)

        if dry_run:
            self.output.success(f"{rel_path} can be pushed")
            self.output.print_dryrun_notice()
        elif outcome.page:
            action = "Created" if outcome.page.created else "Updated"
            self.output.success(
                f"{action} {outcome.page.title} ({outcome.page.page_id}, v{outcome.page.version})"
            )
        return ExitCode.SUCCESS

    def _push_all(self, orchestrator: PushOrchestrator, force: bool, dry_run: bool) -> ExitCode:
        plan = orchestrator.push_batch(force=force, dry_run=True)
        self.output.print_push_plan(plan.sorted, plan.cycles)

        if dry_run:
            self.output.print_dryrun_notice()
            return ExitCode.SUCCESS
        if not plan.sorted:
            return ExitCode.SUCCESS

        with self.output.progress_bar("Pushing") as progress:
            task = progress.add_task("Pushing", total=len(plan.sorted))

            def _advance(done, total, candidate):
                progress.update(task, completed=done, description=candidate.path)

            result = orchestrator.push_batch(
                force=force, on_progress=_advance, cancel_token=self.cancel_token
            )

        self.output.print_push_summary(result)
        if result.cancelled:
            return ExitCode.CANCELLED
        if result.failed_files:
            if result.conflicts == result.failed:
                return ExitCode.VERSION_CONFLICT
            return ExitCode.GENERAL_ERROR
        return ExitCode.SUCCESS
