"""Main CLI entry point for the confluence-mirror command.

Subcommands:
    init SPACE_KEY   bind a directory to a Confluence space
    pull             bring local files up to date with the space
    push [FILE]      publish new and modified local files
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import typer

from confluence_mirror import __version__
from confluence_mirror.confluence_client.errors import SyncError
from confluence_mirror.sync.cancellation import CancellationToken, install_sigint_handler

from .errors import InitError, exit_code_for
from .init_command import InitCommand
from .models import ExitCode
from .output import OutputHandler
from .pull_command import PullCommand
from .push_command import PushCommand

app = typer.Typer(
    name="confluence-mirror",
    help="""Mirror a Confluence space as local Markdown files.

QUICK START:
  confluence-mirror init TEAM --dir ./docs     # Bind ./docs to space TEAM
  confluence-mirror pull --dir ./docs          # Download changes
  confluence-mirror push --dir ./docs          # Publish local edits""",
    add_completion=False,
    rich_markup_mode=None,
    no_args_is_help=True,
)

logger = logging.getLogger(__name__)

DIR_OPTION_HELP = "Mirror directory (defaults to the current directory)"
VERBOSITY_HELP = "Verbosity level: 0=summary, 1=info, 2=debug"


def _configure_logging(verbosity: int, logdir: Optional[str] = None) -> None:
    """Configure logging based on verbosity level.

    Only the 'confluence_mirror' logger is configured; the root logger and
    third-party libraries are left alone.

    Args:
        verbosity: Verbosity level (0=WARNING, 1=INFO, 2=DEBUG)
        logdir: Optional directory for a timestamped log file
    """
    if verbosity == 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    app_logger = logging.getLogger("confluence_mirror")
    app_logger.setLevel(level)

    date_format = "%Y-%m-%d %H:%M:%S"
    formatter = logging.Formatter("%(asctime)s [%(levelname)8s] %(message)s", datefmt=date_format)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    app_logger.addHandler(console_handler)

    if logdir:
        log_path = Path(logdir)
        log_path.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = log_path / f"confluence-mirror_{timestamp}.log"

        file_formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt=date_format
        )
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(file_formatter)
        app_logger.addHandler(file_handler)

        logger.info(f"Logging to file: {log_file}")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"confluence-mirror version {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Mirror a Confluence space as local Markdown files."""


@app.command()
def init(
    space_key: str = typer.Argument(..., help="Confluence space key, e.g. TEAM"),
    directory: str = typer.Option(".", "--dir", "-d", help=DIR_OPTION_HELP),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing configuration"),
    logdir: Optional[str] = typer.Option(None, "--logdir", help="Directory for log files"),
    verbosity: int = typer.Option(0, "--verbosity", "-v", help=VERBOSITY_HELP),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colored output"),
) -> None:
    """Bind a directory to a Confluence space."""
    _configure_logging(verbosity, logdir)
    output = OutputHandler(verbosity=verbosity, no_color=no_color)

    try:
        init_cmd = InitCommand(root=directory)
        with output.spinner(f"Looking up space {space_key}..."):
            state = init_cmd.run(space_key, force=force)

        output.success(f"Initialized mirror of {state.space_key} ({state.space_name})")
        output.info(f"  Config file: {init_cmd.store.path}")
        output.info("")
        output.info("Next step:")
        output.info(f"  confluence-mirror pull --dir {directory}")

    except InitError as e:
        logger.error(f"Initialization failed: {e}")
        output.error(f"Initialization failed: {e}")
        raise typer.Exit(ExitCode.GENERAL_ERROR)

    except SyncError as e:
        logger.error(f"Initialization failed: {e}")
        output.error(f"Initialization failed: {e}")
        raise typer.Exit(exit_code_for(e))

    raise typer.Exit(ExitCode.SUCCESS)


@app.command()
def pull(
    force: bool = typer.Option(False, "--force", help="Re-download every page"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Preview changes without applying them"),
    pages: Optional[List[str]] = typer.Option(
        None,
        "--page",
        "-p",
        help="Page id or local path to re-download (can be used multiple times)",
        metavar="REF",
    ),
    directory: str = typer.Option(".", "--dir", "-d", help=DIR_OPTION_HELP),
    logdir: Optional[str] = typer.Option(None, "--logdir", help="Directory for log files"),
    verbosity: int = typer.Option(0, "--verbosity", "-v", help=VERBOSITY_HELP),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colored output"),
) -> None:
    """Download remote changes into the mirror."""
    _configure_logging(verbosity, logdir)
    output = OutputHandler(verbosity=verbosity, no_color=no_color)

    if force and pages:
        output.error("--force and --page cannot be combined")
        raise typer.Exit(ExitCode.INVALID_ARGUMENTS)

    token = CancellationToken()
    restore = install_sigint_handler(token)
    try:
        exit_code = PullCommand(
            root=directory,
            output_handler=output,
            cancel_token=token,
        ).run(force=force, dry_run=dry_run, page_refs=pages or None)
    finally:
        restore()

    raise typer.Exit(exit_code)


@app.command()
def push(
    file: Optional[str] = typer.Argument(None, help="Push only this file"),
    force: bool = typer.Option(False, "--force", help="Overwrite newer remote versions"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Preview the push without applying it"),
    directory: str = typer.Option(".", "--dir", "-d", help=DIR_OPTION_HELP),
    logdir: Optional[str] = typer.Option(None, "--logdir", help="Directory for log files"),
    verbosity: int = typer.Option(0, "--verbosity", "-v", help=VERBOSITY_HELP),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colored output"),
) -> None:
    """Publish new and modified local files."""
    _configure_logging(verbosity, logdir)
    output = OutputHandler(verbosity=verbosity, no_color=no_color)

    token = CancellationToken()
    restore = install_sigint_handler(token)
    try:
        exit_code = PushCommand(
            root=directory,
            output_handler=output,
            cancel_token=token,
        ).run(file=file, force=force, dry_run=dry_run)
    except KeyboardInterrupt:
        output.warning("Push interrupted")
        exit_code = ExitCode.CANCELLED
    finally:
        restore()

    raise typer.Exit(exit_code)


def main() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    main()
