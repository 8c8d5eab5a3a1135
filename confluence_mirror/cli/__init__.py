"""Command-line interface for the Confluence mirror.

Provides the `confluence-mirror` command with init, pull and push
subcommands, terminal output via rich, and exit-code mapping.
"""

from .errors import CLIError, InitError, exit_code_for
from .init_command import InitCommand
from .models import ExitCode
from .output import OutputHandler
from .pull_command import PullCommand
from .push_command import PushCommand

__all__ = [
    'CLIError',
    'InitError',
    'exit_code_for',
    'InitCommand',
    'ExitCode',
    'OutputHandler',
    'PullCommand',
    'PushCommand',
]
