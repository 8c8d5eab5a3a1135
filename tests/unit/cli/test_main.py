"""Unit tests for main CLI entry point (main.py).

Tests the Typer CLI application using CliRunner.
"""

import logging

import pytest
from unittest.mock import Mock, patch
from typer.testing import CliRunner

from confluence_mirror import __version__
from confluence_mirror.cli.errors import InitError
from confluence_mirror.cli.main import _configure_logging, app
from confluence_mirror.cli.models import ExitCode
from confluence_mirror.confluence_client.errors import InvalidCredentialsError
from confluence_mirror.file_mapper.mirror_state import MirrorState

runner = CliRunner()


@pytest.fixture
def app_logger():
    """Restore the application logger after _configure_logging runs."""
    logger = logging.getLogger("confluence_mirror")
    handlers, level = list(logger.handlers), logger.level
    yield logger
    for handler in logger.handlers[len(handlers):]:
        handler.close()
    logger.handlers = handlers
    logger.setLevel(level)


@pytest.fixture
def quiet_logging():
    with patch('confluence_mirror.cli.main._configure_logging') as mock_configure:
        yield mock_configure


class TestConfigureLogging:
    """Test cases for _configure_logging function."""

    @pytest.mark.parametrize("verbosity,level", [
        (0, logging.WARNING),
        (1, logging.INFO),
        (2, logging.DEBUG),
        (5, logging.DEBUG),
    ])
    def test_levels(self, app_logger, verbosity, level):
        _configure_logging(verbosity)

        assert app_logger.level == level

    def test_root_logger_untouched(self, app_logger):
        root_level = logging.getLogger().level

        _configure_logging(2)

        assert logging.getLogger().level == root_level

    def test_logdir_creates_log_file(self, app_logger, tmp_path):
        logdir = tmp_path / "logs"

        _configure_logging(1, str(logdir))

        files = list(logdir.glob("confluence-mirror_*.log"))
        assert len(files) == 1


class TestVersion:
    """Test cases for --version."""

    def test_version(self):
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output


@pytest.mark.usefixtures("quiet_logging")
class TestInitCommand:
    """Test cases for the init command."""

    @patch('confluence_mirror.cli.main.InitCommand')
    def test_init_success(self, mock_init_cmd, tmp_path):
        instance = Mock()
        instance.run.return_value = MirrorState("TEAM", "98765", "Team Space")
        mock_init_cmd.return_value = instance

        result = runner.invoke(app, ["init", "TEAM", "--dir", str(tmp_path), "--no-color"])

        assert result.exit_code == ExitCode.SUCCESS
        mock_init_cmd.assert_called_once_with(root=str(tmp_path))
        instance.run.assert_called_once_with("TEAM", force=False)
        assert "Initialized mirror of TEAM" in result.output

    @patch('confluence_mirror.cli.main.InitCommand')
    def test_init_error(self, mock_init_cmd):
        mock_init_cmd.return_value.run.side_effect = InitError("already exists")

        result = runner.invoke(app, ["init", "TEAM", "--no-color"])

        assert result.exit_code == ExitCode.GENERAL_ERROR

    @patch('confluence_mirror.cli.main.InitCommand')
    def test_init_auth_error(self, mock_init_cmd):
        mock_init_cmd.return_value.run.side_effect = InvalidCredentialsError("unknown", "unknown")

        result = runner.invoke(app, ["init", "TEAM", "--no-color"])

        assert result.exit_code == ExitCode.AUTH_ERROR

    def test_init_requires_space_key(self):
        result = runner.invoke(app, ["init"])

        assert result.exit_code != 0


@pytest.mark.usefixtures("quiet_logging")
class TestPullCommand:
    """Test cases for the pull command."""

    @patch('confluence_mirror.cli.main.PullCommand')
    def test_pull_passes_options(self, mock_pull_cmd, tmp_path):
        mock_pull_cmd.return_value.run.return_value = ExitCode.SUCCESS

        result = runner.invoke(
            app, ["pull", "--dry-run", "-p", "123", "-p", "guides/a.md", "--dir", str(tmp_path)]
        )

        assert result.exit_code == ExitCode.SUCCESS
        mock_pull_cmd.return_value.run.assert_called_once_with(
            force=False, dry_run=True, page_refs=["123", "guides/a.md"]
        )
        assert mock_pull_cmd.call_args.kwargs['root'] == str(tmp_path)

    @patch('confluence_mirror.cli.main.PullCommand')
    def test_pull_exit_code_propagates(self, mock_pull_cmd):
        mock_pull_cmd.return_value.run.return_value = ExitCode.NETWORK_ERROR

        result = runner.invoke(app, ["pull"])

        assert result.exit_code == ExitCode.NETWORK_ERROR

    @patch('confluence_mirror.cli.main.PullCommand')
    def test_force_and_page_are_exclusive(self, mock_pull_cmd):
        result = runner.invoke(app, ["pull", "--force", "--page", "123", "--no-color"])

        assert result.exit_code == ExitCode.INVALID_ARGUMENTS
        mock_pull_cmd.assert_not_called()

    @patch('confluence_mirror.cli.main.install_sigint_handler')
    @patch('confluence_mirror.cli.main.PullCommand')
    def test_sigint_handler_restored(self, mock_pull_cmd, mock_install):
        restore = Mock()
        mock_install.return_value = restore
        mock_pull_cmd.return_value.run.side_effect = RuntimeError("boom")

        runner.invoke(app, ["pull"])

        restore.assert_called_once()


@pytest.mark.usefixtures("quiet_logging")
class TestPushCommand:
    """Test cases for the push command."""

    @patch('confluence_mirror.cli.main.PushCommand')
    def test_push_single_file(self, mock_push_cmd):
        mock_push_cmd.return_value.run.return_value = ExitCode.SUCCESS

        result = runner.invoke(app, ["push", "guides/a.md", "--force"])

        assert result.exit_code == ExitCode.SUCCESS
        mock_push_cmd.return_value.run.assert_called_once_with(
            file="guides/a.md", force=True, dry_run=False
        )

    @patch('confluence_mirror.cli.main.PushCommand')
    def test_push_all(self, mock_push_cmd):
        mock_push_cmd.return_value.run.return_value = ExitCode.VERSION_CONFLICT

        result = runner.invoke(app, ["push", "--dry-run"])

        assert result.exit_code == ExitCode.VERSION_CONFLICT
        mock_push_cmd.return_value.run.assert_called_once_with(
            file=None, force=False, dry_run=True
        )

    @patch('confluence_mirror.cli.main.PushCommand')
    def test_keyboard_interrupt_is_cancelled(self, mock_push_cmd):
        mock_push_cmd.return_value.run.side_effect = KeyboardInterrupt

        result = runner.invoke(app, ["push", "--no-color"])

        assert result.exit_code == ExitCode.CANCELLED

    @patch('confluence_mirror.cli.main.install_sigint_handler')
    @patch('confluence_mirror.cli.main.PushCommand')
    def test_push_routes_sigint_to_token(self, mock_push_cmd, mock_install):
        restore = Mock()
        mock_install.return_value = restore
        mock_push_cmd.return_value.run.return_value = ExitCode.CANCELLED

        result = runner.invoke(app, ["push"])

        assert result.exit_code == ExitCode.CANCELLED
        token = mock_install.call_args.args[0]
        assert mock_push_cmd.call_args.kwargs['cancel_token'] is token
        restore.assert_called_once()
