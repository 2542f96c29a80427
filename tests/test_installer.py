import logging
import pytest
from unittest.mock import Mock, patch

from domain.errors import InstallError
from domain.installer import InstallRunner, InstallResult, is_tool_available


class TestInstallRunner:
    """Test cases for running install commands."""

    @pytest.fixture
    def runner(self, tmp_path):
        return InstallRunner(cwd=tmp_path)

    def test_compose_command_trims(self):
        assert InstallRunner.compose_command("npm install", "") == "npm install"
        assert InstallRunner.compose_command("npm install", "--production") == "npm install --production"
        assert InstallRunner.compose_command("npm install", "  ") == "npm install"
        assert InstallRunner.compose_command("npm install", None) == "npm install"

    def test_successful_command(self, runner):
        result = runner.run("true")

        assert isinstance(result, InstallResult)
        assert result.success
        assert result.exit_code == 0
        assert result.command == "true"

    def test_options_are_appended(self, runner, tmp_path):
        runner.run("touch", "installed.txt")

        assert (tmp_path / "installed.txt").exists()

    def test_runs_in_cwd(self, runner, tmp_path):
        runner.run("mkdir", "node_modules")

        assert (tmp_path / "node_modules").is_dir()

    def test_failure_raises_install_error(self, runner):
        with pytest.raises(InstallError) as exc_info:
            runner.run("sh -c", "'exit 3'")

        assert exc_info.value.exit_code == 3
        assert exc_info.value.command == "sh -c 'exit 3'"
        assert "sh -c 'exit 3'" in str(exc_info.value)

    def test_missing_command_raises_install_error(self, runner):
        with pytest.raises(InstallError) as exc_info:
            runner.run("definitely-not-a-real-package-manager install")

        assert exc_info.value.exit_code == 127

    def test_output_goes_to_log(self, tmp_path, caplog):
        runner = InstallRunner(cwd=tmp_path)

        with caplog.at_level(logging.INFO, logger="domain.installer"):
            runner.run("echo", "added 42 packages; echo oops 1>&2")

        messages = [record.getMessage() for record in caplog.records]
        assert "running [echo added 42 packages; echo oops 1>&2]..." in messages
        assert "added 42 packages" in messages
        assert "oops" in messages

    def test_post_install_runs_after_success(self, runner):
        post_install = Mock()

        runner.run("true", post_install=post_install)

        post_install.assert_called_once_with()

    def test_post_install_not_run_on_failure(self, runner):
        post_install = Mock()

        with pytest.raises(InstallError):
            runner.run("false", post_install=post_install)

        post_install.assert_not_called()

    def test_post_install_failure_propagates(self, runner):
        post_install = Mock(side_effect=RuntimeError("dump-autoload failed"))

        with pytest.raises(RuntimeError, match="dump-autoload failed"):
            runner.run("true", post_install=post_install)

    def test_uses_custom_log(self, tmp_path):
        log = Mock()
        runner = InstallRunner(cwd=tmp_path, log=log)

        runner.run("true")

        log.info.assert_any_call("running [%s]...", "true")


class TestIsToolAvailable:

    @patch('domain.installer.shutil.which')
    def test_found(self, mock_which):
        mock_which.return_value = "/usr/bin/npm"

        assert is_tool_available("npm") is True
        mock_which.assert_called_once_with("npm")

    @patch('domain.installer.shutil.which')
    def test_not_found(self, mock_which):
        mock_which.return_value = None

        assert is_tool_available("bower") is False

    def test_real_lookup(self):
        assert is_tool_available("sh") is True
        assert is_tool_available("definitely-not-a-real-package-manager") is False
