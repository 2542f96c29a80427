import json
import subprocess
import pytest
from pathlib import Path
from unittest.mock import MagicMock, patch

from domain.errors import ToolMissingError, UnknownManagerError
from domain.manager_config import ManagerConfig
from infrastructure.manager_registry import (
    DEFAULT_MANAGERS,
    MANAGERS,
    CliVersionProvider,
    build_config,
    get_available_managers,
    get_definition,
)


class TestManagerDefinitions:

    def test_available_managers(self):
        assert get_available_managers() == ["bower", "composer", "jspm", "npm", "yarn"]

    def test_default_managers_are_registered(self):
        assert all(name in MANAGERS for name in DEFAULT_MANAGERS)

    def test_unknown_manager(self):
        with pytest.raises(UnknownManagerError) as exc_info:
            get_definition("maven")

        assert "Unsupported manager: maven" in str(exc_info.value)

    def test_manifest_and_directory_names(self):
        test_cases = [
            ("npm", "package.json", "node_modules"),
            ("yarn", "package.json", "node_modules"),
            ("bower", "bower.json", "bower_components"),
            ("composer", "composer.json", "vendor"),
            ("jspm", "package.json", "jspm_packages"),
        ]

        for name, manifest, directory in test_cases:
            definition = get_definition(name)
            assert definition.manifest_name == manifest
            assert definition.default_install_directory == directory


class TestInstallDirectoryResolution:

    def test_default_directory(self, tmp_path):
        assert get_definition("bower").resolve_install_directory(tmp_path) == tmp_path / "bower_components"

    def test_bowerrc_directory(self, tmp_path):
        (tmp_path / ".bowerrc").write_text(json.dumps({"directory": "public/lib"}))

        assert get_definition("bower").resolve_install_directory(tmp_path) == tmp_path / "public/lib"

    def test_composer_vendor_dir(self, tmp_path):
        (tmp_path / "composer.json").write_text(json.dumps({"config": {"vendor-dir": "lib/vendor"}}))

        assert get_definition("composer").resolve_install_directory(tmp_path) == tmp_path / "lib/vendor"

    def test_jspm_packages_directory(self, tmp_path):
        (tmp_path / "package.json").write_text(
            json.dumps({"jspm": {"directories": {"packages": "static/jspm"}}})
        )

        assert get_definition("jspm").resolve_install_directory(tmp_path) == tmp_path / "static/jspm"

    def test_malformed_override_falls_back(self, tmp_path):
        (tmp_path / ".bowerrc").write_text("{not json")

        assert get_definition("bower").resolve_install_directory(tmp_path) == tmp_path / "bower_components"

    def test_non_string_override_falls_back(self, tmp_path):
        (tmp_path / "composer.json").write_text(json.dumps({"config": {"vendor-dir": 42}}))

        assert get_definition("composer").resolve_install_directory(tmp_path) == tmp_path / "vendor"


class TestCliVersionProvider:

    @patch('infrastructure.manager_registry.subprocess.run')
    def test_plain_version(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout="10.2.0\n", stderr="")

        provider = CliVersionProvider(get_definition("npm"))

        assert provider() == "10.2.0"
        mock_run.assert_called_once_with(
            "npm --version",
            shell=True,
            cwd=None,
            capture_output=True,
            text=True
        )

    @patch('infrastructure.manager_registry.subprocess.run')
    def test_version_is_cached(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout="1.8.14\n", stderr="")
        provider = CliVersionProvider(get_definition("bower"))

        provider()
        provider()

        assert mock_run.call_count == 1

    @patch('infrastructure.manager_registry.subprocess.run')
    def test_composer_version_parsed(self, mock_run):
        mock_run.return_value = MagicMock(
            returncode=0,
            stdout="Composer version 2.6.5 2023-10-06 10:11:52\n",
            stderr=""
        )

        assert CliVersionProvider(get_definition("composer"))() == "2.6.5"

    @patch('infrastructure.manager_registry.subprocess.run')
    def test_first_line_only(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout="0.16.53\nsome banner\n", stderr="")

        assert CliVersionProvider(get_definition("jspm"))() == "0.16.53"

    @patch('infrastructure.manager_registry.subprocess.run')
    def test_slashes_are_replaced(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout="1.0/beta\n", stderr="")

        assert CliVersionProvider(get_definition("yarn"))() == "1.0_beta"

    @patch('infrastructure.manager_registry.subprocess.run')
    def test_failing_command_is_tool_missing(self, mock_run):
        mock_run.return_value = MagicMock(returncode=127, stdout="", stderr="npm: not found")

        with pytest.raises(ToolMissingError):
            CliVersionProvider(get_definition("npm"))()

    @patch('infrastructure.manager_registry.subprocess.run')
    def test_empty_output_is_tool_missing(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout="", stderr="")

        with pytest.raises(ToolMissingError):
            CliVersionProvider(get_definition("npm"))()

    @pytest.mark.parametrize("stdout", [".\n", "..\n", "  ..  \n"])
    @patch('infrastructure.manager_registry.subprocess.run')
    def test_dot_versions_are_tool_missing(self, mock_run, stdout):
        mock_run.return_value = MagicMock(returncode=0, stdout=stdout, stderr="")

        with pytest.raises(ToolMissingError):
            CliVersionProvider(get_definition("npm"))()

    @patch('infrastructure.manager_registry.subprocess.run')
    def test_dot_version_is_not_cached(self, mock_run):
        mock_run.side_effect = [
            MagicMock(returncode=0, stdout="..\n", stderr=""),
            MagicMock(returncode=0, stdout="10.2.0\n", stderr=""),
        ]
        provider = CliVersionProvider(get_definition("npm"))

        with pytest.raises(ToolMissingError):
            provider()
        assert provider() == "10.2.0"

    @patch('infrastructure.manager_registry.subprocess.run')
    def test_os_error_is_tool_missing(self, mock_run):
        mock_run.side_effect = OSError("cannot execute")

        with pytest.raises(ToolMissingError):
            CliVersionProvider(get_definition("npm"))()


class TestBuildConfig:

    def test_npm_config(self, tmp_path):
        config = build_config(
            "npm",
            cache_root=tmp_path / "cache",
            install_options="--production",
            force_refresh=True,
            work_dir=tmp_path
        )

        assert isinstance(config, ManagerConfig)
        assert config.cli_name == "npm"
        assert config.install_command == "npm install"
        assert config.install_options == "--production"
        assert config.force_refresh is True
        assert config.manifest_path == tmp_path.resolve() / "package.json"
        assert config.install_directory == tmp_path.resolve() / "node_modules"
        assert config.cache_root == (tmp_path / "cache").resolve()
        assert config.post_install is None
        assert isinstance(config.cli_version_provider, CliVersionProvider)

    def test_bower_config_honours_bowerrc(self, tmp_path):
        (tmp_path / ".bowerrc").write_text(json.dumps({"directory": "vendor/bower"}))

        config = build_config("bower", cache_root=tmp_path / "cache", work_dir=tmp_path)

        assert config.install_directory == tmp_path.resolve() / "vendor" / "bower"

    def test_unknown_manager(self, tmp_path):
        with pytest.raises(UnknownManagerError):
            build_config("maven", cache_root=tmp_path)
