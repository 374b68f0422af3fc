"""Integration tests for plugsync CLI."""

from unittest.mock import Mock, patch

import pytest
from click.testing import CliRunner

from plugsync.cli import main
from plugsync.core.errors import DiscoveryError, LabelReadError
from plugsync.core.state import DeviceStatus


@pytest.fixture
def runner():
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def config_file(tmp_path):
    """Write a minimal config file."""
    path = tmp_path / "config.yaml"
    path.write_text(
        """
manager:
  poll_interval: 5
discovery:
  backend: tasmota
  hosts: [10.0.0.1]
devices:
  lamp: on
  printer: null
"""
    )
    return path


class TestMainCommand:
    """Tests for the main plugsync command."""

    def test_version(self, runner):
        """Test --version flag."""
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "plugsync" in result.output
        assert "0.1.0" in result.output

    def test_help(self, runner):
        """Test --help flag."""
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "run" in result.output
        assert "discover" in result.output

    def test_invalid_config(self, runner, tmp_path):
        """Test an invalid config file is reported."""
        path = tmp_path / "bad.yaml"
        path.write_text("devices:\n  lamp: dim\n")

        result = runner.invoke(main, ["-c", str(path), "config"])

        assert result.exit_code == 1
        assert "Invalid state" in result.output


class TestConfigCommand:
    """Tests for the config command."""

    def test_shows_config(self, runner, config_file):
        """Test effective configuration is printed."""
        result = runner.invoke(main, ["-c", str(config_file), "config"])

        assert result.exit_code == 0
        assert "backend: tasmota" in result.output
        assert "lamp: true" in result.output

    def test_write(self, runner, config_file, tmp_path):
        """Test --write saves the configuration."""
        output = tmp_path / "out" / "config.yaml"

        result = runner.invoke(main, ["-c", str(config_file), "config", "--write", str(output)])

        assert result.exit_code == 0
        assert output.exists()


class TestRunCommand:
    """Tests for the run command."""

    @patch("plugsync.cli.signal.signal")
    @patch("plugsync.cli.PlugManager")
    def test_run_builds_manager(self, mock_manager_cls, mock_signal, runner, config_file):
        """Test run merges config and flags into the manager."""
        manager = mock_manager_cls.return_value
        manager.status.return_value = [DeviceStatus("lamp", True, True, True)]

        result = runner.invoke(
            main,
            ["-c", str(config_file), "run", "--off", "heater", "-l", "desk", "-i", "1"],
        )

        assert result.exit_code == 0, result.output
        args, kwargs = mock_manager_cls.call_args
        assert set(args[1]) == {"lamp", "printer", "heater", "desk"}
        assert kwargs["poll_interval"] == 1.0
        manager.set_desired_states.assert_called_once_with({"lamp": True, "heater": False})
        manager.run.assert_called_once()
        assert "lamp" in result.output

    def test_run_conflicting_flags(self, runner, config_file):
        """Test a plug cannot be requested both on and off."""
        result = runner.invoke(main, ["-c", str(config_file), "run", "--on", "x", "--off", "x"])

        assert result.exit_code == 1
        assert "both --on and --off" in result.output

    def test_run_without_plugs(self, runner, tmp_path):
        """Test run fails when there is nothing to manage."""
        path = tmp_path / "empty.yaml"
        path.write_text("log_level: INFO\n")

        result = runner.invoke(main, ["-c", str(path), "run"])

        assert result.exit_code == 1
        assert "No plugs to manage" in result.output


class TestDiscoverCommand:
    """Tests for the discover command."""

    @patch("plugsync.cli.build_discovery")
    def test_lists_plugs(self, mock_build, runner, config_file):
        """Test discovered plugs are listed with label and state."""
        good = Mock(address="10.0.0.1")
        good.get_label.return_value = "lamp"
        good.is_on.return_value = True
        unnamed = Mock(address="10.0.0.2")
        unnamed.get_label.side_effect = LabelReadError("no name")
        unnamed.is_on.return_value = False
        mock_build.return_value = Mock(return_value=[good, unnamed])

        result = runner.invoke(main, ["-c", str(config_file), "discover"])

        assert result.exit_code == 0
        assert "lamp" in result.output
        assert "10.0.0.2" in result.output

    @patch("plugsync.cli.build_discovery")
    def test_discovery_failure(self, mock_build, runner, config_file):
        """Test discovery errors are reported."""
        mock_build.return_value = Mock(side_effect=DiscoveryError("network down"))

        result = runner.invoke(main, ["-c", str(config_file), "discover"])

        assert result.exit_code == 1
        assert "network down" in result.output
