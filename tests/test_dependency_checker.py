"""Tests for dependency detection."""

from unittest.mock import MagicMock

import pytest

from depwright.core.models import (
    CommandResult,
    DependencyDescriptor,
    ParsedInstallCommand,
    SingleCommand,
    VersionConstraint,
)
from depwright.core.types import DependencyType
from depwright.services.dependency_checker import UNKNOWN_VERSION, DependencyChecker


def make_descriptor(**kwargs):
    defaults = dict(
        key="dotnet",
        name=".NET Runtime",
        type=DependencyType.SYSTEM_RUNTIME,
        check_command="dotnet --version",
        install_command=SingleCommand("install-dotnet"),
        version_constraints=VersionConstraint(min="8.0.0", max="9.0.0"),
    )
    defaults.update(kwargs)
    return DependencyDescriptor(**defaults)


def result_with(stdout=None, stderr=None, exit_code=0, **kwargs):
    return CommandResult(command="check", exit_code=exit_code, stdout=stdout or [], stderr=stderr or [], **kwargs)


@pytest.fixture
def runner():
    return MagicMock()


class TestDependencyChecker:
    def test_installed_in_range(self, runner):
        """Test a version inside the bounds is not a mismatch."""
        runner.run.return_value = result_with(["dotnet 8.0.3"])
        result = DependencyChecker(runner=runner).check(make_descriptor())

        assert result.installed is True
        assert result.version == "8.0.3"
        assert result.version_mismatch is False
        assert result.required_version == "8.0.0+, <= 9.0.0"
        assert result.needs_install is False

    def test_version_out_of_range(self, runner):
        """Test a version outside the bounds is a mismatch."""
        runner.run.return_value = result_with(["7.0.1"])
        result = DependencyChecker(runner=runner).check(make_descriptor())

        assert result.installed is True
        assert result.version_mismatch is True
        assert result.needs_install is True

    def test_exact_constraint(self, runner):
        """Test exact constraints compare the pre-release suffix."""
        runner.run.return_value = result_with(["tool 0.1.0-alpha.8"])
        descriptor = make_descriptor(version_constraints=VersionConstraint(exact="0.1.0-alpha.9"))
        result = DependencyChecker(runner=runner).check(descriptor)

        assert result.version == "0.1.0-alpha.8"
        assert result.version_mismatch is True

    def test_not_installed(self, runner):
        """Test a failing check command means not installed."""
        runner.run.return_value = result_with(exit_code=127, stderr=["command not found"])
        result = DependencyChecker(runner=runner).check(make_descriptor())

        assert result.installed is False
        assert result.version is None
        assert result.version_mismatch is None
        assert result.needs_install is True

    def test_timeout_means_not_installed(self, runner):
        """Test a timed out check is reported as not installed."""
        runner.run.return_value = CommandResult(command="check", timed_out=True)
        result = DependencyChecker(runner=runner).check(make_descriptor())
        assert result.installed is False

    def test_runner_exception(self, runner):
        """Test runner errors never escape check()."""
        runner.run.side_effect = RuntimeError("boom")
        result = DependencyChecker(runner=runner).check(make_descriptor())
        assert result.installed is False

    def test_no_version_in_output(self, runner):
        """Test output without a version is 'installed' and advisory."""
        runner.run.return_value = result_with(["command available"])
        result = DependencyChecker(runner=runner).check(make_descriptor())

        assert result.installed is True
        assert result.version == UNKNOWN_VERSION
        assert result.version_mismatch is False

    def test_version_on_stderr(self, runner):
        """Test versions printed on stderr are found."""
        runner.run.return_value = result_with(stderr=["java version 17.0.2"])
        descriptor = make_descriptor(version_constraints=VersionConstraint(min="17.0.0"))
        result = DependencyChecker(runner=runner).check(descriptor)
        assert result.version == "17.0.2"
        assert result.version_mismatch is False

    def test_uses_check_timeout(self, runner):
        """Test the check timeout is passed to the runner."""
        runner.run.return_value = result_with(["1.0.0"])
        DependencyChecker(runner=runner, timeout=3).check(make_descriptor())
        runner.run.assert_called_once_with("dotnet --version", timeout=3)

    def test_install_command_from_resolver(self, runner):
        """Test the resolved install command is shown in the result."""
        runner.run.return_value = result_with(exit_code=1)
        resolver = MagicMock()
        resolver.resolve.return_value = ParsedInstallCommand.shell("winget install dotnet")

        result = DependencyChecker(runner=runner, resolver=resolver).check(make_descriptor())

        assert result.install_command == "winget install dotnet"
        assert result.to_dict()["installCommand"] == "winget install dotnet"

    def test_install_command_not_available(self, runner):
        """Test manual-only dependencies have no install command."""
        runner.run.return_value = result_with(exit_code=1)
        resolver = MagicMock()
        resolver.resolve.return_value = ParsedInstallCommand.not_available()

        result = DependencyChecker(runner=runner, resolver=resolver).check(make_descriptor())
        assert result.install_command is None

    def test_to_dict_keys(self, runner):
        """Test serialised results use camelCase keys."""
        runner.run.return_value = result_with(["8.0.3"])
        data = DependencyChecker(runner=runner).check(make_descriptor(download_url="https://dot.net")).to_dict()

        assert data["requiredVersion"] == "8.0.0+, <= 9.0.0"
        assert data["versionMismatch"] is False
        assert data["downloadUrl"] == "https://dot.net"
        assert data["type"] == "system-runtime"

    def test_check_all(self, runner):
        """Test check_all preserves order."""
        runner.run.return_value = result_with(["8.0.3"])
        descriptors = [make_descriptor(key="a"), make_descriptor(key="b")]
        results = DependencyChecker(runner=runner).check_all(descriptors)
        assert [r.key for r in results] == ["a", "b"]
