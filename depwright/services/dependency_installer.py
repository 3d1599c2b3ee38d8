"""Dependency Installer - installs manifest dependencies one by one.

Each dependency moves pending -> installing -> success | error. A failure
never stops the batch; every outcome ends up in the returned result.
"""
import threading
from contextlib import contextmanager
from typing import Callable, List, Optional

from loguru import logger

from depwright.core.constants import CHECK_TIMEOUT
from depwright.core.errors import InstallInProgressError
from depwright.core.models import (
    BatchInstallResult,
    BatchProgress,
    DependencyDescriptor,
    InstallFailure,
    InstallProgressEvent,
    SingleInstallResult,
)
from depwright.core.types import InstallStatus, ProgressEventType
from depwright.core.version import extract_version
from depwright.services.command_resolver import CommandResolver
from depwright.services.command_runner import STDOUT, CommandRunner

MANUAL_INSTALL_MESSAGE = "No automatic install command is available for this platform/region; manual install required"

BatchProgressCallback = Callable[[BatchProgress], None]
EventCallback = Callable[[InstallProgressEvent], None]


class DependencyInstaller:
    """Orchestrates resolve -> execute -> verify for manifest dependencies."""

    def __init__(
        self,
        resolver: CommandResolver,
        runner: Optional[CommandRunner] = None,
        check_timeout: float = CHECK_TIMEOUT,
    ):
        self._resolver = resolver
        self._runner = runner or CommandRunner()
        self._check_timeout = check_timeout
        self._install_lock = threading.Lock()

    @property
    def is_installing(self) -> bool:
        return self._install_lock.locked()

    @contextmanager
    def _exclusive(self):
        if not self._install_lock.acquire(blocking=False):
            raise InstallInProgressError("Another dependency installation is already running")
        try:
            yield
        finally:
            self._install_lock.release()

    def install_from_manifest(
        self,
        dependencies: List[DependencyDescriptor],
        on_progress: Optional[BatchProgressCallback] = None,
        on_event: Optional[EventCallback] = None,
        verify: bool = True,
    ) -> BatchInstallResult:
        """
        Install dependencies strictly in the given order.

        Each successful install is re-checked with the dependency's check
        command. The re-check is advisory: an unconfirmed version still
        counts as a success and is listed in ``result.unverified``.

        Args:
            dependencies: Descriptors to install
            on_progress: Called before and after each dependency with current/total
            on_event: Receives the command events of every dependency
            verify: Re-check each dependency after a successful install

        Returns:
            BatchInstallResult listing succeeded names and failures

        Raises:
            InstallInProgressError: If another install runs on this instance
        """
        with self._exclusive():
            result = BatchInstallResult()
            total = len(dependencies)
            logger.info(f"[DependencyInstaller] Installing {total} dependencies")

            for current, dependency in enumerate(dependencies, start=1):
                self._report(on_progress, BatchProgress(current, total, dependency.name, InstallStatus.INSTALLING))

                failure = self._install_one(dependency, on_event)
                if failure is None:
                    installed_version = None
                    verified = None
                    if verify and dependency.check_command:
                        installed_version = self._verify(dependency, on_event)
                        verified = installed_version is not None
                        if not verified:
                            logger.warning(
                                f"[DependencyInstaller] Could not confirm the installed version of {dependency.name}"
                            )

                    result.success.append(dependency.name)
                    result.installed_versions[dependency.name] = installed_version
                    self._report(
                        on_progress,
                        BatchProgress(
                            current,
                            total,
                            dependency.name,
                            InstallStatus.SUCCESS,
                            verified=verified,
                            installed_version=installed_version,
                        ),
                    )
                else:
                    result.failed.append(failure)
                    self._report(
                        on_progress,
                        BatchProgress(current, total, dependency.name, InstallStatus.ERROR, failure.error),
                    )

            logger.info(
                f"[DependencyInstaller] Batch finished: {len(result.success)} succeeded, {len(result.failed)} failed"
            )
            return result

    def install_single_dependency(
        self,
        dependency: DependencyDescriptor,
        on_event: Optional[EventCallback] = None,
        verify: bool = True,
    ) -> SingleInstallResult:
        """
        Install one dependency and optionally confirm it with its check command.

        Verification is advisory: a successful install whose check output
        has no version is still reported as a success with verified=False.

        Raises:
            InstallInProgressError: If another install runs on this instance
        """
        with self._exclusive():
            result = SingleInstallResult(
                success=False,
                dependency=dependency.name,
                check_command=dependency.check_command,
            )

            failure = self._install_one(dependency, on_event)
            if failure is not None:
                result.error = failure.error
                result.manual_required = failure.manual_required
                return result

            result.success = True
            if verify and dependency.check_command:
                result.installed_version = self._verify(dependency, on_event)
                result.verified = result.installed_version is not None
                if not result.verified:
                    logger.warning(
                        f"[DependencyInstaller] Could not confirm the installed version of {dependency.name}; "
                        "please verify manually"
                    )
            return result

    def _install_one(
        self,
        dependency: DependencyDescriptor,
        on_event: Optional[EventCallback],
    ) -> Optional[InstallFailure]:
        """Resolve and run the install command; None on success."""
        try:
            parsed = self._resolver.resolve(dependency.install_command)
        except Exception as e:
            logger.error(f"[DependencyInstaller] Failed to resolve install command for {dependency.name}: {e}")
            return InstallFailure(dependency.name, f"Failed to resolve install command: {e}")

        if not parsed.is_available:
            logger.warning(f"[DependencyInstaller] {dependency.name}: {MANUAL_INSTALL_MESSAGE}")
            return InstallFailure(dependency.name, MANUAL_INSTALL_MESSAGE, manual_required=True)

        logger.info(f"[DependencyInstaller] Installing {dependency.name}: {parsed.command}")
        try:
            outcome = self._runner.run_sequence([parsed.command], on_progress=on_event)
        except Exception as e:
            logger.error(f"[DependencyInstaller] {dependency.name} install raised: {e}")
            return InstallFailure(dependency.name, str(e))

        if not outcome.success:
            return InstallFailure(dependency.name, outcome.error or "Installation failed")

        logger.info(f"[DependencyInstaller] {dependency.name} installed")
        return None

    def _verify(self, dependency: DependencyDescriptor, on_event: Optional[EventCallback]) -> Optional[str]:
        """Run the check command and return the version it prints, if any."""
        logger.info(f"[DependencyInstaller] Verifying {dependency.name}: {dependency.check_command}")

        def forward(stream_name: str, line: str) -> None:
            if on_event is None:
                return
            event_type = ProgressEventType.COMMAND_OUTPUT if stream_name == STDOUT else ProgressEventType.COMMAND_ERROR
            on_event(
                InstallProgressEvent(
                    event_type,
                    0,
                    1,
                    command=dependency.check_command,
                    output=line if stream_name == STDOUT else None,
                    error=line if stream_name != STDOUT else None,
                )
            )

        try:
            outcome = self._runner.run(dependency.check_command, on_output=forward, timeout=self._check_timeout)
        except Exception as e:
            logger.warning(f"[DependencyInstaller] Verification of {dependency.name} raised: {e}")
            return None

        # Output is parsed regardless of exit status
        version = extract_version(outcome.output) or extract_version(outcome.error_output)
        if version:
            logger.info(f"[DependencyInstaller] Verified {dependency.name} version {version}")
        return version

    @staticmethod
    def _report(callback: Optional[BatchProgressCallback], progress: BatchProgress) -> None:
        if callback is None:
            return
        try:
            callback(progress)
        except Exception as e:
            logger.warning(f"[DependencyInstaller] Progress callback failed: {e}")
