"""Dependency Checker - detects installed dependencies and their versions."""
from typing import List, Optional

from loguru import logger

from depwright.core.constants import CHECK_TIMEOUT
from depwright.core.errors import VersionParseError
from depwright.core.models import DependencyCheckResult, DependencyDescriptor
from depwright.core.version import extract_version, format_required_version, satisfies
from depwright.services.command_resolver import CommandResolver
from depwright.services.command_runner import CommandRunner

# Reported when the check command succeeds but prints no version
UNKNOWN_VERSION = "installed"


class DependencyChecker:
    """Runs check commands and classifies each dependency."""

    def __init__(
        self,
        runner: Optional[CommandRunner] = None,
        resolver: Optional[CommandResolver] = None,
        timeout: float = CHECK_TIMEOUT,
    ):
        self._runner = runner or CommandRunner()
        self._resolver = resolver
        self._timeout = timeout

    def check(self, descriptor: DependencyDescriptor) -> DependencyCheckResult:
        """
        Check one dependency.

        Never raises: a failing, missing or hanging check command means the
        dependency is reported as not installed.
        """
        constraint = descriptor.version_constraints
        result = DependencyCheckResult(
            key=descriptor.key,
            name=descriptor.name,
            type=descriptor.type,
            installed=False,
            required_version=format_required_version(constraint),
            check_command=descriptor.check_command,
            install_command=self._display_install_command(descriptor),
            download_url=descriptor.download_url,
            description=descriptor.description,
        )

        try:
            outcome = self._runner.run(descriptor.check_command, timeout=self._timeout)
        except Exception as e:
            logger.warning(f"[DependencyChecker] Check for {descriptor.key} raised: {e}")
            return result

        if not outcome:
            logger.info(f"[DependencyChecker] {descriptor.name} not installed ({outcome.describe_failure()})")
            return result

        version = extract_version(outcome.output) or extract_version(outcome.error_output)
        result.installed = True
        result.version = version or UNKNOWN_VERSION
        result.version_mismatch = not self._is_satisfied(descriptor, result.version)

        logger.info(
            f"[DependencyChecker] {descriptor.name}: version={result.version} "
            f"required={result.required_version} mismatch={result.version_mismatch}"
        )
        return result

    def check_all(self, descriptors: List[DependencyDescriptor]) -> List[DependencyCheckResult]:
        return [self.check(descriptor) for descriptor in descriptors]

    @staticmethod
    def _is_satisfied(descriptor: DependencyDescriptor, version: str) -> bool:
        try:
            return satisfies(version, descriptor.version_constraints)
        except VersionParseError as e:
            # Unparsable output is advisory only; do not flag a mismatch
            logger.warning(f"[DependencyChecker] {descriptor.name}: {e}; skipping version constraint")
            return True

    def _display_install_command(self, descriptor: DependencyDescriptor) -> Optional[str]:
        if self._resolver is None:
            return None
        try:
            parsed = self._resolver.resolve(descriptor.install_command)
        except Exception as e:
            logger.warning(f"[DependencyChecker] Could not resolve install command for {descriptor.key}: {e}")
            return None
        return parsed.command if parsed.is_available else None
