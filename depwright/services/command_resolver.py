"""Install command resolution.

Maps an install command variant and a region to a concrete shell command.
Nothing here executes or validates the command.
"""
from typing import Optional

from loguru import logger

from depwright.core.models import (
    InstallCommand,
    NoCommand,
    ParsedInstallCommand,
    RegionalCommand,
    SingleCommand,
)
from depwright.core.types import Region
from depwright.services.region_detector import RegionDetector


def resolve_install_command(command: InstallCommand, region: Region) -> ParsedInstallCommand:
    """
    Select the command for a region.

    Args:
        command: Install command variant from the manifest
        region: Detected region

    Returns:
        ParsedInstallCommand of type 'shell', or 'not-available' when no
        variant applies to the region and there is no universal fallback
    """
    if isinstance(command, NoCommand) or command is None:
        return ParsedInstallCommand.not_available()

    if isinstance(command, SingleCommand):
        if not command.command:
            return ParsedInstallCommand.not_available()
        return ParsedInstallCommand.shell(command.command)

    if isinstance(command, RegionalCommand):
        selected = command.china if region == Region.CN else command.international
        selected = selected or command.default
        if not selected:
            return ParsedInstallCommand.not_available()
        return ParsedInstallCommand.shell(selected)

    raise TypeError(f"Unknown install command variant: {type(command).__name__}")


class CommandResolver:
    """Resolves install commands against the currently detected region."""

    def __init__(self, region_detector: RegionDetector):
        self._region_detector = region_detector

    def resolve(self, command: InstallCommand, region: Optional[Region] = None) -> ParsedInstallCommand:
        region = region or self._region_detector.get_region()
        parsed = resolve_install_command(command, region)
        logger.debug(f"[CommandResolver] Resolved {type(command).__name__} for {region}: {parsed.type}")
        return parsed
