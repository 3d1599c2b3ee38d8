"""Services - detection, command execution and installation."""
from depwright.services.command_resolver import CommandResolver
from depwright.services.command_runner import CommandRunner
from depwright.services.dependency_checker import DependencyChecker
from depwright.services.dependency_installer import DependencyInstaller
from depwright.services.mirror_helper import MirrorHelper
from depwright.services.package_manager import PackageManager
from depwright.services.region_detector import RegionDetector

__all__ = [
    "CommandResolver",
    "CommandRunner",
    "DependencyChecker",
    "DependencyInstaller",
    "MirrorHelper",
    "PackageManager",
    "RegionDetector",
]
