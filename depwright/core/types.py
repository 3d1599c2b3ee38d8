"""Core types and enums."""
from enum import Enum


class Region(Enum):
    """Coarse network region used to pick install mirrors."""

    CN = "CN"
    INTERNATIONAL = "INTERNATIONAL"

    def __str__(self):
        return self.value


class DetectionMethod(Enum):
    """How a region detection result was obtained."""

    LOCALE = "locale"
    CACHE = "cache"

    def __str__(self):
        return self.value


class DependencyType(Enum):
    """Kinds of external dependencies."""

    SYSTEM_RUNTIME = "system-runtime"
    CLI_TOOL = "cli-tool"
    LANGUAGE_RUNTIME = "language-runtime"

    def __str__(self):
        return self.value


class InstallCommandType(Enum):
    """Outcome of install command resolution."""

    SHELL = "shell"
    NOT_AVAILABLE = "not-available"

    def __str__(self):
        return self.value


class ProgressEventType(Enum):
    """Events emitted while running install commands."""

    COMMAND_START = "command-start"
    COMMAND_OUTPUT = "command-output"
    COMMAND_ERROR = "command-error"
    COMMAND_COMPLETE = "command-complete"
    INSTALL_COMPLETE = "install-complete"
    INSTALL_ERROR = "install-error"

    def __str__(self):
        return self.value


class InstallStatus(Enum):
    """Per-dependency state during a batch install."""

    PENDING = "pending"
    INSTALLING = "installing"
    SUCCESS = "success"
    ERROR = "error"

    def __str__(self):
        return self.value


class InstallStage(Enum):
    """Package install pipeline stages."""

    VERIFYING = "verifying"
    DOWNLOADING = "downloading"
    EXTRACTING = "extracting"
    COMPLETED = "completed"
    ERROR = "error"

    def __str__(self):
        return self.value
