"""Data models shared by the dependency and package services."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from depwright.core.types import (
    DependencyType,
    DetectionMethod,
    InstallCommandType,
    InstallStage,
    InstallStatus,
    ProgressEventType,
    Region,
)


@dataclass(frozen=True)
class VersionConstraint:
    """Version bounds a detected version must satisfy.

    When ``exact`` is set, ``min`` and ``max`` are ignored.
    ``recommended`` is informational only.
    """

    exact: Optional[str] = None
    min: Optional[str] = None
    max: Optional[str] = None
    recommended: Optional[str] = None

    def is_empty(self) -> bool:
        return not (self.exact or self.min or self.max or self.recommended)


# Install command variants


@dataclass(frozen=True)
class NoCommand:
    """The dependency cannot be installed automatically."""


@dataclass(frozen=True)
class SingleCommand:
    """One command used regardless of region."""

    command: str


@dataclass(frozen=True)
class RegionalCommand:
    """Per-region commands with an optional universal fallback."""

    china: Optional[str] = None
    international: Optional[str] = None
    default: Optional[str] = None


InstallCommand = Union[NoCommand, SingleCommand, RegionalCommand]


@dataclass(frozen=True)
class ParsedInstallCommand:
    """A resolved, executable install command or the manual-install sentinel."""

    type: InstallCommandType
    command: Optional[str] = None

    @property
    def is_available(self) -> bool:
        return self.type == InstallCommandType.SHELL and bool(self.command)

    @classmethod
    def shell(cls, command: str) -> "ParsedInstallCommand":
        return cls(InstallCommandType.SHELL, command)

    @classmethod
    def not_available(cls) -> "ParsedInstallCommand":
        return cls(InstallCommandType.NOT_AVAILABLE)


@dataclass(frozen=True)
class DependencyDescriptor:
    """Declarative description of one external dependency."""

    key: str
    name: str
    type: DependencyType
    check_command: str
    install_command: InstallCommand = field(default_factory=NoCommand)
    description: str = ""
    version_constraints: VersionConstraint = field(default_factory=VersionConstraint)
    download_url: Optional[str] = None


@dataclass
class DependencyCheckResult:
    """Result of checking one dependency. Produced fresh on every check."""

    key: str
    name: str
    type: DependencyType
    installed: bool
    required_version: str
    check_command: str
    install_command: Optional[str] = None
    version: Optional[str] = None
    version_mismatch: Optional[bool] = None
    download_url: Optional[str] = None
    description: str = ""

    @property
    def needs_install(self) -> bool:
        return not self.installed or bool(self.version_mismatch)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "key": self.key,
            "name": self.name,
            "type": self.type.value,
            "installed": self.installed,
            "requiredVersion": self.required_version,
            "installCommand": self.install_command,
            "checkCommand": self.check_command,
            "description": self.description,
        }
        if self.version is not None:
            data["version"] = self.version
        if self.version_mismatch is not None:
            data["versionMismatch"] = self.version_mismatch
        if self.download_url:
            data["downloadUrl"] = self.download_url
        return data


@dataclass(frozen=True)
class RegionDetectionResult:
    region: Region
    detected_at: datetime
    method: DetectionMethod

    def to_dict(self) -> Dict[str, str]:
        return {
            "region": self.region.value,
            "detectedAt": self.detected_at.isoformat(),
            "method": self.method.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RegionDetectionResult":
        detected_at = datetime.fromisoformat(data["detectedAt"])
        return cls(
            region=Region(data["region"]),
            detected_at=detected_at,
            method=DetectionMethod(data.get("method", DetectionMethod.LOCALE.value)),
        )


@dataclass(frozen=True)
class MirrorStatus:
    region: Region
    mirror_url: str
    mirror_name: str
    detected_at: Optional[datetime]


@dataclass(frozen=True)
class InstallProgressEvent:
    """One event of a command sequence run."""

    type: ProgressEventType
    command_index: int
    total_commands: int
    command: Optional[str] = None
    output: Optional[str] = None
    error: Optional[str] = None
    exit_code: Optional[int] = None


@dataclass
class CommandResult:
    """Outcome of one subprocess run.

    Truthy only when the process exited with status 0. ``spawn_error`` is set
    when the process could not be started at all.
    """

    command: str
    exit_code: Optional[int] = None
    timed_out: bool = False
    spawn_error: Optional[str] = None
    stdout: List[str] = field(default_factory=list)
    stderr: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.spawn_error is None and not self.timed_out and self.exit_code == 0

    def __bool__(self) -> bool:
        return self.success

    @property
    def output(self) -> str:
        return "\n".join(self.stdout)

    @property
    def error_output(self) -> str:
        return "\n".join(self.stderr)

    def describe_failure(self) -> Optional[str]:
        if self.success:
            return None
        if self.spawn_error is not None:
            return f"failed to start: {self.spawn_error}"
        if self.timed_out:
            return "timed out"
        return f"exited with code {self.exit_code}"


@dataclass(frozen=True)
class SequenceResult:
    success: bool
    error: Optional[str] = None
    failed_index: Optional[int] = None


@dataclass(frozen=True)
class InstallFailure:
    dependency: str
    error: str
    manual_required: bool = False


@dataclass
class BatchInstallResult:
    success: List[str] = field(default_factory=list)
    failed: List[InstallFailure] = field(default_factory=list)
    # Version confirmed by the post-install check, None when it could not be confirmed
    installed_versions: Dict[str, Optional[str]] = field(default_factory=dict)

    @property
    def all_succeeded(self) -> bool:
        return not self.failed

    @property
    def unverified(self) -> List[str]:
        return [name for name in self.success if self.installed_versions.get(name) is None]


@dataclass(frozen=True)
class BatchProgress:
    current: int
    total: int
    dependency: str
    status: InstallStatus
    error: Optional[str] = None
    verified: Optional[bool] = None
    installed_version: Optional[str] = None


@dataclass
class SingleInstallResult:
    success: bool
    dependency: str
    error: Optional[str] = None
    manual_required: bool = False
    check_command: Optional[str] = None
    # None when verification was not attempted
    verified: Optional[bool] = None
    installed_version: Optional[str] = None


@dataclass(frozen=True)
class PackageMeta:
    """Record of the currently installed application package."""

    version: str
    platform: str
    installed_at: str
    checksum: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "version": self.version,
            "platform": self.platform,
            "installedAt": self.installed_at,
        }
        if self.checksum:
            data["checksum"] = self.checksum
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PackageMeta":
        return cls(
            version=data["version"],
            platform=data["platform"],
            installed_at=data.get("installedAt", ""),
            checksum=data.get("checksum"),
        )


@dataclass(frozen=True)
class PackageInfo:
    version: str
    platform: str
    installed_path: str
    is_installed: bool


@dataclass(frozen=True)
class PackageProgress:
    stage: InstallStage
    progress: int
    message: str
