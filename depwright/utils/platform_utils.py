"""Platform detection and abstraction utilities."""
import locale
import os
import platform
import subprocess
from enum import Enum
from typing import Optional, Tuple

import psutil


class Platform(Enum):
    """Operating system platforms."""
    WINDOWS = "windows"
    MACOS = "macos"
    LINUX = "linux"


class Architecture(Enum):
    """CPU architectures."""
    X86_64 = "x86_64"
    ARM64 = "arm64"
    X86 = "x86"
    UNKNOWN = "unknown"


# Package platform prefixes used in archive filenames (e.g., app-1.0.0-linux-x64.zip)
PACKAGE_PLATFORM_PREFIX = {
    Platform.WINDOWS: "win",
    Platform.MACOS: "osx",
    Platform.LINUX: "linux",
}


class PlatformUtils:
    """Utility class for platform detection and abstraction."""

    @staticmethod
    def get_platform() -> Platform:
        """
        Detect the current operating system.

        Returns:
            Platform enum value: Platform.WINDOWS, Platform.MACOS, or Platform.LINUX
        """
        system = platform.system()
        if system == "Windows" or os.name == "nt":
            return Platform.WINDOWS
        elif system == "Darwin":
            return Platform.MACOS
        else:
            return Platform.LINUX

    @staticmethod
    def get_architecture() -> Architecture:
        """
        Detect the CPU architecture.

        Returns:
            Architecture enum value
        """
        machine = platform.machine().lower()

        # Normalize common architecture names
        if machine in ("amd64", "x86_64", "x64"):
            return Architecture.X86_64
        elif machine in ("arm64", "aarch64", "arm64-v8a"):
            return Architecture.ARM64
        elif machine in ("i386", "i686", "x86"):
            return Architecture.X86
        else:
            return Architecture.UNKNOWN

    @staticmethod
    def get_platform_arch() -> Tuple[Platform, Architecture]:
        """
        Get both platform and architecture.

        Returns:
            Tuple of (Platform, Architecture) enums
        """
        return PlatformUtils.get_platform(), PlatformUtils.get_architecture()

    @staticmethod
    def get_package_platform() -> str:
        """
        Get the package platform identifier for this host.

        Returns:
            'linux-x64', 'osx-x64', 'win-x64' or the '-arm64' variant
        """
        plat, arch = PlatformUtils.get_platform_arch()
        suffix = "arm64" if arch == Architecture.ARM64 else "x64"
        return f"{PACKAGE_PLATFORM_PREFIX[plat]}-{suffix}"

    @staticmethod
    def get_locale() -> Optional[str]:
        """
        Get the active locale as a BCP 47 style tag.

        Returns:
            Tag such as 'zh-CN' or 'en-US', None if it cannot be determined
        """
        raw = None
        for var in ("LC_ALL", "LC_MESSAGES", "LANG"):
            value = os.environ.get(var)
            if value and value not in ("C", "POSIX"):
                raw = value
                break

        if not raw:
            raw = locale.getlocale()[0]

        return PlatformUtils.normalize_locale(raw) if raw else None

    @staticmethod
    def normalize_locale(raw: str) -> str:
        """
        Normalize a POSIX locale name into a language-REGION tag.

        'zh_CN.UTF-8' -> 'zh-CN', 'en_us' -> 'en-US', 'fr' -> 'fr'
        """
        tag = raw.split(".", 1)[0].split("@", 1)[0].replace("_", "-")
        parts = tag.split("-")
        if len(parts) >= 2:
            return f"{parts[0].lower()}-{parts[-1].upper()}"
        return parts[0].lower()

    @staticmethod
    def get_free_space_mb(path: str) -> float:
        """
        Get free disk space for the filesystem containing path.

        Args:
            path: Existing path on the filesystem to inspect

        Returns:
            Free space in megabytes
        """
        usage = psutil.disk_usage(path)
        return usage.free / (1024 * 1024)

    @staticmethod
    def get_default_data_dir(app_name: str = "depwright") -> str:
        """Get the per-user data directory for the platform."""
        plat = PlatformUtils.get_platform()
        home = os.path.expanduser("~")
        if plat == Platform.WINDOWS:
            base = os.environ.get("APPDATA", os.path.join(home, "AppData", "Roaming"))
            return os.path.join(base, app_name)
        elif plat == Platform.MACOS:
            return os.path.join(home, "Library", "Application Support", app_name)
        base = os.environ.get("XDG_DATA_HOME", os.path.join(home, ".local", "share"))
        return os.path.join(base, app_name)

    @staticmethod
    def get_default_config_dir(app_name: str = "depwright") -> str:
        """Get the per-user configuration directory for the platform."""
        plat = PlatformUtils.get_platform()
        if plat in (Platform.WINDOWS, Platform.MACOS):
            return PlatformUtils.get_default_data_dir(app_name)
        home = os.path.expanduser("~")
        base = os.environ.get("XDG_CONFIG_HOME", os.path.join(home, ".config"))
        return os.path.join(base, app_name)

    @staticmethod
    def get_subprocess_flags() -> int:
        """
        Get platform-specific subprocess creation flags.

        Returns:
            CREATE_NO_WINDOW flag on Windows, 0 on other platforms
        """
        if PlatformUtils.get_platform() == Platform.WINDOWS:
            # CREATE_NO_WINDOW only exists on Windows
            return getattr(subprocess, "CREATE_NO_WINDOW", 0x08000000)
        return 0

    @staticmethod
    def get_startupinfo():
        """
        Get STARTUPINFO object for hiding subprocess windows on Windows.

        Returns:
            STARTUPINFO object with STARTF_USESHOWWINDOW on Windows, None otherwise
        """
        if PlatformUtils.get_platform() == Platform.WINDOWS:
            # STARTUPINFO and related constants only exist on Windows
            STARTUPINFO = getattr(subprocess, "STARTUPINFO", None)
            if STARTUPINFO:
                startupinfo = STARTUPINFO()
                startupinfo.dwFlags |= getattr(subprocess, "STARTF_USESHOWWINDOW", 0x00000001)
                startupinfo.wShowWindow = getattr(subprocess, "SW_HIDE", 0)
                return startupinfo
        return None
