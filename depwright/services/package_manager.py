"""Package Manager.

Fetches versioned application packages, extracts them into a per-platform
install directory and records what is installed. An install is atomic from
the caller's point of view: either a verified directory exists afterwards,
or the target directory is removed.
"""
import hashlib
import os
import re
import shutil
import stat
import tarfile
import threading
import zipfile
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

import requests
from loguru import logger

from depwright.core.constants import (
    DOWNLOAD_TIMEOUT,
    MIN_FREE_SPACE_MB,
    PACKAGE_ENTRY_BINARY,
    PACKAGE_LAUNCHER_SCRIPT,
    PACKAGE_META_KEY,
    PACKAGE_ROOT_NAME,
)
from depwright.core.errors import (
    ExtractionError,
    InstallInProgressError,
    InsufficientDiskSpaceError,
    PackageSourceError,
    PipelineError,
    VerificationError,
)
from depwright.core.models import PackageInfo, PackageMeta, PackageProgress
from depwright.core.types import InstallStage
from depwright.core.version import parse_version
from depwright.repositories.kv_store import JsonFileStore, KeyValueStore
from depwright.utils.platform_utils import PlatformUtils

# <name>-<version>-<os>-<arch>.<ext>, e.g. app-0.1.0-alpha.8-linux-x64.zip
PACKAGE_FILENAME_PATTERN = re.compile(
    r"^(?P<name>[A-Za-z][A-Za-z0-9_.]*?)-"
    r"(?P<version>\d+\.\d+\.\d+(?:-[A-Za-z0-9.]+)?)-"
    r"(?P<platform>(?:linux|osx|win)-(?:x64|arm64))"
    r"\.(?P<ext>zip|tar\.gz|tgz)$"
)

EXECUTABLE_MODE = 0o755
# tarfile extraction filters (PEP 706) are missing on older interpreters
TAR_HAS_FILTERS = hasattr(tarfile, "data_filter")
_CHUNK_SIZE = 8192

ProgressCallback = Callable[[PackageProgress], None]


def parse_package_filename(filename: str) -> Optional[Tuple[str, str]]:
    """
    Parse version and platform out of a package filename.

    Returns:
        (version, platform) or None if the name does not follow the grammar
    """
    match = PACKAGE_FILENAME_PATTERN.match(os.path.basename(filename))
    if not match:
        return None
    return match.group("version"), match.group("platform")


def _is_remote(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def _package_sort_key(filename: str) -> Tuple:
    """Order package filenames by version; a release sorts above its pre-releases."""
    version, _ = parse_package_filename(filename)
    core, _, suffix = version.partition("-")
    suffix_parts = tuple(
        (0, int(part), "") if part.isdigit() else (1, 0, part)
        for part in suffix.split(".")
    ) if suffix else ()
    return parse_version(core), not suffix, suffix_parts, filename


def _within(path: str, root: str) -> bool:
    return path == root or path.startswith(root + os.sep)


def _check_tar_members(members: List[tarfile.TarInfo], target: str) -> None:
    """
    Reject members that would be written outside target.

    Used when the interpreter's tarfile has no extraction filters.

    Raises:
        ExtractionError: On absolute paths, '..' components, device files
            or links pointing outside target
    """
    root = os.path.realpath(target)
    for member in members:
        name = member.name
        if os.path.isabs(name) or ".." in name.replace("\\", "/").split("/"):
            raise ExtractionError(f"Unsafe path in archive: {name}")
        dest = os.path.realpath(os.path.join(root, name))
        if not _within(dest, root):
            raise ExtractionError(f"Unsafe path in archive: {name}")
        if member.isdev():
            raise ExtractionError(f"Device file in archive: {name}")
        if member.issym() or member.islnk():
            if member.issym():
                link_target = os.path.join(os.path.dirname(dest), member.linkname)
            else:
                link_target = os.path.join(root, member.linkname)
            if os.path.isabs(member.linkname) or not _within(os.path.realpath(link_target), root):
                raise ExtractionError(f"Link outside of install directory in archive: {name}")


class PackageManager:
    """Installs application packages for the host platform."""

    def __init__(
        self,
        data_dir: str,
        package_source: str,
        platform: Optional[str] = None,
        store: Optional[KeyValueStore] = None,
        min_free_space_mb: int = MIN_FREE_SPACE_MB,
        entry_binary: str = PACKAGE_ENTRY_BINARY,
    ):
        self._data_dir = data_dir
        self._package_source = package_source
        self._platform = platform or PlatformUtils.get_package_platform()
        self._min_free_space_mb = min_free_space_mb
        self._entry_binary = entry_binary

        self._root = os.path.join(data_dir, PACKAGE_ROOT_NAME)
        self._installed_dir = os.path.join(self._root, "installed")
        self._cache_dir = os.path.join(self._root, "cache")
        self._meta_store = store or JsonFileStore(os.path.join(self._root, "meta.json"))
        self._install_lock = threading.Lock()

    def get_platform(self) -> str:
        return self._platform

    def get_install_path(self, platform: Optional[str] = None) -> str:
        return os.path.join(self._installed_dir, platform or self._platform)

    @property
    def cache_dir(self) -> str:
        return self._cache_dir

    @property
    def is_installing(self) -> bool:
        return self._install_lock.locked()

    # --- Queries ---

    def read_meta(self) -> Optional[PackageMeta]:
        raw = self._meta_store.get(PACKAGE_META_KEY)
        if not raw:
            return None
        try:
            return PackageMeta.from_dict(raw)
        except (KeyError, TypeError) as e:
            logger.warning(f"[PackageManager] Ignoring malformed package metadata: {e}")
            return None

    def check_installed(self) -> PackageInfo:
        """Report whether a package is installed for the host platform."""
        installed_path = self.get_install_path()
        meta = self.read_meta()

        if not os.path.isdir(installed_path) or meta is None:
            logger.info("[PackageManager] Package not installed")
            return PackageInfo(
                version="none",
                platform=self._platform,
                installed_path=installed_path,
                is_installed=False,
            )

        if meta.platform != self._platform:
            logger.warning(f"[PackageManager] Platform mismatch: {meta.platform} vs {self._platform}")

        return PackageInfo(
            version=meta.version,
            platform=meta.platform,
            installed_path=installed_path,
            is_installed=True,
        )

    def get_installed_version(self) -> str:
        meta = self.read_meta()
        return meta.version if meta else "none"

    def get_available_versions(self) -> List[str]:
        """
        List package filenames in the local package source, newest first.

        Remote sources cannot be listed and yield an empty list.
        """
        if _is_remote(self._package_source):
            logger.info("[PackageManager] Remote package source cannot be listed")
            return []
        try:
            files = os.listdir(self._package_source)
        except OSError as e:
            logger.error(f"[PackageManager] Failed to get available versions: {e}")
            return []
        packages = [f for f in files if PACKAGE_FILENAME_PATTERN.match(f)]
        return sorted(packages, key=_package_sort_key, reverse=True)

    # --- Maintenance ---

    def clear_cache(self) -> None:
        if not os.path.isdir(self._cache_dir):
            return
        for name in os.listdir(self._cache_dir):
            path = os.path.join(self._cache_dir, name)
            try:
                if os.path.isdir(path):
                    shutil.rmtree(path)
                else:
                    os.remove(path)
            except OSError as e:
                logger.error(f"[PackageManager] Failed to remove cached {name}: {e}")
        logger.info("[PackageManager] Cache cleared")

    def remove_installed(self, platform: Optional[str] = None) -> bool:
        """Remove an installed package; clears metadata when it describes that platform."""
        target_platform = platform or self._platform
        install_path = self.get_install_path(target_platform)

        with self._exclusive():
            try:
                shutil.rmtree(install_path, ignore_errors=False)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.error(f"[PackageManager] Failed to remove package: {e}")
                return False

            meta = self.read_meta()
            if meta is not None and meta.platform == target_platform:
                self._meta_store.delete(PACKAGE_META_KEY)

        logger.info(f"[PackageManager] Package removed: {target_platform}")
        return True

    # --- Install pipeline ---

    def install_package(self, package_filename: str, on_progress: Optional[ProgressCallback] = None) -> bool:
        """
        Install a package: disk check, download, extract, fix permissions,
        verify entry points, then record metadata.

        Args:
            package_filename: Archive name, e.g. "app-0.1.0-alpha.8-linux-x64.zip"
            on_progress: Receives PackageProgress updates

        Returns:
            True if the package was installed and verified

        Raises:
            InstallInProgressError: If another package install runs on this instance
        """
        parsed = parse_package_filename(package_filename)
        if parsed:
            version, target_platform = parsed
        else:
            logger.warning(f"[PackageManager] Unrecognised package name {package_filename}, using host platform")
            version, target_platform = "unknown", self._platform

        logger.info(f"[PackageManager] Installing package {package_filename} for {target_platform}")
        with self._exclusive():
            try:
                self._emit(on_progress, InstallStage.VERIFYING, 0, "Checking disk space...")
                self._check_disk_space()
                self._initialize_directories()

                archive_path = self._download_package(package_filename, on_progress)
                checksum = self._sha256(archive_path)

                install_path = self.get_install_path(target_platform)
                self._extract_package(archive_path, install_path, target_platform, on_progress)

                try:
                    self._emit(on_progress, InstallStage.VERIFYING, 90, "Verifying installation...")
                    self._verify_installation(install_path, target_platform)
                    self._write_meta(PackageMeta(
                        version=version,
                        platform=target_platform,
                        installed_at=datetime.now(timezone.utc).isoformat(),
                        checksum=checksum,
                    ))
                except Exception:
                    self._rollback(install_path)
                    raise

                self._emit(on_progress, InstallStage.COMPLETED, 100, "Installation completed successfully")
                logger.info(f"[PackageManager] Package {version} installed for {target_platform}")
                return True
            except (PipelineError, OSError) as e:
                logger.error(f"[PackageManager] Installation failed: {e}")
                self._emit(on_progress, InstallStage.ERROR, 0, f"Installation failed: {e}")
                return False
            except Exception as e:
                logger.exception(f"[PackageManager] Unexpected installation error: {e}")
                self._emit(on_progress, InstallStage.ERROR, 0, f"Installation failed: {e}")
                return False

    @staticmethod
    def _sha256(path: str) -> str:
        digest = hashlib.sha256()
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(1024 * 1024), b""):
                digest.update(chunk)
        return digest.hexdigest()

    @contextmanager
    def _exclusive(self):
        if not self._install_lock.acquire(blocking=False):
            raise InstallInProgressError("Another package operation is already running")
        try:
            yield
        finally:
            self._install_lock.release()

    def _initialize_directories(self) -> None:
        for path in (self._root, self._installed_dir, self._cache_dir):
            os.makedirs(path, exist_ok=True)

    @staticmethod
    def _existing_ancestor(path: str) -> str:
        path = os.path.abspath(path)
        while not os.path.exists(path):
            parent = os.path.dirname(path)
            if parent == path:
                break
            path = parent
        return path

    def _check_disk_space(self) -> None:
        try:
            free_mb = PlatformUtils.get_free_space_mb(self._existing_ancestor(self._root))
        except OSError as e:
            # Let the install itself fail if space really runs out
            logger.error(f"[PackageManager] Failed to check disk space: {e}")
            return

        if free_mb < self._min_free_space_mb:
            raise InsufficientDiskSpaceError(
                f"Insufficient disk space: {int(free_mb)}MB available, {self._min_free_space_mb}MB required"
            )

    def _download_package(self, package_filename: str, on_progress: Optional[ProgressCallback]) -> str:
        """Copy or download the archive into the cache directory."""
        self._emit(on_progress, InstallStage.DOWNLOADING, 0, "Preparing to download package...")
        cache_path = os.path.join(self._cache_dir, os.path.basename(package_filename))

        if _is_remote(self._package_source):
            url = f"{self._package_source.rstrip('/')}/{package_filename}"
            self._fetch_remote(url, cache_path, on_progress)
        else:
            source_path = os.path.join(self._package_source, package_filename)
            if not os.path.isfile(source_path):
                raise PackageSourceError(f"Package source not found: {source_path}")
            self._emit(on_progress, InstallStage.DOWNLOADING, 50, "Copying package...")
            try:
                shutil.copyfile(source_path, cache_path)
            except OSError as e:
                raise PackageSourceError(f"Failed to copy package {source_path}: {e}") from e

        self._emit(on_progress, InstallStage.DOWNLOADING, 100, "Package downloaded successfully")
        return cache_path

    def _fetch_remote(self, url: str, cache_path: str, on_progress: Optional[ProgressCallback]) -> None:
        logger.info(f"[PackageManager] Downloading package from: {url}")
        temp_path = cache_path + ".part"
        try:
            with requests.get(url, stream=True, timeout=DOWNLOAD_TIMEOUT) as response:
                response.raise_for_status()
                total_size = int(response.headers.get("content-length", 0))
                self._emit(on_progress, InstallStage.DOWNLOADING, 50, "Downloading package...")

                downloaded = 0
                with open(temp_path, "wb") as f:
                    for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)
                            downloaded += len(chunk)

            if total_size and downloaded < total_size:
                raise PackageSourceError(f"Incomplete download: {downloaded}/{total_size} bytes")
            os.replace(temp_path, cache_path)
        except (requests.RequestException, OSError) as e:
            raise PackageSourceError(f"Failed to download package {url}: {e}") from e
        finally:
            if os.path.exists(temp_path):
                try:
                    os.remove(temp_path)
                except OSError:
                    pass

    def _extract_package(
        self,
        archive_path: str,
        install_path: str,
        platform: str,
        on_progress: Optional[ProgressCallback],
    ) -> None:
        """Replace install_path with the archive contents; removes it on failure."""
        self._emit(on_progress, InstallStage.EXTRACTING, 0, "Preparing to extract package...")

        # Remove existing installation
        shutil.rmtree(install_path, ignore_errors=True)

        try:
            os.makedirs(install_path, exist_ok=True)
            self._emit(on_progress, InstallStage.EXTRACTING, 20, "Extracting files...")
            self._extract_archive(archive_path, install_path)

            self._emit(on_progress, InstallStage.EXTRACTING, 80, "Setting file permissions...")
            self._set_executable_permissions(install_path, platform)
        except Exception as e:
            # Includes zlib.error, NotImplementedError and RuntimeError raised by zipfile
            self._rollback(install_path)
            raise ExtractionError(f"Failed to extract package: {e}") from e

        self._emit(on_progress, InstallStage.EXTRACTING, 100, "Package extracted successfully")

    @staticmethod
    def _extract_archive(archive_path: str, target: str) -> None:
        lower = archive_path.lower()
        if lower.endswith((".tar.gz", ".tgz")):
            with tarfile.open(archive_path, "r:gz") as tar:
                if TAR_HAS_FILTERS:
                    tar.extractall(target, filter="data")
                else:
                    members = tar.getmembers()
                    _check_tar_members(members, target)
                    tar.extractall(target, members=members)
        else:
            with zipfile.ZipFile(archive_path, "r") as zip_ref:
                zip_ref.extractall(target)

    def _entry_points(self, platform: str) -> Tuple[List[str], List[str]]:
        """Return (required, optional) executable entry points for a platform."""
        if platform.startswith("linux"):
            return [PACKAGE_LAUNCHER_SCRIPT], [self._entry_binary]
        if platform.startswith("osx"):
            return [self._entry_binary], []
        if platform.startswith("win"):
            return [f"{self._entry_binary}.exe"], []
        return [], []

    def _set_executable_permissions(self, install_path: str, platform: str) -> None:
        if platform.startswith("win"):
            return  # Windows doesn't need executable permissions

        required, optional = self._entry_points(platform)
        for name in required + optional:
            path = os.path.join(install_path, name)
            if not os.path.exists(path):
                continue
            try:
                mode = os.stat(path).st_mode
                os.chmod(path, mode | EXECUTABLE_MODE | stat.S_IXUSR)
            except OSError as e:
                # Non-fatal, verification decides
                logger.warning(f"[PackageManager] Failed to set executable permissions on {name}: {e}")

    def _verify_installation(self, install_path: str, platform: str) -> None:
        required, _ = self._entry_points(platform)
        if not required:
            raise VerificationError(f"Unsupported platform: {platform}")
        for name in required:
            if not os.path.isfile(os.path.join(install_path, name)):
                raise VerificationError(f"Installation verification failed: {name} not found")

    def _write_meta(self, meta: PackageMeta) -> None:
        if not self._meta_store.set(PACKAGE_META_KEY, meta.to_dict()):
            raise PipelineError("Failed to write package metadata")

    @staticmethod
    def _rollback(install_path: str) -> None:
        logger.warning(f"[PackageManager] Rolling back {install_path}")
        shutil.rmtree(install_path, ignore_errors=True)

    @staticmethod
    def _emit(callback: Optional[ProgressCallback], stage: InstallStage, progress: int, message: str) -> None:
        if callback is None:
            return
        try:
            callback(PackageProgress(stage, progress, message))
        except Exception as e:
            logger.warning(f"[PackageManager] Progress callback failed: {e}")
