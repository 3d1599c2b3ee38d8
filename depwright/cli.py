"""CLI interface for depwright.

Usage:
    depwright check --manifest deps.yaml
    depwright install --manifest deps.yaml
    depwright install-one dotnet --manifest deps.yaml
    depwright region --redetect
    depwright package install app-0.1.0-linux-x64.zip
"""

import json
import sys
from dataclasses import dataclass
from typing import List, Optional

import typer
from loguru import logger

from depwright import __version__
from depwright.core.config import Config
from depwright.core.constants import SETTINGS_STORE_PATH
from depwright.core.errors import InstallInProgressError, ManifestError
from depwright.core.logger import setup_logging
from depwright.core.models import (
    BatchProgress,
    DependencyCheckResult,
    DependencyDescriptor,
    InstallProgressEvent,
    PackageProgress,
)
from depwright.core.types import InstallStatus, ProgressEventType
from depwright.repositories.kv_store import JsonFileStore
from depwright.repositories.manifest_loader import Manifest, ManifestLoader
from depwright.services.command_resolver import CommandResolver
from depwright.services.command_runner import CommandRunner
from depwright.services.dependency_checker import DependencyChecker
from depwright.services.dependency_installer import DependencyInstaller
from depwright.services.mirror_helper import MirrorHelper
from depwright.services.package_manager import PackageManager, parse_package_filename
from depwright.services.region_detector import RegionDetector

app = typer.Typer(
    name="depwright",
    help="Detect, install and verify runtime dependencies and application packages",
    add_completion=False,
)
package_app = typer.Typer(help="Manage the application package")
app.add_typer(package_app, name="package")

MANIFEST_OPTION = typer.Option(None, "--manifest", "-m", help="Manifest file (JSON or YAML)")


@dataclass
class Core:
    config: Config
    region_detector: RegionDetector
    mirror_helper: MirrorHelper
    resolver: CommandResolver
    checker: DependencyChecker
    installer: DependencyInstaller
    package_manager: PackageManager


def _init_core() -> Core:
    """Initialize configuration, logging and services."""
    config = Config()
    setup_logging(config.get("log_level", "info"))

    store = JsonFileStore(SETTINGS_STORE_PATH)
    region_detector = RegionDetector(store)
    resolver = CommandResolver(region_detector)
    runner = CommandRunner()

    return Core(
        config=config,
        region_detector=region_detector,
        mirror_helper=MirrorHelper(region_detector),
        resolver=resolver,
        checker=DependencyChecker(runner=runner, resolver=resolver),
        installer=DependencyInstaller(resolver, runner=runner),
        package_manager=PackageManager(config.get("data_dir"), config.get("package_source")),
    )


def _load_manifest(core: Core, manifest_path: Optional[str]) -> Manifest:
    path = manifest_path or core.config.get("manifest")
    if not path:
        typer.echo("❌ Error: No manifest given. Use --manifest or set 'manifest' in the config", err=True)
        raise typer.Exit(1)

    try:
        return ManifestLoader().load(path)
    except ManifestError as e:
        typer.echo(f"❌ Error: {e}", err=True)
        raise typer.Exit(1)


def _print_check_result(result: DependencyCheckResult) -> None:
    if not result.installed:
        icon, state = "❌", "not installed"
    elif result.version_mismatch:
        icon, state = "⚠️ ", f"{result.version} (version mismatch)"
    else:
        icon, state = "✅", result.version

    typer.echo(f"  {icon} {result.name:20} {state}")
    typer.echo(f"     Required: {result.required_version}")
    if result.needs_install:
        if result.install_command:
            typer.echo(f"     Install: {result.install_command}")
        elif result.download_url:
            typer.echo(f"     Download: {result.download_url}")


def _echo_event(event: InstallProgressEvent) -> None:
    if event.type == ProgressEventType.COMMAND_START:
        typer.echo(f"   $ {event.command}")
    elif event.type == ProgressEventType.COMMAND_OUTPUT:
        typer.echo(f"     {event.output}")
    elif event.type == ProgressEventType.COMMAND_ERROR:
        typer.echo(f"     {event.error}", err=True)


def _echo_batch_progress(progress: BatchProgress) -> None:
    prefix = f"[{progress.current}/{progress.total}]"
    if progress.status == InstallStatus.INSTALLING:
        typer.echo(f"🔄 {prefix} Installing {progress.dependency}...")
    elif progress.status == InstallStatus.SUCCESS:
        version = f" (version {progress.installed_version})" if progress.installed_version else ""
        typer.echo(f"✅ {prefix} {progress.dependency} installed{version}")
    elif progress.status == InstallStatus.ERROR:
        typer.echo(f"❌ {prefix} {progress.dependency} failed: {progress.error}")


def _echo_package_progress(progress: PackageProgress) -> None:
    typer.echo(f"   [{progress.stage.value:11}] {progress.progress:3}% {progress.message}")


@app.command()
def check(
    manifest: Optional[str] = MANIFEST_OPTION,
    as_json: bool = typer.Option(False, "--json", help="Print results as JSON"),
):
    """Check which manifest dependencies are installed."""
    core = _init_core()
    loaded = _load_manifest(core, manifest)

    results = core.checker.check_all(loaded.dependencies)

    if as_json:
        typer.echo(json.dumps([r.to_dict() for r in results], indent=2))
    else:
        typer.echo(f"📋 Dependencies ({len(results)}):\n")
        for result in results:
            _print_check_result(result)

    if any(r.needs_install for r in results):
        raise typer.Exit(1)


@app.command()
def install(
    manifest: Optional[str] = MANIFEST_OPTION,
    install_all: bool = typer.Option(False, "--all", help="Install every dependency, not just missing ones"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show command output"),
    verify: bool = typer.Option(True, "--verify/--no-verify", help="Re-check each dependency after installing"),
):
    """Install missing manifest dependencies in order."""
    core = _init_core()
    loaded = _load_manifest(core, manifest)

    targets: List[DependencyDescriptor] = loaded.dependencies
    if not install_all:
        needed = {r.key for r in core.checker.check_all(targets) if r.needs_install}
        targets = [d for d in targets if d.key in needed]

    if not targets:
        typer.echo("✅ All dependencies are already installed")
        return

    try:
        result = core.installer.install_from_manifest(
            targets,
            on_progress=_echo_batch_progress,
            on_event=_echo_event if verbose else None,
            verify=verify,
        )
    except InstallInProgressError as e:
        typer.echo(f"❌ Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"\n✨ {len(result.success)} installed, {len(result.failed)} failed")
    for failure in result.failed:
        typer.echo(f"   ❌ {failure.dependency}: {failure.error}")
    for name in result.unverified if verify else []:
        typer.echo(f"   ⚠️  {name}: could not confirm the installed version")

    if not result.all_succeeded:
        raise typer.Exit(1)


@app.command("install-one")
def install_one(
    key: str = typer.Argument(..., help="Dependency key from the manifest"),
    manifest: Optional[str] = MANIFEST_OPTION,
    verify: bool = typer.Option(True, "--verify/--no-verify", help="Run the check command afterwards"),
):
    """Install a single dependency and verify it."""
    core = _init_core()
    loaded = _load_manifest(core, manifest)

    dependency = loaded.get(key)
    if dependency is None:
        typer.echo(f"❌ Error: Dependency '{key}' not found in manifest", err=True)
        raise typer.Exit(1)

    typer.echo(f"🔄 Installing {dependency.name}...")
    try:
        result = core.installer.install_single_dependency(dependency, on_event=_echo_event, verify=verify)
    except InstallInProgressError as e:
        typer.echo(f"❌ Error: {e}", err=True)
        raise typer.Exit(1)

    if not result.success:
        typer.echo(f"❌ {dependency.name} failed: {result.error}")
        if result.manual_required and dependency.download_url:
            typer.echo(f"   Download: {dependency.download_url}")
        raise typer.Exit(1)

    typer.echo(f"✅ {dependency.name} installed")
    if result.verified:
        typer.echo(f"   Version: {result.installed_version}")
    elif result.verified is False:
        typer.echo(f"   ⚠️  Could not confirm the version. Run '{result.check_command}' to verify")


@app.command()
def region(redetect: bool = typer.Option(False, "--redetect", help="Ignore the cached result")):
    """Show the detected network region and npm mirror."""
    core = _init_core()

    detection = core.region_detector.redetect() if redetect else core.region_detector.get_status()
    mirror = core.mirror_helper.get_mirror_status()

    typer.echo("🌐 Region Status:")
    typer.echo(f"   Region: {detection.region.value}")
    typer.echo(f"   Method: {detection.method.value}")
    typer.echo(f"   Detected at: {detection.detected_at.isoformat()}")
    typer.echo(f"   npm registry: {mirror.mirror_name} ({mirror.mirror_url})")


@package_app.command("install")
def package_install(filename: str = typer.Argument(..., help="Package archive name")):
    """Install an application package from the package source."""
    core = _init_core()

    typer.echo(f"📦 Installing {filename}...")
    try:
        success = core.package_manager.install_package(filename, on_progress=_echo_package_progress)
    except InstallInProgressError as e:
        typer.echo(f"❌ Error: {e}", err=True)
        raise typer.Exit(1)

    if not success:
        typer.echo("❌ Package installation failed")
        raise typer.Exit(1)
    typer.echo("✅ Package installed")


@package_app.command("status")
def package_status():
    """Show the installed application package."""
    core = _init_core()
    info = core.package_manager.check_installed()

    typer.echo("📊 Package Status:")
    if info.is_installed:
        typer.echo("   Status: ✅ Installed")
        typer.echo(f"   Version: {info.version}")
    else:
        typer.echo("   Status: ❌ Not installed")
    typer.echo(f"   Platform: {info.platform}")
    typer.echo(f"   Path: {info.installed_path}")


@package_app.command("list")
def package_list():
    """List packages available in the package source."""
    core = _init_core()
    versions = core.package_manager.get_available_versions()

    if not versions:
        typer.echo("ℹ️  No packages found")
        return

    installed = core.package_manager.get_installed_version()
    typer.echo(f"📋 Available Packages ({len(versions)}):\n")
    for name in versions:
        parsed = parse_package_filename(name)
        marker = " (installed)" if parsed and parsed[0] == installed else ""
        typer.echo(f"  • {name}{marker}")


@package_app.command("remove")
def package_remove(platform: Optional[str] = typer.Option(None, "--platform", help="Platform to remove")):
    """Remove the installed application package."""
    core = _init_core()
    try:
        removed = core.package_manager.remove_installed(platform)
    except InstallInProgressError as e:
        typer.echo(f"❌ Error: {e}", err=True)
        raise typer.Exit(1)

    if not removed:
        typer.echo("❌ Failed to remove package")
        raise typer.Exit(1)
    typer.echo("✅ Package removed")


@package_app.command("clear-cache")
def package_clear_cache():
    """Delete downloaded package archives."""
    core = _init_core()
    core.package_manager.clear_cache()
    typer.echo("✅ Cache cleared")


@app.command()
def version():
    """Show depwright version."""
    typer.echo(f"depwright v{__version__}")


def main():
    """Entry point for CLI."""
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("\n⚠️  Interrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.exception("CLI error")
        typer.echo(f"❌ Error: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
