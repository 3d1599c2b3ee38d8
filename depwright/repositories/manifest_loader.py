"""Manifest Loader - Reads dependency manifests from JSON or YAML files."""
import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml
from loguru import logger

from depwright.core.errors import ManifestError
from depwright.core.models import (
    DependencyDescriptor,
    InstallCommand,
    NoCommand,
    RegionalCommand,
    SingleCommand,
    VersionConstraint,
)
from depwright.core.types import DependencyType

_NOT_AVAILABLE_MARKERS = {"not-available", "manual", "none"}
_FALLBACK_KEYS = ("default", "command", "universal")


@dataclass
class Manifest:
    version: Optional[str] = None
    dependencies: List[DependencyDescriptor] = field(default_factory=list)

    def get(self, key: str) -> Optional[DependencyDescriptor]:
        for dependency in self.dependencies:
            if dependency.key == key:
                return dependency
        return None


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def parse_install_command(raw: Any) -> InstallCommand:
    """
    Build an install command variant from its manifest form.

    Accepts a plain string, a "not-available" marker, or a mapping with
    'china' / 'global' keys and an optional 'default' fallback.
    """
    if raw is None or raw is False or raw == "":
        return NoCommand()

    if isinstance(raw, str):
        if raw.strip().lower() in _NOT_AVAILABLE_MARKERS:
            return NoCommand()
        return SingleCommand(raw)

    if isinstance(raw, dict):
        if str(raw.get("type", "")).lower() in _NOT_AVAILABLE_MARKERS:
            return NoCommand()

        china = _optional_str(raw.get("china"))
        international = _optional_str(raw.get("global", raw.get("international")))
        default = None
        for key in _FALLBACK_KEYS:
            default = _optional_str(raw.get(key))
            if default:
                break

        if not china and not international:
            return SingleCommand(default) if default else NoCommand()
        return RegionalCommand(china=china, international=international, default=default)

    raise ManifestError(f"Unsupported installCommand value: {raw!r}")


def parse_version_constraints(raw: Any) -> VersionConstraint:
    if raw is None:
        return VersionConstraint()
    if not isinstance(raw, dict):
        raise ManifestError(f"versionConstraints must be a mapping, got {type(raw).__name__}")
    return VersionConstraint(
        exact=_optional_str(raw.get("exact")),
        min=_optional_str(raw.get("min")),
        max=_optional_str(raw.get("max")),
        recommended=_optional_str(raw.get("recommended")),
    )


def parse_dependency(key: str, raw: Dict[str, Any]) -> DependencyDescriptor:
    """Parse one dependency entry into a descriptor."""
    if not isinstance(raw, dict):
        raise ManifestError(f"Dependency '{key}' must be a mapping")

    check_command = raw.get("checkCommand")
    if not check_command or not isinstance(check_command, str):
        raise ManifestError(f"Dependency '{key}' is missing checkCommand")

    type_value = raw.get("type", DependencyType.CLI_TOOL.value)
    try:
        dep_type = DependencyType(type_value)
    except ValueError:
        raise ManifestError(f"Dependency '{key}' has unknown type '{type_value}'") from None

    return DependencyDescriptor(
        key=key,
        name=str(raw.get("name") or key),
        type=dep_type,
        check_command=check_command,
        install_command=parse_install_command(raw.get("installCommand")),
        description=str(raw.get("description") or ""),
        version_constraints=parse_version_constraints(raw.get("versionConstraints")),
        download_url=_optional_str(raw.get("downloadUrl")),
    )


def parse_manifest(data: Any) -> Manifest:
    """Parse an already-decoded manifest document."""
    if not isinstance(data, dict):
        raise ManifestError("Manifest root must be a mapping")

    raw_deps = data.get("dependencies") or {}
    dependencies = []

    if isinstance(raw_deps, dict):
        for key, entry in raw_deps.items():
            dependencies.append(parse_dependency(str(key), entry))
    elif isinstance(raw_deps, list):
        for entry in raw_deps:
            key = entry.get("key") if isinstance(entry, dict) else None
            if not key:
                raise ManifestError("Dependency entries in a list must have a 'key'")
            dependencies.append(parse_dependency(str(key), entry))
    else:
        raise ManifestError("'dependencies' must be a mapping or a list")

    keys = [d.key for d in dependencies]
    duplicates = {k for k in keys if keys.count(k) > 1}
    if duplicates:
        raise ManifestError(f"Duplicate dependency keys: {', '.join(sorted(duplicates))}")

    return Manifest(version=_optional_str(data.get("version")), dependencies=dependencies)


class ManifestLoader:
    """Loads dependency manifests from disk."""

    def load(self, file_path: str) -> Manifest:
        """
        Load and parse a manifest file.

        Args:
            file_path: Path to a .json, .yaml or .yml manifest

        Returns:
            Parsed Manifest

        Raises:
            ManifestError: If the file is missing, unreadable or invalid
        """
        if not file_path or not os.path.isfile(file_path):
            raise ManifestError(f"Manifest not found: {file_path}")

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                if file_path.lower().endswith((".yaml", ".yml")):
                    data = yaml.safe_load(f)
                else:
                    data = json.load(f)
        except (OSError, UnicodeDecodeError) as e:
            raise ManifestError(f"Cannot read manifest {file_path}: {e}") from e
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ManifestError(f"Cannot parse manifest {file_path}: {e}") from e

        manifest = parse_manifest(data)
        logger.debug(f"[ManifestLoader] Loaded {len(manifest.dependencies)} dependencies from {file_path}")
        return manifest
