"""Tests for manifest parsing."""

import json

import pytest

from depwright.core.errors import ManifestError
from depwright.core.models import NoCommand, RegionalCommand, SingleCommand, VersionConstraint
from depwright.core.types import DependencyType
from depwright.repositories.manifest_loader import ManifestLoader, parse_install_command, parse_manifest


class TestParseInstallCommand:
    def test_string(self):
        """Test a plain string is a single command."""
        assert parse_install_command("npm i -g pnpm") == SingleCommand("npm i -g pnpm")

    @pytest.mark.parametrize("raw", [None, "", False, "not-available", {"type": "not-available"}])
    def test_not_available(self, raw):
        """Test empty values and markers mean no command."""
        assert parse_install_command(raw) == NoCommand()

    def test_regional(self):
        """Test china/global mappings become regional commands."""
        parsed = parse_install_command({"china": "cn", "global": "intl", "default": "any"})
        assert parsed == RegionalCommand(china="cn", international="intl", default="any")

    def test_default_only(self):
        """Test a mapping with only a fallback is a single command."""
        assert parse_install_command({"default": "brew install x"}) == SingleCommand("brew install x")

    def test_invalid(self):
        """Test unsupported values are rejected."""
        with pytest.raises(ManifestError):
            parse_install_command(42)


class TestParseManifest:
    def test_mapping_form(self):
        """Test dependencies keyed by name."""
        manifest = parse_manifest(
            {
                "version": "1",
                "dependencies": {
                    "dotnet": {
                        "name": ".NET Runtime",
                        "type": "system-runtime",
                        "checkCommand": "dotnet --version",
                        "installCommand": {"global": "winget install dotnet"},
                        "versionConstraints": {"min": "8.0.0", "max": "9.0.0"},
                        "downloadUrl": "https://dot.net",
                    }
                },
            }
        )

        dep = manifest.get("dotnet")
        assert manifest.version == "1"
        assert dep.type == DependencyType.SYSTEM_RUNTIME
        assert dep.version_constraints == VersionConstraint(min="8.0.0", max="9.0.0")
        assert dep.install_command == RegionalCommand(international="winget install dotnet")
        assert dep.download_url == "https://dot.net"

    def test_list_form_keeps_order(self):
        """Test list manifests keep their order and default the type."""
        manifest = parse_manifest(
            {
                "dependencies": [
                    {"key": "b", "checkCommand": "b --version"},
                    {"key": "a", "checkCommand": "a --version"},
                ]
            }
        )
        assert [d.key for d in manifest.dependencies] == ["b", "a"]
        assert manifest.dependencies[0].type == DependencyType.CLI_TOOL
        assert manifest.dependencies[0].name == "b"
        assert manifest.get("missing") is None

    @pytest.mark.parametrize(
        "data",
        [
            [],
            {"dependencies": "nope"},
            {"dependencies": {"a": {"name": "A"}}},
            {"dependencies": {"a": {"checkCommand": "a", "type": "plugin"}}},
            {"dependencies": [{"checkCommand": "a"}]},
            {"dependencies": [{"key": "a", "checkCommand": "a"}, {"key": "a", "checkCommand": "a"}]},
        ],
    )
    def test_invalid(self, data):
        """Test malformed manifests raise ManifestError."""
        with pytest.raises(ManifestError):
            parse_manifest(data)


class TestManifestLoader:
    def test_load_json(self, tmp_path):
        """Test loading a JSON manifest."""
        path = tmp_path / "deps.json"
        path.write_text(json.dumps({"dependencies": {"node": {"checkCommand": "node --version"}}}))
        manifest = ManifestLoader().load(str(path))
        assert manifest.get("node").check_command == "node --version"

    def test_load_yaml(self, tmp_path):
        """Test loading a YAML manifest."""
        path = tmp_path / "deps.yaml"
        path.write_text(
            "dependencies:\n"
            "  pnpm:\n"
            "    checkCommand: pnpm --version\n"
            "    installCommand:\n"
            "      china: npm i -g pnpm --registry https://registry.npmmirror.com\n"
            "      global: npm i -g pnpm\n"
        )
        dep = ManifestLoader().load(str(path)).get("pnpm")
        assert dep.install_command.china.endswith("npmmirror.com")

    def test_missing_file(self, tmp_path):
        """Test a missing manifest raises."""
        with pytest.raises(ManifestError):
            ManifestLoader().load(str(tmp_path / "none.json"))

    def test_invalid_json(self, tmp_path):
        """Test unparsable files raise."""
        path = tmp_path / "deps.json"
        path.write_text("{not json")
        with pytest.raises(ManifestError):
            ManifestLoader().load(str(path))
