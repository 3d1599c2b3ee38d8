"""Repositories - persistence and manifest loading."""
from depwright.repositories.kv_store import JsonFileStore, KeyValueStore
from depwright.repositories.manifest_loader import Manifest, ManifestLoader

__all__ = ["JsonFileStore", "KeyValueStore", "Manifest", "ManifestLoader"]
