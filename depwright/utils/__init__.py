"""Platform and process helpers."""
