"""Core models, constants and version matching."""

from depwright.core.config import Config
from depwright.core.version import satisfies

__all__ = ["Config", "satisfies"]
