"""Version parsing and constraint matching.

Versions are dotted numeric strings with an optional pre-release suffix
(``0.1.0-alpha.9``). Numeric ordering ignores the suffix; exact matching
compares the full string after stripping a leading ``v``.
"""
import re
from typing import Optional, Tuple

from depwright.core.errors import VersionParseError
from depwright.core.models import VersionConstraint

VERSION_PATTERN = re.compile(r"(\d+\.\d+\.\d+(?:-[a-zA-Z0-9.]+)?)")


def normalize_version(version: str) -> str:
    """Strip surrounding whitespace and a leading 'v'."""
    version = version.strip()
    if version[:1] in ("v", "V"):
        version = version[1:]
    return version


def parse_version(version: str) -> Tuple[int, ...]:
    """
    Parse a version string into a tuple of integers.

    Args:
        version: Version string (e.g., "v8.0.3", "0.1.0-alpha.8")

    Returns:
        Tuple of numeric components, suffix dropped

    Raises:
        VersionParseError: If the string is empty or a component is not numeric
    """
    if not isinstance(version, str):
        raise VersionParseError(str(version), "not a string")

    core = normalize_version(version)
    core = core.split("+", 1)[0].split("-", 1)[0]
    if not core:
        raise VersionParseError(version, "empty version")

    parts = []
    for part in core.split("."):
        if not (part.isascii() and part.isdigit()):
            raise VersionParseError(version)
        parts.append(int(part))
    return tuple(parts)


def compare_versions(a: str, b: str) -> int:
    """Return -1, 0 or 1 comparing two versions component-wise, zero padded."""
    left = parse_version(a)
    right = parse_version(b)
    width = max(len(left), len(right))
    left = left + (0,) * (width - len(left))
    right = right + (0,) * (width - len(right))
    if left < right:
        return -1
    if left > right:
        return 1
    return 0


def satisfies(installed: str, constraint: VersionConstraint) -> bool:
    """
    Check an installed version against a constraint.

    Args:
        installed: Detected version string
        constraint: Bounds to check

    Returns:
        True if every bound holds. An exact bound short-circuits min/max.

    Raises:
        VersionParseError: If min/max must be evaluated and a version is unparsable
    """
    if constraint.exact:
        return normalize_version(installed) == normalize_version(constraint.exact)

    if constraint.min and compare_versions(installed, constraint.min) < 0:
        return False
    if constraint.max and compare_versions(installed, constraint.max) > 0:
        return False
    return True


def extract_version(text: str) -> Optional[str]:
    """Return the first semantic version found in text, or None."""
    if not text:
        return None
    match = VERSION_PATTERN.search(text)
    return match.group(1) if match else None


def format_required_version(constraint: VersionConstraint) -> str:
    """Human readable summary of a constraint (e.g., "8.0.0+, <= 9.0.0")."""
    if constraint.exact:
        return f"exactly {constraint.exact}"

    parts = []
    if constraint.min:
        parts.append(f"{constraint.min}+")
    if constraint.max:
        parts.append(f"<= {constraint.max}")
    if constraint.recommended:
        parts.append(f"recommended: {constraint.recommended}")
    return ", ".join(parts) if parts else "any"
