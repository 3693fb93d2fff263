"""Version tracking and compatibility checking for persisted state."""

from __future__ import annotations

import re
from dataclasses import dataclass

# Current state schema version - increment when the persisted layout changes
STATE_SCHEMA_VERSION = "1.0.0"


@dataclass(frozen=True, order=False)
class ParsedVersion:
    """Parsed semantic version components."""

    major: int
    minor: int
    patch: int
    prerelease: str | None = None

    def __str__(self) -> str:
        base = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            return f"{base}-{self.prerelease}"
        return base

    def __lt__(self, other: ParsedVersion) -> bool:
        if (self.major, self.minor, self.patch) != (other.major, other.minor, other.patch):
            return (self.major, self.minor, self.patch) < (other.major, other.minor, other.patch)
        # Prerelease versions are less than release versions
        if self.prerelease and not other.prerelease:
            return True
        if not self.prerelease and other.prerelease:
            return False
        return (self.prerelease or "") < (other.prerelease or "")

    def __le__(self, other: ParsedVersion) -> bool:
        return self == other or self < other

    def __gt__(self, other: ParsedVersion) -> bool:
        return not self <= other

    def __ge__(self, other: ParsedVersion) -> bool:
        return not self < other


def parse_version(version_str: str) -> ParsedVersion:
    """
    Parse a semantic version string.

    Handles formats like:
    - "1.2.3"
    - "v1.2.3"
    - "1.2.3-rc1"

    Raises:
        ValueError: If version string is invalid
    """
    if version_str.startswith("v"):
        version_str = version_str[1:]

    match = re.match(r"^(\d+)\.(\d+)\.(\d+)(?:-(.+))?$", version_str)
    if not match:
        raise ValueError(f"Invalid version string: {version_str}")

    return ParsedVersion(
        major=int(match.group(1)),
        minor=int(match.group(2)),
        patch=int(match.group(3)),
        prerelease=match.group(4),
    )


@dataclass
class CompatibilityResult:
    """Result of a state schema compatibility check."""

    is_compatible: bool
    message: str = ""


def check_state_compatibility(
    stored_version: str,
    current_version: str = STATE_SCHEMA_VERSION,
) -> CompatibilityResult:
    """
    Check whether state written with ``stored_version`` can be read.

    Rules:
    - Unparseable version: incompatible
    - Major version mismatch: incompatible (layout changed)
    - Stored version newer than this library: incompatible (written by a newer client)
    - Otherwise compatible
    """
    try:
        stored = parse_version(stored_version)
    except ValueError:
        return CompatibilityResult(
            is_compatible=False,
            message=f"Invalid state schema version: {stored_version!r}",
        )

    current = parse_version(current_version)

    if stored.major != current.major:
        return CompatibilityResult(
            is_compatible=False,
            message=(
                f"State schema major version {stored.major} "
                f"!= supported major version {current.major}"
            ),
        )

    if stored > current:
        return CompatibilityResult(
            is_compatible=False,
            message=(
                f"State schema {stored_version} was written by a newer stratum "
                f"(supports up to {current_version}). Please upgrade."
            ),
        )

    return CompatibilityResult(is_compatible=True, message="State schema is compatible.")