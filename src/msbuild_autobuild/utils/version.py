"""Version parsing for Visual Studio and MSBuild tool versions."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_VERSION_PATTERN = re.compile(r"(\d+)\.(\d+)(?:\.(\d+))?(?:\.(\d+))?")


@dataclass(frozen=True)
class VersionInfo:
    """Version information with major.minor[.patch[.build]] components."""

    major: int
    minor: int
    patch: int = 0
    build: int | None = None
    raw: str = ""

    def __str__(self) -> str:
        if self.build is not None:
            return f"{self.major}.{self.minor}.{self.patch}.{self.build}"
        return f"{self.major}.{self.minor}.{self.patch}"

    @classmethod
    def from_string(cls, version_str: str | None) -> VersionInfo | None:
        """Parse version from string like '17.0' or '17.0.31903.59'."""
        if not version_str:
            return None

        match = _VERSION_PATTERN.match(version_str.strip())
        if not match:
            return None

        major = int(match.group(1))
        minor = int(match.group(2))
        patch = int(match.group(3)) if match.group(3) else 0
        build = int(match.group(4)) if match.group(4) else None

        return cls(major=major, minor=minor, patch=patch, build=build, raw=version_str)


def parse_major_version(version_str: str) -> int | None:
    """Major component of a vswhere installationVersion like '17.8.34330.188'.

    The text before the first dot must be an integer; a version without a
    dot is taken whole.
    """
    head = version_str.strip().split(".", 1)[0]
    try:
        return int(head)
    except ValueError:
        return None


def parse_tools_version(value: str) -> int | None:
    """Parse a configured tools version, which must be a plain integer."""
    try:
        return int(value.strip())
    except ValueError:
        logger.debug(f"Not an integer tools version: {value!r}")
        return None
