"""Build policy - validation of externally supplied build inputs.

Applied to requests arriving over MCP; options from the environment and the
command line are trusted.

Security measures:
- Path canonicalization with symlink rejection
- UNC and device path denial
- Paths confined to the workspace
- MSBuild target/platform/configuration name whitelisting
- MSBuild switch whitelisting for extra arguments
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Final

# Target names such as "rebuild", "Clean;Build", "My_Target"
TARGET_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z_][A-Za-z0-9_.\-]*(?:;[A-Za-z_][A-Za-z0-9_.\-]*)*$")

# Platform/configuration names such as "Any CPU", "x64", "Release-Static"
PROPERTY_VALUE_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z0-9][A-Za-z0-9 _.\-]*$")

# Extra msbuild switches accepted from clients (prefix match, case-insensitive)
ALLOWED_SWITCHES: Final[tuple[str, ...]] = (
    "/m",
    "-m",
    "/maxcpucount",
    "-maxcpucount",
    "/v:",
    "-v:",
    "/verbosity:",
    "-verbosity:",
    "/nologo",
    "-nologo",
    "/nr:",
    "-nr:",
    "/nodereuse:",
    "-nodereuse:",
    "/p:",
    "-p:",
    "/property:",
    "-property:",
)

# Characters never allowed in extra arguments
_FORBIDDEN_CHARS = frozenset('&|<>^"`\n\r')


@dataclass
class BuildPolicy:
    """Validation policy for build requests.

    Validates:
    - Paths are within the workspace
    - No symlinks, UNC or device paths
    - MSBuild names and switches are whitelisted
    """

    workspace_root: str
    allow_unc_paths: bool = False
    allow_device_paths: bool = False

    def __post_init__(self) -> None:
        """Validate and canonicalize workspace root."""
        self.workspace_root = self._validate_path(self.workspace_root, context="workspace_root")

    def _validate_path(self, path: str, context: str = "path") -> str:
        """Validate and canonicalize a path.

        Raises:
            ValueError: If path is invalid or violates security policy
        """
        if not path:
            raise ValueError(f"Empty {context}")

        # Device paths (\\?\, \\.\) start with \\ too, so check them first
        if path.startswith(("\\\\.\\", "\\\\?\\")) and not self.allow_device_paths:
            raise ValueError(f"Device paths not allowed in {context}: {path}")

        if path.startswith("\\\\") and not self.allow_unc_paths:
            raise ValueError(f"UNC paths not allowed in {context}: {path}")

        abs_path = os.path.abspath(path)

        if ".." in Path(path).parts:
            raise ValueError(f"Path traversal detected in {context}: {path}")

        if os.path.islink(abs_path):
            raise ValueError(f"Symlink not allowed in {context}: {path}")

        return abs_path

    def validate_source_path(self, path: str) -> str:
        """Validate a source directory or solution/project path.

        Relative paths are taken relative to the workspace.

        Returns:
            Validated absolute path

        Raises:
            ValueError: If path is invalid or outside workspace
        """
        if not os.path.isabs(path):
            path = os.path.join(self.workspace_root, path)
        validated = self._validate_path(path, context="source path")

        try:
            common = os.path.commonpath([validated, self.workspace_root])
        except ValueError as e:
            raise ValueError(f"Path outside workspace: {path}") from e
        if common != self.workspace_root:
            raise ValueError(f"Path outside workspace: {path}")
        return validated

    def validate_target(self, target: str) -> str:
        if not TARGET_PATTERN.match(target):
            raise ValueError(f"Invalid target: {target}")
        return target

    def validate_property_value(self, name: str, value: str) -> str:
        """Validate a platform or configuration name."""
        if not PROPERTY_VALUE_PATTERN.match(value):
            raise ValueError(f"Invalid {name}: {value}")
        return value

    def validate_arguments(self, args: list[str]) -> list[str]:
        """Validate extra msbuild arguments.

        Raises:
            ValueError: If any argument is not allowed
        """
        validated: list[str] = []
        for arg in args:
            if any(c in _FORBIDDEN_CHARS for c in arg):
                raise ValueError(f"Argument contains forbidden characters: {arg}")
            if not _is_allowed_switch(arg.lower()):
                raise ValueError(f"Argument not allowed: {arg}")
            validated.append(arg)
        return validated


def _is_allowed_switch(arg: str) -> bool:
    for switch in ALLOWED_SWITCHES:
        if switch.endswith(":"):
            # Switches taking a value need one
            if arg.startswith(switch) and len(arg) > len(switch):
                return True
        elif arg == switch or arg.startswith(switch + ":"):
            return True
    return False
