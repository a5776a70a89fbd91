"""Autobuild configuration.

Options come from ``AUTOBUILD_*`` environment variables; command line flags
and MCP tool arguments override them field by field.
"""

from __future__ import annotations

import logging
import os
import shlex
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from typing import Any

logger = logging.getLogger(__name__)

ENV_PREFIX = "AUTOBUILD_"

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


def parse_bool(value: str) -> bool:
    """Parse a boolean option value.

    Raises:
        ValueError: If the value is not a recognised boolean
    """
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean value: {value!r}")


@dataclass
class AutobuildOptions:
    """Settings for one build pass."""

    source_dir: str = field(default_factory=os.getcwd)
    """Root of the source tree; commands run here."""

    solution: list[str] = field(default_factory=list)
    """Explicit solution/project files to build instead of discovered ones."""

    nuget_restore: bool = True
    """Whether to restore packages before building."""

    msbuild_target: str | None = None
    msbuild_platform: str | None = None
    msbuild_configuration: str | None = None

    msbuild_arguments: list[str] = field(default_factory=list)
    """Extra raw arguments appended to every msbuild invocation."""

    vstools_version: str | None = None
    """Visual Studio tools version to initialise; must be an integer when set."""

    scratch_dir: str | None = None
    """Directory for downloaded tools (defaults to a temp subdirectory)."""

    @property
    def working_directory(self) -> str:
        return self.scratch_dir or os.path.join(tempfile.gettempdir(), "msbuild-autobuild")

    @classmethod
    def from_environment(
        cls,
        environ: Mapping[str, str] | None = None,
        **overrides: Any,
    ) -> AutobuildOptions:
        """Load options from ``AUTOBUILD_*`` variables.

        Args:
            environ: Environment mapping (defaults to os.environ)
            **overrides: Field values taking precedence; None values are ignored

        Raises:
            ValueError: If a variable cannot be parsed
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}

        def get(name: str) -> str | None:
            value = env.get(ENV_PREFIX + name)
            return value if value else None

        if (source := get("SOURCE_ROOT")) is not None:
            values["source_dir"] = source
        if (solution := get("SOLUTION")) is not None:
            values["solution"] = [s for s in solution.split(os.pathsep) if s]
        if (restore := get("NUGET_RESTORE")) is not None:
            values["nuget_restore"] = parse_bool(restore)
        if (target := get("MSBUILD_TARGET")) is not None:
            values["msbuild_target"] = target
        if (platform := get("MSBUILD_PLATFORM")) is not None:
            values["msbuild_platform"] = platform
        if (configuration := get("MSBUILD_CONFIGURATION")) is not None:
            values["msbuild_configuration"] = configuration
        if (arguments := get("MSBUILD_ARGUMENTS")) is not None:
            values["msbuild_arguments"] = shlex.split(arguments, posix=os.name != "nt")
        if (vstools := get("VSTOOLS_VERSION")) is not None:
            values["vstools_version"] = vstools
        if (scratch := get("SCRATCH_DIR")) is not None:
            values["scratch_dir"] = scratch

        if values:
            logger.debug(f"Options from environment: {sorted(values)}")
        options = cls(**values)
        return options.with_overrides(**overrides)

    def with_overrides(self, **overrides: Any) -> AutobuildOptions:
        """Copy with the given non-None fields replaced."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown options: {', '.join(sorted(unknown))}")
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "sourceDir": self.source_dir,
            "solution": list(self.solution),
            "nugetRestore": self.nuget_restore,
            "msbuildTarget": self.msbuild_target,
            "msbuildPlatform": self.msbuild_platform,
            "msbuildConfiguration": self.msbuild_configuration,
            "msbuildArguments": list(self.msbuild_arguments),
            "vstoolsVersion": self.vstools_version,
            "scratchDir": self.working_directory,
        }
