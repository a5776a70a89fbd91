"""Build pass state and result types.

State machine for an autobuilder:
IDLE → BUILDING → SUCCEEDED | FAILED
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from ..utils.project import BuildableUnit, Solution

if TYPE_CHECKING:
    from .tools import VcVarsBatFile


class BuildState(str, Enum):
    """Autobuilder state machine states."""

    IDLE = "idle"
    BUILDING = "building"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class BuildError(Exception):
    """Build operation error raised at API boundaries."""

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        self.exit_code = exit_code

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {"error": str(self)}
        if self.exit_code is not None:
            result["exitCode"] = self.exit_code
        return result


def unit_to_dict(unit: BuildableUnit) -> dict[str, Any]:
    """Convert a buildable unit to a JSON-friendly dictionary."""
    if isinstance(unit, Solution):
        result: dict[str, Any] = {"kind": "solution", "path": unit.full_path}
        if unit.default_configuration_name:
            result["defaultConfiguration"] = unit.default_configuration_name
        if unit.default_platform_name:
            result["defaultPlatform"] = unit.default_platform_name
        if unit.tools_version is not None:
            result["toolsVersion"] = str(unit.tools_version)
        return result
    return {"kind": "project", "path": unit.full_path}


@dataclass
class AutobuildResult:
    """Result of one build pass."""

    exit_code: int
    state: BuildState
    source_dir: str
    attempted: list[BuildableUnit] = field(default_factory=list)
    failed: list[BuildableUnit] = field(default_factory=list)
    vstools: VcVarsBatFile | None = None
    duration_ms: float = 0.0

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "success": self.success,
            "state": self.state.value,
            "exitCode": self.exit_code,
            "sourceDir": self.source_dir,
            "attempted": [unit_to_dict(u) for u in self.attempted],
            "failed": [unit_to_dict(u) for u in self.failed],
            "durationMs": round(self.duration_ms, 2),
        }
        if self.vstools is not None:
            result["vstools"] = self.vstools.to_dict()
        return result

    def to_summary(self) -> str:
        """Generate human-readable summary."""
        status = "[OK] Build succeeded" if self.success else "[FAILED] Build failed"
        parts = [
            status,
            f"  Source: {self.source_dir}",
            f"  Units: {len(self.attempted)}",
            f"  Duration: {self.duration_ms:.0f}ms",
        ]
        if self.vstools is not None:
            parts.append(f"  Environment: {self.vstools.path}")
        if not self.attempted:
            parts.append("  Nothing to build")

        if self.failed:
            parts.append(f"  Failed: {len(self.failed)}")
            for unit in self.failed:
                parts.append(f"    {unit.full_path}")

        return "\n".join(parts)
