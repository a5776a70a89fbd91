"""Build orchestration for .NET solutions and projects.

Restores and builds every solution/project of a source tree with MSBuild:
- Composable build scripts (sequence, fallback, bind, try, on-failure)
- NuGet restore with on-demand nuget.exe download and msbuild fallback
- Visual Studio environment discovery (vswhere, vcvarsall.bat, VsDevCmd.bat)
- Per-unit failure tracking without stopping the pass
"""

from .actions import BuildActions
from .autobuilder import Autobuilder
from .command import CommandBuilder
from .failures import FailureAggregator
from .options import AutobuildOptions
from .policy import BuildPolicy
from .rule import MsBuildRule, NugetToolState
from .script import BuildScript
from .state import AutobuildResult, BuildError, BuildState
from .tools import VcVarsBatFile, discover_build_tools

__all__ = [
    "Autobuilder",
    "AutobuildOptions",
    "AutobuildResult",
    "BuildActions",
    "BuildError",
    "BuildPolicy",
    "BuildScript",
    "BuildState",
    "CommandBuilder",
    "FailureAggregator",
    "MsBuildRule",
    "NugetToolState",
    "VcVarsBatFile",
    "discover_build_tools",
]
