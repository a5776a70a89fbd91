"""MSBuild build rule: restore and build every unit in one composed script.

Per unit, in order:
1. Restore packages (best effort): ``nuget restore``, on failure download
   nuget.exe once per pass and retry, then ``msbuild /t:restore``.
2. Initialise the Visual Studio environment if one was found.
3. ``msbuild <unit> /t:<target>`` and record the unit if it fails.

Later units always run, whatever happened to earlier ones.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..utils.project import BuildableUnit, Solution
from .command import CommandBuilder
from .failures import FailureAggregator
from .script import (
    SUCCESS_CODE,
    BuildScript,
    bind,
    create,
    defer,
    download_file,
    failure,
    success,
    try_,
)
from .tools import RankingPolicy, VcVarsBatFile, discover_build_tools, nearest_compatible

if TYPE_CHECKING:
    from .autobuilder import Autobuilder

logger = logging.getLogger(__name__)

NUGET_EXE_URL = "https://dist.nuget.org/win-x86-commandline/latest/nuget.exe"

DEFAULT_TARGET = "rebuild"


@dataclass
class NugetToolState:
    """NuGet tool to restore with, shared by all units of a pass."""

    path: str
    download_path: str
    downloaded: bool = False


def msbuild_command(command: CommandBuilder, builder: Autobuilder) -> CommandBuilder:
    """Start an msbuild invocation.

    Mono ships no ``msbuild`` on Arm-based Macs; ``dotnet msbuild`` is used there.
    """
    if builder.actions.is_running_on_apple_silicon():
        return command.run_command("dotnet", "msbuild")
    return command.run_command("msbuild")


class MsBuildRule:
    """Build rule using msbuild."""

    def __init__(self, policy: RankingPolicy = nearest_compatible) -> None:
        self._policy = policy
        self._failures = FailureAggregator()
        self.vs_tools: VcVarsBatFile | None = None
        self.nuget: NugetToolState | None = None

    @property
    def failed_projects_or_solutions(self) -> list[BuildableUnit]:
        """Solutions or projects which failed to build."""
        return self._failures.failed

    def analyse(self, builder: Autobuilder, auto: bool = False) -> BuildScript:
        """Compose the script building every unit of ``builder``.

        Returns an immediately failing script when there is nothing to build.
        """
        units = builder.projects_or_solutions_to_build
        if not units:
            return failure()

        if auto:
            logger.info("Attempting to build using MSBuild")

        self.vs_tools = discover_build_tools(
            builder.actions, builder.options, units, self._policy
        )

        # Use nuget.exe from the source tree if present, else the global `nuget`
        self.nuget = NugetToolState(
            path=builder.get_filename("nuget.exe") or "nuget",
            download_path=builder.actions.path_combine(
                builder.options.working_directory, ".nuget", "nuget.exe"
            ),
        )

        ret = success()
        for unit in units:
            if builder.options.nuget_restore:
                ret = self._failures.accumulate(
                    ret, self._restore_script(builder, unit, self.nuget)
                )
            # Record the unit if its build fails; the status still propagates
            ret = self._failures.accumulate(
                ret, self._failures.watch(self._build_script(builder, unit), unit)
            )
        return ret

    def _nuget_restore(
        self, builder: Autobuilder, unit: BuildableUnit, nuget: NugetToolState
    ) -> BuildScript:
        return (
            CommandBuilder(builder.actions, working_directory=builder.options.source_dir)
            .run_command(nuget.path)
            .argument("restore")
            .quote_argument(unit.full_path)
            .argument("-DisableParallelProcessing")
            .script
        )

    def _msbuild_restore(self, builder: Autobuilder, unit: BuildableUnit) -> BuildScript:
        command = CommandBuilder(builder.actions, working_directory=builder.options.source_dir)
        return msbuild_command(command, builder).argument("/t:restore").quote_argument(
            unit.full_path
        ).script

    def _restore_script(
        self, builder: Autobuilder, unit: BuildableUnit, nuget: NugetToolState
    ) -> BuildScript:
        """Best-effort restore; always reports success.

        Composed when the pass reaches ``unit`` so it sees whether an earlier
        unit already downloaded nuget.exe.
        """
        if builder.actions.is_running_on_apple_silicon():
            # Only `dotnet msbuild /t:restore` is available
            return try_(self._msbuild_restore(builder, unit))

        def compose() -> BuildScript:
            nuget_restore = self._nuget_restore(builder, unit, nuget)
            msbuild_restore = self._msbuild_restore(builder, unit)
            if nuget.downloaded:
                return try_(nuget_restore | msbuild_restore)

            def after_download(exit_code: int) -> BuildScript:
                nuget.downloaded = True
                if exit_code != SUCCESS_CODE:
                    return failure()
                nuget.path = nuget.download_path
                return self._nuget_restore(builder, unit, nuget)

            download_and_restore = bind(download_nuget_exe(nuget.download_path), after_download)
            return try_(nuget_restore | download_and_restore | msbuild_restore)

        return defer(compose)

    def _build_script(self, builder: Autobuilder, unit: BuildableUnit) -> BuildScript:
        options = builder.options
        command = CommandBuilder(builder.actions, working_directory=options.source_dir)

        if self.vs_tools is not None:
            command.call_bat_file(self.vs_tools.path)
            # vcvarsall.bat sets a default Platform variable that may not suit
            # the unit; clearing it lets the unit's own default apply
            command.run_command("set Platform=&& type NUL", quote_exe=False)

        msbuild_command(command, builder)
        command.quote_argument(unit.full_path)

        target = options.msbuild_target or DEFAULT_TARGET
        platform = options.msbuild_platform
        configuration = options.msbuild_configuration
        if isinstance(unit, Solution):
            platform = platform or unit.default_platform_name
            configuration = configuration or unit.default_configuration_name

        command.argument(f"/t:{target}")
        if platform is not None:
            command.argument(f'/p:Platform="{platform}"')
        if configuration is not None:
            command.argument(f'/p:Configuration="{configuration}"')
        command.arguments(options.msbuild_arguments)

        return command.script


def download_nuget_exe(path: str) -> BuildScript:
    """Script downloading nuget.exe from nuget.org to ``path``."""

    def starting(_) -> int:
        logger.info("Attempting to download nuget.exe")
        return SUCCESS_CODE

    def downloaded(exit_code: int) -> BuildScript:
        if exit_code != SUCCESS_CODE:
            return failure()
        logger.info(f"Successfully downloaded {path}")
        return success()

    return create(starting) & bind(
        download_file(
            NUGET_EXE_URL,
            path,
            lambda e: logger.warning(f"Failed to download 'nuget.exe': {e}"),
        ),
        downloaded,
    )
