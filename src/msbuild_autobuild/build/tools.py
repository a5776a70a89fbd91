"""Visual Studio build environment discovery.

Locates the batch files that initialise a Visual Studio build environment
(vcvarsall.bat, vcvars32/64.bat, VsDevCmd.bat) and picks the one to use for
a build. Discovery probes the host through ``BuildActions`` every time it is
called; nothing is cached.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..utils.project import BuildableUnit, Solution
from ..utils.version import parse_major_version, parse_tools_version

if TYPE_CHECKING:
    from .actions import BuildActions
    from .options import AutobuildOptions

logger = logging.getLogger(__name__)

# Visual Studio 2017 (15) moved the batch files and introduced vswhere
VSWHERE_MIN_LAYOUT_VERSION = 15

# Tools versions below this are treated as "no requirement"
MIN_SUPPORTED_TOOLS_VERSION = 10

LEGACY_VISUAL_STUDIO_VERSIONS = (14, 12, 11, 10)


@dataclass(frozen=True)
class VcVarsBatFile:
    """An environment initialisation batch file and its tools version."""

    path: str
    tools_version: int

    def to_dict(self) -> dict[str, str | int]:
        return {"path": self.path, "toolsVersion": self.tools_version}


RankingPolicy = Callable[[Sequence[VcVarsBatFile], int], VcVarsBatFile | None]


def highest_version(files: Sequence[VcVarsBatFile], target_version: int = 0) -> VcVarsBatFile | None:
    """The newest file; ties keep discovery order."""
    best: VcVarsBatFile | None = None
    for candidate in files:
        if best is None or candidate.tools_version > best.tools_version:
            best = candidate
    return best


def nearest_compatible(files: Sequence[VcVarsBatFile], target_version: int) -> VcVarsBatFile | None:
    """The oldest file at least as new as ``target_version``.

    Targets below 10 carry no real requirement and get the newest file.
    """
    if target_version < MIN_SUPPORTED_TOOLS_VERSION:
        return highest_version(files)
    best: VcVarsBatFile | None = None
    for candidate in files:
        if candidate.tools_version < target_version:
            continue
        if best is None or candidate.tools_version < best.tools_version:
            best = candidate
    return best


def _vswhere_installations(actions: BuildActions, vswhere: str) -> list[tuple[int, str]] | None:
    """(major version, installation path) pairs, or None if vswhere is unusable."""
    exit_code1, installations = actions.run_process_with_output(
        [vswhere, "-prerelease", "-legacy", "-property", "installationPath"]
    )
    exit_code2, versions = actions.run_process_with_output(
        [vswhere, "-prerelease", "-legacy", "-property", "installationVersion"]
    )
    installations = [line.strip() for line in installations if line.strip()]
    versions = [line.strip() for line in versions if line.strip()]
    if exit_code1 != 0 or exit_code2 != 0 or len(installations) != len(versions):
        logger.debug("vswhere did not produce usable output")
        return None

    result = []
    for version, path in zip(versions, installations):
        major = parse_major_version(version)
        # Skip installations without a version
        if major is not None:
            result.append((major, path))
    return result


def candidate_vcvars_files(actions: BuildActions) -> Iterator[VcVarsBatFile]:
    """All batch file locations worth probing, existing or not."""
    program_files_x86 = actions.get_environment_variable("ProgramFiles(x86)")
    if not program_files_x86:
        return

    vswhere = actions.path_combine(
        program_files_x86, "Microsoft Visual Studio", "Installer", "vswhere.exe"
    )
    if actions.file_exists(vswhere):
        installations = _vswhere_installations(actions, vswhere)
        if installations is not None:
            for major, path in installations:
                if major < VSWHERE_MIN_LAYOUT_VERSION:
                    yield VcVarsBatFile(actions.path_combine(path, "VC", "vcvarsall.bat"), major)
                else:
                    build_dir = actions.path_combine(path, "VC", "Auxiliary", "Build")
                    yield VcVarsBatFile(actions.path_combine(build_dir, "vcvars32.bat"), major)
                    yield VcVarsBatFile(actions.path_combine(build_dir, "vcvars64.bat"), major)
                    yield VcVarsBatFile(
                        actions.path_combine(path, "Common7", "Tools", "VsDevCmd.bat"), major
                    )
            return

    # vswhere missing or broken: fixed install locations of older versions
    for version in LEGACY_VISUAL_STUDIO_VERSIONS:
        yield VcVarsBatFile(
            actions.path_combine(
                program_files_x86, f"Microsoft Visual Studio {version}.0", "VC", "vcvarsall.bat"
            ),
            version,
        )


def vcvars_all_bat_files(actions: BuildActions) -> list[VcVarsBatFile]:
    """Batch files present on this host."""
    return [b for b in candidate_vcvars_files(actions) if actions.file_exists(b.path)]


def find_compatible_vcvars(
    actions: BuildActions,
    target_version: int,
    policy: RankingPolicy = nearest_compatible,
) -> VcVarsBatFile | None:
    return policy(vcvars_all_bat_files(actions), target_version)


def find_compatible_vcvars_for_solution(
    actions: BuildActions,
    solution: Solution,
    policy: RankingPolicy = nearest_compatible,
) -> VcVarsBatFile | None:
    """Batch file matching the Visual Studio version a solution declares."""
    target = solution.tools_version.major if solution.tools_version else 0
    return find_compatible_vcvars(actions, target, policy)


def get_vcvars_bat_file(
    actions: BuildActions,
    options: AutobuildOptions,
    policy: RankingPolicy = nearest_compatible,
) -> VcVarsBatFile | None:
    """Batch file for the explicitly configured tools version.

    Returns None when no version is configured, when the configured value is
    not an integer (logged as an error) or when nothing matches (warning).
    """
    if options.vstools_version is None:
        return None

    tools_version = parse_tools_version(options.vstools_version)
    if tools_version is None:
        logger.error("The format of vstools_version is incorrect. Please specify an integer.")
        return None

    files = vcvars_all_bat_files(actions)
    for b in files:
        logger.info(f"Found {b.path} version {b.tools_version}")

    vs_tools = policy(files, tools_version)
    if vs_tools is None:
        logger.warning(f"Could not find build tools matching version {tools_version}")
    else:
        logger.info(f"Setting Visual Studio tools to {vs_tools.path}")
    return vs_tools


def discover_build_tools(
    actions: BuildActions,
    options: AutobuildOptions,
    units: Sequence[BuildableUnit],
    policy: RankingPolicy = nearest_compatible,
) -> VcVarsBatFile | None:
    """Pick the environment batch file for a build pass.

    A configured version decides alone. Otherwise the first solution's
    declared version is matched, falling back to the newest installation.
    """
    if options.vstools_version is not None:
        vs_tools = get_vcvars_bat_file(actions, options, policy)
    else:
        vs_tools = None
        first_solution = next((u for u in units if isinstance(u, Solution)), None)
        if first_solution is not None:
            vs_tools = find_compatible_vcvars_for_solution(actions, first_solution, policy)
        if vs_tools is None:
            vs_tools = highest_version(vcvars_all_bat_files(actions))

    if vs_tools is None and actions.is_windows():
        logger.warning("Could not find a suitable version of VsDevCmd.bat/vcvarsall.bat")

    return vs_tools
