"""Buildable unit discovery.

Finds the solutions and projects to build under a source tree:
1. Explicitly configured solution/project files
2. Solution files (.sln) at the shallowest depth where any exist
3. Project files (.csproj/.vbproj/.fsproj) at the shallowest depth

Also reads the few solution header fields the build needs (tools version,
default configuration and platform). Everything else in a solution file is
ignored.
"""

from __future__ import annotations

import logging
import os
import re
import sys
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote, urlparse

from .version import VersionInfo

logger = logging.getLogger(__name__)

SOLUTION_EXTENSIONS = (".sln",)
PROJECT_EXTENSIONS = (".csproj", ".vbproj", ".fsproj")

# Directories never searched for buildable units
IGNORED_DIRECTORIES = frozenset({".git", ".vs", "bin", "obj", "node_modules", "packages"})

_VISUAL_STUDIO_VERSION = re.compile(r"^\s*VisualStudioVersion\s*=\s*(\S+)", re.MULTILINE)
_CONFIGURATION_SECTION = re.compile(
    r"GlobalSection\(SolutionConfigurationPlatforms\)[^\n]*\n(?P<body>.*?)EndGlobalSection",
    re.DOTALL,
)
_CONFIGURATION_ENTRY = re.compile(r"^\s*(?P<config>[^|=\n]+)\|(?P<platform>[^=\n]+?)\s*=", re.MULTILINE)

# Platforms that build every project in the solution
_NEUTRAL_PLATFORMS = ("Any CPU", "Mixed Platforms")


@dataclass(frozen=True)
class Project:
    """A project file to build."""

    full_path: str

    def __str__(self) -> str:
        return self.full_path


@dataclass(frozen=True)
class Solution:
    """A solution file to build, with its declared defaults."""

    full_path: str
    default_configuration_name: str | None = None
    default_platform_name: str | None = None
    tools_version: VersionInfo | None = None

    def __str__(self) -> str:
        return self.full_path


BuildableUnit = Project | Solution


def _configuration_sort_key(entry: tuple[str, str]) -> tuple[bool, bool]:
    config, platform = entry
    return (config != "Debug", platform not in _NEUTRAL_PLATFORMS)


def read_solution(path: str) -> Solution:
    """Read tools version and default configuration/platform from a .sln file.

    Unreadable files yield a solution without defaults.
    """
    full_path = os.path.abspath(path)
    try:
        with open(full_path, encoding="utf-8-sig", errors="replace") as f:
            text = f.read()
    except OSError as e:
        logger.warning(f"Failed to read solution {full_path}: {e}")
        return Solution(full_path)

    tools_version = None
    match = _VISUAL_STUDIO_VERSION.search(text)
    if match:
        tools_version = VersionInfo.from_string(match.group(1))

    configurations: list[tuple[str, str]] = []
    section = _CONFIGURATION_SECTION.search(text)
    if section:
        for entry in _CONFIGURATION_ENTRY.finditer(section.group("body")):
            configurations.append(
                (entry.group("config").strip(), entry.group("platform").strip())
            )

    config = platform = None
    if configurations:
        config, platform = sorted(configurations, key=_configuration_sort_key)[0]

    return Solution(
        full_path,
        default_configuration_name=config,
        default_platform_name=platform,
        tools_version=tools_version,
    )


def to_buildable_unit(path: str) -> BuildableUnit:
    """Solution for .sln paths, project otherwise."""
    if path.lower().endswith(SOLUTION_EXTENSIONS):
        return read_solution(path)
    return Project(os.path.abspath(path))


def _walk(root: Path) -> Iterator[tuple[int, Path]]:
    """Yield (depth, file) for every file under root, skipping build output."""
    for directory, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in IGNORED_DIRECTORIES)
        depth = len(Path(directory).relative_to(root).parts)
        for filename in sorted(filenames):
            yield depth, Path(directory) / filename


def _shallowest(files: Iterable[tuple[int, Path]]) -> list[Path]:
    found = list(files)
    if not found:
        return []
    min_depth = min(depth for depth, _ in found)
    return [path for depth, path in found if depth == min_depth]


def find_buildable_units(root: str | Path, solutions: Sequence[str] = ()) -> list[BuildableUnit]:
    """Find the units to build under ``root``.

    Args:
        root: Source tree root
        solutions: Explicit solution or project files, relative to root or absolute

    Returns:
        Units in build order, without duplicates
    """
    root_path = Path(root).resolve()

    if solutions:
        paths = [
            str(Path(s) if os.path.isabs(s) else root_path / s) for s in solutions
        ]
    else:
        files = list(_walk(root_path))
        found = _shallowest(
            (d, p) for d, p in files if p.suffix.lower() in SOLUTION_EXTENSIONS
        )
        if not found:
            found = _shallowest(
                (d, p) for d, p in files if p.suffix.lower() in PROJECT_EXTENSIONS
            )
        paths = [str(p) for p in found]

    units: list[BuildableUnit] = []
    seen: set[str] = set()
    for path in paths:
        key = os.path.normcase(os.path.abspath(path))
        if key in seen:
            continue
        seen.add(key)
        units.append(to_buildable_unit(path))

    logger.debug(f"Found {len(units)} buildable units under {root_path}")
    return units


def find_file(root: str | Path, name: str) -> str | None:
    """Shallowest file called ``name`` under ``root`` (case-insensitive)."""
    root_path = Path(root)
    if not root_path.is_dir():
        return None
    lowered = name.lower()
    matches = _shallowest((d, p) for d, p in _walk(root_path) if p.name.lower() == lowered)
    return str(matches[0]) if matches else None


def find_dotnet_project_root(start_dir: Path | None = None) -> Path:
    """Find .NET project root by walking up from a directory.

    Searches for project markers in this order:
    1. .sln (solution file)
    2. .csproj/.vbproj/.fsproj (project files)
    3. .git (git root as fallback)

    Falls back to start_dir if no marker is found.
    """
    current = (start_dir or Path.cwd()).resolve()

    def ancestors() -> Iterator[Path]:
        yield current
        yield from current.parents

    for directory in ancestors():
        if any(directory.glob("*.sln")):
            return directory

    for directory in ancestors():
        if any(any(directory.glob(f"*{ext}")) for ext in PROJECT_EXTENSIONS):
            return directory

    for directory in ancestors():
        if (directory / ".git").exists():  # .git can be file (worktree) or dir
            return directory

    return current


def parse_file_uri(uri: str) -> Path | None:
    """Parse a file:// URI to an absolute Path.

    Handles file:///C:/path and file://server/share on Windows.
    """
    try:
        parsed = urlparse(str(uri))
    except ValueError as e:
        logger.warning(f"Failed to parse file URI '{uri}': {e}")
        return None

    if parsed.scheme != "file":
        logger.warning(f"Not a file URI: {uri}")
        return None

    path_str = unquote(parsed.path)

    if sys.platform == "win32":
        # file:///C:/path -> parsed.path = "/C:/path"
        if path_str.startswith("/") and len(path_str) > 2 and path_str[2] == ":":
            path_str = path_str[1:]
        if parsed.netloc:
            path_str = f"\\\\{parsed.netloc}{path_str}"

    path = Path(path_str)
    if not path.is_absolute():
        logger.warning(f"Parsed path is not absolute: {path}")
        return None
    return path
