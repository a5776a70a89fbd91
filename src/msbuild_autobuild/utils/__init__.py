"""Utility modules for msbuild-autobuild."""

from .project import (
    BuildableUnit,
    Project,
    Solution,
    find_buildable_units,
    find_dotnet_project_root,
    find_file,
    parse_file_uri,
    read_solution,
)
from .version import VersionInfo, parse_major_version, parse_tools_version

__all__ = [
    "BuildableUnit",
    "Project",
    "Solution",
    "find_buildable_units",
    "find_dotnet_project_root",
    "find_file",
    "parse_file_uri",
    "read_solution",
    "VersionInfo",
    "parse_major_version",
    "parse_tools_version",
]
