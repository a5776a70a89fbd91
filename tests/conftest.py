"""Pytest fixtures for msbuild-autobuild tests."""

import os
import sys

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from msbuild_autobuild.build.actions import BuildActions  # noqa: E402


class FakeBuildActions(BuildActions):
    """Recording host double.

    Commands are looked up by their space-joined command line in
    ``run_process_results``; an unknown command fails the test unless
    ``default_exit_code`` is set.
    """

    def __init__(self, windows: bool = True, apple_silicon: bool = False):
        self.windows = windows
        self.apple_silicon = apple_silicon
        self.run_process_results: dict[str, int] = {}
        self.run_process_output: dict[str, list[str]] = {}
        self.default_exit_code: int | None = None
        self.environment: dict[str, str] = {}
        self.files: set[str] = set()
        self.failing_downloads: set[str] = set()
        self.commands: list[str] = []
        self.downloads: list[tuple[str, str]] = []

    def _result(self, command) -> int:
        line = " ".join(command)
        self.commands.append(line)
        if line in self.run_process_results:
            return self.run_process_results[line]
        if self.default_exit_code is not None:
            return self.default_exit_code
        raise AssertionError(f"Unexpected command: {line}")

    def run_process(self, command, working_directory=None) -> int:
        return self._result(command)

    def run_process_with_output(self, command, working_directory=None):
        exit_code = self._result(command)
        return exit_code, list(self.run_process_output.get(" ".join(command), []))

    def get_environment_variable(self, name):
        return self.environment.get(name)

    def file_exists(self, path) -> bool:
        return path in self.files

    def path_combine(self, *parts) -> str:
        separator = "\\" if self.windows else "/"
        return separator.join(p.rstrip("\\/") for p in parts)

    def is_windows(self) -> bool:
        return self.windows

    def is_running_on_apple_silicon(self) -> bool:
        return self.apple_silicon

    def download_file(self, url, path) -> None:
        self.downloads.append((url, path))
        if path in self.failing_downloads:
            raise OSError(f"Download of {url} failed")
        self.files.add(path)


@pytest.fixture
def fake_actions():
    """Windows host double with nothing installed."""
    return FakeBuildActions()


@pytest.fixture
def sample_solution_text():
    """Minimal Visual Studio 2022 solution file."""
    return (
        "\ufeff\r\n"
        "Microsoft Visual Studio Solution File, Format Version 12.00\r\n"
        "# Visual Studio Version 17\r\n"
        "VisualStudioVersion = 17.0.31903.59\r\n"
        "MinimumVisualStudioVersion = 10.0.40219.1\r\n"
        'Project("{FAE04EC0-301F-11D3-BF4B-00C04F79EFBC}") = "App", "App\\App.csproj", '
        '"{5B0E5F76-5E2B-4F2A-9D4C-3D1C2E0B1A11}"\r\n'
        "EndProject\r\n"
        "Global\r\n"
        "\tGlobalSection(SolutionConfigurationPlatforms) = preSolution\r\n"
        "\t\tRelease|x64 = Release|x64\r\n"
        "\t\tDebug|x64 = Debug|x64\r\n"
        "\t\tDebug|Any CPU = Debug|Any CPU\r\n"
        "\tEndGlobalSection\r\n"
        "EndGlobal\r\n"
    )
