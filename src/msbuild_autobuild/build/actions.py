"""Host actions used by build scripts.

Everything a build script needs from the host goes through ``BuildActions``:
running processes, environment and file probes, downloads and capability
queries. Tests substitute a recording fake.
"""

from __future__ import annotations

import logging
import os
import platform
import shutil
import subprocess
import urllib.request
from collections.abc import Sequence

logger = logging.getLogger(__name__)

# Output limits for logged process output
MAX_OUTPUT_LINE: int = 10_000  # 10KB per line

DOWNLOAD_TIMEOUT_SECONDS: float = 120.0


class BuildActions:
    """Blocking host operations for a build pass."""

    def run_process(
        self,
        command: Sequence[str],
        working_directory: str | None = None,
    ) -> int:
        """Run a command, streaming its output to the log.

        Args:
            command: Executable and arguments
            working_directory: Working directory (defaults to CWD)

        Returns:
            Process exit status (1 if the process could not be started)
        """
        exit_code, _ = self._run(command, working_directory, keep_output=False)
        return exit_code

    def run_process_with_output(
        self,
        command: Sequence[str],
        working_directory: str | None = None,
    ) -> tuple[int, list[str]]:
        """Run a command and capture its stdout lines."""
        return self._run(command, working_directory, keep_output=True)

    def _run(
        self,
        command: Sequence[str],
        working_directory: str | None,
        keep_output: bool,
    ) -> tuple[int, list[str]]:
        lines: list[str] = []
        try:
            # Never use shell=True; shell lines are passed explicitly to cmd.exe or sh
            with subprocess.Popen(
                list(command),
                cwd=working_directory,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                text=True,
                encoding="utf-8",
                errors="replace",
            ) as process:
                assert process.stdout is not None
                for line in process.stdout:
                    line = line.rstrip("\r\n")
                    if keep_output:
                        lines.append(line)
                    if len(line) > MAX_OUTPUT_LINE:
                        line = line[:MAX_OUTPUT_LINE] + "...[truncated]"
                    logger.info(line)
                exit_code = process.wait()
        except OSError as e:
            logger.error(f"Could not start {command[0]}: {e}")
            return 1, lines

        return exit_code, lines

    def get_environment_variable(self, name: str) -> str | None:
        return os.environ.get(name)

    def file_exists(self, path: str) -> bool:
        return os.path.isfile(path)

    def path_combine(self, *parts: str) -> str:
        return os.path.join(*parts)

    def is_windows(self) -> bool:
        return os.name == "nt"

    def is_running_on_apple_silicon(self) -> bool:
        """Whether this is an Arm-based Mac (mono ships no msbuild there)."""
        return platform.system() == "Darwin" and platform.machine() == "arm64"

    def download_file(self, url: str, path: str) -> None:
        """Download ``url`` to ``path``, creating parent directories.

        Raises:
            OSError: If the download or the write fails
        """
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        request = urllib.request.Request(url, headers={"User-Agent": "msbuild-autobuild"})
        partial = path + ".partial"
        with urllib.request.urlopen(request, timeout=DOWNLOAD_TIMEOUT_SECONDS) as response, open(
            partial, "wb"
        ) as handle:
            shutil.copyfileobj(response, handle)
        os.replace(partial, path)
