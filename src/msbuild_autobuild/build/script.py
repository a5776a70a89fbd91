"""Composable build scripts.

A build script is a deferred unit of work that yields an exit status
(0 = success, anything else = failure). Scripts are immutable trees;
combinators build new trees and nothing runs until ``run()`` is called.

    restore = try_(nuget_restore | download_and_retry | msbuild_restore)
    overall = restore & on_failure(build, record_failure)

``&`` is ``sequence`` (run both, fail if either failed) and ``|`` is
``fallback`` (run the right side only if the left side failed).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .actions import BuildActions

logger = logging.getLogger(__name__)

SUCCESS_CODE = 0
FAILURE_CODE = 1

StartCallback = Callable[[str], None]
ExitCallback = Callable[[int, str], None]


class BuildScript(ABC):
    """A deferred unit of work producing an exit status."""

    @abstractmethod
    def run(
        self,
        actions: BuildActions,
        start_callback: StartCallback | None = None,
        exit_callback: ExitCallback | None = None,
    ) -> int:
        """Run the script and return its exit status.

        Args:
            actions: Host collaborator used for processes, files and downloads
            start_callback: Called with the command line before each process
            exit_callback: Called with (exit status, command line) after each process
        """

    def __and__(self, other: BuildScript) -> BuildScript:
        return sequence(self, other)

    def __or__(self, other: BuildScript) -> BuildScript:
        return fallback(self, other)


class ReturnBuildScript(BuildScript):
    """Constant exit status, no side effects."""

    def __init__(self, exit_code: int):
        self._exit_code = exit_code

    @property
    def exit_code(self) -> int:
        return self._exit_code

    def run(self, actions, start_callback=None, exit_callback=None) -> int:
        return self._exit_code

    def __repr__(self) -> str:
        return f"ReturnBuildScript({self._exit_code})"


class FuncBuildScript(BuildScript):
    """Python callable receiving the host actions."""

    def __init__(self, func: Callable[[BuildActions], int]):
        self._func = func

    def run(self, actions, start_callback=None, exit_callback=None) -> int:
        return self._func(actions)


class CommandBuildScript(BuildScript):
    """One external process invocation."""

    def __init__(
        self,
        command: Sequence[str],
        working_directory: str | None = None,
    ):
        if not command:
            raise ValueError("Empty command")
        self._command = tuple(command)
        self._working_directory = working_directory

    @property
    def command(self) -> tuple[str, ...]:
        return self._command

    @property
    def command_line(self) -> str:
        return " ".join(self._command)

    def run(self, actions, start_callback=None, exit_callback=None) -> int:
        if start_callback is not None:
            start_callback(self.command_line)
        exit_code = actions.run_process(
            list(self._command),
            working_directory=self._working_directory,
        )
        if exit_callback is not None:
            exit_callback(exit_code, self.command_line)
        return exit_code

    def __repr__(self) -> str:
        return f"CommandBuildScript({self.command_line!r})"


class BindBuildScript(BuildScript):
    """Run a script, then the script chosen from its exit status."""

    def __init__(self, first: BuildScript, continuation: Callable[[int], BuildScript]):
        self._first = first
        self._continuation = continuation

    def run(self, actions, start_callback=None, exit_callback=None) -> int:
        exit_code = self._first.run(actions, start_callback, exit_callback)
        following = self._continuation(exit_code)
        return following.run(actions, start_callback, exit_callback)


class SequenceBuildScript(BuildScript):
    """Steps run one after another, all of them, in a loop.

    Nested sequences are flattened on construction, so call depth stays
    constant however many units a pass accumulates.
    """

    def __init__(self, steps: Sequence[BuildScript]):
        flat: list[BuildScript] = []
        for step in steps:
            if isinstance(step, SequenceBuildScript):
                flat.extend(step._steps)
            else:
                flat.append(step)
        self._steps = tuple(flat)

    @property
    def steps(self) -> tuple[BuildScript, ...]:
        return self._steps

    def run(self, actions, start_callback=None, exit_callback=None) -> int:
        exit_code = SUCCESS_CODE
        for step in self._steps:
            step_code = step.run(actions, start_callback, exit_callback)
            # First failure wins
            if exit_code == SUCCESS_CODE:
                exit_code = step_code
        return exit_code


SUCCESS: BuildScript = ReturnBuildScript(SUCCESS_CODE)
FAILURE: BuildScript = ReturnBuildScript(FAILURE_CODE)


def success() -> BuildScript:
    """Script that does nothing and succeeds."""
    return SUCCESS


def failure() -> BuildScript:
    """Script that does nothing and fails."""
    return FAILURE


def create(func: Callable[[BuildActions], int]) -> BuildScript:
    """Wrap a callable returning an exit status."""
    return FuncBuildScript(func)


def bind(first: BuildScript, continuation: Callable[[int], BuildScript]) -> BuildScript:
    """Run ``first``, then the script ``continuation(exit_code)`` returns.

    The continuation is called once per run, after ``first`` has run.
    """
    return BindBuildScript(first, continuation)


def defer(factory: Callable[[], BuildScript]) -> BuildScript:
    """Script whose body is composed when it is reached at run time."""
    return BindBuildScript(SUCCESS, lambda _: factory())


def sequence(first: BuildScript, second: BuildScript) -> BuildScript:
    """Run both scripts; the status is the first nonzero status, else 0."""
    return SequenceBuildScript([first, second])


def fallback(first: BuildScript, second: BuildScript) -> BuildScript:
    """Run ``second`` only if ``first`` failed."""
    return BindBuildScript(
        first, lambda code: SUCCESS if code == SUCCESS_CODE else second
    )


def try_(script: BuildScript) -> BuildScript:
    """Run ``script`` for its side effects and always succeed."""
    return BindBuildScript(script, lambda _: SUCCESS)


def on_failure(script: BuildScript, handler: Callable[[int], None]) -> BuildScript:
    """Run ``script``; call ``handler`` with its status if it failed.

    The status is propagated unchanged.
    """

    def check(exit_code: int) -> BuildScript:
        if exit_code != SUCCESS_CODE:
            handler(exit_code)
        return ReturnBuildScript(exit_code)

    return BindBuildScript(script, check)


def download_file(
    url: str,
    path: str,
    on_error: Callable[[Exception], None] | None = None,
) -> BuildScript:
    """Script that downloads ``url`` to ``path``.

    Reports failure through the exit status, never by raising.
    """

    def download(actions: BuildActions) -> int:
        try:
            actions.download_file(url, path)
        except Exception as e:
            if on_error is not None:
                on_error(e)
            else:
                logger.warning(f"Failed to download {url}: {e}")
            return FAILURE_CODE
        return SUCCESS_CODE

    return FuncBuildScript(download)
