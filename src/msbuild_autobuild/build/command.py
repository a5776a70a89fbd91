"""Command line construction for build scripts.

A single command runs directly from its argument list. As soon as commands
are chained (an environment setup file followed by the build tool), they
are rendered into one shell line so the environment carries over:

    cmd.exe /C CALL "C:\\...\\vcvars64.bat" && set Platform=&& type NUL && msbuild ...
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .script import BuildScript, CommandBuildScript

if TYPE_CHECKING:
    from .actions import BuildActions

# Characters that force quoting in a shell line
_SPECIAL_CHARS = frozenset(' \t"&|<>^()')


@dataclass(frozen=True)
class _Token:
    text: str
    quote: bool


def quote(argument: str) -> str:
    """Quote an argument for a shell line when it needs it."""
    if argument and not any(c in _SPECIAL_CHARS for c in argument):
        return argument
    return '"' + argument.replace('"', '\\"') + '"'


class CommandBuilder:
    """Builds a (possibly chained) command and turns it into a script.

    Usage:
        script = (
            CommandBuilder(actions, working_directory=root)
            .run_command("nuget")
            .argument("restore")
            .quote_argument(path)
            .script
        )
    """

    def __init__(
        self,
        actions: BuildActions,
        working_directory: str | None = None,
    ):
        self._actions = actions
        self._working_directory = working_directory
        self._commands: list[list[_Token]] = []
        self._chained = False

    def _current(self) -> list[_Token]:
        if not self._commands:
            raise ValueError("No command started; call run_command() first")
        return self._commands[-1]

    def run_command(
        self, exe: str, argument: str | None = None, quote_exe: bool = True
    ) -> CommandBuilder:
        """Start a new command; earlier commands run before it."""
        self._commands.append([_Token(exe, quote_exe)])
        if len(self._commands) > 1:
            self._chained = True
        if argument is not None:
            self.argument(argument)
        return self

    def argument(self, argument: str | None) -> CommandBuilder:
        """Append a raw argument (ignored when None or empty)."""
        if argument:
            self._current().append(_Token(argument, False))
        return self

    def arguments(self, arguments: list[str] | None) -> CommandBuilder:
        for argument in arguments or []:
            self.argument(argument)
        return self

    def quote_argument(self, argument: str) -> CommandBuilder:
        """Append a path-like argument that is quoted in shell lines."""
        self._current().append(_Token(argument, True))
        return self

    def call_bat_file(self, path: str) -> CommandBuilder:
        """Run an environment setup file in the same shell context."""
        if self._actions.is_windows():
            self._commands.append([_Token("CALL", False), _Token(path, True)])
        else:
            self._commands.append([_Token(".", False), _Token(path, True)])
        self._chained = True
        return self

    @property
    def command_line(self) -> str:
        """The command as a single shell line."""
        return " && ".join(
            " ".join(quote(t.text) if t.quote else t.text for t in command)
            for command in self._commands
        )

    @property
    def script(self) -> BuildScript:
        """Script running the command(s)."""
        if not self._commands:
            raise ValueError("No command to run")
        if self._chained:
            if self._actions.is_windows():
                command = ["cmd.exe", "/C", self.command_line]
            else:
                command = ["/bin/sh", "-c", self.command_line]
        else:
            command = [t.text for t in self._commands[0]]
        return CommandBuildScript(command, self._working_directory)
