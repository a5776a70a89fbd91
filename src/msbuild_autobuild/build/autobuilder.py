"""Autobuilder - drives one restore/build pass over a source tree.

Usage:
    builder = Autobuilder(AutobuildOptions.from_environment())
    result = builder.attempt_build()
    sys.exit(result.exit_code)
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable, Sequence

from ..utils.project import BuildableUnit, find_buildable_units, find_file
from .actions import BuildActions
from .options import AutobuildOptions
from .rule import MsBuildRule
from .script import FAILURE_CODE
from .state import AutobuildResult, BuildError, BuildState
from .tools import RankingPolicy, nearest_compatible

logger = logging.getLogger(__name__)


class Autobuilder:
    """One build pass over a source tree.

    An instance runs at most one pass; create a new one to build again.
    """

    def __init__(
        self,
        options: AutobuildOptions,
        actions: BuildActions | None = None,
        units: Sequence[BuildableUnit] | None = None,
        policy: RankingPolicy = nearest_compatible,
    ):
        """Initialize autobuilder.

        Args:
            options: Build options
            actions: Host actions (real host if not provided)
            units: Units to build (discovered from options if not provided)
            policy: Ranking policy for Visual Studio environment discovery
        """
        self.options = options
        self.actions = actions or BuildActions()
        self._units = list(units) if units is not None else None
        self._policy = policy
        self._state = BuildState.IDLE
        self._last_result: AutobuildResult | None = None
        self._state_listeners: list[Callable[[BuildState], None]] = []

    @property
    def state(self) -> BuildState:
        return self._state

    @property
    def last_result(self) -> AutobuildResult | None:
        return self._last_result

    @property
    def projects_or_solutions_to_build(self) -> list[BuildableUnit]:
        """Units to build, in build order."""
        if self._units is None:
            self._units = find_buildable_units(self.options.source_dir, self.options.solution)
        return list(self._units)

    def get_filename(self, name: str) -> str | None:
        """Shallowest file called ``name`` in the source tree."""
        return find_file(self.options.source_dir, name)

    def on_state_change(self, listener: Callable[[BuildState], None]) -> None:
        """Register state change listener."""
        self._state_listeners.append(listener)

    def _set_state(self, new_state: BuildState) -> None:
        """Update state and notify listeners."""
        old_state = self._state
        self._state = new_state
        if old_state != new_state:
            logger.info(f"Build state: {old_state.value} -> {new_state.value}")
            for listener in self._state_listeners:
                try:
                    listener(new_state)
                except Exception:
                    logger.exception("State listener error")

    def _on_start(self, command_line: str) -> None:
        logger.info(f"Running {command_line}")

    def _on_exit(self, exit_code: int, command_line: str) -> None:
        if exit_code == 0:
            logger.info(f"Exit code {exit_code}")
        else:
            logger.warning(f"Exit code {exit_code} from {command_line}")

    def attempt_build(self, auto: bool = False) -> AutobuildResult:
        """Restore and build every unit.

        Args:
            auto: Whether the build strategy was chosen automatically (logged)

        Returns:
            Result with the overall exit code and the units that failed

        Raises:
            BuildError: If this autobuilder already ran, or the pass itself
                raised (the state is then FAILED)
        """
        if self._state != BuildState.IDLE:
            raise BuildError(f"Autobuilder already used (state: {self._state.value})")

        self._set_state(BuildState.BUILDING)
        start_time = time.perf_counter()

        try:
            units = self.projects_or_solutions_to_build
            rule = MsBuildRule(self._policy)
            script = rule.analyse(self, auto)

            if units:
                logger.info(f"Building {len(units)} solutions/projects in {self.options.source_dir}")
            else:
                logger.error(f"No solutions or projects to build in {self.options.source_dir}")

            exit_code = script.run(self.actions, self._on_start, self._on_exit)
        except Exception as e:
            logger.exception("Build pass aborted")
            self._set_state(BuildState.FAILED)
            raise BuildError(f"Build failed: {e}", exit_code=FAILURE_CODE) from e

        duration = (time.perf_counter() - start_time) * 1000
        result = AutobuildResult(
            exit_code=exit_code,
            state=BuildState.SUCCEEDED if exit_code == 0 else BuildState.FAILED,
            source_dir=os.path.abspath(self.options.source_dir),
            attempted=units,
            failed=rule.failed_projects_or_solutions,
            vstools=rule.vs_tools,
            duration_ms=duration,
        )
        self._last_result = result
        self._set_state(result.state)
        return result
