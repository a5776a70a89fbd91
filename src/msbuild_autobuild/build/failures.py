"""Failed unit tracking for a build pass."""

from __future__ import annotations

import logging

from ..utils.project import BuildableUnit
from .script import BuildScript, on_failure, sequence

logger = logging.getLogger(__name__)


class FailureAggregator:
    """Collects the units whose build script failed, in the order they ran.

    Filled only while the composed script runs. One aggregator per pass.
    """

    def __init__(self) -> None:
        self._failed: list[BuildableUnit] = []

    @property
    def failed(self) -> list[BuildableUnit]:
        return list(self._failed)

    def __len__(self) -> int:
        return len(self._failed)

    def record(self, unit: BuildableUnit) -> None:
        """Add ``unit`` to the failed list (at most once)."""
        if unit in self._failed:
            return
        logger.warning(f"Failed to build {unit}")
        self._failed.append(unit)

    def watch(self, script: BuildScript, unit: BuildableUnit) -> BuildScript:
        """Wrap ``script`` so a failure records ``unit``; the status is unchanged."""
        return on_failure(script, lambda _: self.record(unit))

    @staticmethod
    def accumulate(overall: BuildScript, script: BuildScript) -> BuildScript:
        """Append ``script`` to ``overall``; both always run."""
        return sequence(overall, script)
