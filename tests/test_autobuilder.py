"""Tests for Autobuilder and build pass state."""

import logging

import pytest

from conftest import FakeBuildActions
from msbuild_autobuild.build.autobuilder import Autobuilder
from msbuild_autobuild.build.failures import FailureAggregator
from msbuild_autobuild.build.options import AutobuildOptions
from msbuild_autobuild.build.script import failure, success
from msbuild_autobuild.build.state import AutobuildResult, BuildError, BuildState, unit_to_dict
from msbuild_autobuild.build.tools import VcVarsBatFile
from msbuild_autobuild.utils.project import Project, Solution
from msbuild_autobuild.utils.version import VersionInfo


@pytest.fixture
def builder_factory(tmp_path, fake_actions):
    def make(units, **options):
        options.setdefault("nuget_restore", False)
        return Autobuilder(
            AutobuildOptions(source_dir=str(tmp_path), scratch_dir="C:\\Scratch", **options),
            fake_actions,
            units=units,
        )

    return make


class TestAutobuilder:
    """Tests for Autobuilder.attempt_build."""

    def test_initial_state(self, builder_factory):
        builder = builder_factory([])
        assert builder.state == BuildState.IDLE
        assert builder.last_result is None

    def test_successful_pass(self, builder_factory, fake_actions):
        fake_actions.default_exit_code = 0
        units = [Project("C:\\Project\\a.csproj")]
        builder = builder_factory(units)

        result = builder.attempt_build()

        assert result.success
        assert result.exit_code == 0
        assert result.state == BuildState.SUCCEEDED
        assert result.attempted == units
        assert result.failed == []
        assert builder.state == BuildState.SUCCEEDED
        assert builder.last_result is result

    def test_failed_unit_reported(self, builder_factory, fake_actions):
        units = [Project("C:\\Project\\a.csproj"), Project("C:\\Project\\b.csproj")]
        fake_actions.run_process_results.update(
            {
                "msbuild C:\\Project\\a.csproj /t:rebuild": 1,
                "msbuild C:\\Project\\b.csproj /t:rebuild": 0,
            }
        )

        result = builder_factory(units).attempt_build()

        assert not result.success
        assert result.state == BuildState.FAILED
        assert result.failed == [units[0]]
        assert len(fake_actions.commands) == 2

    def test_nothing_to_build_fails(self, builder_factory, caplog):
        with caplog.at_level(logging.ERROR):
            result = builder_factory([]).attempt_build()

        assert result.exit_code != 0
        assert result.attempted == []
        assert "No solutions or projects to build" in caplog.text
        assert "Nothing to build" in result.to_summary()

    def test_second_attempt_raises(self, builder_factory, fake_actions):
        fake_actions.default_exit_code = 0
        builder = builder_factory([Project("C:\\Project\\a.csproj")])
        builder.attempt_build()

        with pytest.raises(BuildError, match="already used"):
            builder.attempt_build()

    def test_state_listeners(self, builder_factory, fake_actions):
        fake_actions.default_exit_code = 0
        builder = builder_factory([Project("C:\\Project\\a.csproj")])
        states: list[BuildState] = []
        builder.on_state_change(states.append)

        builder.attempt_build()

        assert states == [BuildState.BUILDING, BuildState.SUCCEEDED]

    def test_many_units(self, builder_factory, fake_actions):
        """A pass over thousands of units builds every one of them."""
        fake_actions.default_exit_code = 0
        units = [Project(f"C:\\Project\\{i}.csproj") for i in range(2000)]

        result = builder_factory(units).attempt_build()

        assert result.success
        assert len(fake_actions.commands) == 2000
        assert fake_actions.commands[-1] == "msbuild C:\\Project\\1999.csproj /t:rebuild"

    def test_many_units_with_restore(self, builder_factory, fake_actions):
        fake_actions.default_exit_code = 0
        units = [Project(f"C:\\Project\\{i}.csproj") for i in range(2000)]

        result = builder_factory(units, nuget_restore=True).attempt_build()

        assert result.success
        assert len(fake_actions.commands) == 4000

    def test_host_error_fails_pass(self, tmp_path):
        """An exception from the host leaves the autobuilder FAILED."""

        class BrokenActions(FakeBuildActions):
            def run_process(self, command, working_directory=None) -> int:
                raise RuntimeError("process spawn failed")

        builder = Autobuilder(
            AutobuildOptions(source_dir=str(tmp_path), nuget_restore=False),
            BrokenActions(),
            units=[Project("C:\\Project\\a.csproj")],
        )
        states: list[BuildState] = []
        builder.on_state_change(states.append)

        with pytest.raises(BuildError, match="process spawn failed") as exc_info:
            builder.attempt_build()

        assert exc_info.value.exit_code == 1
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert builder.state == BuildState.FAILED
        assert states == [BuildState.BUILDING, BuildState.FAILED]
        assert builder.last_result is None

        with pytest.raises(BuildError, match="already used"):
            builder.attempt_build()

    def test_listener_error_does_not_break_build(self, builder_factory, fake_actions):
        fake_actions.default_exit_code = 0
        builder = builder_factory([Project("C:\\Project\\a.csproj")])

        def broken(_state):
            raise RuntimeError("listener failed")

        builder.on_state_change(broken)

        assert builder.attempt_build().success

    def test_commands_logged(self, builder_factory, fake_actions, caplog):
        fake_actions.run_process_results["msbuild C:\\Project\\a.csproj /t:rebuild"] = 4

        with caplog.at_level(logging.INFO):
            builder_factory([Project("C:\\Project\\a.csproj")]).attempt_build()

        assert "Running msbuild C:\\Project\\a.csproj /t:rebuild" in caplog.text
        assert "Exit code 4" in caplog.text

    def test_units_discovered_from_source_dir(self, tmp_path, fake_actions):
        (tmp_path / "App.csproj").write_text("<Project />")
        builder = Autobuilder(AutobuildOptions(source_dir=str(tmp_path)), fake_actions)

        units = builder.projects_or_solutions_to_build

        assert [type(u) for u in units] == [Project]
        assert units[0].full_path.endswith("App.csproj")


class TestFailureAggregator:
    """Tests for FailureAggregator."""

    def test_watch_records_failure(self, fake_actions):
        failures = FailureAggregator()
        unit = Project("C:\\a.csproj")

        exit_code = failures.watch(failure(), unit).run(fake_actions)

        assert exit_code == 1
        assert failures.failed == [unit]

    def test_watch_ignores_success(self, fake_actions):
        failures = FailureAggregator()
        assert failures.watch(success(), Project("C:\\a.csproj")).run(fake_actions) == 0
        assert len(failures) == 0

    def test_unit_recorded_once(self):
        failures = FailureAggregator()
        unit = Project("C:\\a.csproj")
        failures.record(unit)
        failures.record(unit)
        assert failures.failed == [unit]

    def test_failed_is_a_copy(self):
        failures = FailureAggregator()
        failures.record(Project("C:\\a.csproj"))
        failures.failed.clear()
        assert len(failures) == 1

    def test_accumulate_runs_both(self, fake_actions):
        failures = FailureAggregator()
        a, b = Project("C:\\a.csproj"), Project("C:\\b.csproj")
        script = failures.accumulate(failures.watch(failure(), a), failures.watch(failure(), b))

        assert script.run(fake_actions) != 0
        assert failures.failed == [a, b]


class TestAutobuildResult:
    """Tests for AutobuildResult serialization."""

    def test_to_dict(self):
        solution = Solution(
            "C:\\a.sln",
            default_configuration_name="Debug",
            default_platform_name="Any CPU",
            tools_version=VersionInfo(17, 0, 31903, 59),
        )
        result = AutobuildResult(
            exit_code=1,
            state=BuildState.FAILED,
            source_dir="C:\\",
            attempted=[solution, Project("C:\\b.csproj")],
            failed=[solution],
            vstools=VcVarsBatFile("C:\\vcvarsall.bat", 17),
            duration_ms=12.5,
        )

        data = result.to_dict()

        assert data["success"] is False
        assert data["state"] == "failed"
        assert data["exitCode"] == 1
        assert data["failed"] == [
            {
                "kind": "solution",
                "path": "C:\\a.sln",
                "defaultConfiguration": "Debug",
                "defaultPlatform": "Any CPU",
                "toolsVersion": "17.0.31903.59",
            }
        ]
        assert data["attempted"][1] == {"kind": "project", "path": "C:\\b.csproj"}
        assert data["vstools"] == {"path": "C:\\vcvarsall.bat", "toolsVersion": 17}
        assert data["durationMs"] == 12.5

    def test_summary_lists_failures(self):
        unit = Project("C:\\b.csproj")
        result = AutobuildResult(
            exit_code=1, state=BuildState.FAILED, source_dir="C:\\", attempted=[unit], failed=[unit]
        )

        summary = result.to_summary()

        assert summary.startswith("[FAILED] Build failed")
        assert "C:\\b.csproj" in summary

    def test_summary_success(self):
        result = AutobuildResult(
            exit_code=0, state=BuildState.SUCCEEDED, source_dir="C:\\", attempted=[Project("C:\\a.csproj")]
        )
        assert result.to_summary().startswith("[OK] Build succeeded")

    def test_build_error_to_dict(self):
        assert BuildError("boom", exit_code=3).to_dict() == {"error": "boom", "exitCode": 3}
        assert BuildError("boom").to_dict() == {"error": "boom"}

    def test_unit_to_dict_without_defaults(self):
        assert unit_to_dict(Solution("C:\\a.sln")) == {"kind": "solution", "path": "C:\\a.sln"}
