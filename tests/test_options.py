"""Tests for AutobuildOptions."""

import os

import pytest

from msbuild_autobuild.build.options import AutobuildOptions, parse_bool


class TestParseBool:
    @pytest.mark.parametrize("value", ["1", "true", "TRUE", "yes", " on "])
    def test_true(self, value):
        assert parse_bool(value) is True

    @pytest.mark.parametrize("value", ["0", "false", "No", "off"])
    def test_false(self, value):
        assert parse_bool(value) is False

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_bool("maybe")


class TestFromEnvironment:
    """Tests for loading options from AUTOBUILD_* variables."""

    def test_defaults(self):
        options = AutobuildOptions.from_environment({})
        assert options.source_dir == os.getcwd()
        assert options.solution == []
        assert options.nuget_restore is True
        assert options.msbuild_target is None
        assert options.msbuild_arguments == []
        assert options.vstools_version is None

    def test_all_variables(self, tmp_path):
        env = {
            "AUTOBUILD_SOURCE_ROOT": str(tmp_path),
            "AUTOBUILD_SOLUTION": os.pathsep.join(["a.sln", "b/b.csproj"]),
            "AUTOBUILD_NUGET_RESTORE": "false",
            "AUTOBUILD_MSBUILD_TARGET": "build",
            "AUTOBUILD_MSBUILD_PLATFORM": "x64",
            "AUTOBUILD_MSBUILD_CONFIGURATION": "Release",
            "AUTOBUILD_MSBUILD_ARGUMENTS": "/m /p:Foo=Bar",
            "AUTOBUILD_VSTOOLS_VERSION": "17",
            "AUTOBUILD_SCRATCH_DIR": str(tmp_path / "scratch"),
        }

        options = AutobuildOptions.from_environment(env)

        assert options.source_dir == str(tmp_path)
        assert options.solution == ["a.sln", "b/b.csproj"]
        assert options.nuget_restore is False
        assert options.msbuild_target == "build"
        assert options.msbuild_platform == "x64"
        assert options.msbuild_configuration == "Release"
        assert options.msbuild_arguments == ["/m", "/p:Foo=Bar"]
        assert options.vstools_version == "17"
        assert options.working_directory == str(tmp_path / "scratch")

    def test_empty_values_ignored(self):
        options = AutobuildOptions.from_environment({"AUTOBUILD_MSBUILD_TARGET": ""})
        assert options.msbuild_target is None

    def test_invalid_boolean_raises(self):
        with pytest.raises(ValueError):
            AutobuildOptions.from_environment({"AUTOBUILD_NUGET_RESTORE": "sometimes"})

    def test_overrides_win(self):
        options = AutobuildOptions.from_environment(
            {"AUTOBUILD_MSBUILD_TARGET": "build", "AUTOBUILD_NUGET_RESTORE": "true"},
            msbuild_target="clean",
            nuget_restore=False,
            msbuild_platform=None,
        )
        assert options.msbuild_target == "clean"
        assert options.nuget_restore is False
        assert options.msbuild_platform is None


class TestAutobuildOptions:
    def test_unknown_override_raises(self):
        with pytest.raises(ValueError, match="Unknown options"):
            AutobuildOptions().with_overrides(colour="blue")

    def test_with_overrides_copies(self):
        options = AutobuildOptions(msbuild_target="build")
        changed = options.with_overrides(msbuild_target="clean")
        assert options.msbuild_target == "build"
        assert changed.msbuild_target == "clean"

    def test_default_working_directory(self):
        assert AutobuildOptions().working_directory.endswith("msbuild-autobuild")

    def test_to_dict(self):
        data = AutobuildOptions(source_dir="C:\\src", scratch_dir="C:\\tmp").to_dict()
        assert data["sourceDir"] == "C:\\src"
        assert data["nugetRestore"] is True
        assert data["scratchDir"] == "C:\\tmp"
