"""Entry point for msbuild-autobuild."""

import argparse
import asyncio
import logging
import os
import sys

from .build import AutobuildOptions, BuildError
from .utils.project import find_dotnet_project_root


def configure_logging() -> None:
    """Configure logging based on environment.

    Logs go to stderr; stdout is the MCP stdio channel in server mode.
    """
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="MSBuild autobuilder - restore and build every .NET solution/project "
        "in a source tree"
    )
    parser.add_argument(
        "--source-dir",
        type=str,
        default=None,
        help="Source root to build (default: AUTOBUILD_SOURCE_ROOT or CWD).",
    )
    parser.add_argument(
        "--project-from-cwd",
        action="store_true",
        default=False,
        help="Auto-detect the source root by searching upward from CWD for "
        ".sln, .csproj/.vbproj/.fsproj, or .git markers. "
        "Cannot be used with --source-dir.",
    )
    parser.add_argument(
        "--solution",
        action="append",
        default=None,
        help="Solution or project file to build (repeatable; default: discovered).",
    )
    parser.add_argument(
        "--no-nuget-restore",
        dest="nuget_restore",
        action="store_false",
        default=None,
        help="Skip package restore.",
    )
    parser.add_argument("--target", type=str, default=None, help="MSBuild target (default: rebuild).")
    parser.add_argument("--platform", type=str, default=None, help="MSBuild platform.")
    parser.add_argument("--configuration", type=str, default=None, help="MSBuild configuration.")
    parser.add_argument(
        "--vstools-version",
        type=str,
        default=None,
        help="Visual Studio tools version to initialise (integer, e.g. 17).",
    )
    parser.add_argument(
        "--msbuild-arg",
        dest="msbuild_arguments",
        action="append",
        default=None,
        help="Extra argument passed to msbuild (repeatable).",
    )
    parser.add_argument(
        "--scratch-dir",
        type=str,
        default=None,
        help="Directory for downloaded tools (default: AUTOBUILD_SCRATCH_DIR or temp).",
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        default=False,
        help="Run as an MCP server over stdio instead of building once.",
    )
    return parser.parse_args(argv)


def resolve_source_dir(args: argparse.Namespace) -> str | None:
    """Source directory from --source-dir / --project-from-cwd.

    Raises:
        ValueError: If both flags are given
    """
    if args.project_from_cwd:
        if args.source_dir is not None:
            raise ValueError("--project-from-cwd cannot be used with --source-dir")
        return str(find_dotnet_project_root())
    return args.source_dir


def build_options(args: argparse.Namespace) -> AutobuildOptions:
    """Options from the environment, overridden by command line flags."""
    return AutobuildOptions.from_environment(
        source_dir=resolve_source_dir(args),
        solution=args.solution,
        nuget_restore=args.nuget_restore,
        msbuild_target=args.target,
        msbuild_platform=args.platform,
        msbuild_configuration=args.configuration,
        msbuild_arguments=args.msbuild_arguments,
        vstools_version=args.vstools_version,
        scratch_dir=args.scratch_dir,
    )


async def serve(source_dir: str) -> None:
    """Run the MCP server over stdio."""
    from .server import create_server

    logger = logging.getLogger(__name__)
    logger.info(f"Starting MSBuild autobuild MCP Server (source: {source_dir})...")
    mcp = create_server(source_dir)
    try:
        await mcp.run_stdio_async()
    except Exception:
        logger.exception("Server error")
        raise
    finally:
        logger.info("Server stopped")


def main(argv: list[str] | None = None) -> int:
    """Main entry point; returns the process exit code."""
    configure_logging()
    logger = logging.getLogger(__name__)

    args = parse_args(argv)
    try:
        options = build_options(args)
    except ValueError as e:
        logger.error(str(e))
        return 2

    if args.serve:
        asyncio.run(serve(options.source_dir))
        return 0

    from .server import run_autobuild

    try:
        result = run_autobuild(options)
    except BuildError as e:
        logger.error(str(e))
        return e.exit_code if e.exit_code is not None else 1
    if result.failed:
        logger.error(
            "Failed to build: " + ", ".join(unit.full_path for unit in result.failed)
        )
    return result.exit_code


def run() -> None:
    """Run the command line tool."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    run()
