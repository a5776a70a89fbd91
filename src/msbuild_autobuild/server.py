"""MCP Server exposing the .NET autobuilder."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path

from mcp.server.fastmcp import Context, FastMCP
from pydantic import AnyUrl

from .build import (
    Autobuilder,
    AutobuildOptions,
    AutobuildResult,
    BuildActions,
    BuildError,
    BuildPolicy,
)
from .build.state import unit_to_dict
from .build.tools import discover_build_tools, vcvars_all_bat_files
from .utils.project import find_buildable_units, parse_file_uri

logger = logging.getLogger(__name__)

SOURCE_ROOT_ENV = "AUTOBUILD_SOURCE_ROOT"
LAST_RESULT_URI = "autobuild://last-result"

# Single pass at a time; the last result is kept for get_last_build
_build_lock = asyncio.Lock()
_last_result: AutobuildResult | None = None


async def resolve_source_root(ctx: Context | None, default: str) -> Path:
    """Determine the source root for a request.

    Priority: first MCP client root, then AUTOBUILD_SOURCE_ROOT, then default.
    """
    if ctx is not None:
        try:
            roots = await ctx.session.list_roots()
            if roots.roots:
                path = parse_file_uri(str(roots.roots[0].uri))
                if path and path.is_dir():
                    logger.info(f"Using source root from MCP client: {path}")
                    return path
                logger.warning(f"MCP root path invalid or not accessible: {path}")
        except Exception as e:
            # Client may not support roots
            logger.info(f"Could not get roots from client: {e}")

    env_value = os.environ.get(SOURCE_ROOT_ENV)
    if env_value and Path(env_value).is_dir():
        return Path(env_value)

    return Path(default)


def run_autobuild(options: AutobuildOptions, actions: BuildActions | None = None) -> AutobuildResult:
    """Run one blocking build pass."""
    builder = Autobuilder(options, actions)
    result = builder.attempt_build(auto=True)
    logger.info(result.to_summary())
    return result


def create_server(source_dir: str | None = None) -> FastMCP:
    """Create and configure the MCP server.

    Args:
        source_dir: Default source root when the client provides none
    """
    default_root = source_dir or os.getcwd()
    mcp = FastMCP("msbuild-autobuild")

    async def notify_result_changed(ctx: Context) -> None:
        """Notify client that autobuild://last-result has changed."""
        try:
            if ctx.session:
                await ctx.session.send_resource_updated(AnyUrl(LAST_RESULT_URI))
        except Exception:
            logger.debug("Resource update notification failed", exc_info=True)

    # ============== Build Tools ==============

    @mcp.tool()
    async def autobuild(
        ctx: Context,
        solutions: list[str] | None = None,
        nuget_restore: bool | None = None,
        target: str | None = None,
        platform: str | None = None,
        configuration: str | None = None,
        vstools_version: str | None = None,
        msbuild_arguments: list[str] | None = None,
    ) -> dict:
        """
        Restore and build every .NET solution/project in the workspace with MSBuild.

        Each unit is restored (nuget restore, downloading nuget.exe if needed,
        then msbuild /t:restore) and built. A failing unit does not stop the
        others; the result lists every unit that failed.

        Args:
            solutions: Solution/project files to build (default: discovered)
            nuget_restore: Restore packages first (default: AUTOBUILD_NUGET_RESTORE or True)
            target: MSBuild target (default: rebuild)
            platform: MSBuild platform (default: the solution's default)
            configuration: MSBuild configuration (default: the solution's default)
            vstools_version: Visual Studio tools version to initialise, e.g. "17"
            msbuild_arguments: Extra msbuild switches such as "/m" or "/p:Foo=Bar"
        """
        global _last_result
        try:
            root = await resolve_source_root(ctx, default_root)
            policy = BuildPolicy(workspace_root=str(root))
            options = AutobuildOptions.from_environment(
                source_dir=policy.workspace_root,
                solution=(
                    [policy.validate_source_path(s) for s in solutions] if solutions else None
                ),
                nuget_restore=nuget_restore,
                msbuild_target=policy.validate_target(target) if target else None,
                msbuild_platform=(
                    policy.validate_property_value("platform", platform) if platform else None
                ),
                msbuild_configuration=(
                    policy.validate_property_value("configuration", configuration)
                    if configuration
                    else None
                ),
                vstools_version=vstools_version,
                msbuild_arguments=(
                    policy.validate_arguments(msbuild_arguments) if msbuild_arguments else None
                ),
            )
            if _build_lock.locked():
                await ctx.info("Waiting for the running build to finish...")
            async with _build_lock:
                result = await asyncio.to_thread(run_autobuild, options)
            _last_result = result
            await notify_result_changed(ctx)
            return {"success": True, "data": result.to_dict()}
        except BuildError as e:
            return {"success": False, **e.to_dict()}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def list_buildable_units(ctx: Context, solutions: list[str] | None = None) -> dict:
        """
        List the solutions/projects autobuild would build, in build order.

        Args:
            solutions: Explicit solution/project files (default: discovered)
        """
        try:
            root = await resolve_source_root(ctx, default_root)
            policy = BuildPolicy(workspace_root=str(root))
            explicit = [policy.validate_source_path(s) for s in solutions or []]
            units = await asyncio.to_thread(find_buildable_units, policy.workspace_root, explicit)
            return {"success": True, "data": [unit_to_dict(u) for u in units]}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def find_build_tools(ctx: Context, vstools_version: str | None = None) -> dict:
        """
        Find Visual Studio environment setup files (vcvarsall.bat, VsDevCmd.bat).

        Returns every file found and the one a build would use.

        Args:
            vstools_version: Requested tools version, e.g. "16" (default: automatic)
        """
        try:
            root = await resolve_source_root(ctx, default_root)
            options = AutobuildOptions.from_environment(
                source_dir=str(root), vstools_version=vstools_version
            )
            actions = BuildActions()

            def discover() -> dict:
                units = find_buildable_units(options.source_dir, options.solution)
                selected = discover_build_tools(actions, options, units)
                return {
                    "found": [b.to_dict() for b in vcvars_all_bat_files(actions)],
                    "selected": selected.to_dict() if selected else None,
                }

            return {"success": True, "data": await asyncio.to_thread(discover)}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def get_last_build() -> dict:
        """Get the result of the most recent autobuild (failed units, exit code)."""
        if _last_result is None:
            return {"success": False, "error": "No build has run yet"}
        return {"success": True, "data": _last_result.to_dict()}

    # ============== Resources ==============

    @mcp.resource(LAST_RESULT_URI, mime_type="application/json")
    async def last_result_resource() -> str:
        """Result of the most recent autobuild (JSON).

        Contains: exit code, attempted units, failed units, environment used.
        Updates when: an autobuild pass completes.
        """
        return json.dumps(_last_result.to_dict() if _last_result else None, indent=2)

    logger.info("MSBuild autobuild MCP Server initialized")
    return mcp
