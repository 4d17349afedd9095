"""MCP stdio server: exposes the tool registry to MCP clients."""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types
from mcp.server import Server
from mcp.server.stdio import stdio_server

from bashmcp import __version__
from bashmcp.config import BashMCPConfig
from bashmcp.core import BashMCP
from bashmcp.tool.builtin import build_registry
from bashmcp.tool.registry import ToolRegistry

logger = logging.getLogger(__name__)

SERVER_NAME = "bashmcp"


class ToolCallError(Exception):
    """Raised from the call handler so the SDK answers with ``isError``."""


def create_server(registry: ToolRegistry) -> Server:
    server: Server = Server(SERVER_NAME, version=__version__)

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return registry.mcp_tools()

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any] | None) -> list[types.TextContent]:
        logger.debug("tools/call %s", name)
        content, is_error = await registry.dispatch(name, arguments)
        if is_error:
            raise ToolCallError(content)
        return [types.TextContent(type="text", text=content)]

    return server


async def serve(config: BashMCPConfig) -> None:
    """Run the MCP server on stdin/stdout until the client disconnects."""
    config.require_ready()

    async with BashMCP(config) as bash:
        server = create_server(build_registry(bash))
        logger.info(
            "Starting %s %s (allowed directories: %s)",
            SERVER_NAME,
            __version__,
            ", ".join(config.allowed_directories),
        )
        async with stdio_server() as (read_stream, write_stream):
            await server.run(
                read_stream, write_stream, server.create_initialization_options()
            )
    logger.info("Server stopped")
