"""Help Scout MCP Server - Expose the Help Scout Mailbox API to AI assistants."""
import asyncio
import logging
import sys
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import EmbeddedResource, ImageContent, TextContent, Tool

from . import formatters
from . import tools
from .client import HelpScoutClient
from .config import get_settings
from .dispatcher import Session, ToolCallRequest, ToolDispatcher

settings = get_settings()

# Configure logging to stderr; stdout carries the MCP protocol
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stderr,
    force=True
)
logger = logging.getLogger("helpscout-mcp")

logger.info(f"MCP Server starting with HELPSCOUT_BASE_URL: {settings.base_url}")
if settings.access_token:
    logger.info("MCP Server configured with bearer token authentication")
else:
    logger.info("MCP Server running without an access token; Help Scout will reject calls")


# MCP Server instance
app = Server("helpscout-mcp")

dispatcher = ToolDispatcher(settings)

# Call history for this connection. Each stdio connection runs in its own
# process, so one Session per process is one Session per agent.
session = Session()


@app.list_tools()
async def list_tools() -> list[Tool]:
    """List available MCP tools for Help Scout."""
    return tools.get_tools()


@app.call_tool()
async def call_tool(name: str, arguments: Any) -> list[TextContent | ImageContent | EmbeddedResource]:
    """Handle MCP tool calls by delegating to the dispatcher."""
    arguments = arguments or {}
    # Optional natural-language context for inbox hints; schemas ignore it
    user_query = arguments.get("userQuery")
    if not isinstance(user_query, str) or not user_query.strip():
        user_query = None
    else:
        session.set_user_context(user_query)
    request = ToolCallRequest(tool_name=name, arguments=arguments, user_query=user_query)
    async with HelpScoutClient.from_settings(settings) as client:
        payload = await dispatcher.handle(request, session, client)
    return [TextContent(type="text", text=formatters.format_payload(payload))]


async def main():
    """Run the MCP server."""
    async with stdio_server() as (read_stream, write_stream):
        await app.run(read_stream, write_stream, app.create_initialization_options())


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
