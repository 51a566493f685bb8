"""Help Scout MCP Server - Model Context Protocol integration.

This package exposes the Help Scout Mailbox API to AI assistants as MCP tools,
adding workflow prerequisite checks and multi-status conversation search.

Modules:
- server: stdio MCP server implementation
- dispatcher: per-call validation, dispatch and call history
- constraints: workflow prerequisite rules and post-call guidance
- search: status-partitioned conversation search
- query_builder: Help Scout query string construction
- handlers: Tool implementation handlers
- tools: MCP tool definitions
- formatters: Response formatting utilities
"""

__version__ = "1.0.0"

from .constraints import ConstraintValidator
from .dispatcher import Session, ToolCallRequest, ToolDispatcher
from .tools import get_tools

__all__ = [
    "ConstraintValidator",
    "Session",
    "ToolCallRequest",
    "ToolDispatcher",
    "get_tools",
    "__version__",
]
