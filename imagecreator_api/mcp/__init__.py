"""MCP (Model Context Protocol) stdio server exposing the generate_image tool."""

from imagecreator_api.mcp.handlers import RequestHandler
from imagecreator_api.mcp.server import McpServer

__all__ = ["McpServer", "RequestHandler"]
