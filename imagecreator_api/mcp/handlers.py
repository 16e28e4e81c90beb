# Author: imagecreator maintainers
# Date: 2026-10-19T00:00:00Z
# PURPOSE: JSON-RPC 2.0 dispatch for the MCP stdio server: initialize, tools/list, tools/call and notifications.
#          Converts tool exceptions into JSON-RPC error objects with the standard error codes.
# SRP and DRY check: Pass. Protocol framing only; tool behaviour is delegated to McpServer.
"""JSON-RPC request handling for the MCP server."""

import json
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from imagecreator import __version__
from imagecreator_api.mcp.server import InvalidToolArguments, McpServer, UnknownToolError
from imagecreator_api.mcp.types import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    JSONRPC_VERSION,
    MCP_PROTOCOL_VERSION,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    JsonRpcRequest,
    JsonRpcResponse,
    error_response,
)

logger = logging.getLogger(__name__)

SERVER_NAME = "google-gemini-image-creator"


class RequestHandler:
    """Turns one JSON-RPC request into zero or one response."""

    def __init__(self, server: McpServer):
        self.server = server

    async def handle_line(self, line: str) -> Optional[Dict[str, Any]]:
        """Parse and dispatch one newline-delimited frame; returns the wire response or None."""
        try:
            raw = json.loads(line)
        except ValueError as exc:
            logger.error(f"Failed to parse request: {exc}")
            return error_response(None, PARSE_ERROR, f"Parse error: {exc}").to_wire()

        request_id = raw.get("id") if isinstance(raw, dict) else None
        try:
            request = JsonRpcRequest.model_validate(raw)
        except ValidationError as exc:
            logger.error(f"Invalid JSON-RPC request: {exc.error_count()} validation error(s)")
            return error_response(request_id, INVALID_REQUEST, "Invalid Request").to_wire()
        if request.jsonrpc != JSONRPC_VERSION:
            return error_response(request.id, INVALID_REQUEST, f"Unsupported jsonrpc version: {request.jsonrpc}").to_wire()

        response = await self.handle_request(request)
        if response is None:
            return None
        return response.to_wire()

    async def handle_request(self, request: JsonRpcRequest) -> Optional[JsonRpcResponse]:
        if request.is_notification:
            # notifications/initialized, notifications/cancelled, ... need no reply.
            logger.debug(f"Received notification {request.method}")
            return None

        method = request.method
        if method == "initialize":
            logger.info("Handling initialize request")
            return JsonRpcResponse(
                id=request.id,
                result={
                    "protocolVersion": MCP_PROTOCOL_VERSION,
                    "capabilities": {"tools": {}},
                    "serverInfo": {"name": SERVER_NAME, "version": __version__},
                },
            )
        if method == "ping":
            return JsonRpcResponse(id=request.id, result={})
        if method == "tools/list":
            logger.info("Handling tools/list request")
            tools = [tool.model_dump(by_alias=True, exclude_none=True) for tool in self.server.list_tools()]
            return JsonRpcResponse(id=request.id, result={"tools": tools})
        if method == "tools/call":
            return await self._handle_tools_call(request)

        return error_response(request.id, METHOD_NOT_FOUND, f"Method not found: {method}")

    async def _handle_tools_call(self, request: JsonRpcRequest) -> JsonRpcResponse:
        params = request.params or {}
        name = params.get("name")
        if not isinstance(name, str) or not name:
            return error_response(request.id, INVALID_PARAMS, "Missing 'name' in params")
        arguments = params.get("arguments") or {}
        if not isinstance(arguments, dict):
            return error_response(request.id, INVALID_PARAMS, "'arguments' must be an object")

        logger.info(f"Handling tools/call request: {name}")
        try:
            result = await self.server.call_tool(name, arguments)
        except (UnknownToolError, InvalidToolArguments) as exc:
            logger.error(f"Tool call rejected: {exc}")
            return error_response(request.id, INVALID_PARAMS, str(exc))
        except Exception as exc:
            logger.error(f"Tool call failed: {exc}", exc_info=True)
            return error_response(request.id, INTERNAL_ERROR, f"Internal error: {exc}")

        return JsonRpcResponse(id=request.id, result=result.model_dump(by_alias=True, exclude_none=True))
