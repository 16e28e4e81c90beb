# Author: imagecreator maintainers
# Date: 2026-10-19T00:00:00Z
# PURPOSE: Verify the MCP JSON-RPC surface: initialize handshake, tools/list schema (including the model enum from
#          the allow-list), tools/call success and error results, protocol error codes and the stdio loop.
# SRP and DRY check: Pass - MCP protocol behaviour only; generation itself is mocked at the HTTP layer.
import asyncio
import base64
import io
import json

import httpx

from imagecreator.utils.imagecreator_config import ImageCreatorConfig
from imagecreator.generation.transport_client import TransportClient
from imagecreator_api.mcp.handlers import RequestHandler
from imagecreator_api.mcp.server import McpServer
from imagecreator_api.mcp.stdio import serve
from imagecreator_api.mcp.types import (
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
)
from imagecreator_api.services.image_generation_service import ImageGenerationService

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"mcp"


def _image_body():
    data = base64.b64encode(PNG_BYTES).decode()
    return {"candidates": [{"content": {"parts": [{"inlineData": {"mimeType": "image/png", "data": data}}]}}]}


def _handler(http_handler=None, **values) -> RequestHandler:
    mapping = {"GEMINI_API_KEY": "mcp-test-key", "IMAGECREATOR_BASE_DELAY_SECONDS": "0"}
    mapping.update(values)
    config = ImageCreatorConfig.from_mapping(mapping)
    http_handler = http_handler or (lambda request: httpx.Response(200, json=_image_body()))
    transport = TransportClient(timeout=5, transport=httpx.MockTransport(http_handler))
    return RequestHandler(McpServer(ImageGenerationService(config=config, transport=transport)))


def _call(handler: RequestHandler, message) -> dict:
    line = message if isinstance(message, str) else json.dumps(message)
    return asyncio.run(handler.handle_line(line))


class TestHandshake:
    def test_initialize(self):
        response = _call(_handler(), {"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}})
        assert response["id"] == 1
        result = response["result"]
        assert result["protocolVersion"] == "2024-11-05"
        assert result["capabilities"] == {"tools": {}}
        assert result["serverInfo"]["name"] == "google-gemini-image-creator"
        assert "error" not in response

    def test_notification_gets_no_response(self):
        assert _call(_handler(), {"jsonrpc": "2.0", "method": "notifications/initialized"}) is None

    def test_unknown_method(self):
        response = _call(_handler(), {"jsonrpc": "2.0", "id": "a", "method": "resources/list"})
        assert response["error"]["code"] == METHOD_NOT_FOUND
        assert response["id"] == "a"
        assert "result" not in response

    def test_parse_error(self):
        response = _call(_handler(), "{not json")
        assert response["error"]["code"] == PARSE_ERROR
        assert response["id"] is None

    def test_invalid_request(self):
        response = _call(_handler(), {"jsonrpc": "2.0", "id": 3})
        assert response["error"]["code"] == INVALID_REQUEST
        assert response["id"] == 3

    def test_wrong_jsonrpc_version(self):
        response = _call(_handler(), {"jsonrpc": "1.0", "id": 4, "method": "initialize"})
        assert response["error"]["code"] == INVALID_REQUEST


class TestTools:
    def test_tools_list_without_allow_list(self):
        response = _call(_handler(), {"jsonrpc": "2.0", "id": 2, "method": "tools/list"})
        tools = response["result"]["tools"]
        assert [tool["name"] for tool in tools] == ["generate_image"]
        schema = tools[0]["inputSchema"]
        assert schema["required"] == ["prompt"]
        assert "enum" not in schema["properties"]["model"]
        assert schema["properties"]["model"]["default"] == "gemini-2.5-flash-image"

    def test_tools_list_with_allow_list(self):
        handler = _handler(GEMINI_ALLOWED_MODELS="gemini-2.5-flash-image,gemini-3-pro-image-preview")
        response = _call(handler, {"jsonrpc": "2.0", "id": 2, "method": "tools/list"})
        model = response["result"]["tools"][0]["inputSchema"]["properties"]["model"]
        assert model["enum"] == ["gemini-2.5-flash-image", "gemini-3-pro-image-preview"]

    def test_generate_image_call(self):
        response = _call(_handler(), {
            "jsonrpc": "2.0",
            "id": 5,
            "method": "tools/call",
            "params": {"name": "generate_image", "arguments": {"prompt": "a red fox", "aspect_ratio": "1:1"}},
        })
        result = response["result"]
        assert result["isError"] is False
        image, text = result["content"]
        assert image["type"] == "image"
        assert image["mimeType"] == "image/png"
        assert base64.b64decode(image["data"]) == PNG_BYTES
        metadata = json.loads(text["text"])
        assert metadata["model"] == "gemini-2.5-flash-image"
        assert "image_b64" not in metadata

    def test_generation_failure_is_tool_error(self):
        handler = _handler(lambda request: httpx.Response(401, text="bad key"))
        response = _call(handler, {
            "jsonrpc": "2.0",
            "id": 6,
            "method": "tools/call",
            "params": {"name": "generate_image", "arguments": {"prompt": "fox"}},
        })
        result = response["result"]
        assert result["isError"] is True
        assert "transport_error.fatal" in result["content"][0]["text"]
        assert "mcp-test-key" not in json.dumps(response)

    def test_disallowed_model_is_tool_error(self):
        handler = _handler(GEMINI_ALLOWED_MODELS="gemini-2.5-flash-image")
        response = _call(handler, {
            "jsonrpc": "2.0",
            "id": 7,
            "method": "tools/call",
            "params": {"name": "generate_image", "arguments": {"prompt": "fox", "model": "imagen-4"}},
        })
        assert response["result"]["isError"] is True

    def test_unknown_tool(self):
        response = _call(_handler(), {
            "jsonrpc": "2.0", "id": 8, "method": "tools/call", "params": {"name": "edit_image", "arguments": {}},
        })
        assert response["error"]["code"] == INVALID_PARAMS

    def test_missing_prompt(self):
        response = _call(_handler(), {
            "jsonrpc": "2.0", "id": 9, "method": "tools/call", "params": {"name": "generate_image", "arguments": {}},
        })
        assert response["error"]["code"] == INVALID_PARAMS

    def test_missing_tool_name(self):
        response = _call(_handler(), {"jsonrpc": "2.0", "id": 10, "method": "tools/call", "params": {}})
        assert response["error"]["code"] == INVALID_PARAMS


def test_stdio_loop_answers_each_request():
    lines = [
        json.dumps({"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}}),
        json.dumps({"jsonrpc": "2.0", "method": "notifications/initialized"}),
        "",
        json.dumps({"jsonrpc": "2.0", "id": 2, "method": "tools/list"}),
        "garbage",
    ]
    reader = io.StringIO("\n".join(lines) + "\n")
    writer = io.StringIO()

    asyncio.run(serve(_handler(), reader=reader, writer=writer))

    responses = [json.loads(line) for line in writer.getvalue().splitlines()]
    assert [r.get("id") for r in responses] == [1, 2, None]
    assert responses[2]["error"]["code"] == PARSE_ERROR
