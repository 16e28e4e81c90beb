# Author: imagecreator maintainers
# Date: 2026-10-19T00:00:00Z
# PURPOSE: MCP tool surface for image generation. Publishes the generate_image tool schema (model enum follows the
#          configured allow-list) and executes tool calls through ImageGenerationService, returning the image as
#          MCP image content plus a JSON metadata text block.
# SRP and DRY check: Pass. Tool schema and argument handling only; JSON-RPC framing lives in handlers.py.
"""MCP tools exposed by the image creator."""

import json
import logging
from typing import Any, Dict, List, Mapping

from imagecreator.generation.errors import ImageGenerationError
from imagecreator.generation.payload_codec import SUPPORTED_ASPECT_RATIOS
from imagecreator_api.mcp.types import CallToolResult, ImageContent, TextContent, Tool
from imagecreator_api.services.image_generation_service import ImageGenerationService

logger = logging.getLogger(__name__)

GENERATE_IMAGE_TOOL = "generate_image"


class UnknownToolError(LookupError):
    pass


class InvalidToolArguments(ValueError):
    pass


class McpServer:
    """Holds the tool definitions and dispatches tool calls."""

    def __init__(self, service: ImageGenerationService):
        self.service = service

    def list_tools(self) -> List[Tool]:
        config = self.service.config
        model_schema: Dict[str, Any] = {
            "type": "string",
            "default": config.default_model,
        }
        if config.allowed_models:
            model_schema["description"] = "Gemini model name to use"
            model_schema["enum"] = list(config.allowed_models)
        else:
            model_schema["description"] = (
                "Gemini model name to use (can be restricted via GEMINI_ALLOWED_MODELS environment variable)"
            )

        return [
            Tool(
                name=GENERATE_IMAGE_TOOL,
                description="Generate images from text prompts using Google Gemini image generation.",
                input_schema={
                    "type": "object",
                    "properties": {
                        "prompt": {
                            "type": "string",
                            "description": "Text prompt for image generation",
                        },
                        "model": model_schema,
                        "aspect_ratio": {
                            "type": "string",
                            "description": "Aspect ratio of the generated image",
                            "enum": list(SUPPORTED_ASPECT_RATIOS),
                        },
                        "output_path": {
                            "type": "string",
                            "description": "Optional file path or directory to also save the image to",
                        },
                    },
                    "required": ["prompt"],
                },
            )
        ]

    async def call_tool(self, name: str, arguments: Mapping[str, Any]) -> CallToolResult:
        """Run tool ``name``.

        Pipeline failures are reported as ``isError`` results so the client sees the message;
        an unknown tool or malformed arguments raise for the JSON-RPC layer to turn into an error response.
        """
        if name != GENERATE_IMAGE_TOOL:
            raise UnknownToolError(f"Unknown tool: {name}")
        return await self._handle_generate_image(arguments)

    async def _handle_generate_image(self, arguments: Mapping[str, Any]) -> CallToolResult:
        logger.info("Handling generate_image request")

        prompt = arguments.get("prompt")
        if not isinstance(prompt, str):
            raise InvalidToolArguments("Missing required parameter: prompt")
        for key in ("model", "aspect_ratio", "output_path"):
            value = arguments.get(key)
            if value is not None and not isinstance(value, str):
                raise InvalidToolArguments(f"Parameter '{key}' must be a string")

        try:
            result = await self.service.generate_image(
                prompt=prompt,
                model=arguments.get("model"),
                aspect_ratio=arguments.get("aspect_ratio"),
                output_path=arguments.get("output_path"),
            )
        except ImageGenerationError as exc:
            logger.error(f"Image generation failed: {exc.message}")
            return CallToolResult(
                content=[TextContent(text=f"Image generation failed [{exc.kind}]: {exc.message}")],
                is_error=True,
            )

        metadata = {key: value for key, value in result.items() if key != "image_b64"}
        return CallToolResult(
            content=[
                ImageContent(data=result["image_b64"], mime_type=result["mime_type"]),
                TextContent(text=json.dumps(metadata)),
            ],
            is_error=False,
        )
