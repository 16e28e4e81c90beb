# Author: imagecreator maintainers
# Date: 2026-10-19T00:00:00Z
# PURPOSE: Newline-delimited JSON-RPC loop over stdin/stdout for MCP clients, plus the imagecreator-mcp entry
#          point. stdout carries protocol frames only; all logging goes to stderr.
# SRP and DRY check: Pass. I/O loop and bootstrap only; dispatch lives in handlers.py.
import asyncio
import json
import logging
import sys
from typing import Optional, TextIO

from imagecreator_api.mcp.handlers import RequestHandler
from imagecreator_api.mcp.server import McpServer
from imagecreator_api.services.image_generation_service import ImageGenerationService
from imagecreator.utils.imagecreator_config import ImageCreatorConfig
from imagecreator.utils.logging_setup import configure_logging

logger = logging.getLogger(__name__)


async def serve(handler: RequestHandler, reader: Optional[TextIO] = None, writer: Optional[TextIO] = None) -> None:
    """Answer requests until ``reader`` reaches EOF."""
    reader = reader or sys.stdin
    writer = writer or sys.stdout

    while True:
        line = await asyncio.to_thread(reader.readline)
        if not line:
            logger.info("Input closed, shutting down")
            break
        line = line.strip()
        if not line:
            continue

        logger.debug(f"Received request: {line[:200]}")
        response = await handler.handle_line(line)
        if response is None:
            continue
        writer.write(json.dumps(response) + "\n")
        writer.flush()


def build_handler(config: Optional[ImageCreatorConfig] = None) -> RequestHandler:
    service = ImageGenerationService(config=config)
    return RequestHandler(McpServer(service))


def main() -> None:
    config = ImageCreatorConfig.from_env()
    configure_logging(config.log_level)
    logger.info("Starting Gemini image creator MCP server")
    if config.api_key is None:
        logger.warning("GEMINI_API_KEY is not set; tool calls will fail until it is provided")
    if config.allowed_models:
        logger.info(f"Allowed models: {', '.join(config.allowed_models)}")

    try:
        asyncio.run(serve(build_handler(config)))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


if __name__ == "__main__":
    main()
