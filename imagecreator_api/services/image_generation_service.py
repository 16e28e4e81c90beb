# Author: imagecreator maintainers
# Date: 2026-10-19T00:00:00Z
# PURPOSE: Centralize Gemini image generation for the HTTP API and the MCP server. Resolves model, timeout and
#          retry settings against ImageCreatorConfig, runs the generation pipeline and returns base64 data plus
#          metadata; optionally persists the first candidate through the atomic output writer.
# SRP and DRY check: Pass. Single responsibility for service-level orchestration; HTTP, codec and retry logic are
#          reused from imagecreator.generation rather than duplicated.

"""
Image generation service for the image creator API surfaces.

Wraps :class:`imagecreator.generation.pipeline.ImageGenerationPipeline` with
request-level overrides and a JSON-friendly result.
"""
import logging
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from pydantic import SecretStr

from imagecreator.generation import payload_codec
from imagecreator.generation.errors import EncodeError, ImageGenerationError
from imagecreator.generation.pipeline import ImageGenerationPipeline
from imagecreator.generation.transport_client import TransportClient
from imagecreator.utils.imagecreator_config import ImageCreatorConfig

logger = logging.getLogger(__name__)


class ImageGenerationService:
    """Service for generating images through the Gemini generateContent API."""

    DEFAULT_TIMEOUT_SECONDS = 60.0
    DEFAULT_MAX_RETRIES = 3

    def __init__(
        self,
        config: Optional[ImageCreatorConfig] = None,
        transport: Optional[TransportClient] = None,
    ):
        """Initialize the service; the API key is checked per request, not here."""
        self.config = config or ImageCreatorConfig.from_env()
        self._transport = transport

    @property
    def api_key_configured(self) -> bool:
        return self.config.api_key is not None

    def _resolve_timeout_and_retries(
        self,
        timeout_override: Optional[float],
        retries_override: Optional[int],
    ) -> Tuple[float, int]:
        """Resolve timeout and retry settings using configuration defaults."""
        timeout_seconds = float(self.config.timeout_seconds or self.DEFAULT_TIMEOUT_SECONDS)
        max_retries_config = max(0, int(self.config.max_attempts) - 1)

        effective_timeout = float(timeout_override) if timeout_override is not None else timeout_seconds
        effective_retries = int(retries_override) if retries_override is not None else max_retries_config

        if effective_timeout <= 0:
            effective_timeout = self.DEFAULT_TIMEOUT_SECONDS
        if effective_retries < 0:
            effective_retries = self.DEFAULT_MAX_RETRIES

        return effective_timeout, effective_retries

    def _pipeline_for(self, timeout: float, retries: int) -> ImageGenerationPipeline:
        config = replace(self.config, timeout_seconds=timeout, max_attempts=retries + 1)
        transport = self._transport or TransportClient(timeout=timeout)
        return ImageGenerationPipeline(config, transport=transport)

    async def generate_image(
        self,
        prompt: str,
        model: Optional[str] = None,
        aspect_ratio: Optional[str] = None,
        sample_count: Optional[int] = None,
        output_path: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        api_key: Optional[SecretStr] = None,
    ) -> Dict[str, Any]:
        """
        Generate an image and return base64 data with metadata.

        Args:
            prompt: The text prompt for image generation
            model: Optional model name, validated against the configured allow-list
            aspect_ratio: Optional aspect ratio such as "16:9"
            sample_count: Optional number of candidates to request; the first is returned
            output_path: Optional file path or directory; when given the image is also written to disk
            timeout: Optional request timeout in seconds
            max_retries: Optional number of retries after the first attempt
            api_key: Optional credential overriding the configured key

        Returns:
            Dictionary containing:
            - image_b64: Base64 encoded image data
            - mime_type: MIME type of the image
            - model: The model used for generation
            - size_bytes: Decoded image size
            - prompt: The prompt sent to the API
            - attempts: Number of HTTP attempts made
            - generated_at: ISO-8601 UTC timestamp
            - path: Written file path, when output_path was given

        Raises:
            ImageGenerationError: Any pipeline failure (see imagecreator.generation.errors)
        """
        if not prompt or not prompt.strip():
            # Caught here so the HTTP/MCP layers report it the same way as codec validation.
            raise EncodeError("Prompt is required and cannot be empty")

        timeout_seconds, retries = self._resolve_timeout_and_retries(timeout, max_retries)
        parameters: Dict[str, Any] = {}
        if aspect_ratio:
            parameters["aspect_ratio"] = aspect_ratio
        if sample_count is not None:
            parameters["sample_count"] = sample_count

        pipeline = self._pipeline_for(timeout_seconds, retries)
        try:
            response, attempts, used_model = await pipeline.request_images(
                prompt, credential=api_key, parameters=parameters, model=model,
            )
            first = response.first
            written: Optional[Path] = None
            if output_path:
                written = pipeline.writer.write(first, output_path)
        except ImageGenerationError as exc:
            logger.error(f"Image generation failed [{exc.kind}]: {exc.message}")
            raise
        finally:
            if self._transport is None:
                await pipeline.aclose()

        image_b64, mime_type = payload_codec.encode_image_b64(first)
        logger.info(
            f"Image generation successful: model={used_model}, format={mime_type}, "
            f"size={first.size_bytes} bytes, attempts={attempts}"
        )
        result: Dict[str, Any] = {
            "image_b64": image_b64,
            "mime_type": mime_type,
            "model": used_model,
            "size_bytes": first.size_bytes,
            "prompt": prompt.strip(),
            "attempts": attempts,
            "generated_at": datetime.now(timezone.utc).isoformat(),
        }
        if written is not None:
            result["path"] = str(written)
        return result
