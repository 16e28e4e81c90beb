# Author: imagecreator maintainers
# Date: 2026-10-19T00:00:00Z
# PURPOSE: One-call entry point tying the payload codec, transport client, retry orchestrator and output writer
#          together. Used by the CLI, the MCP stdio server and the HTTP API so each surface only translates
#          arguments and results.
# SRP and DRY check: Pass. Sequencing only; every step is delegated to its dedicated module.
"""Image generation pipeline."""

import logging
import random
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from pydantic import SecretStr

from imagecreator.generation import payload_codec
from imagecreator.generation.models import (
    GenerationRequest,
    GenerationResponse,
    GenerationResult,
    as_credential,
)
from imagecreator.generation.output_writer import OutputWriter
from imagecreator.generation.retry_orchestrator import RetryOrchestrator, RetryPolicy
from imagecreator.generation.transport_client import TransportClient
from imagecreator.utils.imagecreator_config import ImageCreatorConfig

logger = logging.getLogger(__name__)


class ImageGenerationPipeline:
    """Prompt in, image file out."""

    def __init__(
        self,
        config: ImageCreatorConfig,
        transport: Optional[TransportClient] = None,
        writer: Optional[OutputWriter] = None,
        policy: Optional[RetryPolicy] = None,
        rng: Optional[random.Random] = None,
        sleep=None,
    ):
        self.config = config
        self.transport = transport or TransportClient(timeout=config.timeout_seconds)
        self.writer = writer or OutputWriter()
        self.policy = policy or RetryPolicy(
            max_attempts=config.max_attempts,
            base_delay=config.base_delay_seconds,
            deadline=config.deadline_seconds,
        )
        self._rng = rng
        self._sleep = sleep

    async def __aenter__(self) -> "ImageGenerationPipeline":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.transport.aclose()

    def _orchestrator(self) -> RetryOrchestrator:
        kwargs: Dict[str, Any] = {"policy": self.policy, "rng": self._rng}
        if self._sleep is not None:
            kwargs["sleep"] = self._sleep
        return RetryOrchestrator(self.transport, **kwargs)

    def build_request(
        self,
        prompt: str,
        parameters: Optional[Mapping[str, Any]] = None,
        model: Optional[str] = None,
    ) -> GenerationRequest:
        return GenerationRequest(
            prompt=prompt,
            parameters=dict(parameters or {}),
            model=self.config.resolve_model(model),
        )

    async def request_images(
        self,
        prompt: str,
        credential: Union[str, SecretStr, None] = None,
        parameters: Optional[Mapping[str, Any]] = None,
        model: Optional[str] = None,
    ) -> Tuple[GenerationResponse, int, str]:
        """Run encode + orchestrated send + decode without touching the filesystem.

        Returns:
            ``(response, attempts, model)``
        """
        secret = as_credential(credential if credential is not None else self.config.require_api_key())
        request = self.build_request(prompt, parameters, model)
        body = payload_codec.encode(request, max_prompt_length=self.config.max_prompt_length)
        endpoint = self.config.endpoint_for(request.model)

        logger.info(f"Requesting image generation: model={request.model}, prompt='{request.prompt[:100]}'")
        orchestrator = self._orchestrator()
        response = await orchestrator.execute(body, secret, endpoint)
        return response, orchestrator.attempts, request.model

    async def generate(
        self,
        prompt: str,
        output_path: Union[str, Path],
        credential: Union[str, SecretStr, None] = None,
        parameters: Optional[Mapping[str, Any]] = None,
        model: Optional[str] = None,
        all_candidates: bool = False,
    ) -> GenerationResult:
        """Generate an image for ``prompt`` and write it to ``output_path``.

        Args:
            prompt: Text prompt.
            output_path: File path (extension optional) or existing directory.
            credential: API key; falls back to the configured key.
            parameters: Generation options (``aspect_ratio``, ``sample_count``, ``response_modalities``).
            model: Model override; must pass the configured allow-list.
            all_candidates: Write every returned candidate (numbered files) instead of only the first.

        Raises:
            ImageGenerationError: Any subclass from :mod:`imagecreator.generation.errors`.
        """
        response, attempts, used_model = await self.request_images(prompt, credential, parameters, model)

        if all_candidates:
            paths = self.writer.write_all(response.candidates, output_path)
        else:
            if len(response.candidates) > 1:
                logger.info(f"Keeping the first of {len(response.candidates)} candidates")
            paths = [self.writer.write(response.first, output_path)]

        first = response.first
        return GenerationResult(
            paths=paths,
            model=used_model,
            mime_type=first.mime_type,
            size_bytes=sum(payload.size_bytes for payload in response.candidates[:len(paths)]),
            attempts=attempts,
        )
