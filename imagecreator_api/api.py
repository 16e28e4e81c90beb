# Author: imagecreator maintainers
# Date: 2026-10-19T00:00:00Z
# PURPOSE: FastAPI entrypoint exposing image generation over HTTP. Route handlers validate input, delegate to
#          ImageGenerationService and translate pipeline error kinds into HTTP status codes.
# SRP and DRY check: Pass. No generation logic here; the service and pipeline own it.

from functools import lru_cache
from typing import Dict

from fastapi import Depends, FastAPI, HTTPException

from imagecreator import __version__
from imagecreator.generation.errors import (
    ConfigurationError,
    DeadlineExceeded,
    DecodeError,
    EncodeError,
    ImageGenerationError,
    RetriesExhausted,
    TransportError,
)
from imagecreator_api.models import HealthResponse, ImageGenerationRequest, ImageGenerationResponse
from imagecreator_api.services.image_generation_service import ImageGenerationService

# Initialize FastAPI app
app = FastAPI(
    title="Image Creator API",
    description="REST API for generating images from text prompts with Google Gemini",
    version=__version__,
)


@lru_cache(maxsize=1)
def get_image_generation_service() -> ImageGenerationService:
    """Process-wide service instance; overridden in tests via app.dependency_overrides."""
    return ImageGenerationService()


def _status_for(error: ImageGenerationError) -> int:
    """Map a pipeline error onto an HTTP status code."""
    if isinstance(error, EncodeError):
        return 400
    if isinstance(error, ConfigurationError):
        return 500
    if isinstance(error, (DecodeError, TransportError)):
        return 502
    if isinstance(error, RetriesExhausted):
        return 503
    if isinstance(error, DeadlineExceeded):
        return 504
    return 500


# Health check endpoint
@app.get("/api/health", response_model=HealthResponse)
async def health_check(service: ImageGenerationService = Depends(get_image_generation_service)):
    """Health check endpoint"""
    return HealthResponse(
        version=__version__,
        api_key_configured=service.api_key_configured,
        default_model=service.config.default_model,
    )


@app.post("/api/images/generate", response_model=ImageGenerationResponse)
async def generate_image_endpoint(
    request: ImageGenerationRequest,
    service: ImageGenerationService = Depends(get_image_generation_service),
):
    """Generate an image using the Gemini generateContent API."""

    try:
        result = await service.generate_image(
            prompt=request.prompt,
            model=request.model,
            aspect_ratio=request.aspect_ratio,
            sample_count=request.sample_count,
            timeout=request.timeout,
            max_retries=request.max_retries,
        )
    except ImageGenerationError as e:
        detail: Dict[str, object] = {
            "error": "Image generation failed",
            "error_type": e.kind,
            "message": e.message,
            "context": {
                "model": request.model,
                "aspect_ratio": request.aspect_ratio,
                "prompt_length": len(request.prompt) if request.prompt else 0,
            },
        }
        raise HTTPException(status_code=_status_for(e), detail=detail) from e

    return ImageGenerationResponse(
        image_b64=result["image_b64"],
        mime_type=result["mime_type"],
        model=result["model"],
        size_bytes=result["size_bytes"],
        prompt=result["prompt"],
        attempts=result["attempts"],
        generated_at=result["generated_at"],
    )
