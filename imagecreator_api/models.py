"""Request and response models for the image creator HTTP API."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ImageGenerationRequest(BaseModel):
    """Body of POST /api/images/generate."""

    prompt: str = Field(..., description="Text prompt for image generation")
    model: Optional[str] = Field(None, description="Gemini model name; defaults to the configured model")
    aspect_ratio: Optional[str] = Field(None, description="Aspect ratio such as 1:1 or 16:9")
    sample_count: Optional[int] = Field(None, ge=1, le=4, description="Candidates to request; the first is returned")
    timeout: Optional[float] = Field(None, gt=0, description="Per-request timeout in seconds")
    max_retries: Optional[int] = Field(None, ge=0, le=10, description="Retries after the first attempt")


class ImageGenerationResponse(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    image_b64: str
    mime_type: str
    model: str
    size_bytes: int
    prompt: str
    attempts: int
    generated_at: str


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str
    api_key_configured: bool
    default_model: str
