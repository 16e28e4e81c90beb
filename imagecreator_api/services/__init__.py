"""Service layer for the image creator API."""

from .image_generation_service import ImageGenerationService

__all__ = [
    "ImageGenerationService",
]
