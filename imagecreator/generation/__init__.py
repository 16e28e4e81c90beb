"""Request/response pipeline: payload codec, transport, retry orchestration and output writing."""

from .errors import (
    ConfigurationError,
    DeadlineExceeded,
    DecodeError,
    DecodeReason,
    EncodeError,
    ExitCode,
    ImageGenerationError,
    RetriesExhausted,
    TransportCategory,
    TransportError,
    WriteError,
    WriteReason,
)
from .models import GenerationRequest, GenerationResponse, GenerationResult, ImagePayload

__all__ = [
    "ConfigurationError",
    "DeadlineExceeded",
    "DecodeError",
    "DecodeReason",
    "EncodeError",
    "ExitCode",
    "GenerationRequest",
    "GenerationResponse",
    "GenerationResult",
    "ImageGenerationError",
    "ImagePayload",
    "RetriesExhausted",
    "TransportCategory",
    "TransportError",
    "WriteError",
    "WriteReason",
]
