# Author: imagecreator maintainers
# Date: 2026-10-19T00:00:00Z
# PURPOSE: Value types shared by the codec, transport, orchestrator and writer: the immutable generation request,
#          decoded image payloads, the tagged per-candidate outcome variants and the final pipeline result.
# SRP and DRY check: Pass. Data definitions only; no I/O or API knowledge beyond field names.
"""Data model for image generation requests and responses."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

from imagecreator.generation.errors import ConfigurationError

DEFAULT_MODEL = "gemini-2.5-flash-image"

MIME_PNG = "image/png"
MIME_JPEG = "image/jpeg"
MIME_WEBP = "image/webp"
SUPPORTED_MIME_TYPES = (MIME_PNG, MIME_JPEG, MIME_WEBP)

# Opaque secret; SecretStr keeps the value out of repr() and str().
ApiCredential = SecretStr


def as_credential(value: Union[str, SecretStr]) -> SecretStr:
    """Wrap ``value`` as a secret, dropping surrounding whitespace such as a pasted trailing newline.

    Raises:
        ConfigurationError: If the key is empty or contains control characters.
    """
    raw = value.get_secret_value() if isinstance(value, SecretStr) else str(value)
    cleaned = raw.strip()
    if not cleaned:
        raise ConfigurationError("API key is empty")
    if any(ord(char) < 0x20 or ord(char) == 0x7F for char in cleaned):
        raise ConfigurationError("API key contains control characters; check for stray line breaks")
    if cleaned == raw and isinstance(value, SecretStr):
        return value
    return SecretStr(cleaned)


class GenerationRequest(BaseModel):
    """Prompt plus generation options. Frozen once constructed."""

    model_config = ConfigDict(frozen=True)

    prompt: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    model: str = DEFAULT_MODEL

    @field_validator("model")
    @classmethod
    def _strip_model(cls, value: str) -> str:
        cleaned = value.strip()
        # "models/gemini-..." is accepted by the SDKs; the REST path adds the prefix itself.
        if cleaned.startswith("models/"):
            cleaned = cleaned[len("models/"):]
        return cleaned or DEFAULT_MODEL


class ImagePayload(BaseModel):
    """Decoded image bytes with their MIME type."""

    model_config = ConfigDict(frozen=True)

    mime_type: str
    data: bytes

    @property
    def size_bytes(self) -> int:
        return len(self.data)


class ImageCandidate(BaseModel):
    kind: Literal["image"] = "image"
    index: int
    payload: ImagePayload
    text: Optional[str] = None


class TextOnlyCandidate(BaseModel):
    kind: Literal["text_only"] = "text_only"
    index: int
    text: Optional[str] = None
    finish_reason: Optional[str] = None


class BlockedCandidate(BaseModel):
    kind: Literal["blocked"] = "blocked"
    index: int
    reason: str


CandidateOutcome = Union[ImageCandidate, TextOnlyCandidate, BlockedCandidate]


class GenerationResponse(BaseModel):
    """Decoded response: image payloads in API order plus every candidate's outcome."""

    model_config = ConfigDict(protected_namespaces=())

    candidates: List[ImagePayload]
    outcomes: List[CandidateOutcome] = Field(default_factory=list)
    model_version: Optional[str] = None

    @property
    def first(self) -> ImagePayload:
        return self.candidates[0]


@dataclass
class GenerationResult:
    """What the pipeline hands back to its caller after a successful run."""

    paths: List[Path]
    model: str
    mime_type: str
    size_bytes: int
    attempts: int
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def path(self) -> Path:
        return self.paths[0]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "paths": [str(p) for p in self.paths],
            "model": self.model,
            "mime_type": self.mime_type,
            "size_bytes": self.size_bytes,
            "attempts": self.attempts,
            "generated_at": self.generated_at.isoformat(),
        }
