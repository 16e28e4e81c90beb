# Author: imagecreator maintainers
# Date: 2026-10-19T00:00:00Z
# PURPOSE: Pure encode/decode between GenerationRequest/GenerationResponse and the Gemini generateContent JSON
#          wire format. Validates parameters on the way out and explicitly checks every optional field of the
#          response envelope on the way in (image, text-only refusal, safety block) before touching base64.
# SRP and DRY check: Pass. No network or filesystem access; the transport and writer consume its outputs.
"""
Payload codec for the Gemini ``generateContent`` endpoint.

The request body is serialized deterministically (sorted keys, compact
separators) so identical requests always produce identical bytes.

The response envelope is treated as a versioned external schema::

    {
      "candidates": [
        {"content": {"parts": [{"text": "..."},
                               {"inlineData": {"mimeType": "image/png", "data": "<base64>"}}]},
         "finishReason": "STOP"}
      ],
      "promptFeedback": {"blockReason": "SAFETY"},
      "modelVersion": "gemini-2.5-flash-image"
    }
"""
import base64
import binascii
import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from imagecreator.generation.errors import DecodeError, DecodeReason, EncodeError
from imagecreator.generation.models import (
    MIME_JPEG,
    MIME_PNG,
    MIME_WEBP,
    SUPPORTED_MIME_TYPES,
    BlockedCandidate,
    CandidateOutcome,
    GenerationRequest,
    GenerationResponse,
    ImageCandidate,
    ImagePayload,
    TextOnlyCandidate,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_PROMPT_LENGTH = 10000

SUPPORTED_ASPECT_RATIOS = ("1:1", "2:3", "3:2", "3:4", "4:3", "4:5", "5:4", "9:16", "16:9", "21:9")
SUPPORTED_MODALITIES = ("TEXT", "IMAGE")
DEFAULT_MODALITIES = ["TEXT", "IMAGE"]
MAX_SAMPLE_COUNT = 4

SUPPORTED_PARAMETERS = ("aspect_ratio", "sample_count", "response_modalities")

# finishReason values that mean the candidate was withheld rather than answered with text.
BLOCKING_FINISH_REASONS = frozenset({
    "SAFETY",
    "PROHIBITED_CONTENT",
    "BLOCKLIST",
    "SPII",
    "RECITATION",
    "IMAGE_SAFETY",
    "IMAGE_PROHIBITED_CONTENT",
    "IMAGE_RECITATION",
})

_MIME_ALIASES = {
    "image/png": MIME_PNG,
    "image/x-png": MIME_PNG,
    "image/jpeg": MIME_JPEG,
    "image/jpg": MIME_JPEG,
    "image/pjpeg": MIME_JPEG,
    "image/webp": MIME_WEBP,
}


def _normalise_aspect_ratio(value: Any) -> str:
    cleaned = str(value).strip() if value is not None else ""
    if cleaned not in SUPPORTED_ASPECT_RATIOS:
        raise EncodeError(
            f"Unsupported aspect_ratio {value!r}; expected one of {', '.join(SUPPORTED_ASPECT_RATIOS)}"
        )
    return cleaned


def _normalise_sample_count(value: Any) -> int:
    # bool is an int subclass; True must not silently become 1.
    if isinstance(value, bool) or not isinstance(value, int):
        raise EncodeError(f"sample_count must be an integer, got {value!r}")
    if not 1 <= value <= MAX_SAMPLE_COUNT:
        raise EncodeError(f"sample_count must be between 1 and {MAX_SAMPLE_COUNT}, got {value}")
    return value


def _normalise_modalities(value: Any) -> List[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)) or not value:
        raise EncodeError(f"response_modalities must be a non-empty list, got {value!r}")
    modalities: List[str] = []
    for item in value:
        cleaned = str(item).strip().upper()
        if cleaned not in SUPPORTED_MODALITIES:
            raise EncodeError(f"Unsupported response modality {item!r}")
        if cleaned not in modalities:
            modalities.append(cleaned)
    if "IMAGE" not in modalities:
        raise EncodeError("response_modalities must include IMAGE")
    return modalities


def build_request_body(
    request: GenerationRequest,
    max_prompt_length: int = DEFAULT_MAX_PROMPT_LENGTH,
) -> Dict[str, Any]:
    """Validate ``request`` and return the JSON-ready body."""
    prompt = request.prompt.strip() if request.prompt else ""
    if not prompt:
        raise EncodeError("Prompt is required and cannot be empty")
    if len(prompt) > max_prompt_length:
        raise EncodeError(f"Prompt too long: {len(prompt)} characters (max: {max_prompt_length})")

    unsupported = sorted(set(request.parameters) - set(SUPPORTED_PARAMETERS))
    if unsupported:
        raise EncodeError(
            f"Unsupported generation parameter(s): {', '.join(unsupported)}; "
            f"supported: {', '.join(SUPPORTED_PARAMETERS)}"
        )

    generation_config: Dict[str, Any] = {
        "responseModalities": DEFAULT_MODALITIES,
    }
    params = request.parameters
    if params.get("response_modalities") is not None:
        generation_config["responseModalities"] = _normalise_modalities(params["response_modalities"])
    if params.get("aspect_ratio") is not None:
        generation_config["imageConfig"] = {"aspectRatio": _normalise_aspect_ratio(params["aspect_ratio"])}
    if params.get("sample_count") is not None:
        generation_config["candidateCount"] = _normalise_sample_count(params["sample_count"])

    return {
        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        "generationConfig": generation_config,
    }


def encode(request: GenerationRequest, max_prompt_length: int = DEFAULT_MAX_PROMPT_LENGTH) -> bytes:
    """Serialize ``request`` into the generateContent wire format.

    Raises:
        EncodeError: If the prompt is empty or too long, or a parameter is unsupported or out of range.
    """
    body = build_request_body(request, max_prompt_length=max_prompt_length)
    text = json.dumps(body, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    try:
        return text.encode("utf-8")
    except UnicodeEncodeError as exc:
        # Lone surrogates (undecodable argv bytes, JSON \ud800 escapes) have no UTF-8 form.
        raise EncodeError(f"Prompt contains characters that cannot be encoded as UTF-8: {exc.reason}") from exc


def normalise_mime_type(mime_type: Optional[str]) -> Optional[str]:
    """Map a declared MIME type onto the supported set, or return None."""
    if not mime_type:
        return None
    cleaned = str(mime_type).split(";")[0].strip().lower()
    return _MIME_ALIASES.get(cleaned)


def sniff_mime_type(data: bytes) -> Optional[str]:
    """Best-effort MIME detection from image magic bytes."""
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return MIME_PNG
    if data.startswith(b"\xff\xd8\xff"):
        return MIME_JPEG
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return MIME_WEBP
    return None


def _get(mapping: Mapping[str, Any], *keys: str) -> Any:
    """Return the first present key; the REST API uses camelCase, some proxies snake_case."""
    for key in keys:
        if key in mapping:
            return mapping[key]
    return None


def _decode_inline_data(inline: Mapping[str, Any], index: int) -> ImagePayload:
    encoded = inline.get("data")
    if not encoded:
        raise DecodeError(DecodeReason.MISSING_FIELD, f"Candidate {index} inlineData has no data")
    if isinstance(encoded, str):
        try:
            data = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise DecodeError(
                DecodeReason.MALFORMED_BASE64, f"Candidate {index} contains invalid base64 image data"
            ) from exc
    elif isinstance(encoded, (bytes, bytearray)):
        data = bytes(encoded)
    else:
        raise DecodeError(
            DecodeReason.MALFORMED_BASE64,
            f"Candidate {index} image data has unexpected type {type(encoded).__name__}",
        )
    if not data:
        raise DecodeError(DecodeReason.MISSING_FIELD, f"Candidate {index} image data is empty")

    declared = _get(inline, "mimeType", "mime_type")
    if declared:
        mime_type = normalise_mime_type(declared)
        if mime_type is None:
            raise DecodeError(
                DecodeReason.UNSUPPORTED_MIME,
                f"Candidate {index} has unsupported MIME type {declared!r}; "
                f"supported: {', '.join(SUPPORTED_MIME_TYPES)}",
            )
    else:
        mime_type = sniff_mime_type(data)
        if mime_type is None:
            raise DecodeError(
                DecodeReason.UNSUPPORTED_MIME,
                f"Candidate {index} has no MIME type and the image format could not be detected",
            )
    return ImagePayload(mime_type=mime_type, data=data)


def _classify_candidate(candidate: Any, index: int) -> CandidateOutcome:
    if not isinstance(candidate, Mapping):
        return TextOnlyCandidate(index=index, text=None, finish_reason=None)

    finish_reason = candidate.get("finishReason") or candidate.get("finish_reason")
    content = candidate.get("content")
    parts = content.get("parts") if isinstance(content, Mapping) else None
    if not isinstance(parts, list):
        parts = []

    texts: List[str] = []
    payload: Optional[ImagePayload] = None
    for part in parts:
        if not isinstance(part, Mapping):
            continue
        text = part.get("text")
        if isinstance(text, str) and text.strip():
            texts.append(text.strip())
        inline = _get(part, "inlineData", "inline_data")
        if payload is None and isinstance(inline, Mapping):
            payload = _decode_inline_data(inline, index)

    joined = "\n".join(texts) if texts else None
    if payload is not None:
        return ImageCandidate(index=index, payload=payload, text=joined)
    if finish_reason in BLOCKING_FINISH_REASONS:
        return BlockedCandidate(index=index, reason=str(finish_reason))
    return TextOnlyCandidate(index=index, text=joined, finish_reason=finish_reason)


def _describe_missing(outcomes: List[CandidateOutcome]) -> str:
    for outcome in outcomes:
        if isinstance(outcome, BlockedCandidate):
            return f"No image in response: candidate {outcome.index} was blocked ({outcome.reason})"
    for outcome in outcomes:
        if isinstance(outcome, TextOnlyCandidate) and outcome.text:
            return f"No image in response; model replied with text: {outcome.text[:300]}"
    return "No image data in response"


def decode(response_body: bytes) -> GenerationResponse:
    """Parse a generateContent response body and extract the image payloads.

    Raises:
        DecodeError: ``missing_field`` when no candidate carries an image, ``malformed_base64``
            for undecodable data, ``unsupported_mime`` for unknown formats, ``malformed_body``
            when the body is not a JSON object.
    """
    try:
        document = json.loads(response_body)
    except (UnicodeDecodeError, ValueError) as exc:
        raise DecodeError(DecodeReason.MALFORMED_BODY, "Response body is not valid JSON") from exc
    if not isinstance(document, dict):
        raise DecodeError(DecodeReason.MALFORMED_BODY, "Response body is not a JSON object")

    feedback = _get(document, "promptFeedback", "prompt_feedback")
    block_reason = feedback.get("blockReason") if isinstance(feedback, Mapping) else None

    raw_candidates = document.get("candidates")
    if not isinstance(raw_candidates, list) or not raw_candidates:
        if block_reason:
            raise DecodeError(DecodeReason.MISSING_FIELD, f"Prompt was blocked by the API ({block_reason})")
        raise DecodeError(DecodeReason.MISSING_FIELD, "No candidates in response")

    outcomes = [_classify_candidate(candidate, index) for index, candidate in enumerate(raw_candidates)]
    payloads = [outcome.payload for outcome in outcomes if isinstance(outcome, ImageCandidate)]
    if not payloads:
        raise DecodeError(DecodeReason.MISSING_FIELD, _describe_missing(outcomes))

    skipped = len(outcomes) - len(payloads)
    if skipped:
        logger.info(f"Response contained {len(payloads)} image candidate(s); {skipped} without an image")

    return GenerationResponse(
        candidates=payloads,
        outcomes=outcomes,
        model_version=_get(document, "modelVersion", "model_version"),
    )


def encode_image_b64(payload: ImagePayload) -> Tuple[str, str]:
    """Return ``(base64_data, mime_type)`` for handing an image to JSON consumers."""
    return base64.b64encode(payload.data).decode("ascii"), payload.mime_type
