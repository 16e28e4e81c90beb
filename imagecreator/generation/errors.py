# Author: imagecreator maintainers
# Date: 2026-10-19T00:00:00Z
# PURPOSE: Error taxonomy for the image generation pipeline. Every failure carries a machine-readable kind
#          and a process exit code so the CLI, MCP server and HTTP API can map results without string parsing.
# SRP and DRY check: Pass. Single home for exception types; components raise these instead of ad-hoc errors.
"""Exceptions raised by the image generation pipeline."""

from enum import Enum, IntEnum
from typing import Optional


class ExitCode(IntEnum):
    """Process exit codes used by the command-line entry point."""
    SUCCESS = 0
    UNEXPECTED = 1
    INVALID_REQUEST = 2
    CONFIGURATION = 3
    DECODE_FAILURE = 4
    FATAL_TRANSPORT = 5
    RETRIES_EXHAUSTED = 6
    DEADLINE_EXCEEDED = 7
    WRITE_FAILURE = 8


class ImageGenerationError(Exception):
    """Base class for every failure surfaced by the pipeline."""

    kind = "image_generation_error"
    exit_code = ExitCode.UNEXPECTED

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class ConfigurationError(ImageGenerationError):
    """Missing or invalid configuration, e.g. no API key."""

    kind = "configuration_error"
    exit_code = ExitCode.CONFIGURATION


class EncodeError(ImageGenerationError):
    """The request could not be serialized (empty prompt, unsupported parameter)."""

    kind = "encode_error"
    exit_code = ExitCode.INVALID_REQUEST


class DecodeReason(str, Enum):
    MISSING_FIELD = "missing_field"
    MALFORMED_BASE64 = "malformed_base64"
    UNSUPPORTED_MIME = "unsupported_mime"
    MALFORMED_BODY = "malformed_body"


class DecodeError(ImageGenerationError):
    """The response body did not contain a usable image."""

    exit_code = ExitCode.DECODE_FAILURE

    def __init__(self, reason: DecodeReason, message: str):
        super().__init__(message)
        self.reason = DecodeReason(reason)

    @property
    def kind(self) -> str:
        return f"decode_error.{self.reason.value}"


class TransportCategory(str, Enum):
    FATAL = "fatal"
    RETRYABLE = "retryable"


class TransportError(ImageGenerationError):
    """A single HTTP attempt failed.

    ``category`` tells the retry orchestrator whether another attempt can help.
    ``status_code`` is ``None`` for connection-level failures.
    """

    def __init__(
        self,
        category: TransportCategory,
        message: str,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message)
        self.category = TransportCategory(category)
        self.status_code = status_code
        self.retry_after = retry_after

    @property
    def kind(self) -> str:
        return f"transport_error.{self.category.value}"

    @property
    def exit_code(self) -> ExitCode:
        if self.category is TransportCategory.FATAL:
            return ExitCode.FATAL_TRANSPORT
        return ExitCode.RETRIES_EXHAUSTED

    @property
    def is_retryable(self) -> bool:
        return self.category is TransportCategory.RETRYABLE

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["status_code"] = self.status_code
        return data


class RetriesExhausted(ImageGenerationError):
    """Every attempt failed with a retryable error."""

    kind = "retries_exhausted"
    exit_code = ExitCode.RETRIES_EXHAUSTED

    def __init__(self, attempts: int, last_error: TransportError):
        super().__init__(f"Image generation failed after {attempts} attempts: {last_error.message}")
        self.attempts = attempts
        self.last_error = last_error


class DeadlineExceeded(ImageGenerationError):
    """The overall deadline elapsed before an attempt succeeded."""

    kind = "deadline_exceeded"
    exit_code = ExitCode.DEADLINE_EXCEEDED

    def __init__(self, deadline: float, attempts: int, last_error: Optional[TransportError] = None):
        super().__init__(f"Deadline of {deadline:g}s exceeded after {attempts} attempt(s)")
        self.deadline = deadline
        self.attempts = attempts
        self.last_error = last_error


class WriteReason(str, Enum):
    PATH_NOT_WRITABLE = "path_not_writable"
    IO_FAILURE = "io_failure"


class WriteError(ImageGenerationError):
    """The image could not be persisted."""

    exit_code = ExitCode.WRITE_FAILURE

    def __init__(self, reason: WriteReason, message: str):
        super().__init__(message)
        self.reason = WriteReason(reason)

    @property
    def kind(self) -> str:
        return f"write_error.{self.reason.value}"
