# Author: imagecreator maintainers
# Date: 2026-10-19T00:00:00Z
# PURPOSE: Persist decoded image bytes. Resolves the final file name (explicit extension wins, otherwise derived
#          from the MIME type; directories get a content-hash name), checks the target directory is writable before
#          touching the disk, then writes through a sibling temporary file and renames it into place.
# SRP and DRY check: Pass. Only filesystem concerns; callers pass an ImagePayload and a destination.
"""Atomic image writer."""

import contextlib
import hashlib
import logging
import os
import tempfile
from pathlib import Path
from typing import BinaryIO, Iterator, List, Union

from imagecreator.generation.errors import WriteError, WriteReason
from imagecreator.generation.models import MIME_JPEG, MIME_PNG, MIME_WEBP, ImagePayload

logger = logging.getLogger(__name__)

MIME_EXTENSIONS = {
    MIME_PNG: ".png",
    MIME_JPEG: ".jpg",
    MIME_WEBP: ".webp",
}
DEFAULT_EXTENSION = ".png"
FILE_MODE = 0o644

PathLike = Union[str, os.PathLike]


def extension_for(mime_type: str) -> str:
    return MIME_EXTENSIONS.get(mime_type, DEFAULT_EXTENSION)


def content_file_name(payload: ImagePayload) -> str:
    """Deterministic file name derived from the image bytes."""
    digest = hashlib.sha256(payload.data).hexdigest()[:16]
    return f"image-{digest}{extension_for(payload.mime_type)}"


def _names_directory(destination: PathLike) -> bool:
    """True when ``destination`` ends with a path separator (``out/``); Path() would drop it."""
    text = os.fspath(destination)
    separators = tuple(sep for sep in (os.sep, os.altsep) if sep)
    return isinstance(text, str) and text.endswith(separators)


def resolve_destination(payload: ImagePayload, destination: PathLike) -> Path:
    """Return the concrete file path ``payload`` should be written to.

    - existing directory, or a path ending in a separator: ``<dir>/image-<sha256 prefix><ext>``
    - path with an extension: used unchanged
    - path without an extension: extension derived from the MIME type
    """
    path = Path(destination).expanduser()
    if path.is_dir() or _names_directory(destination):
        return path / content_file_name(payload)
    if path.suffix:
        return path
    return path.with_name(path.name + extension_for(payload.mime_type))


def numbered_destination(path: Path, number: int) -> Path:
    """``out.png`` -> ``out-2.png`` for the second candidate and so on."""
    if number <= 1:
        return path
    return path.with_name(f"{path.stem}-{number}{path.suffix}")


class OutputWriter:
    """Writes ImagePayloads atomically (temporary sibling file + os.replace)."""

    def __init__(self, file_mode: int = FILE_MODE):
        self.file_mode = file_mode

    def check_writable(self, directory: Path) -> None:
        if not directory.exists():
            raise WriteError(WriteReason.PATH_NOT_WRITABLE, f"Destination directory does not exist: {directory}")
        if not directory.is_dir():
            raise WriteError(WriteReason.PATH_NOT_WRITABLE, f"Destination parent is not a directory: {directory}")
        if not os.access(directory, os.W_OK | os.X_OK):
            raise WriteError(WriteReason.PATH_NOT_WRITABLE, f"Destination directory is not writable: {directory}")

    @contextlib.contextmanager
    def _temporary_sibling(self, target: Path) -> Iterator[BinaryIO]:
        """Yield a handle on a temp file next to ``target``; rename it over ``target`` on clean exit."""
        fd, temp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
        temp_path = Path(temp_name)
        try:
            with os.fdopen(fd, "wb") as handle:
                yield handle
                handle.flush()
                os.fsync(handle.fileno())
            os.chmod(temp_path, self.file_mode)
            os.replace(temp_path, target)
        except BaseException:
            with contextlib.suppress(FileNotFoundError):
                temp_path.unlink()
            raise

    def _write_bytes(self, handle: BinaryIO, data: bytes) -> None:
        view = memoryview(data)
        while view:
            written = handle.write(view)
            if not written:
                raise OSError("short write")
            view = view[written:]

    def write(self, payload: ImagePayload, destination: PathLike) -> Path:
        """Write ``payload`` to ``destination`` and return the final path.

        Raises:
            WriteError: ``path_not_writable`` before any bytes are written if the directory is missing
                or read-only; ``io_failure`` if the write or rename fails (no partial file is left behind).
        """
        if not payload.data:
            raise WriteError(WriteReason.IO_FAILURE, "Refusing to write an empty image payload")

        target = resolve_destination(payload, destination)
        self.check_writable(target.parent)
        if target.is_dir():
            raise WriteError(WriteReason.PATH_NOT_WRITABLE, f"Destination is a directory: {target}")

        try:
            with self._temporary_sibling(target) as handle:
                self._write_bytes(handle, payload.data)
        except OSError as exc:
            logger.error(f"Failed to write image to {target}: {exc}")
            raise WriteError(WriteReason.IO_FAILURE, f"Failed to write image to {target}: {exc}") from exc

        logger.info(f"Wrote {len(payload.data)} bytes ({payload.mime_type}) to {target}")
        return target

    def write_all(self, payloads: List[ImagePayload], destination: PathLike) -> List[Path]:
        """Write every payload; files after the first get ``-2``, ``-3`` ... suffixes.

        All or nothing: if one write fails, files already written by this call are removed.
        """
        into_directory = Path(destination).expanduser().is_dir() or _names_directory(destination)
        paths: List[Path] = []
        try:
            for number, payload in enumerate(payloads, start=1):
                target = resolve_destination(payload, destination)
                if not into_directory:
                    target = numbered_destination(target, number)
                paths.append(self.write(payload, target))
        except WriteError:
            for written in paths:
                with contextlib.suppress(FileNotFoundError):
                    written.unlink()
            raise
        return paths


def write(payload: ImagePayload, destination: PathLike) -> Path:
    """Module-level convenience wrapper around :meth:`OutputWriter.write`."""
    return OutputWriter().write(payload, destination)
