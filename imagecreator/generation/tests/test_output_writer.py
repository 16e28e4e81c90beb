# Author: imagecreator maintainers
# Date: 2026-10-19T00:00:00Z
# PURPOSE: Cover destination resolution and the atomic write path of OutputWriter, including the guarantee that
#          a failed write leaves neither a partial target nor a stray temporary file behind.
# SRP and DRY check: Pass - filesystem behaviour only.
import os
import stat
from unittest import mock

import pytest

from imagecreator.generation import output_writer
from imagecreator.generation.errors import WriteError, WriteReason
from imagecreator.generation.models import ImagePayload
from imagecreator.generation.output_writer import (
    OutputWriter,
    content_file_name,
    numbered_destination,
    resolve_destination,
)

PNG = ImagePayload(mime_type="image/png", data=b"\x89PNG\r\n\x1a\n" + b"pixels")
JPEG = ImagePayload(mime_type="image/jpeg", data=b"\xff\xd8\xff" + b"pixels")


class TestResolveDestination:
    def test_extension_added_from_mime_type(self, tmp_path):
        assert resolve_destination(PNG, tmp_path / "out") == tmp_path / "out.png"
        assert resolve_destination(JPEG, tmp_path / "out") == tmp_path / "out.jpg"

    def test_explicit_extension_kept(self, tmp_path):
        assert resolve_destination(PNG, tmp_path / "photo.jpeg") == tmp_path / "photo.jpeg"

    def test_directory_gets_content_hash_name(self, tmp_path):
        resolved = resolve_destination(PNG, tmp_path)
        assert resolved.parent == tmp_path
        assert resolved.name == content_file_name(PNG)
        assert resolved.name.startswith("image-")
        assert resolved.suffix == ".png"

    def test_content_name_is_deterministic(self):
        assert content_file_name(PNG) == content_file_name(ImagePayload(mime_type="image/png", data=PNG.data))
        assert content_file_name(PNG) != content_file_name(JPEG)

    def test_numbered_destination(self, tmp_path):
        target = tmp_path / "out.png"
        assert numbered_destination(target, 1) == target
        assert numbered_destination(target, 3) == tmp_path / "out-3.png"


class TestOutputWriter:
    def test_write_creates_file_with_payload(self, tmp_path):
        path = OutputWriter().write(PNG, tmp_path / "out")
        assert path == tmp_path / "out.png"
        assert path.read_bytes() == PNG.data
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o644
        assert [p.name for p in tmp_path.iterdir()] == ["out.png"]

    def test_write_replaces_existing_file(self, tmp_path):
        target = tmp_path / "out.png"
        target.write_bytes(b"old")
        OutputWriter().write(PNG, target)
        assert target.read_bytes() == PNG.data

    def test_missing_directory_fails_before_writing(self, tmp_path):
        with mock.patch.object(output_writer.tempfile, "mkstemp") as mkstemp:
            with pytest.raises(WriteError) as excinfo:
                OutputWriter().write(PNG, tmp_path / "missing" / "out.png")
        assert excinfo.value.reason is WriteReason.PATH_NOT_WRITABLE
        assert excinfo.value.kind == "write_error.path_not_writable"
        mkstemp.assert_not_called()

    def test_trailing_separator_names_a_directory(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(WriteError) as excinfo:
            OutputWriter().write(PNG, "missing_dir" + os.sep)
        assert excinfo.value.reason is WriteReason.PATH_NOT_WRITABLE
        assert list(tmp_path.iterdir()) == []

    def test_trailing_separator_on_existing_directory(self, tmp_path):
        (tmp_path / "shots").mkdir()
        path = OutputWriter().write(PNG, str(tmp_path / "shots") + os.sep)
        assert path == tmp_path / "shots" / content_file_name(PNG)

    def test_parent_that_is_a_file_is_rejected(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        with pytest.raises(WriteError) as excinfo:
            OutputWriter().write(PNG, blocker / "out.png")
        assert excinfo.value.reason is WriteReason.PATH_NOT_WRITABLE

    def test_failure_mid_write_leaves_nothing_behind(self, tmp_path):
        writer = OutputWriter()

        def explode(handle, data):
            handle.write(data[:3])
            raise OSError("disk full")

        with mock.patch.object(writer, "_write_bytes", side_effect=explode):
            with pytest.raises(WriteError) as excinfo:
                writer.write(PNG, tmp_path / "out.png")

        assert excinfo.value.reason is WriteReason.IO_FAILURE
        assert "disk full" in excinfo.value.message
        assert list(tmp_path.iterdir()) == []

    def test_failed_rewrite_keeps_previous_file(self, tmp_path):
        target = tmp_path / "out.png"
        target.write_bytes(b"previous")
        writer = OutputWriter()
        with mock.patch.object(writer, "_write_bytes", side_effect=OSError("boom")):
            with pytest.raises(WriteError):
                writer.write(PNG, target)
        assert target.read_bytes() == b"previous"
        assert [p.name for p in tmp_path.iterdir()] == ["out.png"]

    def test_empty_payload_rejected(self, tmp_path):
        with pytest.raises(WriteError):
            OutputWriter().write(ImagePayload(mime_type="image/png", data=b""), tmp_path / "out")
        assert list(tmp_path.iterdir()) == []

    def test_write_all_numbers_files(self, tmp_path):
        paths = OutputWriter().write_all([PNG, JPEG], tmp_path / "out")
        assert paths == [tmp_path / "out.png", tmp_path / "out-2.jpg"]
        assert paths[1].read_bytes() == JPEG.data

    def test_write_all_into_directory_uses_content_names(self, tmp_path):
        paths = OutputWriter().write_all([PNG, JPEG], tmp_path)
        assert [p.name for p in paths] == [content_file_name(PNG), content_file_name(JPEG)]

    def test_write_all_removes_earlier_files_on_failure(self, tmp_path):
        writer = OutputWriter()
        real_write_bytes = writer._write_bytes
        calls = []

        def fail_second(handle, data):
            calls.append(data)
            if len(calls) == 2:
                raise OSError("disk full")
            real_write_bytes(handle, data)

        with mock.patch.object(writer, "_write_bytes", side_effect=fail_second):
            with pytest.raises(WriteError):
                writer.write_all([PNG, JPEG], tmp_path / "out")

        assert len(calls) == 2
        assert list(tmp_path.iterdir()) == []


def test_module_level_write(tmp_path):
    path = output_writer.write(JPEG, str(tmp_path / "snap"))
    assert path.name == "snap.jpg"
