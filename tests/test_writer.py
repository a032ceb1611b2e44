from __future__ import annotations

import io
import os
import zipfile
from pathlib import Path

import pytest

import dzip_header
import dzip_writer
from dzip_errors import OpenError, StatError, WriteError
from dzip_walk import ArchiveEntry


def _header(name: str, is_dir: bool = False, size: int = 0) -> zipfile.ZipInfo:
    entry = ArchiveEntry(name=name, is_dir=is_dir, source_path=None, executable=False, size=size)
    return dzip_header.normalize_header(entry)


def test_write_file_entry_streams_content(tmp_path: Path) -> None:
    source = tmp_path / "data.bin"
    payload = os.urandom(200_000) + b"tail"
    source.write_bytes(payload)

    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        dzip_writer.write_entry(zf, _header("data.bin", size=len(payload)), source)

    with zipfile.ZipFile(io.BytesIO(buf.getvalue())) as zf:
        info = zf.getinfo("data.bin")
        assert info.compress_type == zipfile.ZIP_DEFLATED
        assert info.file_size == len(payload)
        assert zf.read("data.bin") == payload


def test_write_empty_file_is_deflated(tmp_path: Path) -> None:
    source = tmp_path / "empty"
    source.write_bytes(b"")

    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        dzip_writer.write_entry(zf, _header("empty"), source)

    with zipfile.ZipFile(io.BytesIO(buf.getvalue())) as zf:
        info = zf.getinfo("empty")
        assert info.compress_type == zipfile.ZIP_DEFLATED
        assert zf.read("empty") == b""


def test_write_directory_marker_has_no_payload() -> None:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        dzip_writer.write_entry(zf, _header("d/sub/", is_dir=True))

    with zipfile.ZipFile(io.BytesIO(buf.getvalue())) as zf:
        info = zf.getinfo("d/sub/")
        assert info.is_dir()
        assert info.file_size == 0
        assert info.compress_size == 0
        assert info.date_time == dzip_header.ZIP_EPOCH


def test_write_missing_source_raises_stat_error(tmp_path: Path) -> None:
    with zipfile.ZipFile(io.BytesIO(), "w") as zf:
        with pytest.raises(StatError, match="failed stating file"):
            dzip_writer.write_entry(zf, _header("gone.txt"), tmp_path / "gone.txt")


def test_write_without_source_raises_open_error() -> None:
    with zipfile.ZipFile(io.BytesIO(), "w") as zf:
        with pytest.raises(OpenError, match="no source file"):
            dzip_writer.write_entry(zf, _header("orphan.txt"))


def test_write_rejects_non_regular_source(tmp_path: Path) -> None:
    directory = tmp_path / "not-a-file"
    directory.mkdir()
    with zipfile.ZipFile(io.BytesIO(), "w") as zf:
        with pytest.raises(OpenError, match="not a regular file"):
            dzip_writer.write_entry(zf, _header("not-a-file"), directory)


def test_write_unreadable_source_raises_open_error(tmp_path: Path) -> None:
    if hasattr(os, "geteuid") and os.geteuid() == 0:
        pytest.skip("root can read files regardless of permissions")
    source = tmp_path / "secret.txt"
    source.write_text("secret", encoding="utf-8")
    os.chmod(source, 0o000)
    try:
        with zipfile.ZipFile(io.BytesIO(), "w") as zf:
            with pytest.raises(OpenError, match="failed opening file"):
                dzip_writer.write_entry(zf, _header("secret.txt"), source)
    finally:
        os.chmod(source, 0o644)


def test_write_failure_is_wrapped_and_source_closed(tmp_path: Path, monkeypatch) -> None:
    source = tmp_path / "data.txt"
    source.write_text("data", encoding="utf-8")
    opened = []
    real_open = open

    def _tracking_open(*args, **kwargs):
        handle = real_open(*args, **kwargs)
        opened.append(handle)
        return handle

    def _broken_copy(src, dst, length=0):
        raise OSError("disk full")

    monkeypatch.setattr(dzip_writer, "open", _tracking_open, raising=False)
    monkeypatch.setattr(dzip_writer.shutil, "copyfileobj", _broken_copy)

    with zipfile.ZipFile(io.BytesIO(), "w") as zf:
        with pytest.raises(WriteError, match="disk full"):
            dzip_writer.write_entry(zf, _header("data.txt", size=4), source)

    assert opened and all(handle.closed for handle in opened)
