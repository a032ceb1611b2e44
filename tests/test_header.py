from __future__ import annotations

import stat
import zipfile
from pathlib import Path

import pytest

import dzip_header
from dzip_walk import ArchiveEntry


def _file_entry(name: str = "d/a.txt", executable: bool = False, size: int = 5) -> ArchiveEntry:
    return ArchiveEntry(
        name=name,
        is_dir=False,
        source_path=Path(name),
        executable=executable,
        size=size,
    )


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("d/sub/file.txt", "d/sub/file.txt"),
        ("./d/file.txt", "d/file.txt"),
        ("././d/file.txt", "d/file.txt"),
        ("d//sub/./file.txt", "d/sub/file.txt"),
        ("/abs/path/file.txt", "abs/path/file.txt"),
        ("../outside/file.txt", "outside/file.txt"),
        ("d/sub/", "d/sub"),
        (".", ""),
        ("", ""),
    ],
)
def test_normalize_name(raw: str, expected: str) -> None:
    assert dzip_header.normalize_name(raw) == expected


def test_normalize_name_junk_keeps_base_name() -> None:
    assert dzip_header.normalize_name("d/sub/file.txt", junk=True) == "file.txt"
    assert dzip_header.normalize_name("file.txt", junk=True) == "file.txt"
    assert dzip_header.normalize_name(".", junk=True) == ""


def test_normalize_name_applies_nfc() -> None:
    decomposed = "cafe\u0301.txt"
    assert dzip_header.normalize_name(decomposed) == "caf\u00e9.txt"


@pytest.mark.parametrize(
    ("mode", "expected"),
    [
        (0o644, dzip_header.READ_ONLY_MODE),
        (0o600, dzip_header.READ_ONLY_MODE),
        (0o000, dzip_header.READ_ONLY_MODE),
        (0o755, dzip_header.READ_EXEC_MODE),
        (0o700, dzip_header.READ_EXEC_MODE),
        (0o610, dzip_header.READ_EXEC_MODE),
        (0o601, dzip_header.READ_EXEC_MODE),
    ],
)
def test_permission_class(mode: int, expected: int) -> None:
    assert dzip_header.permission_class(mode) == expected


def test_normalize_header_plain_file() -> None:
    info = dzip_header.normalize_header(_file_entry())

    assert info.filename == "d/a.txt"
    assert info.date_time == dzip_header.ZIP_EPOCH
    assert info.compress_type == zipfile.ZIP_DEFLATED
    assert info.create_system == dzip_header.CREATE_SYSTEM_UNIX
    assert info.file_size == 5
    mode = dzip_header.unix_mode(info)
    assert stat.S_ISREG(mode)
    assert stat.S_IMODE(mode) == 0o444
    assert info.external_attr & dzip_header.MSDOS_READ_ONLY
    assert not info.is_dir()


def test_normalize_header_executable_file() -> None:
    info = dzip_header.normalize_header(_file_entry(executable=True))
    assert stat.S_IMODE(dzip_header.unix_mode(info)) == 0o555


def test_normalize_header_empty_file_is_still_deflated() -> None:
    info = dzip_header.normalize_header(_file_entry(size=0))
    assert info.compress_type == zipfile.ZIP_DEFLATED


def test_normalize_header_directory_marker() -> None:
    entry = ArchiveEntry(name="d/sub/", is_dir=True, source_path=Path("d/sub"), executable=True)
    info = dzip_header.normalize_header(entry)

    assert info.is_dir()
    assert info.date_time == dzip_header.ZIP_EPOCH
    assert info.file_size == 0
    mode = dzip_header.unix_mode(info)
    assert stat.S_ISDIR(mode)
    assert stat.S_IMODE(mode) == 0o555
    assert info.external_attr & dzip_header.MSDOS_DIRECTORY


def test_headers_are_byte_identical_for_equal_entries() -> None:
    # Different source paths (e.g. differing real metadata) must not matter.
    first = _file_entry()._replace(source_path=Path("/one/place/a.txt"))
    second = _file_entry()._replace(source_path=Path("/another/place/a.txt"))

    header_one = dzip_header.normalize_header(first).FileHeader(False)
    header_two = dzip_header.normalize_header(second).FileHeader(False)
    assert header_one == header_two


def test_headers_differ_by_executable_class_only_in_attributes() -> None:
    plain = dzip_header.normalize_header(_file_entry(executable=False))
    executable = dzip_header.normalize_header(_file_entry(executable=True))

    # Permissions live in the central directory, not the local header.
    assert plain.FileHeader(False) == executable.FileHeader(False)
    assert plain.external_attr != executable.external_attr


def test_normalize_header_returns_fresh_objects() -> None:
    entry = _file_entry()
    assert dzip_header.normalize_header(entry) is not dzip_header.normalize_header(entry)
