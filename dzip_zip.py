"""Build deterministic ZIP archives from files and directories.

Determinism settings:
  - Top-level inputs are processed in sorted order, whatever order they were
    given in; directory contents are walked in sorted order at every level.
  - Every entry uses the fixed ZIP epoch timestamp (1980-01-01 00:00:00).
  - Permissions collapse to 0444, or 0555 when any execute bit is set.
  - Every file is deflated, including empty ones.

Note: byte-for-byte stability also assumes the same zlib build; a different
deflate implementation may encode identical input differently.
"""

from __future__ import annotations

import os
import stat
import zipfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Iterable, Iterator, Sequence, Tuple, Union

from dzip_errors import (
    ArgumentError,
    CloseError,
    OpenError,
    OutputExistsError,
    OutputIsDirectoryError,
    StatError,
)
from dzip_header import normalize_header
from dzip_walk import ArchiveEntry, entry_for_file, walk_tree
from dzip_writer import write_entry

PathLike = Union[str, "os.PathLike[str]"]


@dataclass(frozen=True)
class BuildOptions:
    junk_paths: bool = False  # -j: record base names only, no directory markers
    overwrite: bool = False  # -O: replace an existing output file


def sort_inputs(inputs: Iterable[PathLike]) -> Tuple[str, ...]:
    """Order inputs by their raw path string."""
    return tuple(sorted(os.fspath(p) for p in inputs))


def check_output(output: Path, options: BuildOptions) -> None:
    """Refuse directories always, and existing files unless overwriting."""
    try:
        st = os.stat(output)
    except FileNotFoundError:
        return
    except OSError as exc:
        raise StatError(f"failed checking file: {output}: {exc}") from exc

    if stat.S_ISDIR(st.st_mode):
        raise OutputIsDirectoryError(
            f"got existing directory as output, it should be a file: {output}"
        )
    if not options.overwrite:
        raise OutputExistsError(f"file already exists: {output}, provide -O for overwrite")


@contextmanager
def _finalizing(resource, description: str) -> Iterator:
    """Close ``resource`` exactly once, whether or not the body raised.

    A close failure after a successful body becomes a CloseError. When the
    body already failed, that error is kept and the close failure is noted
    on it.
    """
    try:
        yield resource
    except BaseException as exc:
        try:
            resource.close()
        except Exception as close_exc:
            exc.add_note(f"also failed to close {description}: {close_exc}")
        raise
    try:
        resource.close()
    except (OSError, ValueError, RuntimeError) as exc:
        raise CloseError(f"failed to close {description}: {exc}") from exc


def iter_entries(inputs: Sequence[str], options: BuildOptions) -> Iterator[ArchiveEntry]:
    """Yield the entries for already-sorted inputs, in archive order."""
    for raw in inputs:
        path = Path(raw)
        try:
            st = os.stat(path)
        except OSError as exc:
            raise StatError(f"failed to stat a file: {raw}: {exc}") from exc

        if stat.S_ISDIR(st.st_mode):
            yield from walk_tree(path, options)
        else:
            yield entry_for_file(path, st, options)


def add_entries(zf: zipfile.ZipFile, entries: Iterable[ArchiveEntry]) -> int:
    """Normalize and write each entry; returns the number written."""
    count = 0
    for entry in entries:
        header = normalize_header(entry)
        print("  adding:", header.filename)
        write_entry(zf, header, entry.source_path)
        count += 1
    return count


def _open_output(output: Path) -> IO[bytes]:
    try:
        return open(output, "wb")
    except OSError as exc:
        raise OpenError(f"creating output: {output}: {exc}") from exc


def build_zip(
    output: PathLike,
    inputs: Sequence[PathLike],
    options: BuildOptions = BuildOptions(),
) -> int:
    """
    Create a deterministic ZIP archive at ``output`` from ``inputs``.

    Args:
        output: Archive path to create
        inputs: Files and directories to add (any order)
        options: Junking and overwrite behavior

    Returns:
        Number of entries written

    Raises:
        BuildError: On the first failure of any kind. A partially written
            archive is left on disk.
    """
    if not inputs:
        raise ArgumentError("no inputs provided")

    output = Path(output)
    ordered = sort_inputs(inputs)
    check_output(output, options)

    with _finalizing(_open_output(output), f"output file {output}") as out:
        with _finalizing(
            zipfile.ZipFile(out, "w", compression=zipfile.ZIP_DEFLATED),
            f"zip file {output}",
        ) as zf:
            return add_entries(zf, iter_entries(ordered, options))
