"""Write single entries into an open ZIP container."""

from __future__ import annotations

import os
import shutil
import stat
import zipfile
import zlib
from pathlib import Path
from typing import Optional

from dzip_errors import OpenError, StatError, WriteError

CHUNK_SIZE = 65536


def write_entry(
    zf: zipfile.ZipFile,
    header: zipfile.ZipInfo,
    source: Optional[Path] = None,
) -> None:
    """
    Write one entry with a prepared header.

    Directory headers become empty markers and ignore ``source``. File headers
    stream ``source`` through the header's compressor; the source handle is
    closed on every exit path.

    Raises:
        OpenError: If the source cannot be opened or is not a regular file
        StatError: If the source cannot be stat'ed
        WriteError: If compressing or writing the payload fails
    """
    if header.is_dir():
        try:
            zf.mkdir(header)
        except (OSError, ValueError) as exc:
            raise WriteError(f"failed adding directory to zip: {header.filename}: {exc}") from exc
        return

    if source is None:
        raise OpenError(f"no source file for entry: {header.filename}")

    # Checked before opening: opening a FIFO for reading would block.
    try:
        st = os.stat(source)
    except OSError as exc:
        raise StatError(f"failed stating file: {source}: {exc}") from exc
    if not stat.S_ISREG(st.st_mode):
        raise OpenError(f"not a regular file: {source}")

    try:
        src = open(source, "rb")
    except OSError as exc:
        raise OpenError(f"failed opening file: {source}: {exc}") from exc

    with src:
        try:
            with zf.open(header, mode="w") as dest:
                shutil.copyfileobj(src, dest, CHUNK_SIZE)
        except (OSError, zlib.error, RuntimeError, ValueError) as exc:
            raise WriteError(f"failed writing content to zip file: {source}: {exc}") from exc
