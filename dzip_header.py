"""Canonical ZIP entry headers.

A header produced here carries no information about *when* or *by whom* a
file was written: the timestamp is pinned to the ZIP epoch, the host system is
always reported as Unix, and the permission bits collapse to one of two
classes depending only on whether the source had any execute bit set.

Two entries with the same name, size and executable state therefore produce
byte-identical local headers.
"""

from __future__ import annotations

import os
import posixpath
import stat
import unicodedata
import zipfile
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dzip_walk import ArchiveEntry

# =============================================================================
# Constants
# =============================================================================

# Earliest instant a DOS date/time field can encode; used as the "zero" stamp.
ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)

READ_ONLY_MODE = 0o444
READ_EXEC_MODE = 0o555
EXECUTE_BITS = 0o111

# ZipInfo.create_system value for Unix; also decides how external_attr is read.
CREATE_SYSTEM_UNIX = 3

MSDOS_READ_ONLY = 0x01
MSDOS_DIRECTORY = 0x10


# =============================================================================
# Names
# =============================================================================


def normalize_name(path: str, junk: bool = False) -> str:
    """
    Turn a filesystem path into an archive member name.

    - Converts platform separators to forward slashes
    - Applies Unicode NFC normalization
    - Collapses ``.`` and redundant separators
    - Drops drive letters, leading ``/`` and leading ``..`` components
    - With ``junk``, keeps only the final component

    Returns an empty string when nothing is left (for example ``"."``).
    """
    normalized = path
    if os.sep != "/":
        normalized = normalized.replace(os.sep, "/")
    if os.altsep and os.altsep != "/":
        normalized = normalized.replace(os.altsep, "/")

    normalized = unicodedata.normalize("NFC", normalized)
    _drive, normalized = os.path.splitdrive(normalized)

    normalized = posixpath.normpath(normalized) if normalized else ""
    components = [c for c in normalized.split("/") if c not in ("", ".")]
    while components and components[0] == "..":
        components.pop(0)

    if junk:
        return components[-1] if components else ""
    return "/".join(components)


# =============================================================================
# Permission classes
# =============================================================================


def is_executable(mode: int) -> bool:
    return bool(mode & EXECUTE_BITS)


def permission_class(mode: int) -> int:
    """Collapse raw permission bits to READ_EXEC_MODE or READ_ONLY_MODE."""
    return READ_EXEC_MODE if is_executable(mode) else READ_ONLY_MODE


def unix_mode(info: zipfile.ZipInfo) -> int:
    """Return the Unix mode (type and permission bits) stored in a header."""
    return (info.external_attr >> 16) & 0xFFFF


# =============================================================================
# Header normalization
# =============================================================================


def normalize_header(entry: ArchiveEntry) -> zipfile.ZipInfo:
    """
    Build the canonical header for an archive entry.

    Always returns a fresh ZipInfo; zipfile mutates headers while writing
    them, so headers must never be shared between entries or builds.
    """
    info = zipfile.ZipInfo(filename=entry.name, date_time=ZIP_EPOCH)
    info.create_system = CREATE_SYSTEM_UNIX

    mode = READ_EXEC_MODE if entry.executable else READ_ONLY_MODE
    file_type = stat.S_IFDIR if entry.is_dir else stat.S_IFREG
    info.external_attr = ((file_type | mode) & 0xFFFF) << 16
    info.external_attr |= MSDOS_READ_ONLY

    if entry.is_dir:
        # Markers carry no payload, so there is nothing to deflate.
        info.external_attr |= MSDOS_DIRECTORY
        info.compress_type = zipfile.ZIP_STORED
        info.file_size = 0
    else:
        info.compress_type = zipfile.ZIP_DEFLATED
        info.file_size = entry.size

    info.CRC = 0
    info.compress_size = 0
    return info
