"""Deterministic enumeration of archive entries.

Traversal order:
  - Depth-first, pre-order: a directory is emitted before its children.
  - The children of every directory are sorted by name (code-point order),
    never left in the order the filesystem happens to return them.

When directory names are junked, no directory markers are emitted and each
file is named by its base name alone. Name collisions are not detected here.
"""

from __future__ import annotations

import os
import posixpath
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, List, NamedTuple, Optional

from dzip_errors import WalkError
from dzip_header import is_executable, normalize_name

if TYPE_CHECKING:
    from dzip_zip import BuildOptions


class ArchiveEntry(NamedTuple):
    """A single record to be written into the archive."""

    name: str  # Member name, / separators; directory markers end in /
    is_dir: bool
    source_path: Optional[Path]  # Filesystem source, None when there is none
    executable: bool  # Any of the owner/group/other execute bits set
    size: int = 0  # Size in bytes at discovery time (files only)


def entry_for_file(path: Path, st: os.stat_result, options: BuildOptions) -> ArchiveEntry:
    """Build the entry for a single (non-directory) input."""
    return ArchiveEntry(
        name=normalize_name(os.fspath(path), junk=options.junk_paths),
        is_dir=False,
        source_path=path,
        executable=is_executable(st.st_mode),
        size=st.st_size,
    )


def _sorted_children(path: Path) -> List[os.DirEntry]:
    try:
        with os.scandir(path) as it:
            return sorted(it, key=lambda e: e.name)
    except OSError as exc:
        raise WalkError(f"failed walking dir: {path}: {exc}") from exc


def _child_entry(child: os.DirEntry, parent_name: str, options: BuildOptions) -> ArchiveEntry:
    try:
        is_dir = child.is_dir(follow_symlinks=False)
        # Files are read through symlinks, so their metadata comes from the target.
        st = child.stat(follow_symlinks=not is_dir)
    except OSError as exc:
        raise WalkError(f"failed walking dir: {child.path}: {exc}") from exc

    if is_dir:
        name = normalize_name(posixpath.join(parent_name, child.name)) + "/"
        return ArchiveEntry(
            name=name,
            is_dir=True,
            source_path=Path(child.path),
            executable=is_executable(st.st_mode),
        )

    if options.junk_paths:
        name = normalize_name(child.name, junk=True)
    else:
        name = normalize_name(posixpath.join(parent_name, child.name))
    return ArchiveEntry(
        name=name,
        is_dir=False,
        source_path=Path(child.path),
        executable=is_executable(st.st_mode),
        size=st.st_size,
    )


def walk_tree(root: Path, options: BuildOptions) -> Iterator[ArchiveEntry]:
    """
    Lazily enumerate every entry under a directory.

    Args:
        root: Directory to walk (as given by the user)
        options: Build options; only ``junk_paths`` is consulted

    Yields:
        ArchiveEntry records in archive order

    Raises:
        WalkError: If a directory cannot be listed or an entry cannot be stat'ed
    """
    root = Path(root)
    try:
        root_stat = os.stat(root)
    except OSError as exc:
        raise WalkError(f"failed walking dir: {root}: {exc}") from exc

    root_name = normalize_name(os.fspath(root))
    root_entry = ArchiveEntry(
        name=f"{root_name}/" if root_name else "",
        is_dir=True,
        source_path=root,
        executable=is_executable(root_stat.st_mode),
    )

    # Explicit stack keeps deep trees clear of the recursion limit.
    stack: List[ArchiveEntry] = [root_entry]
    while stack:
        entry = stack.pop()
        if not entry.is_dir:
            yield entry
            continue

        # Input "." has an empty name and gets no marker of its own.
        if not options.junk_paths and entry.name:
            yield entry

        parent_name = entry.name.rstrip("/")
        children = [
            _child_entry(child, parent_name, options)
            for child in _sorted_children(entry.source_path)
        ]
        stack.extend(reversed(children))
