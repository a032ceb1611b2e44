"""Error taxonomy for dzip builds.

Every failure aborts the whole build; the CLI maps any ``BuildError`` to
exit code 2 and prints its message.
"""

from __future__ import annotations


class BuildError(Exception):
    """Base class for all archive build failures."""

    pass


class ArgumentError(BuildError):
    """Too few inputs were supplied."""

    pass


class OutputExistsError(BuildError):
    """Output path exists and overwriting was not requested."""

    pass


class OutputIsDirectoryError(BuildError):
    pass


class StatError(BuildError):
    """An input or the output path could not be stat'ed."""

    pass


class OpenError(BuildError):
    """An input could not be opened for reading, or the output for writing."""

    pass


class WalkError(BuildError):
    pass


class WriteError(BuildError):
    """Compressing or streaming an entry into the archive failed."""

    pass


class CloseError(BuildError):
    """Finalizing the archive or closing the output handle failed."""

    pass
