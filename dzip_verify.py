#!/usr/bin/env python3
"""Check that a ZIP archive carries normalized, reproducible metadata.

An archive passes when every entry looks the way dzip writes it:
- Payload decompresses and matches its CRC
- Timestamp pinned to the ZIP epoch (1980-01-01 00:00:00)
- Unix host system, permissions of exactly 0444 or 0555
- Files deflated, directory markers empty
- No per-entry extra fields (ZIP64 sizes aside) or comments, no archive comment

Usage:
    python dzip_verify.py out.zip
    python dzip_verify.py out.zip --json

Exit codes:
    0 = Archive is normalized
    1 = One or more rules failed
    2 = Error (archive missing or not a ZIP file)
"""

from __future__ import annotations

import argparse
import hashlib
import json
import os
import pathlib
import stat
import struct
import sys
import zipfile
import zlib
from collections import Counter
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from dzip_header import (
    CREATE_SYSTEM_UNIX,
    READ_EXEC_MODE,
    READ_ONLY_MODE,
    ZIP_EPOCH,
    unix_mode,
)

# Number of offending entry names listed in a result's details.
MAX_LISTED = 5

# Extra field header ID zipfile writes for entries past the 32-bit size limits.
ZIP64_EXTRA_ID = 0x0001

CHUNK_SIZE = 65536


class Severity(Enum):
    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"


@dataclass
class VerificationResult:
    rule_id: str
    passed: bool
    severity: Severity
    message: str
    details: Optional[str] = None


class ArchiveSummary(NamedTuple):
    path: str
    digest: str  # SHA-256 hex digest of the archive bytes
    size: int
    entry_count: int


def _list_names(names: List[str]) -> str:
    listed = ", ".join(names[:MAX_LISTED])
    if len(names) > MAX_LISTED:
        listed += f", ... {len(names) - MAX_LISTED} more"
    return listed


class VerificationReport:
    """Outcome of every rule applied to one archive."""

    def __init__(self, archive: Optional[ArchiveSummary] = None):
        self.archive = archive
        self.results: List[VerificationResult] = []

    def check(
        self,
        rule_id: str,
        offenders: List[str],
        ok_message: str,
        fail_message: str,
        severity: Severity = Severity.ERROR,
    ):
        """Record a rule: it passes when no entry offends against it."""
        if not offenders:
            self.results.append(VerificationResult(rule_id, True, Severity.INFO, ok_message))
            return
        self.results.append(
            VerificationResult(
                rule_id,
                False,
                severity,
                f"{fail_message} ({len(offenders)} entries)",
                _list_names(offenders),
            )
        )

    def failed(self, severity: Severity) -> List[VerificationResult]:
        return [r for r in self.results if not r.passed and r.severity == severity]

    @property
    def passed(self) -> bool:
        return not self.failed(Severity.ERROR)

    @property
    def has_warnings(self) -> bool:
        return bool(self.failed(Severity.WARNING))

    def to_dict(self) -> Dict[str, Any]:
        archive = None
        if self.archive is not None:
            archive = {
                "path": self.archive.path,
                "digest": f"sha256:{self.archive.digest}",
                "size": self.archive.size,
                "entryCount": self.archive.entry_count,
            }
        return {
            "passed": self.passed,
            "has_warnings": self.has_warnings,
            "archive": archive,
            "results": [{**asdict(r), "severity": r.severity.value} for r in self.results],
        }

    def print_report(self, verbose: bool = False):
        print(f"\n{'=' * 60}\nDZIP VERIFICATION REPORT\n{'=' * 60}")

        if self.archive is not None:
            print(f"\nArchive: {self.archive.path}")
            print(f"Digest:  sha256:{self.archive.digest}")
            print(f"Entries: {self.archive.entry_count} ({self.archive.size:,} bytes)")

        sections = [
            ("❌ ERRORS", self.failed(Severity.ERROR)),
            ("⚠️  WARNINGS", self.failed(Severity.WARNING)),
        ]
        if verbose:
            sections.append(("✅ PASSED", [r for r in self.results if r.passed]))

        for title, results in sections:
            if not results:
                continue
            print(f"\n{title} ({len(results)}):")
            for r in results:
                print(f"  [{r.rule_id}] {r.message}")
                if verbose and r.details:
                    print(f"      Details: {r.details}")

        if not self.passed:
            verdict = "❌ FAILED"
        elif self.has_warnings:
            verdict = "⚠️  PASSED WITH WARNINGS"
        else:
            verdict = "✅ PASSED"
        print(f"\n{'-' * 60}\nRESULT: {verdict}\n{'-' * 60}\n")


def archive_digest(path: pathlib.Path) -> Tuple[str, int]:
    """Return the SHA-256 hex digest and the size in bytes of an archive."""
    with open(path, "rb") as f:
        digest = hashlib.file_digest(f, "sha256").hexdigest()
        return digest, os.fstat(f.fileno()).st_size


# =============================================================================
# Rules
# =============================================================================


def _unreadable_entries(zf: zipfile.ZipFile) -> List[str]:
    """Entries whose payload cannot be read back intact, with the reason."""
    unreadable = []
    for info in zf.infolist():
        try:
            with zf.open(info) as member:
                while member.read(CHUNK_SIZE):
                    pass
        # CRC mismatch, corrupt or truncated deflate stream, encryption, unknown method.
        except (zipfile.BadZipFile, zlib.error, EOFError, RuntimeError, NotImplementedError) as exc:
            unreadable.append(f"{info.filename} ({exc})")
    return unreadable


def _extra_ids(extra: bytes) -> List[Optional[int]]:
    """Header IDs of the records in an extra field; None marks a truncated record."""
    ids: List[Optional[int]] = []
    while extra:
        if len(extra) < 4:
            ids.append(None)
            break
        header_id, size = struct.unpack("<HH", extra[:4])
        ids.append(header_id)
        extra = extra[4 + size:]
    return ids


def _has_foreign_metadata(info: zipfile.ZipInfo) -> bool:
    return bool(info.comment) or any(i != ZIP64_EXTRA_ID for i in _extra_ids(info.extra))


def _has_normalized_mode(info: zipfile.ZipInfo) -> bool:
    mode = unix_mode(info)
    file_type = stat.S_IFDIR if info.is_dir() else stat.S_IFREG
    return stat.S_IFMT(mode) == file_type and stat.S_IMODE(mode) in {
        READ_ONLY_MODE,
        READ_EXEC_MODE,
    }


def _has_normalized_compression(info: zipfile.ZipInfo) -> bool:
    if info.is_dir():
        return info.file_size == 0
    return info.compress_type == zipfile.ZIP_DEFLATED


def verify_entries(zf: zipfile.ZipFile, report: VerificationReport) -> None:
    """Apply the per-entry normalization rules to an open archive."""
    infos = zf.infolist()

    report.check(
        "ZIP-001",
        _unreadable_entries(zf),
        "All entry payloads decompress and pass their CRC checks",
        "Entries whose payload cannot be read back",
    )
    report.check(
        "ZIP-002",
        [i.filename for i in infos if tuple(i.date_time) != ZIP_EPOCH],
        "All timestamps pinned to the ZIP epoch",
        "Entries with non-normalized timestamps",
    )
    report.check(
        "ZIP-003",
        [i.filename for i in infos if i.create_system != CREATE_SYSTEM_UNIX],
        "All entries record a Unix host system",
        "Entries recording a non-Unix host system",
    )
    report.check(
        "ZIP-004",
        [i.filename for i in infos if not _has_normalized_mode(i)],
        "All permissions normalized to 0444/0555",
        "Entries with non-normalized permissions",
    )
    report.check(
        "ZIP-005",
        [i.filename for i in infos if not _has_normalized_compression(i)],
        "All files deflated, directory markers empty",
        "Entries with unexpected compression or payload",
    )
    report.check(
        "ZIP-006",
        [i.filename for i in infos if _has_foreign_metadata(i)],
        "No per-entry extra fields or comments",
        "Entries carrying extra fields or comments",
    )

    if zf.comment:
        report.results.append(
            VerificationResult(
                "ZIP-007", False, Severity.ERROR, "Archive carries a comment", repr(zf.comment[:60])
            )
        )
    else:
        report.results.append(
            VerificationResult("ZIP-007", True, Severity.INFO, "No archive comment")
        )

    counts = Counter(i.filename for i in infos)
    report.check(
        "ZIP-008",
        sorted(name for name, count in counts.items() if count > 1),
        "Entry names are unique",
        "Duplicate entry names; readers resolve to the last one",
        severity=Severity.WARNING,
    )


def verify_archive(archive_path: pathlib.Path) -> VerificationReport:
    """
    Verify that an archive carries normalized metadata.

    Raises:
        FileNotFoundError: If the archive does not exist
        zipfile.BadZipFile: If the file is not a readable ZIP archive
    """
    archive_path = pathlib.Path(archive_path)
    if not archive_path.is_file():
        raise FileNotFoundError(f"Archive not found: {archive_path}")

    digest, size = archive_digest(archive_path)
    with zipfile.ZipFile(archive_path, "r") as zf:
        report = VerificationReport(
            ArchiveSummary(
                path=str(archive_path),
                digest=digest,
                size=size,
                entry_count=len(zf.infolist()),
            )
        )
        verify_entries(zf, report)
    return report


# =============================================================================
# CLI Interface
# =============================================================================


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="dzip-verify",
        description="Check that a ZIP archive carries normalized, reproducible metadata",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("archive", type=pathlib.Path, help="Path to the ZIP archive")
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show detailed output including passed checks",
    )
    parser.add_argument("--json", action="store_true", help="Output report as JSON")

    args = parser.parse_args(argv)

    try:
        report = verify_archive(args.archive)
    except (FileNotFoundError, zipfile.BadZipFile, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        report.print_report(verbose=args.verbose)

    return 0 if report.passed else 1


if __name__ == "__main__":
    sys.exit(main())
