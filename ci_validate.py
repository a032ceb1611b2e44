#!/usr/bin/env python3
"""CI checks for dzip: tools, report schema and golden test vectors.

Checks, grouped in the report:
  compile  every tool module parses
  schema   the report schema is a valid Draft 2020-12 schema
  vector   each manifest vector builds into the expected entry names,
           with and without -j
  repro    building a vector twice gives identical bytes
  verify   dzip-verify accepts the build and its --json output fits the schema
  order    reversing the inputs does not change the archive

Usage:
    python ci_validate.py                    # Run all checks
    python ci_validate.py --verbose          # Also list passing checks
    python ci_validate.py --schema-only      # Only compile and schema checks

Exit codes:
    0 = All checks passed
    1 = One or more checks failed
"""

from __future__ import annotations

import argparse
import json
import pathlib
import subprocess
import sys
import tempfile
import textwrap
import zipfile
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError

SCRIPT_DIR = pathlib.Path(__file__).parent.resolve()

PYTHON_TOOLS = [
    "dzip.py",
    "dzip_errors.py",
    "dzip_header.py",
    "dzip_walk.py",
    "dzip_writer.py",
    "dzip_zip.py",
    "dzip_verify.py",
]

REPORT_SCHEMA = "dzip-report-v1.schema.json"
MANIFEST_FILE = "manifest.json"


@dataclass
class CheckResult:
    check: str
    subject: str
    passed: bool
    message: str
    details: Optional[str] = None


class ValidationReport:
    def __init__(self):
        self.results: List[CheckResult] = []

    def record(
        self,
        check: str,
        subject: str,
        passed: bool,
        message: str,
        details: Optional[str] = None,
    ):
        self.results.append(CheckResult(check, subject, passed, message, details))

    @property
    def failures(self) -> List[CheckResult]:
        return [r for r in self.results if not r.passed]

    @property
    def passed(self) -> bool:
        return not self.failures

    def print_report(self, verbose: bool = False):
        print(f"\n{'=' * 70}\nDZIP CI VALIDATION REPORT\n{'=' * 70}")

        for check in dict.fromkeys(r.check for r in self.results):
            group = [r for r in self.results if r.check == check]
            bad = [r for r in group if not r.passed]
            mark = "❌" if bad else "✅"
            print(f"\n{mark} {check}: {len(group) - len(bad)}/{len(group)} ok")
            for r in group:
                if r.passed and not verbose:
                    continue
                print(f"    {r.subject}: {r.message}")
                if r.details and not r.passed:
                    print(textwrap.indent(r.details, " " * 8))

        failed = len(self.failures)
        print(f"\n{'-' * 70}")
        if failed:
            print(f"RESULT: ❌ {failed}/{len(self.results)} CHECKS FAILED")
        else:
            print(f"RESULT: ✅ ALL {len(self.results)} CHECKS PASSED")
        print(f"{'-' * 70}\n")


def _load_json(report: ValidationReport, check: str, name: str) -> Optional[Dict[str, Any]]:
    try:
        return json.loads((SCRIPT_DIR / name).read_text(encoding="utf-8"))
    except OSError as e:
        report.record(check, name, False, "Unreadable", str(e))
    except json.JSONDecodeError as e:
        report.record(check, name, False, "Invalid JSON", str(e))
    return None


def _run_tool(tool: str, *args: str) -> subprocess.CompletedProcess:
    # Vectors are addressed relative to the repo root so entry names match the manifest.
    return subprocess.run(
        [sys.executable, str(SCRIPT_DIR / tool), *args],
        cwd=SCRIPT_DIR,
        capture_output=True,
        text=True,
    )


def _entry_names(archive: pathlib.Path) -> List[str]:
    with zipfile.ZipFile(archive) as zf:
        return [info.filename for info in zf.infolist()]


def check_compilation(report: ValidationReport):
    for tool in PYTHON_TOOLS:
        path = SCRIPT_DIR / tool
        try:
            compile(path.read_text(encoding="utf-8"), str(path), "exec")
        except OSError as e:
            report.record("compile", tool, False, "Unreadable", str(e))
        except SyntaxError as e:
            report.record("compile", tool, False, "Syntax error", f"line {e.lineno}: {e.msg}")
        else:
            report.record("compile", tool, True, "Parses")


def check_schema(report: ValidationReport) -> Optional[Draft202012Validator]:
    """Check the report schema and return a validator for it."""
    schema = _load_json(report, "schema", REPORT_SCHEMA)
    if schema is None:
        return None
    try:
        Draft202012Validator.check_schema(schema)
    except SchemaError as e:
        report.record("schema", REPORT_SCHEMA, False, "Not a valid schema", e.message)
        return None
    report.record("schema", REPORT_SCHEMA, True, "Valid Draft 2020-12 schema")
    return Draft202012Validator(schema)


def check_verifier(
    report: ValidationReport,
    subject: str,
    archive: pathlib.Path,
    validator: Optional[Draft202012Validator],
):
    result = _run_tool("dzip_verify.py", str(archive), "--json")
    try:
        payload = json.loads(result.stdout)
    except json.JSONDecodeError:
        report.record("verify", subject, False, "Unparseable verifier output", result.stderr[:500])
        return

    failing = [r["message"] for r in payload.get("results", []) if r.get("severity") == "ERROR"]
    if payload.get("passed"):
        report.record("verify", subject, True, "Accepted by dzip-verify")
    else:
        report.record("verify", subject, False, "Rejected by dzip-verify", "\n".join(failing))

    if validator is not None:
        errors = list(validator.iter_errors(payload))
        if errors:
            report.record("verify", f"{subject} (schema)", False, "Report violates schema",
                          errors[0].message)
        else:
            report.record("verify", f"{subject} (schema)", True, "Report fits schema")


def check_vectors(
    report: ValidationReport,
    manifest: Dict[str, Any],
    tmp_dir: pathlib.Path,
    validator: Optional[Draft202012Validator],
):
    for name, vector in manifest.get("testVectors", {}).items():
        if not (SCRIPT_DIR / vector["path"]).exists():
            report.record("vector", name, False, f"Path not found: {vector['path']}")
            continue

        variants = (("", [], "expectedEntries"), ("-j", ["-j"], "expectedJunkedEntries"))
        for suffix, flags, expected_key in variants:
            subject = f"{name}{' ' + suffix if suffix else ''}"
            builds = [tmp_dir / f"{name}{suffix}-{n}.zip" for n in (1, 2)]
            results = [_run_tool("dzip.py", *flags, str(out), vector["path"]) for out in builds]
            broken = next((r for r in results if r.returncode != 0), None)
            if broken is not None:
                report.record("vector", subject, False, "Build failed", broken.stdout.strip())
                continue

            names = _entry_names(builds[0])
            expected = vector[expected_key]
            if names == expected:
                report.record("vector", subject, True, f"{len(names)} entries as expected")
            else:
                report.record("vector", subject, False, "Entry mismatch",
                              f"expected: {expected}\nbuilt:    {names}")

            identical = builds[0].read_bytes() == builds[1].read_bytes()
            report.record("repro", subject, identical,
                          "Byte-identical rebuild" if identical else "Rebuild differs")

            check_verifier(report, subject, builds[0], validator)


def check_input_order(report: ValidationReport, manifest: Dict[str, Any], tmp_dir: pathlib.Path):
    paths = [vector["path"] for vector in manifest.get("testVectors", {}).values()]
    if len(paths) < 2:
        return

    archives = []
    for label, inputs in (("forward", paths), ("backward", paths[::-1])):
        out = tmp_dir / f"order-{label}.zip"
        result = _run_tool("dzip.py", str(out), *inputs)
        if result.returncode != 0:
            report.record("order", label, False, "Build failed", result.stdout.strip())
            return
        archives.append(out.read_bytes())

    same = archives[0] == archives[1]
    report.record("order", f"{len(paths)} inputs", same,
                  "Independent of input order" if same else "Input order changed the archive")


def main() -> int:
    parser = argparse.ArgumentParser(description="dzip CI validation")
    parser.add_argument("--verbose", "-v", action="store_true", help="Also list passing checks")
    parser.add_argument("--schema-only", action="store_true",
                        help="Only run compile and schema checks")
    args = parser.parse_args()

    report = ValidationReport()
    print("Running dzip CI validations...")

    check_compilation(report)
    validator = check_schema(report)

    if not args.schema_only:
        manifest = _load_json(report, "vector", MANIFEST_FILE)
        if manifest is not None:
            with tempfile.TemporaryDirectory() as tmp:
                tmp_dir = pathlib.Path(tmp)
                check_vectors(report, manifest, tmp_dir, validator)
                check_input_order(report, manifest, tmp_dir)

    report.print_report(verbose=args.verbose)
    return 0 if report.passed else 1


if __name__ == "__main__":
    sys.exit(main())
