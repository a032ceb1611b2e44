#!/usr/bin/env python3
from __future__ import annotations

import contextlib
import io
import json
import os
import sys
import tempfile
import zipfile
from pathlib import Path


def _build(dzip_zip, out: Path, inputs: list[Path], **options) -> bytes:
    # Progress lines are not part of the summary.
    with contextlib.redirect_stdout(io.StringIO()):
        dzip_zip.build_zip(out, inputs, dzip_zip.BuildOptions(**options))
    return out.read_bytes()


def _make_tree(root: Path) -> tuple[Path, Path]:
    tree = root / "tree"
    (tree / "sub").mkdir(parents=True)
    (tree / "a.txt").write_text("alpha\n", encoding="utf-8")
    (tree / "sub" / "b.txt").write_text("beta\n", encoding="utf-8")
    tool = tree / "sub" / "tool.sh"
    tool.write_text("#!/bin/sh\n", encoding="utf-8")
    os.chmod(tool, 0o755)
    single = root / "single.txt"
    single.write_text("single\n", encoding="utf-8")
    return tree, single


def main() -> int:
    root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(root))

    import dzip_header
    import dzip_verify
    import dzip_zip

    checks = []

    with tempfile.TemporaryDirectory() as tmpdir:
        tmp = Path(tmpdir)
        tree, single = _make_tree(tmp)

        # Check 1: metadata noise does not reach the archive bytes
        before = _build(dzip_zip, tmp / "before.zip", [tree, single])
        os.utime(tree / "a.txt", (1_000_000_000, 1_000_000_000))
        os.chmod(tree / "sub" / "b.txt", 0o600)
        os.chmod(tree / "sub" / "tool.sh", 0o700)
        after = _build(dzip_zip, tmp / "after.zip", [tree, single])
        checks.append(
            {
                "id": "metadata-noise",
                "passed": before == after,
                "details": (
                    "mtime and permission changes ignored"
                    if before == after
                    else "Archive changed after touching metadata"
                ),
            }
        )

        # Check 2: top-level input order
        reordered = _build(dzip_zip, tmp / "reordered.zip", [single, tree])
        checks.append(
            {
                "id": "input-order",
                "passed": reordered == after,
                "details": (
                    "Input order ignored" if reordered == after else "Input order changed archive"
                ),
            }
        )

        # Check 3: permission classes
        with zipfile.ZipFile(tmp / "after.zip") as zf:
            modes = {
                info.filename: dzip_header.unix_mode(info) & 0o777 for info in zf.infolist()
            }
        tool_name = next(name for name in modes if name.endswith("tool.sh"))
        text_name = next(name for name in modes if name.endswith("b.txt"))
        modes_ok = (
            modes[tool_name] == dzip_header.READ_EXEC_MODE
            and modes[text_name] == dzip_header.READ_ONLY_MODE
        )
        checks.append(
            {
                "id": "permission-classes",
                "passed": modes_ok,
                "details": f"{tool_name}={oct(modes[tool_name])} {text_name}={oct(modes[text_name])}",
            }
        )

        # Check 4: the verifier accepts what the builder writes
        report = dzip_verify.verify_archive(tmp / "after.zip")
        checks.append(
            {
                "id": "verifier-accepts",
                "passed": report.passed,
                "details": "Archive verified" if report.passed else "Verifier rejected archive",
            }
        )

    passed = all(check["passed"] for check in checks)
    result = {"passed": passed, "checks": checks}
    print(json.dumps(result, indent=2))
    return 0 if passed else 1


if __name__ == "__main__":
    raise SystemExit(main())
