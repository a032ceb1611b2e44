from __future__ import annotations

import json
import os
from pathlib import Path

import pytest


@pytest.fixture(scope="session")
def repo_root() -> Path:
    return Path(__file__).resolve().parents[1]


@pytest.fixture(scope="session")
def manifest(repo_root: Path) -> dict:
    return json.loads((repo_root / "manifest.json").read_text(encoding="utf-8"))


@pytest.fixture
def sample_tree(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Create ``d/`` with nested files and chdir next to it.

    Layout::

        d/a.txt
        d/run.sh          (0755)
        d/sub/file.txt
        d/sub/deeper/z.txt
    """
    root = tmp_path / "d"
    (root / "sub" / "deeper").mkdir(parents=True)
    # Created out of order on purpose; the walk must not depend on it.
    (root / "sub" / "deeper" / "z.txt").write_text("z\n", encoding="utf-8")
    (root / "sub" / "file.txt").write_text("file in sub\n", encoding="utf-8")
    (root / "run.sh").write_text("#!/bin/sh\necho run\n", encoding="utf-8")
    (root / "a.txt").write_text("a\n", encoding="utf-8")
    os.chmod(root / "run.sh", 0o755)
    os.chmod(root / "a.txt", 0o644)
    monkeypatch.chdir(tmp_path)
    return root
