"""Shared fixtures."""

from pathlib import Path

import pytest


def write_tree(root: Path, files: dict[str, str]) -> Path:
    for rel, text in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    return root


@pytest.fixture
def make_tree(tmp_path):
    def _make(files: dict[str, str], name: str = "project") -> Path:
        return write_tree(tmp_path / name, files)
    return _make
