"""Scanner registry and dispatcher."""

from __future__ import annotations

from pathlib import Path

from depweave.scanner.base import BaseScanner, read_source
from depweave.scanner.js_scanner import JsScanner
from depweave.scanner.python_scanner import PythonScanner


def get_scanners(root: Path, skip_dirs: list[str] | None = None) -> list[BaseScanner]:
    return [
        PythonScanner(root, skip_dirs=skip_dirs),
        JsScanner(root, skip_dirs=skip_dirs),
    ]


def scanner_for(path: Path, scanners: list[BaseScanner]) -> BaseScanner | None:
    for scanner in scanners:
        if scanner.handles(path):
            return scanner
    return None


__all__ = [
    "BaseScanner",
    "JsScanner",
    "PythonScanner",
    "get_scanners",
    "read_source",
    "scanner_for",
]
