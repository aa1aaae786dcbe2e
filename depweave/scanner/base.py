"""Abstract base scanner."""

from __future__ import annotations

import abc
import fnmatch
import re
from pathlib import Path
from typing import Iterator

from depweave.config import DEFAULT_SKIP_DIRS
from depweave.errors import ScanReadError
from depweave.models import ImportReference, Language


def read_source(file_path: Path) -> str:
    """Read a source file as UTF-8, raising ScanReadError on failure."""
    try:
        return file_path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ScanReadError(str(file_path), f"not valid UTF-8 ({e.reason})") from e
    except OSError as e:
        raise ScanReadError(str(file_path), e.strerror or str(e)) from e


def line_of(source: str, offset: int) -> int:
    return source.count("\n", 0, offset) + 1


def is_indented(source: str, offset: int) -> bool:
    """True when the line holding ``offset`` does not start at column 0."""
    line_start = source.rfind("\n", 0, offset) + 1
    return source[line_start:line_start + 1] in (" ", "\t")


def dependency_token(module_id: str) -> str:
    """Name a module is usually referred to by: its stem, or its package for index files."""
    path = Path(module_id)
    if path.stem in ("index", "__init__") and path.parent.name:
        return path.parent.name
    return path.stem


def count_token(source: str, token: str) -> int:
    if not token:
        return 0
    return len(re.findall(rf"(?<![\w$]){re.escape(token)}(?![\w$])", source))


class BaseScanner(abc.ABC):
    """Base class for language-specific reference scanners.

    Scanners are bound to a root directory: resolved targets are module ids
    (POSIX paths relative to the root) of files that exist under it.
    """

    language: Language
    extensions: tuple[str, ...]

    def __init__(self, root: Path, skip_dirs: list[str] | None = None):
        self.root = Path(root).resolve()
        self.skip_dirs = skip_dirs if skip_dirs is not None else list(DEFAULT_SKIP_DIRS)

    @abc.abstractmethod
    def extract_references(self, source: str, file_path: Path) -> list[ImportReference]:
        """Find every reference in ``source`` and resolve it against the root."""

    def handles(self, path: Path) -> bool:
        return path.suffix in self.extensions

    def scan_file(self, file_path: Path) -> list[ImportReference]:
        source = read_source(file_path)
        return self.extract_references(source, file_path)

    def iter_files(self) -> Iterator[Path]:
        """Recursively yield the files this scanner understands."""
        for path in sorted(self.root.rglob("*")):
            if path.is_dir() or not self.handles(path):
                continue
            if self._should_skip(path):
                continue
            yield path

    def module_id(self, path: Path) -> str:
        return path.resolve().relative_to(self.root).as_posix()

    def _existing(self, candidate: Path) -> str | None:
        try:
            resolved = candidate.resolve()
        except OSError:
            return None
        if not resolved.is_file():
            return None
        try:
            return resolved.relative_to(self.root).as_posix()
        except ValueError:
            return None

    def _should_skip(self, path: Path) -> bool:
        for part in path.relative_to(self.root).parts[:-1]:
            for pattern in self.skip_dirs:
                if fnmatch.fnmatch(part, pattern):
                    return True
        return False
