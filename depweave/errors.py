"""Exception hierarchy for depweave.

Only :class:`UnknownCheckError` is meant to reach callers. The others are
raised internally, then logged and recorded on the result objects
(``AnalysisResult.skipped``, ``LazyBinding.error``, ``FixOutcome.error``).
"""

from __future__ import annotations


class DepweaveError(Exception):
    """Base class for all depweave errors."""


class LoadError(DepweaveError):
    """A lazy module could not be resolved."""

    def __init__(self, module_path: str, message: str):
        super().__init__(f"{module_path}: {message}")
        self.module_path = module_path


class LoadTimeoutError(LoadError):
    def __init__(self, module_path: str, timeout: float):
        super().__init__(module_path, f"load timed out after {timeout:g}s")
        self.timeout = timeout


class LoadFailureError(LoadError):
    def __init__(self, module_path: str, cause: BaseException):
        super().__init__(module_path, f"{type(cause).__name__}: {cause}")
        self.cause = cause


class ScanReadError(DepweaveError):
    """A source file could not be read while scanning."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"cannot read {path}: {reason}")
        self.path = path
        self.reason = reason


class FixApplicationError(DepweaveError):
    """Rewriting a file during fix application failed."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"cannot rewrite {path}: {reason}")
        self.path = path
        self.reason = reason


class UnknownCheckError(DepweaveError, KeyError):
    """A module or task id was never registered or found."""

    def __init__(self, kind: str, key: str):
        DepweaveError.__init__(self, f"unknown {kind}: {key!r}")
        self.kind = kind
        self.key = key

    def __str__(self) -> str:
        return self.args[0]
