"""Data models shared by the scanner, the cycle detector and the loader."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field


class Language(enum.Enum):
    PYTHON = "python"
    JAVASCRIPT = "javascript"
    TYPESCRIPT = "typescript"


class ReferenceKind(enum.Enum):
    REQUIRE = "require"
    IMPORT = "import"
    DYNAMIC = "dynamic"
    PYTHON = "python"


class Severity(enum.Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Higher is worse."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


class FixType(enum.Enum):
    LAZY_LOADING = "lazy-loading"
    INTERFACE_EXTRACTION = "interface-extraction"
    DEPENDENCY_INVERSION = "dependency-inversion"
    NONE = "none"


class FixStatus(enum.Enum):
    PLANNED = "planned"
    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"


class Priority(enum.Enum):
    CRITICAL = "critical"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


class BindingState(enum.Enum):
    REGISTERED = "registered"
    GATED = "gated"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


@dataclass
class ImportReference:
    """One require/import statement found by a scanner."""
    specifier: str
    line_number: int
    kind: ReferenceKind
    target: str | None = None  # module id inside the scanned tree
    indented: bool = False
    binding: str | None = None  # name bound to the whole module
    symbols: dict[str, str] = field(default_factory=dict)  # local -> imported
    statement: str = ""

    @property
    def end_line(self) -> int:
        return self.line_number + self.statement.count("\n")


@dataclass
class SkippedFile:
    path: str
    reason: str


@dataclass
class FixSuggestion:
    type: FixType
    file: str | None = None  # module to rewrite
    target: str | None = None  # dependency to defer
    instructions: str = ""

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "file": self.file,
            "target": self.target,
            "instructions": self.instructions,
        }


@dataclass
class FixOutcome:
    file: str
    target: str
    status: FixStatus
    changes: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "file": self.file,
            "target": self.target,
            "status": self.status.value,
            "changes": list(self.changes),
            "notes": list(self.notes),
            "error": self.error,
        }


@dataclass
class ModuleDecision:
    should_lazy_load: bool
    reason: str
