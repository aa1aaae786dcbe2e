"""Data models for the module dependency graph and its cycles."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from pathlib import Path

from depweave.models import FixSuggestion, FixType, ImportReference, Severity, SkippedFile


@dataclass
class ModuleNode:
    path: str  # project-relative POSIX path, unique id
    language: str
    size_bytes: int = 0
    category: str = "other"
    dependencies: set[str] = field(default_factory=set)
    references: list[ImportReference] = field(default_factory=list)


@dataclass
class DependencyEdge:
    """``source`` requires ``target`` at load time."""
    source: str
    target: str
    at_top_level: bool = False
    reference_count: int = 0
    imported_symbols: list[str] = field(default_factory=list)
    binding: str | None = None
    line_number: int = 0

    def to_dict(self) -> dict:
        return {
            "from": self.source,
            "to": self.target,
            "at_top_level": self.at_top_level,
            "reference_count": self.reference_count,
            "imported_symbols": list(self.imported_symbols),
            "line": self.line_number,
        }


@dataclass
class ModuleGraph:
    root: str = ""
    nodes: dict[str, ModuleNode] = field(default_factory=dict)
    edges: dict[tuple[str, str], DependencyEdge] = field(default_factory=dict)
    forward: dict[str, set[str]] = field(default_factory=dict)  # source -> {targets}
    reverse: dict[str, set[str]] = field(default_factory=dict)  # target -> {sources}

    def edge(self, source: str, target: str) -> DependencyEdge | None:
        return self.edges.get((source, target))

    def view(self) -> ModuleGraph:
        """Independent copy for consumers outside the detector."""
        return copy.deepcopy(self)


@dataclass
class CircularChain:
    """A cycle ``[A, B, ..., A]`` in the module graph."""
    modules: list[str]

    @property
    def length(self) -> int:
        return len(self.modules) - 1

    def pairs(self) -> list[tuple[str, str]]:
        return list(zip(self.modules, self.modules[1:]))

    def __contains__(self, module: str) -> bool:
        return module in self.modules


@dataclass
class CycleAnalysis:
    """Severity and remediation for one unordered pair of modules in a cycle."""
    source: str
    target: str
    severity: Severity
    fix: FixSuggestion
    forward: DependencyEdge | None = None  # source -> target
    backward: DependencyEdge | None = None  # target -> source

    def to_dict(self) -> dict:
        return {
            "modules": [self.source, self.target],
            "severity": self.severity.value,
            "fix": self.fix.to_dict(),
            "edges": [e.to_dict() for e in (self.forward, self.backward) if e is not None],
        }


@dataclass
class ChainReport:
    chain: CircularChain
    analyses: list[CycleAnalysis]
    severity: Severity
    fix: FixSuggestion

    @property
    def auto_fixable(self) -> bool:
        return self.fix.type is FixType.LAZY_LOADING

    def to_dict(self) -> dict:
        return {
            "modules": list(self.chain.modules),
            "length": self.chain.length,
            "severity": self.severity.value,
            "fix": self.fix.to_dict(),
            "pairs": [a.to_dict() for a in self.analyses],
        }


@dataclass
class AnalysisResult:
    root: Path
    chains: list[ChainReport] = field(default_factory=list)
    modules_scanned: int = 0
    skipped: list[SkippedFile] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.chains)

    @property
    def auto_fixable(self) -> list[ChainReport]:
        return [c for c in self.chains if c.auto_fixable]

    def severity_counts(self) -> dict[str, int]:
        counts = {s.value: 0 for s in Severity}
        for chain in self.chains:
            counts[chain.severity.value] += 1
        return counts
