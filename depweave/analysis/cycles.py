"""Circular dependency detector: scan, analyse chains, recommend and apply fixes."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from depweave.config import DetectorConfig
from depweave.errors import FixApplicationError, ScanReadError, UnknownCheckError
from depweave.models import FixOutcome, FixStatus, FixSuggestion, FixType, Severity
from depweave.scanner import get_scanners, read_source, scanner_for
from depweave.analysis.dependency_graph import ModuleGraphBuilder, find_cycles
from depweave.analysis.fixes import rewrite_lazy_imports
from depweave.analysis.graph_models import (
    AnalysisResult,
    ChainReport,
    CircularChain,
    CycleAnalysis,
    ModuleGraph,
)
from depweave.analysis.heuristics import analyze_pair
from depweave.analysis.report import build_recommendations, build_report, write_report
from depweave.analysis.visualize import generate_mermaid

logger = logging.getLogger(__name__)

# Preference when a chain has several fixable pairs
_FIX_PREFERENCE = [
    FixType.LAZY_LOADING,
    FixType.INTERFACE_EXTRACTION,
    FixType.DEPENDENCY_INVERSION,
]


class CircularDependencyDetector:
    """Find import cycles in a source tree and suggest how to break them.

    Each :meth:`scan` rebuilds the graph from scratch. Pair analyses are
    cached by the unordered module pair, so a pair shared by several chains
    is analysed once and the same :class:`CycleAnalysis` is reused.
    """

    def __init__(self, config: DetectorConfig | None = None):
        self.config = config or DetectorConfig()
        self._builder = ModuleGraphBuilder(self.config)
        self._graph: ModuleGraph | None = None
        self._result: AnalysisResult | None = None
        self._analyses: dict[frozenset[str], CycleAnalysis] = {}

    @property
    def graph(self) -> ModuleGraph | None:
        """A copy of the graph from the last scan."""
        return self._graph.view() if self._graph is not None else None

    @property
    def result(self) -> AnalysisResult | None:
        return self._result

    # ── Scanning ────────────────────────────────────────────

    def scan(self, root: Path | str) -> AnalysisResult:
        root = Path(root).resolve()
        graph, skipped = self._builder.build(root)
        self._graph = graph
        self._analyses = {}

        chains = [
            CircularChain(modules)
            for modules in find_cycles(graph.forward, limit=self.config.max_cycles)
        ]
        reports = [self._chain_report(chain) for chain in chains]

        self._result = AnalysisResult(
            root=root,
            chains=reports,
            modules_scanned=len(graph.nodes),
            skipped=skipped,
        )
        logger.info(
            "Scanned %d module(s) under %s: %d cycle(s), %d auto-fixable",
            len(graph.nodes), root, self._result.total, len(self._result.auto_fixable),
        )
        return self._result

    def analyze_chain(self, chain: CircularChain | list[str]) -> list[CycleAnalysis]:
        """Analyse every adjacent pair of a chain, reusing cached pair analyses."""
        modules = chain.modules if isinstance(chain, CircularChain) else list(chain)
        graph = self._graph or ModuleGraph()
        analyses: list[CycleAnalysis] = []

        for source, target in zip(modules, modules[1:]):
            for module in (source, target):
                if module not in graph.nodes:
                    raise UnknownCheckError("module", module)
            key = frozenset((source, target))
            analysis = self._analyses.get(key)
            if analysis is None:
                analysis = analyze_pair(graph, source, target, self.config)
                self._analyses[key] = analysis
            analyses.append(analysis)

        return analyses

    def cycles_for(self, module: Path | str) -> list[ChainReport]:
        """Chains passing through ``module`` (absolute or root-relative path)."""
        module_id = self._module_id(module)
        if self._graph is None or self._result is None or module_id not in self._graph.nodes:
            raise UnknownCheckError("module", str(module))
        return [c for c in self._result.chains if module_id in c.chain]

    def _chain_report(self, chain: CircularChain) -> ChainReport:
        analyses = self.analyze_chain(chain)
        severity = max((a.severity for a in analyses), key=lambda s: s.rank, default=Severity.LOW)

        fix = None
        for fix_type in _FIX_PREFERENCE:
            fix = next((a.fix for a in analyses if a.fix.type is fix_type), None)
            if fix:
                break
        if fix is None:
            fix = next(
                (a.fix for a in analyses),
                FixSuggestion(FixType.NONE),
            )
        return ChainReport(chain=chain, analyses=analyses, severity=severity, fix=fix)

    def _module_id(self, module: Path | str) -> str:
        path = Path(module)
        if path.is_absolute() and self._result is not None:
            try:
                return path.resolve().relative_to(self._result.root).as_posix()
            except ValueError:
                return path.as_posix()
        return path.as_posix()

    # ── Recommendations and reports ─────────────────────────

    def generate_recommendations(self) -> list[dict]:
        return build_recommendations(self._result, self.config)

    def generate_report(self) -> dict:
        return build_report(self._result, self._graph, self.generate_recommendations())

    def write_report(self, path: Path | str | None = None) -> Path:
        if path is None:
            base = self._result.root if self._result else Path.cwd()
            path = Path(base) / self.config.report_file
        return write_report(self.generate_report(), Path(path))

    def generate_mermaid(self) -> str:
        if self._graph is None or self._result is None:
            return "graph TD\n"
        return generate_mermaid(self._graph, self._result.chains)

    # ── Fix application ─────────────────────────────────────

    def lazy_fixes(self) -> list[FixSuggestion]:
        """Unique lazy-loading fixes from the last scan, ordered by file."""
        fixes: dict[tuple[str, str], FixSuggestion] = {}
        for analysis in self._analyses.values():
            fix = analysis.fix
            if fix.type is FixType.LAZY_LOADING and fix.file and fix.target:
                fixes.setdefault((fix.file, fix.target), fix)
        return [fixes[key] for key in sorted(fixes)]

    async def apply_fixes(self, dry_run: bool = True) -> list[FixOutcome]:
        """Rewrite lazy-loading candidates; with ``dry_run`` only report the plan.

        A failure on one file is recorded in its outcome and does not stop
        the remaining fixes.
        """
        if self._result is None:
            return []
        scanners = get_scanners(self._result.root, self.config.skip_dirs)
        outcomes = []
        for fix in self.lazy_fixes():
            outcomes.append(await self._apply_fix(fix, scanners, dry_run))
        return outcomes

    async def _apply_fix(self, fix: FixSuggestion, scanners: list, dry_run: bool) -> FixOutcome:
        if self._result is None or not fix.file or not fix.target:
            return FixOutcome(
                fix.file or "", fix.target or "", FixStatus.SKIPPED, notes=["nothing to rewrite"],
            )
        path = self._result.root / fix.file
        scanner = scanner_for(path, scanners)
        if scanner is None:
            return FixOutcome(fix.file, fix.target, FixStatus.SKIPPED, notes=["unsupported file type"])

        try:
            source = await asyncio.to_thread(read_source, path)
        except ScanReadError as e:
            error = FixApplicationError(fix.file, e.reason)
            logger.error("%s", error)
            return FixOutcome(fix.file, fix.target, FixStatus.FAILED, error=str(error))

        rewrite = rewrite_lazy_imports(source, path, fix.target, scanner)
        if not rewrite.changes:
            return FixOutcome(fix.file, fix.target, FixStatus.SKIPPED, notes=rewrite.skipped)
        if dry_run:
            return FixOutcome(
                fix.file, fix.target, FixStatus.PLANNED,
                changes=rewrite.changes, notes=rewrite.skipped,
            )

        try:
            await asyncio.to_thread(path.write_text, rewrite.source, encoding="utf-8")
        except OSError as e:
            error = FixApplicationError(fix.file, e.strerror or str(e))
            logger.error("%s", error)
            return FixOutcome(
                fix.file, fix.target, FixStatus.FAILED,
                changes=rewrite.changes, error=str(error),
            )

        logger.info("Deferred %s in %s (%d change(s))", fix.target, fix.file, len(rewrite.changes))
        return FixOutcome(
            fix.file, fix.target, FixStatus.APPLIED,
            changes=rewrite.changes, notes=rewrite.skipped,
        )
