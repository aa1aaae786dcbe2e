"""Module graph builder: scans a source tree into nodes and edges, detects cycles."""

from __future__ import annotations

import itertools
import logging
from pathlib import Path, PurePosixPath
from typing import Iterable, Mapping

import networkx as nx

from depweave.config import DetectorConfig
from depweave.errors import ScanReadError
from depweave.models import ImportReference, Language, ReferenceKind, SkippedFile
from depweave.scanner import get_scanners, read_source
from depweave.scanner.base import count_token, dependency_token
from depweave.analysis.graph_models import DependencyEdge, ModuleGraph, ModuleNode

logger = logging.getLogger(__name__)


class ModuleGraphBuilder:
    """Build a module dependency graph from the files under a root directory."""

    def __init__(self, config: DetectorConfig | None = None):
        self.config = config or DetectorConfig()

    def build(self, root: Path) -> tuple[ModuleGraph, list[SkippedFile]]:
        root = Path(root).resolve()
        graph = ModuleGraph(root=str(root))
        skipped: list[SkippedFile] = []

        if not root.is_dir():
            logger.warning("Scan root %s is not a directory", root)
            skipped.append(SkippedFile(path=str(root), reason="not a directory"))
            return graph, skipped

        # Step 1: nodes, one per readable source file
        sources: dict[str, str] = {}
        for scanner in get_scanners(root, self.config.skip_dirs):
            for path in scanner.iter_files():
                module_id = scanner.module_id(path)
                try:
                    source = read_source(path)
                except ScanReadError as e:
                    logger.warning("Skipping %s: %s", module_id, e.reason)
                    skipped.append(SkippedFile(path=module_id, reason=e.reason))
                    continue

                language = scanner.language
                if path.suffix in (".ts", ".tsx"):
                    language = Language.TYPESCRIPT
                graph.nodes[module_id] = ModuleNode(
                    path=module_id,
                    language=language.value,
                    size_bytes=len(source.encode("utf-8")),
                    category=self._category(module_id),
                    references=scanner.extract_references(source, path),
                )
                graph.forward[module_id] = set()
                graph.reverse.setdefault(module_id, set())
                sources[module_id] = source

        # Step 2: edges, grouped by resolved target
        for module_id, node in graph.nodes.items():
            by_target: dict[str, list[ImportReference]] = {}
            for ref in node.references:
                if ref.target and ref.target != module_id and ref.target in graph.nodes:
                    by_target.setdefault(ref.target, []).append(ref)
            for target, refs in sorted(by_target.items()):
                self._add_edge(graph, module_id, target, refs, sources[module_id])

        logger.debug(
            "Built module graph for %s: %d modules, %d edges",
            root, len(graph.nodes), len(graph.edges),
        )
        return graph, skipped

    def _add_edge(
        self,
        graph: ModuleGraph,
        source_id: str,
        target_id: str,
        refs: list[ImportReference],
        source_text: str,
    ) -> None:
        at_top_level = any(
            not ref.indented
            and ref.kind is not ReferenceKind.DYNAMIC
            and ref.line_number <= self.config.top_level_lines
            for ref in refs
        )
        reference_count = max(
            count_token(source_text, dependency_token(target_id)), len(refs),
        )
        edge = DependencyEdge(
            source=source_id,
            target=target_id,
            at_top_level=at_top_level,
            reference_count=reference_count,
            imported_symbols=sorted({s for ref in refs for s in ref.symbols.values()}),
            binding=next((ref.binding for ref in refs if ref.binding), None),
            line_number=min(ref.line_number for ref in refs),
        )
        graph.edges[(source_id, target_id)] = edge
        graph.nodes[source_id].dependencies.add(target_id)
        graph.forward[source_id].add(target_id)
        graph.reverse.setdefault(target_id, set()).add(source_id)

    def _category(self, module_id: str) -> str:
        parts = PurePosixPath(module_id).parts[:-1]
        for category in self.config.categories:
            if category in parts:
                return category
        return "other"


def find_cycles(
    adjacency: Mapping[str, Iterable[str]],
    limit: int | None = None,
) -> list[list[str]]:
    """Enumerate elementary cycles as closed chains ``[A, B, ..., A]``.

    Each cycle is rotated so its smallest id comes first, which makes the
    output independent of insertion order. Self-references are ignored.
    """
    graph = nx.DiGraph()
    for source in sorted(adjacency):
        graph.add_node(source)
        for target in sorted(adjacency[source]):
            if target != source:
                graph.add_edge(source, target)

    found = nx.simple_cycles(graph)
    if limit:
        found = itertools.islice(found, limit)

    seen: set[tuple[str, ...]] = set()
    cycles: list[list[str]] = []
    for cycle in found:
        start = cycle.index(min(cycle))
        ordered = cycle[start:] + cycle[:start]
        key = tuple(ordered)
        if key in seen:
            continue
        seen.add(key)
        cycles.append(ordered + [ordered[0]])

    cycles.sort(key=lambda c: (len(c), c))
    return cycles
