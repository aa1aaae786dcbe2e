"""Severity and fix selection for a pair of modules that depend on each other.

These rules are heuristics over text statistics, not proofs. All thresholds
come from :class:`~depweave.config.DetectorConfig`.
"""

from __future__ import annotations

from depweave.config import DetectorConfig
from depweave.models import FixSuggestion, FixType, Severity
from depweave.analysis.graph_models import CycleAnalysis, DependencyEdge, ModuleGraph


def classify_severity(
    forward: DependencyEdge | None,
    backward: DependencyEdge | None,
    config: DetectorConfig,
) -> Severity:
    present = [e for e in (forward, backward) if e is not None]

    if forward and backward and forward.at_top_level and backward.at_top_level:
        return Severity.CRITICAL
    if any(e.reference_count > config.high_reference_threshold for e in present):
        return Severity.HIGH
    if any(not e.at_top_level for e in present):
        return Severity.LOW
    return Severity.MEDIUM


def select_fix(
    forward: DependencyEdge | None,
    backward: DependencyEdge | None,
    config: DetectorConfig,
) -> FixSuggestion:
    present = [e for e in (forward, backward) if e is not None]
    if not present:
        return FixSuggestion(FixType.NONE, instructions="No references between these modules.")

    # A side already deferred means the remaining eager side can be deferred too
    if any(not e.at_top_level for e in present):
        eager = [e for e in present if e.at_top_level]
        edge = eager[0] if eager else present[0]
        return FixSuggestion(
            FixType.LAZY_LOADING,
            file=edge.source,
            target=edge.target,
            instructions=(
                f"Defer '{edge.target}' in '{edge.source}': replace the top-level "
                f"import with an accessor that loads it on first use."
            ),
        )

    if all(
        e.binding is None
        and e.imported_symbols
        and len(e.imported_symbols) <= config.max_interface_symbols
        for e in present
    ):
        edge = present[0]
        symbols = sorted({s for e in present for s in e.imported_symbols})
        return FixSuggestion(
            FixType.INTERFACE_EXTRACTION,
            file=edge.source,
            target=edge.target,
            instructions=(
                f"Move {', '.join(symbols)} into a separate interface module that both "
                f"'{edge.source}' and '{edge.target}' import instead of each other."
            ),
        )

    counts = sorted(present, key=lambda e: e.reference_count)
    light = counts[0]
    other_count = counts[-1].reference_count if len(counts) > 1 else 0
    if abs(other_count - light.reference_count) > config.inversion_count_delta:
        return FixSuggestion(
            FixType.DEPENDENCY_INVERSION,
            file=light.source,
            target=light.target,
            instructions=(
                f"'{light.source}' uses '{light.target}' far less than the reverse; pass "
                f"the needed behaviour in as a parameter or callback instead of importing it."
            ),
        )

    return FixSuggestion(
        FixType.NONE,
        instructions=(
            "Both modules need each other during initial evaluation; "
            "split the shared state out by hand."
        ),
    )


def analyze_pair(
    graph: ModuleGraph,
    source: str,
    target: str,
    config: DetectorConfig,
) -> CycleAnalysis:
    forward = graph.edge(source, target)
    backward = graph.edge(target, source)
    return CycleAnalysis(
        source=source,
        target=target,
        severity=classify_severity(forward, backward, config),
        fix=select_fix(forward, backward, config),
        forward=forward,
        backward=backward,
    )
