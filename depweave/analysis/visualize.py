"""Graph statistics and Mermaid rendering of the module graph."""

from __future__ import annotations

import re

from depweave.analysis.graph_models import ChainReport, ModuleGraph


def _circular_sets(chains: list[ChainReport]) -> tuple[set[str], set[tuple[str, str]]]:
    modules: set[str] = set()
    edges: set[tuple[str, str]] = set()
    for report in chains:
        modules.update(report.chain.modules)
        edges.update(report.chain.pairs())
    return modules, edges


def graph_stats(graph: ModuleGraph, chains: list[ChainReport]) -> dict:
    """Summary numbers plus per-category clusters.

    Returns: {modules, edges, max_dependencies, max_dependents,
    modules_in_cycles, circular_edges, clusters}
    """
    circular_modules, circular_edges = _circular_sets(chains)

    clusters: dict[str, list[str]] = {}
    for module_id, node in sorted(graph.nodes.items()):
        clusters.setdefault(node.category, []).append(module_id)

    return {
        "modules": len(graph.nodes),
        "edges": len(graph.edges),
        "max_dependencies": max((len(t) for t in graph.forward.values()), default=0),
        "max_dependents": max((len(s) for s in graph.reverse.values()), default=0),
        "modules_in_cycles": len(circular_modules),
        "circular_edges": len(circular_edges),
        "clusters": [
            {"id": category, "modules": modules}
            for category, modules in sorted(clusters.items())
        ],
    }


def generate_mermaid(graph: ModuleGraph, chains: list[ChainReport]) -> str:
    """Render the graph as a Mermaid ``graph TD`` diagram; cycles in red."""
    circular_modules, circular_edges = _circular_sets(chains)
    lines = ["graph TD"]
    styles: list[str] = []
    ids: dict[str, str] = {}

    for index, module_id in enumerate(sorted(graph.nodes)):
        node_id = f"N{index}"
        ids[module_id] = node_id
        label = re.sub(r"[^\w./-]", "_", module_id)
        lines.append(f'    {node_id}["{label}"]')
        if module_id in circular_modules:
            styles.append(f"    style {node_id} fill:#ffebee,stroke:#f44336,stroke-width:2px")

    for source, target in sorted(graph.edges):
        arrow = "-->|circular|" if (source, target) in circular_edges else "-->"
        lines.append(f"    {ids[source]} {arrow} {ids[target]}")

    return "\n".join(lines + styles) + "\n"
