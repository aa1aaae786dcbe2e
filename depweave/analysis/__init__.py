"""Module graph analysis: cycle detection, fix suggestions and reports."""

from __future__ import annotations

from depweave.analysis.cycles import CircularDependencyDetector
from depweave.analysis.dependency_graph import ModuleGraphBuilder, find_cycles
from depweave.analysis.graph_models import (
    AnalysisResult,
    ChainReport,
    CircularChain,
    CycleAnalysis,
    DependencyEdge,
    ModuleGraph,
    ModuleNode,
)

__all__ = [
    "AnalysisResult",
    "ChainReport",
    "CircularChain",
    "CircularDependencyDetector",
    "CycleAnalysis",
    "DependencyEdge",
    "ModuleGraph",
    "ModuleGraphBuilder",
    "ModuleNode",
    "find_cycles",
]
