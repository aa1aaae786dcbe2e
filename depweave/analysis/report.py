"""Recommendations and the serialisable circular-dependency report."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

from depweave.config import DetectorConfig
from depweave.analysis.graph_models import AnalysisResult, ModuleGraph
from depweave.analysis.visualize import graph_stats


def build_recommendations(result: AnalysisResult | None, config: DetectorConfig) -> list[dict]:
    """Prioritised guidance derived from the severity counts of a scan."""
    if result is None or result.total == 0:
        return [{
            "priority": "info",
            "message": "No circular dependencies found.",
            "action": "Keep running the scan in CI to catch new cycles early.",
        }]

    counts = result.severity_counts()
    auto_fixable = len(result.auto_fixable)
    recommendations: list[dict] = []

    if counts["critical"]:
        recommendations.append({
            "priority": "critical",
            "message": (
                f"{counts['critical']} cycle(s) load each other during initial evaluation."
            ),
            "action": "Review the architecture of these modules now; no automatic fix is safe.",
        })
    if counts["high"] >= config.many_high_threshold:
        recommendations.append({
            "priority": "high",
            "message": f"{counts['high']} high-severity cycle(s) with heavy cross references.",
            "action": "Extract the shared interfaces into their own modules.",
        })
    if auto_fixable:
        recommendations.append({
            "priority": "medium",
            "message": f"{auto_fixable} cycle(s) can be broken with lazy loading.",
            "action": "Run `depweave fix --apply` to rewrite them.",
        })
    if not recommendations:
        recommendations.append({
            "priority": "low",
            "message": f"{result.total} cycle(s) of medium or low severity.",
            "action": "Monitor them; break them up when the modules are next touched.",
        })
    return recommendations


def build_report(
    result: AnalysisResult | None,
    graph: ModuleGraph | None,
    recommendations: list[dict],
) -> dict:
    summary = {
        "total": 0,
        "auto_fixable": 0,
        "critical": 0,
        "high": 0,
        "medium": 0,
        "low": 0,
        "modules_scanned": 0,
        "files_skipped": 0,
    }
    chains: list[dict] = []
    skipped: list[dict] = []
    root = ""

    if result is not None:
        root = str(result.root)
        summary.update(result.severity_counts())
        summary["total"] = result.total
        summary["auto_fixable"] = len(result.auto_fixable)
        summary["modules_scanned"] = result.modules_scanned
        summary["files_skipped"] = len(result.skipped)
        chains = [c.to_dict() for c in result.chains]
        skipped = [{"path": s.path, "reason": s.reason} for s in result.skipped]

    return {
        "version": "1.0",
        "generated": datetime.now().isoformat(),
        "root": root,
        "summary": summary,
        "chains": chains,
        "skipped": skipped,
        "stats": graph_stats(graph, result.chains) if graph is not None and result else {},
        "recommendations": recommendations,
    }


def write_report(report: dict, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(report, indent=2) + "\n", encoding="utf-8")
    return path
