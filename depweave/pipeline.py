"""Scan -> analyse -> fix/report pipeline shared by the CLI and the web API."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Callable

from depweave.analysis import AnalysisResult, CircularDependencyDetector
from depweave.config import DetectorConfig
from depweave.models import FixOutcome


ProgressCallback = Callable[[str, int, int], None]


def run_scan(
    source_dir: Path,
    config: DetectorConfig | None = None,
    progress: ProgressCallback | None = None,
) -> tuple[CircularDependencyDetector, AnalysisResult]:
    """Stage 1: build the module graph and analyse every cycle."""
    detector = CircularDependencyDetector(config)
    if progress:
        progress("Scanning", 0, 1)
    result = detector.scan(source_dir)
    if progress:
        progress("Scanning", 1, 1)
    return detector, result


def run_fix(
    detector: CircularDependencyDetector,
    apply: bool = False,
    progress: ProgressCallback | None = None,
) -> list[FixOutcome]:
    """Stage 2: plan (or apply) the lazy-loading rewrites from the last scan."""
    stage = "Applying fixes" if apply else "Planning fixes"
    if progress:
        progress(stage, 0, 1)
    outcomes = asyncio.run(detector.apply_fixes(dry_run=not apply))
    if progress:
        progress(stage, 1, 1)
    return outcomes


def run_report(
    detector: CircularDependencyDetector,
    output: Path | None = None,
    progress: ProgressCallback | None = None,
) -> Path:
    """Stage 3: write the JSON report, next to the scanned tree by default."""
    if progress:
        progress("Writing report", 0, 1)
    path = detector.write_report(output)
    if progress:
        progress("Writing report", 1, 1)
    return path
