"""In-memory state for the HTTP API: no database required."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime

from depweave.analysis import AnalysisResult, CircularDependencyDetector
from depweave.config import DepweaveConfig, load_config
from depweave.loader import LoaderRegistry


@dataclass
class ScanSession:
    detector: CircularDependencyDetector
    result: AnalysisResult
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    source_dir: str = ""
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def summary(self) -> dict:
        return {
            "scan_id": self.id,
            "source_dir": self.source_dir,
            "timestamp": self.timestamp,
            "modules_scanned": self.result.modules_scanned,
            "total": self.result.total,
            "auto_fixable": len(self.result.auto_fixable),
            "severity": self.result.severity_counts(),
            "files_skipped": len(self.result.skipped),
        }


class AppState:
    """Singleton in-memory state shared by all API routes."""

    def __init__(self, config: DepweaveConfig | None = None):
        self.config = config or load_config()
        self.scans: dict[str, ScanSession] = {}
        # Used only for side-effect free module decisions
        self.loader = LoaderRegistry(config=self.config.loader)

    def add_scan(self, session: ScanSession) -> None:
        self.scans[session.id] = session

    def get_scan(self, scan_id: str) -> ScanSession | None:
        return self.scans.get(scan_id)

    def delete_scan(self, scan_id: str) -> bool:
        return self.scans.pop(scan_id, None) is not None


# Module-level singleton; the router imports this
state = AppState()
