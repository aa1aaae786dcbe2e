"""FastAPI routes for circular-dependency scans, fixes and reports."""

from __future__ import annotations

import asyncio
from pathlib import Path

from fastapi import APIRouter, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from depweave.pipeline import run_scan
from depweave.web.state import ScanSession, state

router = APIRouter(prefix="/api/deps")


# --- Request models ---

class ScanRequest(BaseModel):
    path: str

class FixRequest(BaseModel):
    scan_id: str
    apply: bool = False

class AnalyzeModuleRequest(BaseModel):
    path: str
    size_bytes: int | None = None


def _validate_dir(p: str) -> Path:
    resolved = Path(p).expanduser().resolve()
    if not resolved.exists():
        raise HTTPException(404, f"Path not found: {resolved}")
    if not resolved.is_dir():
        raise HTTPException(400, "Path must be a directory")
    return resolved


def _get_scan(scan_id: str) -> ScanSession:
    session = state.get_scan(scan_id)
    if session is None:
        raise HTTPException(404, "Scan not found")
    return session


# --- Endpoints ---

@router.post("/scan")
async def scan_directory(req: ScanRequest):
    source = _validate_dir(req.path)
    detector, result = await asyncio.to_thread(run_scan, source, state.config.detector)
    session = ScanSession(detector=detector, result=result, source_dir=str(source))
    state.add_scan(session)
    return {
        **session.summary(),
        "chains": [c.to_dict() for c in result.chains],
    }


@router.get("/scan/{scan_id}")
async def get_scan(scan_id: str):
    session = _get_scan(scan_id)
    return {
        **session.summary(),
        "chains": [c.to_dict() for c in session.result.chains],
        "recommendations": session.detector.generate_recommendations(),
    }


@router.get("/scan/{scan_id}/report")
async def get_report(scan_id: str):
    session = _get_scan(scan_id)
    return await asyncio.to_thread(session.detector.generate_report)


@router.get("/scan/{scan_id}/graph", response_class=PlainTextResponse)
async def get_graph(scan_id: str):
    session = _get_scan(scan_id)
    return session.detector.generate_mermaid()


@router.delete("/scan/{scan_id}")
async def delete_scan(scan_id: str):
    if not state.delete_scan(scan_id):
        raise HTTPException(404, "Scan not found")
    return {"deleted": scan_id}


@router.post("/fix")
async def fix_scan(req: FixRequest):
    session = _get_scan(req.scan_id)
    outcomes = await session.detector.apply_fixes(dry_run=not req.apply)
    return {
        "scan_id": session.id,
        "applied": req.apply,
        "outcomes": [o.to_dict() for o in outcomes],
    }


@router.post("/analyze-module")
async def analyze_module(req: AnalyzeModuleRequest):
    decision = state.loader.analyze_module(req.path, req.size_bytes)
    return {
        "path": req.path,
        "should_lazy_load": decision.should_lazy_load,
        "reason": decision.reason,
    }
