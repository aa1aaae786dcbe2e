"""FastAPI application factory."""

from __future__ import annotations

from fastapi import FastAPI

from depweave.web.api import router


def create_app() -> FastAPI:
    app = FastAPI(title="depweave", version="0.1.0")
    app.include_router(router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app
