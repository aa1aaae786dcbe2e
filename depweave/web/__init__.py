"""HTTP API for dependency scans (requires the ``web`` extra)."""

from depweave.web.app import create_app

__all__ = ["create_app"]
