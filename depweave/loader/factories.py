"""Convenience constructors for registering lazy modules."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from depweave.models import Priority
from depweave.loader.proxy import LazyProxy
from depweave.loader.registry import LoaderRegistry

logger = logging.getLogger(__name__)


def lazy(registry: LoaderRegistry, path: str, **options: Any) -> LazyProxy:
    return registry.register_lazy(path, **options)


def lazy_category(
    registry: LoaderRegistry,
    root: Path | str,
    category: str,
    *,
    priority: Priority = Priority.LOW,
) -> dict[str, LazyProxy]:
    """Register every module under each ``category`` directory below ``root``.

    Files larger than the loader's size threshold are deferred (counted in
    the deferred totals); the rest are registered at ``priority``. Returns
    ``{module stem: proxy}``; a stem seen twice keeps the first path.
    """
    root = Path(root)
    proxies: dict[str, LazyProxy] = {}
    threshold = registry.config.size_threshold_bytes

    for directory in sorted(p for p in root.rglob(category) if p.is_dir()):
        for file_path in sorted(directory.glob("*.py")):
            if file_path.stem == "__init__" or file_path.stem in proxies:
                continue
            size = file_path.stat().st_size
            if size > threshold:
                proxies[file_path.stem] = registry.defer_module(str(file_path), size)
            else:
                proxies[file_path.stem] = registry.register_lazy(str(file_path), priority=priority)

    logger.debug("Registered %d lazy %s module(s) under %s", len(proxies), category, root)
    return proxies


def lazy_specialists(registry: LoaderRegistry, root: Path | str) -> dict[str, LazyProxy]:
    return lazy_category(registry, root, "specialists", priority=Priority.LOW)


def lazy_departments(registry: LoaderRegistry, root: Path | str) -> dict[str, LazyProxy]:
    return lazy_category(registry, root, "departments", priority=Priority.NORMAL)
