"""Module resolvers: the host-supplied collaborator that actually loads code."""

from __future__ import annotations

import asyncio
import hashlib
import importlib
import importlib.util
import sys
from pathlib import Path
from types import ModuleType
from typing import Any, Protocol


class ModuleResolver(Protocol):
    async def load_module(self, path: str, *, lazy: bool = True) -> Any:
        """Return the module's exported surface or raise."""


class ImportlibResolver:
    """Import dotted module names or ``.py`` files in a worker thread."""

    async def load_module(self, path: str, *, lazy: bool = True) -> ModuleType:
        return await asyncio.to_thread(self._import, path)

    @staticmethod
    def _import(path: str) -> ModuleType:
        if not path.endswith(".py") and "/" not in path and "\\" not in path:
            return importlib.import_module(path)

        file_path = Path(path).resolve()
        digest = hashlib.md5(str(file_path).encode("utf-8")).hexdigest()[:8]
        name = f"depweave_lazy_{file_path.stem}_{digest}"
        if name in sys.modules:
            return sys.modules[name]

        spec = importlib.util.spec_from_file_location(name, file_path)
        if spec is None or spec.loader is None:
            raise ImportError(f"Cannot load module from {file_path}")
        module = importlib.util.module_from_spec(spec)
        sys.modules[name] = module
        try:
            spec.loader.exec_module(module)
        except BaseException:
            sys.modules.pop(name, None)
            raise
        return module
