"""Lazy module registry: deferred loading, preloading and idle warmup.

All mutation happens on the event loop thread, so the ``task`` check-then-set
in :meth:`LoaderRegistry._start` cannot interleave and every binding gets at
most one in-flight load.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import statistics
import time
from collections import Counter
from pathlib import Path, PurePath
from typing import Any, Callable, Iterable

from depweave.config import LoaderConfig
from depweave.errors import LoadError, LoadFailureError, LoadTimeoutError, UnknownCheckError
from depweave.models import BindingState, ModuleDecision, Priority
from depweave.loader.binding import LazyBinding
from depweave.loader.proxy import LazyProxy, read_attribute
from depweave.loader.resolver import ImportlibResolver, ModuleResolver

logger = logging.getLogger(__name__)


def _consume_result(future: asyncio.Future) -> None:
    # Abandoned loads may still fail later; retrieve the exception so it is not reported
    if not future.cancelled():
        future.exception()


class LoaderRegistry:
    """Owns every lazy binding and the loaded-module cache.

    Args:
        resolver: Loads a module path; defaults to :class:`ImportlibResolver`.
        config: Timeouts, size threshold, lazy categories and warmup batching.
    """

    def __init__(
        self,
        resolver: ModuleResolver | None = None,
        config: LoaderConfig | None = None,
    ):
        self.resolver = resolver or ImportlibResolver()
        self.config = config or LoaderConfig()
        self._bindings: dict[str, LazyBinding] = {}
        self._pending_preloads: list[str] = []
        self._load_times: list[float] = []
        self._time_saved = 0.0
        self._deferred_bytes = 0
        self._deferred_count = 0

    # ── Registration ────────────────────────────────────────

    def register_lazy(
        self,
        path: str,
        *,
        priority: Priority | str = Priority.NORMAL,
        dependencies: Iterable[str] = (),
        condition: Callable[[], bool] | None = None,
        timeout: float | None = None,
        fallback: Any = None,
        preload: bool = False,
    ) -> LazyProxy:
        """Register ``path`` for deferred loading and return its proxy.

        Registering a known path again returns a proxy on the existing binding.
        Critical or ``preload`` bindings start loading right away, or on
        :meth:`preload_critical` when no event loop is running yet.
        """
        path = str(path)
        if path not in self._bindings:
            binding = LazyBinding(
                module_path=path,
                priority=Priority(priority),
                dependencies=[str(d) for d in dependencies],
                condition=condition,
                timeout=self.config.default_timeout if timeout is None else timeout,
                fallback=fallback,
                preload=preload,
            )
            self._bindings[path] = binding
            logger.debug("Registered lazy module %s (%s)", path, binding.priority.value)
            if binding.priority is Priority.CRITICAL or preload:
                self._schedule_eager(binding)
        return LazyProxy(self, path)

    def defer_module(self, path: str, size_bytes: int) -> LazyProxy:
        """Register an oversized module as low priority and count its bytes."""
        path = str(path)
        if path in self._bindings:
            return LazyProxy(self, path)
        proxy = self.register_lazy(path, priority=Priority.LOW)
        self._bindings[path].size_bytes = size_bytes
        self._deferred_bytes += size_bytes
        self._deferred_count += 1
        logger.info("Deferred %s (%.1f KB)", path, size_bytes / 1024)
        return proxy

    def binding(self, path: str) -> LazyBinding:
        """Snapshot of a binding; changes to it do not affect the registry."""
        return copy.copy(self._require(path))

    def __contains__(self, path: str) -> bool:
        return str(path) in self._bindings

    # ── Loading ─────────────────────────────────────────────

    async def load_module(self, path: str) -> Any:
        """Load a registered module (once) and return it, its fallback, or None.

        Raises UnknownCheckError for a path that was never registered.
        """
        return await self._start(self._require(path))

    async def preload_module(self, path: str) -> Any:
        """Load eagerly, ignoring the condition gate."""
        path = str(path)
        if path not in self._bindings:
            self.register_lazy(path, priority=Priority.CRITICAL)
        if path in self._pending_preloads:
            self._pending_preloads.remove(path)
        return await self._start(self._bindings[path], eager=True)

    async def preload_critical(self) -> None:
        """Start critical loads registered before the event loop was running."""
        pending, self._pending_preloads = self._pending_preloads, []
        if pending:
            await asyncio.gather(*(self.preload_module(path) for path in pending))

    async def warmup_cache(self) -> int:
        """Load idle low-priority modules in small batches; returns how many loaded."""
        candidates = [
            b for b in self._bindings.values()
            if b.priority is Priority.LOW and not b.started and self._condition_passes(b)
        ]
        size = max(1, self.config.warmup_batch_size)
        warmed = 0

        for index in range(0, len(candidates), size):
            if index:
                await asyncio.sleep(self.config.warmup_pause)
            batch = candidates[index:index + size]
            await asyncio.gather(*(self._start(b) for b in batch), return_exceptions=True)
            warmed += sum(1 for b in batch if b.state is BindingState.LOADED)

        if candidates:
            logger.info("Warmup loaded %d of %d deferred module(s)", warmed, len(candidates))
        return warmed

    async def access(self, path: str) -> Any:
        """Resolve a binding for a proxy read; gated bindings yield the fallback."""
        binding = self._require(path)
        if binding.settled:
            return binding.module
        if not binding.started and not self._condition_passes(binding):
            binding.state = BindingState.GATED
            return binding.fallback
        return await self._start(binding)

    def peek(self, path: str, name: str) -> Any:
        """Non-blocking read used by plain attribute access on a proxy."""
        binding = self._require(path)
        if binding.settled:
            return read_attribute(binding.module, name)
        if not binding.started:
            if not self._condition_passes(binding):
                binding.state = BindingState.GATED
                return read_attribute(binding.fallback, name)
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                return read_attribute(binding.fallback, name)
            self._start(binding)
        return read_attribute(binding.fallback, name)

    def _start(self, binding: LazyBinding, eager: bool = False) -> asyncio.Future:
        if not binding.started:
            binding.state = BindingState.LOADING
            binding.task = asyncio.ensure_future(self._load(binding, eager))
        return binding.task

    def _schedule_eager(self, binding: LazyBinding) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            self._pending_preloads.append(binding.module_path)
            return
        self._start(binding, eager=True)

    async def _load(self, binding: LazyBinding, eager: bool) -> Any:
        path = binding.module_path
        await self._load_dependencies(binding)

        started = time.monotonic()
        inner = asyncio.ensure_future(self.resolver.load_module(path, lazy=not eager))
        inner.add_done_callback(_consume_result)
        error: LoadError
        try:
            # shield: on timeout the load is abandoned, not cancelled
            module = await asyncio.wait_for(asyncio.shield(inner), timeout=binding.timeout)
        except asyncio.TimeoutError:
            error = LoadTimeoutError(path, binding.timeout)
        except Exception as e:
            error = LoadFailureError(path, e)
        else:
            elapsed = time.monotonic() - started
            binding.module = module
            binding.load_time = elapsed
            binding.state = BindingState.LOADED
            self._load_times.append(elapsed)
            if not eager:
                self._time_saved += elapsed
            logger.debug("Loaded %s in %.1f ms", path, elapsed * 1000)
            return module

        binding.error = error
        binding.state = BindingState.FAILED
        if binding.fallback is not None:
            binding.module = binding.fallback
            binding.fallback_applied = True
            logger.error("%s; using fallback", error)
        else:
            logger.error("%s", error)
        return binding.module

    async def _load_dependencies(self, binding: LazyBinding) -> None:
        waits = []
        for dep_path in binding.dependencies:
            dep = self._bindings.get(dep_path)
            if dep is None:
                logger.warning(
                    "%s depends on unregistered module %s; not waiting for it",
                    binding.module_path, dep_path,
                )
                continue
            if self._reaches(dep_path, binding.module_path):
                logger.warning(
                    "Circular lazy dependency between %s and %s; not waiting for it",
                    binding.module_path, dep_path,
                )
                continue
            waits.append(self._start(dep))
        if waits:
            await asyncio.gather(*waits)

    def _reaches(self, start: str, goal: str) -> bool:
        stack, seen = [start], set()
        while stack:
            current = stack.pop()
            if current == goal:
                return True
            if current in seen:
                continue
            seen.add(current)
            dep = self._bindings.get(current)
            if dep is not None:
                stack.extend(dep.dependencies)
        return False

    def _condition_passes(self, binding: LazyBinding) -> bool:
        if binding.condition is None:
            return True
        try:
            return bool(binding.condition())
        except Exception:
            logger.warning("Condition for %s raised; treating as false", binding.module_path, exc_info=True)
            return False

    def _require(self, path: str) -> LazyBinding:
        binding = self._bindings.get(str(path))
        if binding is None:
            raise UnknownCheckError("lazy module", str(path))
        return binding

    # ── Decisions and bookkeeping ───────────────────────────

    def analyze_module(self, path: str, size_bytes: int | None = None) -> ModuleDecision:
        """Decide whether a module should be lazy loaded, by size or by category."""
        if size_bytes is None:
            try:
                size_bytes = Path(path).stat().st_size
            except OSError:
                size_bytes = 0

        threshold = self.config.size_threshold_bytes
        if size_bytes > threshold:
            return ModuleDecision(
                True, f"{size_bytes / 1024:.1f} KB exceeds the {threshold / 1024:.1f} KB threshold",
            )

        segments = set(PurePath(path).parts)
        if not str(path).endswith(".py") and "/" not in str(path):
            segments.update(str(path).split("."))
        for category in self.config.lazy_categories:
            if category in segments:
                return ModuleDecision(True, f"'{category}' modules are loaded on demand")

        return ModuleDecision(False, "small core module")

    def clear_cache(self) -> int:
        """Return settled bindings to ``registered``; in-flight loads are left alone."""
        cleared = 0
        for binding in self._bindings.values():
            if binding.task is None or binding.task.done():
                if binding.state is not BindingState.REGISTERED:
                    cleared += 1
                binding.reset()
        return cleared

    def get_stats(self) -> dict:
        states = Counter(b.state for b in self._bindings.values())
        return {
            "registered": len(self._bindings),
            "loaded": states[BindingState.LOADED],
            "failed": states[BindingState.FAILED],
            "loading": states[BindingState.LOADING],
            "gated": states[BindingState.GATED],
            "pending": (
                states[BindingState.REGISTERED]
                + states[BindingState.GATED]
                + states[BindingState.LOADING]
            ),
            "available": sum(1 for b in self._bindings.values() if b.available),
            "deferred_modules": self._deferred_count,
            "deferred_bytes": self._deferred_bytes,
            "average_load_time": statistics.fmean(self._load_times) if self._load_times else 0.0,
            "time_saved": self._time_saved,
        }
