"""Deferred-load contract for one module."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable

from depweave.errors import LoadError
from depweave.models import BindingState, Priority


@dataclass
class LazyBinding:
    module_path: str
    priority: Priority = Priority.NORMAL
    dependencies: list[str] = field(default_factory=list)
    condition: Callable[[], bool] | None = None
    timeout: float = 30.0  # seconds
    fallback: Any = None
    preload: bool = False
    size_bytes: int = 0

    state: BindingState = BindingState.REGISTERED
    module: Any = None
    error: LoadError | None = None
    fallback_applied: bool = False
    load_time: float | None = None
    task: asyncio.Future | None = field(default=None, repr=False)

    @property
    def settled(self) -> bool:
        """Loaded or failed; no further transitions until a cache clear."""
        return self.state in (BindingState.LOADED, BindingState.FAILED)

    @property
    def started(self) -> bool:
        """A load task exists and was not cancelled with its event loop."""
        return self.task is not None and not self.task.cancelled()

    @property
    def available(self) -> bool:
        return self.state is BindingState.LOADED or self.fallback_applied

    def reset(self) -> None:
        self.state = BindingState.REGISTERED
        self.module = None
        self.error = None
        self.fallback_applied = False
        self.load_time = None
        self.task = None
