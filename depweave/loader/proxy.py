"""Transparent stand-in for a lazily loaded module."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from depweave.loader.registry import LoaderRegistry


def read_attribute(value: Any, name: str) -> Any:
    """Read ``name`` from a module or fallback; mappings are read by key."""
    if value is None:
        return None
    if isinstance(value, Mapping):
        return value.get(name)
    return getattr(value, name, None)


class LazyProxy:
    """Proxy whose reads resolve the underlying module on first use.

    ``await proxy.aget("name")`` waits for the load and returns the attribute.
    ``await proxy`` returns the module itself. Plain ``proxy.name`` never
    blocks: it returns the attribute once loaded, otherwise it starts the load
    in the background and answers from the fallback (or ``None``).

    Reads never raise; a failed or gated binding yields the fallback's value.
    The names ``aget`` and ``resolve`` shadow module attributes of the same
    name; use ``aget`` for those.
    """

    __slots__ = ("_registry", "_path")

    def __init__(self, registry: LoaderRegistry, path: str):
        self._registry = registry
        self._path = path

    async def resolve(self) -> Any:
        return await self._registry.access(self._path)

    async def aget(self, name: str, default: Any = None) -> Any:
        value = read_attribute(await self.resolve(), name)
        return default if value is None else value

    def __await__(self):
        return self.resolve().__await__()

    def __getattr__(self, name: str) -> Any:
        if name.startswith("__"):
            raise AttributeError(name)
        return self._registry.peek(self._path, name)

    def __repr__(self) -> str:
        state = self._registry.binding(self._path).state.value
        return f"<LazyProxy {self._path!r} [{state}]>"
