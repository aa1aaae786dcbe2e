"""Tests for the lazy loader registry, proxies and factories."""

import asyncio
from types import SimpleNamespace

import pytest

from depweave.config import LoaderConfig
from depweave.errors import LoadFailureError, LoadTimeoutError, UnknownCheckError
from depweave.loader import LoaderRegistry, lazy, lazy_departments, lazy_specialists
from depweave.models import BindingState, Priority


class FakeResolver:
    """Records calls; optionally slow, failing, or tracking concurrency."""

    def __init__(self, delay=0.0, fail=()):
        self.delay = delay
        self.fail = set(fail)
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def load_module(self, path, *, lazy=True):
        self.calls.append((path, lazy))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if path in self.fail:
                raise ImportError(f"No module named {path!r}")
            return SimpleNamespace(name=path, answer=42)
        finally:
            self.in_flight -= 1


def _registry(resolver=None, **config):
    return LoaderRegistry(resolver or FakeResolver(), LoaderConfig(**config))


class TestLoading:
    def test_concurrent_reads_load_once(self):
        resolver = FakeResolver(delay=0.01)
        registry = _registry(resolver)
        proxy = registry.register_lazy("pkg.heavy")

        async def main():
            return await asyncio.gather(*(proxy.aget("answer") for _ in range(50)))

        assert asyncio.run(main()) == [42] * 50
        assert resolver.calls == [("pkg.heavy", True)]

    def test_plain_attribute_reads_load_once(self):
        resolver = FakeResolver(delay=0.01)
        registry = _registry(resolver)
        proxy = registry.register_lazy("pkg.heavy")

        async def main():
            early = [proxy.answer for _ in range(50)]
            module = await proxy
            return early, module

        early, module = asyncio.run(main())
        assert early == [None] * 50
        assert module.answer == 42
        assert proxy.answer == 42
        assert len(resolver.calls) == 1

    def test_load_abandoned_with_its_loop_restarts(self):
        resolver = FakeResolver(delay=0.5)
        registry = _registry(resolver)
        proxy = registry.register_lazy("pkg.mod")

        async def start_only():
            return proxy.answer

        assert asyncio.run(start_only()) is None
        resolver.delay = 0
        assert asyncio.run(proxy.aget("answer")) == 42
        assert len(resolver.calls) == 2

    def test_timeout_uses_fallback(self):
        registry = _registry(FakeResolver(delay=0.5))
        fallback = SimpleNamespace(answer="fallback", extra=1)
        proxy = registry.register_lazy("pkg.slow", timeout=0.001, fallback=fallback)

        async def main():
            return [await proxy.aget("answer") for _ in range(5)] + [proxy.extra]

        assert asyncio.run(main()) == ["fallback"] * 5 + [1]
        binding = registry.binding("pkg.slow")
        assert binding.state is BindingState.FAILED
        assert binding.fallback_applied
        assert isinstance(binding.error, LoadTimeoutError)
        assert registry.get_stats()["available"] == 1

    def test_mapping_fallback_read_by_key(self):
        registry = _registry(FakeResolver(fail={"pkg.gone"}))
        proxy = registry.register_lazy("pkg.gone", fallback={"answer": 7})
        assert asyncio.run(proxy.aget("answer")) == 7
        assert proxy.answer == 7
        assert proxy.missing is None

    def test_failure_without_fallback_reads_none(self):
        registry = _registry(FakeResolver(fail={"pkg.gone"}))
        proxy = registry.register_lazy("pkg.gone")

        assert asyncio.run(proxy.aget("answer")) is None
        assert asyncio.run(proxy.aget("answer", default="d")) == "d"
        binding = registry.binding("pkg.gone")
        assert binding.state is BindingState.FAILED
        assert isinstance(binding.error, LoadFailureError)
        assert registry.get_stats()["failed"] == 1

    def test_dependencies_load_first(self):
        resolver = FakeResolver()
        registry = _registry(resolver)
        registry.register_lazy("dep.one")
        registry.register_lazy("dep.two")
        registry.register_lazy("main", dependencies=["dep.one", "dep.two", "not.registered"])

        asyncio.run(registry.load_module("main"))
        assert [path for path, _ in resolver.calls] == ["dep.one", "dep.two", "main"]

    def test_mutual_dependencies_do_not_deadlock(self):
        resolver = FakeResolver()
        registry = _registry(resolver)
        registry.register_lazy("a", dependencies=["b"])
        registry.register_lazy("b", dependencies=["a"])

        module = asyncio.run(registry.load_module("a"))
        assert module.name == "a"

    def test_unknown_path(self):
        registry = _registry()
        with pytest.raises(UnknownCheckError):
            asyncio.run(registry.load_module("nope"))
        with pytest.raises(KeyError):
            registry.binding("nope")

    def test_reregister_returns_same_binding(self):
        resolver = FakeResolver()
        registry = _registry(resolver)
        first = registry.register_lazy("pkg.mod")
        second = registry.register_lazy("pkg.mod", priority="critical")

        asyncio.run(first.resolve())
        assert second.answer == 42
        assert registry.binding("pkg.mod").priority is Priority.NORMAL
        assert "pkg.mod" in registry and "other" not in registry
        assert len(resolver.calls) == 1


class TestGating:
    def test_condition_gates_load(self):
        resolver = FakeResolver()
        registry = _registry(resolver)
        flags = {"enabled": False}
        proxy = registry.register_lazy(
            "pkg.optional", condition=lambda: flags["enabled"], fallback={"answer": 0},
        )

        assert asyncio.run(proxy.aget("answer")) == 0
        assert registry.binding("pkg.optional").state is BindingState.GATED
        assert registry.get_stats()["gated"] == 1
        assert resolver.calls == []

        flags["enabled"] = True
        assert asyncio.run(proxy.aget("answer")) == 42
        assert registry.binding("pkg.optional").state is BindingState.LOADED

    def test_raising_condition_counts_as_false(self):
        registry = _registry()

        def broken():
            raise RuntimeError("boom")

        proxy = registry.register_lazy("pkg.optional", condition=broken)
        assert asyncio.run(proxy.aget("answer")) is None

    def test_preload_ignores_condition(self):
        resolver = FakeResolver()
        registry = _registry(resolver)
        registry.register_lazy("pkg.optional", condition=lambda: False)

        module = asyncio.run(registry.preload_module("pkg.optional"))
        assert module.answer == 42
        assert resolver.calls == [("pkg.optional", False)]


class TestPreloadAndWarmup:
    def test_critical_queued_without_loop(self):
        resolver = FakeResolver()
        registry = _registry(resolver)
        registry.register_lazy("core.config", priority=Priority.CRITICAL)
        registry.register_lazy("core.events", preload=True)
        assert resolver.calls == []

        asyncio.run(registry.preload_critical())
        assert sorted(resolver.calls) == [("core.config", False), ("core.events", False)]
        assert registry.get_stats()["time_saved"] == 0

    def test_critical_starts_inside_loop(self):
        resolver = FakeResolver()
        registry = _registry(resolver)

        async def main():
            registry.register_lazy("core.config", priority="critical")
            await asyncio.sleep(0.01)

        asyncio.run(main())
        assert registry.binding("core.config").state is BindingState.LOADED

    def test_preload_registers_unknown_path(self):
        registry = _registry()
        asyncio.run(registry.preload_module("core.new"))
        binding = registry.binding("core.new")
        assert binding.priority is Priority.CRITICAL
        assert binding.state is BindingState.LOADED

    def test_warmup_batches(self):
        resolver = FakeResolver(delay=0.01)
        registry = _registry(resolver, warmup_batch_size=5, warmup_pause=0)
        for i in range(12):
            registry.register_lazy(f"specialists.s{i}", priority=Priority.LOW)
        registry.register_lazy("core.normal")
        registry.register_lazy("specialists.gated", priority="low", condition=lambda: False)

        warmed = asyncio.run(registry.warmup_cache())
        assert warmed == 12
        assert resolver.max_in_flight == 5
        assert [path for path, _ in resolver.calls] == [f"specialists.s{i}" for i in range(12)]
        assert registry.binding("core.normal").state is BindingState.REGISTERED

    def test_warmup_swallows_failures(self):
        resolver = FakeResolver(fail={"bad"})
        registry = _registry(resolver, warmup_pause=0)
        registry.register_lazy("good", priority="low")
        registry.register_lazy("bad", priority="low")
        assert asyncio.run(registry.warmup_cache()) == 1


class TestDecisionsAndStats:
    def test_analyze_module(self):
        registry = _registry(size_threshold_bytes=1024)
        assert registry.analyze_module("core/engine.py", 4096).should_lazy_load
        assert registry.analyze_module("src/specialists/db.py", 10).should_lazy_load
        assert registry.analyze_module("app.integrations.slack", 10).should_lazy_load
        decision = registry.analyze_module("core/engine.py", 10)
        assert not decision.should_lazy_load
        assert decision.reason
        assert registry.get_stats()["registered"] == 0

    def test_defer_module(self):
        registry = _registry()
        registry.defer_module("big/one.py", 60_000)
        registry.defer_module("big/two.py", 70_000)
        registry.defer_module("big/two.py", 70_000)

        stats = registry.get_stats()
        assert stats["deferred_modules"] == 2
        assert stats["deferred_bytes"] == 130_000
        assert registry.binding("big/one.py").priority is Priority.LOW

    def test_stats_and_clear_cache(self):
        resolver = FakeResolver()
        registry = _registry(resolver)
        registry.register_lazy("a")
        registry.register_lazy("b")
        asyncio.run(registry.load_module("a"))

        stats = registry.get_stats()
        assert stats["registered"] == 2
        assert stats["loaded"] == 1
        assert stats["pending"] == 1
        assert stats["average_load_time"] >= 0
        assert stats["time_saved"] >= 0

        assert registry.clear_cache() == 1
        assert registry.binding("a").state is BindingState.REGISTERED
        asyncio.run(registry.load_module("a"))
        assert len(resolver.calls) == 2

    def test_binding_is_a_snapshot(self):
        registry = _registry()
        registry.register_lazy("a")
        registry.binding("a").state = BindingState.LOADED
        assert registry.binding("a").state is BindingState.REGISTERED

    def test_proxy_repr(self):
        registry = _registry()
        proxy = lazy(registry, "pkg.mod")
        assert repr(proxy) == "<LazyProxy 'pkg.mod' [registered]>"


class TestFactories:
    def test_lazy_specialists_with_importlib(self, make_tree):
        root = make_tree({
            "agents/specialists/__init__.py": "",
            "agents/specialists/database.py": "VALUE = 7\n",
            "agents/specialists/huge.py": "DATA = '" + "x" * 400 + "'\n",
            "agents/departments/backend.py": "NAME = 'backend'\n",
        })
        registry = LoaderRegistry(config=LoaderConfig(size_threshold_bytes=200))

        specialists = lazy_specialists(registry, root)
        departments = lazy_departments(registry, root)

        assert sorted(specialists) == ["database", "huge"]
        assert list(departments) == ["backend"]
        assert registry.get_stats()["deferred_modules"] == 1

        path = str(root / "agents/departments/backend.py")
        assert registry.binding(path).priority is Priority.NORMAL

        assert asyncio.run(specialists["database"].aget("VALUE")) == 7
        assert asyncio.run(departments["backend"].aget("NAME")) == "backend"
