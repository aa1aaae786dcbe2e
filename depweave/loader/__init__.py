"""Lazy module loading: deferred imports behind transparent proxies."""

from depweave.loader.binding import LazyBinding
from depweave.loader.factories import lazy, lazy_category, lazy_departments, lazy_specialists
from depweave.loader.proxy import LazyProxy
from depweave.loader.registry import LoaderRegistry
from depweave.loader.resolver import ImportlibResolver, ModuleResolver

__all__ = [
    "ImportlibResolver",
    "LazyBinding",
    "LazyProxy",
    "LoaderRegistry",
    "ModuleResolver",
    "lazy",
    "lazy_category",
    "lazy_departments",
    "lazy_specialists",
]
