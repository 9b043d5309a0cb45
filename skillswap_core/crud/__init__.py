"""CRUD package exports with lazy module loading.

Keeps ``import skillswap_core.crud`` cheap for modules that only need one
query family.
"""

from importlib import import_module

__all__ = ["user", "post", "connection", "session", "chat", "review", "badge"]


def __getattr__(name):
    if name in __all__:
        return import_module(f".{name}", __name__)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
