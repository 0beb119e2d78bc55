from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Startable(Protocol):
    """A service started once right after it is built.

    ``start`` may return an awaitable; keywire keeps it as the start result
    instead of blocking resolution.
    """

    def start(self) -> Any: ...


@runtime_checkable
class Disposable(Protocol):
    """A service torn down synchronously by ``Container.dispose``."""

    def close(self) -> Any: ...


@runtime_checkable
class AsyncDisposable(Protocol):
    """A service torn down asynchronously by ``Container.dispose``."""

    async def aclose(self) -> Any: ...


_CAPABILITY_METHODS: dict[type[Any], str] = {
    Startable: "start",
    Disposable: "close",
    AsyncDisposable: "aclose",
}


def has_capability(instance: object, capability: type[Any]) -> bool:
    """Return whether ``instance`` implements a runtime capability protocol.

    The capability method must be callable. Classes themselves are never
    treated as capable, even when they define the method, because their
    attributes are unbound functions.
    """
    if isinstance(instance, type) or not isinstance(instance, capability):
        return False
    return callable(getattr(instance, _CAPABILITY_METHODS[capability], None))


def is_disposable(instance: object) -> bool:
    return has_capability(instance, Disposable) or has_capability(instance, AsyncDisposable)


__all__ = [
    "AsyncDisposable",
    "Disposable",
    "Startable",
    "has_capability",
    "is_disposable",
]
