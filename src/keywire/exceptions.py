from __future__ import annotations

from collections.abc import Hashable, Sequence
from dataclasses import dataclass
from typing import Any


def describe_cause(cause: object) -> str:
    """Render a failure cause the way keywire error messages embed it."""
    if isinstance(cause, BaseException):
        return str(cause)
    return repr(cause)


def format_path(path: Sequence[Hashable]) -> str:
    """Join resolving keys into the ``A -> B -> C`` form used in messages."""
    return " -> ".join(str(key) for key in path)


class KeywireError(Exception):
    """Represent a base class for all keywire-specific failures.

    Catch this type when you want to handle any keywire error path without
    matching each concrete exception class individually.
    """


class KeywireInvalidRegistrationError(KeywireError):
    """Signal an invalid service map entry.

    Raised while a container normalizes its service map, for example when a
    decorator chain is empty or contains something other than providers.
    Everything else is validated lazily at resolution time.
    """


class KeywireNotFoundError(KeywireError):
    """Signal that a requested key was never declared.

    Raised by ``resolve``, ``resolve_all`` and ``Dependencies.get`` when the
    key is missing from the container's service map.
    """

    def __init__(self, key: Hashable) -> None:
        self.key = key
        super().__init__(f"Service {key!r} is not registered")


class KeywireContainerDisposedError(KeywireError):
    """Signal use of a container after ``dispose()`` completed.

    A disposed container keeps no instances. Build a fresh one, for example
    with ``container.with_overrides({})``, to resolve again.
    """


class KeywireInjectionError(KeywireError):
    """Wrap a failure raised while building a service.

    ``path`` lists the keys that were resolving when the failure happened,
    outermost first, including the keys of scopes that handed a shared
    service to their parent. Nested resolutions never re-wrap an existing
    injection error, so ``path`` and ``cause`` always describe the innermost
    failure.
    """

    def __init__(self, path: Sequence[Hashable], cause: BaseException | None) -> None:
        self.path = tuple(path)
        self.cause = cause
        super().__init__(self._render())

    def prepend_path(self, outer: Sequence[Hashable]) -> None:
        """Prefix ``path`` with keys resolving in an enclosing container."""
        if not outer:
            return
        self.path = (*outer, *self.path)
        self.args = (self._render(),)

    def _render(self) -> str:
        return f"Injection error for {format_path(self.path)}: {describe_cause(self.cause)}"


class KeywireCircularDependencyError(KeywireInjectionError):
    """Signal a key reading itself while it is still being built.

    The message lists every key currently resolving and ends with the
    repeated one, e.g. ``Circular dependency detected: a -> b -> a``. The
    repeated key is available as ``key``. There is no underlying exception,
    so ``cause`` is always ``None``.

    Typical fixes include reading the dependency lazily (keep the
    ``Dependencies`` view and look the key up after construction) or
    splitting the shared state into a third service.
    """

    def __init__(self, path: Sequence[Hashable]) -> None:
        self.key = path[-1]
        super().__init__(path, None)

    def _render(self) -> str:
        return f"Circular dependency detected: {format_path(self.path)}"


class KeywireStartError(KeywireError):
    """Wrap a failure raised by a service's ``start()`` capability.

    Start failures are captured instead of raised during resolution. They
    surface only when a caller awaits ``Container.started(key)``.
    """

    def __init__(self, key: Hashable | None, instance: Any, cause: BaseException) -> None:
        self.key = key
        self.instance = instance
        self.cause = cause
        target = f" for {key}" if key is not None else ""
        super().__init__(f"Start error{target}: {describe_cause(cause)}")


@dataclass(frozen=True, slots=True)
class DisposeFailure:
    """A single teardown failure collected during ``dispose()``."""

    key: Hashable | None
    instance: Any
    cause: BaseException


class KeywireDisposeError(KeywireError):
    """Aggregate every teardown failure of one ``dispose()`` pass.

    Disposal never stops at the first failure. All ``close``/``aclose``
    capabilities run and each failure is reported here as a ``DisposeFailure``.
    """

    def __init__(self, errors: Sequence[DisposeFailure]) -> None:
        self.errors = list(errors)
        details = ", ".join(
            f"Injection error{f' for {failure.key}' if failure.key is not None else ''}: "
            f"{describe_cause(failure.cause)}"
            for failure in self.errors
        )
        super().__init__(f"{len(self.errors)} error(s) during dispose: {details}")
