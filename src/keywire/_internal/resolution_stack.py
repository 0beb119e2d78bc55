from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from keywire._internal.providers import ServiceKey


class ResolutionStack:
    """Keys currently under construction in one container, outermost first.

    A key may appear more than once only when decorator layers of the same
    chain are built on top of each other.
    """

    def __init__(self) -> None:
        self._stack: list[ServiceKey] = []

    @contextmanager
    def entering(self, key: ServiceKey) -> Iterator[None]:
        """Mark ``key`` as resolving until the block exits, successfully or not."""
        self._stack.append(key)
        try:
            yield
        finally:
            self._stack.pop()

    @property
    def path(self) -> tuple[ServiceKey, ...]:
        return tuple(self._stack)

    def path_to(self, key: ServiceKey) -> tuple[ServiceKey, ...]:
        """Get the current path extended with ``key``, used for cycle reports."""
        return (*self._stack, key)

    def __contains__(self, key: object) -> bool:
        return key in self._stack

    def __len__(self) -> int:
        return len(self._stack)
