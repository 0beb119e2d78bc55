from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from keywire._internal.capabilities import is_disposable
from keywire._internal.providers import ServiceKey

if TYPE_CHECKING:
    from keywire._internal.background import StartHandle


@dataclass(slots=True)
class InstanceRecord:
    """An instance built by a container for one layer of a key's chain."""

    key: ServiceKey
    index: int
    instance: Any
    start: StartHandle | None = None


class InstanceStore:
    """Per-container instance cache plus the list of instances to dispose.

    Cached records are keyed by ``(key, chain index)``. Disposal tracking is
    keyed by instance identity, so transient instances are torn down too and an
    instance returned by several layers is torn down once.
    """

    def __init__(self) -> None:
        self._cached: dict[tuple[ServiceKey, int], InstanceRecord] = {}
        self._disposables: dict[int, InstanceRecord] = {}

    def get(self, key: ServiceKey, index: int) -> InstanceRecord | None:
        return self._cached.get((key, index))

    def add(self, record: InstanceRecord, *, cache: bool) -> None:
        """Record a freshly built instance."""
        if cache:
            self._cached[record.key, record.index] = record
        if is_disposable(record.instance):
            self._disposables.setdefault(id(record.instance), record)

    def drain(self) -> list[InstanceRecord]:
        """Forget every instance and return the ones needing teardown."""
        disposables = list(self._disposables.values())
        self._cached.clear()
        self._disposables.clear()
        return disposables

    def __len__(self) -> int:
        return len(self._cached)
