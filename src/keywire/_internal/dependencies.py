from __future__ import annotations

from collections.abc import KeysView
from typing import TYPE_CHECKING, Any

from keywire._internal.providers import ServiceKey

if TYPE_CHECKING:
    from keywire._internal.container import Container


class Dependencies:
    """The dependency view passed to every provider.

    ``get(key)`` resolves a declared key from the owning container. Each key
    is resolved at most once per view, so one provider invocation reading the
    same dependency repeatedly builds it once even when it is transient.

    A provider in a decorator chain reading its own key receives the next lower
    layer of that chain instead of failing with a cycle.

    A view may be kept and read after the provider returned. Such deferred
    reads are how two services refer to each other without a cycle.
    """

    __slots__ = ("_container", "_memo", "_owner")

    def __init__(
        self,
        container: Container,
        owner: tuple[ServiceKey, int] | None = None,
    ) -> None:
        self._container = container
        self._owner = owner
        self._memo: dict[ServiceKey, Any] = {}

    @property
    def owner(self) -> tuple[ServiceKey, int] | None:
        """The ``(key, chain index)`` being built, ``None`` for ad-hoc providers."""
        return self._owner

    def get(self, key: ServiceKey) -> Any:
        """Resolve a declared key.

        Raises:
            KeywireNotFoundError: If the key is not declared.
            KeywireCircularDependencyError: If the key is still under
                construction further up the current resolution.

        """
        try:
            return self._memo[key]
        except (KeyError, TypeError):
            pass
        instance = self._container._resolve_dependency(key, self._owner)  # noqa: SLF001
        self._memo[key] = instance
        return instance

    def __getitem__(self, key: ServiceKey) -> Any:
        return self.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._container._registry  # noqa: SLF001

    def keys(self) -> KeysView[ServiceKey]:
        return self._container.keys()

    def __repr__(self) -> str:
        return f"Dependencies(owner={self._owner!r})"
